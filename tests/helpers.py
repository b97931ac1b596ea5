"""Vector and record builders shared by the tests."""

from __future__ import annotations

import math
from typing import List, Optional

from course_overlap.pipeline_types import CourseRecord

DIM = 4


def axis_vector(dim: int = DIM) -> List[float]:
    return [1.0] + [0.0] * (dim - 1)


def vector_with_cosine(cos: float, dim: int = DIM) -> List[float]:
    """Unit vector whose cosine with ``axis_vector`` is ``cos``."""
    return [cos, math.sqrt(max(0.0, 1.0 - cos * cos))] + [0.0] * (dim - 2)


def make_record(
    code: str,
    embedding,
    language: Optional[str] = "nb",
    name: Optional[str] = None,
    **metadata,
) -> CourseRecord:
    return CourseRecord(
        code=code,
        name=name if name is not None else f"Course {code}",
        language=language,
        embeddings={"embedding": embedding} if embedding is not None else {},
        metadata=dict(metadata),
    )
