"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from .config import DEFAULT_EMBEDDING_FIELD

# 1-D float64 array; dimensionality is fixed per embedding model
EmbeddingVector = np.ndarray


@dataclass
class CourseRecord:
    """Stored course as handed over by the data store."""

    code: str
    name: str = ""
    language: Optional[str] = None
    # raw stored form (native sequence or encoded text) keyed by embedding field
    embeddings: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def raw_embedding(self, field_name: str = DEFAULT_EMBEDDING_FIELD) -> Any:
        return self.embeddings.get(field_name)


@dataclass
class QueryCourse:
    """Ephemeral query built per request from externally generated embeddings."""

    embedding: Any
    language: Optional[str] = None
    # language tag -> embedding of the query text translated into that language
    translations: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoredCandidate:
    """A course paired with its calibrated overlap score."""

    record: CourseRecord
    score: float
    raw_similarity: float
    position: int
    cross_language: bool = False

    @property
    def code(self) -> str:
        return self.record.code


@dataclass
class ScanDiagnostics:
    """Aggregate counters for one corpus pass."""

    processed: int = 0
    scored: int = 0
    skipped: int = 0
    skipped_by_reason: Dict[str, int] = field(default_factory=dict)
    score_min: Optional[float] = None
    score_max: Optional[float] = None
    score_mean: Optional[float] = None
    matched: int = 0

    def record_skip(self, reason: str) -> None:
        self.skipped += 1
        self.skipped_by_reason[reason] = self.skipped_by_reason.get(reason, 0) + 1

    def merge(self, other: "ScanDiagnostics") -> None:
        """Fold counters from another (worker-local) diagnostics object."""
        self.processed += other.processed
        self.scored += other.scored
        self.skipped += other.skipped
        for reason, count in other.skipped_by_reason.items():
            self.skipped_by_reason[reason] = self.skipped_by_reason.get(reason, 0) + count
