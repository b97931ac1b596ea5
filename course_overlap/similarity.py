from __future__ import annotations

"""
Raw cosine similarity between two validated embedding vectors.

Callers are expected to have run both vectors through
:class:`~course_overlap.embeddings.EmbeddingValidator` first (equal
length, nonzero norm).  The zero-norm branch below only exists so that
a record slipping past validation yields a score of zero instead of
aborting the whole corpus pass.
"""

import numpy as np
from loguru import logger

from .config import IDENTITY_TOLERANCE
from .errors import DimensionMismatchError


def vectors_match(a: np.ndarray, b: np.ndarray, tol: float = IDENTITY_TOLERANCE) -> bool:
    """True if ``a`` and ``b`` are element-wise equal within ``tol``."""
    return a.shape == b.shape and bool(np.all(np.abs(a - b) < tol))


def raw_cosine(a: np.ndarray, b: np.ndarray) -> float:
    """Return ``dot(a, b) / (|a| * |b|)`` clamped to ``[-1, 1]``.

    Identical vectors (within ``IDENTITY_TOLERANCE``) short-circuit to
    exactly ``1.0`` so near-unit embeddings do not drift below it.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(len(a), len(b))
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        logger.warning("Zero magnitude vector in cosine (|a|={}, |b|={}); scoring 0", norm_a, norm_b)
        return 0.0
    if vectors_match(a, b):
        return 1.0
    # elementwise product keeps raw_cosine(a, b) == raw_cosine(b, a) exactly
    sim = float(np.sum(a * b)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, sim))
