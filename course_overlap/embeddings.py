from __future__ import annotations

"""
Storage-boundary decoding and validation of embedding vectors.

Stored course embeddings arrive in whatever shape the data store hands
back: native numeric arrays, JSON array text (``"[0.1, 0.2]"``) or
delimited numeric text (``"0.1,0.2"``, pgvector ``"[0.1,0.2]"``,
Postgres ``"{0.1,0.2}"``).  Everything is normalised here, once, into a
flat ``float64`` numpy vector so that the similarity and calibration
code never has to care about representations.

Failures are reported as :class:`~course_overlap.errors.ParseError`,
:class:`~course_overlap.errors.DimensionMismatchError` or
:class:`~course_overlap.errors.DegenerateVectorError`; the corpus pass
counts and skips them.  Query embeddings go through
:meth:`EmbeddingValidator.parse_query`, which turns every failure into
a fatal :class:`~course_overlap.errors.InvalidQueryError`.
"""

import json
import numbers
import re
from typing import Any, Optional, Sequence

import numpy as np
from loguru import logger

from .cache import content_hash
from .errors import (
    CourseOverlapError,
    DegenerateVectorError,
    DimensionMismatchError,
    InvalidQueryError,
    ParseError,
)

_DELIMITERS = re.compile(r"[\s,;|]+")
_BRACKETS = "[](){}"


def _decode_text(text: str) -> Sequence[Any]:
    """Decode a string-encoded embedding into a Python sequence."""
    s = text.strip()
    if not s:
        raise ParseError("Empty embedding text")
    if s.startswith("["):
        try:
            decoded = json.loads(s)
        except json.JSONDecodeError:
            # numpy-style "[0.1 0.2]" is not JSON; handled as delimited below
            decoded = None
        if decoded is not None:
            if not isinstance(decoded, list):
                raise ParseError(f"JSON embedding decoded to {type(decoded).__name__}, expected array")
            return decoded
    if s.startswith("{") and ":" in s:
        raise ParseError("Embedding text is an object, expected array")
    body = s.strip(_BRACKETS).strip()
    if not body:
        raise ParseError("Embedding text contains no values")
    parts = [p for p in _DELIMITERS.split(body) if p]
    if any(p[0] in _BRACKETS or p[-1] in _BRACKETS for p in parts):
        raise ParseError("Nested embedding text is not supported")
    try:
        return [float(p) for p in parts]
    except ValueError as e:
        raise ParseError(f"Non-numeric value in embedding text: {e}") from e


def _to_vector(values: Any) -> np.ndarray:
    """Coerce a decoded sequence into a flat finite float64 vector."""
    if isinstance(values, np.ndarray):
        if values.ndim != 1:
            raise ParseError(f"Embedding must be flat, got shape {values.shape}")
        if values.dtype.kind in "iuf":
            try:
                vec = values.astype(np.float64, copy=True)
            except (OverflowError, ValueError, TypeError) as e:
                raise ParseError(f"Embedding values cannot be converted to float: {e}") from e
        else:
            return _to_vector(values.tolist())
    else:
        for v in values:
            if isinstance(v, bool) or not isinstance(v, numbers.Real):
                if isinstance(v, (list, tuple, dict, np.ndarray)):
                    raise ParseError("Embedding must be a flat array of numbers")
                raise ParseError(f"Non-numeric embedding entry {v!r}")
        try:
            vec = np.asarray(values, dtype=np.float64)
        except (OverflowError, ValueError, TypeError) as e:
            raise ParseError(f"Embedding values cannot be converted to float: {e}") from e
    if vec.size == 0:
        raise ParseError("Embedding is empty")
    if not np.all(np.isfinite(vec)):
        raise ParseError("Embedding contains NaN or infinite values")
    return vec


def parse_embedding(raw: Any) -> np.ndarray:
    """Parse a stored embedding (native or text-encoded) into a vector.

    Raises ``ParseError`` when the input is missing, empty, nested,
    non-numeric or contains non-finite values.
    """
    if raw is None:
        raise ParseError("Missing embedding")
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Embedding bytes are not UTF-8 text: {e}") from e
    if isinstance(raw, str):
        return _to_vector(_decode_text(raw))
    if isinstance(raw, (list, tuple, np.ndarray)):
        return _to_vector(raw)
    raise ParseError(f"Unsupported embedding type {type(raw).__name__}")


def validate_dimension(vector: np.ndarray, expected_dim: int) -> bool:
    return len(vector) == expected_dim


def validate_non_degenerate(vector: np.ndarray) -> bool:
    """A zero vector has no direction to compare."""
    return float(np.linalg.norm(vector)) > 0.0


class EmbeddingValidator:
    """Single decode step for every embedding entering the engine.

    An optional cache (anything with ``get``/``set``) memoizes decoded
    text embeddings by content hash.  Cached vectors are read-only so a
    caller cannot corrupt them for later passes.
    """

    def __init__(self, cache: Optional[Any] = None) -> None:
        self.cache = cache

    def parse(self, raw: Any) -> np.ndarray:
        if self.cache is None or not isinstance(raw, str):
            return parse_embedding(raw)
        key = content_hash(raw)
        vec = self.cache.get(key)
        if vec is None:
            vec = parse_embedding(raw)
            vec.setflags(write=False)
            self.cache.set(key, vec)
        return vec

    def check(self, raw: Any, expected_dim: int) -> np.ndarray:
        """Parse ``raw`` and make sure it can be compared with a query vector."""
        vec = self.parse(raw)
        if not validate_dimension(vec, expected_dim):
            raise DimensionMismatchError(expected_dim, len(vec))
        if not validate_non_degenerate(vec):
            raise DegenerateVectorError("Embedding has zero magnitude")
        return vec

    def parse_query(self, raw: Any) -> np.ndarray:
        """Validate a query embedding; any problem is fatal for the request."""
        try:
            vec = parse_embedding(raw)
            if not validate_non_degenerate(vec):
                raise DegenerateVectorError("Query embedding has zero magnitude")
        except CourseOverlapError as e:
            logger.error("Rejected query embedding: {}", e)
            raise InvalidQueryError(f"Invalid query embedding: {e}") from e
        return vec
