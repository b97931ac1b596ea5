"""
Exception taxonomy for the course overlap engine.

Per-candidate errors (``ParseError``, ``DimensionMismatchError``,
``DegenerateVectorError``) are caught and counted by the corpus pass and
never reach the caller.  The remaining errors are fatal for a call and
propagate.  An empty result list is a valid outcome, not an error.
"""
from __future__ import annotations


class CourseOverlapError(Exception):
    """Base class for all errors raised by this package."""

    # short key used in skip counters and logs
    kind = "error"


class ParseError(CourseOverlapError):
    kind = "parse_error"


class DimensionMismatchError(CourseOverlapError):
    kind = "dimension_mismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding has {actual} dimensions, expected {expected}")
        self.expected = expected
        self.actual = actual


class DegenerateVectorError(CourseOverlapError):
    kind = "degenerate_vector"


class EmptyCorpusError(CourseOverlapError):
    kind = "empty_corpus"


class InvalidQueryError(CourseOverlapError):
    kind = "invalid_query"


class ScanCancelledError(CourseOverlapError):
    kind = "cancelled"

    def __init__(self, processed: int) -> None:
        super().__init__(f"Corpus scan cancelled after {processed} records")
        self.processed = processed


class UnknownPolicyError(CourseOverlapError, ValueError):
    kind = "unknown_policy"


# Errors the corpus pass isolates per record
SKIPPABLE_ERRORS = (ParseError, DimensionMismatchError, DegenerateVectorError)
