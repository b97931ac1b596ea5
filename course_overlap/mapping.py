from __future__ import annotations

"""
Mapping utilities for the course overlap API.

This module converts ranked :class:`~course_overlap.pipeline_types.ScoredCandidate`
objects into the strict Pydantic objects defined in
:mod:`course_overlap.config`, and request payloads into corpus records.
All transformation logic is encapsulated here to keep ``api.py`` simple.
"""

from typing import List, Optional, Sequence

from loguru import logger

from .config import (
    DEFAULT_COURSE_LANGUAGE,
    CourseIn,
    CourseResult,
    DiagnosticsOut,
    FilterIn,
    QueryIn,
    RankResponse,
)
from .pipeline_types import CourseRecord, QueryCourse, ScanDiagnostics, ScoredCandidate
from .ranking import ResultFilters


def to_result_item(candidate: ScoredCandidate, rank: int) -> CourseResult:
    """Convert one ranked candidate into a :class:`CourseResult`."""
    record = candidate.record
    try:
        return CourseResult(
            code=record.code,
            name=record.name or "",
            language=record.language,
            score=candidate.score,
            rank=rank,
            metadata=dict(record.metadata),
        )
    except Exception as e:
        logger.exception("Error mapping course {} to API item: {}", record.code, e)
        raise


def to_diagnostics_out(diagnostics: ScanDiagnostics) -> DiagnosticsOut:
    return DiagnosticsOut(
        processed=diagnostics.processed,
        scored=diagnostics.scored,
        skipped=diagnostics.skipped,
        matched=diagnostics.matched,
        skipped_by_reason=dict(diagnostics.skipped_by_reason),
        score_min=diagnostics.score_min,
        score_max=diagnostics.score_max,
        score_mean=diagnostics.score_mean,
    )


def map_candidates_to_response(
    candidates: Sequence[ScoredCandidate],
    diagnostics: Optional[ScanDiagnostics] = None,
) -> RankResponse:
    """Convert a ranked candidate list into a full RankResponse object.

    Ranks are 1-based positions in the given order.
    """
    items: List[CourseResult] = [to_result_item(c, i) for i, c in enumerate(candidates, 1)]
    logger.info("Mapped {} courses into API schema", len(items))
    return RankResponse(
        results=items,
        diagnostics=to_diagnostics_out(diagnostics) if diagnostics is not None else None,
    )


def query_from_payload(payload: QueryIn) -> QueryCourse:
    return QueryCourse(
        embedding=list(payload.embedding),
        language=payload.language,
        translations={k: list(v) for k, v in payload.translations.items()},
    )


def records_from_payload(
    courses: Sequence[CourseIn],
    default_language: Optional[str] = DEFAULT_COURSE_LANGUAGE,
) -> List[CourseRecord]:
    """Untagged inline courses get ``default_language``, as snapshot rows do."""
    return [
        CourseRecord(
            code=c.code,
            name=c.name,
            language=(c.language or "").strip() or default_language or None,
            embeddings=dict(c.embeddings),
            metadata=dict(c.metadata),
        )
        for c in courses
    ]


def filters_from_payload(payload: Optional[FilterIn]) -> Optional[ResultFilters]:
    if payload is None:
        return None
    score_range = None
    if payload.score_min is not None or payload.score_max is not None:
        score_range = (payload.score_min, payload.score_max)
    return ResultFilters(
        search_term=payload.search_term,
        score_range=score_range,
        study_level=payload.study_level,
        language=payload.language,
        credits=payload.credits,
    )
