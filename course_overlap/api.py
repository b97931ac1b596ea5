from __future__ import annotations

"""
Ranking pipeline and FastAPI application for the course overlap engine.

- Scores every course in the corpus snapshot against the query embedding
- Calibrates raw cosine similarity with the configured policy (P2 by default)
- Keeps courses at or above the threshold, sorted by score with stable ties
- Optional result filters narrow the ranked list without reordering it
"""

from typing import Any, List, Optional, Sequence, Tuple

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import ValidationError

from .cache import LRUCache, TTLCache
from .catalog import load_corpus_records
from .config import (
    CORPUS_SNAPSHOT_PATH,
    EMBEDDING_CACHE_SIZE,
    EMBEDDING_CACHE_TTL,
    HealthResponse,
    RankRequest,
    RankResponse,
    ScoringConfig,
    configure_logging,
)
from .corpus import CancellationToken, CorpusIterator
from .errors import EmptyCorpusError, InvalidQueryError, ScanCancelledError, UnknownPolicyError
from .mapping import (
    filters_from_payload,
    map_candidates_to_response,
    query_from_payload,
    records_from_payload,
)
from .pipeline_types import CourseRecord, QueryCourse, ScanDiagnostics, ScoredCandidate
from .ranking import RankingFilter, ResultFilters

# =============================================================================
# Pipeline
# =============================================================================


def run_full_pipeline(
    query: QueryCourse,
    records: Sequence[CourseRecord],
    config: Optional[ScoringConfig] = None,
    *,
    cache: Optional[Any] = None,
    token: Optional[CancellationToken] = None,
    filters: Optional[ResultFilters] = None,
) -> Tuple[List[ScoredCandidate], ScanDiagnostics]:
    """Score, threshold and order ``records`` against ``query``.

    An empty result list is a valid outcome.  Empty corpora, unusable
    query embeddings and cancellation raise.
    """
    cfg = config or ScoringConfig()
    if token is None and cfg.scan_timeout:
        token = CancellationToken(timeout=cfg.scan_timeout)

    iterator = CorpusIterator.from_config(cfg, cache=cache)
    candidates, diagnostics = iterator.scan(query, records, token)

    ranked = RankingFilter(cfg.threshold).apply(candidates)
    diagnostics.matched = len(ranked)
    if not ranked:
        logger.info("No courses at or above threshold {}", cfg.threshold)
    else:
        logger.info(
            "Top scores: {}",
            [c.score for c in ranked[:10]],
        )

    if filters is not None:
        ranked = filters.apply(ranked)
        logger.info("Result filters kept {} of {} courses", len(ranked), diagnostics.matched)
    return ranked, diagnostics


def rank_courses(
    query: QueryCourse,
    records: Sequence[CourseRecord],
    config: Optional[ScoringConfig] = None,
    cache: Optional[Any] = None,
) -> RankResponse:
    ranked, diagnostics = run_full_pipeline(query, records, config, cache=cache)
    return map_candidates_to_response(ranked, diagnostics)


def build_embedding_cache() -> Any:
    if EMBEDDING_CACHE_TTL:
        return TTLCache(maxsize=EMBEDDING_CACHE_SIZE, ttl=EMBEDDING_CACHE_TTL)
    return LRUCache(maxsize=EMBEDDING_CACHE_SIZE)


# =============================================================================
# FastAPI app + startup
# =============================================================================

app = FastAPI(title="course-overlap")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_corpus: Optional[List[CourseRecord]] = None
_embedding_cache: Any = None


@app.on_event("startup")
def startup_event() -> None:
    global _corpus, _embedding_cache
    configure_logging()
    logger.info("Starting app warmup...")
    _embedding_cache = build_embedding_cache()
    if CORPUS_SNAPSHOT_PATH.exists():
        try:
            _corpus = load_corpus_records(CORPUS_SNAPSHOT_PATH)
            logger.info("Loaded corpus snapshot with {} courses", len(_corpus))
        except Exception as e:
            _corpus = None
            logger.exception("Failed to load corpus snapshot {}: {}", CORPUS_SNAPSHOT_PATH, e)
    else:
        logger.warning("No corpus snapshot at {}; requests must supply courses inline", CORPUS_SNAPSHOT_PATH)
    logger.info("Warmup complete.")


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy", corpus_size=len(_corpus or []))


def _config_for_request(req: RankRequest) -> ScoringConfig:
    overrides = {}
    if req.threshold is not None:
        overrides["threshold"] = req.threshold
    if req.policy is not None:
        overrides["policy"] = req.policy
    try:
        return ScoringConfig(**overrides)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.post("/rank", response_model=RankResponse)
def rank(req: RankRequest) -> RankResponse:
    if req.courses is not None:
        records = records_from_payload(req.courses)
    elif _corpus is not None:
        records = _corpus
    else:
        raise HTTPException(status_code=503, detail="Corpus snapshot not loaded")

    cfg = _config_for_request(req)
    try:
        ranked, diagnostics = run_full_pipeline(
            query_from_payload(req.query),
            records,
            cfg,
            cache=_embedding_cache,
            filters=filters_from_payload(req.filters),
        )
    except (EmptyCorpusError, InvalidQueryError, UnknownPolicyError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ScanCancelledError as e:
        raise HTTPException(status_code=504, detail=str(e)) from e
    return map_candidates_to_response(ranked, diagnostics)
