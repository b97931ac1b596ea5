from __future__ import annotations

"""
Per-candidate scoring pass over an in-memory corpus snapshot.

Each course record goes through decode/validate → raw cosine →
calibration.  A record whose embedding cannot be used (missing,
malformed, wrong dimension, zero vector) is skipped and counted; one
bad record never aborts the pass.  Only corpus-level problems (no
records at all, an unusable query embedding, cancellation) reach the
caller.

Scoring is read-only with respect to the snapshot, so the pass can fan
out over worker threads.  Each worker scores a contiguous slice into
its own list and counters; the slices are merged in order once every
worker is done, which keeps the output identical to a sequential scan.

Example::

    from course_overlap.corpus import CorpusIterator
    candidates, diagnostics = CorpusIterator().scan(query, records)
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from .calibration import CalibrationPolicy, get_policy, is_cross_language
from .config import DEFAULT_EMBEDDING_FIELD, ScoringConfig
from .embeddings import EmbeddingValidator
from .errors import SKIPPABLE_ERRORS, EmptyCorpusError, ParseError, ScanCancelledError
from .pipeline_types import CourseRecord, QueryCourse, ScanDiagnostics, ScoredCandidate
from .similarity import raw_cosine


class CancellationToken:
    """Cooperative cancellation checked between records.

    Trips when :meth:`cancel` is called or once ``timeout`` seconds have
    elapsed since construction.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self._event.set()
            return True
        return False


@dataclass
class _PreparedQuery:
    vector: np.ndarray
    language: Optional[str]
    translations: Dict[str, np.ndarray]


class CorpusIterator:
    def __init__(
        self,
        validator: Optional[EmbeddingValidator] = None,
        policy: Optional[CalibrationPolicy] = None,
        embedding_field: str = DEFAULT_EMBEDDING_FIELD,
        workers: int = 1,
        use_translations: bool = False,
    ) -> None:
        self.validator = validator or EmbeddingValidator()
        self.policy = policy or get_policy("breakpoint")
        self.embedding_field = embedding_field
        self.workers = max(1, int(workers))
        self.use_translations = use_translations

    @classmethod
    def from_config(cls, config: ScoringConfig, cache: Optional[Any] = None) -> "CorpusIterator":
        return cls(
            validator=EmbeddingValidator(cache=cache),
            policy=get_policy(config.policy, config),
            embedding_field=config.embedding_field,
            workers=config.workers,
            use_translations=config.use_translations,
        )

    # ------------------------------------------------------------------
    # Query preparation
    # ------------------------------------------------------------------

    def _prepare_query(self, query: QueryCourse) -> _PreparedQuery:
        vector = self.validator.parse_query(query.embedding)
        translations: Dict[str, np.ndarray] = {}
        if self.use_translations:
            for lang, raw in (query.translations or {}).items():
                translations[lang.strip().lower()] = self.validator.parse_query(raw)
        return _PreparedQuery(vector=vector, language=query.language, translations=translations)

    # ------------------------------------------------------------------
    # Per-record scoring
    # ------------------------------------------------------------------

    def score_record(self, record: CourseRecord, position: int, query: _PreparedQuery) -> ScoredCandidate:
        """Score one record; raises a skippable error if its embedding is unusable."""
        raw = record.raw_embedding(self.embedding_field)
        if raw is None:
            raise ParseError(f"No '{self.embedding_field}' embedding stored")
        q_vec = query.vector
        q_lang = query.language
        if query.translations and record.language:
            translated = query.translations.get(record.language.strip().lower())
            if translated is not None:
                q_vec, q_lang = translated, record.language
        vec = self.validator.check(raw, len(q_vec))
        sim = raw_cosine(q_vec, vec)
        score = self.policy.calibrate(sim, q_lang, record.language)
        logger.debug("Course {} raw={:.6f} score={}", record.code, sim, score)
        return ScoredCandidate(
            record=record,
            score=score,
            raw_similarity=sim,
            position=position,
            cross_language=is_cross_language(q_lang, record.language),
        )

    def _scan_slice(
        self,
        offset: int,
        records: List[CourseRecord],
        query: _PreparedQuery,
        token: Optional[CancellationToken],
    ) -> Tuple[List[ScoredCandidate], ScanDiagnostics]:
        local: List[ScoredCandidate] = []
        diag = ScanDiagnostics()
        for i, record in enumerate(records):
            if token is not None and token.cancelled:
                raise ScanCancelledError(diag.processed)
            diag.processed += 1
            try:
                cand = self.score_record(record, offset + i, query)
            except SKIPPABLE_ERRORS as e:
                diag.record_skip(e.kind)
                logger.warning("Skipping course {}: {}", getattr(record, "code", "?"), e)
                continue
            diag.scored += 1
            local.append(cand)
        return local, diag

    # ------------------------------------------------------------------
    # Full pass
    # ------------------------------------------------------------------

    def scan(
        self,
        query: QueryCourse,
        records: Iterable[CourseRecord],
        token: Optional[CancellationToken] = None,
    ) -> Tuple[List[ScoredCandidate], ScanDiagnostics]:
        """Score every record in ``records`` against ``query``.

        Returns the candidates in corpus order together with aggregate
        diagnostics.  Raises ``EmptyCorpusError`` for an empty snapshot,
        ``InvalidQueryError`` for an unusable query embedding and
        ``ScanCancelledError`` if ``token`` trips mid-scan.
        """
        snapshot = list(records)
        if not snapshot:
            raise EmptyCorpusError("No courses supplied for comparison")
        prepared = self._prepare_query(query)
        logger.info(
            "Scoring {} courses (dim={}, policy={}, workers={})",
            len(snapshot),
            len(prepared.vector),
            self.policy.name,
            self.workers,
        )

        workers = min(self.workers, len(snapshot))
        if workers == 1:
            parts = [self._scan_slice(0, snapshot, prepared, token)]
        else:
            size = -(-len(snapshot) // workers)
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [
                    pool.submit(self._scan_slice, start, snapshot[start : start + size], prepared, token)
                    for start in range(0, len(snapshot), size)
                ]
                parts = []
                processed = 0
                cancelled: Optional[ScanCancelledError] = None
                for f in futures:
                    try:
                        local, diag = f.result()
                    except ScanCancelledError as e:
                        cancelled = e
                        processed += e.processed
                        continue
                    parts.append((local, diag))
                    processed += diag.processed
            if cancelled is not None:
                # total across slices
                raise ScanCancelledError(processed) from cancelled

        candidates: List[ScoredCandidate] = []
        diagnostics = ScanDiagnostics()
        for local, diag in parts:
            candidates.extend(local)
            diagnostics.merge(diag)

        if candidates:
            scores = np.asarray([c.score for c in candidates], dtype="float64")
            diagnostics.score_min = float(scores.min())
            diagnostics.score_max = float(scores.max())
            diagnostics.score_mean = round(float(scores.mean()), 2)
        logger.info(
            "Scan complete: processed={}, scored={}, skipped={} {}, min={}, max={}, mean={}",
            diagnostics.processed,
            diagnostics.scored,
            diagnostics.skipped,
            diagnostics.skipped_by_reason,
            diagnostics.score_min,
            diagnostics.score_max,
            diagnostics.score_mean,
        )
        return candidates, diagnostics
