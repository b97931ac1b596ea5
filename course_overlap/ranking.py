from __future__ import annotations

"""
Thresholding and ordering of scored candidates.

:class:`RankingFilter` drops candidates below the minimum overlap score
and sorts the rest by score, highest first.  Ties keep the order in
which the corpus was scanned, so identical inputs always produce
identical output.  There is no size cap: pagination belongs to the
presentation layer.

:class:`ResultFilters` narrows an already ranked list by the fields a
reviewer filters on (code/name search, score window, study level,
language, credits).  It never reorders.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from .config import DEFAULT_THRESHOLD
from .pipeline_types import ScoredCandidate


class RankingFilter:
    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        self.threshold = threshold

    def passes(self, candidate: ScoredCandidate) -> bool:
        return candidate.score >= self.threshold

    def apply(self, candidates: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
        """Keep candidates with ``score >= threshold``, sorted non-increasing."""
        kept: List[ScoredCandidate] = []
        for c in candidates:
            if self.passes(c):
                kept.append(c)
            else:
                logger.debug("Course {} filtered out with score {}", c.code, c.score)
        # sort by position first so the stable score sort breaks ties by scan order
        kept.sort(key=lambda c: c.position)
        kept.sort(key=lambda c: -c.score)
        logger.info(
            "Ranking kept {} of {} candidates (threshold={})",
            len(kept),
            len(candidates),
            self.threshold,
        )
        return kept


@dataclass
class ResultFilters:
    search_term: Optional[str] = None
    score_range: Optional[Tuple[Optional[float], Optional[float]]] = None
    study_level: Optional[str] = None
    language: Optional[str] = None
    credits: Optional[str] = None

    def _matches(self, c: ScoredCandidate) -> bool:
        meta = c.record.metadata
        if self.search_term:
            term = self.search_term.strip().lower()
            if term not in c.record.code.lower() and term not in (c.record.name or "").lower():
                return False
        if self.score_range is not None:
            lo, hi = self.score_range
            if lo is not None and c.score < lo:
                return False
            if hi is not None and c.score > hi:
                return False
        if self.study_level and str(meta.get("level_of_study", "")) != self.study_level:
            return False
        if self.language and (c.record.language or "") != self.language:
            return False
        if self.credits and str(meta.get("credits", "")) != str(self.credits):
            return False
        return True

    def apply(self, candidates: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
        return [c for c in candidates if self._matches(c)]
