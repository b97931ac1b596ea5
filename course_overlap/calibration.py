from __future__ import annotations

"""
Calibration of raw cosine similarity onto a 0-100 overlap score.

For the embedding model in use, raw cosine similarity between course
descriptions clusters just below 1.0, which makes the raw number useless
for people reading a ranked list.  The policies here re-expand that
range with fixed piecewise functions.

Two named strategies share one interface so that recalibrating never
touches call sites:

* :class:`BreakpointPolicy` (``"breakpoint"``, alias ``p2``) is the
  reference policy.  It remaps the raw value through fixed breakpoints
  and boosts cross-language pairs, since translated descriptions of the
  same course embed further apart than same-language ones.
* :class:`PowerLawPolicy` (``"power_law"``, alias ``p1``) is the older,
  language-unaware variant kept for comparison.

Both are pure functions of their inputs and configuration.
"""

import math
from typing import List, Optional, Tuple

from .config import (
    BREAKPOINT_FLOOR_SLOPE,
    BREAKPOINT_TIERS,
    POLICY_BREAKPOINT,
    POLICY_POWER_LAW,
    ScoringConfig,
    canonical_policy_name,
)
from .errors import UnknownPolicyError


def round_score(value: float) -> float:
    """Clamp to ``[0, 100]`` and round half-up to one decimal."""
    value = max(0.0, min(100.0, value))
    return math.floor(value * 10 + 0.5) / 10


def is_cross_language(query_language: Optional[str], candidate_language: Optional[str]) -> bool:
    """Both tags must be known and differ; a missing tag never boosts."""
    if not query_language or not candidate_language:
        return False
    return query_language.strip().lower() != candidate_language.strip().lower()


class CalibrationPolicy:
    """Interface for raw-similarity to overlap-score remapping."""

    name = "base"

    def base_score(self, raw: float) -> float:
        raise NotImplementedError

    def calibrate(
        self,
        raw: float,
        query_language: Optional[str] = None,
        candidate_language: Optional[str] = None,
    ) -> float:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class PowerLawPolicy(CalibrationPolicy):
    """Square the [0, 1]-normalised similarity, then stretch it in three tiers."""

    name = POLICY_POWER_LAW

    def base_score(self, raw: float) -> float:
        raw = max(-1.0, min(1.0, raw))
        norm = (raw + 1.0) / 2.0
        scaled = norm ** 2 * 100.0
        if scaled < 40:
            return scaled * 0.5
        if scaled < 70:
            return 20.0 + (scaled - 40.0) * 0.8
        return 44.0 + (scaled - 70.0) * 1.5

    def calibrate(
        self,
        raw: float,
        query_language: Optional[str] = None,
        candidate_language: Optional[str] = None,
    ) -> float:
        return round_score(self.base_score(raw))


class BreakpointPolicy(CalibrationPolicy):
    """Piecewise-linear remap with a cross-language boost.

    Tiers are ``(lower_bound, score_at_bound, slope)`` checked from the
    highest bound down; a raw value exactly on a bound takes that
    (upper) tier.  Below the last bound the score is ``raw * floor_slope``.
    """

    name = POLICY_BREAKPOINT

    def __init__(
        self,
        cross_language_boost: float = 0.35,
        high_confidence_multiplier: float = 1.2,
        high_confidence_raw: float = 0.8,
        tiers: Optional[List[Tuple[float, float, float]]] = None,
        floor_slope: float = BREAKPOINT_FLOOR_SLOPE,
    ) -> None:
        self.cross_language_boost = cross_language_boost
        self.high_confidence_multiplier = high_confidence_multiplier
        self.high_confidence_raw = high_confidence_raw
        self.tiers = sorted(tiers or BREAKPOINT_TIERS, key=lambda t: -t[0])
        self.floor_slope = floor_slope

    def base_score(self, raw: float) -> float:
        for lower, start, slope in self.tiers:
            if raw >= lower:
                return start + (raw - lower) * slope
        return raw * self.floor_slope

    def calibrate(
        self,
        raw: float,
        query_language: Optional[str] = None,
        candidate_language: Optional[str] = None,
    ) -> float:
        score = self.base_score(raw)
        if is_cross_language(query_language, candidate_language):
            score *= 1.0 + self.cross_language_boost
            if raw > self.high_confidence_raw:
                score *= self.high_confidence_multiplier
        return round_score(score)


def get_policy(name: str, config: Optional[ScoringConfig] = None) -> CalibrationPolicy:
    """Build a calibration policy by name (``breakpoint``/``p2``, ``power_law``/``p1``)."""
    key = canonical_policy_name(name)
    if key == POLICY_POWER_LAW:
        return PowerLawPolicy()
    if key == POLICY_BREAKPOINT:
        cfg = config or ScoringConfig()
        return BreakpointPolicy(
            cross_language_boost=cfg.cross_language_boost,
            high_confidence_multiplier=cfg.high_confidence_multiplier,
            high_confidence_raw=cfg.high_confidence_raw,
        )
    raise UnknownPolicyError(f"Unknown calibration policy {name!r}")
