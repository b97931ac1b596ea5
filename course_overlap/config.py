"""
Configuration for the course overlap engine.
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field, field_validator

# Paths
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = Path(os.getenv("COURSE_OVERLAP_DATA_DIR", str(PROJECT_ROOT / "data")))
CORPUS_SNAPSHOT_PATH = Path(
    os.getenv("COURSE_OVERLAP_CORPUS_PATH", str(DATA_DIR / "corpus_snapshot.parquet"))
)
LOG_DIR = PROJECT_ROOT / "logs"

# Calibration policy names
POLICY_BREAKPOINT = "breakpoint"
POLICY_POWER_LAW = "power_law"
POLICY_ALIASES: Dict[str, str] = {
    "p1": POLICY_POWER_LAW,
    "p2": POLICY_BREAKPOINT,
    "power-law": POLICY_POWER_LAW,
    "powerlaw": POLICY_POWER_LAW,
}

# Scoring defaults (env-tunable)
DEFAULT_THRESHOLD = float(os.getenv("COURSE_OVERLAP_THRESHOLD", "40"))
DEFAULT_POLICY = os.getenv("COURSE_OVERLAP_POLICY", POLICY_BREAKPOINT)
CROSS_LANGUAGE_BOOST = float(os.getenv("COURSE_OVERLAP_CROSS_LANGUAGE_BOOST", "0.35"))
HIGH_CONFIDENCE_MULTIPLIER = float(os.getenv("COURSE_OVERLAP_HIGH_CONFIDENCE_MULTIPLIER", "1.2"))
HIGH_CONFIDENCE_RAW = float(os.getenv("COURSE_OVERLAP_HIGH_CONFIDENCE_RAW", "0.8"))

# P2 breakpoints: (lower bound of branch, score at lower bound, slope)
# Evaluated top-down; a raw value equal to a bound belongs to that branch.
BREAKPOINT_TIERS: List[Tuple[float, float, float]] = [
    (0.96, 90.0, 250.0),
    (0.92, 70.0, 500.0),
    (0.85, 40.0, 428.57),
]
BREAKPOINT_FLOOR_SLOPE = 47.06

# Vector math
IDENTITY_TOLERANCE = 1e-6

# Corpus pass
DEFAULT_EMBEDDING_FIELD = os.getenv("COURSE_OVERLAP_EMBEDDING_FIELD", "embedding")
DEFAULT_WORKERS = int(os.getenv("COURSE_OVERLAP_WORKERS", "1"))
_timeout_env = os.getenv("COURSE_OVERLAP_SCAN_TIMEOUT", "")
DEFAULT_SCAN_TIMEOUT: Optional[float] = float(_timeout_env) if _timeout_env else None
USE_QUERY_TRANSLATIONS = os.getenv("COURSE_OVERLAP_USE_TRANSLATIONS", "0").lower() in ("1", "true", "yes")

# Courses stored without a language tag are Norwegian in the source catalog
DEFAULT_COURSE_LANGUAGE = os.getenv("COURSE_OVERLAP_DEFAULT_LANGUAGE", "nb")

# Parsed-embedding cache
EMBEDDING_CACHE_SIZE = int(os.getenv("COURSE_OVERLAP_CACHE_SIZE", "4096"))
_ttl_env = os.getenv("COURSE_OVERLAP_CACHE_TTL", "")
EMBEDDING_CACHE_TTL: Optional[float] = float(_ttl_env) if _ttl_env else None

# Logging
LOG_LEVEL = os.getenv("COURSE_OVERLAP_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("COURSE_OVERLAP_LOG_FILE", "")


def canonical_policy_name(name: str) -> str:
    key = (name or "").strip().lower()
    return POLICY_ALIASES.get(key, key)


def configure_logging(level: str = LOG_LEVEL, log_file: str = LOG_FILE) -> None:
    """Reset loguru sinks for CLI / API processes.

    Always logs to stderr at ``level``.  When ``log_file`` is set a
    rotating file sink is added; relative names land under ``LOG_DIR``.
    """
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        path = Path(log_file)
        if not path.is_absolute():
            path = LOG_DIR / path
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(path), level=level, rotation="5 MB", retention=5, encoding="utf-8")


# Scoring configuration
class ScoringConfig(BaseModel):
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0, le=100)
    policy: str = DEFAULT_POLICY
    cross_language_boost: float = Field(default=CROSS_LANGUAGE_BOOST, ge=0)
    high_confidence_multiplier: float = Field(default=HIGH_CONFIDENCE_MULTIPLIER, ge=0)
    high_confidence_raw: float = Field(default=HIGH_CONFIDENCE_RAW, ge=-1, le=1)
    embedding_field: str = DEFAULT_EMBEDDING_FIELD
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    scan_timeout: Optional[float] = Field(default=DEFAULT_SCAN_TIMEOUT, gt=0)
    use_translations: bool = USE_QUERY_TRANSLATIONS

    @field_validator("policy")
    @classmethod
    def _canonical_policy(cls, v: str) -> str:
        name = canonical_policy_name(v)
        if name not in (POLICY_BREAKPOINT, POLICY_POWER_LAW):
            raise ValueError(f"Unknown calibration policy {v!r}")
        return name


# Pydantic schemas
class QueryIn(BaseModel):
    embedding: List[float] = Field(..., min_length=1)
    language: Optional[str] = None
    translations: Dict[str, List[float]] = Field(default_factory=dict)


class CourseIn(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = ""
    language: Optional[str] = None
    # native arrays or string-encoded vectors, keyed by embedding field
    embeddings: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FilterIn(BaseModel):
    search_term: Optional[str] = None
    score_min: Optional[float] = Field(default=None, ge=0, le=100)
    score_max: Optional[float] = Field(default=None, ge=0, le=100)
    study_level: Optional[str] = None
    language: Optional[str] = None
    credits: Optional[str] = None


class RankRequest(BaseModel):
    query: QueryIn
    courses: Optional[List[CourseIn]] = None
    threshold: Optional[float] = Field(default=None, ge=0, le=100)
    policy: Optional[str] = None
    filters: Optional[FilterIn] = None


class CourseResult(BaseModel):
    code: str
    name: str
    language: Optional[str] = None
    score: float = Field(ge=0, le=100)
    rank: int = Field(ge=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DiagnosticsOut(BaseModel):
    processed: int
    scored: int
    skipped: int
    matched: int
    skipped_by_reason: Dict[str, int] = Field(default_factory=dict)
    score_min: Optional[float] = None
    score_max: Optional[float] = None
    score_mean: Optional[float] = None


class RankResponse(BaseModel):
    results: List[CourseResult]
    diagnostics: Optional[DiagnosticsOut] = None


class HealthResponse(BaseModel):
    status: str
    corpus_size: int = 0
