from __future__ import annotations

"""
Conversion of stored course tables into in-memory corpus snapshots.

The data store exports course rows with varying column names (the
original Norwegian catalog uses ``kurskode``/``kursnavn``/``undv_språk``)
and embeddings either as native arrays (Parquet list columns) or as
string-encoded vectors (CSV/JSON exports).  This module maps those rows
onto :class:`~course_overlap.pipeline_types.CourseRecord` objects.  It
does not decode embeddings; that happens once, inside
:class:`~course_overlap.embeddings.EmbeddingValidator`, during scoring.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from .config import CORPUS_SNAPSHOT_PATH, DEFAULT_COURSE_LANGUAGE
from .pipeline_types import CourseRecord


# ---------------------------
# Column detection / standardisation
# ---------------------------

COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "code": [
        "code",
        "kurskode",
        "course_code",
        "Course Code",
        "Kurskode",
        "emnekode",
    ],
    "name": [
        "name",
        "kursnavn",
        "course_name",
        "Course Name",
        "Kursnavn",
        "title",
    ],
    "language": [
        "language",
        "undv_språk",
        "undv_sprak",
        "teaching_language",
        "lang",
    ],
}


def _is_embedding_column(col: str) -> bool:
    c = str(col).strip().lower()
    return c == "embedding" or c.startswith("embedding_") or c.endswith("_embedding")


def _standardise_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename the first matching candidate column to each canonical name."""
    rename: Dict[str, str] = {}
    for canonical, candidates in COLUMN_CANDIDATES.items():
        if canonical in df.columns:
            continue
        for cand in candidates:
            if cand in df.columns and cand not in rename:
                rename[cand] = canonical
                break
    if rename:
        logger.info("Standardising corpus columns: {}", rename)
    return df.rename(columns=rename)


def _clean_value(value: Any) -> Any:
    """Turn pandas/numpy scalars into plain Python values; NaN becomes None."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (list, tuple, dict)):
        return value
    if isinstance(value, np.generic):
        value = value.item()
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _clean_language(value: Any, default: Optional[str]) -> Optional[str]:
    value = _clean_value(value)
    if value is None or not str(value).strip():
        return default or None
    return str(value).strip()


# ---------------------------
# Corpus normalisation
# ---------------------------

def normalise_corpus_df(
    df_raw: pd.DataFrame,
    default_language: Optional[str] = DEFAULT_COURSE_LANGUAGE,
) -> pd.DataFrame:
    """
    Map a raw course table onto the canonical corpus schema.

    Output columns: ``code``, ``name``, ``language``, every embedding
    column (``embedding``, ``embedding_*``, ``*_embedding``) and the
    remaining columns untouched as pass-through metadata.  Rows without a
    code are dropped; duplicate codes keep their first occurrence.
    Missing language tags fall back to ``default_language``.
    """
    logger.info("Normalising corpus dataframe with {} raw rows", len(df_raw))
    df = _standardise_columns(df_raw.copy())

    if "code" not in df.columns:
        logger.error("No course code column found; resulting corpus will be empty.")
        return pd.DataFrame(columns=["code", "name", "language"])

    df["code"] = df["code"].fillna("").astype(str).str.strip()
    df = df[df["code"] != ""]
    before = len(df)
    df = df.drop_duplicates(subset=["code"]).reset_index(drop=True)
    if len(df) < before:
        logger.warning("Dropped {} duplicate course codes", before - len(df))

    if "name" in df.columns:
        df["name"] = df["name"].fillna("").astype(str).str.strip()
    else:
        df["name"] = ""

    if "language" not in df.columns:
        df["language"] = None
    df["language"] = df["language"].map(lambda v: _clean_language(v, default_language))

    if not any(_is_embedding_column(c) for c in df.columns):
        logger.warning("Corpus has no embedding column; every course will be skipped")

    logger.info("Corpus normalisation complete. Final rows: {}", len(df))
    return df


def records_from_df(df: pd.DataFrame) -> List[CourseRecord]:
    """Convert a normalised corpus frame into ``CourseRecord`` objects."""
    embedding_cols = [c for c in df.columns if _is_embedding_column(c)]
    meta_cols = [c for c in df.columns if c not in ("code", "name", "language") and c not in embedding_cols]
    records: List[CourseRecord] = []
    for row in df.to_dict(orient="records"):
        embeddings = {str(c).strip().lower(): _clean_value(row.get(c)) for c in embedding_cols}
        records.append(
            CourseRecord(
                code=str(row["code"]),
                name=str(row.get("name") or ""),
                language=_clean_value(row.get("language")),
                embeddings={k: v for k, v in embeddings.items() if v is not None},
                metadata={str(c): _clean_value(row.get(c)) for c in meta_cols},
            )
        )
    return records


# ---------------------------
# IO helpers
# ---------------------------

def load_corpus_snapshot(path: Path = CORPUS_SNAPSHOT_PATH) -> pd.DataFrame:
    """
    Load a raw corpus export.  ``.csv`` and ``.json``/``.jsonl`` files are
    read directly; anything else is read as Parquet with a CSV fallback
    next to it.
    """
    path = Path(path)
    logger.info("Loading corpus snapshot from {}", path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix in (".json", ".jsonl"):
        df = pd.read_json(path, lines=suffix == ".jsonl")
    else:
        try:
            df = pd.read_parquet(path)
        except Exception as e:
            logger.warning("Failed to load Parquet snapshot ({}). Trying CSV fallback.", e)
            csv_path = path.with_suffix(".csv")
            if not csv_path.exists():
                raise
            df = pd.read_csv(csv_path)
    logger.info("Loaded corpus snapshot with {} rows", len(df))
    return df


def load_corpus_records(
    path: Path = CORPUS_SNAPSHOT_PATH,
    default_language: Optional[str] = DEFAULT_COURSE_LANGUAGE,
) -> List[CourseRecord]:
    df = normalise_corpus_df(load_corpus_snapshot(path), default_language=default_language)
    return records_from_df(df)
