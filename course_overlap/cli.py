# course_overlap/cli.py
"""
Batch runner for the course overlap engine.
Ranks one or more query embeddings against a corpus snapshot without
starting FastAPI and prints the ranked responses as JSON on stdout.

- Loads the corpus snapshot once and shares a parsed-embedding cache
  across all queries of the run
- De-duplicates identical queries (runs once, fans out)
- Progress and diagnostics go to the log (stderr), results to stdout
"""

from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from course_overlap.api import build_embedding_cache, rank_courses
from course_overlap.cache import content_hash
from course_overlap.catalog import load_corpus_records
from course_overlap.config import (
    CORPUS_SNAPSHOT_PATH,
    DEFAULT_COURSE_LANGUAGE,
    RankResponse,
    ScoringConfig,
    configure_logging,
)
from course_overlap.errors import CourseOverlapError
from course_overlap.pipeline_types import QueryCourse


def load_queries(path: Path, language: Optional[str] = None) -> List[QueryCourse]:
    """Read a JSON object (one query) or a JSON array of objects.

    Each object needs an ``embedding`` (array or encoded text) and may
    carry ``language`` and ``translations``.  ``language`` overrides the
    tag of every query.
    """
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    items = raw if isinstance(raw, list) else [raw]
    queries: List[QueryCourse] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or "embedding" not in item:
            raise ValueError(f"Query #{i} in {path} has no 'embedding' field")
        queries.append(
            QueryCourse(
                embedding=item["embedding"],
                language=language or item.get("language"),
                translations=item.get("translations") or {},
            )
        )
    return queries


def _query_key(q: QueryCourse) -> str:
    return content_hash(
        json.dumps([q.embedding, q.language, q.translations], sort_keys=True, default=str)
    )


def _dump(response: RankResponse, top: Optional[int]) -> dict:
    out = response.model_dump()
    if top is not None:
        out["results"] = out["results"][:top]
    return out


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="course-overlap")
    ap.add_argument("--query", required=True, type=str, help="JSON file with one query or a list of queries")
    ap.add_argument("--corpus", type=str, default=str(CORPUS_SNAPSHOT_PATH), help="corpus snapshot (parquet/csv/json)")
    ap.add_argument("--language", type=str, default=None, help="language tag of the query text")
    ap.add_argument("--default-language", type=str, default=DEFAULT_COURSE_LANGUAGE, help="tag for untagged courses")
    ap.add_argument("--policy", type=str, default=None, help="calibration policy: p2/breakpoint or p1/power_law")
    ap.add_argument("--threshold", type=float, default=None, help="minimum overlap score (inclusive)")
    ap.add_argument("--field", type=str, default=None, help="embedding field to compare")
    ap.add_argument("--workers", type=int, default=None, help="scoring threads")
    ap.add_argument("--timeout", type=float, default=None, help="abort a scan after this many seconds")
    ap.add_argument("--top", type=int, default=None, help="only print the first N results")
    args = ap.parse_args(argv)

    configure_logging()

    overrides = {
        "policy": args.policy,
        "threshold": args.threshold,
        "embedding_field": args.field,
        "workers": args.workers,
        "scan_timeout": args.timeout,
    }
    try:
        config = ScoringConfig(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        logger.error("Invalid configuration: {}", e)
        return 2

    try:
        queries = load_queries(Path(args.query), language=args.language)
        logger.info("Loaded {} queries from {}", len(queries), args.query)
        records = load_corpus_records(Path(args.corpus), default_language=args.default_language or None)
    except (OSError, ValueError) as e:
        logger.error("Could not load inputs: {}", e)
        return 2
    cache = build_embedding_cache()

    # De-duplicate identical queries to avoid re-scanning the corpus
    unique: Dict[str, RankResponse] = {}
    outputs: List[dict] = []
    status = 0
    for i, q in enumerate(queries, 1):
        key = _query_key(q)
        if key not in unique:
            try:
                unique[key] = rank_courses(q, records, config, cache=cache)
            except CourseOverlapError as e:
                logger.error("Query {}/{} failed: {}", i, len(queries), e)
                outputs.append({"error": str(e), "kind": e.kind})
                status = 1
                continue
        outputs.append(_dump(unique[key], args.top))
        logger.info("Processed {}/{} queries", i, len(queries))

    payload = outputs[0] if len(outputs) == 1 else outputs
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return status


if __name__ == "__main__":
    sys.exit(main())
