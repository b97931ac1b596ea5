from __future__ import annotations

import pytest

from course_overlap.api import rank_courses, run_full_pipeline
from course_overlap.cache import LRUCache
from course_overlap.config import ScoringConfig
from course_overlap.corpus import CancellationToken
from course_overlap.errors import EmptyCorpusError, ScanCancelledError
from course_overlap.pipeline_types import QueryCourse
from course_overlap.ranking import ResultFilters
from helpers import make_record, vector_with_cosine


def test_reference_scenario(query, scenario_corpus):
    ranked, diag = run_full_pipeline(query, scenario_corpus)
    assert [c.code for c in ranked] == ["LED3001", "MAN2001", "EXC1001"]
    assert [c.score for c in ranked] == [97.5, 48.6, 44.5]
    assert diag.matched == 3


def test_mismatched_record_excluded_and_counted(query, scenario_corpus):
    records = scenario_corpus + [make_record("BAD", [0.5, 0.5])]
    ranked, diag = run_full_pipeline(query, records)
    assert "BAD" not in [c.code for c in ranked]
    assert len(ranked) == 3
    assert diag.skipped_by_reason == {"dimension_mismatch": 1}


def test_threshold_drops_low_scores(query, scenario_corpus):
    ranked, diag = run_full_pipeline(query, scenario_corpus, ScoringConfig(threshold=45.0))
    assert [c.code for c in ranked] == ["LED3001", "MAN2001"]
    assert diag.scored == 3
    assert diag.matched == 2


def test_no_match_is_empty_not_error(query):
    records = [make_record("FAR", vector_with_cosine(0.1))]
    ranked, diag = run_full_pipeline(query, records)
    assert ranked == []
    assert diag.scored == 1
    assert diag.matched == 0


def test_power_law_policy_from_config(query, scenario_corpus):
    ranked, _ = run_full_pipeline(query, scenario_corpus, ScoringConfig(policy="p1"))
    scores = [c.score for c in ranked]
    assert scores == sorted(scores, reverse=True)
    assert ranked[0].code == "LED3001"


def test_filters_applied_after_ranking(query, scenario_corpus):
    ranked, diag = run_full_pipeline(query, scenario_corpus, filters=ResultFilters(language="nb"))
    assert [c.code for c in ranked] == ["LED3001", "MAN2001"]
    assert diag.matched == 3


def test_empty_corpus(query):
    with pytest.raises(EmptyCorpusError):
        run_full_pipeline(query, [])


def test_cancelled_token_propagates(query, scenario_corpus):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ScanCancelledError):
        run_full_pipeline(query, scenario_corpus, token=token)


def test_shared_cache_across_calls(query):
    cache = LRUCache(maxsize=16)
    records = [make_record("TXT", "[1, 0, 0, 0]")]
    run_full_pipeline(query, records, cache=cache)
    run_full_pipeline(query, records, cache=cache)
    assert cache.hits == 1


def test_rank_courses_response(query, scenario_corpus):
    response = rank_courses(query, scenario_corpus)
    assert [r.code for r in response.results] == ["LED3001", "MAN2001", "EXC1001"]
    assert [r.rank for r in response.results] == [1, 2, 3]
    assert response.diagnostics.processed == 3
    assert response.diagnostics.matched == 3


def test_identical_query_course_ranks_first():
    query_vec = vector_with_cosine(0.4)
    records = [
        make_record("NEAR", vector_with_cosine(0.98)),
        make_record("SELF", list(query_vec)),
    ]
    ranked, _ = run_full_pipeline(QueryCourse(embedding=query_vec, language="nb"), records)
    assert ranked[0].code == "SELF"
    assert ranked[0].score == 100.0
