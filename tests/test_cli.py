from __future__ import annotations

import json

import pandas as pd
import pytest

from course_overlap import cli
from helpers import vector_with_cosine


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)


@pytest.fixture
def corpus_path(tmp_path):
    path = tmp_path / "courses.csv"
    pd.DataFrame(
        {
            "kurskode": ["SAME", "CLOSE", "FAR"],
            "kursnavn": ["Same", "Close", "Far"],
            "embedding": [
                json.dumps([1.0, 0.0]),
                json.dumps(vector_with_cosine(0.98, dim=2)),
                json.dumps([0.6, 0.8]),
            ],
        }
    ).to_csv(path, index=False)
    return path


def _write_query(tmp_path, payload):
    path = tmp_path / "query.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _run(capsys, *argv):
    status = cli.main([str(a) for a in argv])
    return status, json.loads(capsys.readouterr().out)


def test_single_query(tmp_path, corpus_path, capsys):
    query = _write_query(tmp_path, {"embedding": [1.0, 0.0], "language": "nb"})
    status, out = _run(capsys, "--query", query, "--corpus", corpus_path)
    assert status == 0
    assert [r["code"] for r in out["results"]] == ["SAME", "CLOSE"]
    assert [r["score"] for r in out["results"]] == [100.0, 95.0]
    assert out["diagnostics"]["scored"] == 3
    assert out["diagnostics"]["matched"] == 2


def test_top_limits_printed_results(tmp_path, corpus_path, capsys):
    query = _write_query(tmp_path, {"embedding": [1.0, 0.0]})
    _, out = _run(capsys, "--query", query, "--corpus", corpus_path, "--top", 1)
    assert [r["code"] for r in out["results"]] == ["SAME"]


def test_threshold_flag(tmp_path, corpus_path, capsys):
    query = _write_query(tmp_path, {"embedding": [1.0, 0.0]})
    _, out = _run(capsys, "--query", query, "--corpus", corpus_path, "--threshold", 0)
    assert [r["code"] for r in out["results"]] == ["SAME", "CLOSE", "FAR"]


def test_multiple_queries_and_failures(tmp_path, corpus_path, capsys):
    query = _write_query(
        tmp_path,
        [{"embedding": [1.0, 0.0]}, {"embedding": [0.0, 0.0]}, {"embedding": [1.0, 0.0]}],
    )
    status, out = _run(capsys, "--query", query, "--corpus", corpus_path)
    assert status == 1
    assert len(out) == 3
    assert out[0] == out[2]
    assert out[1]["kind"] == "invalid_query"


def test_invalid_policy_exits_with_usage_status(tmp_path, corpus_path, capsys):
    query = _write_query(tmp_path, {"embedding": [1.0, 0.0]})
    assert cli.main(["--query", str(query), "--corpus", str(corpus_path), "--policy", "sigmoid"]) == 2


def test_query_without_embedding_is_rejected(tmp_path):
    query = _write_query(tmp_path, {"language": "nb"})
    with pytest.raises(ValueError):
        cli.load_queries(query)


def test_language_flag_overrides_query_tags(tmp_path):
    query = _write_query(tmp_path, [{"embedding": [1.0], "language": "en"}, {"embedding": [2.0]}])
    queries = cli.load_queries(query, language="nb")
    assert [q.language for q in queries] == ["nb", "nb"]


def test_missing_query_file_exits_with_usage_status(tmp_path, corpus_path):
    assert cli.main(["--query", str(tmp_path / "absent.json"), "--corpus", str(corpus_path)]) == 2


def test_malformed_query_file_exits_with_usage_status(tmp_path, corpus_path):
    query = tmp_path / "query.json"
    query.write_text("{not json", encoding="utf-8")
    assert cli.main(["--query", str(query), "--corpus", str(corpus_path)]) == 2


def test_missing_corpus_exits_with_usage_status(tmp_path):
    query = _write_query(tmp_path, {"embedding": [1.0, 0.0]})
    assert cli.main(["--query", str(query), "--corpus", str(tmp_path / "absent.csv")]) == 2
