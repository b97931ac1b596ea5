"""
Embedding decode / validation tests.

Covers every stored representation the data store hands back (native
arrays, JSON text, delimited text) and the failure kinds the corpus
pass relies on to skip bad records.
"""

from __future__ import annotations

import numpy as np
import pytest

from course_overlap.cache import LRUCache
from course_overlap.embeddings import (
    EmbeddingValidator,
    parse_embedding,
    validate_dimension,
    validate_non_degenerate,
)
from course_overlap.errors import (
    DegenerateVectorError,
    DimensionMismatchError,
    InvalidQueryError,
    ParseError,
)


@pytest.mark.parametrize(
    "raw",
    [
        [0.1, 0.2, 0.3],
        (0.1, 0.2, 0.3),
        np.array([0.1, 0.2, 0.3], dtype="float32"),
        "[0.1, 0.2, 0.3]",
        " [0.1,0.2,0.3] ",
        "0.1,0.2,0.3",
        "0.1; 0.2; 0.3",
        "0.1 0.2 0.3",
        "0.1|0.2|0.3",
        "{0.1,0.2,0.3}",
        "[0.1 0.2 0.3]",
        b"[0.1, 0.2, 0.3]",
    ],
)
def test_parse_accepts_native_and_text_forms(raw):
    vec = parse_embedding(raw)
    assert vec.dtype == np.float64
    assert vec.shape == (3,)
    np.testing.assert_allclose(vec, [0.1, 0.2, 0.3], rtol=1e-6)


def test_parse_integer_sequences_become_floats():
    vec = parse_embedding([1, 2, 3])
    assert vec.dtype == np.float64
    assert vec.tolist() == [1.0, 2.0, 3.0]


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "   ",
        "[]",
        [],
        "[[0.1, 0.2], [0.3, 0.4]]",
        [[0.1, 0.2], [0.3, 0.4]],
        np.zeros((2, 2)),
        '["a", 0.2]',
        ["0.1", "0.2"],
        [True, 0.5],
        "abc,def",
        '{"values": [0.1, 0.2]}',
        "[NaN, 0.1]",
        [float("inf"), 0.1],
        {"embedding": [0.1]},
        42,
    ],
)
def test_parse_rejects_malformed_input(raw):
    with pytest.raises(ParseError):
        parse_embedding(raw)


def test_validate_dimension():
    vec = parse_embedding([0.1, 0.2, 0.3])
    assert validate_dimension(vec, 3)
    assert not validate_dimension(vec, 4)


def test_validate_non_degenerate():
    assert validate_non_degenerate(parse_embedding([0.0, 1e-9]))
    assert not validate_non_degenerate(parse_embedding([0.0, 0.0, 0.0]))


def test_check_raises_dimension_mismatch():
    validator = EmbeddingValidator()
    with pytest.raises(DimensionMismatchError) as exc:
        validator.check([0.1, 0.2], expected_dim=3)
    assert exc.value.expected == 3
    assert exc.value.actual == 2


def test_check_raises_degenerate():
    with pytest.raises(DegenerateVectorError):
        EmbeddingValidator().check("[0, 0, 0]", expected_dim=3)


def test_check_returns_vector():
    vec = EmbeddingValidator().check("[0.5, 0.5]", expected_dim=2)
    assert vec.tolist() == [0.5, 0.5]


def test_validator_uses_injected_cache_for_text():
    cache = LRUCache(maxsize=8)
    validator = EmbeddingValidator(cache=cache)
    first = validator.parse("[0.1, 0.2]")
    second = validator.parse("[0.1, 0.2]")
    assert first is second
    assert cache.hits == 1
    assert cache.misses == 1
    assert not second.flags.writeable


def test_validator_does_not_cache_native_arrays():
    cache = LRUCache(maxsize=8)
    validator = EmbeddingValidator(cache=cache)
    validator.parse([0.1, 0.2])
    assert len(cache) == 0


def test_validator_does_not_cache_failures():
    cache = LRUCache(maxsize=8)
    validator = EmbeddingValidator(cache=cache)
    with pytest.raises(ParseError):
        validator.parse("not a vector")
    assert len(cache) == 0


@pytest.mark.parametrize("raw", [None, "garbage", [0.0, 0.0], [[1.0]]])
def test_parse_query_failures_are_fatal(raw):
    with pytest.raises(InvalidQueryError):
        EmbeddingValidator().parse_query(raw)
