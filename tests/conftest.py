"""Shared fixtures for the test-suite."""

from __future__ import annotations

from typing import List

import numpy as np
import pytest

from course_overlap.pipeline_types import CourseRecord, QueryCourse
from helpers import axis_vector, make_record, vector_with_cosine


@pytest.fixture
def query() -> QueryCourse:
    return QueryCourse(embedding=axis_vector(), language="nb")


@pytest.fixture
def scenario_corpus() -> List[CourseRecord]:
    """0.70 cross-language, 0.87 and 0.99 same-language, in that corpus order."""
    return [
        make_record("EXC1001", vector_with_cosine(0.70), language="en"),
        make_record("MAN2001", vector_with_cosine(0.87)),
        make_record("LED3001", vector_with_cosine(0.99)),
    ]


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
