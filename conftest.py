"""
Pytest configuration and shared fixtures for DriveTest tests.
"""
import random
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from drivetest.fixtures import FixtureDataSource


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 9, 7, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


def make_question(qid: str, n_answers: int = 3, correct_idx=0, category: str = "general"):
    """Question row with nested answers; correct_idx=None gives a question with no correct answer."""
    return {
        "id": qid,
        "question_text": f"Question {qid}?",
        "image_url": None,
        "category": category,
        "answers": [
            {
                "id": f"{qid}-a{j}",
                "question_id": qid,
                "answer_text": f"Answer {j} of {qid}",
                "is_correct": j == correct_idx,
            }
            for j in range(n_answers)
        ],
    }


@pytest.fixture
def fixture_source():
    return FixtureDataSource()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def small_source():
    """Five-question bank: q0..q4, answer a0 correct everywhere."""
    return FixtureDataSource(questions=[make_question(f"q{i}") for i in range(5)])


@pytest.fixture
def supabase_client():
    """MagicMock standing in for a supabase-py Client; chained builders return the same mock."""
    client = MagicMock(name="supabase")
    query = client.table.return_value
    for method in ("select", "insert", "update", "delete", "eq", "in_", "order", "limit", "range"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[], count=0)
    return client
