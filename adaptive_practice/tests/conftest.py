import os
from datetime import datetime, timedelta

import pytest

from adaptive_practice.config import EngineSettings
from adaptive_practice.engine.models import AttemptRecord, DifficultyLevel, Exercise
from adaptive_practice.engine.repository import InMemoryAttemptHistory, InMemoryQuestionRepository
from adaptive_practice.engine.store import InMemoryTrackerStore

NOW = datetime(2024, 3, 15, 12, 0, 0)

F = DifficultyLevel.FOUNDATION
S = DifficultyLevel.STANDARD
C = DifficultyLevel.CHALLENGE


@pytest.fixture(autouse=True)
def clean_practice_env(monkeypatch):
    """Keep PRACTICE_* variables from the host environment out of the tests."""
    for name in list(os.environ):
        if name.startswith("PRACTICE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_attempt():
    """Factory for attempt records relative to NOW."""
    def _make(
        exercise_id,
        correct=True,
        subtopic=None,
        ago=timedelta(days=30),
        learner_id="learner-1",
        topic_id="algebra",
        difficulty=S
    ):
        return AttemptRecord(
            learner_id=learner_id,
            exercise_id=exercise_id,
            topic_id=topic_id,
            subtopic_name=subtopic,
            correct=correct,
            occurred_at=NOW - ago,
            difficulty_at_attempt=difficulty
        )
    return _make


@pytest.fixture
def algebra_exercises():
    return [
        Exercise("alg-f1", F, "algebra", "linear equations"),
        Exercise("alg-f2", F, "algebra", "factorising"),
        Exercise("alg-s1", S, "algebra", "linear equations"),
        Exercise("alg-s2", S, "algebra", "factorising"),
        Exercise("alg-s3", S, "algebra", "inequalities"),
        Exercise("alg-c1", C, "algebra", "quadratics"),
        Exercise("alg-c2", C, "algebra", None),
    ]


@pytest.fixture
def question_repo(algebra_exercises):
    return InMemoryQuestionRepository(algebra_exercises + [
        Exercise("geo-f1", F, "geometry", "angles"),
        Exercise("geo-s1", S, "geometry", "area"),
    ])


@pytest.fixture
def history():
    return InMemoryAttemptHistory()


@pytest.fixture
def tracker_store():
    return InMemoryTrackerStore()


@pytest.fixture
def settings():
    return EngineSettings()
