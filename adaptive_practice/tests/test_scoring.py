from datetime import timedelta

import pytest

from adaptive_practice.engine.models import DifficultyLevel
from adaptive_practice.engine.scoring import (
    HistoryIndex,
    coverage_score,
    difficulty_match_score,
    recency_score,
    weak_area_score,
)

F = DifficultyLevel.FOUNDATION
S = DifficultyLevel.STANDARD
C = DifficultyLevel.CHALLENGE


@pytest.mark.parametrize("candidate, target, expected", [
    (S, S, 1.0),
    (F, S, 0.5),
    (C, S, 0.5),
    (F, C, 0.1),
    (C, F, 0.1),
])
def test_difficulty_match(candidate, target, expected):
    assert difficulty_match_score(candidate, target) == expected


def test_coverage_unattempted_subtopic_scores_full():
    assert coverage_score("fractions", {}) == 1.0
    assert coverage_score("fractions", {"fractions": 0}) == 1.0


def test_coverage_without_subtopic_is_neutral():
    assert coverage_score(None, {"fractions": 4}) == 0.5
    assert coverage_score("", {}) == 0.5


@pytest.mark.parametrize("attempts, expected", [
    (1, 0.768622),
    (9, 0.5),
    (99, 1 / 3),
])
def test_coverage_decays_with_attempts(attempts, expected):
    assert coverage_score("fractions", {"fractions": attempts}) == pytest.approx(expected, abs=1e-6)


def test_coverage_stays_positive():
    assert 0.0 < coverage_score("fractions", {"fractions": 10 ** 6}) < 0.2


@pytest.mark.parametrize("ago, expected", [
    (timedelta(hours=12), 0.0),
    (timedelta(hours=23, minutes=59), 0.0),
    (timedelta(days=1), 0.3),
    (timedelta(hours=36), 0.3),
    (timedelta(days=2), 0.7),
    (timedelta(days=6, hours=23), 0.7),
    (timedelta(days=7), 1.0),
    (timedelta(days=90), 1.0),
])
def test_recency_buckets(ago, expected, now):
    assert recency_score(now - ago, now) == expected


def test_recency_never_attempted(now):
    assert recency_score(None, now) == 1.0


def test_weak_area():
    assert weak_area_score(None, {"fractions": 0.2}) == 0.5
    assert weak_area_score("fractions", {}) == 0.7
    assert weak_area_score("fractions", {"fractions": 0.9}) == pytest.approx(0.1)
    assert weak_area_score("fractions", {"fractions": 0.0}) == 1.0


def test_history_index(make_attempt, now):
    attempts = [
        make_attempt("ex-1", correct=True, subtopic="fractions", ago=timedelta(days=5)),
        make_attempt("ex-1", correct=False, subtopic="fractions", ago=timedelta(days=1)),
        make_attempt("ex-2", correct=True, subtopic="decimals", ago=timedelta(days=3)),
        make_attempt("ex-3", correct=False, subtopic=None, ago=timedelta(days=2)),
        make_attempt("ex-2", correct=False, subtopic="decimals", learner_id="someone-else"),
    ]

    index = HistoryIndex.from_attempts(attempts, learner_id="learner-1")

    assert index.last_attempted == {
        "ex-1": now - timedelta(days=1),
        "ex-2": now - timedelta(days=3),
        "ex-3": now - timedelta(days=2),
    }
    assert index.subtopic_attempts == {"fractions": 2, "decimals": 1}
    assert index.subtopic_accuracy == {"fractions": 0.5, "decimals": 1.0}


def test_history_index_without_learner_filter(make_attempt):
    attempts = [
        make_attempt("ex-2", subtopic="decimals"),
        make_attempt("ex-2", correct=False, subtopic="decimals", learner_id="someone-else"),
    ]
    index = HistoryIndex.from_attempts(attempts)
    assert index.subtopic_attempts == {"decimals": 2}
