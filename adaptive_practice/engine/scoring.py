"""
Selection Criteria

The four independent sub-scores used to rank candidate exercises, and the
per-learner history index they are computed from. Every sub-score lies in
[0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Final, Iterable, Mapping, Optional

from adaptive_practice.engine.models import AttemptRecord, DifficultyLevel

# Difficulty match by ordinal distance from the target level
DIFFICULTY_MATCH_SCORES: Final[Dict[int, float]] = {0: 1.0, 1: 0.5, 2: 0.1}

# Recency buckets: (upper bound on elapsed time, score)
RECENCY_BUCKETS: Final = (
    (timedelta(days=1), 0.0),
    (timedelta(days=2), 0.3),
    (timedelta(days=7), 0.7),
)
RECENCY_NEVER_ATTEMPTED: Final[float] = 1.0
RECENCY_STALE: Final[float] = 1.0

NEUTRAL_SCORE: Final[float] = 0.5
UNEXPLORED_WEAK_AREA_SCORE: Final[float] = 0.7


@dataclass
class SubtopicStats:
    """Attempt counts for one subtopic."""

    attempts: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempts if self.attempts else 0.0


@dataclass
class HistoryIndex:
    """
    Lookups over a learner's attempt history, built once per selection call.

    Attributes:
        last_attempted: Most recent attempt time per exercise id
        subtopics: Attempt/correct counts per subtopic name
    """

    last_attempted: Dict[str, datetime] = field(default_factory=dict)
    subtopics: Dict[str, SubtopicStats] = field(default_factory=dict)

    @classmethod
    def from_attempts(
        cls,
        attempts: Iterable[AttemptRecord],
        learner_id: Optional[str] = None
    ) -> HistoryIndex:
        """
        Index attempt records.

        Args:
            attempts: Attempt records, in any order
            learner_id: If given, records of other learners are ignored

        Returns:
            History index
        """
        index = cls()
        for attempt in attempts:
            if learner_id is not None and attempt.learner_id != learner_id:
                continue

            previous = index.last_attempted.get(attempt.exercise_id)
            if previous is None or attempt.occurred_at > previous:
                index.last_attempted[attempt.exercise_id] = attempt.occurred_at

            if attempt.subtopic_name:
                stats = index.subtopics.setdefault(attempt.subtopic_name, SubtopicStats())
                stats.attempts += 1
                if attempt.correct:
                    stats.correct += 1
        return index

    @property
    def subtopic_attempts(self) -> Dict[str, int]:
        return {name: stats.attempts for name, stats in self.subtopics.items()}

    @property
    def subtopic_accuracy(self) -> Dict[str, float]:
        return {name: stats.accuracy for name, stats in self.subtopics.items()}


def difficulty_match_score(
    candidate_level: DifficultyLevel,
    target_level: DifficultyLevel
) -> float:
    """1.0 on the target level, 0.5 one step away, 0.1 two steps away."""
    return DIFFICULTY_MATCH_SCORES[candidate_level.distance(target_level)]


def coverage_score(
    subtopic_name: Optional[str],
    subtopic_attempts: Mapping[str, int]
) -> float:
    """
    Favour subtopics the learner has practised little.

    Unattempted subtopics score 1.0; after ``n`` attempts the score is
    ``1 / (1 + log10(n + 1))``, which keeps shrinking but never reaches 0.
    Exercises without a subtopic get the neutral 0.5.
    """
    if not subtopic_name:
        return NEUTRAL_SCORE

    attempts = subtopic_attempts.get(subtopic_name, 0)
    if attempts == 0:
        return 1.0
    return 1.0 / (1.0 + math.log10(attempts + 1))


def recency_score(last_attempted_at: Optional[datetime], now: datetime) -> float:
    """
    Penalise exercises the learner has seen recently.

    Never attempted: 1.0; under a day ago: 0.0; under two days: 0.3;
    under a week: 0.7; a week or more: 1.0.
    """
    if last_attempted_at is None:
        return RECENCY_NEVER_ATTEMPTED

    elapsed = now - last_attempted_at
    for upper_bound, score in RECENCY_BUCKETS:
        if elapsed < upper_bound:
            return score
    return RECENCY_STALE


def weak_area_score(
    subtopic_name: Optional[str],
    subtopic_accuracy: Mapping[str, float]
) -> float:
    """
    Favour subtopics where the learner struggles.

    No subtopic: 0.5; subtopic never attempted: 0.7; otherwise
    ``1 - accuracy``.
    """
    if not subtopic_name:
        return NEUTRAL_SCORE

    accuracy = subtopic_accuracy.get(subtopic_name)
    if accuracy is None:
        return UNEXPLORED_WEAK_AREA_SCORE
    return 1.0 - accuracy
