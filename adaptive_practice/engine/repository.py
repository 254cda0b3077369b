"""
Collaborator Interfaces

The engine reads exercises from a question repository and past answers from
an attempt history store. Both are owned by the surrounding application;
this module defines their interfaces and ships in-memory implementations for
tests and embedding.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from adaptive_practice.common.exceptions import NotFoundError
from adaptive_practice.common.logger import app_logger
from adaptive_practice.engine.models import AttemptRecord, Exercise

# Module logger
logger = app_logger.getChild("engine.repository")

# Topic filter that selects every topic
ALL_TOPICS = "general"


def matches_topic(topic_id: str, topic_filter: Optional[str]) -> bool:
    """
    Check a topic id against a filter.

    ``None`` and ``"general"`` match everything; any other filter matches
    topic ids containing it, ignoring case.
    """
    if topic_filter is None or topic_filter == ALL_TOPICS:
        return True
    return topic_filter.lower() in topic_id.lower()


class QuestionRepository(ABC):
    """Source of candidate exercises."""

    @abstractmethod
    def query(self, topic_filter: Optional[str], exclude_ids: Iterable[str] = ()) -> List[Exercise]:
        """
        Return exercises for a topic.

        Args:
            topic_filter: Topic filter (see ``matches_topic``)
            exclude_ids: Exercise ids to leave out

        Returns:
            Matching exercises
        """
        pass

    @abstractmethod
    def get(self, exercise_id: str) -> Exercise:
        """
        Fetch one exercise.

        Raises:
            NotFoundError: If the exercise does not exist
        """
        pass


class AttemptHistoryStore(ABC):
    """Append-only store of answered exercises."""

    @abstractmethod
    def attempts_for(self, learner_id: str, topic_filter: Optional[str] = None) -> List[AttemptRecord]:
        """
        Return a learner's attempts, oldest first.

        Args:
            learner_id: Learner identifier
            topic_filter: Optional topic filter (see ``matches_topic``)

        Returns:
            Attempt records
        """
        pass

    @abstractmethod
    def append(self, record: AttemptRecord) -> None:
        """Add one attempt to the history."""
        pass


class InMemoryQuestionRepository(QuestionRepository):
    """Question repository backed by a dict, preserving insertion order."""

    def __init__(self, exercises: Iterable[Exercise] = ()):
        self._exercises: Dict[str, Exercise] = {}
        for exercise in exercises:
            self.add(exercise)

    def add(self, exercise: Exercise) -> None:
        self._exercises[exercise.id] = exercise

    def query(self, topic_filter: Optional[str], exclude_ids: Iterable[str] = ()) -> List[Exercise]:
        excluded = set(exclude_ids)
        return [
            exercise for exercise in self._exercises.values()
            if exercise.id not in excluded and matches_topic(exercise.topic_id, topic_filter)
        ]

    def get(self, exercise_id: str) -> Exercise:
        try:
            return self._exercises[exercise_id]
        except KeyError:
            raise NotFoundError("Exercise", exercise_id) from None

    def __len__(self) -> int:
        return len(self._exercises)


class InMemoryAttemptHistory(AttemptHistoryStore):
    """Attempt history kept in a list; safe to append from several threads."""

    def __init__(self, records: Iterable[AttemptRecord] = ()):
        self._lock = threading.Lock()
        self._records: List[AttemptRecord] = list(records)

    def attempts_for(self, learner_id: str, topic_filter: Optional[str] = None) -> List[AttemptRecord]:
        with self._lock:
            records = list(self._records)
        return sorted(
            (r for r in records
             if r.learner_id == learner_id and matches_topic(r.topic_id, topic_filter)),
            key=lambda r: r.occurred_at
        )

    def append(self, record: AttemptRecord) -> None:
        with self._lock:
            self._records.append(record)
        logger.debug(
            f"Recorded attempt on {record.exercise_id} by learner {record.learner_id} "
            f"({'correct' if record.correct else 'incorrect'})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
