"""
Engine Data Model

Immutable records exchanged between the adaptive practice engine and its
collaborators: the ordered difficulty scale, exercises, attempt history
entries, scorer weights and the adjustment decisions surfaced to callers.
"""

import enum
import datetime
from dataclasses import dataclass, replace
from typing import Dict, Any, Optional


class DifficultyLevel(enum.Enum):
    """Ordered difficulty scale for practice exercises."""
    FOUNDATION = "foundation"
    STANDARD = "standard"
    CHALLENGE = "challenge"

    @classmethod
    def from_numeric(cls, value: int) -> 'DifficultyLevel':
        """Convert an ordinal (0-2) to a difficulty level, clamping out-of-range values."""
        ordered = list(cls)
        return ordered[max(0, min(value, len(ordered) - 1))]

    def to_numeric(self) -> int:
        """Convert difficulty level to its ordinal (0-2)."""
        return list(DifficultyLevel).index(self)

    def distance(self, other: 'DifficultyLevel') -> int:
        """Number of ordinal steps between two levels."""
        return abs(self.to_numeric() - other.to_numeric())

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.capitalize()

    @property
    def is_floor(self) -> bool:
        return self is DifficultyLevel.FOUNDATION

    @property
    def is_ceiling(self) -> bool:
        return self is DifficultyLevel.CHALLENGE


@dataclass(frozen=True)
class Exercise:
    """A practice exercise as returned by the question repository."""

    id: str
    difficulty: DifficultyLevel
    topic_id: str
    subtopic_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "difficulty": self.difficulty.value,
            "topic_id": self.topic_id,
            "subtopic_name": self.subtopic_name
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Exercise':
        """Create from dictionary."""
        return cls(
            id=data["id"],
            difficulty=DifficultyLevel(data["difficulty"]),
            topic_id=data["topic_id"],
            subtopic_name=data.get("subtopic_name")
        )


@dataclass(frozen=True)
class AttemptRecord:
    """One answered exercise in a learner's history."""

    learner_id: str
    exercise_id: str
    topic_id: str
    correct: bool
    occurred_at: datetime.datetime
    difficulty_at_attempt: DifficultyLevel
    subtopic_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "learner_id": self.learner_id,
            "exercise_id": self.exercise_id,
            "topic_id": self.topic_id,
            "subtopic_name": self.subtopic_name,
            "correct": self.correct,
            "occurred_at": self.occurred_at.isoformat(),
            "difficulty_at_attempt": self.difficulty_at_attempt.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttemptRecord':
        """Create from dictionary."""
        return cls(
            learner_id=data["learner_id"],
            exercise_id=data["exercise_id"],
            topic_id=data["topic_id"],
            subtopic_name=data.get("subtopic_name"),
            correct=bool(data["correct"]),
            occurred_at=datetime.datetime.fromisoformat(data["occurred_at"]),
            difficulty_at_attempt=DifficultyLevel(data["difficulty_at_attempt"])
        )


@dataclass(frozen=True)
class SelectionWeights:
    """
    Weights of the four selection criteria.

    The weights are meant to sum to 1.0 so that every score stays in [0, 1],
    but the scorer uses whatever it is given; validation happens when weights
    are loaded from configuration (see ``SelectionSettings``).
    """

    difficulty_match: float = 0.40
    topic_coverage: float = 0.25
    recency_avoidance: float = 0.20
    weak_area_focus: float = 0.15

    @property
    def total(self) -> float:
        return (
            self.difficulty_match + self.topic_coverage +
            self.recency_avoidance + self.weak_area_focus
        )

    def merged(self, **overrides: float) -> 'SelectionWeights':
        """Return a copy with some weights replaced; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for serialization."""
        return {
            "difficulty_match": self.difficulty_match,
            "topic_coverage": self.topic_coverage,
            "recency_avoidance": self.recency_avoidance,
            "weak_area_focus": self.weak_area_focus
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SelectionWeights':
        """Create from dictionary, falling back to defaults for missing keys."""
        return cls().merged(**{k: data.get(k) for k in cls().to_dict()})


DEFAULT_WEIGHTS = SelectionWeights()


@dataclass(frozen=True)
class PerformanceWindow:
    """Correct/incorrect counts over a span of recent outcomes."""

    correct: int
    incorrect: int

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "correct": self.correct,
            "incorrect": self.incorrect,
            "total": self.total,
            "accuracy": self.accuracy
        }


@dataclass(frozen=True)
class AdjustmentDecision:
    """
    Outcome of evaluating a tracker after an answer.

    ``reason`` is a human-readable explanation suitable for showing to the
    learner; ``confidence`` is in [0, 1].
    """

    current_level: DifficultyLevel
    recommended_level: DifficultyLevel
    should_adjust: bool
    reason: str
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "current_level": self.current_level.value,
            "recommended_level": self.recommended_level.value,
            "should_adjust": self.should_adjust,
            "reason": self.reason,
            "confidence": self.confidence
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AdjustmentDecision':
        """Create from dictionary."""
        return cls(
            current_level=DifficultyLevel(data["current_level"]),
            recommended_level=DifficultyLevel(data["recommended_level"]),
            should_adjust=data["should_adjust"],
            reason=data["reason"],
            confidence=data.get("confidence", 0.0)
        )
