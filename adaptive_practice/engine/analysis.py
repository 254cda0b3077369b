"""
Performance summaries built on top of the tracker and attempt history.
"""

import enum
from dataclasses import dataclass
from typing import Dict, Any, Iterable, List, Optional

from adaptive_practice.engine.models import AttemptRecord, DifficultyLevel
from adaptive_practice.engine.scoring import HistoryIndex
from adaptive_practice.engine.tracker import PerformanceTracker

HIGH_PRIORITY_BELOW = 0.5
MEDIUM_PRIORITY_BELOW = 0.7

MASTERED_MIN_QUESTIONS = 20
MASTERED_MIN_ACCURACY = 0.75
ADVANCED_MIN_ACCURACY = 0.70
PROGRESSING_MIN_ACCURACY = 0.65


class MasteryLevel(enum.Enum):
    """Coarse label for how far a learner has come in a topic."""
    BEGINNER = "beginner"
    DEVELOPING = "developing"
    PROGRESSING = "progressing"
    ADVANCED = "advanced"
    MASTERED = "mastered"


@dataclass(frozen=True)
class WeakArea:
    """A subtopic with its accuracy and a review priority."""

    topic_id: str
    subtopic_name: str
    accuracy: float
    attempts_count: int
    priority: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "subtopic_name": self.subtopic_name,
            "accuracy": self.accuracy,
            "attempts_count": self.attempts_count,
            "priority": self.priority
        }


@dataclass(frozen=True)
class AdaptiveInfo:
    """State shown next to a served exercise."""

    current_difficulty: DifficultyLevel
    recent_accuracy: float
    total_attempts: int
    current_streak: int
    overall_accuracy: float = 0.0
    mastery: MasteryLevel = MasteryLevel.BEGINNER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_difficulty": self.current_difficulty.value,
            "recent_accuracy": self.recent_accuracy,
            "total_attempts": self.total_attempts,
            "current_streak": self.current_streak,
            "overall_accuracy": self.overall_accuracy,
            "mastery": self.mastery.value
        }


def priority_for(accuracy: float) -> str:
    if accuracy < HIGH_PRIORITY_BELOW:
        return "high"
    if accuracy < MEDIUM_PRIORITY_BELOW:
        return "medium"
    return "low"


def mastery_level(tracker: PerformanceTracker) -> MasteryLevel:
    """
    Label a tracker by its current level and lifetime accuracy.

    Mastery needs the challenge level, at least 75% overall accuracy and
    at least 20 answers. Below that a learner is advanced at challenge (or
    at standard with 70%), progressing at standard (or at foundation with
    65%) and developing otherwise. A tracker with no answers is a beginner.
    """
    if tracker.total_questions_in_topic == 0:
        return MasteryLevel.BEGINNER

    level = tracker.current_difficulty
    accuracy = tracker.overall_accuracy

    if (level is DifficultyLevel.CHALLENGE
            and accuracy >= MASTERED_MIN_ACCURACY
            and tracker.total_questions_in_topic >= MASTERED_MIN_QUESTIONS):
        return MasteryLevel.MASTERED
    if level is DifficultyLevel.CHALLENGE or (
            level is DifficultyLevel.STANDARD and accuracy >= ADVANCED_MIN_ACCURACY):
        return MasteryLevel.ADVANCED
    if level is DifficultyLevel.STANDARD or (
            level is DifficultyLevel.FOUNDATION and accuracy >= PROGRESSING_MIN_ACCURACY):
        return MasteryLevel.PROGRESSING
    return MasteryLevel.DEVELOPING


def identify_weak_areas(
    history: Iterable[AttemptRecord],
    min_attempts: int = 1,
    topic_id: Optional[str] = None
) -> List[WeakArea]:
    """
    Rank the subtopics in a learner's history from weakest to strongest.

    Args:
        history: The learner's attempts
        min_attempts: Subtopics with fewer attempts are left out
        topic_id: Restrict to one topic

    Returns:
        Weak areas sorted by ascending accuracy, then by descending attempts
    """
    by_topic: Dict[str, List[AttemptRecord]] = {}
    for attempt in history:
        if topic_id is not None and attempt.topic_id != topic_id:
            continue
        by_topic.setdefault(attempt.topic_id, []).append(attempt)

    areas = []
    for topic, attempts in by_topic.items():
        for name, stats in HistoryIndex.from_attempts(attempts).subtopics.items():
            if stats.attempts < min_attempts:
                continue
            areas.append(WeakArea(
                topic_id=topic,
                subtopic_name=name,
                accuracy=stats.accuracy,
                attempts_count=stats.attempts,
                priority=priority_for(stats.accuracy)
            ))

    return sorted(areas, key=lambda area: (area.accuracy, -area.attempts_count))


def summarize_performance(tracker: PerformanceTracker) -> AdaptiveInfo:
    """Snapshot of a tracker for display alongside the next exercise."""
    return AdaptiveInfo(
        current_difficulty=tracker.current_difficulty,
        recent_accuracy=tracker.recent_accuracy,
        total_attempts=tracker.total_questions_in_topic,
        current_streak=tracker.current_streak,
        overall_accuracy=tracker.overall_accuracy,
        mastery=mastery_level(tracker)
    )
