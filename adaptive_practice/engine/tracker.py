"""
Difficulty Tracker

This module keeps the per (learner, topic) performance state and decides,
after every answered exercise, whether the learner's difficulty level in that
topic should move up, move down or hold.

Decisions are taken on a capped rolling window of recent outcomes:
- accuracy above ``increase_threshold``: one level harder
- accuracy below ``decrease_threshold``: one level easier
- otherwise: hold

Two gates keep the level from thrashing on noisy input: no adjustment until
``min_questions_before_adjust`` answers have been seen in the topic, and at
least ``cooldown_questions`` answers between two adjustments. The rolling
window is kept across an adjustment, so the first decisions at a new level
still see some outcomes from the previous one.

All functions here are pure: they return new tracker instances and never
mutate their input. Persisting trackers and serializing concurrent updates
is the job of ``adaptive_practice.engine.store``.
"""

import datetime
from dataclasses import dataclass, field, replace
from typing import Dict, List, Any, Optional, Sequence, Tuple

from adaptive_practice.common.logger import app_logger
from adaptive_practice.config import AdaptiveConfig
from adaptive_practice.engine.models import (
    AdjustmentDecision,
    DifficultyLevel,
    PerformanceWindow,
)

# Module logger
logger = app_logger.getChild("engine.tracker")

DEFAULT_ADAPTIVE_CONFIG = AdaptiveConfig()

UP = "up"
DOWN = "down"


def _isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime.datetime]:
    return datetime.datetime.fromisoformat(value) if value else None


@dataclass
class PerformanceTracker:
    """
    Adaptive state of one learner in one topic.

    Attributes:
        learner_id: Learner identifier
        topic_id: Topic identifier
        current_difficulty: Level served for the next exercise
        rolling_window: Most recent outcomes, oldest first
        questions_since_last_adjustment: Answers since the level last changed
        total_questions_in_topic: All answers ever recorded in the topic
        last_adjustment_at: When the level last changed
        adjustment_count: Number of level changes in the topic
        total_correct: Correct answers ever recorded in the topic
        total_incorrect: Incorrect answers ever recorded in the topic
        current_streak: Consecutive correct answers ending with the latest one
        best_streak: Longest run of correct answers in the topic
        last_attempted_at: When the latest answer was recorded
        version: Incremented by the store on every committed update
    """

    learner_id: str
    topic_id: str
    current_difficulty: DifficultyLevel = DifficultyLevel.FOUNDATION
    rolling_window: List[bool] = field(default_factory=list)
    questions_since_last_adjustment: int = 0
    total_questions_in_topic: int = 0
    last_adjustment_at: Optional[datetime.datetime] = None
    adjustment_count: int = 0
    total_correct: int = 0
    total_incorrect: int = 0
    current_streak: int = 0
    best_streak: int = 0
    last_attempted_at: Optional[datetime.datetime] = None
    version: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        return self.learner_id, self.topic_id

    @property
    def recent_performance(self) -> PerformanceWindow:
        return calculate_rolling_performance(self.rolling_window, len(self.rolling_window))

    @property
    def recent_accuracy(self) -> float:
        return self.recent_performance.accuracy

    @property
    def overall_performance(self) -> PerformanceWindow:
        return calculate_performance(self.total_correct, self.total_incorrect)

    @property
    def overall_accuracy(self) -> float:
        return self.overall_performance.accuracy

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "learner_id": self.learner_id,
            "topic_id": self.topic_id,
            "current_difficulty": self.current_difficulty.value,
            "rolling_window": list(self.rolling_window),
            "questions_since_last_adjustment": self.questions_since_last_adjustment,
            "total_questions_in_topic": self.total_questions_in_topic,
            "last_adjustment_at": _isoformat(self.last_adjustment_at),
            "adjustment_count": self.adjustment_count,
            "total_correct": self.total_correct,
            "total_incorrect": self.total_incorrect,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "last_attempted_at": _isoformat(self.last_attempted_at),
            "version": self.version
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PerformanceTracker':
        """Create from dictionary."""
        return cls(
            learner_id=data["learner_id"],
            topic_id=data["topic_id"],
            current_difficulty=DifficultyLevel(
                data.get("current_difficulty", DifficultyLevel.FOUNDATION.value)
            ),
            rolling_window=[bool(outcome) for outcome in data.get("rolling_window", [])],
            questions_since_last_adjustment=data.get("questions_since_last_adjustment", 0),
            total_questions_in_topic=data.get("total_questions_in_topic", 0),
            last_adjustment_at=_parse_datetime(data.get("last_adjustment_at")),
            adjustment_count=data.get("adjustment_count", 0),
            total_correct=data.get("total_correct", 0),
            total_incorrect=data.get("total_incorrect", 0),
            current_streak=data.get("current_streak", 0),
            best_streak=data.get("best_streak", 0),
            last_attempted_at=_parse_datetime(data.get("last_attempted_at")),
            version=data.get("version", 0)
        )


def calculate_performance(correct: int, incorrect: int) -> PerformanceWindow:
    """
    Build a performance window from raw counts.

    Args:
        correct: Number of correct answers
        incorrect: Number of incorrect answers

    Returns:
        Performance window; accuracy is 0.0 when there are no answers
    """
    return PerformanceWindow(correct=correct, incorrect=incorrect)


def calculate_rolling_performance(
    outcomes: Sequence[bool],
    window_size: int = DEFAULT_ADAPTIVE_CONFIG.window_size
) -> PerformanceWindow:
    """
    Performance over the most recent ``window_size`` outcomes.

    Args:
        outcomes: Outcomes in chronological order (True = correct)
        window_size: Number of trailing outcomes to consider

    Returns:
        Performance window for the trailing outcomes
    """
    recent = list(outcomes)[-window_size:] if window_size > 0 else []
    correct = sum(1 for outcome in recent if outcome)
    return calculate_performance(correct, len(recent) - correct)


def adjacent_level(current: DifficultyLevel, direction: str) -> DifficultyLevel:
    """
    Get the neighbouring difficulty level, clamped at the ends of the scale.

    Args:
        current: Current difficulty level
        direction: ``"up"`` or ``"down"``

    Returns:
        The adjacent level, or ``current`` when already at the boundary
    """
    if direction == UP:
        return DifficultyLevel.from_numeric(current.to_numeric() + 1)
    if direction == DOWN:
        return DifficultyLevel.from_numeric(current.to_numeric() - 1)
    raise ValueError(f"Unknown direction: {direction}")


def init_tracker(
    learner_id: str,
    topic_id: str,
    start_level: DifficultyLevel = DifficultyLevel.FOUNDATION
) -> PerformanceTracker:
    """
    Create the tracker for a learner's first attempt in a topic.

    Args:
        learner_id: Learner identifier
        topic_id: Topic identifier
        start_level: Starting difficulty level

    Returns:
        New performance tracker
    """
    return PerformanceTracker(
        learner_id=learner_id,
        topic_id=topic_id,
        current_difficulty=start_level
    )


def reset_tracker(
    tracker: PerformanceTracker,
    start_level: Optional[DifficultyLevel] = None
) -> PerformanceTracker:
    """
    Start a tracker over from scratch, keeping its key and version.

    Args:
        tracker: Tracker to reset
        start_level: Level to restart at (defaults to foundation)

    Returns:
        Fresh tracker for the same learner and topic
    """
    fresh = init_tracker(
        tracker.learner_id,
        tracker.topic_id,
        start_level or DifficultyLevel.FOUNDATION
    )
    fresh.version = tracker.version
    logger.info(f"Reset tracker for learner {tracker.learner_id} in topic {tracker.topic_id}")
    return fresh


def determine_adjustment(
    tracker: PerformanceTracker,
    config: Optional[AdaptiveConfig] = None
) -> AdjustmentDecision:
    """
    Decide whether the tracker's difficulty level should change.

    Args:
        tracker: Tracker whose window already includes the latest outcome
        config: Tracker configuration (defaults apply when omitted)

    Returns:
        Adjustment decision with a human-readable reason
    """
    config = config or DEFAULT_ADAPTIVE_CONFIG
    current = tracker.current_difficulty

    def hold(reason: str, confidence: float = 0.0) -> AdjustmentDecision:
        return AdjustmentDecision(
            current_level=current,
            recommended_level=current,
            should_adjust=False,
            reason=reason,
            confidence=confidence
        )

    if tracker.total_questions_in_topic < config.min_questions_before_adjust:
        return hold(
            f"Need {config.min_questions_before_adjust} questions before adjusting "
            f"(have {tracker.total_questions_in_topic})"
        )

    if tracker.questions_since_last_adjustment < config.cooldown_questions:
        remaining = config.cooldown_questions - tracker.questions_since_last_adjustment
        return hold(f"Cooldown: {remaining} more questions needed")

    accuracy = calculate_rolling_performance(tracker.rolling_window, config.window_size).accuracy

    if accuracy < config.decrease_threshold:
        target = adjacent_level(current, DOWN)
        if target is current:
            return hold("Already at easiest difficulty")
        return AdjustmentDecision(
            current_level=current,
            recommended_level=target,
            should_adjust=True,
            reason=f"Low accuracy ({accuracy * 100:.1f}%) - making questions easier",
            confidence=1.0 - accuracy
        )

    if accuracy > config.increase_threshold:
        target = adjacent_level(current, UP)
        if target is current:
            return hold("Already at hardest difficulty")
        return AdjustmentDecision(
            current_level=current,
            recommended_level=target,
            should_adjust=True,
            reason=f"High accuracy ({accuracy * 100:.1f}%) - increasing challenge",
            confidence=accuracy
        )

    return hold(f"Accuracy ({accuracy * 100:.1f}%) is within target range", confidence=0.5)


def record_outcome(
    tracker: PerformanceTracker,
    correct: bool,
    config: Optional[AdaptiveConfig] = None,
    now: Optional[datetime.datetime] = None
) -> Tuple[PerformanceTracker, AdjustmentDecision]:
    """
    Fold one answer into the tracker and apply any resulting adjustment.

    Args:
        tracker: Current tracker state (left untouched)
        correct: Whether the latest answer was correct
        config: Tracker configuration (defaults apply when omitted)
        now: Timestamp of the answer (defaults to the current time)

    Returns:
        Tuple of (updated tracker, adjustment decision)
    """
    config = config or DEFAULT_ADAPTIVE_CONFIG
    stamp = now or datetime.datetime.now()

    window = (list(tracker.rolling_window) + [bool(correct)])[-config.window_size:]
    streak = tracker.current_streak + 1 if correct else 0

    updated = replace(
        tracker,
        rolling_window=window,
        questions_since_last_adjustment=tracker.questions_since_last_adjustment + 1,
        total_questions_in_topic=tracker.total_questions_in_topic + 1,
        total_correct=tracker.total_correct + (1 if correct else 0),
        total_incorrect=tracker.total_incorrect + (0 if correct else 1),
        current_streak=streak,
        best_streak=max(tracker.best_streak, streak),
        last_attempted_at=stamp
    )

    decision = determine_adjustment(updated, config)

    if decision.should_adjust:
        updated.current_difficulty = decision.recommended_level
        updated.questions_since_last_adjustment = 0
        updated.last_adjustment_at = stamp
        updated.adjustment_count = tracker.adjustment_count + 1
        logger.info(
            f"Adjusted difficulty for learner {tracker.learner_id} in topic {tracker.topic_id} "
            f"from {decision.current_level.value} to {decision.recommended_level.value} "
            f"({decision.reason})"
        )
    else:
        logger.debug(
            f"Holding {decision.current_level.value} for learner {tracker.learner_id} "
            f"in topic {tracker.topic_id}: {decision.reason}"
        )

    return updated, decision
