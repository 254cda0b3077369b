"""
Practice Session Service

Drives the adaptive loop for one learner in one topic:

1. read the learner's current level from the tracker store
2. fetch candidates from the question repository
3. rank them against the attempt history and serve the winner
4. record the answer in the history and fold it into the tracker

Tracker updates are committed as soon as the outcome is recorded; the
decision returned to the caller is informational.
"""

import uuid
from datetime import datetime
from typing import Callable, List, Optional

from adaptive_practice.common.exceptions import ValidationError
from adaptive_practice.common.logger import LoggerAdapter, app_logger
from adaptive_practice.config import EngineSettings, get_settings
from adaptive_practice.engine.analysis import (
    AdaptiveInfo,
    MasteryLevel,
    WeakArea,
    identify_weak_areas,
    mastery_level,
    summarize_performance
)
from adaptive_practice.engine.models import (
    AdjustmentDecision,
    AttemptRecord,
    DifficultyLevel,
    Exercise,
    SelectionWeights,
)
from adaptive_practice.engine.repository import AttemptHistoryStore, QuestionRepository, matches_topic
from adaptive_practice.engine.selector import ScoreBreakdown, explain_score, select_next, select_top_n
from adaptive_practice.engine.store import TrackerStore
from adaptive_practice.engine.tracker import PerformanceTracker, record_outcome, reset_tracker

# Module logger
logger = app_logger.getChild("engine.service")


class PracticeSession:
    """
    One adaptive practice session.

    Exercises served during the session are never served again within it.
    The session itself holds no tracker state; everything durable lives in
    the tracker store and the attempt history.
    """

    def __init__(
        self,
        learner_id: str,
        topic_id: str,
        questions: QuestionRepository,
        history: AttemptHistoryStore,
        trackers: TrackerStore,
        settings: Optional[EngineSettings] = None,
        weights: Optional[SelectionWeights] = None,
        start_level: DifficultyLevel = DifficultyLevel.FOUNDATION,
        session_id: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the session.

        Args:
            learner_id: Learner identifier
            topic_id: Topic being practised
            questions: Source of candidate exercises
            history: The learner's attempt history
            trackers: Store holding the learner's performance trackers
            settings: Engine settings (loaded from the environment when omitted)
            weights: Selection weights overriding the configured ones
            start_level: Level for a learner with no tracker in the topic yet
            session_id: Session identifier (generated when omitted)
            clock: Source of the current time
        """
        self.learner_id = learner_id
        self.topic_id = topic_id
        self.questions = questions
        self.history = history
        self.trackers = trackers
        self.settings = settings or get_settings()
        self.weights = weights or self.settings.selection.to_weights()
        self.start_level = start_level
        self.session_id = session_id or uuid.uuid4().hex
        self.clock = clock
        self.served_ids: List[str] = []
        self.log = LoggerAdapter(logger, {
            "learner_id": learner_id,
            "topic_id": topic_id,
            "session_id": self.session_id
        })

    def tracker(self) -> PerformanceTracker:
        """The learner's tracker in this topic (unsaved fresh one if none exists)."""
        return self.trackers.get_or_init(self.learner_id, self.topic_id, self.start_level)

    def current_level(self) -> DifficultyLevel:
        return self.tracker().current_difficulty

    def _ranking_inputs(self):
        candidates = self.questions.query(self.topic_id, exclude_ids=self.served_ids)
        attempts = self.history.attempts_for(self.learner_id, self.topic_id)
        return candidates, attempts

    def next_exercise(self) -> Optional[Exercise]:
        """
        Choose and serve the next exercise.

        Returns:
            The exercise, or None when the topic's pool is exhausted for this session
        """
        level = self.current_level()
        candidates, attempts = self._ranking_inputs()

        exercise_id = select_next(
            candidates,
            level,
            weights=self.weights,
            history=attempts,
            exclude_ids=self.served_ids,
            now=self.clock()
        )
        if exercise_id is None:
            self.log.info(f"No exercises left after serving {len(self.served_ids)} in this session")
            return None

        self.served_ids.append(exercise_id)
        self.log.debug(f"Serving {exercise_id} at level {level.value}")
        return self.questions.get(exercise_id)

    def recommendations(self, limit: Optional[int] = None) -> List[str]:
        """Best ``limit`` exercise ids for the current level, without serving them."""
        candidates, attempts = self._ranking_inputs()
        return select_top_n(
            candidates,
            self.current_level(),
            weights=self.weights,
            history=attempts,
            exclude_ids=self.served_ids,
            limit=limit or self.settings.selection.default_limit,
            now=self.clock()
        )

    def explain(self, exercise_id: str) -> Optional[ScoreBreakdown]:
        """Scoring breakdown for one exercise, or None if it is not a candidate."""
        candidates, attempts = self._ranking_inputs()
        return explain_score(
            exercise_id,
            candidates,
            self.current_level(),
            weights=self.weights,
            history=attempts,
            exclude_ids=self.served_ids,
            now=self.clock()
        )

    def submit_answer(
        self,
        exercise: Exercise,
        correct: bool,
        occurred_at: Optional[datetime] = None
    ) -> AdjustmentDecision:
        """
        Record the learner's answer and update their difficulty level.

        Args:
            exercise: The exercise that was answered
            correct: Whether the answer was correct
            occurred_at: When the answer was given (defaults to now)

        Returns:
            The adjustment decision taken for the learner's next exercise

        Raises:
            ValidationError: If the exercise does not belong to this session's topic
        """
        if not matches_topic(exercise.topic_id, self.topic_id):
            raise ValidationError(
                f"Exercise {exercise.id} belongs to topic {exercise.topic_id}, "
                f"not {self.topic_id}",
                errors={"topic_id": exercise.topic_id}
            )

        occurred_at = occurred_at or self.clock()
        self.history.append(AttemptRecord(
            learner_id=self.learner_id,
            exercise_id=exercise.id,
            topic_id=exercise.topic_id,
            subtopic_name=exercise.subtopic_name,
            correct=correct,
            occurred_at=occurred_at,
            difficulty_at_attempt=exercise.difficulty
        ))

        config = self.settings.tracker
        _, decision = self.trackers.update(
            self.learner_id,
            self.topic_id,
            lambda tracker: record_outcome(tracker, correct, config, now=occurred_at),
            start_level=self.start_level
        )

        if decision.should_adjust:
            self.log.info(
                f"Level changed {decision.current_level.value} -> "
                f"{decision.recommended_level.value}: {decision.reason}"
            )
        return decision

    def adaptive_info(self) -> AdaptiveInfo:
        return summarize_performance(self.tracker())

    def mastery_level(self) -> MasteryLevel:
        return mastery_level(self.tracker())

    def weak_areas(self, min_attempts: int = 1) -> List[WeakArea]:
        return identify_weak_areas(
            self.history.attempts_for(self.learner_id, self.topic_id),
            min_attempts=min_attempts
        )

    def reset(self) -> PerformanceTracker:
        """Restart the learner's tracker in this topic and forget served exercises."""
        tracker, _ = self.trackers.update(
            self.learner_id,
            self.topic_id,
            lambda current: (reset_tracker(current, self.start_level), None),
            start_level=self.start_level
        )
        self.served_ids.clear()
        return tracker
