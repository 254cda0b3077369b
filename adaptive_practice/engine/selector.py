"""
Candidate Scorer

Ranks candidate exercises for a learner by a weighted combination of four
criteria:
1. Difficulty match: prefer exercises at the learner's current level
2. Topic coverage: spread practice across subtopics
3. Recency avoidance: avoid exercises seen in the last few days
4. Weak area focus: prioritise subtopics with low accuracy

Each call recomputes everything from its inputs; there is no shared state.
Weights are applied as given, without normalization.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union

from adaptive_practice.common.logger import app_logger, log_execution_time
from adaptive_practice.engine.models import (
    AttemptRecord,
    DEFAULT_WEIGHTS,
    DifficultyLevel,
    Exercise,
    SelectionWeights,
)
from adaptive_practice.engine.scoring import (
    HistoryIndex,
    coverage_score,
    difficulty_match_score,
    recency_score,
    weak_area_score,
)

# Module logger
logger = app_logger.getChild("engine.selector")

History = Union[HistoryIndex, Iterable[AttemptRecord]]

CRITERIA = ("difficulty_match", "topic_coverage", "recency_avoidance", "weak_area_focus")


@dataclass(frozen=True)
class CriterionScore:
    """Raw sub-score, its weight and the weighted contribution."""

    score: float
    weight: float

    @property
    def weighted(self) -> float:
        return self.score * self.weight

    def to_dict(self) -> Dict[str, float]:
        return {"score": self.score, "weight": self.weight, "weighted": self.weighted}


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate exercise joined with history and scored."""

    exercise_id: str
    difficulty: DifficultyLevel
    topic_id: str
    subtopic_name: Optional[str]
    last_attempted_at: Optional[datetime]
    breakdown: Dict[str, CriterionScore]

    @property
    def score(self) -> float:
        return sum(self.breakdown[name].weighted for name in CRITERIA)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-criterion explanation of one candidate's score."""

    exercise_id: str
    total_score: float
    difficulty_match: CriterionScore
    topic_coverage: CriterionScore
    recency_avoidance: CriterionScore
    weak_area_focus: CriterionScore

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "exercise_id": self.exercise_id,
            "total_score": self.total_score,
            "breakdown": {name: getattr(self, name).to_dict() for name in CRITERIA}
        }


def _as_index(history: Optional[History]) -> HistoryIndex:
    if history is None:
        return HistoryIndex()
    if isinstance(history, HistoryIndex):
        return history
    return HistoryIndex.from_attempts(history)


def _score_one(
    candidate: Exercise,
    target_difficulty: DifficultyLevel,
    weights: SelectionWeights,
    index: HistoryIndex,
    now: datetime
) -> ScoredCandidate:
    last_attempted_at = index.last_attempted.get(candidate.id)
    raw = {
        "difficulty_match": difficulty_match_score(candidate.difficulty, target_difficulty),
        "topic_coverage": coverage_score(candidate.subtopic_name, index.subtopic_attempts),
        "recency_avoidance": recency_score(last_attempted_at, now),
        "weak_area_focus": weak_area_score(candidate.subtopic_name, index.subtopic_accuracy),
    }
    return ScoredCandidate(
        exercise_id=candidate.id,
        difficulty=candidate.difficulty,
        topic_id=candidate.topic_id,
        subtopic_name=candidate.subtopic_name,
        last_attempted_at=last_attempted_at,
        breakdown={
            name: CriterionScore(score=raw[name], weight=getattr(weights, name))
            for name in CRITERIA
        }
    )


@log_execution_time(logger)
def score_candidates(
    candidates: Sequence[Exercise],
    target_difficulty: DifficultyLevel,
    weights: Optional[SelectionWeights] = None,
    history: Optional[History] = None,
    exclude_ids: Iterable[str] = (),
    now: Optional[datetime] = None
) -> List[ScoredCandidate]:
    """
    Filter, score and rank candidate exercises.

    Args:
        candidates: Candidate pool
        target_difficulty: The learner's current level in the topic
        weights: Criterion weights (defaults when omitted)
        history: The learner's attempts, or a prebuilt HistoryIndex
        exclude_ids: Exercise ids that must not be served (e.g. already seen this session)
        now: Reference time for recency (defaults to the current time)

    Returns:
        Scored candidates, best first; ties keep their input order
    """
    weights = weights or DEFAULT_WEIGHTS
    now = now or datetime.now()
    excluded = set(exclude_ids)
    index = _as_index(history)

    scored = [
        _score_one(candidate, target_difficulty, weights, index, now)
        for candidate in candidates
        if candidate.id not in excluded
    ]
    # sorted() is stable, so equal scores keep input order
    return sorted(scored, key=lambda c: c.score, reverse=True)


def select_next(
    candidates: Sequence[Exercise],
    target_difficulty: DifficultyLevel,
    weights: Optional[SelectionWeights] = None,
    history: Optional[History] = None,
    exclude_ids: Iterable[str] = (),
    now: Optional[datetime] = None
) -> Optional[str]:
    """
    Pick the best exercise to serve next.

    Returns:
        The winning exercise id, or None when no candidate survives exclusion
    """
    ranked = score_candidates(candidates, target_difficulty, weights, history, exclude_ids, now)
    if not ranked:
        logger.info(f"Candidate pool exhausted ({len(candidates)} candidates before exclusion)")
        return None

    best = ranked[0]
    logger.debug(f"Selected {best.exercise_id} with score {best.score:.3f} from {len(ranked)} candidates")
    return best.exercise_id


def select_top_n(
    candidates: Sequence[Exercise],
    target_difficulty: DifficultyLevel,
    weights: Optional[SelectionWeights] = None,
    history: Optional[History] = None,
    exclude_ids: Iterable[str] = (),
    limit: int = 5,
    now: Optional[datetime] = None
) -> List[str]:
    """
    Rank candidates and return the best ``limit`` exercise ids.

    Returns:
        Up to ``limit`` ids, best first; empty when nothing is available
    """
    if limit <= 0:
        return []
    ranked = score_candidates(candidates, target_difficulty, weights, history, exclude_ids, now)
    return [candidate.exercise_id for candidate in ranked[:limit]]


def explain_score(
    exercise_id: str,
    candidates: Sequence[Exercise],
    target_difficulty: DifficultyLevel,
    weights: Optional[SelectionWeights] = None,
    history: Optional[History] = None,
    exclude_ids: Iterable[str] = (),
    now: Optional[datetime] = None
) -> Optional[ScoreBreakdown]:
    """
    Recompute the full scoring breakdown for one candidate.

    Used for debugging and tuning weights; selection never calls it.

    Returns:
        The breakdown, or None if the exercise is not among the surviving candidates
    """
    if exercise_id in set(exclude_ids):
        return None

    candidate = next((c for c in candidates if c.id == exercise_id), None)
    if candidate is None:
        return None

    scored = _score_one(
        candidate,
        target_difficulty,
        weights or DEFAULT_WEIGHTS,
        _as_index(history),
        now or datetime.now()
    )
    return ScoreBreakdown(
        exercise_id=exercise_id,
        total_score=scored.score,
        **scored.breakdown
    )
