"""
Adaptive Practice Engine

This package provides the difficulty tracker that adjusts a learner's level
per topic, the candidate scorer that picks the next exercise, and the
stores and collaborator interfaces they are wired through.
"""

# Data model
from adaptive_practice.engine.models import (
    DifficultyLevel,
    Exercise,
    AttemptRecord,
    SelectionWeights,
    PerformanceWindow,
    AdjustmentDecision,
    DEFAULT_WEIGHTS
)

# Difficulty tracking
from adaptive_practice.engine.tracker import (
    PerformanceTracker,
    init_tracker,
    record_outcome,
    determine_adjustment,
    reset_tracker,
    calculate_performance,
    calculate_rolling_performance,
    adjacent_level
)

# Candidate scoring
from adaptive_practice.engine.scoring import (
    HistoryIndex,
    difficulty_match_score,
    coverage_score,
    recency_score,
    weak_area_score
)
from adaptive_practice.engine.selector import (
    ScoredCandidate,
    ScoreBreakdown,
    CriterionScore,
    score_candidates,
    select_next,
    select_top_n,
    explain_score
)

# Summaries
from adaptive_practice.engine.analysis import (
    WeakArea,
    AdaptiveInfo,
    MasteryLevel,
    mastery_level,
    identify_weak_areas,
    summarize_performance
)

# Collaborators and storage
from adaptive_practice.engine.repository import (
    QuestionRepository,
    AttemptHistoryStore,
    InMemoryQuestionRepository,
    InMemoryAttemptHistory
)
from adaptive_practice.engine.store import (
    TrackerStore,
    InMemoryTrackerStore,
    SqlTrackerStore
)
from adaptive_practice.engine.service import PracticeSession

__all__ = [
    # Data model
    'DifficultyLevel',
    'Exercise',
    'AttemptRecord',
    'SelectionWeights',
    'PerformanceWindow',
    'AdjustmentDecision',
    'DEFAULT_WEIGHTS',

    # Difficulty tracking
    'PerformanceTracker',
    'init_tracker',
    'record_outcome',
    'determine_adjustment',
    'reset_tracker',
    'calculate_performance',
    'calculate_rolling_performance',
    'adjacent_level',

    # Candidate scoring
    'HistoryIndex',
    'difficulty_match_score',
    'coverage_score',
    'recency_score',
    'weak_area_score',
    'ScoredCandidate',
    'ScoreBreakdown',
    'CriterionScore',
    'score_candidates',
    'select_next',
    'select_top_n',
    'explain_score',

    # Summaries
    'WeakArea',
    'AdaptiveInfo',
    'MasteryLevel',
    'mastery_level',
    'identify_weak_areas',
    'summarize_performance',

    # Collaborators and storage
    'QuestionRepository',
    'AttemptHistoryStore',
    'InMemoryQuestionRepository',
    'InMemoryAttemptHistory',
    'TrackerStore',
    'InMemoryTrackerStore',
    'SqlTrackerStore',
    'PracticeSession'
]
