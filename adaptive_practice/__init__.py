"""
Adaptive Practice

Adaptive difficulty and exercise selection for practice sessions:

1. Per-topic difficulty tracking over a rolling window, with a minimum-sample
   gate and a cooldown between adjustments
2. Weighted ranking of candidate exercises by difficulty match, subtopic
   coverage, recency and weak-area focus
3. Versioned tracker stores that serialize concurrent updates per learner
   and topic
"""

__version__ = "0.1.0"
