import datetime
import random
import unittest

from adaptive_practice.config import AdaptiveConfig
from adaptive_practice.engine.models import DifficultyLevel
from adaptive_practice.engine.tracker import (
    PerformanceTracker,
    adjacent_level,
    calculate_performance,
    calculate_rolling_performance,
    determine_adjustment,
    init_tracker,
    record_outcome,
    reset_tracker,
)

F = DifficultyLevel.FOUNDATION
S = DifficultyLevel.STANDARD
C = DifficultyLevel.CHALLENGE

NOW = datetime.datetime(2024, 3, 15, 12, 0, 0)


def play(tracker, outcomes, config=None):
    """Feed a sequence of outcomes and collect every decision."""
    decisions = []
    for correct in outcomes:
        tracker, decision = record_outcome(tracker, correct, config, now=NOW)
        decisions.append(decision)
    return tracker, decisions


class TestPerformanceHelpers(unittest.TestCase):
    """Test the performance window helpers."""

    def test_calculate_performance(self):
        window = calculate_performance(3, 1)
        self.assertEqual(window.total, 4)
        self.assertAlmostEqual(window.accuracy, 0.75)

    def test_empty_window_has_zero_accuracy(self):
        self.assertEqual(calculate_performance(0, 0).accuracy, 0.0)
        self.assertEqual(calculate_rolling_performance([], 5).accuracy, 0.0)

    def test_rolling_performance_uses_trailing_outcomes(self):
        outcomes = [False, False, True, True, True, True, True]
        window = calculate_rolling_performance(outcomes, 5)
        self.assertEqual(window.correct, 5)
        self.assertEqual(window.incorrect, 0)

        window = calculate_rolling_performance(outcomes, 7)
        self.assertEqual(window.correct, 5)
        self.assertEqual(window.incorrect, 2)

    def test_adjacent_level_clamps(self):
        self.assertEqual(adjacent_level(F, "up"), S)
        self.assertEqual(adjacent_level(S, "up"), C)
        self.assertEqual(adjacent_level(C, "up"), C)
        self.assertEqual(adjacent_level(C, "down"), S)
        self.assertEqual(adjacent_level(F, "down"), F)

    def test_adjacent_level_rejects_unknown_direction(self):
        with self.assertRaises(ValueError):
            adjacent_level(S, "sideways")


class TestDetermineAdjustment(unittest.TestCase):
    """Test the adjustment decision on prepared trackers."""

    def make(self, level, window, since=5, total=10):
        return PerformanceTracker(
            learner_id="learner-1",
            topic_id="algebra",
            current_difficulty=level,
            rolling_window=list(window),
            questions_since_last_adjustment=since,
            total_questions_in_topic=total
        )

    def test_all_correct_moves_up_with_full_confidence(self):
        decision = determine_adjustment(self.make(S, [True] * 5))
        self.assertTrue(decision.should_adjust)
        self.assertEqual(decision.current_level, S)
        self.assertEqual(decision.recommended_level, C)
        self.assertEqual(decision.confidence, 1.0)
        self.assertEqual(decision.reason, "High accuracy (100.0%) - increasing challenge")

    def test_low_accuracy_moves_down(self):
        decision = determine_adjustment(self.make(S, [False, False, False, True, False]))
        self.assertTrue(decision.should_adjust)
        self.assertEqual(decision.recommended_level, F)
        self.assertAlmostEqual(decision.confidence, 0.8)
        self.assertEqual(decision.reason, "Low accuracy (20.0%) - making questions easier")

    def test_accuracy_inside_band_holds(self):
        decision = determine_adjustment(self.make(S, [True, True, True, False, False]))
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.recommended_level, S)
        self.assertEqual(decision.confidence, 0.5)
        self.assertEqual(decision.reason, "Accuracy (60.0%) is within target range")

    def test_threshold_is_exclusive(self):
        # 3 of 4 is exactly the increase threshold
        decision = determine_adjustment(self.make(S, [True, True, True, False]))
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.confidence, 0.5)

    def test_floor_and_ceiling(self):
        decision = determine_adjustment(self.make(F, [False] * 5))
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.recommended_level, F)
        self.assertEqual(decision.reason, "Already at easiest difficulty")
        self.assertEqual(decision.confidence, 0.0)

        decision = determine_adjustment(self.make(C, [True] * 5))
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.recommended_level, C)
        self.assertEqual(decision.reason, "Already at hardest difficulty")

    def test_sample_gate(self):
        decision = determine_adjustment(self.make(S, [True, True], since=2, total=2))
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.reason, "Need 3 questions before adjusting (have 2)")
        self.assertEqual(decision.confidence, 0.0)

    def test_cooldown_gate(self):
        decision = determine_adjustment(self.make(S, [True] * 5, since=1, total=10))
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.reason, "Cooldown: 2 more questions needed")

    def test_custom_config(self):
        config = AdaptiveConfig(
            increase_threshold=0.9,
            decrease_threshold=0.2,
            window_size=10,
            cooldown_questions=1,
            min_questions_before_adjust=1
        )
        tracker = self.make(S, [True] * 8 + [False] * 2, since=1, total=10)
        decision = determine_adjustment(tracker, config)
        self.assertFalse(decision.should_adjust)
        self.assertEqual(decision.reason, "Accuracy (80.0%) is within target range")


class TestRecordOutcome(unittest.TestCase):
    """Test folding answers into a tracker."""

    def setUp(self):
        self.tracker = init_tracker("learner-1", "algebra")

    def test_init_tracker(self):
        self.assertEqual(self.tracker.current_difficulty, F)
        self.assertEqual(self.tracker.rolling_window, [])
        self.assertEqual(self.tracker.total_questions_in_topic, 0)
        self.assertIsNone(self.tracker.last_adjustment_at)
        self.assertEqual(self.tracker.version, 0)

        tracker = init_tracker("learner-1", "algebra", C)
        self.assertEqual(tracker.current_difficulty, C)

    def test_window_is_capped(self):
        tracker, _ = play(self.tracker, [True, False] * 6)
        self.assertEqual(len(tracker.rolling_window), 5)
        self.assertEqual(tracker.rolling_window, [False, True, False, True, False])
        self.assertEqual(tracker.total_questions_in_topic, 12)

    def test_no_adjustment_before_minimum_sample(self):
        tracker, decisions = play(self.tracker, [True, True])
        self.assertEqual(tracker.current_difficulty, F)
        self.assertFalse(any(d.should_adjust for d in decisions))
        self.assertEqual(decisions[-1].reason, "Need 3 questions before adjusting (have 2)")

    def test_three_correct_moves_up(self):
        tracker, decisions = play(self.tracker, [True, True, True])
        decision = decisions[-1]
        self.assertTrue(decision.should_adjust)
        self.assertEqual(decision.recommended_level, S)
        self.assertEqual(decision.confidence, 1.0)
        self.assertEqual(tracker.current_difficulty, S)
        self.assertEqual(tracker.questions_since_last_adjustment, 0)
        self.assertEqual(tracker.last_adjustment_at, NOW)

    def test_five_wrong_at_foundation_stays_put(self):
        tracker, decisions = play(self.tracker, [False] * 5)
        self.assertEqual(tracker.current_difficulty, F)
        self.assertEqual(decisions[-1].reason, "Already at easiest difficulty")
        self.assertFalse(decisions[-1].should_adjust)
        self.assertIsNone(tracker.last_adjustment_at)

    def test_cooldown_after_adjustment(self):
        tracker, _ = play(self.tracker, [True, True, True])
        self.assertEqual(tracker.current_difficulty, S)

        tracker, decisions = play(tracker, [True, True])
        self.assertEqual(tracker.current_difficulty, S)
        self.assertEqual(
            [d.reason for d in decisions],
            ["Cooldown: 2 more questions needed", "Cooldown: 1 more questions needed"]
        )

        tracker, decisions = play(tracker, [True])
        self.assertTrue(decisions[-1].should_adjust)
        self.assertEqual(tracker.current_difficulty, C)

    def test_window_survives_adjustment(self):
        tracker, _ = play(self.tracker, [True, True, True])
        self.assertEqual(tracker.current_difficulty, S)
        self.assertEqual(tracker.rolling_window, [True, True, True])

        tracker, decisions = play(tracker, [False, False, False])
        self.assertEqual(tracker.rolling_window, [True, True, False, False, False])
        self.assertEqual(decisions[-1].reason, "Low accuracy (40.0%) - making questions easier")
        self.assertAlmostEqual(decisions[-1].confidence, 0.6)
        self.assertEqual(tracker.current_difficulty, F)

    def test_input_is_not_mutated(self):
        before = self.tracker.to_dict()
        updated, _ = record_outcome(self.tracker, True)
        self.assertEqual(self.tracker.to_dict(), before)
        self.assertIsNot(updated, self.tracker)
        self.assertIsNot(updated.rolling_window, self.tracker.rolling_window)

    def test_streaks(self):
        tracker, _ = play(self.tracker, [True, True, True, False, True])
        self.assertEqual(tracker.current_streak, 1)
        self.assertEqual(tracker.best_streak, 3)
        self.assertAlmostEqual(tracker.recent_accuracy, 0.8)

    def test_lifetime_counters(self):
        self.assertEqual(self.tracker.overall_accuracy, 0.0)
        self.assertIsNone(self.tracker.last_attempted_at)

        tracker, _ = play(self.tracker, [True, True, True, False, False, False])
        self.assertEqual(tracker.total_correct, 3)
        self.assertEqual(tracker.total_incorrect, 3)
        self.assertAlmostEqual(tracker.overall_accuracy, 0.5)
        self.assertEqual(tracker.adjustment_count, 2)
        self.assertEqual(tracker.last_attempted_at, NOW)

    def test_overall_accuracy_outlives_the_window(self):
        tracker, _ = play(self.tracker, [False] * 4 + [True] * 5)
        self.assertEqual(tracker.rolling_window, [True] * 5)
        self.assertAlmostEqual(tracker.recent_accuracy, 1.0)
        self.assertAlmostEqual(tracker.overall_accuracy, 5 / 9)

    def test_holds_do_not_count_as_adjustments(self):
        tracker, decisions = play(self.tracker, [True, False, True, False])
        self.assertFalse(any(decision.should_adjust for decision in decisions))
        self.assertEqual(tracker.adjustment_count, 0)
        self.assertIsNone(tracker.last_adjustment_at)
        self.assertEqual(tracker.last_attempted_at, NOW)

    def test_levels_move_one_step_at_a_time(self):
        """Random answer streams never break the tracker's invariants."""
        config = AdaptiveConfig()
        rng = random.Random(1234)

        for _ in range(50):
            tracker = init_tracker("learner-1", "algebra", rng.choice(list(DifficultyLevel)))
            since_adjustment = 0
            for _ in range(40):
                before = tracker
                tracker, decision = record_outcome(tracker, rng.random() < 0.6, config, now=NOW)
                since_adjustment += 1

                self.assertLessEqual(len(tracker.rolling_window), config.window_size)
                self.assertLessEqual(
                    before.current_difficulty.distance(tracker.current_difficulty), 1
                )
                if decision.should_adjust:
                    self.assertGreaterEqual(
                        tracker.total_questions_in_topic, config.min_questions_before_adjust
                    )
                    self.assertGreaterEqual(since_adjustment, config.cooldown_questions)
                    self.assertEqual(tracker.current_difficulty, decision.recommended_level)
                    since_adjustment = 0
                else:
                    self.assertEqual(tracker.current_difficulty, before.current_difficulty)


class TestTrackerLifecycle(unittest.TestCase):
    """Test resetting and serializing trackers."""

    def test_reset_keeps_key_and_version(self):
        tracker, _ = play(init_tracker("learner-1", "algebra"), [True] * 4)
        tracker.version = 7

        fresh = reset_tracker(tracker)
        self.assertEqual(fresh.key, ("learner-1", "algebra"))
        self.assertEqual(fresh.version, 7)
        self.assertEqual(fresh.current_difficulty, F)
        self.assertEqual(fresh.rolling_window, [])
        self.assertEqual(fresh.total_questions_in_topic, 0)
        self.assertEqual(fresh.total_correct, 0)
        self.assertEqual(fresh.adjustment_count, 0)
        self.assertIsNone(fresh.last_attempted_at)

        self.assertEqual(reset_tracker(tracker, S).current_difficulty, S)

    def test_serialization(self):
        tracker, _ = play(init_tracker("learner-1", "algebra"), [True, True, True, False])
        tracker.version = 3

        data = tracker.to_dict()
        self.assertEqual(data["current_difficulty"], "standard")
        self.assertEqual(data["last_adjustment_at"], NOW.isoformat())
        self.assertEqual(data["last_attempted_at"], NOW.isoformat())
        self.assertEqual(data["adjustment_count"], 1)
        self.assertEqual(data["total_correct"], 3)
        self.assertEqual(data["total_incorrect"], 1)

        restored = PerformanceTracker.from_dict(data)
        self.assertEqual(restored, tracker)

    def test_from_dict_without_counters(self):
        restored = PerformanceTracker.from_dict({"learner_id": "learner-1", "topic_id": "algebra"})
        self.assertEqual(restored.total_correct, 0)
        self.assertEqual(restored.adjustment_count, 0)
        self.assertIsNone(restored.last_attempted_at)


if __name__ == '__main__':
    unittest.main()
