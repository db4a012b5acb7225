import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.workout_metrics import WorkoutMetricsCalculator
from session_schema import ExerciseEntry, SetRecord, WorkoutSession


def bench_session(sets, duration=3600.0, rest=0.0) -> WorkoutSession:
    return WorkoutSession(
        id="w1",
        workout_name="Push Day",
        started_at="2024-06-14T11:00:00+00:00",
        completed_at="2024-06-14T12:00:00+00:00",
        exercises=[
            ExerciseEntry(exercise_name="Bench Press", muscle_groups=["Chest"], sets=sets)
        ],
        total_duration_seconds=duration,
        total_rest_seconds=rest,
    )


class WorkoutMetricsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.sets = [
            SetRecord(is_completed=True, actual_reps=10, actual_weight_kg=50.0),
            SetRecord(is_completed=True, actual_reps=10, actual_weight_kg=50.0),
        ]

    def test_two_completed_sets_in_one_hour(self) -> None:
        metrics = WorkoutMetricsCalculator.calculate(bench_session(self.sets))
        self.assertEqual(metrics.total_volume, 1000)
        self.assertEqual(metrics.total_sets, 2)
        self.assertEqual(metrics.total_reps, 20)
        self.assertEqual(metrics.average_rest_time, 0)
        self.assertEqual(metrics.total_duration, 3600)
        # 16.7 kg/min is below the divisor, so the factor clamps to 0.5
        self.assertEqual(metrics.calories_burned, 240)
        self.assertEqual(metrics.intensity_score, 54)

    def test_incomplete_sets_do_not_change_totals(self) -> None:
        before = WorkoutMetricsCalculator.calculate(bench_session(self.sets))
        noisy = self.sets + [
            SetRecord(is_completed=False, actual_reps=100, actual_weight_kg=1000.0)
        ]
        after = WorkoutMetricsCalculator.calculate(bench_session(noisy))
        self.assertEqual(before.total_volume, after.total_volume)
        self.assertEqual(before.total_reps, after.total_reps)
        self.assertEqual(before.total_sets, after.total_sets)
        self.assertEqual(before.intensity_score, after.intensity_score)

    def test_missing_values_count_as_zero(self) -> None:
        sets = [
            SetRecord(is_completed=True, actual_reps=None, actual_weight_kg=80.0),
            SetRecord(is_completed=True, actual_reps=5, actual_weight_kg=None),
        ]
        metrics = WorkoutMetricsCalculator.calculate(bench_session(sets))
        self.assertEqual(metrics.total_volume, 0)
        self.assertEqual(metrics.total_reps, 5)
        self.assertEqual(metrics.total_sets, 2)

    def test_no_completed_sets(self) -> None:
        session = bench_session([SetRecord(is_completed=False, actual_reps=5)])
        self.assertEqual(WorkoutMetricsCalculator.intensity_factor(session), 1.0)
        metrics = WorkoutMetricsCalculator.calculate(session)
        self.assertEqual(metrics.intensity_score, 0)
        self.assertEqual(metrics.average_rest_time, 0)
        self.assertEqual(metrics.calories_burned, 480)

    def test_zero_duration(self) -> None:
        session = bench_session(self.sets, duration=0)
        self.assertEqual(WorkoutMetricsCalculator.intensity_factor(session), 1.0)
        metrics = WorkoutMetricsCalculator.calculate(session)
        self.assertEqual(metrics.calories_burned, 0)
        # volume 0.1, sets 2/30 and density capped at 0.5
        self.assertEqual(metrics.intensity_score, 17)

    def test_intensity_factor_upper_clamp(self) -> None:
        heavy = [SetRecord(is_completed=True, actual_reps=10, actual_weight_kg=1000.0)]
        session = bench_session(heavy, duration=60)
        self.assertEqual(WorkoutMetricsCalculator.intensity_factor(session), 2.0)

    def test_average_rest_over_completed_sets(self) -> None:
        sets = [
            SetRecord(is_completed=True, actual_reps=5, rest_duration_seconds=60),
            SetRecord(is_completed=True, actual_reps=5, rest_duration_seconds=120),
            SetRecord(is_completed=False, actual_reps=5, rest_duration_seconds=600),
        ]
        metrics = WorkoutMetricsCalculator.calculate(bench_session(sets))
        self.assertEqual(metrics.average_rest_time, 90)


if __name__ == "__main__":
    unittest.main()
