import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.trends import TrendGenerator
from session_schema import (
    ChartData,
    ChartPoint,
    ExerciseEntry,
    SetRecord,
    TrendSummary,
    WorkoutSession,
)

NOW = datetime.datetime(2024, 6, 15, 18, 0, tzinfo=datetime.timezone.utc)
TODAY = NOW.date()


def on_day(day: datetime.date, duration: float = 1800.0, weight: float = 50.0, sid: str = "") -> WorkoutSession:
    return WorkoutSession(
        id=sid or f"w-{day.isoformat()}-{duration}",
        started_at=f"{day.isoformat()}T08:00:00Z",
        completed_at=f"{day.isoformat()}T09:00:00Z",
        exercises=[
            ExerciseEntry(
                exercise_name="Squat",
                muscle_groups=["Legs"],
                sets=[SetRecord(is_completed=True, actual_reps=10, actual_weight_kg=weight)],
            )
        ],
        total_duration_seconds=duration,
    )


def days_ago(n: int, **kwargs) -> WorkoutSession:
    return on_day(TODAY - datetime.timedelta(days=n), **kwargs)


class PeriodTestCase(unittest.TestCase):
    def test_weekly_periods_cover_84_days(self) -> None:
        periods = TrendGenerator.periods("week", NOW)
        self.assertEqual(len(periods), 12)
        self.assertEqual(periods[-1][1], TODAY)
        self.assertEqual(periods[0][0], TODAY - datetime.timedelta(days=83))
        for (_, end, _), (start, _, _) in zip(periods, periods[1:]):
            self.assertEqual(start - end, datetime.timedelta(days=1))

    def test_monthly_periods(self) -> None:
        periods = TrendGenerator.periods("month", NOW)
        self.assertEqual(len(periods), 12)
        self.assertEqual(periods[0][0], datetime.date(2023, 7, 1))
        self.assertEqual(periods[-1][1], datetime.date(2024, 6, 30))
        self.assertEqual(periods[-1][2], "Jun")
        feb = [p for p in periods if p[0].month == 2][0]
        self.assertEqual(feb[1], datetime.date(2024, 2, 29))

    def test_yearly_periods(self) -> None:
        periods = TrendGenerator.periods("year", NOW)
        self.assertEqual([p[2] for p in periods], ["2020", "2021", "2022", "2023", "2024"])

    def test_unknown_timeframe(self) -> None:
        with self.assertRaises(ValueError):
            TrendGenerator.periods("decade", NOW)


class GenerateTestCase(unittest.TestCase):
    def test_weekly_duration_sum_matches_window(self) -> None:
        offsets = [0, 1, 6, 7, 13, 14, 40, 83, 84, 90]
        sessions = [days_ago(n, duration=600.0 * (i + 1)) for i, n in enumerate(offsets)]
        trends = TrendGenerator.generate(sessions, "week", "duration", NOW)
        expected = sum(
            s.total_duration_seconds / 60
            for s, n in zip(sessions, offsets)
            if n <= 83
        )
        self.assertAlmostEqual(sum(t.value for t in trends), expected)

    def test_frequency_and_empty_buckets(self) -> None:
        sessions = [days_ago(0), days_ago(2), days_ago(20)]
        trends = TrendGenerator.generate(sessions, "week", "frequency", NOW)
        self.assertEqual(trends[-1].value, 2)
        self.assertEqual(sum(t.value for t in trends), 3)
        self.assertEqual(trends[0].value, 0)
        self.assertEqual(trends[-1].type, "frequency")

    def test_volume_and_weight(self) -> None:
        sessions = [days_ago(0, weight=40.0), days_ago(1, weight=60.0)]
        volume = TrendGenerator.generate(sessions, "week", "volume", NOW)
        weight = TrendGenerator.generate(sessions, "week", "weight", NOW)
        self.assertEqual(volume[-1].value, 1000)
        self.assertEqual(weight[-1].value, 50)

    def test_incomplete_sessions_are_skipped(self) -> None:
        open_session = WorkoutSession(id="open", started_at=f"{TODAY.isoformat()}T08:00:00Z")
        trends = TrendGenerator.generate([open_session], "month", "frequency", NOW)
        self.assertEqual(sum(t.value for t in trends), 0)

    def test_unknown_metric(self) -> None:
        with self.assertRaises(ValueError):
            TrendGenerator.generate([], "week", "calories", NOW)


class StreakTestCase(unittest.TestCase):
    def test_three_day_streak_ending_today(self) -> None:
        sessions = [days_ago(0), days_ago(1), days_ago(2)]
        self.assertEqual(TrendGenerator.streaks(sessions, TODAY), {"current": 3, "longest": 3})

    def test_streak_ending_yesterday_counts(self) -> None:
        sessions = [days_ago(1), days_ago(2), days_ago(3)]
        self.assertEqual(TrendGenerator.current_streak(sessions, TODAY), 3)

    def test_streak_broken_two_days_ago(self) -> None:
        sessions = [days_ago(2), days_ago(3), days_ago(4)]
        self.assertEqual(TrendGenerator.streaks(sessions, TODAY), {"current": 0, "longest": 3})

    def test_gap_resets_to_one(self) -> None:
        sessions = [days_ago(0), days_ago(2), days_ago(3)]
        self.assertEqual(TrendGenerator.streaks(sessions, TODAY), {"current": 1, "longest": 2})

    def test_several_sessions_on_one_day(self) -> None:
        sessions = [days_ago(0, duration=60.0), days_ago(0, duration=120.0), days_ago(1)]
        self.assertEqual(TrendGenerator.current_streak(sessions, TODAY), 2)

    def test_empty_history(self) -> None:
        self.assertEqual(TrendGenerator.streaks([], TODAY), {"current": 0, "longest": 0})

    def test_consecutive_days_end_today(self) -> None:
        sessions = [days_ago(n) for n in range(5)]
        self.assertEqual(TrendGenerator.consecutive_days(sessions, TODAY), 5)
        self.assertEqual(TrendGenerator.consecutive_days(sessions[1:], TODAY), 0)


def points(values):
    return [
        ChartPoint(date=f"2024-06-{i + 1:02d}", value=v) for i, v in enumerate(values)
    ]


class ChartDataTestCase(unittest.TestCase):
    def test_points_group_by_sub_period(self) -> None:
        sessions = [days_ago(0), days_ago(6), days_ago(7, duration=3600.0)]
        daily = TrendGenerator.chart_points(sessions, "week", "frequency")
        self.assertEqual([p.date for p in daily], ["2024-06-08", "2024-06-09", "2024-06-15"])
        self.assertEqual(daily[0].label, "1 workout")
        weekly = TrendGenerator.chart_points(sessions, "month", "duration")
        self.assertEqual([p.date for p in weekly], ["2024-06-02", "2024-06-09"])
        self.assertEqual([p.workout_count for p in weekly], [1, 2])
        self.assertEqual(weekly[0].label, "60min")
        self.assertEqual(weekly[1].value, 30)
        monthly = TrendGenerator.chart_points(sessions, "year", "volume")
        self.assertEqual(len(monthly), 1)
        self.assertEqual(monthly[0].date, "2024-06")
        self.assertEqual(monthly[0].label, "1500kg")

    def test_unknown_chart_metric(self) -> None:
        with self.assertRaises(ValueError):
            TrendGenerator.chart_points([], "week", "weight")

    def test_trend_summary(self) -> None:
        up = TrendGenerator.trend_summary([10, 10, 10, 12, 12, 12])
        self.assertEqual(up.trend, "up")
        self.assertAlmostEqual(up.change_percent, 20.0)
        self.assertEqual((up.current, up.previous), (12, 10))
        down = TrendGenerator.trend_summary([10, 10, 10, 8, 8, 8])
        self.assertEqual(down.trend, "down")
        flat = TrendGenerator.trend_summary([10, 10, 10, 10, 10, 10.3])
        self.assertEqual(flat.trend, "stable")
        self.assertEqual(TrendGenerator.trend_summary([1, 2]), TrendSummary())
        self.assertEqual(TrendGenerator.trend_summary([5]), TrendSummary())

    def test_insights_for_steady_growth(self) -> None:
        values = [100, 100, 100, 130, 130, 130]
        summary = TrendGenerator.trend_summary(values)
        insights = TrendGenerator.chart_insights(values, summary, "volume")
        self.assertEqual(
            [i.title for i in insights],
            ["Volume Increasing", "Excellent Consistency", "New Personal Best!"],
        )
        self.assertEqual(insights[0].value, "+30.0%")
        self.assertEqual(insights[1].value, "13.0% variation")
        self.assertEqual(insights[2].value, "130")

    def test_insights_need_three_points(self) -> None:
        insights = TrendGenerator.chart_insights([1, 2], TrendSummary(), "frequency")
        self.assertEqual([i.title for i in insights], ["Need More Data"])

    def test_high_variation_and_zero_series(self) -> None:
        varied = TrendGenerator.chart_insights([0, 0, 90], TrendSummary(), "duration")
        self.assertEqual([(i.type, i.title) for i in varied], [("plateau", "High Variation")])
        self.assertEqual(TrendGenerator.chart_insights([0, 0, 0], TrendSummary(), "volume"), [])

    def test_smooth(self) -> None:
        smoothed = TrendGenerator.smooth(points([1, 2, 3, 4]))
        self.assertEqual([p.value for p in smoothed], [2, 2, 3, 3.5])
        self.assertEqual(smoothed[3].date, "2024-06-04")
        short = points([1, 5])
        self.assertEqual(TrendGenerator.smooth(short), short)

    def test_anomalies(self) -> None:
        found = TrendGenerator.anomalies(points([10, 10, 10, 10, 10, 100]))
        self.assertEqual([p.value for p in found], [100])
        self.assertEqual(TrendGenerator.anomalies(points([1, 100])), [])
        self.assertEqual(TrendGenerator.anomalies(points([5, 5, 5])), [])

    def test_chart_data(self) -> None:
        sessions = [days_ago(n, weight=40.0 + n) for n in range(4)]
        chart = TrendGenerator.chart_data(sessions, "week", "volume")
        self.assertEqual(len(chart.points), 4)
        self.assertEqual(len(chart.smoothed), 4)
        self.assertEqual(chart.summary.min, 400)
        self.assertEqual(chart.summary.max, 430)
        self.assertEqual(chart.summary.total, 1660)
        self.assertEqual(chart.trend.trend, "stable")
        self.assertEqual(chart.insights[0].title, "Excellent Consistency")

    def test_empty_chart(self) -> None:
        chart = TrendGenerator.chart_data([], "month", "frequency")
        self.assertEqual(chart, ChartData())
        self.assertEqual(chart.summary.total, 0)


if __name__ == "__main__":
    unittest.main()
