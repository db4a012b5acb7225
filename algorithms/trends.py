import calendar
import datetime
from typing import Iterable

import numpy as np

from session_schema import (
    ChartData,
    ChartInsight,
    ChartPoint,
    ChartStats,
    ProgressTrend,
    TrendSummary,
    WorkoutSession,
)
from .math_tools import MathTools
from .workout_metrics import WorkoutMetricsCalculator


class TrendGenerator(MathTools):
    """Bucket sessions into calendar periods and compute workout streaks.

    Also prepares chart series with their trend summary and insights. All
    day arithmetic uses UTC calendar days.
    """

    PERIOD_COUNTS: dict[str, int] = {"week": 12, "month": 12, "year": 5}
    METRICS: tuple[str, ...] = ("duration", "volume", "frequency", "weight")
    CHART_METRICS: tuple[str, ...] = ("volume", "frequency", "duration")
    TREND_WINDOW: int = 3
    TREND_THRESHOLD: float = 5.0
    INSIGHT_CHANGE: float = 15.0
    CONSISTENT_CV: float = 20.0
    VARIABLE_CV: float = 50.0
    RECENT_BEST_POINTS: int = 5
    IMPROVEMENT_TIPS: dict[str, str] = {
        "volume": "Great progress! Ensure adequate rest and nutrition to support recovery.",
        "frequency": "Excellent consistency! Monitor recovery and consider periodization.",
        "duration": "Good endurance improvement! Balance with intensity for optimal results.",
    }
    DECLINE_TIPS: dict[str, str] = {
        "volume": "Consider reviewing your program or addressing any recovery issues.",
        "frequency": "Try to maintain consistency. Consider scheduling workouts in advance.",
        "duration": "Focus on workout efficiency or address any time constraints.",
    }

    @classmethod
    def periods(
        cls, timeframe: str, now: datetime.datetime | None = None
    ) -> list[tuple[datetime.date, datetime.date, str]]:
        """Non-overlapping ``(start, end, label)`` ranges, oldest first.

        Weeks are seven-day windows with the newest one ending today, months
        and years are calendar periods ending with the current one.
        """
        if timeframe not in cls.PERIOD_COUNTS:
            raise ValueError(f"unknown timeframe: {timeframe}")
        today = cls.as_utc(now).date()
        count = cls.PERIOD_COUNTS[timeframe]
        result: list[tuple[datetime.date, datetime.date, str]] = []
        if timeframe == "week":
            for i in range(count - 1, -1, -1):
                end = today - datetime.timedelta(days=7 * i)
                start = end - datetime.timedelta(days=6)
                result.append((start, end, f"{start:%b} {start.day}"))
        elif timeframe == "month":
            for i in range(count - 1, -1, -1):
                months = today.year * 12 + today.month - 1 - i
                year, month = divmod(months, 12)
                month += 1
                start = datetime.date(year, month, 1)
                end = datetime.date(year, month, calendar.monthrange(year, month)[1])
                result.append((start, end, f"{start:%b}"))
        else:
            for i in range(count - 1, -1, -1):
                year = today.year - i
                result.append(
                    (datetime.date(year, 1, 1), datetime.date(year, 12, 31), str(year))
                )
        return result

    @classmethod
    def _reduce(cls, sessions: list[WorkoutSession], metric: str) -> float:
        if metric == "duration":
            return sum(s.total_duration_seconds for s in sessions) / 60
        if metric == "volume":
            return sum(WorkoutMetricsCalculator.total_volume(s) for s in sessions)
        if metric == "frequency":
            return float(len(sessions))
        weights = [
            float(st.actual_weight_kg)
            for s in sessions
            for st in WorkoutMetricsCalculator.completed_sets(s)
            if st.actual_weight_kg is not None and st.actual_weight_kg > 0
        ]
        return cls.mean(weights)

    @classmethod
    def generate(
        cls,
        sessions: Iterable[WorkoutSession],
        timeframe: str,
        metric: str,
        now: datetime.datetime | None = None,
    ) -> list[ProgressTrend]:
        """One value per period; empty periods yield 0."""
        if metric not in cls.METRICS:
            raise ValueError(f"unknown metric: {metric}")
        buckets = cls.periods(timeframe, now)
        grouped: list[list[WorkoutSession]] = [[] for _ in buckets]
        for session in sessions:
            if not session.is_completed:
                continue
            day = cls.to_day(session.completed_at)
            for idx, (start, end, _label) in enumerate(buckets):
                if start <= day <= end:
                    grouped[idx].append(session)
                    break
        return [
            ProgressTrend(
                date=start.isoformat(),
                end=end.isoformat(),
                value=cls._reduce(members, metric),
                type=metric,
                label=label,
            )
            for (start, end, label), members in zip(buckets, grouped)
        ]

    @classmethod
    def workout_days(cls, sessions: Iterable[WorkoutSession]) -> list[datetime.date]:
        """Sorted unique UTC days with at least one completed session."""
        return sorted({cls.to_day(s.completed_at) for s in sessions if s.is_completed})

    @classmethod
    def current_streak(
        cls, sessions: Iterable[WorkoutSession], today: datetime.date | None = None
    ) -> int:
        """Consecutive workout days ending today or yesterday."""
        today = today or cls.as_utc(None).date()
        days = [d for d in cls.workout_days(sessions) if d <= today]
        if not days or (today - days[-1]).days > 1:
            return 0
        streak = 1
        for prev, nxt in zip(reversed(days[:-1]), reversed(days[1:])):
            if (nxt - prev).days == 1:
                streak += 1
            else:
                break
        return streak

    @classmethod
    def consecutive_days(
        cls, sessions: Iterable[WorkoutSession], today: datetime.date | None = None
    ) -> int:
        """Days in a row with a workout, ending today."""
        today = today or cls.as_utc(None).date()
        days = set(cls.workout_days(sessions))
        count = 0
        day = today
        while day in days:
            count += 1
            day -= datetime.timedelta(days=1)
        return count

    @classmethod
    def longest_streak(cls, sessions: Iterable[WorkoutSession]) -> int:
        days = cls.workout_days(sessions)
        if not days:
            return 0
        best = cur = 1
        for prev, nxt in zip(days, days[1:]):
            if (nxt - prev).days == 1:
                cur += 1
            else:
                cur = 1
            best = max(best, cur)
        return best

    @classmethod
    def streaks(
        cls, sessions: Iterable[WorkoutSession], today: datetime.date | None = None
    ) -> dict[str, int]:
        """Return current and longest daily workout streaks."""
        sessions = list(sessions)
        return {
            "current": cls.current_streak(sessions, today),
            "longest": cls.longest_streak(sessions),
        }

    @classmethod
    def _chart_key(cls, ts: str, timeframe: str) -> str:
        # one calendar step finer than the timeframe; weeks start on Sunday
        day = cls.to_day(ts)
        if timeframe == "week":
            return day.isoformat()
        if timeframe == "month":
            start = day - datetime.timedelta(days=(day.weekday() + 1) % 7)
            return start.isoformat()
        return f"{day.year}-{day.month:02d}"

    @classmethod
    def chart_points(
        cls, sessions: Iterable[WorkoutSession], timeframe: str, metric: str
    ) -> list[ChartPoint]:
        """One point per non-empty sub-period, ordered by date."""
        if timeframe not in cls.PERIOD_COUNTS:
            raise ValueError(f"unknown timeframe: {timeframe}")
        if metric not in cls.CHART_METRICS:
            raise ValueError(f"unknown metric: {metric}")
        grouped: dict[str, list[WorkoutSession]] = {}
        for session in sessions:
            if not session.is_completed:
                continue
            grouped.setdefault(cls._chart_key(session.completed_at, timeframe), []).append(
                session
            )
        points = []
        for key in sorted(grouped):
            members = grouped[key]
            if metric == "volume":
                value = sum(WorkoutMetricsCalculator.total_volume(s) for s in members)
                label = f"{value:.0f}kg"
            elif metric == "frequency":
                value = float(len(members))
                label = f"{len(members)} workout{'' if len(members) == 1 else 's'}"
            else:
                value = cls.mean(s.total_duration_seconds / 60 for s in members)
                label = f"{cls.round_half_up(value)}min"
            points.append(
                ChartPoint(date=key, value=value, label=label, workout_count=len(members))
            )
        return points

    @classmethod
    def trend_summary(cls, values: list[float]) -> TrendSummary:
        """Mean of the last three values against the three before them."""
        if len(values) < 2:
            return TrendSummary()
        recent = values[-cls.TREND_WINDOW :]
        previous = values[-2 * cls.TREND_WINDOW : -cls.TREND_WINDOW]
        if not previous:
            return TrendSummary()
        current = cls.mean(recent)
        before = cls.mean(previous)
        change = (current - before) / before * 100 if before != 0 else 0.0
        trend = "stable"
        if change > cls.TREND_THRESHOLD:
            trend = "up"
        elif change < -cls.TREND_THRESHOLD:
            trend = "down"
        return TrendSummary(
            trend=trend, current=current, previous=before, change_percent=change
        )

    @classmethod
    def chart_insights(
        cls, values: list[float], summary: TrendSummary, metric: str
    ) -> list[ChartInsight]:
        if len(values) < 3:
            return [
                ChartInsight(
                    type="recommendation",
                    title="Need More Data",
                    description="Complete more workouts to unlock detailed insights and trends.",
                    recommendation="Aim for at least 3 workouts to see meaningful analytics.",
                    priority="medium",
                )
            ]
        insights: list[ChartInsight] = []
        change = summary.change_percent
        if summary.trend == "up" and abs(change) > cls.INSIGHT_CHANGE:
            insights.append(
                ChartInsight(
                    type="improvement",
                    title=f"{metric.capitalize()} Increasing",
                    description=f"Your {metric} has increased by {change:.1f}% recently.",
                    value=f"+{change:.1f}%",
                    recommendation=cls.IMPROVEMENT_TIPS.get(metric, "Keep up the great work!"),
                    priority="high",
                )
            )
        elif summary.trend == "down" and abs(change) > cls.INSIGHT_CHANGE:
            insights.append(
                ChartInsight(
                    type="decline",
                    title=f"{metric.capitalize()} Declining",
                    description=f"Your {metric} has decreased by {abs(change):.1f}% recently.",
                    recommendation=cls.DECLINE_TIPS.get(
                        metric, "Review your training approach and make necessary adjustments."
                    ),
                    priority="high",
                )
            )
        data = np.array(values, dtype=float)
        average = float(data.mean())
        if average > 0:
            variation = float(data.std()) / average * 100
            if variation < cls.CONSISTENT_CV:
                insights.append(
                    ChartInsight(
                        type="milestone",
                        title="Excellent Consistency",
                        description=f"Your {metric} shows great consistency with low variation.",
                        value=f"{variation:.1f}% variation",
                        recommendation="Keep up the consistent training pattern!",
                        priority="medium",
                    )
                )
            elif variation > cls.VARIABLE_CV:
                insights.append(
                    ChartInsight(
                        type="plateau",
                        title="High Variation",
                        description=f"Your {metric} varies significantly between sessions.",
                        recommendation="Consider establishing a more structured routine.",
                        priority="medium",
                    )
                )
        best = float(data.max())
        recent_best = float(data[-cls.RECENT_BEST_POINTS :].max())
        if len(values) > cls.RECENT_BEST_POINTS and best > 0 and recent_best == best:
            insights.append(
                ChartInsight(
                    type="milestone",
                    title="New Personal Best!",
                    description=f"You've achieved a new high in {metric}!",
                    value=f"{best:g}",
                    recommendation="Celebrate this achievement and maintain the momentum!",
                    priority="high",
                )
            )
        return insights

    @staticmethod
    def smooth(points: list[ChartPoint], window: int = 3) -> list[ChartPoint]:
        """Moving average over a window starting ``window // 2`` points back."""
        if window < 1:
            raise ValueError("window must be positive")
        if len(points) < window:
            return list(points)
        values = np.array([p.value for p in points], dtype=float)
        smoothed = []
        for i, point in enumerate(points):
            start = max(0, i - window // 2)
            end = min(len(points), start + window)
            smoothed.append(
                point.model_copy(update={"value": float(values[start:end].mean())})
            )
        return smoothed

    @staticmethod
    def anomalies(points: list[ChartPoint], threshold: float = 2.0) -> list[ChartPoint]:
        """Points further than ``threshold`` standard deviations from the mean."""
        if len(points) < 3:
            return []
        values = np.array([p.value for p in points], dtype=float)
        limit = threshold * float(values.std())
        mean = float(values.mean())
        return [p for p in points if abs(p.value - mean) > limit]

    @classmethod
    def chart_data(
        cls, sessions: Iterable[WorkoutSession], timeframe: str, metric: str
    ) -> ChartData:
        points = cls.chart_points(sessions, timeframe, metric)
        if not points:
            return ChartData()
        values = [p.value for p in points]
        trend = cls.trend_summary(values)
        data = np.array(values, dtype=float)
        return ChartData(
            points=points,
            smoothed=cls.smooth(points),
            anomalies=cls.anomalies(points),
            trend=trend,
            insights=cls.chart_insights(values, trend, metric),
            summary=ChartStats(
                min=float(data.min()),
                max=float(data.max()),
                average=float(data.mean()),
                total=float(data.sum()),
            ),
        )
