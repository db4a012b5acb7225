from __future__ import annotations
import calendar
import csv
import datetime
import io
import json
import logging
from typing import Iterable

from algorithms.exercise_progress import ExerciseProgressTracker
from algorithms.math_tools import MathTools
from algorithms.pr_detector import PersonalRecordDetector
from algorithms.trends import TrendGenerator
from algorithms.workout_metrics import WorkoutMetricsCalculator
from db import AnalyticsLogRepository
from session_schema import WorkoutAnalytics, WorkoutSession


logger = logging.getLogger(__name__)


class StatisticsService:
    """Compute workout statistics for analysis."""

    EXPORT_FORMATS = ("csv", "json")
    CSV_HEADER = [
        "Date",
        "Workout Name",
        "Duration (minutes)",
        "Exercise",
        "Sets",
        "Reps",
        "Weight (kg)",
        "Volume (kg)",
        "Rest (seconds)",
    ]

    def __init__(self, log_repo: AnalyticsLogRepository | None = None) -> None:
        self.logs = log_repo

    @staticmethod
    def _month_before(now: datetime.datetime) -> datetime.datetime:
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)

    def workout_analytics(
        self, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> WorkoutAnalytics:
        """Totals, streaks, favorites, recent PRs, trends and per-exercise metrics."""
        now = MathTools.as_utc(now)
        completed = [s for s in sessions if s.is_completed]
        total = len(completed)
        duration = sum(s.total_duration_seconds for s in completed)
        week_start = now - datetime.timedelta(days=7)
        month_start = self._month_before(now)
        finished = [MathTools.parse_timestamp(s.completed_at) for s in completed]
        streaks = TrendGenerator.streaks(completed, now.date())
        summary = WorkoutAnalytics(
            total_workouts=total,
            total_duration=duration,
            total_volume=sum(WorkoutMetricsCalculator.total_volume(s) for s in completed),
            total_sets=sum(WorkoutMetricsCalculator.total_sets(s) for s in completed),
            total_reps=sum(WorkoutMetricsCalculator.total_reps(s) for s in completed),
            average_workout_duration=duration / total if total else 0.0,
            workouts_this_week=len([t for t in finished if t >= week_start]),
            workouts_this_month=len([t for t in finished if t >= month_start]),
            current_streak=streaks["current"],
            longest_streak=streaks["longest"],
            favorite_exercises=ExerciseProgressTracker.favorite_exercises(completed),
            recent_prs=PersonalRecordDetector.recent_records(completed, now=now),
            weekly_trends=TrendGenerator.generate(completed, "week", "duration", now),
            monthly_trends=TrendGenerator.generate(completed, "month", "duration", now),
            exercise_progress=ExerciseProgressTracker.calculate_all(completed, now),
        )
        if self.logs is not None:
            self.logs.log_success("analytics.summary")
        return summary

    @staticmethod
    def _number(value: float | int | None) -> int | float:
        value = value or 0
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    def export_csv(self, sessions: Iterable[WorkoutSession]) -> str:
        """One row per completed set."""
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(self.CSV_HEADER)
        for session in sessions:
            minutes = MathTools.round_half_up(session.total_duration_seconds / 60)
            for entry in session.exercises:
                for s in entry.sets:
                    if not s.is_completed:
                        continue
                    writer.writerow(
                        [
                            session.date,
                            session.workout_name,
                            minutes,
                            entry.exercise_name,
                            1,
                            self._number(s.actual_reps),
                            self._number(s.actual_weight_kg),
                            self._number(WorkoutMetricsCalculator.set_volume(s)),
                            self._number(s.rest_duration_seconds),
                        ]
                    )
        return output.getvalue()

    def export_json(self, sessions: Iterable[WorkoutSession]) -> str:
        return json.dumps([s.model_dump(mode="json") for s in sessions], indent=2)

    def export(self, sessions: Iterable[WorkoutSession], fmt: str = "json") -> str:
        if fmt not in self.EXPORT_FORMATS:
            raise ValueError(f"unsupported export format: {fmt}")
        sessions = list(sessions)
        logger.info("exporting %d sessions as %s", len(sessions), fmt)
        if fmt == "csv":
            return self.export_csv(sessions)
        return self.export_json(sessions)
