from __future__ import annotations
import datetime
import logging
import sqlite3
from typing import Iterable, List, Optional

from algorithms.math_tools import MathTools
from algorithms.pr_detector import PersonalRecordDetector
from algorithms.trends import TrendGenerator
from algorithms.workout_metrics import WorkoutMetricsCalculator
from db import AnalyticsLogRepository, RecoveryHistoryRepository
from session_schema import (
    RecoveryInsight,
    RecoveryMetrics,
    WorkoutIntensityData,
    WorkoutSession,
)


logger = logging.getLogger(__name__)

# ValueError covers a stored history that no longer decodes
HISTORY_ERRORS = (sqlite3.Error, OSError, ValueError)


class RecoveryService:
    """Fatigue and recovery model over the recent training window.

    Every call recomputes the snapshot from the supplied sessions. The only
    durable state is the recovery history, reached through the injected
    repository; storage failures are logged and never abort the analysis.
    """

    WINDOW_DAYS = 14
    FATIGUE_SESSIONS = 7
    RECENT_SESSIONS = 3
    TREND_SESSIONS = 3
    EXERTION_WEIGHT = 40.0
    VOLUME_POINTS = 30.0
    VOLUME_REFERENCE = 2000.0
    FREQUENCY_POINTS = 30.0
    MUSCLE_EXERTION_WEIGHT = 60.0
    MUSCLE_FREQUENCY_WEIGHT = 40.0
    REST_DAY_BONUS = 10.0
    COMPLETION_POINTS = 10.0
    PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

    def __init__(
        self,
        history_repo: RecoveryHistoryRepository | None = None,
        log_repo: AnalyticsLogRepository | None = None,
        window_days: int | None = None,
    ) -> None:
        self.history = history_repo
        self.logs = log_repo
        self.window_days = window_days or self.WINDOW_DAYS

    @staticmethod
    def intensity_data(session: WorkoutSession) -> WorkoutIntensityData:
        groups: dict[str, None] = {}
        for entry in session.exercises:
            for group in entry.muscle_groups:
                groups.setdefault(group, None)
        planned = sum(len(entry.sets) for entry in session.exercises)
        completed = WorkoutMetricsCalculator.total_sets(session)
        volume = WorkoutMetricsCalculator.total_volume(session)
        completion = completed / planned * 100 if planned else 0.0
        duration = session.total_duration_seconds
        exertion = (
            min(volume / 1000, 10) * min(duration / 3600, 2) * (completion / 100) + 1
        )
        return WorkoutIntensityData(
            date=session.date,
            total_volume=volume,
            duration=duration,
            exercise_count=len(session.exercises),
            muscle_groups=list(groups),
            perceived_exertion=min(10, MathTools.round_half_up(exertion)),
            completion_rate=completion,
        )

    def recent_sessions(
        self, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> list[WorkoutSession]:
        """Completed sessions of the window, newest first."""
        today = MathTools.as_utc(now).date()
        start = today - datetime.timedelta(days=self.window_days - 1)
        recent = [
            s
            for s in PersonalRecordDetector.chronological(sessions)
            if start <= MathTools.to_day(s.date) <= today
        ]
        recent.reverse()
        return recent

    def fatigue_level(self, data: List[WorkoutIntensityData]) -> int:
        week = data[: self.FATIGUE_SESSIONS]
        if not week:
            return 0
        avg_exertion = MathTools.mean(d.perceived_exertion for d in week)
        avg_volume = MathTools.mean(d.total_volume for d in week)
        per_day = len(week) / 7
        score = (
            self.EXERTION_WEIGHT * avg_exertion / 10
            + min(self.VOLUME_POINTS, self.VOLUME_POINTS * avg_volume / self.VOLUME_REFERENCE)
            + min(self.FREQUENCY_POINTS, self.FREQUENCY_POINTS * per_day)
        )
        return int(MathTools.clamp(MathTools.round_half_up(score), 0, 100))

    def muscle_group_fatigue(self, data: List[WorkoutIntensityData]) -> dict[str, int]:
        workloads: dict[str, list[int]] = {}
        for d in data[: self.FATIGUE_SESSIONS]:
            for group in d.muscle_groups:
                workloads.setdefault(group, []).append(d.perceived_exertion)
        fatigue: dict[str, int] = {}
        for group, loads in workloads.items():
            score = (
                self.MUSCLE_EXERTION_WEIGHT * MathTools.mean(loads) / 10
                + self.MUSCLE_FREQUENCY_WEIGHT * len(loads) / 7
            )
            fatigue[group] = int(MathTools.clamp(MathTools.round_half_up(score), 0, 100))
        return fatigue

    def recovery_score(
        self,
        fatigue: int,
        data: List[WorkoutIntensityData],
        now: datetime.datetime | None = None,
    ) -> int:
        """Inverse fatigue plus bonuses for rest days and completed sets."""
        today = MathTools.as_utc(now).date()
        last_days = [
            d for d in data if 0 <= (today - MathTools.to_day(d.date)).days < 3
        ]
        rest_bonus = self.REST_DAY_BONUS * (3 - min(len(last_days), 3))
        newest = data[: self.RECENT_SESSIONS]
        completion = MathTools.mean((d.completion_rate for d in newest), default=100.0)
        score = (100 - fatigue) + rest_bonus + self.COMPLETION_POINTS * completion / 100
        return int(MathTools.clamp(MathTools.round_half_up(score), 0, 100))

    @staticmethod
    def recommended_rest_days(fatigue: int) -> int:
        if fatigue < 30:
            return 0
        if fatigue < 50:
            return 1
        if fatigue < 75:
            return 2
        return 3

    @staticmethod
    def next_workout_intensity(fatigue: int, recovery: int) -> str:
        if fatigue > 70 or recovery < 40:
            return "light"
        if fatigue > 50 or recovery < 70:
            return "moderate"
        return "high"

    def recovery_trend(self, data: List[WorkoutIntensityData]) -> str:
        n = self.TREND_SESSIONS
        if len(data) < 2 * n:
            return "stable"
        recent, previous = data[:n], data[n : 2 * n]
        recent_exertion = MathTools.mean(d.perceived_exertion for d in recent)
        previous_exertion = MathTools.mean(d.perceived_exertion for d in previous)
        recent_completion = MathTools.mean(d.completion_rate for d in recent)
        previous_completion = MathTools.mean(d.completion_rate for d in previous)
        if recent_exertion < previous_exertion and recent_completion > previous_completion:
            return "improving"
        if recent_exertion > previous_exertion and recent_completion < previous_completion:
            return "declining"
        return "stable"

    def compute(
        self, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> RecoveryMetrics:
        """Derive a snapshot without touching the history store."""
        data = [self.intensity_data(s) for s in self.recent_sessions(sessions, now)]
        fatigue = self.fatigue_level(data)
        recovery = self.recovery_score(fatigue, data, now)
        return RecoveryMetrics(
            fatigue_level=fatigue,
            recovery_score=recovery,
            muscle_group_fatigue=self.muscle_group_fatigue(data),
            recommended_rest_days=self.recommended_rest_days(fatigue),
            next_workout_intensity=self.next_workout_intensity(fatigue, recovery),
            recovery_trend=self.recovery_trend(data),
        )

    def _log_error(self, operation: str, message: str) -> None:
        if self.logs is None:
            return
        try:
            self.logs.log_error(operation, message)
        except HISTORY_ERRORS as e:
            logger.warning("could not record %s failure: %s", operation, e)

    def _persist(self, metrics: RecoveryMetrics, now: datetime.datetime | None) -> None:
        if self.history is not None:
            self.history.append(metrics, now)
        if self.logs is not None:
            self.logs.log_success("recovery.analyze")

    def analyze(
        self, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> RecoveryMetrics:
        """Compute metrics and append them to the history.

        A failing history store is logged and the metrics are still returned.
        """
        metrics = self.compute(sessions, now)
        try:
            self._persist(metrics, now)
        except HISTORY_ERRORS as e:
            logger.warning("recovery history save failed: %s", e)
            self._log_error("recovery.analyze", str(e))
        return metrics

    def analyze_safely(
        self, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> Optional[RecoveryMetrics]:
        """Like :meth:`analyze` but ``None`` when the history store fails."""
        metrics = self.compute(sessions, now)
        try:
            self._persist(metrics, now)
        except HISTORY_ERRORS as e:
            logger.error("recovery metrics unavailable: %s", e)
            self._log_error("recovery.analyze", str(e))
            return None
        return metrics

    def insights(
        self,
        metrics: RecoveryMetrics,
        sessions: Iterable[WorkoutSession] = (),
        now: datetime.datetime | None = None,
    ) -> list[RecoveryInsight]:
        insights: list[RecoveryInsight] = []
        if metrics.fatigue_level > 75:
            insights.append(
                RecoveryInsight(
                    id="high-fatigue-warning",
                    type="warning",
                    title="High Fatigue Detected",
                    description="Your body is showing signs of high fatigue. Consider taking 1-2 rest days.",
                    actionable=True,
                    priority="high",
                )
            )
        for group, fatigue in metrics.muscle_group_fatigue.items():
            if fatigue > 80:
                insights.append(
                    RecoveryInsight(
                        id=f"muscle-fatigue-{group}",
                        type="warning",
                        title=f"{group} Overtraining",
                        description=f"Your {group.lower()} muscles need extra recovery time.",
                        actionable=True,
                        priority="medium",
                        muscle_groups=[group],
                    )
                )
        consecutive = TrendGenerator.consecutive_days(
            sessions, MathTools.as_utc(now).date()
        )
        if consecutive >= 5:
            insights.append(
                RecoveryInsight(
                    id="consecutive-days-warning",
                    type="warning",
                    title="Too Many Consecutive Days",
                    description=f"You've worked out {consecutive} days in a row. Consider a rest day.",
                    actionable=True,
                    priority="medium",
                )
            )
        if metrics.recovery_trend == "declining":
            insights.append(
                RecoveryInsight(
                    id="declining-recovery",
                    type="suggestion",
                    title="Recovery Trend Declining",
                    description="Your recovery is getting worse. Focus on sleep, nutrition, and lighter workouts.",
                    actionable=True,
                    priority="medium",
                )
            )
        if metrics.recovery_score > 80 and metrics.fatigue_level < 30:
            insights.append(
                RecoveryInsight(
                    id="excellent-recovery",
                    type="positive",
                    title="Excellent Recovery Status",
                    description="You're well-recovered and ready for an intense workout!",
                    actionable=False,
                    priority="low",
                )
            )
        if metrics.fatigue_level > 60:
            insights.append(
                RecoveryInsight(
                    id="sleep-suggestion",
                    type="suggestion",
                    title="Prioritize Sleep",
                    description="Aim for 7-9 hours of quality sleep to improve recovery.",
                    actionable=True,
                    priority="medium",
                )
            )
        # sorted() is stable so equal priorities keep rule order
        return sorted(insights, key=lambda i: self.PRIORITY_ORDER[i.priority])

    def trend_data(
        self, days: int = 14, now: datetime.datetime | None = None
    ) -> list[dict]:
        """History points of the last ``days`` days, oldest first."""
        if self.history is None:
            return []
        try:
            entries = self.history.entries_since(days, now)
        except HISTORY_ERRORS as e:
            logger.warning("recovery history read failed: %s", e)
            self._log_error("recovery.trend_data", str(e))
            return []
        points = [
            {
                "date": e["timestamp"],
                "fatigue_level": e.get("fatigue_level", 0),
                "recovery_score": e.get("recovery_score", 0),
            }
            for e in entries
        ]
        points.sort(key=lambda p: MathTools.parse_timestamp(p["date"]))
        return points

    def clear_history(self) -> None:
        """Delete every stored snapshot."""
        if self.history is None:
            return
        self.history.clear()
        logger.info("recovery history cleared")
