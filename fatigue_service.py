from __future__ import annotations
import datetime
import logging
from typing import Iterable, List

from algorithms.math_tools import MathTools
from algorithms.pr_detector import PersonalRecordDetector
from db import AnalyticsLogRepository
from recovery_service import RecoveryService
from session_schema import (
    FatigueAlert,
    FatigueIndicator,
    FatiguePattern,
    FatigueReport,
    RecoveryMetrics,
    WorkoutIntensityData,
    WorkoutSession,
)


logger = logging.getLogger(__name__)


class FatigueDetectionService:
    """Fatigue indicators, overload patterns and alerts.

    Indicators are computed over all completed sessions, newest first. Each
    is a 0-100 value mapped to ``low`` (<25), ``moderate`` (<50), ``high``
    (<75) or ``critical``. Patterns combine the indicator statuses and alerts
    are derived from both, critical first.
    """

    PLANNED_SECONDS_PER_EXERCISE = 45 * 60
    DELOAD_VOLUME = 1500.0
    ALERT_ORDER = {"critical": 0, "warning": 1, "info": 2}

    def __init__(
        self,
        recovery: RecoveryService | None = None,
        log_repo: AnalyticsLogRepository | None = None,
    ) -> None:
        self.recovery = recovery or RecoveryService()
        self.logs = log_repo

    @staticmethod
    def status(value: float) -> str:
        if value < 25:
            return "low"
        if value < 50:
            return "moderate"
        if value < 75:
            return "high"
        return "critical"

    @staticmethod
    def performance(data: WorkoutIntensityData) -> float:
        """Completed volume per hour of training."""
        hours = data.duration / 3600
        if hours <= 0:
            return 0.0
        return data.total_volume * data.completion_rate / 100 / hours

    def performance_decline(self, data: List[WorkoutIntensityData]) -> float:
        if len(data) < 6:
            return 0.0
        recent = MathTools.mean(self.performance(d) for d in data[:3])
        previous = MathTools.mean(self.performance(d) for d in data[3:6])
        if previous == 0:
            return 0.0
        return MathTools.clamp((previous - recent) / previous * 100, 0, 100)

    @staticmethod
    def volume_tolerance(data: List[WorkoutIntensityData]) -> float:
        if len(data) < 4:
            return 0.0
        stress = 0.0
        for i, d in enumerate(data[:4]):
            load = d.total_volume / 1000 * (d.duration / 3600) * (1 - d.completion_rate / 100)
            stress += load * (1 + i * 0.2)
        return min(100.0, stress * 10)

    @staticmethod
    def recovery_rate(data: List[WorkoutIntensityData], metrics: RecoveryMetrics) -> float:
        per_day = len(data[:7]) / 7
        return min(100.0, metrics.fatigue_level / 100 * per_day * 100)

    def motivation(self, data: List[WorkoutIntensityData]) -> float:
        if len(data) < 5:
            return 0.0
        score = 0.0
        for i, d in enumerate(data[:5]):
            planned = d.exercise_count * self.PLANNED_SECONDS_PER_EXERCISE
            ratio = d.duration / planned if planned else 0.0
            score += d.completion_rate / 100 * min(ratio, 1.0) * (1 + i * 0.1)
        return max(0.0, (1 - score / 5) * 100)

    def sleep_quality(self, data: List[WorkoutIntensityData]) -> float:
        """Estimated from the spread of the last three performances."""
        if len(data) < 3:
            return 0.0
        values = [self.performance(d) for d in data[:3]]
        avg = MathTools.mean(values)
        variance = MathTools.mean((v - avg) ** 2 for v in values)
        return min(100.0, variance * 50)

    def indicators(
        self, data: List[WorkoutIntensityData], metrics: RecoveryMetrics
    ) -> list[FatigueIndicator]:
        rows = [
            (
                "performance-decline",
                "Performance Decline",
                self.performance_decline(data),
                "Measures decrease in workout performance over time",
                60,
                "Consider reducing workout intensity or taking rest days",
                "Performance is stable, continue current routine",
            ),
            (
                "volume-tolerance",
                "Volume Tolerance",
                self.volume_tolerance(data),
                "Ability to handle current training volume",
                70,
                "Reduce training volume by 20-30%",
                "Current volume is manageable",
            ),
            (
                "recovery-rate",
                "Recovery Rate",
                self.recovery_rate(data, metrics),
                "How quickly you recover between sessions",
                65,
                "Increase rest time between workouts",
                "Recovery rate is adequate",
            ),
            (
                "motivation-level",
                "Motivation Level",
                self.motivation(data),
                "Psychological readiness and workout completion rates",
                60,
                "Consider varying your routine or taking a deload week",
                "Motivation levels are healthy",
            ),
            (
                "sleep-quality",
                "Sleep Quality (Estimated)",
                self.sleep_quality(data),
                "Estimated sleep quality based on performance patterns",
                50,
                "Focus on improving sleep hygiene and duration",
                "Sleep patterns appear adequate",
            ),
        ]
        return [
            FatigueIndicator(
                id=ident,
                name=name,
                value=value,
                status=self.status(value),
                description=description,
                recommendation=act if value > limit else ok,
            )
            for ident, name, value, description, limit, act, ok in rows
        ]

    @staticmethod
    def affected_muscle_groups(data: List[WorkoutIntensityData]) -> list[str]:
        """Groups trained in more than half of ``data``."""
        counts: dict[str, int] = {}
        for d in data:
            for group in dict.fromkeys(d.muscle_groups):
                counts[group] = counts.get(group, 0) + 1
        return [g for g, n in counts.items() if n > len(data) * 0.5]

    def patterns(
        self, data: List[WorkoutIntensityData], indicators: List[FatigueIndicator]
    ) -> list[FatiguePattern]:
        statuses = [i.status for i in indicators]
        critical = statuses.count("critical")
        high = statuses.count("high")
        moderate = statuses.count("moderate")
        found: list[FatiguePattern] = []
        if high + critical >= 2:
            found.append(
                FatiguePattern(
                    type="overreaching",
                    confidence=min(100, (high + critical) * 25),
                    duration=7,
                    severity="severe" if high + critical >= 3 else "moderate",
                    affected_muscle_groups=self.affected_muscle_groups(data[:7]),
                )
            )
        if critical >= 2 or (critical >= 1 and high >= 2):
            found.append(
                FatiguePattern(
                    type="overtraining",
                    confidence=min(100, critical * 40 + high * 20),
                    duration=14,
                    severity="severe" if critical >= 3 else "moderate",
                    affected_muscle_groups=self.affected_muscle_groups(data[:14]),
                )
            )
        if moderate + high >= 3:
            recent = data[:14]
            volume = MathTools.mean(d.total_volume for d in recent)
            if volume > self.DELOAD_VOLUME:
                found.append(
                    FatiguePattern(
                        type="deload_needed",
                        confidence=min(100, (moderate + high) * 20),
                        duration=7,
                        severity="mild",
                        affected_muscle_groups=self.affected_muscle_groups(recent),
                    )
                )
        return found

    def alerts(
        self,
        indicators: List[FatigueIndicator],
        patterns: List[FatiguePattern],
        now: datetime.datetime | None = None,
    ) -> list[FatigueAlert]:
        stamp = MathTools.as_utc(now).isoformat()
        alerts: list[FatigueAlert] = []
        critical = [i for i in indicators if i.status == "critical"]
        if critical:
            alerts.append(
                FatigueAlert(
                    id="critical-fatigue",
                    type="critical",
                    title="Critical Fatigue Detected",
                    message=f"{len(critical)} critical fatigue indicators detected. Immediate rest recommended.",
                    timestamp=stamp,
                    action_required=True,
                    recommendations=[
                        "Take 2-3 complete rest days",
                        "Focus on sleep and nutrition",
                        "Consider light stretching or walking only",
                        "Consult with a healthcare provider if symptoms persist",
                    ],
                )
            )
        by_type = {p.type: p for p in patterns}
        if "overtraining" in by_type:
            alerts.append(
                FatigueAlert(
                    id="overtraining-warning",
                    type="warning",
                    title="Overtraining Syndrome Risk",
                    message=f"Signs of overtraining detected with {by_type['overtraining'].confidence}% confidence.",
                    timestamp=stamp,
                    action_required=True,
                    recommendations=[
                        "Reduce training volume by 40-50%",
                        "Increase rest days between sessions",
                        "Focus on recovery activities",
                        "Monitor symptoms closely",
                    ],
                )
            )
        if "deload_needed" in by_type:
            alerts.append(
                FatigueAlert(
                    id="deload-recommendation",
                    type="info",
                    title="Deload Week Recommended",
                    message="Your body would benefit from a planned deload week.",
                    timestamp=stamp,
                    action_required=False,
                    recommendations=[
                        "Reduce weights by 40-60% for one week",
                        "Maintain movement patterns but lower intensity",
                        "Focus on mobility and recovery work",
                        "Return to normal intensity after deload week",
                    ],
                )
            )
        decline = next((i for i in indicators if i.id == "performance-decline"), None)
        if decline is not None and decline.value > 70:
            alerts.append(
                FatigueAlert(
                    id="performance-decline",
                    type="warning",
                    title="Performance Decline Detected",
                    message="Your workout performance has been declining recently.",
                    timestamp=stamp,
                    action_required=True,
                    recommendations=[
                        "Review your current training program",
                        "Ensure adequate nutrition and hydration",
                        "Consider reducing training frequency",
                        "Evaluate sleep quality and stress levels",
                    ],
                )
            )
        return sorted(alerts, key=lambda a: self.ALERT_ORDER[a.type])

    def analyze(
        self, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> FatigueReport:
        """Indicators, patterns and alerts for ``sessions``.

        The recovery snapshot used for the recovery-rate indicator is computed
        without being stored.
        """
        sessions = list(sessions)
        try:
            ordered = PersonalRecordDetector.chronological(sessions)
            ordered.reverse()
            data = [self.recovery.intensity_data(s) for s in ordered]
            metrics = self.recovery.compute(sessions, now)
            indicators = self.indicators(data, metrics)
            patterns = self.patterns(data, indicators)
            report = FatigueReport(
                indicators=indicators,
                patterns=patterns,
                alerts=self.alerts(indicators, patterns, now),
            )
            if self.logs is not None:
                self.logs.log_success("fatigue.analyze")
        except Exception as e:
            if self.logs is not None:
                self.logs.log_error("fatigue.analyze", str(e))
            raise
        logger.debug(
            "fatigue analysis: %d patterns, %d alerts",
            len(report.patterns),
            len(report.alerts),
        )
        return report
