import datetime
from typing import Iterable, Optional

from session_schema import PersonalRecord, UserProfile, WorkoutSession
from .exercise_progress import ExerciseProgressTracker
from .math_tools import MathTools
from .pr_detector import PersonalRecordDetector
from .workout_metrics import WorkoutMetricsCalculator


class PatternAnalysis(MathTools):
    """Training-pattern heuristics feeding the recommendation generator."""

    MUSCLE_GROUPS: tuple[str, ...] = ("Chest", "Back", "Shoulders", "Arms", "Legs", "Core")
    NEGLECT_DAYS: int = 7
    MIN_FREQUENCY: int = 2
    HIGH_INTENSITY: float = 7.0
    OVERLOAD_INTENSITY: float = 8.0
    HIGH_INTENSITY_SESSIONS: int = 3
    INTENSITY_WINDOW: int = 5
    PLATEAU_MIN_SESSIONS: int = 6
    PLATEAU_PR_DAYS: int = 28

    @staticmethod
    def infer_muscle_group(exercise_name: str) -> str:
        name = exercise_name.lower()
        if "chest" in name or "bench" in name or "push" in name:
            return "Chest"
        if "back" in name or "row" in name or "pull" in name:
            return "Back"
        if "shoulder" in name or "press" in name:
            return "Shoulders"
        if "leg" in name or "squat" in name:
            return "Legs"
        if "arm" in name or "bicep" in name or "tricep" in name:
            return "Arms"
        if "core" in name or "ab" in name:
            return "Core"
        return "Full Body"

    @classmethod
    def muscle_group_patterns(
        cls, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> dict:
        """Coverage per muscle group and the groups that need attention.

        A group needs attention when it was not trained in the last seven
        days or when fewer than two sessions ever trained it.
        """
        now = cls.as_utc(now)
        analysis: list[dict] = []
        completed = PersonalRecordDetector.chronological(sessions)
        for group in cls.MUSCLE_GROUPS:
            key = group.lower()
            frequency = 0
            volume = 0.0
            last: Optional[datetime.datetime] = None
            for session in completed:
                entries = [
                    e
                    for e in session.exercises
                    if key in (m.lower() for m in e.muscle_groups)
                ]
                if not entries:
                    continue
                frequency += 1
                when = cls.parse_timestamp(session.date)
                if last is None or when > last:
                    last = when
                volume += cls.volume(
                    (s.actual_reps, s.actual_weight_kg)
                    for e in entries
                    for s in e.sets
                    if s.is_completed
                )
            days_since = (now - last).days if last is not None else None
            needs = (
                days_since is None
                or days_since > cls.NEGLECT_DAYS
                or frequency < cls.MIN_FREQUENCY
            )
            analysis.append(
                {
                    "muscle_group": group,
                    "frequency": frequency,
                    "last_worked": last.isoformat() if last is not None else "",
                    "average_volume": volume / frequency if frequency else 0.0,
                    "needs_attention": needs,
                }
            )
        needs_attention = [a["muscle_group"] for a in analysis if a["needs_attention"]]
        return {
            "analysis": analysis,
            "needs_attention": needs_attention,
            "balanced": len(needs_attention) <= 1,
        }

    @staticmethod
    def session_intensity(session: WorkoutSession) -> float:
        """0-10 score from volume and sets per minute."""
        minutes = session.total_duration_seconds / 60
        if minutes <= 0:
            return 0.0
        volume = WorkoutMetricsCalculator.total_volume(session)
        sets = WorkoutMetricsCalculator.total_sets(session)
        return min(10.0, volume / minutes / 100 + sets / minutes * 2)

    @classmethod
    def intensity_patterns(cls, sessions: Iterable[WorkoutSession]) -> dict:
        completed = PersonalRecordDetector.chronological(sessions)
        if not completed:
            return {
                "average_intensity": 0.0,
                "intensity_trend": "stable",
                "recovery_needed": False,
            }
        scores = [cls.session_intensity(s) for s in completed]
        average = cls.mean(scores)
        window = cls.INTENSITY_WINDOW
        recent = scores[-window:]
        older = scores[-2 * window : -window]
        trend = "stable"
        if recent and older:
            recent_avg = cls.mean(recent)
            older_avg = cls.mean(older)
            if recent_avg > older_avg * 1.1:
                trend = "increasing"
            elif recent_avg < older_avg * 0.9:
                trend = "decreasing"
        high = len([s for s in recent if s > cls.HIGH_INTENSITY])
        return {
            "average_intensity": average,
            "intensity_trend": trend,
            "recovery_needed": high >= cls.HIGH_INTENSITY_SESSIONS
            or average > cls.OVERLOAD_INTENSITY,
        }

    @classmethod
    def plateau_exercises(
        cls,
        sessions: Iterable[WorkoutSession],
        personal_records: Optional[list[PersonalRecord]] = None,
        now: datetime.datetime | None = None,
    ) -> list[str]:
        """Exercises with a stable trend over two full windows and no recent PR."""
        sessions = list(sessions)
        records = (
            personal_records
            if personal_records is not None
            else PersonalRecordDetector.detect(sessions)
        )
        cutoff = cls.as_utc(now) - datetime.timedelta(days=cls.PLATEAU_PR_DAYS)
        recent_pr = {
            r.exercise_name.lower()
            for r in records
            if cls.parse_timestamp(r.date) >= cutoff
        }
        result: list[str] = []
        for name in ExerciseProgressTracker.exercise_names(sessions):
            metrics = ExerciseProgressTracker.calculate(sessions, name)
            if metrics.session_count < cls.PLATEAU_MIN_SESSIONS:
                continue
            if metrics.progress_trend != "stable":
                continue
            if name.lower() in recent_pr:
                continue
            result.append(name)
        return result

    @classmethod
    def user_profile(cls, sessions: Iterable[WorkoutSession]) -> UserProfile:
        """Infer a profile from history; defaults when there is none."""
        completed = PersonalRecordDetector.chronological(sessions)
        if not completed:
            return UserProfile()
        total = len(completed)
        avg_exercises = cls.mean(len(s.exercises) for s in completed)
        avg_minutes = cls.mean(s.total_duration_seconds / 60 for s in completed)
        level = "beginner"
        if total > 50 and avg_exercises > 6 and avg_minutes > 60:
            level = "advanced"
        elif total > 20 and avg_exercises > 4 and avg_minutes > 45:
            level = "intermediate"
        equipment: dict[str, None] = {}
        for s in completed:
            for e in s.exercises:
                for item in e.equipment:
                    equipment.setdefault(item, None)
        first = cls.parse_timestamp(completed[0].date)
        last = cls.parse_timestamp(completed[-1].date)
        weeks = (last - first).total_seconds() / (7 * 24 * 3600) if total > 1 else 1.0
        frequency = cls.round_half_up(total / weeks) if weeks > 0 else total
        return UserProfile(
            fitness_level=level,
            available_time=cls.round_half_up(avg_minutes) or UserProfile().available_time,
            equipment_access=list(equipment) or ["bodyweight"],
            workout_frequency=int(cls.clamp(frequency, 1, 7)),
        )
