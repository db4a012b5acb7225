from session_schema import SetRecord, WorkoutMetrics, WorkoutSession
from .math_tools import MathTools


class WorkoutMetricsCalculator(MathTools):
    """Per-session metrics derived from completed sets only."""

    INTENSITY_DIVISOR: float = 50.0
    INTENSITY_MIN: float = 0.5
    INTENSITY_MAX: float = 2.0
    CALORIES_PER_MINUTE: float = 8.0
    DURATION_CAP_SECONDS: float = 3600.0
    VOLUME_CAP: float = 10000.0
    SETS_CAP: float = 30.0
    REST_RATIO_CAP: float = 0.5
    FACTOR_POINTS: float = 25.0

    @staticmethod
    def completed_sets(session: WorkoutSession) -> list[SetRecord]:
        return [s for ex in session.exercises for s in ex.sets if s.is_completed]

    @staticmethod
    def set_volume(s: SetRecord) -> float:
        return (s.actual_weight_kg or 0) * (s.actual_reps or 0)

    @classmethod
    def total_volume(cls, session: WorkoutSession) -> float:
        return cls.volume(
            (s.actual_reps, s.actual_weight_kg) for s in cls.completed_sets(session)
        )

    @classmethod
    def total_sets(cls, session: WorkoutSession) -> int:
        return len(cls.completed_sets(session))

    @classmethod
    def total_reps(cls, session: WorkoutSession) -> int:
        return sum(s.actual_reps or 0 for s in cls.completed_sets(session))

    @classmethod
    def intensity_factor(cls, session: WorkoutSession) -> float:
        """Volume per minute scaled into [0.5, 2.0]; 1.0 without usable data."""
        completed = cls.completed_sets(session)
        if not completed or session.total_duration_seconds <= 0:
            return 1.0
        per_minute = cls.total_volume(session) / (session.total_duration_seconds / 60)
        return cls.clamp(
            per_minute / cls.INTENSITY_DIVISOR, cls.INTENSITY_MIN, cls.INTENSITY_MAX
        )

    @classmethod
    def intensity_score(cls, session: WorkoutSession) -> int:
        completed = cls.completed_sets(session)
        if not completed:
            return 0
        duration = session.total_duration_seconds
        duration_factor = min(duration / cls.DURATION_CAP_SECONDS, 1.0)
        volume_factor = min(cls.total_volume(session) / cls.VOLUME_CAP, 1.0)
        sets_factor = min(len(completed) / cls.SETS_CAP, 1.0)
        if duration > 0:
            rest_ratio = min(session.total_rest_seconds / duration, cls.REST_RATIO_CAP)
        else:
            rest_ratio = cls.REST_RATIO_CAP
        density_factor = 1 - rest_ratio
        score = (
            duration_factor + volume_factor + sets_factor + density_factor
        ) * cls.FACTOR_POINTS
        return cls.round_half_up(score)

    @classmethod
    def calories_burned(cls, session: WorkoutSession) -> int:
        """Rough estimate; not a physiological model."""
        minutes = session.total_duration_seconds / 60
        return cls.round_half_up(
            minutes * cls.CALORIES_PER_MINUTE * cls.intensity_factor(session)
        )

    @classmethod
    def calculate(cls, session: WorkoutSession) -> WorkoutMetrics:
        completed = cls.completed_sets(session)
        rests = [s.rest_duration_seconds or 0 for s in completed]
        return WorkoutMetrics(
            total_duration=session.total_duration_seconds,
            total_volume=cls.total_volume(session),
            total_sets=len(completed),
            total_reps=cls.total_reps(session),
            average_rest_time=cls.mean(rests),
            calories_burned=cls.calories_burned(session),
            intensity_score=cls.intensity_score(session),
        )
