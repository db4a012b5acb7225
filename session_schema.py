from __future__ import annotations
import datetime
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


TrendDirection = Literal["up", "down", "stable"]
RecordType = Literal["weight", "reps", "volume", "duration"]
MetricType = Literal["weight", "volume", "duration", "frequency"]
Timeframe = Literal["week", "month", "year"]
IntensityTier = Literal["light", "moderate", "high"]
RecoveryTrend = Literal["improving", "stable", "declining"]
Priority = Literal["high", "medium", "low"]
FitnessLevel = Literal["beginner", "intermediate", "advanced"]


def _check_iso(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"invalid ISO-8601 timestamp: {value}")
    return value


class SetRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_completed: bool = False
    actual_reps: Optional[int] = None
    actual_weight_kg: Optional[float] = None
    actual_duration_seconds: Optional[float] = None
    rest_duration_seconds: Optional[float] = None


class ExerciseEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    exercise_name: str
    muscle_groups: tuple[str, ...] = ()
    equipment: tuple[str, ...] = ()
    sets: tuple[SetRecord, ...] = ()


class WorkoutSession(BaseModel):
    """A finished (or in-progress) workout as supplied by the history store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    workout_name: str = ""
    started_at: str
    completed_at: Optional[str] = None
    exercises: tuple[ExerciseEntry, ...] = ()
    total_duration_seconds: float = 0.0
    total_rest_seconds: float = 0.0

    @field_validator("started_at")
    @classmethod
    def _started(cls, value: str) -> str:
        if not value:
            raise ValueError("started_at is required")
        return _check_iso(value)

    @field_validator("completed_at")
    @classmethod
    def _completed(cls, value: Optional[str]) -> Optional[str]:
        return _check_iso(value)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def date(self) -> str:
        """Completion timestamp, falling back to the start time."""
        return self.completed_at or self.started_at


class PersonalRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    exercise_name: str
    type: RecordType
    value: float
    date: str
    previous_best: Optional[float] = None
    improvement: Optional[float] = None


class WorkoutMetrics(BaseModel):
    total_duration: float
    total_volume: float
    total_sets: int
    total_reps: int
    average_rest_time: float
    calories_burned: int
    intensity_score: int


class ExerciseMetrics(BaseModel):
    name: str
    total_sets: int = 0
    total_reps: int = 0
    total_volume: float = 0.0
    max_weight: float = 0.0
    average_weight: float = 0.0
    progress_trend: TrendDirection = "stable"
    last_performed: str = ""
    personal_records: list[PersonalRecord] = []
    session_count: int = 0
    average_reps: float = 0.0
    average_volume: float = 0.0
    best_reps: int = 0
    best_volume: float = 0.0
    progress_score: int = Field(default=0, ge=0, le=100)


class ProgressTrend(BaseModel):
    date: str
    end: str
    value: float
    type: MetricType
    label: str


class ChartPoint(BaseModel):
    date: str
    value: float
    label: str = ""
    workout_count: int = 0


class TrendSummary(BaseModel):
    trend: TrendDirection = "stable"
    current: float = 0.0
    previous: float = 0.0
    change_percent: float = 0.0


class ChartInsight(BaseModel):
    type: Literal["improvement", "decline", "milestone", "plateau", "recommendation"]
    title: str
    description: str
    value: Optional[str] = None
    recommendation: Optional[str] = None
    priority: Priority = "medium"


class ChartStats(BaseModel):
    min: float = 0.0
    max: float = 0.0
    average: float = 0.0
    total: float = 0.0


class ChartData(BaseModel):
    """Chart-ready series with its smoothed line, outliers and insights."""

    points: list[ChartPoint] = []
    smoothed: list[ChartPoint] = []
    anomalies: list[ChartPoint] = []
    trend: TrendSummary = TrendSummary()
    insights: list[ChartInsight] = []
    summary: ChartStats = ChartStats()


class WorkoutIntensityData(BaseModel):
    date: str
    total_volume: float
    duration: float
    exercise_count: int
    muscle_groups: list[str]
    perceived_exertion: int
    completion_rate: float


class RecoveryMetrics(BaseModel):
    fatigue_level: int
    recovery_score: int
    muscle_group_fatigue: dict[str, int]
    recommended_rest_days: int
    next_workout_intensity: IntensityTier
    recovery_trend: RecoveryTrend


class RecoveryInsight(BaseModel):
    id: str
    type: Literal["warning", "suggestion", "positive"]
    title: str
    description: str
    actionable: bool
    priority: Priority
    muscle_groups: list[str] = []


FatigueStatus = Literal["low", "moderate", "high", "critical"]


class FatigueIndicator(BaseModel):
    id: str
    name: str
    value: float = Field(ge=0, le=100)
    status: FatigueStatus
    description: str
    recommendation: str


class FatiguePattern(BaseModel):
    type: Literal["overreaching", "overtraining", "normal", "deload_needed"]
    confidence: int = Field(ge=0, le=100)
    duration: int
    severity: Literal["mild", "moderate", "severe"]
    affected_muscle_groups: list[str] = []


class FatigueAlert(BaseModel):
    id: str
    type: Literal["warning", "critical", "info"]
    title: str
    message: str
    timestamp: str
    action_required: bool
    recommendations: list[str] = []


class FatigueReport(BaseModel):
    indicators: list[FatigueIndicator]
    patterns: list[FatiguePattern]
    alerts: list[FatigueAlert]


class RecommendedExercise(BaseModel):
    name: str
    category: Literal["strength", "cardio", "flexibility", "recovery"]
    muscle_groups: list[str]
    sets: int
    reps: list[int]
    rest_seconds: int
    duration: Optional[int] = None
    notes: Optional[str] = None
    confidence: int


class RecommendationSource(BaseModel):
    type: Literal[
        "workout_history",
        "personal_records",
        "user_preferences",
        "recovery_pattern",
        "progress_trend",
        "variety_need",
    ]
    description: str
    weight: float = Field(ge=0.0, le=1.0)


class WorkoutRecommendation(BaseModel):
    id: str
    title: str
    description: str
    confidence: int = Field(ge=0, le=100)
    reasoning: list[str]
    estimated_duration: int
    difficulty: FitnessLevel
    workout_type: Literal["strength", "cardio", "flexibility", "mixed"]
    target_muscle_groups: list[str]
    exercises: list[RecommendedExercise]
    tags: list[str] = []
    priority: Priority
    created_at: str
    based_on: list[RecommendationSource] = Field(min_length=1)


class WorkoutAnalytics(BaseModel):
    """Dashboard summary over the completed sessions."""

    total_workouts: int
    total_duration: float
    total_volume: float
    total_sets: int
    total_reps: int
    average_workout_duration: float
    workouts_this_week: int
    workouts_this_month: int
    current_streak: int
    longest_streak: int
    favorite_exercises: list[dict]
    recent_prs: list[PersonalRecord]
    weekly_trends: list[ProgressTrend]
    monthly_trends: list[ProgressTrend]
    exercise_progress: dict[str, ExerciseMetrics]


class UserProfile(BaseModel):
    fitness_level: FitnessLevel = "beginner"
    available_time: int = 45
    preferred_workout_types: list[str] = ["strength"]
    equipment_access: list[str] = ["bodyweight"]
    workout_frequency: int = 3


def parse_sessions(raw: Iterable[dict | WorkoutSession]) -> list[WorkoutSession]:
    """Validate raw session dictionaries.

    Raises ``ValueError`` naming the offending position when a record is
    malformed (missing identifier or timestamps).
    """
    sessions: list[WorkoutSession] = []
    for idx, item in enumerate(raw):
        if isinstance(item, WorkoutSession):
            sessions.append(item)
            continue
        try:
            sessions.append(WorkoutSession.model_validate(item))
        except ValidationError as e:
            raise ValueError(f"invalid session at index {idx}: {e}")
    return sessions
