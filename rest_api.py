import datetime
from typing import List, Literal, Optional

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel

from algorithms.exercise_progress import ExerciseProgressTracker
from algorithms.pattern_analysis import PatternAnalysis
from algorithms.pr_detector import PersonalRecordDetector
from algorithms.trends import TrendGenerator
from algorithms.workout_metrics import WorkoutMetricsCalculator
from config import APP_VERSION, load_settings
from db import AnalyticsLogRepository, RecoveryHistoryRepository
from fatigue_service import FatigueDetectionService
from recommendation_service import RecommendationService
from recovery_service import RecoveryService
from session_schema import (
    MetricType,
    PersonalRecord,
    Timeframe,
    UserProfile,
    WorkoutSession,
)
from stats_service import StatisticsService


class SessionsPayload(BaseModel):
    sessions: List[WorkoutSession] = []
    now: Optional[datetime.datetime] = None


class MetricsPayload(BaseModel):
    session: WorkoutSession


class ExercisePayload(SessionsPayload):
    exercise: str


class TrendPayload(SessionsPayload):
    timeframe: Timeframe = "week"
    metric: MetricType = "duration"


class ChartPayload(SessionsPayload):
    timeframe: Timeframe = "month"
    metric: Literal["volume", "frequency", "duration"] = "volume"


class ExportPayload(SessionsPayload):
    format: Literal["csv", "json"] = "json"


class RecommendationPayload(SessionsPayload):
    personal_records: Optional[List[PersonalRecord]] = None
    profile: Optional[UserProfile] = None


class AnalyticsAPI:
    """Provides REST endpoints for workout analytics."""

    def __init__(
        self,
        db_path: str | None = None,
        config_path: str | None = None,
    ) -> None:
        self.settings = load_settings(config_path)
        self.db_path = db_path or self.settings.db_path
        self.recovery_history = RecoveryHistoryRepository(
            self.db_path, self.settings.history_days
        )
        self.logs = AnalyticsLogRepository(self.db_path)
        self.recovery = RecoveryService(
            self.recovery_history,
            self.logs,
            window_days=self.settings.recovery_window_days,
        )
        self.recommender = RecommendationService(
            self.recovery,
            self.logs,
            max_recommendations=self.settings.max_recommendations,
        )
        self.fatigue = FatigueDetectionService(self.recovery, self.logs)
        self.statistics = StatisticsService(self.logs)
        self.app = FastAPI(
            title="Workout Analytics API",
            description="Metrics, trends, recovery and recommendations for workout history",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _profile(
        self, sessions: list[WorkoutSession], profile: UserProfile | None
    ) -> UserProfile:
        if profile is not None:
            return profile
        inferred = PatternAnalysis.user_profile(sessions)
        overrides = {}
        if self.settings.fitness_level is not None:
            overrides["fitness_level"] = self.settings.fitness_level
        if self.settings.available_time is not None:
            overrides["available_time"] = self.settings.available_time
        return inferred.model_copy(update=overrides)

    def _setup_routes(self) -> None:
        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.logs.last_success()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.post("/analytics/metrics")
        def workout_metrics(payload: MetricsPayload):
            return WorkoutMetricsCalculator.calculate(payload.session)

        @self.app.post("/analytics/exercise")
        def exercise_metrics(payload: ExercisePayload):
            return ExerciseProgressTracker.calculate(
                payload.sessions, payload.exercise, payload.now
            )

        @self.app.post("/analytics/personal_records")
        def personal_records(payload: SessionsPayload):
            return {
                "records": PersonalRecordDetector.detect(payload.sessions),
                "current_bests": PersonalRecordDetector.current_bests(payload.sessions),
            }

        @self.app.post("/analytics/trends")
        def trends(payload: TrendPayload):
            try:
                return TrendGenerator.generate(
                    payload.sessions, payload.timeframe, payload.metric, payload.now
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.post("/analytics/chart")
        def chart(payload: ChartPayload):
            try:
                return TrendGenerator.chart_data(
                    payload.sessions, payload.timeframe, payload.metric
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.post("/analytics/streaks")
        def streaks(payload: SessionsPayload):
            today = payload.now.date() if payload.now is not None else None
            return TrendGenerator.streaks(payload.sessions, today)

        @self.app.post("/analytics/summary")
        def summary(payload: SessionsPayload):
            return self.statistics.workout_analytics(payload.sessions, payload.now)

        @self.app.post("/analytics/export")
        def export(payload: ExportPayload):
            try:
                data = self.statistics.export(payload.sessions, payload.format)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            media = "text/csv" if payload.format == "csv" else "application/json"
            return Response(content=data, media_type=media)

        @self.app.post("/recovery/analyze")
        def recovery_analyze(payload: SessionsPayload):
            return self.recovery.analyze(payload.sessions, payload.now)

        @self.app.post("/recovery/insights")
        def recovery_insights(payload: SessionsPayload):
            metrics = self.recovery.compute(payload.sessions, payload.now)
            return {
                "metrics": metrics,
                "insights": self.recovery.insights(
                    metrics, payload.sessions, payload.now
                ),
            }

        @self.app.post("/recovery/fatigue")
        def recovery_fatigue(payload: SessionsPayload):
            return self.fatigue.analyze(payload.sessions, payload.now)

        @self.app.get("/recovery/history")
        def recovery_history(days: int = 14):
            if days <= 0:
                raise HTTPException(status_code=400, detail="days must be positive")
            return self.recovery.trend_data(days)

        @self.app.delete("/recovery/history")
        def clear_recovery_history():
            self.recovery.clear_history()
            return {"status": "cleared"}

        @self.app.post("/recommendations")
        def recommendations(payload: RecommendationPayload):
            try:
                profile = self._profile(payload.sessions, payload.profile)
                return self.recommender.generate(
                    payload.sessions,
                    payload.personal_records,
                    profile,
                    payload.now,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))


api = AnalyticsAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
