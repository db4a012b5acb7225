from __future__ import annotations
import datetime
import logging
from typing import Iterable, Optional

from algorithms.math_tools import MathTools
from algorithms.pattern_analysis import PatternAnalysis
from algorithms.pr_detector import PersonalRecordDetector
from db import AnalyticsLogRepository
from recovery_service import RecoveryService
from session_schema import (
    PersonalRecord,
    RecommendationSource,
    RecommendedExercise,
    UserProfile,
    WorkoutRecommendation,
    WorkoutSession,
)


logger = logging.getLogger(__name__)


EXERCISE_CATALOG: dict[str, list[dict[str, str]]] = {
    "Chest": [
        {"name": "Bench Press", "difficulty": "intermediate", "equipment": "barbell"},
        {"name": "Push-ups", "difficulty": "beginner", "equipment": "bodyweight"},
        {"name": "Dumbbell Flyes", "difficulty": "intermediate", "equipment": "dumbbells"},
        {"name": "Incline Bench Press", "difficulty": "advanced", "equipment": "barbell"},
        {"name": "Chest Dips", "difficulty": "intermediate", "equipment": "bodyweight"},
    ],
    "Back": [
        {"name": "Pull-ups", "difficulty": "intermediate", "equipment": "bodyweight"},
        {"name": "Bent-over Rows", "difficulty": "intermediate", "equipment": "barbell"},
        {"name": "Lat Pulldowns", "difficulty": "beginner", "equipment": "machine"},
        {"name": "Deadlifts", "difficulty": "advanced", "equipment": "barbell"},
        {"name": "T-Bar Rows", "difficulty": "intermediate", "equipment": "barbell"},
    ],
    "Legs": [
        {"name": "Squats", "difficulty": "intermediate", "equipment": "barbell"},
        {"name": "Lunges", "difficulty": "beginner", "equipment": "bodyweight"},
        {"name": "Leg Press", "difficulty": "beginner", "equipment": "machine"},
        {"name": "Romanian Deadlifts", "difficulty": "intermediate", "equipment": "barbell"},
        {"name": "Bulgarian Split Squats", "difficulty": "advanced", "equipment": "bodyweight"},
    ],
    "Shoulders": [
        {"name": "Overhead Press", "difficulty": "intermediate", "equipment": "barbell"},
        {"name": "Lateral Raises", "difficulty": "beginner", "equipment": "dumbbells"},
        {"name": "Face Pulls", "difficulty": "intermediate", "equipment": "cable"},
        {"name": "Handstand Push-ups", "difficulty": "advanced", "equipment": "bodyweight"},
        {"name": "Arnold Press", "difficulty": "intermediate", "equipment": "dumbbells"},
    ],
    "Arms": [
        {"name": "Bicep Curls", "difficulty": "beginner", "equipment": "dumbbells"},
        {"name": "Tricep Dips", "difficulty": "intermediate", "equipment": "bodyweight"},
        {"name": "Hammer Curls", "difficulty": "beginner", "equipment": "dumbbells"},
        {"name": "Close-grip Bench Press", "difficulty": "intermediate", "equipment": "barbell"},
        {"name": "Chin-ups", "difficulty": "intermediate", "equipment": "bodyweight"},
    ],
    "Core": [
        {"name": "Plank", "difficulty": "beginner", "equipment": "bodyweight"},
        {"name": "Russian Twists", "difficulty": "beginner", "equipment": "bodyweight"},
        {"name": "Dead Bug", "difficulty": "intermediate", "equipment": "bodyweight"},
        {"name": "Hanging Leg Raises", "difficulty": "advanced", "equipment": "bodyweight"},
        {"name": "Ab Wheel Rollouts", "difficulty": "advanced", "equipment": "equipment"},
    ],
}


class RecommendationService:
    """Rank heuristic workout suggestions from training history."""

    MAX_RECOMMENDATIONS = 5
    LEVELS = ("beginner", "intermediate", "advanced")
    PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
    REP_RANGES = {
        "beginner": [[8, 10, 12], [10, 12, 15], [12, 15, 20]],
        "intermediate": [[6, 8, 10], [8, 10, 12], [10, 12, 15]],
        "advanced": [[4, 6, 8], [6, 8, 10], [8, 10, 12]],
    }
    PLATEAU_REPS = [[3, 4, 5], [6, 8, 10], [12, 15, 20]]
    DEFAULT_REPS = [8, 10, 12]
    REST_SECONDS = {"beginner": 60, "intermediate": 90, "advanced": 120}
    FOCUS_EXERCISES = 4
    VARIATION_EXERCISES = 3
    NOVEL_EXERCISES = 5
    VARIETY_SESSIONS = 5
    VARIETY_MIN_NAMES = 10
    RECOVERY_DURATION = 45

    def __init__(
        self,
        recovery: RecoveryService | None = None,
        log_repo: AnalyticsLogRepository | None = None,
        max_recommendations: int | None = None,
    ) -> None:
        self.recovery = recovery
        self.logs = log_repo
        self.max_recommendations = max_recommendations or self.MAX_RECOMMENDATIONS

    @classmethod
    def recommended_reps(cls, difficulty: str, position: int) -> list[int]:
        ranges = cls.REP_RANGES.get(difficulty, [])
        return list(ranges[position]) if position < len(ranges) else list(cls.DEFAULT_REPS)

    @classmethod
    def plateau_reps(cls, position: int) -> list[int]:
        if position < len(cls.PLATEAU_REPS):
            return list(cls.PLATEAU_REPS[position])
        return list(cls.DEFAULT_REPS)

    @classmethod
    def recommended_rest(cls, difficulty: str) -> int:
        return cls.REST_SECONDS.get(difficulty, 60)

    @classmethod
    def exercises_for_group(
        cls, group: str, profile: UserProfile
    ) -> list[RecommendedExercise]:
        """Catalog exercises at most one level above the user's level."""
        level = cls.LEVELS.index(profile.fitness_level)
        eligible = [
            e
            for e in EXERCISE_CATALOG.get(group, [])
            if cls.LEVELS.index(e["difficulty"]) <= level + 1
        ][: cls.FOCUS_EXERCISES]
        return [
            RecommendedExercise(
                name=e["name"],
                category="strength",
                muscle_groups=[group],
                sets=3 if profile.fitness_level == "beginner" else 4,
                reps=cls.recommended_reps(e["difficulty"], i),
                rest_seconds=cls.recommended_rest(e["difficulty"]),
                confidence=85 - i * 5,
            )
            for i, e in enumerate(eligible)
        ]

    @classmethod
    def variation_exercises(
        cls, stale_exercise: str, group: str
    ) -> list[RecommendedExercise]:
        variations = [
            e for e in EXERCISE_CATALOG.get(group, []) if e["name"] != stale_exercise
        ][: cls.VARIATION_EXERCISES]
        return [
            RecommendedExercise(
                name=e["name"],
                category="strength",
                muscle_groups=[group],
                sets=4,
                reps=cls.plateau_reps(i),
                rest_seconds=cls.recommended_rest(e["difficulty"]),
                notes="Focus on perfect form with this variation" if i == 0 else None,
                confidence=80 - i * 5,
            )
            for i, e in enumerate(variations)
        ]

    @classmethod
    def novel_exercises(cls, recent_names: set[str]) -> list[RecommendedExercise]:
        novel = [
            e
            for group in EXERCISE_CATALOG.values()
            for e in group
            if e["name"] not in recent_names
        ][: cls.NOVEL_EXERCISES]
        return [
            RecommendedExercise(
                name=e["name"],
                category="strength",
                muscle_groups=[PatternAnalysis.infer_muscle_group(e["name"])],
                sets=3,
                reps=list(cls.DEFAULT_REPS),
                rest_seconds=60,
                notes="New exercise - start with lighter weight" if i == 0 else None,
                confidence=70 - i * 3,
            )
            for i, e in enumerate(novel)
        ]

    @staticmethod
    def recovery_exercises() -> list[RecommendedExercise]:
        return [
            RecommendedExercise(
                name="Light Walking",
                category="cardio",
                muscle_groups=["Full Body"],
                sets=1,
                reps=[],
                rest_seconds=0,
                duration=20,
                notes="Keep pace comfortable and relaxed",
                confidence=95,
            ),
            RecommendedExercise(
                name="Dynamic Stretching",
                category="flexibility",
                muscle_groups=["Full Body"],
                sets=1,
                reps=[10],
                rest_seconds=30,
                notes="Focus on major muscle groups",
                confidence=90,
            ),
            RecommendedExercise(
                name="Foam Rolling",
                category="recovery",
                muscle_groups=["Full Body"],
                sets=1,
                reps=[],
                rest_seconds=0,
                duration=15,
                notes="Target tight areas from recent workouts",
                confidence=85,
            ),
        ]

    def _muscle_focus(
        self, sessions: list[WorkoutSession], profile: UserProfile, now: datetime.datetime
    ) -> list[WorkoutRecommendation]:
        patterns = PatternAnalysis.muscle_group_patterns(sessions, now)
        if not patterns["needs_attention"]:
            return []
        group = patterns["needs_attention"][0]
        exercises = self.exercises_for_group(group, profile)
        if not exercises:
            return []
        return [
            WorkoutRecommendation(
                id=f"muscle_focus_{group.lower()}_{_stamp(now)}",
                title=f"{group} Focus Workout",
                description=f"Target your neglected {group.lower()} muscles with this focused session",
                confidence=85,
                reasoning=[
                    f"{group} hasn't been trained recently",
                    "Balanced muscle development is important for overall strength",
                    "Preventing muscle imbalances reduces injury risk",
                ],
                estimated_duration=profile.available_time,
                difficulty=profile.fitness_level,
                workout_type="strength",
                target_muscle_groups=[group],
                exercises=exercises,
                tags=["muscle_focus", "balance", "strength"],
                priority="high",
                created_at=now.isoformat(),
                based_on=[
                    RecommendationSource(
                        type="workout_history",
                        description=f"{group} not trained in recent sessions",
                        weight=0.8,
                    )
                ],
            )
        ]

    def _recovery_needed(
        self, sessions: list[WorkoutSession], now: datetime.datetime
    ) -> bool:
        if PatternAnalysis.intensity_patterns(sessions)["recovery_needed"]:
            return True
        if self.recovery is None:
            return False
        metrics = self.recovery.analyze_safely(sessions, now)
        if metrics is None:
            logger.info("recovery model unavailable; skipping its signal")
            return False
        return metrics.next_workout_intensity == "light"

    def _recovery(
        self, sessions: list[WorkoutSession], now: datetime.datetime
    ) -> list[WorkoutRecommendation]:
        if not self._recovery_needed(sessions, now):
            return []
        return [
            WorkoutRecommendation(
                id=f"recovery_{_stamp(now)}",
                title="Active Recovery Session",
                description="Low-intensity activities to promote recovery and reduce muscle tension",
                confidence=90,
                reasoning=[
                    "Recent workouts have been high intensity",
                    "Active recovery promotes blood flow and healing",
                    "Prevents overtraining and burnout",
                ],
                estimated_duration=self.RECOVERY_DURATION,
                difficulty="beginner",
                workout_type="flexibility",
                target_muscle_groups=["Full Body"],
                exercises=self.recovery_exercises(),
                tags=["recovery", "low_intensity", "flexibility"],
                priority="high",
                created_at=now.isoformat(),
                based_on=[
                    RecommendationSource(
                        type="recovery_pattern",
                        description="High intensity detected in recent sessions",
                        weight=0.9,
                    )
                ],
            )
        ]

    def _plateau(
        self,
        sessions: list[WorkoutSession],
        records: list[PersonalRecord],
        profile: UserProfile,
        now: datetime.datetime,
    ) -> list[WorkoutRecommendation]:
        for stale in PatternAnalysis.plateau_exercises(sessions, records, now):
            group = PatternAnalysis.infer_muscle_group(stale)
            exercises = self.variation_exercises(stale, group)
            if not exercises:
                continue
            return [
                WorkoutRecommendation(
                    id=f"plateau_breaker_{_stamp(now)}",
                    title="Plateau Breaker Workout",
                    description=f"Break through your {stale} plateau with exercise variations and new stimuli",
                    confidence=80,
                    reasoning=[
                        f"No recent progress in {stale}",
                        "Exercise variations can stimulate new adaptations",
                        "Different rep ranges may unlock progress",
                    ],
                    estimated_duration=profile.available_time,
                    difficulty=profile.fitness_level,
                    workout_type="strength",
                    target_muscle_groups=[group],
                    exercises=exercises,
                    tags=["plateau_breaker", "variation", "progress"],
                    priority="medium",
                    created_at=now.isoformat(),
                    based_on=[
                        RecommendationSource(
                            type="progress_trend",
                            description=f"Plateau detected in {stale}",
                            weight=0.7,
                        )
                    ],
                )
            ]
        return []

    def _variety(
        self, sessions: list[WorkoutSession], profile: UserProfile, now: datetime.datetime
    ) -> list[WorkoutRecommendation]:
        completed = PersonalRecordDetector.chronological(sessions)
        if len(completed) <= self.VARIETY_SESSIONS:
            return []
        recent_names = {
            e.exercise_name
            for s in completed[-self.VARIETY_SESSIONS :]
            for e in s.exercises
        }
        if len(recent_names) >= self.VARIETY_MIN_NAMES:
            return []
        exercises = self.novel_exercises(recent_names)
        if not exercises:
            return []
        return [
            WorkoutRecommendation(
                id=f"variety_{_stamp(now)}",
                title="Variety Challenge Workout",
                description="Try new exercises to challenge your body in different ways and prevent boredom",
                confidence=70,
                reasoning=[
                    "Recent workouts have used similar exercises",
                    "Exercise variety prevents adaptation plateaus",
                    "New movements challenge stabilizer muscles",
                ],
                estimated_duration=profile.available_time,
                difficulty=profile.fitness_level,
                workout_type="mixed",
                target_muscle_groups=["Full Body"],
                exercises=exercises,
                tags=["variety", "challenge", "new_exercises"],
                priority="low",
                created_at=now.isoformat(),
                based_on=[
                    RecommendationSource(
                        type="variety_need",
                        description="Limited exercise variety in recent sessions",
                        weight=0.6,
                    )
                ],
            )
        ]

    def rank(
        self, recommendations: list[WorkoutRecommendation]
    ) -> list[WorkoutRecommendation]:
        ordered = sorted(
            recommendations,
            key=lambda r: (self.PRIORITY_ORDER[r.priority], -r.confidence),
        )
        return ordered[: self.max_recommendations]

    def generate(
        self,
        sessions: Iterable[WorkoutSession],
        personal_records: Optional[list[PersonalRecord]] = None,
        profile: UserProfile | None = None,
        now: datetime.datetime | None = None,
    ) -> list[WorkoutRecommendation]:
        """Return up to five suggestions ordered by priority then confidence."""
        sessions = list(sessions)
        now = MathTools.as_utc(now)
        try:
            profile = profile or PatternAnalysis.user_profile(sessions)
            records = (
                personal_records
                if personal_records is not None
                else PersonalRecordDetector.detect(sessions)
            )
            recommendations: list[WorkoutRecommendation] = []
            recommendations.extend(self._muscle_focus(sessions, profile, now))
            recommendations.extend(self._recovery(sessions, now))
            recommendations.extend(self._plateau(sessions, records, profile, now))
            recommendations.extend(self._variety(sessions, profile, now))
            result = self.rank(recommendations)
            if self.logs is not None:
                self.logs.log_success("recommendations.generate")
        except Exception as e:
            if self.logs is not None:
                self.logs.log_error("recommendations.generate", str(e))
            raise
        logger.debug("generated %d recommendations", len(result))
        return result


def _stamp(now: datetime.datetime) -> int:
    return int(now.timestamp() * 1000)
