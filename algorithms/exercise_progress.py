import datetime
from typing import Iterable

from session_schema import ExerciseMetrics, PersonalRecord, SetRecord, WorkoutSession
from .math_tools import MathTools
from .pr_detector import PersonalRecordDetector


class ExerciseProgressTracker(MathTools):
    """Aggregate per-exercise statistics across many sessions."""

    TREND_WINDOW: int = 3
    PLATEAU_THRESHOLD: float = 0.05
    FAVORITES_LIMIT: int = 10
    BASE_SCORE: int = 50
    RECENCY_BONUS: tuple[tuple[int, int], ...] = ((3, 20), (7, 15), (14, 10), (30, 5))
    BONUS_CAP: int = 15
    RECENT_RECORD_DAYS: int = 30
    WEEK_SECONDS: int = 7 * 24 * 3600

    @classmethod
    def matching_sessions(
        cls, sessions: Iterable[WorkoutSession], exercise_name: str
    ) -> list[tuple[str, list[SetRecord]]]:
        """``(date, completed sets)`` per session containing the exercise.

        Matching is a case-insensitive substring test on entry names; the
        result is ordered oldest first.
        """
        query = exercise_name.lower()
        matches: list[tuple[str, list[SetRecord]]] = []
        for session in PersonalRecordDetector.chronological(sessions):
            entries = [
                e for e in session.exercises if query in e.exercise_name.lower()
            ]
            if not entries:
                continue
            done = [s for e in entries for s in e.sets if s.is_completed]
            matches.append((session.date, done))
        return matches

    @classmethod
    def _session_average(cls, sets: list[SetRecord]) -> float:
        """Mean weight of a session's sets; zero weights count here, unlike ``average_weight``."""
        return cls.mean(s.actual_weight_kg or 0 for s in sets)

    @classmethod
    def progress_trend(cls, per_session: list[list[SetRecord]]) -> str:
        """Compare the last three sessions against the three before them."""
        if len(per_session) < 2:
            return "stable"
        recent = per_session[-cls.TREND_WINDOW :]
        older = per_session[-2 * cls.TREND_WINDOW : -cls.TREND_WINDOW]
        if not older:
            return "stable"
        recent_avg = cls.mean(cls._session_average(s) for s in recent)
        older_avg = cls.mean(cls._session_average(s) for s in older)
        if older_avg == 0:
            return "up" if recent_avg > 0 else "stable"
        change = cls.relative_change(recent_avg, older_avg)
        if change >= cls.PLATEAU_THRESHOLD:
            return "up"
        if change <= -cls.PLATEAU_THRESHOLD:
            return "down"
        return "stable"

    @classmethod
    def progress_score(
        cls,
        dates: list[str],
        records: list[PersonalRecord],
        now: datetime.datetime | None = None,
    ) -> int:
        """0-100 score from recency, weekly consistency and recent records.

        Starts at 50. The newest session adds 20/15/10/5 points when it is at
        most 3/7/14/30 days old, every distinct week trained adds 2 (capped
        at 15) and every record of the last 30 days adds 5 (capped at 15).
        """
        if not dates:
            return 0
        now = cls.as_utc(now)
        score = cls.BASE_SCORE
        idle = (now - max(cls.parse_timestamp(d) for d in dates)).days
        for limit, bonus in cls.RECENCY_BONUS:
            if idle <= limit:
                score += bonus
                break
        weeks = {int(cls.parse_timestamp(d).timestamp() // cls.WEEK_SECONDS) for d in dates}
        score += min(2 * len(weeks), cls.BONUS_CAP)
        cutoff = now - datetime.timedelta(days=cls.RECENT_RECORD_DAYS)
        recent = [r for r in records if cls.parse_timestamp(r.date) >= cutoff]
        score += min(5 * len(recent), cls.BONUS_CAP)
        return int(cls.clamp(score, 0, 100))

    @classmethod
    def calculate(
        cls,
        sessions: Iterable[WorkoutSession],
        exercise_name: str,
        now: datetime.datetime | None = None,
    ) -> ExerciseMetrics:
        sessions = list(sessions)
        matches = cls.matching_sessions(sessions, exercise_name)
        if not matches:
            return ExerciseMetrics(name=exercise_name)
        all_sets = [s for _date, sets in matches for s in sets]
        weights = [
            float(s.actual_weight_kg)
            for s in all_sets
            if s.actual_weight_kg is not None and s.actual_weight_kg > 0
        ]
        reps = [s.actual_reps or 0 for s in all_sets]
        volumes = [cls.volume([(s.actual_reps, s.actual_weight_kg)]) for s in all_sets]
        last = max(matches, key=lambda m: cls.parse_timestamp(m[0]))[0]
        records = PersonalRecordDetector.detect(sessions, exercise_name)
        return ExerciseMetrics(
            name=exercise_name,
            total_sets=len(all_sets),
            total_reps=sum(reps),
            total_volume=sum(volumes),
            max_weight=max(weights, default=0.0),
            average_weight=cls.mean(weights),
            progress_trend=cls.progress_trend([sets for _date, sets in matches]),
            last_performed=last,
            personal_records=records,
            session_count=len(matches),
            average_reps=cls.mean(reps),
            average_volume=cls.mean(volumes),
            best_reps=max(reps, default=0),
            best_volume=max(volumes, default=0.0),
            progress_score=cls.progress_score([d for d, _sets in matches], records, now),
        )

    @staticmethod
    def exercise_names(sessions: Iterable[WorkoutSession]) -> list[str]:
        names: dict[str, None] = {}
        for session in sessions:
            if not session.is_completed:
                continue
            for entry in session.exercises:
                names.setdefault(entry.exercise_name, None)
        return list(names)

    @classmethod
    def calculate_all(
        cls, sessions: Iterable[WorkoutSession], now: datetime.datetime | None = None
    ) -> dict[str, ExerciseMetrics]:
        sessions = list(sessions)
        return {
            name: cls.calculate(sessions, name, now)
            for name in cls.exercise_names(sessions)
        }

    @classmethod
    def favorite_exercises(
        cls, sessions: Iterable[WorkoutSession], limit: int | None = None
    ) -> list[dict[str, int]]:
        """Most frequently logged exercise names."""
        limit = cls.FAVORITES_LIMIT if limit is None else limit
        counts: dict[str, int] = {}
        for session in sessions:
            if not session.is_completed:
                continue
            for entry in session.exercises:
                counts[entry.exercise_name] = counts.get(entry.exercise_name, 0) + 1
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
        return [{"name": name, "count": count} for name, count in ranked[:limit]]
