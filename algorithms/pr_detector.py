import datetime
from typing import Iterable, Optional

from session_schema import PersonalRecord, WorkoutSession
from .math_tools import MathTools


class PersonalRecordDetector(MathTools):
    """Detect personal records by replaying the full chronological history.

    The detector keeps no state between calls. For every exercise name it
    tracks the running best of each record type; the first session that
    performs an exercise seeds those bests and later sessions emit a
    :class:`PersonalRecord` only when they strictly exceed them.

    The volume record is ``max weight in session x total reps in session``
    rather than the summed per-set volume.
    """

    RECORD_TYPES: tuple[str, ...] = ("weight", "volume", "reps", "duration")
    RECENT_DAYS: int = 30
    RECENT_LIMIT: int = 10

    @classmethod
    def chronological(cls, sessions: Iterable[WorkoutSession]) -> list[WorkoutSession]:
        """Completed sessions ordered oldest to newest, as a new list."""
        done = [s for s in sessions if s.is_completed]
        return sorted(done, key=lambda s: cls.parse_timestamp(s.date))

    @staticmethod
    def session_values(
        session: WorkoutSession, exercise: Optional[str] = None
    ) -> dict[str, dict[str, float]]:
        """Per-exercise values of one session.

        Entries sharing a name within the session are merged. Exercises
        without completed sets are left out.
        """
        merged: dict[str, dict[str, float]] = {}
        query = exercise.lower() if exercise else None
        for entry in session.exercises:
            if query is not None and query not in entry.exercise_name.lower():
                continue
            done = [s for s in entry.sets if s.is_completed]
            if not done:
                continue
            item = merged.setdefault(
                entry.exercise_name,
                {"weight": 0.0, "total_reps": 0.0, "reps": 0.0},
            )
            for s in done:
                item["weight"] = max(item["weight"], float(s.actual_weight_kg or 0))
                item["reps"] = max(item["reps"], float(s.actual_reps or 0))
                item["total_reps"] += s.actual_reps or 0
                if s.actual_duration_seconds:
                    item["duration"] = max(
                        item.get("duration", 0.0), float(s.actual_duration_seconds)
                    )
        result: dict[str, dict[str, float]] = {}
        for name, item in merged.items():
            values = {
                "weight": item["weight"],
                "volume": item["weight"] * item["total_reps"],
                "reps": item["reps"],
            }
            if "duration" in item:
                values["duration"] = item["duration"]
            result[name] = values
        return result

    @classmethod
    def _scan(
        cls, sessions: Iterable[WorkoutSession], exercise: Optional[str] = None
    ) -> tuple[list[PersonalRecord], dict[str, dict[str, float]]]:
        events: list[PersonalRecord] = []
        bests: dict[str, dict[str, float]] = {}
        for session in cls.chronological(sessions):
            for name, values in cls.session_values(session, exercise).items():
                current = bests.setdefault(name, {})
                for rtype in cls.RECORD_TYPES:
                    if rtype not in values:
                        continue
                    value = values[rtype]
                    if rtype not in current:
                        current[rtype] = value
                        continue
                    previous = current[rtype]
                    if value > previous:
                        events.append(
                            PersonalRecord(
                                exercise_name=name,
                                type=rtype,
                                value=value,
                                date=session.date,
                                previous_best=previous,
                                improvement=value - previous,
                            )
                        )
                        current[rtype] = value
        return events, bests

    @classmethod
    def detect(
        cls, sessions: Iterable[WorkoutSession], exercise: Optional[str] = None
    ) -> list[PersonalRecord]:
        """Return PR events in the order they were achieved.

        ``exercise`` restricts detection to names containing it
        (case-insensitive).
        """
        events, _ = cls._scan(sessions, exercise)
        return events

    @classmethod
    def current_bests(
        cls, sessions: Iterable[WorkoutSession]
    ) -> dict[str, dict[str, float]]:
        _, bests = cls._scan(sessions)
        return bests

    @classmethod
    def recent_records(
        cls,
        sessions: Iterable[WorkoutSession],
        days: int | None = None,
        limit: int | None = None,
        now: datetime.datetime | None = None,
    ) -> list[PersonalRecord]:
        """Newest PRs achieved within ``days`` of ``now``."""
        days = cls.RECENT_DAYS if days is None else days
        limit = cls.RECENT_LIMIT if limit is None else limit
        cutoff = cls.as_utc(now) - datetime.timedelta(days=days)
        recent = [
            pr for pr in cls.detect(sessions) if cls.parse_timestamp(pr.date) >= cutoff
        ]
        recent.sort(key=lambda pr: cls.parse_timestamp(pr.date), reverse=True)
        return recent[:limit]
