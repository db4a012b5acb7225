import argparse
import json
import logging
from typing import Optional

from config import load_settings
from db import AnalyticsLogRepository, RecoveryHistoryRepository
from fatigue_service import FatigueDetectionService
from recommendation_service import RecommendationService
from recovery_service import RecoveryService
from session_schema import UserProfile, WorkoutSession, parse_sessions
from stats_service import StatisticsService


def load_sessions(path: str) -> list[WorkoutSession]:
    """Read sessions from a JSON list or an object with a ``sessions`` key."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("sessions", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of sessions")
    return parse_sessions(data)


def export_sessions(sessions_path: str, fmt: str, out_path: Optional[str] = None) -> str:
    data = StatisticsService().export(load_sessions(sessions_path), fmt)
    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(data)
    return data


def analyze(sessions_path: str) -> dict:
    summary = StatisticsService().workout_analytics(load_sessions(sessions_path))
    return summary.model_dump(mode="json")


def recommend(
    sessions_path: str,
    db_path: str,
    fitness_level: Optional[str] = None,
    available_time: Optional[int] = None,
    limit: int = 5,
    history_days: Optional[int] = None,
) -> list[dict]:
    sessions = load_sessions(sessions_path)
    logs = AnalyticsLogRepository(db_path)
    recovery = RecoveryService(RecoveryHistoryRepository(db_path, history_days), logs)
    profile: UserProfile | None = None
    if fitness_level or available_time:
        profile = UserProfile(
            fitness_level=fitness_level or "beginner",
            available_time=available_time or 45,
        )
    recs = RecommendationService(recovery, logs, limit).generate(sessions, profile=profile)
    return [r.model_dump(mode="json") for r in recs]


def recovery_report(
    sessions_path: str,
    db_path: str,
    window_days: int = 14,
    history_days: Optional[int] = None,
) -> dict:
    sessions = load_sessions(sessions_path)
    logs = AnalyticsLogRepository(db_path)
    service = RecoveryService(
        RecoveryHistoryRepository(db_path, history_days),
        logs,
        window_days=window_days,
    )
    metrics = service.analyze(sessions)
    fatigue = FatigueDetectionService(service, logs).analyze(sessions)
    return {
        "metrics": metrics.model_dump(mode="json"),
        "insights": [
            i.model_dump(mode="json") for i in service.insights(metrics, sessions)
        ],
        "history": service.trend_data(),
        "fatigue": fatigue.model_dump(mode="json"),
    }


def clear_recovery(db_path: str) -> None:
    RecoveryService(RecoveryHistoryRepository(db_path)).clear_history()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Workout analytics commands")
    parser.add_argument("--config", default=None, help="Path to analytics.yaml")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--sessions", required=True)
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=None)

    ana = sub.add_parser("analyze")
    ana.add_argument("--sessions", required=True)

    rec = sub.add_parser("recommend")
    rec.add_argument("--sessions", required=True)
    rec.add_argument("--db", default=None)
    rec.add_argument(
        "--level", choices=["beginner", "intermediate", "advanced"], default=None
    )
    rec.add_argument("--time", type=int, default=None)

    rcv = sub.add_parser("recovery")
    rcv.add_argument("--sessions", required=True)
    rcv.add_argument("--db", default=None)

    clr = sub.add_parser("clear-recovery")
    clr.add_argument("--db", default=None)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    settings = load_settings(args.config)
    db_path = getattr(args, "db", None) or settings.db_path

    if args.cmd == "export":
        data = export_sessions(args.sessions, args.fmt, args.out)
        if not args.out:
            print(data)
    elif args.cmd == "analyze":
        print(json.dumps(analyze(args.sessions), indent=2))
    elif args.cmd == "recommend":
        recs = recommend(
            args.sessions,
            db_path,
            args.level or settings.fitness_level,
            args.time or settings.available_time,
            settings.max_recommendations,
            settings.history_days,
        )
        print(json.dumps(recs, indent=2))
    elif args.cmd == "recovery":
        report = recovery_report(
            args.sessions,
            db_path,
            settings.recovery_window_days,
            settings.history_days,
        )
        print(json.dumps(report, indent=2))
    elif args.cmd == "clear-recovery":
        clear_recovery(db_path)
        print("recovery history cleared")


if __name__ == "__main__":
    main()
