import requests
from typing import Iterable, Optional

from session_schema import WorkoutSession


class AnalyticsClient:
    """Simple REST client for the analytics API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @staticmethod
    def _sessions(sessions: Iterable[WorkoutSession | dict]) -> list[dict]:
        return [
            s.model_dump(mode="json") if isinstance(s, WorkoutSession) else s
            for s in sessions
        ]

    def _post(self, path: str, body: dict) -> requests.Response:
        resp = requests.post(f"{self.base_url}{path}", json=body, timeout=self.timeout)
        resp.raise_for_status()
        return resp

    def health(self) -> dict:
        resp = requests.get(f"{self.base_url}/health", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def workout_metrics(self, session: WorkoutSession | dict) -> dict:
        return self._post(
            "/analytics/metrics", {"session": self._sessions([session])[0]}
        ).json()

    def exercise_metrics(self, sessions, exercise: str) -> dict:
        return self._post(
            "/analytics/exercise",
            {"sessions": self._sessions(sessions), "exercise": exercise},
        ).json()

    def trends(self, sessions, timeframe: str = "week", metric: str = "duration") -> list:
        return self._post(
            "/analytics/trends",
            {
                "sessions": self._sessions(sessions),
                "timeframe": timeframe,
                "metric": metric,
            },
        ).json()

    def chart(self, sessions, timeframe: str = "month", metric: str = "volume") -> dict:
        return self._post(
            "/analytics/chart",
            {
                "sessions": self._sessions(sessions),
                "timeframe": timeframe,
                "metric": metric,
            },
        ).json()

    def summary(self, sessions) -> dict:
        return self._post(
            "/analytics/summary", {"sessions": self._sessions(sessions)}
        ).json()

    def export(self, sessions, fmt: str = "json") -> str:
        return self._post(
            "/analytics/export",
            {"sessions": self._sessions(sessions), "format": fmt},
        ).text

    def recovery(self, sessions) -> dict:
        return self._post(
            "/recovery/analyze", {"sessions": self._sessions(sessions)}
        ).json()

    def fatigue(self, sessions) -> dict:
        return self._post(
            "/recovery/fatigue", {"sessions": self._sessions(sessions)}
        ).json()

    def recovery_history(self, days: int = 14) -> list:
        resp = requests.get(
            f"{self.base_url}/recovery/history",
            params={"days": days},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def clear_recovery_history(self) -> None:
        resp = requests.delete(f"{self.base_url}/recovery/history", timeout=self.timeout)
        resp.raise_for_status()

    def recommendations(self, sessions, profile: Optional[dict] = None) -> list:
        body: dict = {"sessions": self._sessions(sessions)}
        if profile is not None:
            body["profile"] = profile
        return self._post("/recommendations", body).json()
