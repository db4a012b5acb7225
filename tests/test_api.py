import os
import sys
import unittest
from fastapi.testclient import TestClient
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import AnalyticsAPI

NOW = "2024-06-15T12:00:00Z"


def session_json(sid: str, day: str, weight: float = 50.0, duration: float = 3600.0) -> dict:
    return {
        "id": sid,
        "workout_name": "Push Day",
        "started_at": f"{day}T11:00:00Z",
        "completed_at": f"{day}T12:00:00Z",
        "total_duration_seconds": duration,
        "exercises": [
            {
                "exercise_name": "Bench Press",
                "muscle_groups": ["Chest"],
                "sets": [
                    {"is_completed": True, "actual_reps": 10, "actual_weight_kg": weight},
                    {"is_completed": True, "actual_reps": 10, "actual_weight_kg": weight},
                ],
            }
        ],
    }


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_analytics_api.db"
        self.yaml_path = "test_analytics_api.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = AnalyticsAPI(db_path=self.db_path, config_path=self.yaml_path)
        self.client = TestClient(self.api.app)
        self.sessions = [
            session_json("w1", "2024-06-14", 50.0),
            session_json("w2", "2024-06-13", 60.0),
        ]

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_workout_metrics(self) -> None:
        response = self.client.post("/analytics/metrics", json={"session": self.sessions[0]})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["total_volume"], 1000)
        self.assertEqual(data["total_sets"], 2)
        self.assertEqual(data["calories_burned"], 240)
        self.assertEqual(data["intensity_score"], 54)

    def test_malformed_session_is_rejected(self) -> None:
        bad = dict(self.sessions[0])
        del bad["started_at"]
        response = self.client.post("/analytics/summary", json={"sessions": [bad]})
        self.assertEqual(response.status_code, 422)
        response = self.client.post(
            "/analytics/summary",
            json={"sessions": [dict(self.sessions[0], completed_at="yesterday")]},
        )
        self.assertEqual(response.status_code, 422)

    def test_exercise_and_records(self) -> None:
        response = self.client.post(
            "/analytics/exercise",
            json={"sessions": self.sessions, "exercise": "bench press"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["max_weight"], 60)
        self.assertEqual(response.json()["session_count"], 2)

        response = self.client.post("/analytics/personal_records", json={"sessions": self.sessions})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["current_bests"]["Bench Press"]["weight"], 60)
        self.assertTrue(any(r["type"] == "weight" and r["value"] == 60 for r in data["records"]))

    def test_trends_and_streaks(self) -> None:
        response = self.client.post(
            "/analytics/trends",
            json={"sessions": self.sessions, "timeframe": "week", "metric": "frequency", "now": NOW},
        )
        self.assertEqual(response.status_code, 200)
        trends = response.json()
        self.assertEqual(len(trends), 12)
        self.assertEqual(trends[-1]["value"], 2)

        response = self.client.post(
            "/analytics/trends",
            json={"sessions": self.sessions, "timeframe": "decade"},
        )
        self.assertEqual(response.status_code, 422)

        response = self.client.post(
            "/analytics/streaks", json={"sessions": self.sessions, "now": NOW}
        )
        self.assertEqual(response.json(), {"current": 2, "longest": 2})

    def test_summary(self) -> None:
        response = self.client.post(
            "/analytics/summary", json={"sessions": self.sessions, "now": NOW}
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["total_workouts"], 2)
        self.assertEqual(data["workouts_this_week"], 2)
        self.assertIn("Bench Press", data["exercise_progress"])

    def test_export(self) -> None:
        response = self.client.post(
            "/analytics/export", json={"sessions": self.sessions, "format": "csv"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        lines = response.text.splitlines()
        self.assertTrue(lines[0].startswith("Date,Workout Name"))
        self.assertEqual(len(lines), 5)

        response = self.client.post("/analytics/export", json={"sessions": self.sessions})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["id"], "w1")

        response = self.client.post(
            "/analytics/export", json={"sessions": self.sessions, "format": "xml"}
        )
        self.assertEqual(response.status_code, 422)

    def test_recovery_history_workflow(self) -> None:
        response = self.client.post("/recovery/analyze", json={"sessions": self.sessions})
        self.assertEqual(response.status_code, 200)
        self.assertIn("fatigue_level", response.json())

        response = self.client.get("/recovery/history")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

        response = self.client.get("/recovery/history", params={"days": 0})
        self.assertEqual(response.status_code, 400)

        response = self.client.delete("/recovery/history")
        self.assertEqual(response.json(), {"status": "cleared"})
        self.assertEqual(self.client.get("/recovery/history").json(), [])

    def test_fatigue_report(self) -> None:
        response = self.client.post(
            "/recovery/fatigue", json={"sessions": self.sessions, "now": NOW}
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data["indicators"]), 5)
        self.assertEqual(data["patterns"], [])
        self.assertEqual(self.api.recovery_history.load(), [])
        self.assertIsNotNone(self.api.logs.last_success("fatigue.analyze"))

    def test_chart(self) -> None:
        response = self.client.post(
            "/analytics/chart",
            json={"sessions": self.sessions, "timeframe": "week", "metric": "volume"},
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual([p["date"] for p in data["points"]], ["2024-06-13", "2024-06-14"])
        self.assertEqual(data["summary"]["total"], 2200)
        self.assertEqual(data["insights"][0]["title"], "Need More Data")
        response = self.client.post(
            "/analytics/chart", json={"sessions": [], "metric": "weight"}
        )
        self.assertEqual(response.status_code, 422)

    def test_recovery_insights_do_not_persist(self) -> None:
        response = self.client.post(
            "/recovery/insights", json={"sessions": [], "now": NOW}
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["metrics"]["recovery_score"], 100)
        self.assertEqual(data["insights"][0]["id"], "excellent-recovery")
        self.assertEqual(self.api.recovery_history.load(), [])

    def test_recommendations(self) -> None:
        response = self.client.post(
            "/recommendations",
            json={
                "sessions": [],
                "now": NOW,
                "profile": {"fitness_level": "advanced", "available_time": 60},
            },
        )
        self.assertEqual(response.status_code, 200)
        recs = response.json()
        self.assertEqual(recs[0]["title"], "Chest Focus Workout")
        self.assertEqual(recs[0]["estimated_duration"], 60)
        self.assertEqual(recs[0]["exercises"][0]["sets"], 4)

    def test_settings_shape_recommendations(self) -> None:
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"fitness_level": "advanced", "max_recommendations": 1}, f)
        api = AnalyticsAPI(db_path=self.db_path, config_path=self.yaml_path)
        client = TestClient(api.app)
        response = client.post("/recommendations", json={"sessions": [], "now": NOW})
        recs = response.json()
        self.assertEqual(len(recs), 1)
        self.assertEqual(recs[0]["difficulty"], "advanced")


if __name__ == "__main__":
    unittest.main()
