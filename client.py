import requests
from typing import Optional


class WorkoutClient:
    """Simple REST client for the workout API."""

    def __init__(self, base_url: str = "http://localhost:8080", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str):
        resp = requests.get(f"{self.base_url}{path}", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _send(self, method: str, path: str, payload: Optional[dict] = None):
        resp = requests.request(
            method, f"{self.base_url}{path}", json=payload, timeout=self.timeout
        )
        resp.raise_for_status()
        if resp.status_code == 204:
            return None
        return resp.json()

    def health(self) -> dict:
        return self._get("/health")

    def list_exercises(self) -> list:
        return self._get("/exercises")

    def create_exercise(self, name: str) -> dict:
        return self._send("POST", "/exercises", {"name": name})

    def rename_exercise(self, exercise_id: int, name: str) -> dict:
        return self._send("PUT", f"/exercises/{exercise_id}", {"name": name})

    def delete_exercise(self, exercise_id: int) -> None:
        self._send("DELETE", f"/exercises/{exercise_id}")

    def list_workouts(self) -> list:
        return self._get("/workouts")

    def create_workout(self) -> dict:
        return self._send("POST", "/workouts")

    def set_workout_note(self, workout_id: int, note: Optional[str]) -> dict:
        return self._send("PUT", f"/workouts/{workout_id}/note", {"note": note})

    def delete_workout(self, workout_id: int) -> None:
        self._send("DELETE", f"/workouts/{workout_id}")

    def workout_sets(self, workout_id: int) -> list:
        return self._get(f"/workouts/{workout_id}/sets")

    def add_set(
        self,
        workout_id: int,
        exercise_id: int,
        repetitions: int,
        weight: int,
        note: Optional[str] = None,
    ) -> dict:
        return self._send(
            "POST",
            "/sets",
            {
                "workoutId": workout_id,
                "exerciseId": exercise_id,
                "repetitions": repetitions,
                "weight": weight,
                "note": note,
            },
        )

    def update_set(
        self,
        set_id: int,
        workout_id: int,
        exercise_id: int,
        repetitions: int,
        weight: int,
        note: Optional[str] = None,
    ) -> dict:
        return self._send(
            "PUT",
            f"/sets/{set_id}",
            {
                "workoutId": workout_id,
                "exerciseId": exercise_id,
                "repetitions": repetitions,
                "weight": weight,
                "note": note,
            },
        )

    def delete_set(self, set_id: int) -> None:
        self._send("DELETE", f"/sets/{set_id}")

    def suggest(self, workout_id: int, exercise_id: Optional[int] = None) -> dict:
        return self._send(
            "POST", f"/workouts/{workout_id}/sets/suggest", {"exerciseId": exercise_id}
        )

    def statistics(self) -> dict:
        return self._get("/statistics")
