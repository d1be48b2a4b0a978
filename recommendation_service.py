from __future__ import annotations
import logging

from db import ExerciseSetRepository

logger = logging.getLogger(__name__)


class RecommendationService:
    """Suggest the next set of a workout from logged history.

    The lookup is an ordered fallback: repeat the last set of the current
    workout, else replay the first set of the most recent earlier workout,
    else return zeros.
    """

    def __init__(self, set_repo: ExerciseSetRepository) -> None:
        self.sets = set_repo

    def suggest(self, workout_id: int, exercise_id: int | None = None) -> dict:
        if exercise_id is None:
            return self._suggest_any(workout_id)
        return self._suggest_exercise(workout_id, exercise_id)

    def _suggest_exercise(self, workout_id: int, exercise_id: int) -> dict:
        row = self.sets.latest_in_workout(workout_id, exercise_id)
        if row is None:
            row = self.sets.first_of_latest_workout(exercise_id)
        if row is None:
            logger.debug("No history for exercise %s", exercise_id)
            return {"exercise_id": exercise_id, "repetitions": 0, "weight": 0}
        _ex, reps, weight = row
        return {"exercise_id": exercise_id, "repetitions": reps, "weight": weight}

    def _suggest_any(self, workout_id: int) -> dict:
        row = self.sets.latest_in_workout(workout_id)
        if row is None:
            row = self.sets.first_of_latest_workout()
        if row is None:
            logger.debug("No set history at all")
            return {"exercise_id": 0, "repetitions": 0, "weight": 0}
        ex_id, reps, weight = row
        return {"exercise_id": ex_id, "repetitions": reps, "weight": weight}
