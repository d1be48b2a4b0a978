import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from db import (
    Database,
    ExerciseRepository,
    ExerciseSetRepository,
    NotFoundError,
    StoreError,
    WorkoutRepository,
)
from recommendation_service import RecommendationService
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


class CreateUpdateExercise(BaseModel):
    name: str = Field(..., min_length=1)


class CreateUpdateExerciseSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workout_id: int = Field(..., alias="workoutId")
    exercise_id: int = Field(..., alias="exerciseId")
    repetitions: int = Field(..., ge=0)
    weight: int
    note: Optional[str] = None


class UpdateWorkoutNote(BaseModel):
    note: Optional[str] = None


class GetSetSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exercise_id: Optional[int] = Field(None, alias="exerciseId")


def exercise_json(exercise: dict) -> dict:
    return {"id": exercise["id"], "name": exercise["name"]}


def workout_json(workout: dict) -> dict:
    return {
        "id": workout["id"],
        "createdUtcSeconds": workout["started"],
        "note": workout["note"],
    }


def set_json(exercise_set: dict) -> dict:
    return {
        "id": exercise_set["id"],
        "exerciseId": exercise_set["exercise_id"],
        "exerciseName": exercise_set["exercise_name"],
        "workoutId": exercise_set["workout_id"],
        "createdUtcSeconds": exercise_set["created"],
        "repetitions": exercise_set["repetitions"],
        "weight": exercise_set["weight"],
        "note": exercise_set["note"],
    }


def suggestion_json(suggestion: dict) -> dict:
    return {
        "exerciseId": suggestion["exercise_id"],
        "repetitions": suggestion["repetitions"],
        "weight": suggestion["weight"],
    }


def overview_json(overview: dict) -> dict:
    return {
        "totalWorkouts": overview["total_workouts"],
        "totalDurationSeconds": overview["total_duration_s"],
        "avgDurationSeconds": overview["avg_duration_s"],
        "totalSets": overview["total_sets"],
        "totalReps": overview["total_repetitions"],
        "avgRepsPerSet": overview["avg_repetitions_per_set"],
    }


class GymAPI:
    """Provides REST endpoints for workout logging."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.exercises = ExerciseRepository(db)
        self.workouts = WorkoutRepository(db)
        self.sets = ExerciseSetRepository(db)
        self.recommender = RecommendationService(self.sets)
        self.statistics = StatisticsService(self.sets)
        self.app = FastAPI(
            title="Workout Tracker API",
            description="REST API for workout logging and statistics",
        )
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(StoreError)
        async def store_error(request: Request, exc: StoreError):
            logger.error(
                "Database error during %s %s: %s",
                request.method,
                request.url.path,
                exc.operation,
                exc_info=exc,
            )
            return JSONResponse(status_code=500, content={"detail": "database error"})

        @self.app.exception_handler(NotFoundError)
        async def not_found(request: Request, exc: NotFoundError):
            return JSONResponse(status_code=404, content={"detail": str(exc)})

    def _require_workout(self, workout_id: int) -> dict:
        workout = self.workouts.get(workout_id)
        if workout is None:
            raise HTTPException(status_code=404, detail="workout not found")
        return workout

    def _require_exercise(self, exercise_id: int) -> dict:
        exercise = self.exercises.get(exercise_id)
        if exercise is None:
            raise HTTPException(status_code=404, detail="exercise not found")
        return exercise

    def _setup_routes(self) -> None:
        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            self.workouts.list()
            return {"status": "ok"}

        @self.app.get("/workouts")
        def list_workouts():
            return [workout_json(w) for w in self.workouts.list()]

        @self.app.post("/workouts")
        def create_workout():
            return workout_json(self.workouts.create())

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: int):
            return workout_json(self._require_workout(workout_id))

        @self.app.delete("/workouts/{workout_id}", status_code=204)
        def delete_workout(workout_id: int):
            if not self.workouts.delete(workout_id):
                raise HTTPException(status_code=404, detail="workout not found")
            return Response(status_code=204)

        @self.app.put("/workouts/{workout_id}/note")
        def update_workout_note(workout_id: int, body: UpdateWorkoutNote):
            workout = self.workouts.update_note(workout_id, body.note)
            if workout is None:
                raise HTTPException(status_code=404, detail="workout not found")
            return workout_json(workout)

        @self.app.get("/workouts/{workout_id}/sets")
        def list_workout_sets(workout_id: int):
            self._require_workout(workout_id)
            return [set_json(s) for s in self.sets.list_by_workout(workout_id)]

        @self.app.post("/workouts/{workout_id}/sets/suggest")
        def suggest_set(workout_id: int, body: Optional[GetSetSuggestion] = None):
            exercise_id = body.exercise_id if body is not None else None
            return suggestion_json(self.recommender.suggest(workout_id, exercise_id))

        @self.app.get("/exercises")
        def list_exercises():
            return [exercise_json(e) for e in self.exercises.list()]

        @self.app.post("/exercises")
        def create_exercise(body: CreateUpdateExercise):
            name = body.name.strip()
            if not name:
                raise HTTPException(status_code=422, detail="name must not be empty")
            if self.exercises.exists_name(name):
                raise HTTPException(status_code=409, detail="exercise already exists")
            return exercise_json(self.exercises.create(name))

        @self.app.get("/exercises/{exercise_id}")
        def get_exercise(exercise_id: int):
            return exercise_json(self._require_exercise(exercise_id))

        @self.app.put("/exercises/{exercise_id}")
        def update_exercise(exercise_id: int, body: CreateUpdateExercise):
            name = body.name.strip()
            if not name:
                raise HTTPException(status_code=422, detail="name must not be empty")
            return exercise_json(self.exercises.update(exercise_id, name))

        @self.app.delete("/exercises/{exercise_id}", status_code=204)
        def delete_exercise(exercise_id: int):
            self._require_exercise(exercise_id)
            if self.exercises.count_sets(exercise_id) > 0:
                raise HTTPException(
                    status_code=409, detail="exercise is used in at least one set"
                )
            if not self.exercises.delete(exercise_id):
                raise HTTPException(status_code=404, detail="exercise not found")
            return Response(status_code=204)

        @self.app.get("/exercises/{exercise_id}/sets")
        def list_exercise_sets(exercise_id: int):
            self._require_exercise(exercise_id)
            return [set_json(s) for s in self.sets.list_by_exercise(exercise_id)]

        @self.app.get("/exercises/{exercise_id}/count")
        def count_exercise_sets(exercise_id: int):
            self._require_exercise(exercise_id)
            return {"count": self.exercises.count_sets(exercise_id)}

        @self.app.get("/sets")
        def list_sets():
            return [set_json(s) for s in self.sets.list()]

        @self.app.post("/sets")
        def create_set(body: CreateUpdateExerciseSet):
            self._require_workout(body.workout_id)
            self._require_exercise(body.exercise_id)
            created = self.sets.upsert(
                None,
                body.workout_id,
                body.exercise_id,
                body.repetitions,
                body.weight,
                body.note,
            )
            return set_json(created)

        @self.app.get("/sets/{set_id}")
        def get_set(set_id: int):
            exercise_set = self.sets.get(set_id)
            if exercise_set is None:
                raise HTTPException(status_code=404, detail="exercise set not found")
            return set_json(exercise_set)

        @self.app.put("/sets/{set_id}")
        def update_set(set_id: int, body: CreateUpdateExerciseSet):
            self._require_workout(body.workout_id)
            self._require_exercise(body.exercise_id)
            updated = self.sets.upsert(
                set_id,
                body.workout_id,
                body.exercise_id,
                body.repetitions,
                body.weight,
                body.note,
            )
            return set_json(updated)

        @self.app.delete("/sets/{set_id}", status_code=204)
        def delete_set(set_id: int):
            if not self.sets.delete(set_id):
                raise HTTPException(status_code=404, detail="exercise set not found")
            return Response(status_code=204)

        @self.app.get("/statistics")
        def statistics_overview():
            return overview_json(self.statistics.overview())


if __name__ == "__main__":
    import uvicorn
    from config import YamlConfig
    from logging_config import setup_logging

    settings = YamlConfig().settings()
    setup_logging(settings.log_level)
    database = Database(
        settings.db_path,
        seed_exercises=settings.seed_default_exercises,
        timeout=settings.busy_timeout_s,
    )
    uvicorn.run(GymAPI(database).app, host=settings.host, port=settings.port)
