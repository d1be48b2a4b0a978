from db import Database, ExerciseRepository, ExerciseSetRepository, WorkoutRepository


def seed(db: Database) -> bool:
    """Insert one demo workout with two sets unless workouts already exist."""
    workouts = WorkoutRepository(db)
    if workouts.list():
        print("Database already contains workouts")
        return False

    exercises = ExerciseRepository(db)
    bench = next(
        (e for e in exercises.list() if e["name"] == "Bench Press"), None
    ) or exercises.create("Bench Press")
    workout = workouts.create()
    sets = ExerciseSetRepository(db)
    sets.upsert(None, workout["id"], bench["id"], 5, 100)
    sets.upsert(None, workout["id"], bench["id"], 5, 105, "felt heavy")
    print("Seed data inserted")
    return True


if __name__ == "__main__":
    seed(Database())
