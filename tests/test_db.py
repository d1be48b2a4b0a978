import os
import sqlite3
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    DEFAULT_EXERCISES,
    Database,
    ExerciseRepository,
    ExerciseSetRepository,
    NotFoundError,
    SetQuery,
    StoreError,
    WorkoutRepository,
    normalize_note,
)


class FakeClock:
    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path, clock):
    return Database(str(tmp_path / "workout.db"), clock=clock)


@pytest.mark.parametrize(
    "note, expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("\t\n ", None),
        ("good", "good"),
        ("  good session ", "good session"),
    ],
)
def test_normalize_note(note, expected):
    assert normalize_note(note) == expected


def test_schema_enables_foreign_keys(db):
    with db.connection() as conn:
        assert conn.execute("PRAGMA foreign_keys;").fetchone()[0] == 1


def test_seed_only_on_new_database(tmp_path):
    path = str(tmp_path / "seed.db")
    Database(path, seed_exercises=True)
    Database(path, seed_exercises=True)
    names = [e["name"] for e in ExerciseRepository(Database(path)).list()]
    assert sorted(names) == sorted(DEFAULT_EXERCISES)


def test_exercise_crud(db):
    repo = ExerciseRepository(db)
    squat = repo.create("Squats")
    bench = repo.create("Bench Press")
    assert repo.get(squat["id"]) == squat
    assert [e["name"] for e in repo.list()] == ["Bench Press", "Squats"]

    assert repo.update(bench["id"], "Bench") == {"id": bench["id"], "name": "Bench"}
    assert repo.get(bench["id"])["name"] == "Bench"

    assert repo.delete(squat["id"]) is True
    assert repo.get(squat["id"]) is None
    assert repo.delete(squat["id"]) is False


def test_exercise_create_accepts_duplicates_and_empty(db):
    repo = ExerciseRepository(db)
    first = repo.create("Dips")
    second = repo.create("Dips")
    assert first["id"] != second["id"]
    assert repo.create("")["name"] == ""


def test_exercise_update_missing_raises_not_found(db):
    with pytest.raises(NotFoundError):
        ExerciseRepository(db).update(42, "Nothing")


def test_exercise_exists_name_ignores_case(db):
    repo = ExerciseRepository(db)
    repo.create("Pull Up")
    assert repo.exists_name("pull up")
    assert repo.exists_name("  PULL UP ")
    assert not repo.exists_name("Push Up")


def test_count_sets(db):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    ex = exercises.create("Squats")
    other = exercises.create("Dips")
    w = workouts.create()
    sets.upsert(None, w["id"], ex["id"], 5, 100)
    sets.upsert(None, w["id"], ex["id"], 5, 100)
    assert exercises.count_sets(ex["id"]) == 2
    assert exercises.count_sets(other["id"]) == 0


def test_delete_exercise_in_use_is_restricted(db):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    ex = exercises.create("Bench Press")
    w = workouts.create()
    s = sets.upsert(None, w["id"], ex["id"], 5, 100)

    with pytest.raises(StoreError) as info:
        exercises.delete(ex["id"])
    assert f"exercise with id {ex['id']}" in info.value.operation
    assert isinstance(info.value.__cause__, sqlite3.IntegrityError)
    assert exercises.get(ex["id"]) is not None
    assert sets.get(s["id"]) is not None


def test_workout_create_and_get(db, clock):
    repo = WorkoutRepository(db)
    clock.now = 1_700_000_123
    w = repo.create()
    assert w == {"id": w["id"], "started": 1_700_000_123, "note": None}
    assert repo.get(w["id"]) == w
    assert repo.get(w["id"] + 1) is None
    assert [x["id"] for x in repo.list()] == [w["id"]]


def test_workout_update_note(db, clock):
    repo = WorkoutRepository(db)
    w = repo.create()
    clock.now += 500
    updated = repo.update_note(w["id"], "  legs day ")
    assert updated["note"] == "legs day"
    assert updated["started"] == w["started"]
    assert repo.update_note(w["id"], "   ")["note"] is None
    assert repo.get(w["id"])["note"] is None
    assert repo.update_note(999, "x") is None


def test_workout_delete_cascades_to_sets(db):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    ex = exercises.create("Squats")
    keep = workouts.create()
    drop = workouts.create()
    kept_set = sets.upsert(None, keep["id"], ex["id"], 5, 100)
    sets.upsert(None, drop["id"], ex["id"], 5, 100)

    assert workouts.delete(drop["id"]) is True
    assert workouts.delete(drop["id"]) is False
    assert sets.list_by_workout(drop["id"]) == []
    assert sets.list() == [kept_set]


def test_upsert_insert_then_get(db, clock):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    ex = exercises.create("Bench Press")
    w = workouts.create()
    clock.now += 30
    created = sets.upsert(None, w["id"], ex["id"], 8, 60, "  ")
    assert created["exercise_name"] == "Bench Press"
    assert created["created"] == clock.now
    assert created["note"] is None
    assert sets.get(created["id"]) == created


def test_upsert_update_keeps_created(db, clock):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    bench = exercises.create("Bench Press")
    dips = exercises.create("Dips")
    w1 = workouts.create()
    w2 = workouts.create()
    created = sets.upsert(None, w1["id"], bench["id"], 8, 60, "first")

    clock.now += 3600
    updated = sets.upsert(created["id"], w2["id"], dips["id"], 10, 0, " bodyweight ")
    assert updated == {
        "id": created["id"],
        "exercise_id": dips["id"],
        "exercise_name": "Dips",
        "workout_id": w2["id"],
        "created": created["created"],
        "repetitions": 10,
        "weight": 0,
        "note": "bodyweight",
    }
    assert sets.get(created["id"]) == updated


def test_upsert_update_missing_raises_not_found(db):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    ex = exercises.create("Squats")
    w = workouts.create()
    with pytest.raises(NotFoundError):
        ExerciseSetRepository(db).upsert(77, w["id"], ex["id"], 5, 100)


def test_upsert_unknown_references_raise_store_error(db):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    ex = exercises.create("Squats")
    w = workouts.create()
    with pytest.raises(StoreError):
        sets.upsert(None, w["id"] + 10, ex["id"], 5, 100)
    with pytest.raises(StoreError):
        sets.upsert(None, w["id"], ex["id"] + 10, 5, 100)
    assert sets.list() == []


def test_upsert_with_vanished_exercise_rolls_back(db, monkeypatch):
    ex = ExerciseRepository(db).create("Squats")
    w = WorkoutRepository(db).create()
    sets = ExerciseSetRepository(db)
    monkeypatch.setattr(sets.exercises, "get", lambda exercise_id, conn=None: None)
    with pytest.raises(StoreError) as info:
        sets.upsert(None, w["id"], ex["id"], 5, 100)
    assert f"Exercise {ex['id']}" in info.value.operation
    assert sets.list() == []


def test_list_by_workout_and_exercise(db, clock):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    squat = exercises.create("Squats")
    dips = exercises.create("Dips")
    w1 = workouts.create()
    w2 = workouts.create()
    a = sets.upsert(None, w1["id"], squat["id"], 5, 100)
    clock.now += 60
    b = sets.upsert(None, w1["id"], dips["id"], 10, 0)
    clock.now += 60
    c = sets.upsert(None, w2["id"], squat["id"], 5, 110)

    assert sets.list_by_workout(w1["id"]) == [a, b]
    assert sets.list_by_workout(w2["id"]) == [c]
    assert sets.list_by_exercise(squat["id"]) == [a, c]
    assert sets.list_by_exercise(dips["id"]) == [b]
    assert sets.list() == [a, b, c]


def test_set_delete(db):
    exercises = ExerciseRepository(db)
    workouts = WorkoutRepository(db)
    sets = ExerciseSetRepository(db)
    ex = exercises.create("Squats")
    w = workouts.create()
    s = sets.upsert(None, w["id"], ex["id"], 5, 100)
    assert sets.delete(s["id"]) is True
    assert sets.get(s["id"]) is None
    assert sets.delete(s["id"]) is False


def test_set_queries_are_fixed_parameterized_statements():
    assert SetQuery.ALL.value.count("?") == 0
    for variant in (SetQuery.BY_ID, SetQuery.BY_WORKOUT, SetQuery.BY_EXERCISE):
        assert variant.value.count("?") == 1


def test_repository_methods_share_an_explicit_transaction(db):
    exercises = ExerciseRepository(db)
    with pytest.raises(RuntimeError):
        with db.transaction() as conn:
            exercises.create("Rolled Back", conn=conn)
            assert exercises.exists_name("Rolled Back", conn=conn)
            raise RuntimeError("abort")
    assert not exercises.exists_name("Rolled Back")

    with db.transaction() as conn:
        ex = exercises.create("Committed", conn=conn)
    assert exercises.get(ex["id"]) == ex


def test_store_failure_is_wrapped(tmp_path):
    db = Database(str(tmp_path / "broken.db"))
    with db.connection() as conn:
        conn.execute("DROP TABLE exercise_set;")
    with pytest.raises(StoreError) as info:
        ExerciseSetRepository(db).list()
    assert info.value.operation == "Failed to get all exercise sets"
