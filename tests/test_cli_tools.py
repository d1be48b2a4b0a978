import json
import os
import sys

import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from cli import backup_db, restore_db, main
from db import Database, ExerciseRepository, WorkoutRepository
from seed_sample_data import seed


def _write_config(tmp_path, **values) -> str:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(values), encoding="utf-8")
    return str(path)


def test_backup_restore(tmp_path):
    db_path = str(tmp_path / "workout.db")
    WorkoutRepository(Database(db_path)).create()
    backup = str(tmp_path / "backup.db")
    backup_db(db_path, backup)
    os.remove(db_path)
    restore_db(backup, db_path)
    assert len(WorkoutRepository(Database(db_path)).list()) == 1


def test_seed_inserts_once(tmp_path, capsys):
    db = Database(str(tmp_path / "seed.db"))
    assert seed(db) is True
    assert seed(db) is False
    assert len(WorkoutRepository(db).list()) == 1
    assert [e["name"] for e in ExerciseRepository(db).list()] == ["Bench Press"]
    assert "already contains workouts" in capsys.readouterr().out


def test_overview_and_suggest_commands(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    config = _write_config(tmp_path, seed_default_exercises=False)
    db_path = str(tmp_path / "cli.db")
    main(["--config", config, "--db", db_path, "seed"])
    capsys.readouterr()

    main(["--config", config, "--db", db_path, "overview"])
    overview = json.loads(capsys.readouterr().out)
    assert overview["total_workouts"] == 1
    assert overview["total_sets"] == 2
    assert overview["total_repetitions"] == 10

    main(["--config", config, "--db", db_path, "suggest", "1"])
    suggestion = json.loads(capsys.readouterr().out)
    assert suggestion["repetitions"] == 5
    assert suggestion["weight"] == 105


def test_migrate_command_creates_schema(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    config = _write_config(tmp_path)
    db_path = str(tmp_path / "fresh.db")
    main(["--config", config, "--db", db_path, "migrate"])
    assert WorkoutRepository(Database(db_path)).list() == []


def test_benchmark_uses_health_endpoint(monkeypatch):
    calls = []

    class Response:
        def raise_for_status(self):
            return None

    def fake_get(url, timeout):
        calls.append(url)
        return Response()

    monkeypatch.setattr(cli.requests, "get", fake_get)
    cli.benchmark("http://localhost:8080/", runs=3)
    assert calls == ["http://localhost:8080/health"] * 3
