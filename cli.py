import argparse
import json
import logging
import shutil
import time
from typing import Optional

import requests

from config import YamlConfig
from db import Database, ExerciseSetRepository
from logging_config import setup_logging
from migrate import migrate
from recommendation_service import RecommendationService
from seed_sample_data import seed
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)
    logger.info("Backed up %s to %s", db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)
    logger.info("Restored %s from %s", db_path, backup_path)


def print_overview(db: Database) -> dict:
    overview = StatisticsService(ExerciseSetRepository(db)).overview()
    print(json.dumps(overview, indent=2))
    return overview


def print_suggestion(db: Database, workout_id: int, exercise_id: Optional[int]) -> dict:
    recommender = RecommendationService(ExerciseSetRepository(db))
    suggestion = recommender.suggest(workout_id, exercise_id)
    print(json.dumps(suggestion))
    return suggestion


def benchmark(url: str, runs: int = 10) -> float:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url.rstrip('/')}/health", timeout=5).raise_for_status()
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")
    return avg


def serve(db: Database, host: str, port: int) -> None:
    import uvicorn
    from rest_api import GymAPI

    logger.info("Listening on %s:%d", host, port)
    uvicorn.run(GymAPI(db).app, host=host, port=port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Workout tracker commands")
    parser.add_argument("--config", default="settings.yaml")
    parser.add_argument("--db", help="database file, overrides the settings file")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--host")
    srv.add_argument("--port", type=int)

    sub.add_parser("overview")

    sug = sub.add_parser("suggest")
    sug.add_argument("workout", type=int)
    sug.add_argument("--exercise", type=int)

    sub.add_parser("migrate")
    sub.add_parser("seed")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8080")
    bench.add_argument("--runs", type=int, default=10)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = YamlConfig(args.config).settings()
    setup_logging(settings.log_level)
    db_path = args.db or settings.db_path

    if args.cmd == "backup":
        backup_db(db_path, args.out)
        return
    if args.cmd == "restore":
        restore_db(args.src, db_path)
        return
    if args.cmd == "benchmark":
        benchmark(args.url, args.runs)
        return
    if args.cmd == "migrate":
        migrate(db_path)
        return

    db = Database(
        db_path,
        seed_exercises=settings.seed_default_exercises,
        timeout=settings.busy_timeout_s,
    )
    if args.cmd == "serve":
        serve(db, args.host or settings.host, args.port or settings.port)
    elif args.cmd == "overview":
        print_overview(db)
    elif args.cmd == "suggest":
        print_suggestion(db, args.workout, args.exercise)
    elif args.cmd == "seed":
        seed(db)


if __name__ == "__main__":
    main()
