import sqlite3
import aiosqlite
import logging
import time
from contextlib import contextmanager, asynccontextmanager
from enum import Enum
from typing import Callable, List, Tuple, Optional, Iterator

from migrate import upgrade_legacy_schema

logger = logging.getLogger(__name__)


DEFAULT_EXERCISES = [
    "Dehnen",
    "Handstand",
    "Squats",
    "Deadlifts",
    "Schulterdrücken Langhantel",
    "Schulterdrücken Maschine",
    "Seitheben Maschine",
    "Bankdrücken",
    "Bizeps Maschine",
    "Butterfly Maschine",
    "Reverse Butterfly Maschine",
    "Muscle Up",
    "Front Lever",
    "Back Lever",
    "Human Flag",
    "Pull Up",
    "Lat Pull-Down (Turm)",
    "Rudern (Turm)",
    "Dips",
    "Beinstrecken",
    "Beinpresse",
    "Wadenheben",
    "Adduktoren Maschine (Muskeln Innenseite)",
    "Abduktoren Maschine (Muskeln Außenseite)",
]


class NotFoundError(LookupError):
    """Raised when the row an operation mutates does not exist."""


class StoreError(RuntimeError):
    """Raised for any failure of the underlying store.

    ``operation`` describes what was being attempted, e.g. which entity and
    id, so the caller can log it. The original ``sqlite3.Error`` (if any) is
    available as ``__cause__``.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(operation)
        self.operation = operation


def utc_now() -> int:
    """Return the current UTC time as whole seconds since the epoch."""
    return int(time.time())


def normalize_note(note: Optional[str]) -> Optional[str]:
    """Return ``note`` stripped of surrounding whitespace, or ``None`` if blank."""
    if note is None:
        return None
    trimmed = note.strip()
    return trimmed or None


class Database:
    """Owns the SQLite file, its schema and connection handling.

    One instance is created at startup and handed to every repository and
    service that needs the store.
    """

    _TABLE_DEFINITIONS = {
        "workout": (
            """CREATE TABLE {name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    started_utc_s INTEGER NOT NULL,
                    note TEXT
                );""",
            ["id", "started_utc_s", "note"],
        ),
        "exercise": (
            """CREATE TABLE {name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL
                );""",
            ["id", "name"],
        ),
        "exercise_set": (
            """CREATE TABLE {name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    workout_id INTEGER NOT NULL,
                    created_utc_s INTEGER NOT NULL,
                    repetitions INTEGER NOT NULL,
                    weight INTEGER NOT NULL,
                    note TEXT,
                    FOREIGN KEY(exercise_id) REFERENCES exercise(id) ON DELETE RESTRICT,
                    FOREIGN KEY(workout_id) REFERENCES workout(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "exercise_id",
                "workout_id",
                "created_utc_s",
                "repetitions",
                "weight",
                "note",
            ],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_exercise_set_workout ON exercise_set (workout_id);",
        "CREATE INDEX IF NOT EXISTS idx_exercise_set_exercise ON exercise_set (exercise_id);",
    ]

    def __init__(
        self,
        db_path: str = "workout.db",
        *,
        seed_exercises: bool = False,
        timeout: float = 5.0,
        clock: Callable[[], int] = utc_now,
    ) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self.clock = clock
        created = self._ensure_schema()
        if seed_exercises and "exercise" in created:
            self._seed_exercises()

    @property
    def path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that is committed and closed on success."""
        connection = self._connect()
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside ``BEGIN IMMEDIATE``.

        Every statement run on the yielded connection observes one snapshot
        and holds the write lock until commit or rollback.
        """
        connection = self._connect()
        connection.isolation_level = None
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    def _ensure_schema(self) -> List[str]:
        created: List[str] = []
        with self.connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            if upgrade_legacy_schema(conn):
                logger.info("Upgraded legacy schema in %s", self._db_path)
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                if self._ensure_table(conn, table, sql, columns):
                    created.append(table)
            for statement in self._INDEXES:
                conn.execute(statement)
            conn.commit()
            conn.execute("PRAGMA foreign_keys=on;")
        if created:
            logger.info("Created tables %s in %s", ", ".join(created), self._db_path)
        return created

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> bool:
        """Create ``table`` or rebuild it when its columns changed.

        Returns ``True`` when the table did not exist before.
        """
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql.format(name=table))
            return True

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return False

        logger.info("Rebuilding table %s (%s -> %s)", table, existing_cols, columns)
        conn.execute(f"DROP TABLE IF EXISTS {table}_new;")
        conn.execute(sql.format(name=f"{table}_new"))
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table}_new ({cols}) SELECT {cols} FROM {table};"
            )
        conn.execute(f"DROP TABLE {table};")
        conn.execute(f"ALTER TABLE {table}_new RENAME TO {table};")
        return False

    def _seed_exercises(self) -> None:
        with self.connection() as conn:
            conn.executemany(
                "INSERT INTO exercise (name) VALUES (?);",
                [(name,) for name in DEFAULT_EXERCISES],
            )
        logger.info("Seeded %d default exercises", len(DEFAULT_EXERCISES))

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self.connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository:
    """Base repository providing helper methods.

    Every helper accepts an optional ``conn``. Without it a fresh connection
    is opened and committed; with it the statement runs on the given
    connection, typically one yielded by ``Database.transaction()``.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    @contextmanager
    def _use(
        self, conn: Optional[sqlite3.Connection], operation: str
    ) -> Iterator[sqlite3.Connection]:
        try:
            if conn is not None:
                yield conn
            else:
                with self.db.connection() as own:
                    yield own
        except sqlite3.Error as e:
            raise StoreError(operation) from e

    def execute(
        self,
        query: str,
        params: Tuple = (),
        *,
        conn: Optional[sqlite3.Connection] = None,
        operation: str = "Failed to execute statement",
    ) -> int:
        """Run ``query`` and return the last inserted row id."""
        with self._use(conn, operation) as c:
            return c.execute(query, params).lastrowid

    def execute_rowcount(
        self,
        query: str,
        params: Tuple = (),
        *,
        conn: Optional[sqlite3.Connection] = None,
        operation: str = "Failed to execute statement",
    ) -> int:
        """Run ``query`` and return the number of affected rows."""
        with self._use(conn, operation) as c:
            return c.execute(query, params).rowcount

    def fetch_all(
        self,
        query: str,
        params: Tuple = (),
        *,
        conn: Optional[sqlite3.Connection] = None,
        operation: str = "Failed to run query",
    ) -> List[Tuple]:
        with self._use(conn, operation) as c:
            return c.execute(query, params).fetchall()

    def fetch_one(
        self,
        query: str,
        params: Tuple = (),
        *,
        conn: Optional[sqlite3.Connection] = None,
        operation: str = "Failed to run query",
    ) -> Optional[Tuple]:
        rows = self.fetch_all(query, params, conn=conn, operation=operation)
        return rows[0] if rows else None


class ExerciseRepository(BaseRepository):
    """Repository for exercise table operations."""

    @staticmethod
    def _to_dict(row: Tuple) -> dict:
        return {"id": row[0], "name": row[1]}

    def get(
        self, exercise_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[dict]:
        row = self.fetch_one(
            "SELECT id, name FROM exercise WHERE id = ?;",
            (exercise_id,),
            conn=conn,
            operation=f"Failed to get exercise with id {exercise_id}",
        )
        return self._to_dict(row) if row else None

    def list(self, conn: Optional[sqlite3.Connection] = None) -> List[dict]:
        rows = self.fetch_all(
            "SELECT id, name FROM exercise ORDER BY name;",
            conn=conn,
            operation="Failed to get exercises",
        )
        return [self._to_dict(r) for r in rows]

    def create(self, name: str, conn: Optional[sqlite3.Connection] = None) -> dict:
        exercise_id = self.execute(
            "INSERT INTO exercise (name) VALUES (?);",
            (name,),
            conn=conn,
            operation=f'Failed to create exercise with name "{name}"',
        )
        return {"id": exercise_id, "name": name}

    def update(
        self, exercise_id: int, name: str, conn: Optional[sqlite3.Connection] = None
    ) -> dict:
        changed = self.execute_rowcount(
            "UPDATE exercise SET name = ? WHERE id = ?;",
            (name, exercise_id),
            conn=conn,
            operation=f'Failed to update name of exercise with id {exercise_id} to "{name}"',
        )
        if changed == 0:
            raise NotFoundError(f"exercise {exercise_id} not found")
        return {"id": exercise_id, "name": name}

    def delete(self, exercise_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Delete the exercise; fails with ``StoreError`` while sets use it."""
        changed = self.execute_rowcount(
            "DELETE FROM exercise WHERE id = ?;",
            (exercise_id,),
            conn=conn,
            operation=f"Failed to delete exercise with id {exercise_id}",
        )
        return changed > 0

    def count_sets(
        self, exercise_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        row = self.fetch_one(
            "SELECT COUNT(*) FROM exercise_set WHERE exercise_id = ?;",
            (exercise_id,),
            conn=conn,
            operation=f"Failed to get exercise count for exercise with id {exercise_id}",
        )
        return int(row[0])

    def exists_name(self, name: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Return whether an exercise with ``name`` exists, ignoring case."""
        row = self.fetch_one(
            "SELECT 1 FROM exercise WHERE LOWER(name) = LOWER(?) LIMIT 1;",
            (name.strip(),),
            conn=conn,
            operation=f'Failed to look up exercise with name "{name}"',
        )
        return row is not None


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    @staticmethod
    def _to_dict(row: Tuple) -> dict:
        return {"id": row[0], "started": row[1], "note": row[2]}

    def get(
        self, workout_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[dict]:
        row = self.fetch_one(
            "SELECT id, started_utc_s, note FROM workout WHERE id = ?;",
            (workout_id,),
            conn=conn,
            operation=f"Failed to get workout with id {workout_id}",
        )
        return self._to_dict(row) if row else None

    def list(self, conn: Optional[sqlite3.Connection] = None) -> List[dict]:
        rows = self.fetch_all(
            "SELECT id, started_utc_s, note FROM workout;",
            conn=conn,
            operation="Failed to get workouts",
        )
        return [self._to_dict(r) for r in rows]

    def create(self, conn: Optional[sqlite3.Connection] = None) -> dict:
        started = self.db.clock()
        workout_id = self.execute(
            "INSERT INTO workout (started_utc_s) VALUES (?);",
            (started,),
            conn=conn,
            operation="Failed to create workout",
        )
        return {"id": workout_id, "started": started, "note": None}

    def update_note(
        self,
        workout_id: int,
        note: Optional[str],
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[dict]:
        operation = f"Failed to update note of workout with id {workout_id}"
        with self._use(conn, operation) as c:
            changed = self.execute_rowcount(
                "UPDATE workout SET note = ? WHERE id = ?;",
                (normalize_note(note), workout_id),
                conn=c,
                operation=operation,
            )
            if changed == 0:
                return None
            return self.get(workout_id, conn=c)

    def delete(self, workout_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Delete the workout together with all of its sets."""
        changed = self.execute_rowcount(
            "DELETE FROM workout WHERE id = ?;",
            (workout_id,),
            conn=conn,
            operation=f"Failed to delete workout with id {workout_id}",
        )
        return changed > 0


_SET_SELECT = (
    "SELECT es.id, es.exercise_id, e.name, es.workout_id, es.created_utc_s,"
    " es.repetitions, es.weight, es.note "
    "FROM exercise_set es JOIN exercise e ON es.exercise_id = e.id"
)


class SetQuery(Enum):
    """The fixed set of exercise-set read queries."""

    ALL = _SET_SELECT + " ORDER BY es.created_utc_s, es.id;"
    BY_ID = _SET_SELECT + " WHERE es.id = ?;"
    BY_WORKOUT = (
        _SET_SELECT + " WHERE es.workout_id = ? ORDER BY es.created_utc_s, es.id;"
    )
    BY_EXERCISE = (
        _SET_SELECT + " WHERE es.exercise_id = ? ORDER BY es.created_utc_s, es.id;"
    )


def set_to_dict(row: Tuple) -> dict:
    (
        sid,
        exercise_id,
        exercise_name,
        workout_id,
        created,
        repetitions,
        weight,
        note,
    ) = row
    return {
        "id": sid,
        "exercise_id": exercise_id,
        "exercise_name": exercise_name,
        "workout_id": workout_id,
        "created": created,
        "repetitions": repetitions,
        "weight": weight,
        "note": note,
    }


class ExerciseSetRepository(BaseRepository):
    """Repository for exercise_set table operations."""

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self.exercises = ExerciseRepository(db)

    def _select(
        self,
        query: SetQuery,
        params: Tuple = (),
        *,
        conn: Optional[sqlite3.Connection] = None,
        operation: str,
    ) -> List[dict]:
        rows = self.fetch_all(query.value, params, conn=conn, operation=operation)
        return [set_to_dict(r) for r in rows]

    def get(
        self, set_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[dict]:
        rows = self._select(
            SetQuery.BY_ID,
            (set_id,),
            conn=conn,
            operation=f"Failed to get exercise set with id {set_id}",
        )
        return rows[0] if rows else None

    def list(self, conn: Optional[sqlite3.Connection] = None) -> List[dict]:
        return self._select(
            SetQuery.ALL, conn=conn, operation="Failed to get all exercise sets"
        )

    def list_by_workout(
        self, workout_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> List[dict]:
        return self._select(
            SetQuery.BY_WORKOUT,
            (workout_id,),
            conn=conn,
            operation=f"Failed to get exercise sets for workout with id {workout_id}",
        )

    def list_by_exercise(
        self, exercise_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> List[dict]:
        return self._select(
            SetQuery.BY_EXERCISE,
            (exercise_id,),
            conn=conn,
            operation=f"Failed to get exercise sets for exercise with id {exercise_id}",
        )

    def upsert(
        self,
        set_id: Optional[int],
        workout_id: int,
        exercise_id: int,
        repetitions: int,
        weight: int,
        note: Optional[str] = None,
    ) -> dict:
        """Insert a new set when ``set_id`` is ``None``, otherwise update it.

        Updates keep the original ``created`` timestamp. The write and the
        exercise name lookup share one transaction.
        """
        note = normalize_note(note)
        if set_id is None:
            operation = (
                f"Failed to create exercise set with workout id {workout_id}"
                f" and exercise id {exercise_id}"
            )
        else:
            operation = f"Failed to update exercise set with id {set_id}"
        try:
            with self.db.transaction() as conn:
                if set_id is None:
                    set_id = conn.execute(
                        "INSERT INTO exercise_set (workout_id, exercise_id, created_utc_s, repetitions, weight, note) "
                        "VALUES (?, ?, ?, ?, ?, ?);",
                        (workout_id, exercise_id, self.db.clock(), repetitions, weight, note),
                    ).lastrowid
                else:
                    changed = conn.execute(
                        "UPDATE exercise_set SET workout_id = ?, exercise_id = ?, repetitions = ?, weight = ?, note = ? "
                        "WHERE id = ?;",
                        (workout_id, exercise_id, repetitions, weight, note, set_id),
                    ).rowcount
                    if changed == 0:
                        raise NotFoundError(f"exercise set {set_id} not found")
                sid, ex_id, wid, created, reps, wt, stored_note = conn.execute(
                    "SELECT id, exercise_id, workout_id, created_utc_s, repetitions, weight, note "
                    "FROM exercise_set WHERE id = ?;",
                    (set_id,),
                ).fetchone()
                exercise = self.exercises.get(ex_id, conn=conn)
                if exercise is None:
                    raise StoreError(
                        f"Exercise {ex_id} referenced by exercise set {sid} does not exist"
                    )
        except sqlite3.Error as e:
            raise StoreError(operation) from e
        return {
            "id": sid,
            "exercise_id": ex_id,
            "exercise_name": exercise["name"],
            "workout_id": wid,
            "created": created,
            "repetitions": reps,
            "weight": wt,
            "note": stored_note,
        }

    def delete(self, set_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        changed = self.execute_rowcount(
            "DELETE FROM exercise_set WHERE id = ?;",
            (set_id,),
            conn=conn,
            operation=f"Failed to delete exercise set with id {set_id}",
        )
        return changed > 0

    def latest_in_workout(
        self,
        workout_id: int,
        exercise_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Tuple[int, int, int]]:
        """Return ``(exercise_id, repetitions, weight)`` of the newest set."""
        if exercise_id is None:
            return self.fetch_one(
                "SELECT exercise_id, repetitions, weight FROM exercise_set "
                "WHERE workout_id = ? ORDER BY created_utc_s DESC, id DESC LIMIT 1;",
                (workout_id,),
                conn=conn,
                operation=f"Failed to get last set of workout with id {workout_id}",
            )
        return self.fetch_one(
            "SELECT exercise_id, repetitions, weight FROM exercise_set "
            "WHERE workout_id = ? AND exercise_id = ? "
            "ORDER BY created_utc_s DESC, id DESC LIMIT 1;",
            (workout_id, exercise_id),
            conn=conn,
            operation=(
                f"Failed to get last set of exercise with id {exercise_id}"
                f" in workout with id {workout_id}"
            ),
        )

    def first_of_latest_workout(
        self,
        exercise_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Tuple[int, int, int]]:
        """Return the earliest set of the most recent workout with sets.

        Without ``exercise_id`` the most recent workout is the one with the
        highest id. With it, the most recently started workout containing that
        exercise is used and only that exercise's sets are considered.
        """
        if exercise_id is None:
            return self.fetch_one(
                "SELECT exercise_id, repetitions, weight FROM exercise_set "
                "WHERE workout_id = (SELECT MAX(workout_id) FROM exercise_set) "
                "ORDER BY created_utc_s, id LIMIT 1;",
                conn=conn,
                operation="Failed to get first set of the last workout",
            )
        return self.fetch_one(
            "SELECT exercise_id, repetitions, weight FROM exercise_set "
            "WHERE exercise_id = ? AND workout_id = ("
            " SELECT w.id FROM workout w JOIN exercise_set es ON es.workout_id = w.id"
            " WHERE es.exercise_id = ? ORDER BY w.started_utc_s DESC, w.id DESC LIMIT 1"
            ") ORDER BY created_utc_s, id LIMIT 1;",
            (exercise_id, exercise_id),
            conn=conn,
            operation=(
                f"Failed to get first set of exercise with id {exercise_id}"
                " in its last workout"
            ),
        )

    def workout_spans(
        self, conn: Optional[sqlite3.Connection] = None
    ) -> List[Tuple[int, int, int]]:
        """Return ``(workout_id, started, last_set_created)`` per workout with sets."""
        return self.fetch_all(
            "SELECT w.id, w.started_utc_s, MAX(es.created_utc_s) "
            "FROM exercise_set es JOIN workout w ON es.workout_id = w.id "
            "GROUP BY w.id;",
            conn=conn,
            operation="Failed to get workout durations",
        )

    def totals(self, conn: Optional[sqlite3.Connection] = None) -> Tuple[int, int, int]:
        """Return ``(set count, repetition sum, truncated average repetitions)``."""
        row = self.fetch_one(
            "SELECT COUNT(id), COALESCE(SUM(repetitions), 0),"
            " COALESCE(CAST(AVG(repetitions) AS INTEGER), 0) FROM exercise_set;",
            conn=conn,
            operation="Failed to get set and repetition totals",
        )
        return int(row[0]), int(row[1]), int(row[2])


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    async def _open(self, **kwargs) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self._db_path, timeout=self._timeout, **kwargs)
        await conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @asynccontextmanager
    async def async_connection(self):
        conn = await self._open()
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()

    @asynccontextmanager
    async def async_transaction(self):
        conn = await self._open(isolation_level=None)
        try:
            await conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK;")
                raise
            await conn.execute("COMMIT;")
        finally:
            await conn.close()


class AsyncBaseRepository:
    """Asynchronous variant of BaseRepository using aiosqlite."""

    def __init__(self, db: AsyncDatabase) -> None:
        self.db = db

    @asynccontextmanager
    async def _use(self, conn, operation: str):
        try:
            if conn is not None:
                yield conn
            else:
                async with self.db.async_connection() as own:
                    yield own
        except sqlite3.Error as e:
            raise StoreError(operation) from e

    async def execute(
        self, query: str, params: Tuple = (), *, conn=None, operation: str = "Failed to execute statement"
    ) -> int:
        async with self._use(conn, operation) as c:
            cursor = await c.execute(query, params)
            return cursor.lastrowid

    async def execute_rowcount(
        self, query: str, params: Tuple = (), *, conn=None, operation: str = "Failed to execute statement"
    ) -> int:
        async with self._use(conn, operation) as c:
            cursor = await c.execute(query, params)
            return cursor.rowcount

    async def fetch_all(
        self, query: str, params: Tuple = (), *, conn=None, operation: str = "Failed to run query"
    ) -> List[Tuple]:
        async with self._use(conn, operation) as c:
            cursor = await c.execute(query, params)
            return list(await cursor.fetchall())

    async def fetch_one(
        self, query: str, params: Tuple = (), *, conn=None, operation: str = "Failed to run query"
    ) -> Optional[Tuple]:
        rows = await self.fetch_all(query, params, conn=conn, operation=operation)
        return rows[0] if rows else None


class AsyncExerciseRepository(AsyncBaseRepository):
    """Asynchronous repository for exercises."""

    async def get(self, exercise_id: int, conn=None) -> Optional[dict]:
        row = await self.fetch_one(
            "SELECT id, name FROM exercise WHERE id = ?;",
            (exercise_id,),
            conn=conn,
            operation=f"Failed to get exercise with id {exercise_id}",
        )
        return ExerciseRepository._to_dict(row) if row else None

    async def list(self) -> List[dict]:
        rows = await self.fetch_all(
            "SELECT id, name FROM exercise ORDER BY name;",
            operation="Failed to get exercises",
        )
        return [ExerciseRepository._to_dict(r) for r in rows]

    async def create(self, name: str) -> dict:
        exercise_id = await self.execute(
            "INSERT INTO exercise (name) VALUES (?);",
            (name,),
            operation=f'Failed to create exercise with name "{name}"',
        )
        return {"id": exercise_id, "name": name}

    async def update(self, exercise_id: int, name: str) -> dict:
        changed = await self.execute_rowcount(
            "UPDATE exercise SET name = ? WHERE id = ?;",
            (name, exercise_id),
            operation=f'Failed to update name of exercise with id {exercise_id} to "{name}"',
        )
        if changed == 0:
            raise NotFoundError(f"exercise {exercise_id} not found")
        return {"id": exercise_id, "name": name}

    async def delete(self, exercise_id: int) -> bool:
        changed = await self.execute_rowcount(
            "DELETE FROM exercise WHERE id = ?;",
            (exercise_id,),
            operation=f"Failed to delete exercise with id {exercise_id}",
        )
        return changed > 0

    async def count_sets(self, exercise_id: int) -> int:
        row = await self.fetch_one(
            "SELECT COUNT(*) FROM exercise_set WHERE exercise_id = ?;",
            (exercise_id,),
            operation=f"Failed to get exercise count for exercise with id {exercise_id}",
        )
        return int(row[0])


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for workout table operations."""

    async def get(self, workout_id: int, conn=None) -> Optional[dict]:
        row = await self.fetch_one(
            "SELECT id, started_utc_s, note FROM workout WHERE id = ?;",
            (workout_id,),
            conn=conn,
            operation=f"Failed to get workout with id {workout_id}",
        )
        return WorkoutRepository._to_dict(row) if row else None

    async def list(self) -> List[dict]:
        rows = await self.fetch_all(
            "SELECT id, started_utc_s, note FROM workout;",
            operation="Failed to get workouts",
        )
        return [WorkoutRepository._to_dict(r) for r in rows]

    async def create(self) -> dict:
        started = self.db.clock()
        workout_id = await self.execute(
            "INSERT INTO workout (started_utc_s) VALUES (?);",
            (started,),
            operation="Failed to create workout",
        )
        return {"id": workout_id, "started": started, "note": None}

    async def update_note(self, workout_id: int, note: Optional[str]) -> Optional[dict]:
        operation = f"Failed to update note of workout with id {workout_id}"
        async with self._use(None, operation) as conn:
            changed = await self.execute_rowcount(
                "UPDATE workout SET note = ? WHERE id = ?;",
                (normalize_note(note), workout_id),
                conn=conn,
                operation=operation,
            )
            if changed == 0:
                return None
            return await self.get(workout_id, conn=conn)

    async def delete(self, workout_id: int) -> bool:
        changed = await self.execute_rowcount(
            "DELETE FROM workout WHERE id = ?;",
            (workout_id,),
            operation=f"Failed to delete workout with id {workout_id}",
        )
        return changed > 0


class AsyncExerciseSetRepository(AsyncBaseRepository):
    """Async repository for exercise_set table operations."""

    def __init__(self, db: AsyncDatabase) -> None:
        super().__init__(db)
        self.exercises = AsyncExerciseRepository(db)

    async def _select(self, query: SetQuery, params: Tuple = (), *, operation: str) -> List[dict]:
        rows = await self.fetch_all(query.value, params, operation=operation)
        return [set_to_dict(r) for r in rows]

    async def get(self, set_id: int) -> Optional[dict]:
        rows = await self._select(
            SetQuery.BY_ID,
            (set_id,),
            operation=f"Failed to get exercise set with id {set_id}",
        )
        return rows[0] if rows else None

    async def list(self) -> List[dict]:
        return await self._select(SetQuery.ALL, operation="Failed to get all exercise sets")

    async def list_by_workout(self, workout_id: int) -> List[dict]:
        return await self._select(
            SetQuery.BY_WORKOUT,
            (workout_id,),
            operation=f"Failed to get exercise sets for workout with id {workout_id}",
        )

    async def list_by_exercise(self, exercise_id: int) -> List[dict]:
        return await self._select(
            SetQuery.BY_EXERCISE,
            (exercise_id,),
            operation=f"Failed to get exercise sets for exercise with id {exercise_id}",
        )

    async def upsert(
        self,
        set_id: Optional[int],
        workout_id: int,
        exercise_id: int,
        repetitions: int,
        weight: int,
        note: Optional[str] = None,
    ) -> dict:
        note = normalize_note(note)
        if set_id is None:
            operation = (
                f"Failed to create exercise set with workout id {workout_id}"
                f" and exercise id {exercise_id}"
            )
        else:
            operation = f"Failed to update exercise set with id {set_id}"
        try:
            async with self.db.async_transaction() as conn:
                if set_id is None:
                    cursor = await conn.execute(
                        "INSERT INTO exercise_set (workout_id, exercise_id, created_utc_s, repetitions, weight, note) "
                        "VALUES (?, ?, ?, ?, ?, ?);",
                        (workout_id, exercise_id, self.db.clock(), repetitions, weight, note),
                    )
                    set_id = cursor.lastrowid
                else:
                    cursor = await conn.execute(
                        "UPDATE exercise_set SET workout_id = ?, exercise_id = ?, repetitions = ?, weight = ?, note = ? "
                        "WHERE id = ?;",
                        (workout_id, exercise_id, repetitions, weight, note, set_id),
                    )
                    if cursor.rowcount == 0:
                        raise NotFoundError(f"exercise set {set_id} not found")
                cursor = await conn.execute(
                    "SELECT id, exercise_id, workout_id, created_utc_s, repetitions, weight, note "
                    "FROM exercise_set WHERE id = ?;",
                    (set_id,),
                )
                sid, ex_id, wid, created, reps, wt, stored_note = await cursor.fetchone()
                exercise = await self.exercises.get(ex_id, conn=conn)
                if exercise is None:
                    raise StoreError(
                        f"Exercise {ex_id} referenced by exercise set {sid} does not exist"
                    )
        except sqlite3.Error as e:
            raise StoreError(operation) from e
        return {
            "id": sid,
            "exercise_id": ex_id,
            "exercise_name": exercise["name"],
            "workout_id": wid,
            "created": created,
            "repetitions": reps,
            "weight": wt,
            "note": stored_note,
        }

    async def delete(self, set_id: int) -> bool:
        changed = await self.execute_rowcount(
            "DELETE FROM exercise_set WHERE id = ?;",
            (set_id,),
            operation=f"Failed to delete exercise set with id {set_id}",
        )
        return changed > 0
