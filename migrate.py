import logging
import sqlite3
import sys

logger = logging.getLogger(__name__)


def _columns(conn: sqlite3.Connection, table: str) -> list[str]:
    cur = conn.execute(f"PRAGMA table_info({table});")
    return [r[1] for r in cur.fetchall()]


def _check_legacy_dates(conn: sqlite3.Connection, table: str, column: str) -> None:
    from db import StoreError

    row = conn.execute(
        f"SELECT id, {column} FROM {table} WHERE strftime('%s', {column}) IS NULL LIMIT 1;"
    ).fetchone()
    if row is not None:
        raise StoreError(
            f"Cannot migrate {table} row {row[0]}: unreadable {column} {row[1]!r}"
        )


def upgrade_legacy_schema(conn: sqlite3.Connection) -> bool:
    """Convert the first schema generation to integer timestamps.

    The legacy layout stored ``workout.start_date_utc`` and
    ``exercise_set.date_utc`` as ``DATETIME('now')`` text and had no notes.
    This adds the integer second columns and fills them; the table rebuild in
    ``Database._ensure_table`` then drops the text columns and adds ``note``.
    Returns whether anything changed. Raises ``StoreError`` naming the first
    row whose date text cannot be parsed, before any table is altered.
    """
    changed = False
    workout_cols = _columns(conn, "workout")
    set_cols = _columns(conn, "exercise_set")
    if "start_date_utc" in workout_cols and "started_utc_s" not in workout_cols:
        _check_legacy_dates(conn, "workout", "start_date_utc")
    if "date_utc" in set_cols and "created_utc_s" not in set_cols:
        _check_legacy_dates(conn, "exercise_set", "date_utc")

    if "start_date_utc" in workout_cols and "started_utc_s" not in workout_cols:
        conn.execute("ALTER TABLE workout ADD COLUMN started_utc_s INTEGER;")
        conn.execute(
            "UPDATE workout SET started_utc_s = CAST(strftime('%s', start_date_utc) AS INTEGER);"
        )
        changed = True
    cols = _columns(conn, "exercise_set")
    if "date_utc" in cols and "created_utc_s" not in cols:
        conn.execute("ALTER TABLE exercise_set ADD COLUMN created_utc_s INTEGER;")
        conn.execute(
            "UPDATE exercise_set SET created_utc_s = CAST(strftime('%s', date_utc) AS INTEGER);"
        )
        changed = True
    return changed


def migrate(db_path: str = "workout.db") -> None:
    """Bring the database at ``db_path`` up to the current schema."""
    from db import Database

    Database(db_path)
    logger.info("Database %s is up to date", db_path)


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "workout.db"
    migrate(path)
