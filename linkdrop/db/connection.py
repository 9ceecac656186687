import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and row factory enabled."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def transaction(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Yield a connection that commits on success, rolls back on error,
    and is always closed afterwards.
    """
    conn = get_connection(db_path)
    try:
        with conn:
            yield conn
    finally:
        conn.close()


def run_migrations(db_path: str) -> None:
    """Apply any unapplied SQL migration files from the migrations directory."""
    conn = get_connection(db_path)
    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS _schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        conn.commit()

        applied = {
            row["filename"]
            for row in conn.execute("SELECT filename FROM _schema_migrations")
        }

        for migration_path in sorted(_MIGRATIONS_DIR.glob("*.sql")):
            filename = migration_path.name
            if filename in applied:
                continue
            logger.info("[db] applying migration | file=%s", filename)
            conn.executescript(migration_path.read_text())
            conn.execute(
                "INSERT INTO _schema_migrations (filename) VALUES (?)", (filename,)
            )
            conn.commit()
            logger.info("[db] migration applied | file=%s", filename)
    finally:
        conn.close()
