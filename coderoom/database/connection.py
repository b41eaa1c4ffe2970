"""
Database connection management for coderoom.

Provides context managers, error translation and configuration.
Uses SQLite with WAL mode so readers see the last committed state while a
scan or commit-index rebuild writes.
"""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator

from ..domain.search import contains_ci
from ..exit_codes import StorageUnavailableError, ConstraintViolationError
from .schema import ensure_schema

# Seconds a connection waits on a locked database before failing
BUSY_TIMEOUT = 5.0


def get_db_path(config: Optional[dict] = None) -> Path:
    """
    Get the database file path.

    Checks in order:
    1. CODEROOM_DB environment variable
    2. config['database']['path'] if provided
    3. Default: ~/.coderoom/coderoom.db

    Args:
        config: Optional configuration dictionary

    Returns:
        Path to database file
    """
    if 'CODEROOM_DB' in os.environ:
        return Path(os.environ['CODEROOM_DB']).expanduser()

    if config and 'database' in config and 'path' in (config['database'] or {}):
        return Path(config['database']['path']).expanduser()

    return Path.home() / '.coderoom' / 'coderoom.db'


def _contains_ci(text, query) -> int:
    return 1 if contains_ci(text, query) else 0


def get_connection(
    db_path: Optional[Path] = None,
    config: Optional[dict] = None,
    read_only: bool = False
) -> sqlite3.Connection:
    """
    Get a database connection.

    Creates the database and applies schema if it doesn't exist.

    Args:
        db_path: Optional explicit path to database
        config: Optional configuration dictionary
        read_only: If True, open in read-only mode

    Returns:
        SQLite connection

    Raises:
        StorageUnavailableError: if the file cannot be opened or migrated
    """
    if db_path is None:
        db_path = get_db_path(config)
    db_path = Path(db_path)

    try:
        if read_only:
            uri = f"file:{db_path}?mode=ro"
            conn = sqlite3.connect(uri, uri=True, timeout=BUSY_TIMEOUT)
        else:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT)
    except (OSError, sqlite3.Error) as e:
        raise StorageUnavailableError(f"Cannot open catalog {db_path}: {e}")

    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.create_function("contains_ci", 2, _contains_ci)

        if not read_only:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA cache_size = -64000")  # 64MB cache
            ensure_schema(conn)
    except sqlite3.Error as e:
        conn.close()
        raise StorageUnavailableError(f"Catalog {db_path} is unusable: {e}")

    return conn


@contextmanager
def _translate_errors(action: str) -> Generator[None, None, None]:
    try:
        yield
    except sqlite3.IntegrityError as e:
        raise ConstraintViolationError(f"{action}: {e}")
    except sqlite3.Error as e:
        raise StorageUnavailableError(f"{action}: {e}")


class Database:
    """
    Database context manager for coderoom.

    Provides a clean interface for database operations with automatic
    connection management. SQLite errors surface as StorageUnavailableError
    or ConstraintViolationError.

    Usage:
        with Database(db_path) as db:
            db.execute("SELECT * FROM repos")
            for row in db.fetchall():
                print(row['name'])

        # Read-only mode
        with Database(db_path, read_only=True) as db:
            ...
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        config: Optional[dict] = None,
        read_only: bool = False
    ):
        self.db_path = db_path
        self.config = config
        self.read_only = read_only
        self._conn: Optional[sqlite3.Connection] = None
        self._cursor: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> 'Database':
        self._conn = get_connection(
            db_path=self.db_path,
            config=self.config,
            read_only=self.read_only
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._cursor:
            self._cursor.close()
        if self._conn:
            try:
                if exc_type is None and not self.read_only:
                    with _translate_errors("Commit failed"):
                        self._conn.commit()
                elif exc_type is not None:
                    self._conn.rollback()
            finally:
                self._conn.close()
                self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Get the underlying connection."""
        if self._conn is None:
            raise RuntimeError("Database not connected. Use 'with Database() as db:'")
        return self._conn

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL statement."""
        with _translate_errors("Catalog query failed"):
            self._cursor = self.conn.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params_seq) -> sqlite3.Cursor:
        """Execute SQL statement with multiple parameter sets."""
        with _translate_errors("Catalog write failed"):
            self._cursor = self.conn.executemany(sql, params_seq)
        return self._cursor

    def fetchone(self) -> Optional[sqlite3.Row]:
        """Fetch one row from last query."""
        if self._cursor is None:
            return None
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        """Fetch all rows from last query."""
        if self._cursor is None:
            return []
        return self._cursor.fetchall()

    def commit(self) -> None:
        """Commit current transaction."""
        with _translate_errors("Commit failed"):
            self.conn.commit()

    def rollback(self) -> None:
        """Rollback current transaction."""
        self.conn.rollback()

    @property
    def lastrowid(self) -> Optional[int]:
        """Get last inserted row ID."""
        if self._cursor is None:
            return None
        return self._cursor.lastrowid

    @property
    def rowcount(self) -> int:
        """Get number of rows affected by last statement."""
        if self._cursor is None:
            return 0
        return self._cursor.rowcount


@contextmanager
def transaction(db: Database) -> Generator[None, None, None]:
    """
    Context manager for explicit transactions.

    Usage:
        with Database(db_path) as db:
            with transaction(db):
                db.execute("DELETE ...")
                db.execute("INSERT ...")
                # Commits on success, rolls back on exception
    """
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_database_info(db_path: Path) -> dict:
    """
    Get information about the catalog.

    Returns:
        Dictionary with database stats
    """
    db_path = Path(db_path)

    if not db_path.exists():
        return {
            'exists': False,
            'path': str(db_path),
        }

    counts = {}
    with Database(db_path, read_only=True) as db:
        for table in ('repos', 'tags', 'repo_tags', 'commit_branches',
                      'commit_entries', 'scan_errors'):
            db.execute(f"SELECT COUNT(*) FROM {table}")
            row = db.fetchone()
            counts[table] = row[0] if row else 0

        db.execute("SELECT MAX(version) FROM _schema_info")
        row = db.fetchone()
        schema_version = row[0] if row else 0

    file_size = db_path.stat().st_size

    return {
        'exists': True,
        'path': str(db_path),
        'size_bytes': file_size,
        'size_human': _human_size(file_size),
        'schema_version': schema_version,
        **counts,
    }


def _human_size(size_bytes: int) -> str:
    """Convert bytes to human-readable size."""
    size: float = float(size_bytes)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
