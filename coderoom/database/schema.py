"""
Database schema for coderoom.

This module defines the SQLite schema and handles migrations.
The schema is designed to:
- Key repositories by canonical absolute path
- Keep tags as user data that survives every rescan
- Hold a bounded commit window per repository, replaced atomically
- Cascade repository deletion to tags and commit rows

Unlike a rebuildable cache, the catalog carries user tags and access
history, so migrations only ever move forward; nothing is dropped.
"""

import logging
import sqlite3
from typing import List, Tuple

logger = logging.getLogger(__name__)

# Current schema version - increment when schema changes
# v1: Initial schema
CURRENT_VERSION = 1

SCHEMA_V1 = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS _schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

-- Cataloged repositories, keyed by canonical path
CREATE TABLE IF NOT EXISTS repos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    default_branch TEXT,
    origin_url TEXT,
    readme_excerpt TEXT,
    last_commit_ts INTEGER,   -- HEAD commit time, NULL for empty repos
    first_seen_ts INTEGER NOT NULL,
    last_scan_ts INTEGER NOT NULL,
    last_access_ts INTEGER    -- NULL until the repo is opened
);

-- Tag names; a row without associations is deleted with its last one
CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS repo_tags (
    repo_id INTEGER NOT NULL REFERENCES repos(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (repo_id, tag_id)
);

-- Branches selected into the commit window
CREATE TABLE IF NOT EXISTS commit_branches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repo_id INTEGER NOT NULL REFERENCES repos(id) ON DELETE CASCADE,
    refname TEXT NOT NULL,
    name TEXT NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('local', 'remote')),
    tip_oid TEXT,
    tip_ts INTEGER,
    UNIQUE (repo_id, refname)
);

-- First-parent commits per selected branch
CREATE TABLE IF NOT EXISTS commit_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repo_id INTEGER NOT NULL REFERENCES repos(id) ON DELETE CASCADE,
    refname TEXT NOT NULL,
    branch_name TEXT NOT NULL,
    branch_kind TEXT NOT NULL,
    oid TEXT NOT NULL,
    position INTEGER NOT NULL,
    author_ts INTEGER,
    author TEXT,
    email TEXT,
    summary TEXT NOT NULL DEFAULT '',
    body TEXT NOT NULL DEFAULT '',
    UNIQUE (repo_id, refname, oid)
);

-- Paths that failed during the last scan or rebuild
CREATE TABLE IF NOT EXISTS scan_errors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL,
    operation TEXT NOT NULL DEFAULT 'scan',
    error_type TEXT NOT NULL,
    error_message TEXT,
    scanned_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_repos_name ON repos(name);
CREATE INDEX IF NOT EXISTS idx_repos_access ON repos(last_access_ts);
CREATE INDEX IF NOT EXISTS idx_repo_tags_tag ON repo_tags(tag_id);
CREATE INDEX IF NOT EXISTS idx_commit_branches_repo ON commit_branches(repo_id);
CREATE INDEX IF NOT EXISTS idx_commit_entries_branch ON commit_entries(repo_id, refname, position);
CREATE INDEX IF NOT EXISTS idx_scan_errors_path ON scan_errors(path);
"""


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from database."""
    try:
        cursor = conn.execute(
            "SELECT MAX(version) FROM _schema_info"
        )
        result = cursor.fetchone()
        return result[0] if result[0] is not None else 0
    except sqlite3.OperationalError:
        # Table doesn't exist yet
        return 0


def apply_schema(conn: sqlite3.Connection, version: int = CURRENT_VERSION) -> None:
    """
    Apply every migration above the database's current version.

    Migrations run in order and each records itself in _schema_info.
    """
    current = get_schema_version(conn)

    for migration_version, description, sql in get_migrations():
        if migration_version <= current or migration_version > version:
            continue
        logger.debug(f"Applying schema v{migration_version}: {description}")
        conn.executescript(sql)
        conn.execute(
            "INSERT OR REPLACE INTO _schema_info (version, description) VALUES (?, ?)",
            (migration_version, description)
        )

    conn.commit()


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Ensure database has current schema, migrating if necessary."""
    current = get_schema_version(conn)

    if current > CURRENT_VERSION:
        logger.warning(
            f"Catalog schema v{current} is newer than this coderoom (v{CURRENT_VERSION})"
        )
    elif current < CURRENT_VERSION:
        apply_schema(conn, CURRENT_VERSION)


def get_migrations() -> List[Tuple[int, str, str]]:
    """
    Get list of migrations.

    Returns:
        List of (version, description, sql) tuples
    """
    return [
        (1, "Initial schema", SCHEMA_V1),
    ]
