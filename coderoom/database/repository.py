"""
Repository database operations for coderoom.

Provides CRUD, listing and search queries for repositories, mapping
between domain objects and database records.
"""

import os
import time
from typing import Dict, Any, Optional, List, Iterable, Tuple

from ..domain.repository import Repository, ADDED, UPDATED, UNCHANGED, METADATA_FIELDS
from .connection import Database

# Comma-joined tag names; tag names never contain a comma
_TAG_LIST = """
    (SELECT group_concat(t.name, ',')
       FROM repo_tags rt JOIN tags t ON t.id = rt.tag_id
      WHERE rt.repo_id = r.id) AS tag_list
"""

_SCOPE_CLAUSES = {
    'name': "contains_ci(r.name, ?)",
    'path': "contains_ci(r.path, ?)",
    'readme': "contains_ci(r.readme_excerpt, ?)",
    'tags': """EXISTS (SELECT 1 FROM repo_tags rt JOIN tags t ON t.id = rt.tag_id
                       WHERE rt.repo_id = r.id AND contains_ci(t.name, ?))""",
}

_TAG_FILTER = """EXISTS (SELECT 1 FROM repo_tags rt JOIN tags t ON t.id = rt.tag_id
                         WHERE rt.repo_id = r.id AND t.name = ?)"""


def _order_by(recent: bool) -> str:
    if recent:
        return "ORDER BY COALESCE(r.last_access_ts, 0) DESC, r.name COLLATE NOCASE, r.path"
    return "ORDER BY r.name COLLATE NOCASE, r.path"


def upsert_repo(db: Database, repo: Repository, now: Optional[int] = None) -> str:
    """
    Insert or update a repository.

    ``first_seen_ts`` and ``last_access_ts`` of an existing row are kept;
    ``last_scan_ts`` is always set to ``now``.

    Returns:
        'added', 'updated' or 'unchanged'
    """
    now = int(now if now is not None else time.time())
    record = _repo_to_record(repo)

    db.execute("SELECT * FROM repos WHERE path = ?", (repo.path,))
    existing = db.fetchone()

    if existing is None:
        record['first_seen_ts'] = now
        record['last_scan_ts'] = now
        _insert_repo(db, record)
        return ADDED

    before = record_to_domain(dict(existing))
    record['last_scan_ts'] = now
    _update_repo(db, existing['id'], record)
    return UNCHANGED if before.same_metadata(repo) else UPDATED


def _repo_to_record(repo: Repository) -> Dict[str, Any]:
    record = {'path': repo.path}
    for field in METADATA_FIELDS:
        record[field] = getattr(repo, field)
    return record


def _insert_repo(db: Database, record: Dict[str, Any]) -> int:
    """Insert a new repository record."""
    columns = list(record.keys())
    placeholders = ', '.join(['?' for _ in columns])
    column_names = ', '.join(columns)

    sql = f"INSERT INTO repos ({column_names}) VALUES ({placeholders})"
    db.execute(sql, tuple(record.values()))
    return db.lastrowid or 0


def _update_repo(db: Database, repo_id: int, record: Dict[str, Any]) -> None:
    """Update an existing repository record."""
    set_clause = ', '.join([f"{k} = ?" for k in record.keys()])
    sql = f"UPDATE repos SET {set_clause} WHERE id = ?"
    db.execute(sql, tuple(record.values()) + (repo_id,))


def get_repo_id(db: Database, path: str) -> Optional[int]:
    db.execute("SELECT id FROM repos WHERE path = ?", (path,))
    row = db.fetchone()
    return row['id'] if row else None


def get_repo_by_path(db: Database, path: str) -> Optional[Repository]:
    """Get a repository (with its tags) by canonical path."""
    db.execute(f"SELECT r.*, {_TAG_LIST} FROM repos r WHERE r.path = ?", (path,))
    row = db.fetchone()
    return record_to_domain(dict(row)) if row else None


def resolve_repo_path(db: Database, ref: str) -> Optional[str]:
    """
    Resolve a user reference to a cataloged path.

    An absolute ref only ever matches that exact path (as given or
    canonicalized). Anything else tries exact name, then a case-insensitive
    substring of name or path. Ties resolve by name then path.
    """
    ref = (ref or '').strip()
    if not ref:
        return None

    expanded = os.path.expanduser(ref)
    if os.path.isabs(expanded):
        for candidate in (os.path.realpath(expanded), expanded):
            db.execute("SELECT path FROM repos WHERE path = ?", (candidate,))
            row = db.fetchone()
            if row:
                return row['path']
        return None

    db.execute(
        "SELECT path FROM repos WHERE name = ? ORDER BY path LIMIT 1",
        (ref,)
    )
    row = db.fetchone()
    if row:
        return row['path']

    db.execute(
        """SELECT r.path FROM repos r
           WHERE contains_ci(r.name, ?) OR contains_ci(r.path, ?)
           ORDER BY r.name COLLATE NOCASE, r.path LIMIT 1""",
        (ref, ref)
    )
    row = db.fetchone()
    return row['path'] if row else None


def delete_repo_by_path(db: Database, path: str) -> bool:
    """Delete a repository; tags associations and commit rows cascade."""
    db.execute("DELETE FROM repos WHERE path = ?", (path,))
    return db.rowcount > 0


def list_repo_paths(db: Database) -> List[str]:
    db.execute("SELECT path FROM repos ORDER BY path")
    return [row['path'] for row in db.fetchall()]


def list_repo_paths_under_root(db: Database, root: str) -> List[str]:
    """
    Paths equal to ``root`` or below it.

    Uses a literal prefix comparison so ``_`` and ``%`` in paths never act
    as wildcards, and ``/src/app`` does not claim ``/src/apple``.
    """
    prefix = root if root.endswith(os.sep) else root + os.sep
    db.execute(
        "SELECT path FROM repos WHERE path = ? OR substr(path, 1, ?) = ? ORDER BY path",
        (root, len(prefix), prefix)
    )
    return [row['path'] for row in db.fetchall()]


def prune_paths(db: Database, paths: Iterable[str]) -> int:
    """Delete the given repositories. Returns how many rows went away."""
    removed = 0
    for path in paths:
        if delete_repo_by_path(db, path):
            removed += 1
    return removed


def list_repos(
    db: Database,
    tag: Optional[str] = None,
    recent: bool = False,
    limit: int = 25,
    offset: int = 0,
) -> List[Repository]:
    """List repositories, optionally restricted to one (normalized) tag."""
    where, params = _tag_where(tag)
    db.execute(
        f"SELECT r.*, {_TAG_LIST} FROM repos r {where} {_order_by(recent)} LIMIT ? OFFSET ?",
        params + (limit, offset)
    )
    return [record_to_domain(dict(row)) for row in db.fetchall()]


def count_repos(db: Database, tag: Optional[str] = None) -> int:
    where, params = _tag_where(tag)
    db.execute(f"SELECT COUNT(*) FROM repos r {where}", params)
    row = db.fetchone()
    return row[0] if row else 0


def _tag_where(tag: Optional[str]) -> Tuple[str, tuple]:
    if tag is None:
        return "", ()
    return f"WHERE {_TAG_FILTER}", (tag,)


def _search_where(query: str, scopes: Iterable[str]) -> Tuple[str, tuple]:
    clauses = [_SCOPE_CLAUSES[scope] for scope in scopes]
    return "WHERE (" + " OR ".join(clauses) + ")", tuple(query for _ in clauses)


def search_repos(
    db: Database,
    query: str,
    scopes: Iterable[str],
    recent: bool = False,
    limit: int = 25,
    offset: int = 0,
) -> List[Repository]:
    """
    Case-insensitive substring search over the selected scopes.

    Args:
        db: Database connection
        query: Literal text to look for
        scopes: Subset of name, path, readme, tags (already validated)
        recent: Order recently opened repositories first

    Returns:
        One page of matching repositories with their tags
    """
    where, params = _search_where(query, list(scopes))
    db.execute(
        f"SELECT r.*, {_TAG_LIST} FROM repos r {where} {_order_by(recent)} LIMIT ? OFFSET ?",
        params + (limit, offset)
    )
    return [record_to_domain(dict(row)) for row in db.fetchall()]


def count_search_repos(db: Database, query: str, scopes: Iterable[str]) -> int:
    where, params = _search_where(query, list(scopes))
    db.execute(f"SELECT COUNT(*) FROM repos r {where}", params)
    row = db.fetchone()
    return row[0] if row else 0


def touch_access(db: Database, path: str, ts: Optional[int] = None) -> bool:
    """Record that the user opened a repository."""
    ts = int(ts if ts is not None else time.time())
    db.execute("UPDATE repos SET last_access_ts = ? WHERE path = ?", (ts, path))
    return db.rowcount > 0


def record_to_domain(record: Dict[str, Any]) -> Repository:
    """
    Convert a database record to a Repository domain object.

    Args:
        record: Database row as dictionary

    Returns:
        Repository domain object
    """
    tag_list = record.get('tag_list')
    tags = tuple(sorted(tag_list.split(','))) if tag_list else ()

    return Repository(
        path=record['path'],
        name=record['name'],
        default_branch=record.get('default_branch'),
        origin_url=record.get('origin_url'),
        readme_excerpt=record.get('readme_excerpt'),
        last_commit_ts=record.get('last_commit_ts'),
        first_seen_ts=record.get('first_seen_ts'),
        last_scan_ts=record.get('last_scan_ts'),
        last_access_ts=record.get('last_access_ts'),
        tags=tags,
    )
