"""
Tag database operations for coderoom.

Tag rows exist only while at least one repository carries them. The
aggregate listing is computed from repo_tags on every call.
"""

from typing import List, Optional, Tuple

from ..exit_codes import ConstraintViolationError
from .connection import Database


def get_tag_id(db: Database, name: str) -> Optional[int]:
    db.execute("SELECT id FROM tags WHERE name = ?", (name,))
    row = db.fetchone()
    return row['id'] if row else None


def get_or_create_tag(db: Database, name: str) -> int:
    db.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (name,))
    tag_id = get_tag_id(db, name)
    if tag_id is None:
        raise ConstraintViolationError(f"Tag {name!r} could not be stored")
    return tag_id


def add_tag_association(db: Database, repo_id: int, name: str) -> bool:
    """
    Attach a normalized tag to a repository.

    Returns:
        False if the repository already carried the tag
    """
    tag_id = get_or_create_tag(db, name)
    db.execute(
        "INSERT OR IGNORE INTO repo_tags (repo_id, tag_id) VALUES (?, ?)",
        (repo_id, tag_id)
    )
    return db.rowcount > 0


def remove_tag_association(db: Database, repo_id: int, name: str) -> bool:
    """
    Detach a normalized tag from a repository, dropping the tag row when no
    repository carries it any more.

    Returns:
        False if the repository did not carry the tag
    """
    tag_id = get_tag_id(db, name)
    if tag_id is None:
        return False
    db.execute(
        "DELETE FROM repo_tags WHERE repo_id = ? AND tag_id = ?",
        (repo_id, tag_id)
    )
    removed = db.rowcount > 0
    prune_orphan_tags(db)
    return removed


def prune_orphan_tags(db: Database) -> int:
    """Delete tag rows no repository refers to."""
    db.execute(
        "DELETE FROM tags WHERE id NOT IN (SELECT DISTINCT tag_id FROM repo_tags)"
    )
    return db.rowcount


def list_repo_tags(db: Database, repo_id: int) -> List[str]:
    db.execute(
        """SELECT t.name FROM repo_tags rt JOIN tags t ON t.id = rt.tag_id
           WHERE rt.repo_id = ? ORDER BY t.name""",
        (repo_id,)
    )
    return [row['name'] for row in db.fetchall()]


def list_tag_counts(db: Database) -> List[Tuple[str, int]]:
    """Every tag with at least one repository, with its repository count."""
    db.execute(
        """SELECT t.name AS name, COUNT(rt.repo_id) AS count
           FROM tags t JOIN repo_tags rt ON rt.tag_id = t.id
           GROUP BY t.id
           HAVING COUNT(rt.repo_id) > 0
           ORDER BY t.name"""
    )
    return [(row['name'], row['count']) for row in db.fetchall()]
