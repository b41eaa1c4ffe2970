"""
Commit index database operations for coderoom.

Each repository owns one window of branches and entries. A rebuild swaps
the whole window inside a single transaction, so readers see either the
old window or the new one.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..domain.commit import CommitBranch, CommitEntry
from .connection import Database, transaction

_SCOPE_CLAUSES = {
    'summary': "contains_ci(c.summary, ?)",
    'body': "contains_ci(c.body, ?)",
}

_ENTRY_COLUMNS = """
    c.refname, c.branch_name, c.branch_kind, c.oid, c.position,
    c.author_ts, c.author, c.email, c.summary, c.body,
    r.path AS repo_path, r.name AS repo_name
"""


def replace_commit_window(
    db: Database,
    repo_id: int,
    branches: Sequence[CommitBranch],
    entries: Sequence[CommitEntry],
) -> int:
    """
    Atomically replace a repository's commit window.

    Returns:
        Number of entries stored
    """
    with transaction(db):
        db.execute("DELETE FROM commit_entries WHERE repo_id = ?", (repo_id,))
        db.execute("DELETE FROM commit_branches WHERE repo_id = ?", (repo_id,))
        db.executemany(
            """INSERT INTO commit_branches (repo_id, refname, name, kind, tip_oid, tip_ts)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [(repo_id, b.refname, b.name, b.kind, b.tip_oid, b.tip_ts) for b in branches]
        )
        db.executemany(
            """INSERT INTO commit_entries
               (repo_id, refname, branch_name, branch_kind, oid, position,
                author_ts, author, email, summary, body)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (repo_id, e.refname, e.branch_name, e.branch_kind, e.oid, e.position,
                 e.author_ts, e.author, e.email, e.summary, e.body)
                for e in entries
            ]
        )
    return len(entries)


def list_commit_branches(db: Database, repo_id: int) -> List[CommitBranch]:
    """Indexed branches, most recently updated first."""
    db.execute(
        """SELECT refname, name, kind, tip_oid, tip_ts FROM commit_branches
           WHERE repo_id = ?
           ORDER BY COALESCE(tip_ts, 0) DESC, refname""",
        (repo_id,)
    )
    return [
        CommitBranch(
            refname=row['refname'],
            name=row['name'],
            kind=row['kind'],
            tip_oid=row['tip_oid'],
            tip_ts=row['tip_ts'],
        )
        for row in db.fetchall()
    ]


def list_commit_entries(
    db: Database,
    repo_id: int,
    refname: str,
    limit: int = 25,
    offset: int = 0,
) -> List[CommitEntry]:
    """Entries of one indexed branch in walk order."""
    db.execute(
        f"""SELECT {_ENTRY_COLUMNS} FROM commit_entries c JOIN repos r ON r.id = c.repo_id
            WHERE c.repo_id = ? AND c.refname = ?
            ORDER BY c.position LIMIT ? OFFSET ?""",
        (repo_id, refname, limit, offset)
    )
    return [_row_to_entry(dict(row)) for row in db.fetchall()]


def count_commit_entries(
    db: Database,
    repo_id: Optional[int] = None,
    refname: Optional[str] = None,
) -> int:
    sql = "SELECT COUNT(*) FROM commit_entries WHERE 1 = 1"
    params: Tuple[Any, ...] = ()
    if repo_id is not None:
        sql += " AND repo_id = ?"
        params += (repo_id,)
    if refname is not None:
        sql += " AND refname = ?"
        params += (refname,)
    db.execute(sql, params)
    row = db.fetchone()
    return row[0] if row else 0


def _search_where(query: str, scopes: Iterable[str],
                  branch: Optional[str]) -> Tuple[str, tuple]:
    clauses = [_SCOPE_CLAUSES[scope] for scope in scopes]
    where = "WHERE (" + " OR ".join(clauses) + ")"
    params: Tuple[Any, ...] = tuple(query for _ in clauses)
    if branch:
        # Literal prefix on the short name or the full refname
        where += " AND (substr(c.branch_name, 1, ?) = ? OR substr(c.refname, 1, ?) = ?)"
        params += (len(branch), branch, len(branch), branch)
    return where, params


def search_commit_entries(
    db: Database,
    query: str,
    scopes: Iterable[str],
    branch: Optional[str] = None,
    limit: int = 25,
    offset: int = 0,
) -> List[CommitEntry]:
    """
    Case-insensitive substring search over indexed commit messages.

    Ordered by branch recency (tip time, newest first), then repository
    path, refname and walk position, so pages are stable between calls.
    """
    where, params = _search_where(query, list(scopes), branch)
    db.execute(
        f"""SELECT {_ENTRY_COLUMNS}
            FROM commit_entries c
            JOIN repos r ON r.id = c.repo_id
            LEFT JOIN commit_branches b ON b.repo_id = c.repo_id AND b.refname = c.refname
            {where}
            ORDER BY COALESCE(b.tip_ts, 0) DESC, r.path, c.refname, c.position, c.oid
            LIMIT ? OFFSET ?""",
        params + (limit, offset)
    )
    return [_row_to_entry(dict(row)) for row in db.fetchall()]


def count_search_commit_entries(
    db: Database,
    query: str,
    scopes: Iterable[str],
    branch: Optional[str] = None,
) -> int:
    where, params = _search_where(query, list(scopes), branch)
    db.execute(f"SELECT COUNT(*) FROM commit_entries c {where}", params)
    row = db.fetchone()
    return row[0] if row else 0


def _row_to_entry(record: Dict[str, Any]) -> CommitEntry:
    return CommitEntry(
        refname=record['refname'],
        branch_name=record['branch_name'],
        branch_kind=record['branch_kind'],
        oid=record['oid'],
        position=record['position'],
        author_ts=record.get('author_ts'),
        author=record.get('author'),
        email=record.get('email'),
        summary=record.get('summary') or '',
        body=record.get('body') or '',
        repo_path=record.get('repo_path'),
        repo_name=record.get('repo_name'),
    )
