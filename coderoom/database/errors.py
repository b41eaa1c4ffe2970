"""
Scan error tracking for coderoom.

Records paths that failed during a scan or commit-index rebuild so users
can see which repositories were skipped and why.
"""

from typing import Optional, List, Dict, Any

from .connection import Database

SCAN = 'scan'
INDEX = 'index'


def record_scan_error(
    db: Database,
    path: str,
    error_type: str,
    error_message: Optional[str] = None,
    operation: str = SCAN,
) -> int:
    """
    Record an error for a path.

    Clears any previous error for this path and operation first.

    Args:
        db: Database connection
        path: Path that failed
        error_type: Taxonomy kind (filesystem-access, git-data-corrupt, ...)
        error_message: Detailed error message
        operation: 'scan' or 'index'

    Returns:
        ID of the inserted error record
    """
    db.execute(
        "DELETE FROM scan_errors WHERE path = ? AND operation = ?",
        (path, operation)
    )
    db.execute(
        """INSERT INTO scan_errors (path, operation, error_type, error_message)
           VALUES (?, ?, ?, ?)""",
        (path, operation, error_type, error_message)
    )
    return db.lastrowid or 0


def get_scan_errors(
    db: Database,
    limit: Optional[int] = None,
    operation: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Get recorded errors, newest first.

    Args:
        db: Database connection
        limit: Maximum number of errors to return
        operation: Only errors of this operation

    Returns:
        List of error records as dictionaries
    """
    sql = "SELECT * FROM scan_errors"
    params: tuple = ()
    if operation:
        sql += " WHERE operation = ?"
        params = (operation,)
    sql += " ORDER BY scanned_at DESC, id DESC"
    if limit:
        sql += " LIMIT ?"
        params += (int(limit),)

    db.execute(sql, params)
    return [dict(row) for row in db.fetchall()]


def clear_scan_error_for_path(db: Database, path: str, operation: Optional[str] = None) -> int:
    """Clear errors for a path, optionally only for one operation."""
    if operation:
        db.execute(
            "DELETE FROM scan_errors WHERE path = ? AND operation = ?",
            (path, operation)
        )
    else:
        db.execute("DELETE FROM scan_errors WHERE path = ?", (path,))
    return db.rowcount
