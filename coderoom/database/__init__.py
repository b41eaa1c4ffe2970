"""
SQLite catalog for coderoom.

Stores repositories, tags, the bounded commit index and scan errors.
"""

from .connection import (
    Database,
    get_connection,
    get_db_path,
    get_database_info,
    transaction,
)
from .schema import CURRENT_VERSION, ensure_schema

__all__ = [
    'Database',
    'get_connection',
    'get_db_path',
    'get_database_info',
    'transaction',
    'CURRENT_VERSION',
    'ensure_schema',
]
