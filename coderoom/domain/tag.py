"""
Tag domain helpers for coderoom.

Tags are free-form labels attached to repositories. A tag exists only while
at least one repository carries it; the aggregate view is recomputed from
the association table on every request.
"""

import re
from dataclasses import dataclass
from typing import Dict, Any

from ..exit_codes import ValidationError

MAX_TAG_LENGTH = 64

_WHITESPACE = re.compile(r'\s+')


def normalize_tag(raw: str) -> str:
    """
    Normalize a user supplied tag name.

    Surrounding whitespace is stripped, the name is lower-cased and inner
    whitespace runs become a single ``-``. The same rule applies to add,
    remove, lookup and filtering, so ``"Web App"`` and ``"web-app"`` are the
    same tag.

    Raises:
        ValidationError: for empty names, names containing a comma, or
            names longer than MAX_TAG_LENGTH.
    """
    if raw is None:
        raise ValidationError("Tag name is required")
    name = _WHITESPACE.sub('-', str(raw).strip().lower())
    if not name:
        raise ValidationError("Tag name must not be empty")
    if ',' in name:
        raise ValidationError(f"Tag name must not contain a comma: {raw!r}")
    if len(name) > MAX_TAG_LENGTH:
        raise ValidationError(f"Tag name longer than {MAX_TAG_LENGTH} characters: {raw!r}")
    return name


@dataclass(frozen=True)
class TagCount:
    """A tag with the number of repositories carrying it."""
    name: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {'tag': self.name, 'count': self.count}

    def __str__(self) -> str:
        return f"{self.name} ({self.count})"
