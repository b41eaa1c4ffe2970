"""
Tag aggregation for coderoom.

Tags are attached to cataloged repositories by path. Listings are
recomputed from the association table on every call, so a tag whose last
repository lost it disappears immediately.
"""

import logging
from typing import List, Optional

from ..database import Database, transaction
from ..database.repository import get_repo_id
from ..database.tags import (
    add_tag_association,
    list_repo_tags,
    list_tag_counts,
    remove_tag_association,
)
from ..domain.tag import TagCount, normalize_tag
from ..exit_codes import NotFoundError

logger = logging.getLogger(__name__)


class TagService:
    """Add, remove and aggregate repository tags."""

    def __init__(self, db_path):
        self.db_path = db_path

    def _repo_id(self, db: Database, repo_path: str) -> int:
        repo_id = get_repo_id(db, repo_path)
        if repo_id is None:
            raise NotFoundError(f"Repository not in catalog: {repo_path}")
        return repo_id

    def add(self, repo_path: str, tag: str) -> bool:
        """
        Tag a repository. Adding a tag it already carries is a no-op.

        Returns:
            True if a new association was created
        """
        name = normalize_tag(tag)
        with Database(self.db_path) as db:
            repo_id = self._repo_id(db, repo_path)
            with transaction(db):
                created = add_tag_association(db, repo_id, name)
        if created:
            logger.debug(f"Tagged {repo_path} with {name}")
        return created

    def remove(self, repo_path: str, tag: str) -> None:
        """
        Untag a repository.

        Raises:
            NotFoundError: if the repository is unknown or lacks the tag
        """
        name = normalize_tag(tag)
        with Database(self.db_path) as db:
            repo_id = self._repo_id(db, repo_path)
            with transaction(db):
                removed = remove_tag_association(db, repo_id, name)
        if not removed:
            raise NotFoundError(f"Repository {repo_path} is not tagged {name!r}")
        logger.debug(f"Removed tag {name} from {repo_path}")

    def repo_tags(self, repo_path: str) -> List[str]:
        with Database(self.db_path) as db:
            return list_repo_tags(db, self._repo_id(db, repo_path))

    def counts(self) -> List[TagCount]:
        """Every tag carried by at least one repository, by name."""
        with Database(self.db_path) as db:
            return [TagCount(name, count) for name, count in list_tag_counts(db)]

    def names(self, repo_path: Optional[str] = None) -> List[str]:
        if repo_path is not None:
            return self.repo_tags(repo_path)
        return [tag.name for tag in self.counts()]
