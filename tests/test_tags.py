"""
Tests for tag normalization and the tag aggregator.
"""

import pytest

from coderoom.database import Database, transaction
from coderoom.database.repository import upsert_repo
from coderoom.domain.repository import Repository
from coderoom.domain.tag import MAX_TAG_LENGTH, TagCount, normalize_tag
from coderoom.exit_codes import NotFoundError, ValidationError
from coderoom.services import TagService


@pytest.fixture
def tags(db_path):
    with Database(db_path) as db:
        with transaction(db):
            for path in ('/dev/a', '/dev/b'):
                upsert_repo(db, Repository.from_path(path))
    return TagService(db_path)


class TestNormalizeTag:

    @pytest.mark.parametrize("raw,expected", [
        ("work", "work"),
        ("  Work ", "work"),
        ("Web App", "web-app"),
        ("web \t  app", "web-app"),
        ("lang:python", "lang:python"),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_tag(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "a,b", None, "x" * (MAX_TAG_LENGTH + 1)])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            normalize_tag(raw)


class TestTagService:

    def test_add_and_list(self, tags):
        assert tags.add('/dev/a', 'lib') is True
        assert tags.add('/dev/a', 'LIB') is False
        tags.add('/dev/b', 'lib')
        tags.add('/dev/a', 'Web App')

        assert tags.repo_tags('/dev/a') == ['lib', 'web-app']
        assert tags.counts() == [TagCount('lib', 2), TagCount('web-app', 1)]
        assert tags.names() == ['lib', 'web-app']

    def test_removed_tag_disappears(self, tags):
        tags.add('/dev/a', 'lib')
        tags.remove('/dev/a', ' Lib ')

        assert tags.counts() == []
        assert tags.names('/dev/a') == []

    def test_remove_missing_association(self, tags):
        tags.add('/dev/a', 'lib')

        with pytest.raises(NotFoundError):
            tags.remove('/dev/b', 'lib')
        assert tags.counts() == [TagCount('lib', 1)]

    def test_unknown_repository(self, tags):
        with pytest.raises(NotFoundError):
            tags.add('/dev/zzz', 'lib')

    def test_tags_survive_rescan(self, tags, db_path):
        tags.add('/dev/a', 'keep')
        with Database(db_path) as db:
            upsert_repo(db, Repository.from_path('/dev/a', default_branch='dev'))

        assert tags.repo_tags('/dev/a') == ['keep']


class TestFacadeTags:

    def test_tag_by_name(self, room, db_path):
        with Database(db_path) as db:
            upsert_repo(db, Repository.from_path('/dev/a'))

        room.tag_add('a', 'lib')
        assert room.tags('a') == ['lib']
        assert [t.to_dict() for t in room.tag_counts()] == [{'tag': 'lib', 'count': 1}]

        room.tag_remove('a', 'lib')
        assert room.tags() == []

    def test_unknown_repository(self, room):
        with pytest.raises(NotFoundError):
            room.tag_add('nothing', 'lib')

    def test_absolute_path_never_falls_back_to_substring(self, room, db_path):
        with Database(db_path) as db:
            upsert_repo(db, Repository.from_path('/dev/ab'))
            upsert_repo(db, Repository.from_path('/srv/code/app-old'))

        with pytest.raises(NotFoundError):
            room.tag_add('/dev/a', 'backend')
        with pytest.raises(NotFoundError):
            room.open_repo('/srv/code/app')

        assert room.tags() == []
        assert room.repo('/srv/code/app-old').last_access_ts is None
