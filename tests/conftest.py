"""Shared fixtures for tests."""
import asyncio
from pathlib import Path
from typing import List

import pytest

from bookmark_picker.bookmarks_store import Bookmark, BookmarkStore, Point, ProjectPath
from bookmark_picker.search import Match


SAMPLE_BOOKMARKS = [
    Bookmark(
        label="fix bug",
        location=ProjectPath(worktree_id=1, path="src/parser.rs"),
        absolute_path=Path("/work/project/src/parser.rs"),
        point=Point(row=41, column=8),
    ),
    Bookmark(
        label="add test",
        location=ProjectPath(worktree_id=1, path="tests/parser_test.rs"),
        absolute_path=Path("/work/project/tests/parser_test.rs"),
        point=Point(row=3, column=0),
    ),
    Bookmark(
        label="Config loader",
        location=ProjectPath(worktree_id=1, path="src/config.rs"),
        absolute_path=Path("/work/project/src/config.rs"),
        point=Point(row=12, column=4),
    ),
]


@pytest.fixture
def sample_bookmarks() -> List[Bookmark]:
    return list(SAMPLE_BOOKMARKS)


@pytest.fixture
def store(sample_bookmarks):
    """A store holding the sample bookmarks."""
    return BookmarkStore(sample_bookmarks)


@pytest.fixture
def db_path(tmp_path):
    """Return path for a temporary bookmarks database."""
    return tmp_path / "test_bookmarks.db"


class FakeNavigator:
    """Navigator that records calls instead of opening files."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def open(self, location):
        self.calls.append(("open", location))
        if self.fail:
            raise OSError(f"cannot open {location.path}")
        return f"handle:{location.path}"

    def set_cursor(self, handle, point):
        self.calls.append(("set_cursor", handle, point))


class ScriptedEngine:
    """Engine whose results are released by the test, in any order."""

    def __init__(self):
        self.requests = []

    def match(self, query, candidates, case_sensitive, limit=100):
        return []

    async def match_async(self, query, candidates, case_sensitive, limit=100):
        future = asyncio.get_running_loop().create_future()
        self.requests.append({
            "query": query,
            "candidates": list(candidates),
            "case_sensitive": case_sensitive,
            "future": future,
        })
        return await future

    def release(self, index: int, matches: List[Match]) -> None:
        self.requests[index]["future"].set_result(matches)

    def fail(self, index: int, error: Exception) -> None:
        self.requests[index]["future"].set_exception(error)


@pytest.fixture
def navigator():
    return FakeNavigator()


@pytest.fixture
def failing_navigator():
    return FakeNavigator(fail=True)


@pytest.fixture
def scripted_engine():
    return ScriptedEngine()
