"""Tests for server tool registration and tool handlers."""
import asyncio
import json

import pytest

from bookmark_picker import config as config_module
from bookmark_picker.bookmarks_store import Bookmark, Point, ProjectPath
from bookmark_picker.navigation import FileNavigator
from bookmark_picker.server import (
    add_bookmark_tool,
    create_server,
    delete_bookmark_tool,
    list_bookmarks_tool,
    open_bookmark_tool,
)
from bookmark_picker.session import BookmarkSession


@pytest.fixture
def project(tmp_path, monkeypatch):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "parser.py").write_text("def parse():\n    pass\n")
    monkeypatch.setenv("BOOKMARKS_PROJECT_ROOT", str(tmp_path))
    monkeypatch.setattr(config_module, "_config", None)
    return tmp_path


@pytest.fixture
def session(sample_bookmarks):
    s = BookmarkSession()
    s.store.extend(sample_bookmarks)
    return s


class TestServerTools:
    def test_server_creates(self):
        server = create_server()
        assert server.name == "bookmark-picker"

    def test_all_tools_registered(self):
        from mcp.types import ListToolsRequest

        server = create_server()

        async def check():
            result = await server.request_handlers[ListToolsRequest](None)
            return result.root.tools

        tools = asyncio.run(check())
        tool_names = [t.name for t in tools]

        expected = [
            "list_bookmarks",
            "search_bookmarks",
            "open_bookmark",
            "delete_bookmark",
            "add_bookmark",
        ]

        assert len(tools) == 5
        for name in expected:
            assert name in tool_names, f"Missing tool: {name}"


@pytest.mark.asyncio
class TestToolHandlers:
    async def test_list_bookmarks(self, session, project):
        result = await list_bookmarks_tool(session, FileNavigator(project))
        rows = json.loads(result[0].text)
        assert [r["label"] for r in rows] == ["fix bug", "add test", "Config loader"]
        assert session.picker is None

    async def test_search_marks_selection(self, session, project):
        result = await list_bookmarks_tool(session, FileNavigator(project), "bug")
        rows = json.loads(result[0].text)
        assert rows == [{"label": "fix bug", "path": "src/parser.rs", "selected": True}]

    async def test_search_no_match(self, session, project):
        result = await list_bookmarks_tool(session, FileNavigator(project), "zzz")
        assert "No bookmarks found" in result[0].text

    async def test_open_bookmark_clips_cursor(self, project):
        session = BookmarkSession()
        session.add_bookmark(Bookmark(
            label="parser",
            location=ProjectPath(0, "src/parser.py"),
            point=Point(row=1, column=50),
        ))

        result = await open_bookmark_tool(session, FileNavigator(project), "parser")
        opened = json.loads(result[0].text)
        assert opened["path"] == "src/parser.py"
        assert opened["line"] == 2
        assert opened["column"] == len("    pass") + 1

    async def test_open_missing_file_reports_error(self, session, project):
        result = await open_bookmark_tool(session, FileNavigator(project), "bug")
        assert result[0].text.startswith("Error")

    async def test_delete_bookmark(self, session, project):
        result = await delete_bookmark_tool(session, FileNavigator(project), "add")
        assert result[0].text == "Deleted bookmark: add test"
        assert [b.label for b in session.store] == ["fix bug", "Config loader"]

    async def test_add_bookmark(self, project):
        session = BookmarkSession()
        result = await add_bookmark_tool(session, "entry", "src/parser.py", line=2, column=5)
        assert result[0].text.startswith("Added bookmark: entry")

        bookmark = session.store[0]
        assert bookmark.point == Point(1, 4)
        assert bookmark.absolute_path == project / "src" / "parser.py"
