"""MCP server exposing workspace bookmarks through the fuzzy picker."""
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from bookmark_picker.annotation import AnnotationForm
from bookmark_picker.bookmarks_db import BookmarksDb
from bookmark_picker.bookmarks_store import Point, ProjectPath
from bookmark_picker.config import get_config
from bookmark_picker.navigation import FileNavigator
from bookmark_picker.session import BookmarkSession


# Global state
_session: Optional[BookmarkSession] = None
_navigator: Optional[FileNavigator] = None


@dataclass
class ToolDocument:
    """Active document described by tool arguments."""
    project_root: Path
    worktree_id: int
    path: str
    point: Point

    def project_path(self) -> Optional[ProjectPath]:
        return ProjectPath(worktree_id=self.worktree_id, path=self.path)

    def absolute_path(self) -> Optional[Path]:
        return self.project_root / self.path

    def cursor_point(self) -> Point:
        return self.point


async def get_session() -> BookmarkSession:
    """Get or create the global session, hydrated from the database.

    Returns:
        Hydrated BookmarkSession
    """
    global _session, _navigator

    if _session is None:
        config = get_config()
        db = BookmarksDb(config.db_path)
        try:
            await db.initialize()
        except Exception as e:
            print(f"[BookmarkSession] Bookmarks database unavailable: {e}", file=sys.stderr)
            db = None

        _session = BookmarkSession(
            db=db,
            workspace_id=config.workspace_id,
            match_limit=config.picker.match_limit,
        )
        await _session.hydrate()
        _navigator = FileNavigator(config.project_root)

    return _session


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


async def list_bookmarks_tool(session: BookmarkSession, navigator: FileNavigator, query: str = "") -> list[TextContent]:
    """Tool handler for list_bookmarks and search_bookmarks.

    Args:
        session: Bookmark session
        navigator: Navigator used by the picker
        query: Fuzzy query, empty for every bookmark

    Returns:
        List of TextContent with picker rows
    """
    picker = session.open_picker(navigator, query)
    try:
        await picker.settle()
        rows = [
            {
                "label": row.label,
                "path": row.path,
                "selected": row.selected,
            }
            for row in picker.rows()
        ]
    finally:
        picker.dismiss()

    if not rows:
        if query:
            return _text(f"No bookmarks found matching query: {query}")
        return _text("No bookmarks yet.")

    return _text(json.dumps(rows, indent=2))


async def open_bookmark_tool(session: BookmarkSession, navigator: FileNavigator, query: str) -> list[TextContent]:
    """Tool handler for open_bookmark: jump to the best match."""
    picker = session.open_picker(navigator, query)
    try:
        await picker.settle()
        task = picker.confirm()
        if task is None:
            return _text(f"No bookmarks found matching query: {query}")

        if not await task or navigator.active is None:
            return _text(f"Error: could not open bookmark for query: {query}")
    finally:
        picker.dismiss()

    buffer = navigator.active
    return _text(json.dumps({
        "path": buffer.location.path,
        "absolute_path": str(buffer.path),
        "line": buffer.cursor.row + 1,
        "column": buffer.cursor.column + 1,
    }, indent=2))


async def delete_bookmark_tool(session: BookmarkSession, navigator: FileNavigator, query: str) -> list[TextContent]:
    """Tool handler for delete_bookmark: delete the best match."""
    picker = session.open_picker(navigator, query)
    try:
        await picker.settle()
        match = picker.selected_match()
        if match is None:
            return _text(f"No bookmarks found matching query: {query}")

        label = session.store[match.candidate_id].label
        task = picker.delete_at_selection()
        if task is not None:
            await task
    finally:
        picker.dismiss()

    await session.drain()
    return _text(f"Deleted bookmark: {label}")


async def add_bookmark_tool(
    session: BookmarkSession,
    label: str,
    path: str,
    line: int = 1,
    column: int = 1,
) -> list[TextContent]:
    """Tool handler for add_bookmark (1-based line and column)."""
    config = get_config()
    document = ToolDocument(
        project_root=config.project_root,
        worktree_id=config.worktree_id,
        path=path,
        point=Point(row=max(line - 1, 0), column=max(column - 1, 0)),
    )

    form = AnnotationForm(session, lambda: document)
    bookmark = form.confirm(label)
    await session.drain()

    if bookmark is None:
        return _text("Error: could not add bookmark")
    return _text(f"Added bookmark: {bookmark.label} ({bookmark.location.path}:{line})")


def create_server() -> Server:
    """Create and configure the MCP server.

    Returns:
        Configured Server instance
    """
    server = Server("bookmark-picker")

    query_schema = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Fuzzy query matched against bookmark labels"
            }
        },
        "required": ["query"]
    }

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="list_bookmarks",
                description="List every bookmark in the workspace in creation order.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="search_bookmarks",
                description="Fuzzy search bookmark labels. The best match is marked as selected.",
                inputSchema=query_schema,
            ),
            Tool(
                name="open_bookmark",
                description="Open the best matching bookmark and return its file and cursor position.",
                inputSchema=query_schema,
            ),
            Tool(
                name="delete_bookmark",
                description="Delete the best matching bookmark.",
                inputSchema=query_schema,
            ),
            Tool(
                name="add_bookmark",
                description="Bookmark a position in a project file under a label.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "label": {"type": "string", "description": "Bookmark label"},
                        "path": {"type": "string", "description": "Project-relative file path"},
                        "line": {"type": "integer", "description": "1-based line", "default": 1},
                        "column": {"type": "integer", "description": "1-based column", "default": 1},
                    },
                    "required": ["label", "path"]
                },
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle tool calls."""
        session = await get_session()
        arguments = arguments or {}

        if name == "list_bookmarks":
            return await list_bookmarks_tool(session, _navigator)
        elif name in ("search_bookmarks", "open_bookmark", "delete_bookmark"):
            query = arguments.get("query", "")
            if not query:
                return _text("Error: 'query' parameter is required")
            if name == "search_bookmarks":
                return await list_bookmarks_tool(session, _navigator, query)
            elif name == "open_bookmark":
                return await open_bookmark_tool(session, _navigator, query)
            return await delete_bookmark_tool(session, _navigator, query)
        elif name == "add_bookmark":
            label = arguments.get("label", "")
            path = arguments.get("path", "")
            if not label or not path:
                return _text("Error: 'label' and 'path' parameters are required")
            return await add_bookmark_tool(
                session,
                label,
                path,
                int(arguments.get("line", 1)),
                int(arguments.get("column", 1)),
            )
        else:
            raise ValueError(f"Unknown tool: {name}")

    return server


async def main():
    """Main entry point for the MCP server."""
    server = create_server()

    async with stdio_server() as (read_stream, write_stream):
        initialization_options = server.create_initialization_options()
        await server.run(read_stream, write_stream, initialization_options)
