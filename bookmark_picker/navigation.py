"""Navigation collaborator: open a bookmark location and place the cursor."""
import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol

from bookmark_picker.bookmarks_store import Point, ProjectPath
from bookmark_picker.errors import NavigationFailed


class Navigator(Protocol):
    """Host primitives the picker uses to jump to a bookmark."""

    async def open(self, location: ProjectPath) -> Any:
        """Open a location and return a handle for ``set_cursor``."""
        ...

    def set_cursor(self, handle: Any, point: Point) -> None:
        """Move the cursor, clipping the point to the buffer bounds."""
        ...


@dataclass
class OpenBuffer:
    """A file opened by ``FileNavigator``."""
    location: ProjectPath
    path: Path
    lines: List[str] = field(default_factory=list)
    cursor: Point = Point()

    def clip_point(self, point: Point) -> Point:
        """Clip a point into the buffer, biased left.

        The row is clamped to the last line and the column to the end of that
        line, so a bookmark past edited-away text lands on the nearest earlier
        valid position.
        """
        if not self.lines:
            return Point(0, 0)

        row = min(max(point.row, 0), len(self.lines) - 1)
        column = min(max(point.column, 0), len(self.lines[row]))
        return Point(row, column)


class FileNavigator:
    """Navigator over files on disk below a project root."""

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self.active: Optional[OpenBuffer] = None

    def resolve(self, location: ProjectPath) -> Path:
        """Get the absolute path of a project location."""
        return self.project_root / location.path

    async def open(self, location: ProjectPath) -> OpenBuffer:
        """Read the file behind a location.

        Raises:
            NavigationFailed: If the file is missing or unreadable
        """
        path = self.resolve(location)

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"[Navigator] Could not open {path}: {e}", file=sys.stderr)
            raise NavigationFailed(f"Could not open {location.path}: {e}") from e

        buffer = OpenBuffer(location=location, path=path, lines=text.splitlines() or [""])
        self.active = buffer
        return buffer

    def set_cursor(self, handle: OpenBuffer, point: Point) -> None:
        """Place the cursor on an opened buffer."""
        handle.cursor = handle.clip_point(point)
        self.active = handle
