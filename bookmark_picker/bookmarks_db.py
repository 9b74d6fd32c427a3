"""SQLite persistence for workspace bookmarks."""
import aiosqlite
from pathlib import Path
from typing import List, Optional, Tuple

from bookmark_picker.bookmarks_store import Bookmark, Point, ProjectPath


# Default database location
DEFAULT_DB_PATH = Path.home() / ".bookmark-picker" / "bookmarks.db"


class BookmarksDb:
    """Async SQLite store holding one row per bookmark.

    Rows are kept in creation order per workspace, which is also the order of
    the in-memory store after hydration. Callers address a row by the
    ``bookmark_id`` returned from ``save_bookmark`` or ``load_bookmark_rows``.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the bookmarks database.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.bookmark-picker/bookmarks.db
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Initialize the database, creating tables if needed."""
        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS bookmarks (
                bookmark_id INTEGER PRIMARY KEY AUTOINCREMENT,
                workspace_id INTEGER NOT NULL,
                worktree_id INTEGER NOT NULL,
                project_path TEXT NOT NULL,
                abs_path TEXT,
                point_row INTEGER,
                point_column INTEGER,
                label TEXT
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_bookmarks_workspace
            ON bookmarks(workspace_id, bookmark_id)
        """)

        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    async def save_bookmark(
        self,
        workspace_id: int,
        label: str,
        location: ProjectPath,
        absolute_path: Optional[Path] = None,
        point: Optional[Point] = None,
    ) -> int:
        """Append a bookmark row for a workspace.

        Args:
            workspace_id: Owning workspace
            label: Bookmark label
            location: Project-relative location
            absolute_path: Absolute file path, if known
            point: Cursor position, if known

        Returns:
            Row id of the saved bookmark
        """
        connection = self._require_connection()
        point = point or Point()

        cursor = await connection.execute("""
            INSERT INTO bookmarks
                (workspace_id, worktree_id, project_path, abs_path, point_row, point_column, label)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            workspace_id,
            location.worktree_id,
            location.path,
            str(absolute_path) if absolute_path else None,
            point.row,
            point.column,
            label,
        ))
        await connection.commit()

        return cursor.lastrowid

    async def load_bookmarks(self, workspace_id: int) -> List[Bookmark]:
        """Load every bookmark of a workspace in creation order.

        Args:
            workspace_id: Owning workspace

        Returns:
            List of bookmarks
        """
        return [bookmark for _, bookmark in await self.load_bookmark_rows(workspace_id)]

    async def load_bookmark_rows(self, workspace_id: int) -> List[Tuple[int, Bookmark]]:
        """Load every bookmark of a workspace along with its row id.

        Args:
            workspace_id: Owning workspace

        Returns:
            List of (bookmark_id, bookmark) pairs in creation order
        """
        connection = self._require_connection()

        cursor = await connection.execute(
            "SELECT * FROM bookmarks WHERE workspace_id = ? ORDER BY bookmark_id",
            (workspace_id,)
        )
        rows = await cursor.fetchall()

        return [(row["bookmark_id"], self._row_to_bookmark(row)) for row in rows]

    async def delete_bookmark(self, bookmark_id: int) -> bool:
        """Delete a bookmark row.

        Args:
            bookmark_id: Row id from save_bookmark or load_bookmark_rows

        Returns:
            True if deleted, False if no such row
        """
        connection = self._require_connection()

        cursor = await connection.execute(
            "DELETE FROM bookmarks WHERE bookmark_id = ?",
            (bookmark_id,)
        )
        await connection.commit()

        return cursor.rowcount > 0

    def _row_to_bookmark(self, row: aiosqlite.Row) -> Bookmark:
        """Convert a database row to a bookmark.

        Args:
            row: SQLite row object

        Returns:
            Bookmark with missing point columns defaulted to zero
        """
        abs_path = row["abs_path"]

        return Bookmark(
            label=row["label"] or "",
            location=ProjectPath(worktree_id=row["worktree_id"], path=row["project_path"]),
            absolute_path=Path(abs_path) if abs_path else None,
            point=Point(row=row["point_row"] or 0, column=row["point_column"] or 0),
        )
