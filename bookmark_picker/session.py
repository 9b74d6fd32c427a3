"""Workspace bookmark session: owns the store and keeps persistence in step."""
import asyncio
import sys
from typing import List, Optional, Set

from bookmark_picker.bookmarks_db import BookmarksDb
from bookmark_picker.bookmarks_store import Bookmark, BookmarkStore
from bookmark_picker.errors import PersistenceFailed
from bookmark_picker.navigation import Navigator
from bookmark_picker.picker import PickerController
from bookmark_picker.search import DEFAULT_MATCH_LIMIT, MatchEngine


class BookmarkSession:
    """Single writer of a workspace's bookmark store.

    Persistence is best effort: writes are scheduled as background tasks and
    failures are logged, with the in-memory store staying authoritative.
    """

    def __init__(
        self,
        store: Optional[BookmarkStore] = None,
        db: Optional[BookmarksDb] = None,
        workspace_id: int = 0,
        engine: Optional[MatchEngine] = None,
        match_limit: int = DEFAULT_MATCH_LIMIT,
    ):
        self.store = store if store is not None else BookmarkStore()
        self.db = db
        self.workspace_id = workspace_id
        self.engine = engine
        self.match_limit = match_limit
        self.picker: Optional[PickerController] = None
        self._pending: Set[asyncio.Task] = set()
        # Row id of each store position: a future resolving to the bookmark_id,
        # or to None when the save failed. None when the row is unknown.
        self._row_ids: List[Optional[asyncio.Future]] = [None] * len(self.store)
        self._write_lock = asyncio.Lock()

    async def hydrate(self) -> int:
        """Load persisted bookmarks into the store.

        A failed load leaves the store empty rather than blocking startup.

        Returns:
            Number of bookmarks loaded
        """
        if self.db is None:
            return 0

        try:
            rows = await self.db.load_bookmark_rows(self.workspace_id)
        except Exception as e:
            error = PersistenceFailed(f"Could not load bookmarks for workspace {self.workspace_id}: {e}")
            print(f"[BookmarkSession] {error}", file=sys.stderr)
            return 0

        loop = asyncio.get_running_loop()
        for bookmark_id, _ in rows:
            row_id = loop.create_future()
            row_id.set_result(bookmark_id)
            self._row_ids.append(row_id)

        self.store.extend([bookmark for _, bookmark in rows])
        return len(rows)

    def add_bookmark(self, bookmark: Bookmark) -> int:
        """Append a bookmark and persist it in the background.

        Returns:
            Store position of the new bookmark
        """
        position = self.store.append(bookmark)
        print(f"[BookmarkSession] New bookmark {bookmark.label}", file=sys.stderr)

        if self.db is not None:
            self._row_ids.append(self._spawn(self.db.save_bookmark(
                self.workspace_id,
                bookmark.label,
                bookmark.location,
                bookmark.absolute_path,
                bookmark.point,
            ), f"save {bookmark.label!r}"))

        if self.picker is not None and not self.picker.dismissed:
            self.picker.query_changed(self.picker.query)

        return position

    def _bookmark_removed(self, position: int, bookmark: Bookmark) -> None:
        if self.db is None:
            return

        if position >= len(self._row_ids):
            print(f"[BookmarkSession] No row tracked for {bookmark.label!r}, skipping delete", file=sys.stderr)
            return

        row_id = self._row_ids.pop(position)
        self._spawn(self._delete_row(row_id, bookmark), f"delete {bookmark.label!r}")

    async def _delete_row(self, row_id: Optional[asyncio.Future], bookmark: Bookmark) -> bool:
        bookmark_id = None
        if row_id is not None:
            await asyncio.wait({row_id})
            if not row_id.cancelled() and row_id.exception() is None:
                bookmark_id = row_id.result()

        if bookmark_id is None:
            print(f"[BookmarkSession] {bookmark.label!r} was never saved, nothing to delete", file=sys.stderr)
            return False

        return await self.db.delete_bookmark(bookmark_id)

    async def _write(self, coro):
        # Writes land in dispatch order, so a delete runs after its save
        async with self._write_lock:
            return await coro

    def _spawn(self, coro, description: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._write(coro))
        self._pending.add(task)
        task.add_done_callback(lambda t: self._persisted(t, description))
        return task

    def _persisted(self, task: asyncio.Task, description: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            failure = PersistenceFailed(f"Could not {description}: {error}")
            print(f"[BookmarkSession] {failure}", file=sys.stderr)

    async def drain(self) -> None:
        """Wait for outstanding persistence writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def open_picker(self, navigator: Optional[Navigator] = None, query: str = "") -> PickerController:
        """Open a picker over the store.

        The initial query is dispatched immediately; an empty query lists every
        bookmark. Await ``picker.settle()`` to wait for the first match list.
        """
        picker = PickerController(
            self.store,
            navigator=navigator,
            engine=self.engine,
            limit=self.match_limit,
            on_removed=self._bookmark_removed,
        )
        picker.on_dismiss(lambda: self._picker_closed(picker))
        self.picker = picker
        picker.query_changed(query)
        return picker

    def _picker_closed(self, picker: PickerController) -> None:
        if self.picker is picker:
            self.picker = None

    def toggle(self, navigator: Optional[Navigator] = None) -> PickerController:
        """Open the picker, or advance its selection if already open."""
        if self.picker is None:
            return self.open_picker(navigator)

        self.picker.cycle_selection()
        return self.picker
