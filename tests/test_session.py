"""Tests for session module."""
import pytest
import pytest_asyncio

from bookmark_picker.bookmarks_db import BookmarksDb
from bookmark_picker.bookmarks_store import Bookmark, ProjectPath
from bookmark_picker.session import BookmarkSession


@pytest_asyncio.fixture
async def db(db_path):
    d = BookmarksDb(db_path)
    await d.initialize()
    yield d
    await d.close()


class BrokenDb:
    """Database stand-in whose every call fails."""

    async def load_bookmark_rows(self, workspace_id):
        raise OSError("disk on fire")

    async def save_bookmark(self, *args, **kwargs):
        raise OSError("disk on fire")

    async def delete_bookmark(self, bookmark_id):
        raise OSError("disk on fire")


class FlakyDb(BookmarksDb):
    """Real database that refuses to save one label."""

    def __init__(self, db_path, refuse: str):
        super().__init__(db_path)
        self.refuse = refuse

    async def save_bookmark(self, workspace_id, label, *args, **kwargs):
        if label == self.refuse:
            raise OSError(f"cannot write {label}")
        return await super().save_bookmark(workspace_id, label, *args, **kwargs)


class UnreadableDb(BookmarksDb):
    """Real database whose first load fails."""

    failed = False

    async def load_bookmark_rows(self, workspace_id):
        if not self.failed:
            self.failed = True
            raise OSError("corrupt page")
        return await super().load_bookmark_rows(workspace_id)


@pytest.mark.asyncio
class TestHydrate:
    async def test_loads_saved_bookmarks(self, db, sample_bookmarks):
        for b in sample_bookmarks:
            await db.save_bookmark(7, b.label, b.location, b.absolute_path, b.point)

        session = BookmarkSession(db=db, workspace_id=7)
        assert await session.hydrate() == 3
        assert [b.label for b in session.store] == ["fix bug", "add test", "Config loader"]
        assert session.store[0].point == sample_bookmarks[0].point

    async def test_failed_load_yields_empty_store(self):
        session = BookmarkSession(db=BrokenDb())
        assert await session.hydrate() == 0
        assert len(session.store) == 0

    async def test_without_db(self):
        session = BookmarkSession()
        assert await session.hydrate() == 0


@pytest.mark.asyncio
class TestPersistence:
    async def test_add_is_persisted(self, db, sample_bookmarks):
        session = BookmarkSession(db=db, workspace_id=1)
        session.add_bookmark(sample_bookmarks[0])
        assert len(session.store) == 1

        await session.drain()
        assert [b.label for b in await db.load_bookmarks(1)] == ["fix bug"]

    async def test_delete_from_picker_is_persisted(self, db, sample_bookmarks, navigator):
        session = BookmarkSession(db=db, workspace_id=1)
        for b in sample_bookmarks:
            session.add_bookmark(b)
        await session.drain()

        picker = session.open_picker(navigator, "add")
        await picker.settle()
        await picker.delete_at_selection()
        await session.drain()

        assert [b.label for b in session.store] == ["fix bug", "Config loader"]
        assert [b.label for b in await db.load_bookmarks(1)] == ["fix bug", "Config loader"]

    async def test_writes_keep_dispatch_order(self, db, sample_bookmarks):
        session = BookmarkSession(db=db, workspace_id=1)
        for b in sample_bookmarks:
            session.add_bookmark(b)
        session._bookmark_removed(0, sample_bookmarks[0])
        session._bookmark_removed(0, sample_bookmarks[1])
        await session.drain()

        assert [b.label for b in await db.load_bookmarks(1)] == ["Config loader"]

    async def test_failed_save_does_not_delete_other_rows(self, db_path, sample_bookmarks, navigator):
        db = FlakyDb(db_path, refuse="add test")
        await db.initialize()
        try:
            session = BookmarkSession(db=db, workspace_id=1)
            for b in sample_bookmarks:
                session.add_bookmark(b)
            await session.drain()
            assert [b.label for b in await db.load_bookmarks(1)] == ["fix bug", "Config loader"]

            picker = session.open_picker(navigator, "add")
            await picker.settle()
            await picker.delete_at_selection()
            await session.drain()

            assert [b.label for b in session.store] == ["fix bug", "Config loader"]
            assert [b.label for b in await db.load_bookmarks(1)] == ["fix bug", "Config loader"]
        finally:
            await db.close()

    async def test_failed_load_does_not_delete_existing_rows(self, db_path, sample_bookmarks, navigator):
        db = UnreadableDb(db_path)
        await db.initialize()
        try:
            await db.save_bookmark(1, "older", ProjectPath(0, "old.py"))
            session = BookmarkSession(db=db, workspace_id=1)
            assert await session.hydrate() == 0

            session.add_bookmark(sample_bookmarks[0])
            await session.drain()

            picker = session.open_picker(navigator, "bug")
            await picker.settle()
            await picker.delete_at_selection()
            await session.drain()

            assert len(session.store) == 0
            assert [b.label for b in await db.load_bookmarks(1)] == ["older"]
        finally:
            await db.close()

    async def test_delete_after_hydrate_targets_loaded_row(self, db, sample_bookmarks, navigator):
        for b in sample_bookmarks:
            await db.save_bookmark(1, b.label, b.location, b.absolute_path, b.point)
        session = BookmarkSession(db=db, workspace_id=1)
        await session.hydrate()

        picker = session.open_picker(navigator, "add")
        await picker.settle()
        await picker.delete_at_selection()
        await session.drain()

        assert [b.label for b in await db.load_bookmarks(1)] == ["fix bug", "Config loader"]

    async def test_delete_before_save_lands(self, db, sample_bookmarks):
        session = BookmarkSession(db=db, workspace_id=1)
        session.add_bookmark(sample_bookmarks[0])
        session.add_bookmark(sample_bookmarks[1])
        session._bookmark_removed(1, sample_bookmarks[1])
        await session.drain()

        assert [b.label for b in await db.load_bookmarks(1)] == ["fix bug"]

    async def test_save_failure_keeps_memory_state(self, sample_bookmarks):
        session = BookmarkSession(db=BrokenDb())
        session.add_bookmark(sample_bookmarks[0])
        await session.drain()
        assert len(session.store) == 1


@pytest.mark.asyncio
class TestPicker:
    async def test_open_lists_everything(self, sample_bookmarks, navigator):
        session = BookmarkSession()
        session.store.extend(sample_bookmarks)

        picker = session.open_picker(navigator)
        await picker.settle()
        assert picker.match_count() == 3
        assert session.picker is picker

    async def test_toggle_cycles_open_picker(self, sample_bookmarks, navigator):
        session = BookmarkSession()
        session.store.extend(sample_bookmarks)

        picker = session.toggle(navigator)
        await picker.settle()
        before = picker.selected_index

        assert session.toggle(navigator) is picker
        assert picker.selected_index == (before + 1) % 3

    async def test_dismiss_closes_session_picker(self, navigator):
        session = BookmarkSession()
        picker = session.open_picker(navigator)
        await picker.settle()
        picker.dismiss()
        assert session.picker is None
        assert session.toggle(navigator) is not picker

    async def test_add_refreshes_open_picker(self, navigator):
        session = BookmarkSession()
        picker = session.open_picker(navigator)
        await picker.settle()
        assert picker.match_count() == 0

        session.add_bookmark(Bookmark(label="later", location=ProjectPath(0, "l.py")))
        await picker.settle()
        assert picker.match_count() == 1
