"""In-memory bookmark store.

Bookmarks have no identity of their own: a bookmark is addressed by its
position in the store. Every mutation bumps ``revision`` so that holders of
positional ids (the picker's match list) can tell their ids went stale.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from bookmark_picker.errors import OutOfRange


@dataclass(frozen=True)
class Point:
    """Zero-based cursor position in a document."""
    row: int = 0
    column: int = 0


@dataclass(frozen=True)
class ProjectPath:
    """Project-relative location of a file."""
    worktree_id: int
    path: str


@dataclass(frozen=True)
class Bookmark:
    """A labelled cursor position in a project file."""
    label: str
    location: ProjectPath
    absolute_path: Optional[Path] = None
    point: Point = Point()


@dataclass(frozen=True)
class Candidate:
    """A store entry submitted to the match engine for one recompute.

    ``id`` is the bookmark's position at snapshot time.
    """
    id: int
    text: str


class BookmarkStore:
    """Ordered, mutable collection of bookmarks."""

    def __init__(self, bookmarks: Optional[Iterable[Bookmark]] = None):
        self._bookmarks: List[Bookmark] = list(bookmarks or [])
        self._revision = 0

    @property
    def revision(self) -> int:
        """Mutation counter, incremented on every append or removal."""
        return self._revision

    def append(self, bookmark: Bookmark) -> int:
        """Add a bookmark to the end of the store.

        Args:
            bookmark: Bookmark to add

        Returns:
            Position of the new bookmark
        """
        self._bookmarks.append(bookmark)
        self._revision += 1
        return len(self._bookmarks) - 1

    def extend(self, bookmarks: Iterable[Bookmark]) -> None:
        """Append several bookmarks as a single mutation."""
        self._bookmarks.extend(bookmarks)
        self._revision += 1

    def remove_at(self, index: int) -> Bookmark:
        """Remove the bookmark at a position.

        All later bookmarks shift down by one, so every positional id captured
        before this call is invalid afterwards.

        Args:
            index: Position to remove

        Returns:
            The removed bookmark

        Raises:
            OutOfRange: If index is not a valid position
        """
        self._check(index)
        bookmark = self._bookmarks.pop(index)
        self._revision += 1
        return bookmark

    def get(self, index: int) -> Bookmark:
        """Get the bookmark at a position.

        Raises:
            OutOfRange: If index is not a valid position
        """
        self._check(index)
        return self._bookmarks[index]

    def candidates(self) -> List[Candidate]:
        """Snapshot the store as match candidates keyed by position."""
        return [Candidate(id=ix, text=b.label) for ix, b in enumerate(self._bookmarks)]

    def _check(self, index: int) -> None:
        if index < 0 or index >= len(self._bookmarks):
            raise OutOfRange(index, len(self._bookmarks))

    def __getitem__(self, index: int) -> Bookmark:
        return self.get(index)

    def __len__(self) -> int:
        return len(self._bookmarks)

    def __iter__(self) -> Iterator[Bookmark]:
        return iter(list(self._bookmarks))
