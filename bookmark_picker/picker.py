"""Interactive fuzzy-search picker over the bookmark store.

The controller keeps ``(matches, selected_index)`` in sync with a mutable
``BookmarkStore``. Matches are recomputed off the event loop on every query
change. Each dispatch gets a new generation and only the latest generation's
result is applied, so slow stale results are dropped on arrival.
"""
import asyncio
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Sequence

from bookmark_picker.bookmarks_store import Bookmark, BookmarkStore
from bookmark_picker.errors import EngineUnavailable, InvariantViolation, OutOfRange
from bookmark_picker.navigation import Navigator
from bookmark_picker.search import (
    DEFAULT_MATCH_LIMIT,
    FuzzyMatchEngine,
    Match,
    MatchEngine,
    is_smart_case,
)


class PickerState(Enum):
    IDLE = "idle"
    RECOMPUTING = "recomputing"


@dataclass(frozen=True)
class PickerRow:
    """One renderable row of the picker."""
    match_index: int
    label: str
    path: str
    positions: FrozenSet[int]
    selected: bool


def best_match_index(matches: Sequence[Match]) -> Optional[int]:
    """Index of the highest-scoring match, preferring the last on ties."""
    selected = None
    best_score = None

    for ix, m in enumerate(matches):
        if best_score is None or m.score >= best_score:
            best_score = m.score
            selected = ix

    return selected


class PickerController:
    """Selection state machine for the bookmark picker."""

    def __init__(
        self,
        store: BookmarkStore,
        navigator: Optional[Navigator] = None,
        engine: Optional[MatchEngine] = None,
        limit: int = DEFAULT_MATCH_LIMIT,
        on_removed: Optional[Callable[[int, Bookmark], None]] = None,
    ):
        """Initialize the picker.

        Args:
            store: Bookmark store to pick from
            navigator: Host navigation used by ``confirm``
            engine: Match engine, defaults to ``FuzzyMatchEngine``
            limit: Maximum matches kept per recompute
            on_removed: Called with (position, bookmark) after a deletion
        """
        self.store = store
        self.navigator = navigator
        self.engine: MatchEngine = engine or FuzzyMatchEngine()
        self.limit = limit
        self.on_removed = on_removed

        self.query = ""
        self.matches: List[Match] = []
        self.selected_index: Optional[int] = None
        self.state = PickerState.IDLE
        self.dismissed = False

        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._matches_revision = store.revision
        self._listeners: List[Callable[[], None]] = []
        self._dismiss_listeners: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback fired whenever matches or selection change."""
        self._listeners.append(callback)

    def on_dismiss(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once when the picker closes."""
        self._dismiss_listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    @property
    def generation(self) -> int:
        """Generation of the most recently dispatched recompute."""
        return self._generation

    @property
    def is_stale(self) -> bool:
        """True if the store changed since the current matches were computed."""
        return self._matches_revision != self.store.revision

    def match_count(self) -> int:
        return len(self.matches)

    def selected_match(self) -> Optional[Match]:
        if self.selected_index is None:
            return None
        if 0 <= self.selected_index < len(self.matches):
            return self.matches[self.selected_index]
        return None

    def rows(self) -> List[PickerRow]:
        """Renderable rows, skipping matches whose bookmark no longer exists."""
        rows = []
        for ix, m in enumerate(self.matches):
            if m.candidate_id >= len(self.store):
                continue
            bookmark = self.store[m.candidate_id]
            rows.append(PickerRow(
                match_index=ix,
                label=bookmark.label,
                path=bookmark.location.path,
                positions=m.positions,
                selected=ix == self.selected_index,
            ))
        return rows

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def query_changed(self, query: str) -> asyncio.Task:
        """Start recomputing matches for a new query.

        Must be called from the event loop that owns the picker. The returned
        task resolves to True if its result was applied.
        """
        query = query.lstrip()
        self.query = query
        self._generation += 1
        generation = self._generation

        candidates = self.store.candidates()
        revision = self.store.revision
        case_sensitive = is_smart_case(query)

        self.state = PickerState.RECOMPUTING
        self._task = asyncio.get_running_loop().create_task(
            self._recompute(generation, revision, query, candidates, case_sensitive)
        )
        return self._task

    async def update_matches(self, query: str) -> bool:
        """Recompute matches for a query and wait for the result."""
        return await self.query_changed(query)

    async def settle(self) -> None:
        """Wait until no recompute is outstanding."""
        while self.state is PickerState.RECOMPUTING and self._task is not None:
            task = self._task
            await asyncio.gather(task, return_exceptions=True)
            if task is self._task:
                break

    async def _recompute(self, generation, revision, query, candidates, case_sensitive) -> bool:
        try:
            matches = await self.engine.match_async(query, candidates, case_sensitive, self.limit)
        except EngineUnavailable as e:
            print(f"[Picker] Keeping previous matches: {e}", file=sys.stderr)
            self._recompute_failed(generation)
            return False
        except asyncio.CancelledError:
            self._recompute_failed(generation)
            raise

        return self.recompute_completed(generation, matches, revision)

    def _recompute_failed(self, generation: int) -> None:
        if generation == self._generation:
            self.state = PickerState.IDLE
            self._notify()

    def recompute_completed(
        self,
        generation: int,
        matches: Sequence[Match],
        revision: Optional[int] = None,
    ) -> bool:
        """Apply a recompute result if it is still current.

        Args:
            generation: Generation the result was dispatched under
            matches: Matches returned by the engine, in any order
            revision: Store revision the candidates were snapshotted at

        Returns:
            True if the result replaced the current match list
        """
        if self.dismissed:
            return False

        if generation != self._generation:
            print(
                f"[Picker] Discarding stale recompute (generation {generation}, latest {self._generation})",
                file=sys.stderr,
            )
            return False

        if revision is not None and revision != self.store.revision:
            # Candidate ids are positions from an older store; take a fresh snapshot
            self.query_changed(self.query)
            return False

        self.matches = sorted(matches, key=lambda m: m.candidate_id)
        self.selected_index = best_match_index(self.matches)
        self._matches_revision = self.store.revision
        self.state = PickerState.IDLE
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _resolve_selection(self, action: str) -> Optional[Match]:
        match = self.selected_match()
        if match is None:
            return None
        if self.is_stale:
            print(f"[Picker] Ignoring {action}: matches are awaiting recompute", file=sys.stderr)
            return None
        return match

    def confirm(self) -> Optional[asyncio.Task]:
        """Open the selected bookmark and close the picker.

        Returns:
            Task resolving to True once navigated and dismissed, False if
            navigation failed, or None when there is nothing to open
        """
        match = self._resolve_selection("confirm")
        if match is None:
            return None

        if match.candidate_id >= len(self.store):
            return None

        if self.navigator is None:
            print("[Picker] No navigator attached, cannot open bookmark", file=sys.stderr)
            return None

        bookmark = self.store[match.candidate_id]
        return asyncio.get_running_loop().create_task(self._navigate(bookmark))

    async def _navigate(self, bookmark: Bookmark) -> bool:
        try:
            handle = await self.navigator.open(bookmark.location)
            self.navigator.set_cursor(handle, bookmark.point)
        except Exception as e:
            print(
                f"[Picker] Navigation to {bookmark.location.path} failed: {e}",
                file=sys.stderr,
            )
            return False

        self.dismiss()
        return True

    def delete_at_selection(self) -> Optional[asyncio.Task]:
        """Delete the selected bookmark and recompute matches.

        Returns:
            The recompute task, or None when nothing is selected

        Raises:
            InvariantViolation: If the selection pointed past the store
        """
        match = self._resolve_selection("delete")
        if match is None:
            return None

        index = match.candidate_id
        try:
            bookmark = self.store.remove_at(index)
        except OutOfRange as e:
            print(
                f"[Picker] INVARIANT VIOLATION: selection references missing bookmark {index}: {e}",
                file=sys.stderr,
            )
            raise InvariantViolation(
                f"Selected match {self.selected_index} references bookmark {index} "
                f"but the store holds {len(self.store)}"
            ) from e

        print(f"[Picker] Deleted bookmark {bookmark.label}", file=sys.stderr)
        if self.on_removed:
            self.on_removed(index, bookmark)

        task = self.query_changed(self.query)
        # Provisional until the recompute lands
        self.selected_index = max(self.selected_index - 1, 0)
        self._notify()
        return task

    def cycle_selection(self) -> None:
        """Move the selection to the next match, wrapping around."""
        if not self.matches:
            return

        if self.selected_index is None:
            self.selected_index = 0
        else:
            self.selected_index = (self.selected_index + 1) % len(self.matches)
        self._notify()

    def dismiss(self) -> None:
        """Close the picker. Later recompute results are ignored."""
        if self.dismissed:
            return

        self.dismissed = True
        for callback in list(self._dismiss_listeners):
            callback()
