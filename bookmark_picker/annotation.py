"""New-bookmark form: captures a label and the active cursor."""
import sys
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from bookmark_picker.bookmarks_store import Bookmark, Point, ProjectPath
from bookmark_picker.session import BookmarkSession


class ActiveDocument(Protocol):
    """The document whose cursor a new bookmark points at."""

    def project_path(self) -> Optional[ProjectPath]:
        """Project-relative location, or None for files outside the project."""
        ...

    def absolute_path(self) -> Optional[Path]:
        ...

    def cursor_point(self) -> Point:
        ...


class AnnotationForm:
    """Input form that turns a label into a bookmark at the cursor."""

    def __init__(
        self,
        session: BookmarkSession,
        active_document: Callable[[], Optional[ActiveDocument]],
    ):
        """Initialize the form.

        Args:
            session: Session that owns the bookmark store
            active_document: Returns the focused document at confirm time
        """
        self.session = session
        self.active_document = active_document
        self.dismissed = False
        self._dismiss_listeners: List[Callable[[], None]] = []

    def on_dismiss(self, callback: Callable[[], None]) -> None:
        self._dismiss_listeners.append(callback)

    def confirm(self, label: str) -> Optional[Bookmark]:
        """Create a bookmark at the active cursor and close the form.

        Args:
            label: Text entered by the user

        Returns:
            The new bookmark, or None if there was no project document
        """
        print(f"[Annotation] New bookmark with annotation {label}", file=sys.stderr)

        bookmark = None
        document = self.active_document()
        if document is not None:
            location = document.project_path()
            if location is not None:
                point = document.cursor_point()
                print(
                    f"[Annotation] Adding bookmark with path {location.path} for line {point.row}",
                    file=sys.stderr,
                )
                bookmark = Bookmark(
                    label=label,
                    location=location,
                    absolute_path=document.absolute_path(),
                    point=point,
                )
                self.session.add_bookmark(bookmark)

        self.cancel()
        return bookmark

    def cancel(self) -> None:
        """Close the form without adding anything."""
        if self.dismissed:
            return

        self.dismissed = True
        for callback in list(self._dismiss_listeners):
            callback()
