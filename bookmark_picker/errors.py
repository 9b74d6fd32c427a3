"""Error taxonomy for the bookmark picker."""


class BookmarkPickerError(Exception):
    """Base class for bookmark picker errors."""


class OutOfRange(BookmarkPickerError, IndexError):
    """A positional index fell outside the bookmark store bounds."""

    def __init__(self, index: int, length: int):
        super().__init__(f"Bookmark index {index} out of range for store of length {length}")
        self.index = index
        self.length = length


class InvariantViolation(BookmarkPickerError, RuntimeError):
    """The selection referenced a bookmark that does not exist."""


class EngineUnavailable(BookmarkPickerError):
    """The background match worker failed to return a result."""


class NavigationFailed(BookmarkPickerError):
    """Opening a bookmark location or moving the cursor failed."""


class PersistenceFailed(BookmarkPickerError):
    """Saving or loading bookmarks failed."""
