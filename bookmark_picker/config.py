"""Configuration for the bookmark picker."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bookmark_picker.search import DEFAULT_MATCH_LIMIT


@dataclass
class PickerConfig:
    """Configuration for the interactive picker."""
    match_limit: int = DEFAULT_MATCH_LIMIT  # Max matches kept per recompute

    @classmethod
    def from_env(cls) -> "PickerConfig":
        """Create config from environment variables."""
        return cls(
            match_limit=int(os.environ.get("BOOKMARKS_MATCH_LIMIT", str(DEFAULT_MATCH_LIMIT))),
        )


@dataclass
class Config:
    """Main configuration for the bookmark picker."""
    picker: PickerConfig = field(default_factory=PickerConfig.from_env)
    db_path: Optional[Path] = None  # None = use default
    workspace_id: int = 0
    worktree_id: int = 0
    project_root: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        db_path_str = os.environ.get("BOOKMARKS_DB")
        db_path = Path(db_path_str) if db_path_str else None

        root_str = os.environ.get("BOOKMARKS_PROJECT_ROOT")
        project_root = Path(root_str) if root_str else Path.cwd()

        return cls(
            picker=PickerConfig.from_env(),
            db_path=db_path,
            workspace_id=int(os.environ.get("BOOKMARKS_WORKSPACE_ID", "0")),
            worktree_id=int(os.environ.get("BOOKMARKS_WORKTREE_ID", "0")),
            project_root=project_root,
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance.

    Returns:
        Config loaded from environment
    """
    global _config

    if _config is None:
        _config = Config.from_env()

    return _config
