"""Filesystem locations used by the daemon and its client."""

from __future__ import annotations

import getpass
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

REQUEST_PIPE = "saturnd-request-pipe"
REPLY_PIPE = "saturnd-reply-pipe"


@dataclass(frozen=True)
class PipePaths:
    """The directory holding the named pipes and the two pipe paths."""

    directory: Path
    request: Path
    reply: Path

    @classmethod
    def from_directory(cls, directory: str | os.PathLike[str]) -> "PipePaths":
        base = Path(directory)
        return cls(base, base / REQUEST_PIPE, base / REPLY_PIPE)


def get_username() -> str:
    """Name of the current user, taken from $USER when it is set."""
    return os.environ.get("USER") or getpass.getuser()


def _base_dir(username: str | None) -> Path:
    return Path("/tmp") / (username or get_username()) / "saturnd"


def default_pipes_dir(username: str | None = None) -> Path:
    return _base_dir(username) / "pipes"


def default_paths(username: str | None = None) -> PipePaths:
    return PipePaths.from_directory(default_pipes_dir(username))


def tasks_dir(username: str | None = None) -> Path:
    return _base_dir(username) / "tasks"


def make_dirs(path: str | os.PathLike[str]) -> None:
    """Create ``path`` and its missing parents, owner-only; existing ones are kept."""
    os.makedirs(path, mode=0o700, exist_ok=True)


def remove_tree(path: str | os.PathLike[str]) -> None:
    """Remove a directory and everything below it; raises OSError on failure."""
    shutil.rmtree(path)