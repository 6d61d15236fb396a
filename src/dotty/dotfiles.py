"""Discovery of the dotfiles stored inside a cache directory."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

# Files which should not be considered dotfiles.
DOTFILE_FILE_BLACKLIST = (
    ".gitignore",
    ".git",  # Git worktrees and submodules have `.git` files.
)

# Folders which we should not recurse into whilst searching for dotfiles.
DIRECTORY_BLACKLIST = (".git",)


@dataclass(frozen=True)
class Dotfile:
    """A single dotfile inside the cache."""

    # The full on-disk path of the dotfile.
    full_path: Path
    # The path relative to the dotfiles root, which is also the path
    # relative to the home directory once linked.
    relative_path: Path

    def __post_init__(self) -> None:
        relative = Path(self.relative_path)
        if relative == Path("") or relative == Path("."):
            raise ValueError("dotfile relative path must not be empty")
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(
                f"dotfile relative path must stay inside the dotfiles root: {relative}"
            )
        object.__setattr__(self, "full_path", Path(self.full_path))
        object.__setattr__(self, "relative_path", relative)

    @property
    def name(self) -> str:
        return self.relative_path.name


def is_blacklisted(relative_path: Path) -> bool:
    """Check whether a path relative to the dotfiles root is control metadata."""
    if any(part in DIRECTORY_BLACKLIST for part in relative_path.parts[:-1]):
        return True
    return relative_path.name in DOTFILE_FILE_BLACKLIST


def is_in_nested_repository(path: Path, root: Path) -> bool:
    """
    Check whether a file belongs to a repository embedded below ``root``.

    Walks upward from the file's parent, stopping at ``root`` itself, and
    returns True at the first directory that contains a ``.git`` entry.
    """
    root = Path(root)
    current = Path(path).parent
    while current != root and root in current.parents:
        if (current / ".git").exists():
            return True
        current = current.parent
    return False


def scan_dotfiles(root: Path) -> List[Dotfile]:
    """
    Find all dotfiles below ``root``.

    Returns an empty list when ``root`` does not exist yet. The order of the
    result follows the directory walk and is not stable across filesystems.
    """
    root = Path(root)
    if not root.is_dir():
        return []

    dotfiles = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)

        # Don't recurse into control directories or embedded repositories.
        dirnames[:] = [
            name
            for name in dirnames
            if name not in DIRECTORY_BLACKLIST and not (current / name / ".git").exists()
        ]

        for filename in filenames:
            full_path = current / filename
            if not full_path.is_file():
                continue

            relative_path = full_path.relative_to(root)
            if is_blacklisted(relative_path):
                continue
            if is_in_nested_repository(full_path, root):
                continue

            dotfiles.append(Dotfile(full_path=full_path, relative_path=relative_path))

    return dotfiles
