"""Projection of cached dotfiles into a home directory as symbolic links."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .dotfiles import Dotfile
from .exceptions import DottySymlinkError
from .reporter import Reporter


@dataclass(frozen=True)
class SymlinkConfig:
    """Where symlinks get created."""

    # The home directory that links are created under.
    home_path: Path


def path(dotfile: Dotfile, config: SymlinkConfig) -> Path:
    """Get the path where the dotfile symlink should live."""
    return Path(config.home_path) / dotfile.relative_path


def exists(dotfile: Dotfile, config: SymlinkConfig) -> bool:
    """Check whether a symlink (of any target) occupies the dotfile's path."""
    return path(dotfile, config).is_symlink()


def points_at(link_path: Path, target: Path) -> bool:
    """Check whether a symlink resolves to the given target."""
    return Path(os.path.realpath(link_path)) == Path(os.path.realpath(target))


def blocking_parent(dest_path: Path, config: SymlinkConfig) -> Optional[Path]:
    """
    Find the first parent of a link path, below the home directory, that
    exists but is not a directory.
    """
    current = Path(config.home_path)
    for part in dest_path.relative_to(current).parts[:-1]:
        current = current / part
        if current.is_dir():
            continue
        if current.exists() or current.is_symlink():
            return current
        # Nothing below a missing directory can be in the way.
        break
    return None


def build(
    dotfile: Dotfile, config: SymlinkConfig, reporter: Optional[Reporter] = None
) -> bool:
    """
    Create the symlink to a dotfile.

    Existing symlinks at the destination are replaced. Directories and
    regular files are left alone and reported as conflicts.

    Returns:
        True if the symlink was created, False if a conflict was skipped.
    """
    reporter = reporter or Reporter(quiet=True)
    dest_path = path(dotfile, config)

    try:
        if dest_path.is_symlink():
            if not points_at(dest_path, dotfile.full_path):
                reporter.info(
                    f"replacing stale link {dest_path} -> {os.readlink(dest_path)}"
                )
            dest_path.unlink()
        elif dest_path.is_dir():
            reporter.warn(
                f"not linking {dotfile.relative_path} because {dest_path} "
                "is a directory"
            )
            return False
        elif dest_path.exists():
            reporter.warn(
                f"not linking {dotfile.relative_path} because {dest_path} "
                "already exists and is not a symlink"
            )
            return False
        else:
            blocker = blocking_parent(dest_path, config)
            if blocker is not None:
                reporter.warn(
                    f"not linking {dotfile.relative_path} because {blocker} "
                    "is in the way and is not a directory"
                )
                return False
            # A dotfile in a subdirectory needs the subdirectory inside the
            # home directory for the symlink to live in.
            dest_path.parent.mkdir(parents=True, exist_ok=True)

        dest_path.symlink_to(dotfile.full_path)
    except OSError as e:
        raise DottySymlinkError(
            f"could not create symlink {dest_path} -> {dotfile.full_path}: {e}"
        ) from e

    return True


def destroy(dotfile: Dotfile, config: SymlinkConfig) -> None:
    """Destroy the symlink to a dotfile."""
    dest_path = path(dotfile, config)

    if dest_path.exists() and not dest_path.is_symlink():
        raise DottySymlinkError(
            f"refusing to remove {dest_path} because it is not a symlink"
        )

    try:
        dest_path.unlink()
    except FileNotFoundError:
        # No point complaining if the symlink is already gone.
        pass
    except OSError as e:
        raise DottySymlinkError(f"could not remove symlink {dest_path}: {e}") from e
