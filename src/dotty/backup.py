"""Backup-then-restore protection for destructive directory replacement."""

import secrets
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from .exceptions import DottyBackupError
from .reporter import Reporter

DEFAULT_MAX_BACKUPS = 3

T = TypeVar("T")


def backup_prefix(path: Path) -> str:
    return f".{path.name}.backup-"


def backup_path_for(path: Path) -> Path:
    """Get a unique sibling path to move ``path`` aside to."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    token = secrets.token_hex(4)
    return path.with_name(f"{backup_prefix(path)}{timestamp}-{token}")


def list_backups(path: Path) -> List[Path]:
    """List the backups of ``path``, oldest first."""
    parent = path.parent
    if not parent.is_dir():
        return []
    prefix = backup_prefix(path)
    return sorted(p for p in parent.iterdir() if p.name.startswith(prefix))


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def prune_backups(path: Path, keep: int = DEFAULT_MAX_BACKUPS) -> List[Path]:
    """Delete all but the ``keep`` newest backups of ``path``."""
    backups = list_backups(path)
    stale = backups[: max(len(backups) - max(keep, 0), 0)]
    for backup in stale:
        remove_path(backup)
    return stale


def restore_backup(backup: Path, path: Path) -> None:
    """Move a backup back into place, clearing whatever occupies ``path``."""
    if path.exists() or path.is_symlink():
        remove_path(path)
    backup.rename(path)


def transactional_replace(
    path: Path,
    populate: Callable[[], T],
    reporter: Optional[Reporter] = None,
    max_backups: int = DEFAULT_MAX_BACKUPS,
) -> T:
    """
    Run ``populate`` to (re)create ``path``, restoring the old contents on failure.

    The existing ``path`` is moved aside to a uniquely named sibling before
    ``populate`` runs. If ``populate`` raises, anything it left at ``path``
    is deleted and the original is moved back before the error propagates.
    If that restore fails, a DottyBackupError is raised instead.

    On success the moved-aside original is kept as a backup, and older
    backups beyond ``max_backups`` are pruned.
    """
    reporter = reporter or Reporter(quiet=True)
    path = Path(path)

    if not (path.exists() or path.is_symlink()):
        return populate()

    backup = backup_path_for(path)
    try:
        path.rename(backup)
    except OSError as e:
        raise DottyBackupError(f"could not back up {path} to {backup}: {e}") from e
    reporter.log(f"backed up {path} to {backup}")

    try:
        result = populate()
    except BaseException:
        reporter.log(f"restoring {path} from {backup}")
        try:
            restore_backup(backup, path)
        except OSError as e:
            raise DottyBackupError(
                f"could not restore backed up file {backup} to {path}: {e}"
            ) from e
        raise

    # Pruning is best-effort once ``populate`` has succeeded.
    try:
        stale_backups = prune_backups(path, max_backups)
    except OSError as e:
        reporter.warn(f"could not remove old backups of {path}: {e}")
        stale_backups = []
    for stale in stale_backups:
        reporter.log(f"removed old backup {stale}")

    return result
