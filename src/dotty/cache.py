"""The dotfiles cache and the per-user operations on it."""

import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from . import symlink
from .backend import CommitRange, GitBackend, from_source
from .backup import DEFAULT_MAX_BACKUPS, transactional_replace
from .config import get_home_dir
from .dotfiles import Dotfile, scan_dotfiles
from .exceptions import (
    DottyFileOperationError,
    DottyManifestError,
    DottyNotGrabbedError,
    DottyValidationError,
    ManifestDict,
)
from .features import FeatureSet
from .reporter import Reporter
from .source import SourceSpec
from .symlink import SymlinkConfig

# Constants
USERS_DIR_NAME = "users"
MANIFEST_FILENAME = "manifest.json"
DOTFILES_DIR_NAME = "dotfiles"
HOME_DIR_NAME = "home"


# ============================================================================
# MANIFEST
# ============================================================================


@dataclass(frozen=True)
class UserManifest:
    """A manifest file for a user cache."""

    # The source of the dotfiles.
    source: SourceSpec

    def to_dict(self) -> ManifestDict:
        return {"source": self.source.to_dict()}

    @classmethod
    def load(cls, path: Path) -> "UserManifest":
        """Read a manifest from disk."""
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DottyManifestError(
                f"could not read user cache manifest {path}: {e}"
            ) from e

        if not isinstance(data, dict) or "source" not in data:
            raise DottyManifestError(f"user cache manifest {path} has no source")
        try:
            return cls(source=SourceSpec.from_dict(data["source"]))
        except DottyValidationError as e:
            raise DottyManifestError(
                f"user cache manifest {path} is invalid: {e}"
            ) from e

    def save(self, path: Path) -> None:
        """Write the manifest to disk."""
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise DottyManifestError(
                f"could not save user cache manifest {path}: {e}"
            ) from e


# ============================================================================
# CACHE
# ============================================================================


class Cache:
    """The main cache directory."""

    def __init__(self, path: Path) -> None:
        # The directory that contains the cache.
        self.path = Path(path)

    @classmethod
    def at(cls, path: Path) -> "Cache":
        """Open or create a cache directory."""
        path = Path(path)
        if path.exists():
            return cls.open(path)
        return cls.create(path)

    @classmethod
    def open(cls, path: Path) -> "Cache":
        """Open an existing cache directory."""
        path = Path(path)
        if not path.is_dir():
            raise DottyFileOperationError(f"cache path {path} is not a directory")
        return cls(path)

    @classmethod
    def create(cls, path: Path) -> "Cache":
        """Create a new cache directory."""
        path = Path(path)
        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise DottyFileOperationError(
                f"could not create cache directory {path}: {e}"
            ) from e
        return cls(path)

    def user(
        self,
        username: str,
        features: Optional[FeatureSet] = None,
        reporter: Optional[Reporter] = None,
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ) -> "UserCache":
        """Get a user-specific cache."""
        return UserCache(
            self,
            username,
            features=features,
            reporter=reporter,
            max_backups=max_backups,
        )

    def users(self) -> List[str]:
        """List all users with a cache."""
        users_dir = self.path / USERS_DIR_NAME
        if not users_dir.is_dir():
            return []
        return sorted(p.name for p in users_dir.iterdir() if p.is_dir())


# ============================================================================
# USER CACHE
# ============================================================================


class UserCache:
    """
    Cache for a particular user.

    The feature set and reporter are fixed when the user cache is opened and
    used by every operation. The dotfile list is never cached: every
    operation scans the dotfiles directory again.
    """

    def __init__(
        self,
        cache: Cache,
        username: str,
        features: Optional[FeatureSet] = None,
        reporter: Optional[Reporter] = None,
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ) -> None:
        if not username or "/" in username or username in (".", ".."):
            raise DottyValidationError(f"invalid username '{username}'")
        self.cache = cache
        self.username = username
        self.features = features if features is not None else FeatureSet.current_system()
        self.reporter = reporter or Reporter()
        self.max_backups = max_backups

    def base_path(self) -> Path:
        """The path to the root of the user cache."""
        return self.cache.path / USERS_DIR_NAME / self.username

    def manifest_path(self) -> Path:
        return self.base_path() / MANIFEST_FILENAME

    def dotfiles_path(self) -> Path:
        """The path to the dotfiles subdirectory inside the cache."""
        return self.base_path() / DOTFILES_DIR_NAME

    def home_path(self) -> Path:
        """The substitute home directory used by `dotty shell`."""
        return self.base_path() / HOME_DIR_NAME

    def default_symlink_config(self) -> SymlinkConfig:
        return SymlinkConfig(home_path=get_home_dir())

    def is_grabbed(self) -> bool:
        return self.manifest_path().exists()

    def grab(self, source: SourceSpec) -> None:
        """
        Fetch dotfiles from a source into the cache without linking them.

        A previous copy of the dotfiles is restored if fetching fails.
        """
        canonical = source.canonical()
        self.reporter.info(f"grabbing dotfiles from {source.description()}")

        try:
            self.base_path().mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DottyFileOperationError(
                f"could not create user cache {self.base_path()}: {e}"
            ) from e

        def fetch() -> None:
            from_source(self.dotfiles_path(), canonical, self.reporter)

        transactional_replace(
            self.dotfiles_path(),
            fetch,
            reporter=self.reporter,
            max_backups=self.max_backups,
        )

        UserManifest(source=source).save(self.manifest_path())
        self.reporter.log(f"saved manifest to {self.manifest_path()}")

    def setup(
        self, source: SourceSpec, config: Optional[SymlinkConfig] = None
    ) -> int:
        """Grab dotfiles from a source and link them."""
        self.grab(source)
        return self.link(config)

    def manifest(self) -> UserManifest:
        """Get the manifest."""
        if not self.is_grabbed():
            raise DottyNotGrabbedError(
                f"no dotfiles have been grabbed for user '{self.username}'"
            )
        return UserManifest.load(self.manifest_path())

    def update(self) -> CommitRange:
        """Fetch new dotfiles from the source. Does not relink."""
        manifest = self.manifest()
        self.reporter.info(f"updating dotfiles from {manifest.source.description()}")

        backend = GitBackend.open(self.dotfiles_path())
        commit_range = backend.update(self.reporter)

        if not commit_range.is_up_to_date:
            self.reporter.info("")
            self.reporter.info("Commits")
            self.reporter.info("-------")
            for commit in commit_range:
                self.reporter.info(str(commit))
            self.reporter.info("")

        return commit_range

    def dotfiles(self) -> List[Dotfile]:
        """Get all of the dotfiles in the cache, sorted by relative path."""
        try:
            dotfiles = scan_dotfiles(self.dotfiles_path())
        except OSError as e:
            raise DottyFileOperationError(
                f"could not scan dotfiles in {self.dotfiles_path()}: {e}"
            ) from e
        return sorted(dotfiles, key=lambda dotfile: dotfile.relative_path)

    def link_name(self, dotfile: Dotfile) -> Dotfile:
        """Get the dotfile as it is named in the home directory."""
        return self.features.substitute_enabled_feature_names(dotfile)

    def link(self, config: Optional[SymlinkConfig] = None) -> int:
        """
        Create symlinks for all dotfiles supported by this machine.

        Returns:
            The number of symlinks created.
        """
        config = config or self.default_symlink_config()
        created = 0
        # Link name -> the cache file that claimed it first in this pass.
        claimed: Dict[Path, Path] = {}

        for dotfile in self.dotfiles():
            if not self.features.supports(dotfile):
                self.reporter.info(
                    f"ignoring '{dotfile.relative_path}' because it is not "
                    "supported by this machine (requires "
                    f"{', '.join(self.features.missing_features(dotfile))})"
                )
                continue

            linked = self.link_name(dotfile)
            owner = claimed.setdefault(linked.relative_path, dotfile.relative_path)
            if owner != dotfile.relative_path:
                self.reporter.warn(
                    f"not linking '{dotfile.relative_path}' because "
                    f"'{owner}' is already linked as {linked.relative_path}"
                )
                continue

            if symlink.build(linked, config, self.reporter):
                created += 1
                self.reporter.log(
                    f"created {symlink.path(linked, config)} -> {dotfile.full_path}"
                )

        return created

    def unlink(self, config: Optional[SymlinkConfig] = None) -> int:
        """
        Remove symlinks for all dotfiles.

        Returns:
            The number of symlinks removed.
        """
        config = config or self.default_symlink_config()
        removed = 0

        for dotfile in self.dotfiles():
            linked = self.link_name(dotfile)
            if symlink.exists(linked, config):
                self.reporter.log(f"deleting {symlink.path(linked, config)}")
                symlink.destroy(linked, config)
                removed += 1

        return removed

    def relink(self, config: Optional[SymlinkConfig] = None) -> int:
        """Remove and recreate all symlinks."""
        self.unlink(config)
        return self.link(config)

    def forget(self, config: Optional[SymlinkConfig] = None) -> None:
        """Unlink all dotfiles and delete the user's cache."""
        self.unlink(config)

        base_path = self.base_path()
        if not base_path.exists():
            return
        try:
            shutil.rmtree(base_path)
        except OSError as e:
            raise DottyFileOperationError(
                f"could not delete user cache {base_path}: {e}"
            ) from e
        self.reporter.info(f"forgot dotfiles for user '{self.username}'")
