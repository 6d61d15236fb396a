"""Spawning a shell whose home directory contains only the user's dotfiles."""

import os
from dataclasses import dataclass, field
from typing import Dict, NoReturn

from .cache import UserCache
from .config import resolve_shell
from .exceptions import DottyError, DottyFileOperationError
from .symlink import SymlinkConfig


@dataclass
class ShellConfig:
    """Configuration for shell creation."""

    shell_path: str = field(default_factory=lambda: resolve_shell({}))


class Shell:
    """A shell running with the user's cache as its home directory."""

    def __init__(self, user_cache: UserCache, config: ShellConfig) -> None:
        self.user_cache = user_cache
        self.config = config

    @classmethod
    def create(cls, user_cache: UserCache, config: ShellConfig) -> "Shell":
        """Create the substitute home directory and link dotfiles into it."""
        home_path = user_cache.home_path()
        try:
            home_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DottyFileOperationError(
                f"could not create shell home directory {home_path}: {e}"
            ) from e

        shell = cls(user_cache, config)
        shell.build_symlinks()
        return shell

    def build_symlinks(self) -> int:
        """Build all of the symlinks for the substitute home directory."""
        return self.user_cache.link(SymlinkConfig(home_path=self.user_cache.home_path()))

    def environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["HOME"] = str(self.user_cache.home_path())
        return env

    def exec(self) -> NoReturn:
        """Replace the current process with the shell."""
        home_path = self.user_cache.home_path()
        try:
            os.chdir(home_path)
            os.execvpe(self.config.shell_path, [self.config.shell_path], self.environment())
        except OSError as e:
            raise DottyError(f"could not exec into shell {self.config.shell_path}: {e}") from e
