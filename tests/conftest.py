"""Shared pytest fixtures and configuration."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from dotty.cache import Cache, UserCache
from dotty.features import FeatureSet
from dotty.reporter import Reporter
from dotty.symlink import SymlinkConfig
from tests.helpers.builders import make_git_repo


@pytest.fixture
def temp_home() -> Generator[Path, None, None]:
    """Create a temporary home directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_home: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point $HOME at a temporary directory."""
    monkeypatch.setenv("HOME", str(temp_home))
    monkeypatch.delenv("SHELL", raising=False)
    return temp_home


@pytest.fixture
def reporter() -> Reporter:
    """A reporter that records events without printing."""
    return Reporter(verbose=True, quiet=True)


@pytest.fixture
def linux_features() -> FeatureSet:
    """Features of a 64-bit Linux machine."""
    return FeatureSet(["linux", "unix", "x86_64"])


@pytest.fixture
def symlink_config(temp_home: Path) -> SymlinkConfig:
    """Link into the temporary home directory."""
    return SymlinkConfig(home_path=temp_home)


@pytest.fixture
def cache(temp_home: Path) -> Cache:
    """An empty cache inside the temporary home directory."""
    return Cache.at(temp_home / ".dotty" / "cache")


@pytest.fixture
def user_cache(cache: Cache, linux_features: FeatureSet, reporter: Reporter) -> UserCache:
    """The cache of a test user on a Linux machine."""
    return cache.user("tester", features=linux_features, reporter=reporter)


@pytest.fixture
def source_repo() -> Generator[Path, None, None]:
    """A Git repository with a `.vimrc` and a `.bashrc`."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "dotfiles"
        make_git_repo(
            path,
            {
                ".vimrc": "set number\n",
                ".bashrc": "export EDITOR=vim\n",
            },
        )
        yield path
