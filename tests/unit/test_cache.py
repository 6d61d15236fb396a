"""Tests for the cache and per-user operations."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from git import Repo

from dotty.cache import Cache, UserCache, UserManifest
from dotty.exceptions import (
    DottyFileOperationError,
    DottyGitError,
    DottyManifestError,
    DottyNotGrabbedError,
    DottyValidationError,
)
from dotty.features import FeatureSet
from dotty.reporter import INFO, WARNING, Reporter
from dotty.source import GitHubSourceSpec, UrlSourceSpec
from dotty.symlink import SymlinkConfig
from tests.helpers.assertions import assert_file_content, assert_symlink_correct, snapshot_tree
from tests.helpers.builders import commit_files, make_git_repo


@pytest.fixture
def home_config(tmp_path: Path) -> SymlinkConfig:
    home = tmp_path / "home"
    home.mkdir()
    return SymlinkConfig(home_path=home)


def grab_repo(user_cache: UserCache, repo_path: Path) -> None:
    user_cache.grab(UrlSourceSpec(url=str(repo_path)))


class TestCache:
    """Test opening and creating the cache root."""

    def test_at_creates_missing_cache(self, tmp_path: Path):
        cache = Cache.at(tmp_path / "a" / "cache")
        assert cache.path.is_dir()

    def test_at_opens_existing_cache(self, tmp_path: Path):
        assert Cache.at(tmp_path).path == tmp_path

    def test_open_rejects_files(self, tmp_path: Path):
        path = tmp_path / "file"
        path.write_text("")
        with pytest.raises(DottyFileOperationError):
            Cache.open(path)

    def test_users(self, cache: Cache, linux_features: FeatureSet):
        assert cache.users() == []
        for name in ("bob", "alice"):
            cache.user(name, features=linux_features).base_path().mkdir(parents=True)
        assert cache.users() == ["alice", "bob"]

    @pytest.mark.parametrize("username", ["", "..", "a/b"])
    def test_invalid_usernames(self, cache: Cache, linux_features: FeatureSet, username):
        with pytest.raises(DottyValidationError):
            cache.user(username, features=linux_features)

    def test_layout(self, cache: Cache, user_cache: UserCache):
        base = cache.path / "users" / "tester"
        assert user_cache.base_path() == base
        assert user_cache.manifest_path() == base / "manifest.json"
        assert user_cache.dotfiles_path() == base / "dotfiles"
        assert user_cache.home_path() == base / "home"


class TestManifest:
    """Test the persisted user manifest."""

    def test_save_and_load(self, tmp_path: Path):
        manifest = UserManifest(source=GitHubSourceSpec(username="octocat"))
        path = tmp_path / "manifest.json"

        manifest.save(path)

        assert json.loads(path.read_text()) == {"source": {"github": {"username": "octocat"}}}
        assert UserManifest.load(path) == manifest

    @pytest.mark.parametrize("content", ["{", "[]", "{}", '{"source": {"svn": 1}}'])
    def test_invalid_manifest(self, tmp_path: Path, content: str):
        path = tmp_path / "manifest.json"
        path.write_text(content)
        with pytest.raises(DottyManifestError):
            UserManifest.load(path)

    def test_save_failure_has_context(self, tmp_path: Path):
        manifest = UserManifest(source=GitHubSourceSpec(username="octocat"))
        with pytest.raises(DottyManifestError, match="could not save user cache manifest"):
            manifest.save(tmp_path / "missing" / "manifest.json")

    def test_manifest_before_grab(self, user_cache: UserCache):
        with pytest.raises(DottyNotGrabbedError):
            user_cache.manifest()


class TestGrab:
    """Test fetching dotfiles into the cache."""

    def test_grab_fetches_without_linking(self, user_cache, source_repo, home_config):
        grab_repo(user_cache, source_repo)

        assert user_cache.is_grabbed()
        assert [d.relative_path for d in user_cache.dotfiles()] == [
            Path(".bashrc"),
            Path(".vimrc"),
        ]
        assert list(home_config.home_path.iterdir()) == []
        assert user_cache.manifest().source == UrlSourceSpec(url=str(source_repo))

    def test_regrab_replaces_dotfiles(self, user_cache, source_repo, tmp_path):
        grab_repo(user_cache, source_repo)
        other = tmp_path / "other"
        make_git_repo(other, {".zshrc": "setopt autocd\n"})

        grab_repo(user_cache, other)

        assert [d.relative_path for d in user_cache.dotfiles()] == [Path(".zshrc")]
        assert user_cache.manifest().source == UrlSourceSpec(url=str(other))

    def test_failed_regrab_keeps_previous_dotfiles(self, user_cache, source_repo, tmp_path):
        grab_repo(user_cache, source_repo)
        before = snapshot_tree(user_cache.dotfiles_path())
        manifest_before = user_cache.manifest_path().read_text()

        with pytest.raises(DottyGitError):
            grab_repo(user_cache, tmp_path / "missing")

        assert snapshot_tree(user_cache.dotfiles_path()) == before
        assert user_cache.manifest_path().read_text() == manifest_before

    def test_regrab_survives_backup_pruning_failure(self, user_cache, source_repo, tmp_path, reporter):
        grab_repo(user_cache, source_repo)
        other = tmp_path / "other"
        make_git_repo(other, {".zshrc": "setopt autocd\n"})

        with patch("dotty.backup.prune_backups", side_effect=OSError("disk on fire")):
            grab_repo(user_cache, other)

        assert [d.relative_path for d in user_cache.dotfiles()] == [Path(".zshrc")]
        assert user_cache.manifest().source == UrlSourceSpec(url=str(other))
        assert any("could not remove old backups" in m for m in reporter.messages(WARNING))

    def test_backups_are_bounded(self, cache, linux_features, source_repo):
        user_cache = cache.user("tester", features=linux_features, max_backups=1, reporter=Reporter(quiet=True))
        for _ in range(3):
            grab_repo(user_cache, source_repo)

        backups = [
            p for p in user_cache.base_path().iterdir() if p.name.startswith(".dotfiles.backup-")
        ]
        assert len(backups) == 1


class TestUpdate:
    """Test updating grabbed dotfiles."""

    def test_update_before_grab(self, user_cache):
        with pytest.raises(DottyNotGrabbedError):
            user_cache.update()

    def test_update_reports_commits(self, user_cache, source_repo, reporter):
        grab_repo(user_cache, source_repo)
        commit_files(Repo(str(source_repo)), {".inputrc": "set editing-mode vi\n"}, "Add inputrc")

        commit_range = user_cache.update()

        assert [c.summary for c in commit_range] == ["Add inputrc"]
        assert any(m.endswith("Add inputrc") for m in reporter.messages(INFO))
        assert Path(".inputrc") in [d.relative_path for d in user_cache.dotfiles()]

    def test_update_does_not_link(self, user_cache, source_repo, home_config):
        grab_repo(user_cache, source_repo)
        user_cache.link(home_config)
        commit_files(Repo(str(source_repo)), {".inputrc": "x\n"}, "Add inputrc")

        user_cache.update()

        assert not (home_config.home_path / ".inputrc").exists()


class TestLinking:
    """Test linking and unlinking dotfiles."""

    @pytest.fixture
    def grabbed(self, user_cache, tmp_path) -> UserCache:
        repo = tmp_path / "featured"
        make_git_repo(
            repo,
            {
                ".vimrc": "set number\n",
                ".tmux.linux.conf": "linux tmux\n",
                ".tmux.macos.conf": "macos tmux\n",
                ".config/app/settings.unix.x86_64.ini": "[app]\n",
            },
        )
        grab_repo(user_cache, repo)
        return user_cache

    def test_link_supported_dotfiles(self, grabbed, home_config, reporter):
        created = grabbed.link(home_config)

        root = home_config.home_path
        cache_root = grabbed.dotfiles_path()
        assert created == 3
        assert_symlink_correct(root / ".vimrc", cache_root / ".vimrc")
        assert_symlink_correct(root / ".tmux.os.conf", cache_root / ".tmux.linux.conf")
        assert_symlink_correct(
            root / ".config" / "app" / "settings.family.arch.ini",
            cache_root / ".config" / "app" / "settings.unix.x86_64.ini",
        )
        assert not (root / ".tmux.macos.conf").exists()
        assert any(".tmux.macos.conf" in m for m in reporter.messages(INFO))

    def test_link_is_idempotent(self, grabbed, home_config):
        grabbed.link(home_config)
        assert grabbed.link(home_config) == 3
        assert_symlink_correct(home_config.home_path / ".vimrc", grabbed.dotfiles_path() / ".vimrc")

    def test_link_skips_conflicts(self, grabbed, home_config, reporter):
        (home_config.home_path / ".vimrc").write_text("mine\n")

        assert grabbed.link(home_config) == 2

        assert_file_content(home_config.home_path / ".vimrc", "mine\n")
        assert len(reporter.messages(WARNING)) == 1

    def test_unlink_removes_links_only(self, grabbed, home_config):
        grabbed.link(home_config)
        before = snapshot_tree(grabbed.dotfiles_path())

        assert grabbed.unlink(home_config) == 3

        assert not (home_config.home_path / ".vimrc").is_symlink()
        assert not (home_config.home_path / ".tmux.os.conf").is_symlink()
        assert snapshot_tree(grabbed.dotfiles_path()) == before

    def test_unlink_leaves_conflicting_files(self, grabbed, home_config):
        (home_config.home_path / ".vimrc").write_text("mine\n")
        grabbed.link(home_config)

        grabbed.unlink(home_config)

        assert_file_content(home_config.home_path / ".vimrc", "mine\n")

    def test_relink(self, grabbed, home_config):
        grabbed.link(home_config)
        (home_config.home_path / ".vimrc").unlink()

        assert grabbed.relink(home_config) == 3
        assert (home_config.home_path / ".vimrc").is_symlink()

    def test_link_defaults_to_real_home(self, grabbed, isolated_home):
        grabbed.link()
        assert (isolated_home / ".vimrc").is_symlink()

    def test_new_files_appear_after_rescan(self, grabbed, home_config):
        grabbed.link(home_config)
        (grabbed.dotfiles_path() / ".inputrc").write_text("x\n")

        grabbed.link(home_config)

        assert (home_config.home_path / ".inputrc").is_symlink()

    def test_file_in_place_of_parent_directory_does_not_stop_linking(self, user_cache, tmp_path, home_config, reporter):
        repo = tmp_path / "nested"
        make_git_repo(repo, {".config/app.conf": "[app]\n", ".zshrc": "setopt autocd\n"})
        grab_repo(user_cache, repo)
        (home_config.home_path / ".config").write_text("not a directory\n")

        assert user_cache.link(home_config) == 1

        assert_symlink_correct(home_config.home_path / ".zshrc", user_cache.dotfiles_path() / ".zshrc")
        assert_file_content(home_config.home_path / ".config", "not a directory\n")
        assert len(reporter.messages(WARNING)) == 1

    def test_colliding_link_names_warn_and_keep_first(self, user_cache, tmp_path, home_config, reporter):
        repo = tmp_path / "colliding"
        make_git_repo(repo, {".tmux.linux.conf": "linux\n", ".tmux.os.conf": "generic\n"})
        grab_repo(user_cache, repo)

        assert user_cache.link(home_config) == 1

        assert_symlink_correct(
            home_config.home_path / ".tmux.os.conf", user_cache.dotfiles_path() / ".tmux.linux.conf"
        )
        warnings = reporter.messages(WARNING)
        assert len(warnings) == 1
        assert ".tmux.os.conf" in warnings[0] and ".tmux.linux.conf" in warnings[0]


class TestForget:
    """Test removing a user's dotfiles entirely."""

    def test_forget_unlinks_and_deletes(self, user_cache, source_repo, home_config):
        user_cache.setup(UrlSourceSpec(url=str(source_repo)), home_config)

        user_cache.forget(home_config)

        assert not user_cache.base_path().exists()
        assert not user_cache.is_grabbed()
        assert list(home_config.home_path.iterdir()) == []

    def test_forget_without_grab(self, user_cache, home_config):
        user_cache.forget(home_config)
        assert not user_cache.base_path().exists()

    def test_forget_failure_has_context(self, user_cache, source_repo, home_config):
        grab_repo(user_cache, source_repo)
        with patch("dotty.cache.shutil.rmtree", side_effect=OSError("busy")):
            with pytest.raises(DottyFileOperationError, match="could not delete user cache"):
                user_cache.forget(home_config)
