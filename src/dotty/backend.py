"""Backends that fetch dotfiles from their source into the cache."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from .exceptions import (
    CommitSummaryDict,
    DottyDetachedHeadError,
    DottyDirtyWorkTreeError,
    DottyGitError,
    DottyNoRemoteError,
)
from .reporter import Reporter
from .source import Source, SourceKind

SHORT_ID_LENGTH = 7


@dataclass(frozen=True)
class CommitSummary:
    """A commit as shown to the user."""

    short_id: str
    summary: str

    def __str__(self) -> str:
        return f"{self.short_id} {self.summary}"

    def to_dict(self) -> CommitSummaryDict:
        return {"short_id": self.short_id, "summary": self.summary}


@dataclass(frozen=True)
class CommitRange:
    """The commits an update brought in, oldest first."""

    commits: List[CommitSummary] = field(default_factory=list)
    branch: Optional[str] = None
    head: Optional[str] = None

    def __iter__(self) -> Iterator[CommitSummary]:
        return iter(self.commits)

    def __len__(self) -> int:
        return len(self.commits)

    @property
    def is_up_to_date(self) -> bool:
        return not self.commits


class Backend:
    """A dotfiles backend."""

    def update(self, reporter: Optional[Reporter] = None) -> CommitRange:
        """Fetch new dotfiles and bring the local copy up to date."""
        raise NotImplementedError


class GitBackend(Backend):
    """A backend for dotfiles stored in a Git repository."""

    def __init__(self, repo: Repo) -> None:
        self.repo = repo

    @property
    def path(self) -> Path:
        return Path(self.repo.working_tree_dir or self.repo.git_dir)

    @classmethod
    def open(cls, repo_path: Path) -> "GitBackend":
        """Open an existing clone."""
        try:
            return cls(Repo(str(repo_path)))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise DottyGitError(
                f"{repo_path} is not a Git repository: {e}"
            ) from e

    @classmethod
    def setup(
        cls, dest: Path, url: str, reporter: Optional[Reporter] = None
    ) -> "GitBackend":
        """Clone a remote repository into ``dest``."""
        reporter = reporter or Reporter(quiet=True)
        reporter.info(f"cloning from Git repository at '{url}' to '{dest}'")

        try:
            repo = Repo.clone_from(url, str(dest))
        except GitCommandError as e:
            raise DottyGitError(f"failed to clone {url}: {e}") from e

        reporter.info("successfully cloned Git repository")
        return cls(repo)

    @classmethod
    def open_or_create(
        cls, dest: Path, url: str, reporter: Optional[Reporter] = None
    ) -> "GitBackend":
        if (Path(dest) / ".git").exists():
            return cls.open(dest)
        return cls.setup(dest, url, reporter)

    def update(self, reporter: Optional[Reporter] = None) -> CommitRange:
        """
        Fast-forward the checked out branch to its remote counterpart.

        Raises:
            DottyDirtyWorkTreeError: if tracked files have local changes
            DottyDetachedHeadError: if HEAD is not a branch
            DottyNoRemoteError: if the repository has no remote
            DottyGitError: if fetching fails or the branch cannot be fast-forwarded
        """
        reporter = reporter or Reporter(quiet=True)
        repo = self.repo

        if repo.is_dirty(untracked_files=False):
            raise DottyDirtyWorkTreeError(
                f"the dotfiles repository at {self.path} has uncommitted changes"
            )
        if repo.head.is_detached:
            raise DottyDetachedHeadError(
                f"HEAD in {self.path} is not a branch; check out a branch to update"
            )
        if not repo.remotes:
            raise DottyNoRemoteError(
                f"the dotfiles repository at {self.path} has no remotes"
            )

        branch = repo.active_branch
        remote = repo.remotes[0]
        original = branch.commit

        reporter.log(f"fetching from {remote.name}")
        try:
            remote.fetch()
        except GitCommandError as e:
            raise DottyGitError(f"failed to fetch from {remote.name}: {e}") from e

        remote_ref = next(
            (ref for ref in remote.refs if ref.remote_head == branch.name), None
        )
        if remote_ref is None:
            raise DottyGitError(
                f"remote {remote.name} has no branch named '{branch.name}'"
            )
        target = remote_ref.commit

        if target == original:
            reporter.info(
                f"already up-to-date with {branch.name} at "
                f"{original.hexsha[:SHORT_ID_LENGTH]}"
            )
            return CommitRange(branch=branch.name, head=original.hexsha)

        if repo.is_ancestor(target, original):
            raise DottyGitError(
                f"cannot fast-forward {branch.name}; local branch is ahead of "
                f"{remote_ref.name}"
            )
        if not repo.is_ancestor(original, target):
            raise DottyGitError(
                f"cannot fast-forward {branch.name} to {remote_ref.name}; "
                "local and remote histories have diverged"
            )

        try:
            repo.git.merge("--ff-only", remote_ref.name)
        except GitCommandError as e:
            raise DottyGitError(
                f"failed to fast-forward {branch.name} to {remote_ref.name}: {e}"
            ) from e

        commits = [
            CommitSummary(commit.hexsha[:SHORT_ID_LENGTH], commit.summary.strip())
            for commit in repo.iter_commits(f"{original.hexsha}..{target.hexsha}")
        ]
        commits.reverse()

        reporter.info(
            f"updated `{branch.name}` to {target.hexsha[:SHORT_ID_LENGTH]}"
        )
        return CommitRange(commits=commits, branch=branch.name, head=target.hexsha)


def from_source(
    dest: Path, source: Source, reporter: Optional[Reporter] = None
) -> Backend:
    """Open the backend for a source, cloning it into ``dest`` if needed."""
    if source.kind is SourceKind.GIT:
        return GitBackend.open_or_create(dest, source.url, reporter)
    raise ValueError(f"unknown source kind: {source.kind}")
