"""Sources of dotfiles and the user-facing shorthand that describes them."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import DottyValidationError

# The full URL to GitHub.
GITHUB_URL = "https://github.com"

# The assumed name of a repository containing dotfiles.
DEFAULT_GIT_REPOSITORY_NAME = "dotfiles"

URL_PREFIXES = ("/", "./", "../", "~", "git@")
GITHUB_SHORTHAND = re.compile(
    r"^(?P<username>[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)"
    r"(?:/(?P<repository>[A-Za-z0-9_.-]+))?$"
)


class SourceKind(str, Enum):
    """Kinds of fetchable sources."""

    GIT = "git"


@dataclass(frozen=True)
class Source:
    """A concrete, fetchable source of dotfiles."""

    kind: SourceKind
    url: str


class SourceSpec:
    """A source of dotfiles as the user wrote it."""

    def canonical(self) -> Source:
        raise NotImplementedError

    def description(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SourceSpec":
        """Load a source spec serialized with ``to_dict``."""
        if not isinstance(data, dict):
            raise DottyValidationError(f"invalid source: {data!r}")
        if "github" in data:
            github = data["github"]
            if not isinstance(github, dict) or "username" not in github:
                raise DottyValidationError(f"invalid GitHub source: {github!r}")
            return GitHubSourceSpec(
                username=github["username"], repository=github.get("repository")
            )
        if "url" in data:
            return UrlSourceSpec(url=str(data["url"]))
        raise DottyValidationError(f"unknown source kind: {sorted(data)}")


@dataclass(frozen=True)
class GitHubSourceSpec(SourceSpec):
    """A GitHub dotfiles repository."""

    # The username of the user that owns the dotfiles repository.
    username: str
    # If None, the repository is assumed to be named `dotfiles`.
    repository: Optional[str] = None

    @property
    def repository_name(self) -> str:
        return self.repository or DEFAULT_GIT_REPOSITORY_NAME

    def canonical(self) -> Source:
        url = f"{GITHUB_URL}/{self.username}/{self.repository_name}.git"
        return Source(kind=SourceKind.GIT, url=url)

    def description(self) -> str:
        return f"GitHub repository {self.username}/{self.repository_name}"

    def to_dict(self) -> Dict[str, Any]:
        github: Dict[str, Any] = {"username": self.username}
        if self.repository is not None:
            github["repository"] = self.repository
        return {"github": github}


@dataclass(frozen=True)
class UrlSourceSpec(SourceSpec):
    """An arbitrary Git URL or local path."""

    url: str

    def canonical(self) -> Source:
        return Source(kind=SourceKind.GIT, url=self.url)

    def description(self) -> str:
        return self.url

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url}


def parse_source_spec(text: str) -> SourceSpec:
    """
    Parse a user-supplied source.

    URLs (``https://...``, ``git@host:path``) and paths are used as is.
    ``user`` and ``user/repo`` refer to repositories on GitHub.
    """
    text = text.strip()
    if not text:
        raise DottyValidationError("source must not be empty")

    if "://" in text or text.startswith(URL_PREFIXES):
        return UrlSourceSpec(url=text)

    match = GITHUB_SHORTHAND.match(text)
    if match is None:
        raise DottyValidationError(
            f"invalid source '{text}': expected a URL, a path or 'user[/repository]'"
        )
    return GitHubSourceSpec(
        username=match.group("username"), repository=match.group("repository")
    )
