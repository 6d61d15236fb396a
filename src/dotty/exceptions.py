"""Exception classes for dotty - a feature-aware dotfiles synchronizer."""

from typing import List, TypedDict


# Type definitions for structured data
class CommitSummaryDict(TypedDict):
    """Type definition for a serialized commit summary."""

    short_id: str
    summary: str


class ManifestDict(TypedDict):
    """Type definition for the on-disk user manifest."""

    source: dict


class FeatureReportDict(TypedDict):
    """Type definition for the enabled/disabled feature report."""

    enabled: List[str]
    disabled: List[str]


class DottyError(Exception):
    """Base exception for all dotty-related errors."""

    pass


class DottyRepositoryError(DottyError):
    """Errors related to the dotfiles repository inside the cache."""

    pass


class DottyGitError(DottyRepositoryError):
    """Errors related to Git operations."""

    pass


class DottyNoRemoteError(DottyRepositoryError):
    """Raised when the dotfiles repository has no remote to fetch from."""

    pass


class DottyDirtyWorkTreeError(DottyRepositoryError):
    """Raised when the dotfiles repository has uncommitted changes."""

    pass


class DottyDetachedHeadError(DottyRepositoryError):
    """Raised when the checked out reference is not a branch."""

    pass


class DottyNotGrabbedError(DottyError):
    """Raised when an operation needs dotfiles that were never grabbed."""

    pass


class DottyFileOperationError(DottyError):
    """Errors related to file operations."""

    pass


class DottySymlinkError(DottyFileOperationError):
    """Errors related to symlink operations."""

    pass


class DottyBackupError(DottyError):
    """Errors related to backing up and restoring the cache."""

    pass


class DottyConfigurationError(DottyError):
    """Errors related to configuration management."""

    pass


class DottyManifestError(DottyConfigurationError):
    """Raised when a user manifest cannot be read or written."""

    pass


class DottyUnsupportedPlatformError(DottyConfigurationError):
    """Raised when the running machine has no known feature tokens."""

    pass


class DottyValidationError(DottyError):
    """Errors related to input or data validation."""

    pass
