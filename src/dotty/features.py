"""Machine features and feature-based filtering of dotfiles."""

import os
import platform
import sys
from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .dotfiles import Dotfile
from .exceptions import DottyUnsupportedPlatformError, FeatureReportDict

# All operating system names.
OS_NAMES: Tuple[str, ...] = (
    "linux",
    "macos",
    "ios",
    "freebsd",
    "dragonfly",
    "bitrig",
    "netbsd",
    "openbsd",
    "solaris",
    "android",
    "windows",
)

# All platform family names.
FAMILIES: Tuple[str, ...] = (
    "unix",
    "windows",
)

# All architecture names.
ARCH_NAMES: Tuple[str, ...] = (
    "x86",
    "x86_64",
    "arm",
    "aarch64",
    "mips",
    "mips64",
    "powerpc",
    "powerpc64",
    "s390x",
    "sparc64",
)

# Namespace name -> tokens. The name is what an enabled token is rewritten
# to in a link name.
NAMESPACES: Dict[str, Tuple[str, ...]] = {
    "os": OS_NAMES,
    "family": FAMILIES,
    "arch": ARCH_NAMES,
}

ALL_FEATURES: FrozenSet[str] = frozenset(
    feature for features in NAMESPACES.values() for feature in features
)

# platform.system() -> OS token
SYSTEM_OS_NAMES = {
    "linux": "linux",
    "darwin": "macos",
    "ios": "ios",
    "ipados": "ios",
    "freebsd": "freebsd",
    "dragonfly": "dragonfly",
    "bitrig": "bitrig",
    "netbsd": "netbsd",
    "openbsd": "openbsd",
    "sunos": "solaris",
    "android": "android",
    "windows": "windows",
}

# platform.machine() -> architecture token
MACHINE_ARCH_NAMES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "armv5tel": "arm",
    "armv6l": "arm",
    "armv7l": "arm",
    "armv8l": "arm",
    "arm": "arm",
    "mips": "mips",
    "mipsel": "mips",
    "mips64": "mips64",
    "mips64el": "mips64",
    "ppc": "powerpc",
    "powerpc": "powerpc",
    "ppc64": "powerpc64",
    "ppc64le": "powerpc64",
    "powerpc64": "powerpc64",
    "s390x": "s390x",
    "sparc64": "sparc64",
}


def namespace_of(feature: str) -> Optional[str]:
    """Get the namespace name a feature token belongs to."""
    for namespace, features in NAMESPACES.items():
        if feature in features:
            return namespace
    return None


def validate_feature(feature: str) -> None:
    """Raise ValueError if a feature name isn't known to this module."""
    if feature not in ALL_FEATURES:
        raise ValueError(
            f"feature '{feature}' does not exist in the global feature set"
        )


def required_features(dotfile: Dotfile) -> FrozenSet[str]:
    """Build the set of features a dotfile's file name requires."""
    return frozenset(part for part in dotfile.name.split(".") if part in ALL_FEATURES)


def detect_os() -> str:
    """Get the OS token for the running machine."""
    if hasattr(sys, "getandroidapilevel"):
        return "android"

    system = platform.system().lower()
    if system.startswith(("cygwin", "msys", "mingw")):
        system = "windows"
    try:
        return SYSTEM_OS_NAMES[system]
    except KeyError:
        raise DottyUnsupportedPlatformError(
            f"unsupported operating system '{platform.system()}'"
        ) from None


def detect_family() -> str:
    """Get the platform family token for the running machine."""
    return "windows" if os.name == "nt" else "unix"


def detect_arch() -> str:
    """Get the architecture token for the running machine."""
    machine = platform.machine().lower()
    try:
        return MACHINE_ARCH_NAMES[machine]
    except KeyError:
        raise DottyUnsupportedPlatformError(
            f"unsupported CPU architecture '{platform.machine()}'"
        ) from None


class FeatureSet:
    """A set of enabled features."""

    def __init__(self, enabled_features: Iterable[str] = ()) -> None:
        enabled = frozenset(enabled_features)
        for feature in enabled:
            validate_feature(feature)
        self.enabled_features: FrozenSet[str] = enabled

    @classmethod
    def current_system(cls) -> "FeatureSet":
        """Get the feature set for the running machine."""
        return cls([detect_os(), detect_family(), detect_arch()])

    def __repr__(self) -> str:
        return f"FeatureSet({sorted(self.enabled_features)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeatureSet):
            return NotImplemented
        return self.enabled_features == other.enabled_features

    def __hash__(self) -> int:
        return hash(self.enabled_features)

    def supports(self, dotfile: Dotfile) -> bool:
        """Check if a dotfile is supported by this feature set."""
        return required_features(dotfile) <= self.enabled_features

    def missing_features(self, dotfile: Dotfile) -> List[str]:
        """Get the features a dotfile requires that are not enabled."""
        return sorted(required_features(dotfile) - self.enabled_features)

    def substitute_name(self, file_name: str) -> str:
        """Rewrite enabled feature tokens in a file name to namespace names."""
        parts = []
        for part in file_name.split("."):
            if part in self.enabled_features:
                part = namespace_of(part) or part
            parts.append(part)
        return ".".join(parts)

    def substitute_enabled_feature_names(self, dotfile: Dotfile) -> Dotfile:
        """
        Get the dotfile as it should be named in the home directory.

        ``.tmux.linux.x86.conf`` becomes ``.tmux.os.arch.conf`` on a machine
        with ``linux`` and ``x86`` enabled. Only the file name is rewritten.
        """
        name = self.substitute_name(dotfile.name)
        if name == dotfile.name:
            return dotfile
        return replace(dotfile, relative_path=dotfile.relative_path.with_name(name))

    def disabled(self) -> List[str]:
        """Get a sorted list of all disabled features."""
        return sorted(ALL_FEATURES - self.enabled_features)

    def report(self) -> FeatureReportDict:
        """Summarize enabled and disabled features."""
        return {
            "enabled": sorted(self.enabled_features),
            "disabled": self.disabled(),
        }
