"""
dotty - a feature-aware dotfiles synchronizer.

dotty fetches a user's dotfiles from a Git repository into a local cache and
links the ones supported by the current machine into the home directory.
"""

__version__ = "0.1.0"
__license__ = "GPL-3.0-or-later"

from .backup import transactional_replace
from .cache import Cache, UserCache, UserManifest
from .dotfiles import Dotfile, scan_dotfiles
from .features import FeatureSet, required_features
from .reporter import Reporter
from .source import parse_source_spec
from .symlink import SymlinkConfig

__all__ = [
    "Cache",
    "UserCache",
    "UserManifest",
    "Dotfile",
    "scan_dotfiles",
    "FeatureSet",
    "required_features",
    "Reporter",
    "parse_source_spec",
    "SymlinkConfig",
    "transactional_replace",
]
