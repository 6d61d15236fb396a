"""Paths and user configuration for dotty."""

import copy
import getpass
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .exceptions import DottyConfigurationError

# Constants
DOTTY_DIR_NAME = ".dotty"
CACHE_DIR_NAME = "cache"
CONFIG_FILENAME = "config.json"

# Default configuration
DEFAULT_CONFIG: Dict[str, Any] = {
    "username": None,  # defaults to the login name
    "max_backups": 3,  # backups of a user's dotfiles kept after a re-grab
    "shell": None,  # defaults to $SHELL, then /bin/sh
}


# ============================================================================
# PATH MANAGEMENT
# ============================================================================


def get_home_dir() -> Path:
    """Get the home directory, respecting environment variables for testing."""
    if "HOME" in os.environ:
        return Path(os.environ["HOME"])
    return Path.home()


def get_dotty_paths(home_dir: Optional[Path] = None) -> Dict[str, Path]:
    """Get all dotty-related paths based on home directory."""
    if home_dir is None:
        home_dir = get_home_dir()

    dotty_dir = home_dir / DOTTY_DIR_NAME

    return {
        "home": home_dir,
        "dotty_dir": dotty_dir,
        "cache_dir": dotty_dir / CACHE_DIR_NAME,
        "config_file": dotty_dir / CONFIG_FILENAME,
    }


# ============================================================================
# CONFIGURATION MANAGEMENT
# ============================================================================


def default_config_file() -> Path:
    return get_dotty_paths()["config_file"]


def load_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from config file, or return defaults if not exists."""
    if config_file is None:
        config_file = default_config_file()

    merged_config = copy.deepcopy(DEFAULT_CONFIG)
    if not config_file.exists():
        return merged_config

    try:
        with open(config_file, "r") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        typer.secho(
            f"Warning: Error reading config file: {e}. Using defaults.",
            fg=typer.colors.YELLOW,
            err=True,
        )
        return merged_config

    if not isinstance(config, dict):
        typer.secho(
            "Warning: Config file does not contain an object. Using defaults.",
            fg=typer.colors.YELLOW,
            err=True,
        )
        return merged_config

    merged_config.update(config)
    return merged_config


def save_config(config: Dict[str, Any], config_file: Optional[Path] = None) -> None:
    """Save configuration to config file."""
    if config_file is None:
        config_file = default_config_file()
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w") as f:
            json.dump(config, f, indent=2)
    except OSError as e:
        raise DottyConfigurationError(
            f"could not save configuration to {config_file}: {e}"
        ) from e


def parse_config_value(value: str) -> Any:
    """Interpret a command-line value as JSON, a boolean, an integer or a string."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise DottyConfigurationError(f"invalid JSON value: {value}") from e
    try:
        return int(value)
    except ValueError:
        return value


def get_config_value(key: str, config_file: Optional[Path] = None) -> Any:
    """Get a configuration value by key."""
    config = load_config(config_file)
    if key not in config:
        raise DottyConfigurationError(f"configuration key '{key}' not found")
    return config[key]


def set_config_value(
    key: str, value: str, config_file: Optional[Path] = None
) -> Any:
    """Set a known configuration key and return the stored value."""
    if key not in DEFAULT_CONFIG:
        raise DottyConfigurationError(
            f"unknown configuration key '{key}'; "
            f"expected one of: {', '.join(sorted(DEFAULT_CONFIG))}"
        )

    parsed = parse_config_value(value)
    if key == "max_backups" and (
        isinstance(parsed, bool) or not isinstance(parsed, int) or parsed < 0
    ):
        raise DottyConfigurationError("max_backups must be a non-negative integer")

    config = load_config(config_file)
    config[key] = parsed
    save_config(config, config_file)
    return parsed


def reset_config(config_file: Optional[Path] = None) -> None:
    """Reset configuration to defaults."""
    save_config(copy.deepcopy(DEFAULT_CONFIG), config_file)


def resolve_username(config: Dict[str, Any]) -> str:
    """Get the configured username, falling back to the login name."""
    return config.get("username") or getpass.getuser()


def resolve_shell(config: Dict[str, Any]) -> str:
    """Get the configured shell, falling back to $SHELL and then /bin/sh."""
    return config.get("shell") or os.environ.get("SHELL") or "/bin/sh"
