"""CLI commands for dotty - a feature-aware dotfiles synchronizer."""

import json
from contextlib import nullcontext
from typing import Any, Dict, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from . import __version__, symlink
from .cache import Cache, UserCache
from .config import (
    get_config_value,
    get_dotty_paths,
    load_config,
    reset_config,
    resolve_shell,
    resolve_username,
    set_config_value,
)
from .exceptions import DottyError
from .features import FeatureSet, namespace_of
from .reporter import Reporter
from .shell import Shell, ShellConfig
from .source import parse_source_spec

# Global app and console instances
app = typer.Typer(help="dotty - a feature-aware dotfiles synchronizer")
config_app = typer.Typer(help="Manage dotty configuration")
app.add_typer(config_app, name="config")
console = Console()

VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Show detailed output")
]
QuietOption = Annotated[
    bool, typer.Option("--quiet", "-q", help="Only show warnings and errors")
]
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", help="Whose dotfiles to manage (default: you)"),
]
SourceArgument = Annotated[
    str,
    typer.Argument(help="Git URL, local path, or GitHub 'user[/repository]'"),
]


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def fail(error: Exception) -> NoReturn:
    """Print an error and exit with a failure code."""
    typer.secho(f"Error: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def open_user_cache(
    user: Optional[str], verbose: bool = False, quiet: bool = False
) -> UserCache:
    """Open the cache for a user with the running machine's features."""
    config = load_config()
    cache = Cache.at(get_dotty_paths()["cache_dir"])
    reporter = Reporter(verbose=verbose, quiet=quiet)
    return cache.user(
        user or resolve_username(config),
        features=FeatureSet.current_system(),
        reporter=reporter,
        max_backups=config["max_backups"],
    )


def spinner(message: str, quiet: bool):
    return nullcontext() if quiet else console.status(message, spinner="dots")


def format_config_value(value: Any) -> str:
    return json.dumps(value)


# ============================================================================
# FETCHING
# ============================================================================


@app.command()
def grab(
    source: SourceArgument,
    user: UserOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Fetch dotfiles into the cache without linking them."""
    try:
        user_cache = open_user_cache(user, verbose, quiet)
        source_spec = parse_source_spec(source)
        with spinner("Grabbing dotfiles...", quiet):
            user_cache.grab(source_spec)
    except DottyError as e:
        fail(e)

    if not quiet:
        typer.secho(
            f"Grabbed {len(user_cache.dotfiles())} dotfiles", fg=typer.colors.GREEN
        )


@app.command()
def setup(
    source: SourceArgument,
    user: UserOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Fetch dotfiles and link them into your home directory."""
    try:
        user_cache = open_user_cache(user, verbose, quiet)
        source_spec = parse_source_spec(source)
        with spinner("Grabbing dotfiles...", quiet):
            user_cache.grab(source_spec)
        created = user_cache.link()
    except DottyError as e:
        fail(e)

    if not quiet:
        typer.secho(f"Set up! Linked {created} dotfiles", fg=typer.colors.GREEN)


@app.command()
def update(
    user: UserOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Fetch new dotfiles from their source. Run `dotty link` afterwards."""
    try:
        user_cache = open_user_cache(user, verbose, quiet)
        with spinner("Updating dotfiles...", quiet):
            commit_range = user_cache.update()
    except DottyError as e:
        fail(e)

    if not quiet and not commit_range.is_up_to_date:
        typer.secho(
            f"Fetched {len(commit_range)} new commits. "
            "Run `dotty link` to link new dotfiles.",
            fg=typer.colors.GREEN,
        )


# ============================================================================
# LINKING
# ============================================================================


@app.command()
def link(
    user: UserOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Link all supported dotfiles into your home directory."""
    try:
        created = open_user_cache(user, verbose, quiet).link()
    except DottyError as e:
        fail(e)

    if not quiet:
        typer.secho(f"Linked {created} dotfiles", fg=typer.colors.GREEN)


@app.command()
def unlink(
    user: UserOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Remove dotfile links from your home directory."""
    try:
        removed = open_user_cache(user, verbose, quiet).unlink()
    except DottyError as e:
        fail(e)

    if not quiet:
        typer.secho(f"Removed {removed} links", fg=typer.colors.GREEN)


@app.command()
def relink(
    user: UserOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Remove and recreate all dotfile links."""
    try:
        created = open_user_cache(user, verbose, quiet).relink()
    except DottyError as e:
        fail(e)

    if not quiet:
        typer.secho(f"Relinked {created} dotfiles", fg=typer.colors.GREEN)


@app.command()
def forget(
    user: UserOption = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")
    ] = False,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Unlink all dotfiles and delete them from the cache."""
    try:
        user_cache = open_user_cache(user, verbose, quiet)
    except DottyError as e:
        fail(e)

    if not yes and not typer.confirm(
        f"Delete all cached dotfiles for '{user_cache.username}'?", default=False
    ):
        typer.secho("Cancelled", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)

    try:
        user_cache.forget()
    except DottyError as e:
        fail(e)


# ============================================================================
# REPORTING
# ============================================================================


@app.command("list")
def list_dotfiles(
    user: UserOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List dotfiles in the cache and whether they are linked."""
    try:
        user_cache = open_user_cache(user, verbose, quiet=True)
        dotfiles = user_cache.dotfiles()
    except DottyError as e:
        fail(e)

    if not dotfiles:
        typer.secho("No dotfiles found in the cache", fg=typer.colors.YELLOW)
        return

    config = user_cache.default_symlink_config()
    table = Table(title=f"Dotfiles for {user_cache.username}")
    table.add_column("Dotfile")
    table.add_column("Link")
    table.add_column("Status")

    for dotfile in dotfiles:
        linked = user_cache.link_name(dotfile)
        if not user_cache.features.supports(dotfile):
            missing = ", ".join(user_cache.features.missing_features(dotfile))
            status = f"[dim]unsupported ({missing})[/dim]"
        elif symlink.exists(linked, config):
            status = "[green]linked[/green]"
        else:
            status = "[yellow]not linked[/yellow]"
        table.add_row(str(dotfile.relative_path), str(linked.relative_path), status)

    console.print(table)


@app.command()
def features() -> None:
    """Show which features this machine enables."""
    try:
        feature_set = FeatureSet.current_system()
    except DottyError as e:
        fail(e)

    report = feature_set.report()
    table = Table(title="Features")
    table.add_column("Feature")
    table.add_column("Namespace")
    table.add_column("Enabled")
    for feature in report["enabled"]:
        table.add_row(feature, namespace_of(feature) or "", "[green]yes[/green]")
    for feature in report["disabled"]:
        table.add_row(feature, namespace_of(feature) or "", "[dim]no[/dim]")
    console.print(table)


@app.command()
def path(user: UserOption = None) -> None:
    """Print the path of the user's cache."""
    try:
        user_cache = open_user_cache(user, quiet=True)
    except DottyError as e:
        fail(e)
    typer.echo(str(user_cache.base_path()))


@app.command()
def users() -> None:
    """List users with cached dotfiles."""
    try:
        cache = Cache.at(get_dotty_paths()["cache_dir"])
    except DottyError as e:
        fail(e)
    for name in cache.users():
        typer.echo(name)


@app.command()
def shell(
    user: UserOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Start a shell with the user's dotfiles as its home directory."""
    try:
        user_cache = open_user_cache(user, verbose)
        shell_config = ShellConfig(shell_path=resolve_shell(load_config()))
        Shell.create(user_cache, shell_config).exec()
    except DottyError as e:
        fail(e)


@app.command()
def version() -> None:
    """Show the dotty version."""
    typer.echo(f"dotty version {__version__}")


# ============================================================================
# CONFIGURATION
# ============================================================================


@config_app.command("show")
def config_show(
    key: Annotated[Optional[str], typer.Argument(help="Show a single key")] = None,
) -> None:
    """Show the current configuration."""
    try:
        if key is not None:
            typer.echo(format_config_value(get_config_value(key)))
            return
        config: Dict[str, Any] = load_config()
    except DottyError as e:
        fail(e)

    for name, value in sorted(config.items()):
        typer.echo(f"{name} = {format_config_value(value)}")


@config_app.command("set")
def config_set(
    key: Annotated[str, typer.Argument(help="Configuration key")],
    value: Annotated[str, typer.Argument(help="New value")],
) -> None:
    """Set a configuration value."""
    try:
        stored = set_config_value(key, value)
    except DottyError as e:
        fail(e)
    typer.secho(f"✓ Set {key} = {format_config_value(stored)}", fg=typer.colors.GREEN)


@config_app.command("reset")
def config_reset() -> None:
    """Reset the configuration to defaults."""
    try:
        reset_config()
    except DottyError as e:
        fail(e)
    typer.secho("✓ Configuration reset to defaults", fg=typer.colors.GREEN)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
