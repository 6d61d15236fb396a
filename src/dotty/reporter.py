"""Explicit reporter used by every dotty operation to emit messages."""

from dataclasses import dataclass, field
from typing import List

import typer

# Levels, in increasing severity
LOG = "log"
INFO = "info"
WARNING = "warning"
ERROR = "error"

LABELS = {
    LOG: ("[log]", typer.colors.YELLOW),
    INFO: ("[info]", typer.colors.BRIGHT_BLUE),
    WARNING: ("warning", typer.colors.MAGENTA),
    ERROR: ("error", typer.colors.RED),
}


@dataclass(frozen=True)
class ReportEvent:
    """A single message emitted by an operation."""

    level: str
    message: str


@dataclass
class Reporter:
    """
    Collects and prints operation messages.

    Verbose-only messages go through ``log``; everything else is printed
    unless ``quiet`` is set. Every message that passes the verbosity filter
    is also recorded in ``events`` so callers can inspect what happened
    without parsing console output.
    """

    verbose: bool = False
    quiet: bool = False
    events: List[ReportEvent] = field(default_factory=list)

    def log(self, message: str) -> None:
        """Emit a message only when verbose output is enabled."""
        if self.verbose:
            self._emit(LOG, message)

    def info(self, message: str) -> None:
        self._emit(INFO, message)

    def warn(self, message: str) -> None:
        self._emit(WARNING, message)

    def error(self, message: str) -> None:
        self._emit(ERROR, message)

    def messages(self, level: str) -> List[str]:
        """Return all recorded messages of the given level."""
        return [event.message for event in self.events if event.level == level]

    def _emit(self, level: str, message: str) -> None:
        self.events.append(ReportEvent(level, message))
        if self.quiet:
            return

        label, colour = LABELS[level]
        typer.secho(f"{label}: ", fg=colour, err=True, nl=False)
        typer.echo(message, err=True)
