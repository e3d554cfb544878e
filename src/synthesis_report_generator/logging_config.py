"""Rich console setup and pipeline progress helpers."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

console = Console()

ProgressCallback = Callable[[str, int], None]

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


logger = logging.getLogger("srg")


# ---------------------------------------------------------------------------
# Pipeline callbacks protocol
# ---------------------------------------------------------------------------


class PipelineCallbacks(Protocol):
    """Protocol for pipeline progress reporting."""

    def on_phase_start(self, phase: str, description: str) -> None: ...
    def on_phase_end(self, phase: str, success: bool) -> None: ...
    def on_substage_start(self, substage: str, title: str) -> None: ...
    def on_substage_end(self, substage: str, word_count: int) -> None: ...
    def on_chunk(self, substage: str, index: int, total: int) -> None: ...
    def on_warning(self, message: str) -> None: ...
    def on_error(self, message: str) -> None: ...


class NullCallbacks:
    """Silent PipelineCallbacks, used by library callers and tests."""

    def on_phase_start(self, phase: str, description: str) -> None:
        pass

    def on_phase_end(self, phase: str, success: bool) -> None:
        pass

    def on_substage_start(self, substage: str, title: str) -> None:
        pass

    def on_substage_end(self, substage: str, word_count: int) -> None:
        pass

    def on_chunk(self, substage: str, index: int, total: int) -> None:
        pass

    def on_warning(self, message: str) -> None:
        logger.warning(message)

    def on_error(self, message: str) -> None:
        logger.error(message)


class RichCallbacks:
    """Rich-based implementation of PipelineCallbacks."""

    def on_phase_start(self, phase: str, description: str) -> None:
        console.rule(f"[bold blue]{phase}[/]: {description}")

    def on_phase_end(self, phase: str, success: bool) -> None:
        status = "[green]OK[/]" if success else "[red]FAILED[/]"
        console.print(f"  Phase {phase}: {status}")

    def on_substage_start(self, substage: str, title: str) -> None:
        console.print(f"  [dim]Substage {substage}:[/] {title}")

    def on_substage_end(self, substage: str, word_count: int) -> None:
        console.print(f"  [dim]Done:[/] {substage} ({word_count:,} words)")

    def on_chunk(self, substage: str, index: int, total: int) -> None:
        console.print(f"    [cyan]Chunk {index}/{total}[/]")

    def on_warning(self, message: str) -> None:
        console.print(f"  [yellow]WARNING:[/] {message}")

    def on_error(self, message: str) -> None:
        console.print(f"  [red]ERROR:[/] {message}")


def create_progress() -> Progress:
    """Create a Rich progress bar driven by the pipeline's percentage callback."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
    )
