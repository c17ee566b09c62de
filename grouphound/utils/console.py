# Rich-based console for thread-safe, colored terminal output.
#
# Everything GroupHound prints goes through the single Console below.
# Resolution workers print concurrently, so every write holds _output_lock.
# This module only renders; whether a message is shown at all is decided
# in grouphound.utils.logging.

import threading
from contextlib import contextmanager

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

console = Console(highlight=False)

_output_lock = threading.RLock()

# Markup prefix per message level
PREFIXES = {
    "status": "",
    "good": "[green][+][/] ",
    "warn": "[yellow][!][/] ",
    "error": "[red][-][/] ",
    "info": "[blue][*][/] ",
    "debug": "[dim][DEBUG][/] ",
}


# =============================================================================
# Banner
# =============================================================================

GROUPHOUND_TEAL = "#14B8A6"

BANNER_ART = f"""
[bold {GROUPHOUND_TEAL}] GGG  RRRR   OOO  U   U PPPP  H   H  OOO  U   U N   N DDDD[/]
[bold {GROUPHOUND_TEAL}]G     R   R O   O U   U P   P H   H O   O U   U NN  N D   D[/]
[bold {GROUPHOUND_TEAL}]G  GG RRRR  O   O U   U PPPP  HHHHH O   O U   U N N N D   D[/]
[bold {GROUPHOUND_TEAL}]G   G R  R  O   O U   U P     H   H O   O U   U N  NN D   D[/]
[bold {GROUPHOUND_TEAL}] GGG  R   R  OOO   UUU  P     H   H  OOO   UUU  N   N DDDD[/]

              [dim]nested and cross-domain group membership resolver[/]
"""


def print_banner():
    """Print the colored GroupHound banner."""
    console.print(BANNER_ART)


# =============================================================================
# Messages
# =============================================================================


def emit(level: str, msg: str, exc_info: bool = False):
    """
    Print one message with the prefix of its level.

    Args:
        level: Key of PREFIXES
        msg: Message text (rich markup allowed)
        exc_info: Also print the exception currently being handled
    """
    with _output_lock:
        console.print(f"{PREFIXES[level]}{msg}")
        if exc_info:
            console.print_exception()


# =============================================================================
# Spinner and panels
# =============================================================================


@contextmanager
def spinner(description: str = "Processing"):
    """
    Show an indeterminate spinner while a resolution run is in progress.

    Example:
        with spinner("Resolving group memberships"):
            edges = resolver.resolve(...)
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    progress.add_task(description, total=None)

    with progress:
        yield


def print_export_section(label: str, path: str):
    """Print an export file location in a styled panel."""
    with _output_lock:
        console.print()
        console.print(
            Panel(
                f"[green][+][/] {label} saved to: [bold]{path}[/]",
                title="[bold]EXPORT[/]",
                border_style="dim",
            )
        )
