"""CLI utilities for Void Focus.

This module provides common CLI utilities like Rich console output, the live
waveform panel and the history table.
"""

import os
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import List, Optional

from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from void_focus.core.focus import format_duration
from void_focus.core.models import TimelineItem
from void_focus.core.processing import draw_level_bars

# Create themed console for consistent output
_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)

console = Console(theme=_theme)


def format_time(timestamp_ms: int) -> str:
    """Format a timestamp as local ``HH:MM``."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M")


def format_date(timestamp_ms: int, today: Optional[date] = None) -> str:
    """Format a timestamp as ``Today``, ``Yesterday`` or ``Mon D``."""
    day = datetime.fromtimestamp(timestamp_ms / 1000).date()
    today = today or date.today()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day.strftime('%b')} {day.day}"


def gap_message(days: int) -> str:
    """Describe a stretch of days without any session."""
    if days == 1:
        return "lived real life for a day"
    if days < 7:
        return f"lived real life for {days} days"
    if days < 14:
        return "lived real life for a week"
    if days < 30:
        return f"lived real life for {days // 7} weeks"
    return f"lived real life for {days // 30} months"


def make_device_table(devices: List[dict]) -> Table:
    """Build a Rich Table from the device list returned by list_input_devices().

    Args:
        devices: List of dicts with keys: id, name, driver, channels, rate, is_default

    Returns:
        Configured Rich Table ready to print.
    """
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("ID", style="cyan", width=4, justify="right")
    table.add_column("Name", min_width=30)
    table.add_column("Driver", style="dim", width=8)
    table.add_column("Ch", justify="right", style="dim", width=4)
    table.add_column("Rate", justify="right", style="dim", width=12)
    table.add_column("", width=9)

    for d in devices:
        default_mark = "[bold green]DEFAULT[/bold green]" if d.get("is_default") else ""
        table.add_row(
            str(d["id"]),
            d["name"],
            d.get("driver", "").upper(),
            str(d.get("channels", "")),
            f"{d.get('rate', '')} Hz",
            default_mark,
        )
    return table


def make_timeline_table(timeline: List[TimelineItem], today: Optional[date] = None) -> Table:
    """Build a Rich Table from a history timeline.

    Session rows show date, start time and duration; gap rows span the table
    with a dimmed message.
    """
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("Date", style="cyan", min_width=10)
    table.add_column("Start", justify="right", width=6)
    table.add_column("Duration", justify="right", min_width=10)
    table.add_column("ID", style="dim")

    for item in timeline:
        if item.is_gap:
            table.add_row("", "", "", f"[italic dim]{gap_message(item.duration)}[/italic dim]")
            continue
        table.add_row(
            format_date(item.start_time, today),
            format_time(item.start_time),
            format_duration(item.duration),
            item.id,
        )
    return table


def make_waveform_panel(levels: List[float], elapsed: int, active: bool, permission: Optional[bool]) -> Panel:
    """Render the live focus screen: timer, level bars and status line.

    Args:
        levels: Bar levels in [0, 1], oldest first
        elapsed: Seconds since the session started
        active: Whether the microphone is being sampled
        permission: Microphone permission state (``False`` shows a warning)
    """
    bars = draw_level_bars(levels)
    # Dimmed reflection under the bars
    reflection = draw_level_bars([level * 0.3 for level in levels])

    parts = [
        Align.center(Text(format_duration(elapsed), style="bold")),
        Text(""),
        Align.center(Text(bars, style="green" if active else "dim")),
        Align.center(Text(reflection, style="dim")),
        Text(""),
    ]
    if permission is False:
        parts.append(Align.center(Text("Microphone access required", style="warning")))
    parts.append(Align.center(Text("● IN THE VOID", style="cyan")))

    return Panel(
        Group(*parts),
        title="[bold]void[/bold]",
        subtitle="[dim]Ctrl+C to exit the void[/dim]",
        expand=False,
    )


@contextmanager
def suppress_stderr():
    """Context manager to suppress stderr output from libraries like ALSA, JACK.

    Used to hide debug/warning messages from audio subsystems that pollute
    terminal output.
    """
    # Save original stderr file descriptor
    original_stderr_fd = os.dup(2)
    try:
        # Open /dev/null and redirect stderr to it
        null_fd = os.open(os.devnull, os.O_WRONLY)
        os.dup2(null_fd, 2)
        os.close(null_fd)
        yield
    finally:
        # Restore original stderr
        os.dup2(original_stderr_fd, 2)
        os.close(original_stderr_fd)


__all__ = [
    "console",
    "format_date",
    "format_duration",
    "format_time",
    "gap_message",
    "make_device_table",
    "make_timeline_table",
    "make_waveform_panel",
    "suppress_stderr",
]
