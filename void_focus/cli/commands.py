"""CLI commands for Void Focus.

This module provides all command-line interface commands using Typer.
"""

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.live import Live
from rich.panel import Panel

from void_focus.core import (
    AppConfig,
    AudioSampler,
    FocusController,
    JsonKeyValueStore,
    MeteringConfig,
    PyAudioMicrophone,
    SessionStore,
    build_export,
    build_timeline,
    format_duration,
    list_input_devices,
)
from void_focus.cli.utils import (
    console,
    make_device_table,
    make_timeline_table,
    make_waveform_panel,
    suppress_stderr,
)

app = typer.Typer(help="Focus session tracker with a live ambient-sound waveform")

app_config = AppConfig()

REFRESH_INTERVAL = 0.05


def _configure_logging(verbose: bool) -> None:
    """Configure loguru log level based on verbose flag."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level="WARNING")


def _make_store() -> SessionStore:
    return SessionStore(JsonKeyValueStore(app_config.get_store_path()))


async def _run_focus(duration: Optional[int], device_id: Optional[int], verbose: bool) -> None:
    metering = MeteringConfig(**app_config.get_metering_config())
    if device_id is not None:
        metering.device_id = device_id

    sampler = AudioSampler(
        PyAudioMicrophone(device_id=metering.device_id),
        metering_config=metering,
        **app_config.get_sampler_kwargs(),
    )
    controller = FocusController(_make_store(), sampler=sampler)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C then surfaces as KeyboardInterrupt
            pass

    def render() -> Panel:
        return make_waveform_panel(
            sampler.snapshot(),
            controller.elapsed(),
            sampler.is_recording,
            sampler.permission_granted,
        )

    try:
        await controller.load()
        if verbose:
            await controller.enter()
        else:
            with suppress_stderr():
                await controller.enter()

        with Live(render(), console=console, refresh_per_second=20, transient=False) as live:
            while not stop_event.is_set():
                if duration and controller.elapsed() >= duration:
                    break
                live.update(render())
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=REFRESH_INTERVAL)
                except asyncio.TimeoutError:
                    pass

            completed = await controller.exit()
            while sampler.is_fading:
                live.update(render())
                await asyncio.sleep(REFRESH_INTERVAL)
            live.update(render())

        if completed is not None:
            console.print(f"[success]✓ Session saved: {format_duration(completed.duration)}[/success]")
    finally:
        if controller.in_focus:
            await controller.exit()
        await controller.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass


@app.command()
def focus(
    duration: Optional[int] = typer.Option(
        None, help="Session length in seconds. Leave empty to focus until Ctrl+C."
    ),
    device_id: Optional[int] = typer.Option(
        None, help="Audio device ID to meter. Leave empty for the configured or default device."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Enter the void: run a focus session with a live ambient-sound waveform."""
    _configure_logging(verbose)
    try:
        asyncio.run(_run_focus(duration, device_id, verbose))
    except KeyboardInterrupt:
        console.print("[warning]⏹ Focus session interrupted[/warning]")


@app.command()
def history(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Show past sessions and the days spent away between them."""
    _configure_logging(verbose)
    sessions = asyncio.run(_make_store().get_all())
    timeline = build_timeline(sessions)
    if not timeline:
        console.print("[dim]no sessions yet[/dim]")
        console.print("[dim]enter the void to begin[/dim]")
        return
    console.print(Panel(make_timeline_table(timeline), title="[bold]void[/bold]", expand=False))


@app.command()
def delete(
    session_id: str = typer.Argument(..., help="ID of the session to delete"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Delete a stored session."""
    _configure_logging(verbose)
    store = _make_store()

    async def _delete() -> bool:
        before = await store.get_all()
        if not any(s.id == session_id for s in before):
            return False
        await store.delete(session_id)
        return True

    if not asyncio.run(_delete()):
        console.print(f"[error]✗ No session with ID {session_id}[/error]")
        raise typer.Exit(code=1)
    console.print(f"[success]✓ Deleted session {session_id}[/success]")


@app.command()
def export(
    output: Optional[Path] = typer.Option(
        None, help="Write the export to this file instead of standard output"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Export all sessions as JSON."""
    _configure_logging(verbose)
    sessions = asyncio.run(_make_store().get_all())
    if not sessions:
        console.print("[warning]no sessions to export yet[/warning]")
        return

    payload = json.dumps(build_export(sessions), indent=2)
    if output is None:
        typer.echo(payload)
        return
    output.write_text(payload + "\n", encoding="utf-8")
    console.print(f"[success]✓ Exported {len(sessions)} session(s) to {output}[/success]")


@app.command()
def list_devices(
    driver: Optional[str] = typer.Option(
        None, help="Filter by driver type: pulse, alsa, jack, usb, default"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """List all available input audio devices."""
    if verbose:
        devices = list_input_devices(driver_filter=driver)
    else:
        with suppress_stderr():
            devices = list_input_devices(driver_filter=driver)

    title = "Available Input Devices"
    if driver:
        title += f" (filtered by: {driver})"
    console.print(Panel(make_device_table(devices), title=f"[bold]{title}[/bold]"))


@app.command()
def status(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Show input devices and session storage information."""
    _configure_logging(verbose)

    console.rule("[bold]📋 Void Focus Status[/bold]")
    console.print()
    try:
        if verbose:
            devices = list_input_devices()
        else:
            with suppress_stderr():
                devices = list_input_devices()
        console.print(Panel(make_device_table(devices), title="[bold]Available Input Devices[/bold]"))
    except Exception as e:
        console.print(f"[error]✗ Error listing devices: {e}[/error]")

    store_path = app_config.get_store_path()
    sessions = asyncio.run(_make_store().get_all())
    completed = [s for s in sessions if s.completed]
    console.print(f"[info]Session store: {store_path}[/info]")
    console.print(f"[info]Sessions: {len(completed)} completed[/info]")
    active = [s for s in sessions if s.is_active]
    if active:
        console.print(f"[warning]{len(active)} session(s) never ended: {', '.join(s.id for s in active)}[/warning]")
