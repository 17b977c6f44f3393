"""Void Focus - focus session tracker with a live ambient-sound waveform.

This package provides a Python CLI application for timed focus sessions: the
microphone loudness is drawn as a rolling bar waveform while a session runs,
and past sessions are shown as a timeline with the days spent away.
"""

from .cli.commands import app

__version__ = "1.0.0"
__author__ = "Void Focus Team"

__all__ = ["app", "__version__"]
