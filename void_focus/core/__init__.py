"""Core business logic for Void Focus."""

from .config import AppConfig
from .focus import FocusController, build_export, format_duration
from .levels import FadeOut, LevelRingBuffer, PeriodicTask, SmoothingFilter
from .models import FocusSession, TimelineItem
from .processing import calculate_dbfs, detect_driver_type, draw_level_bars, normalize_level
from .recording import MeteringConfig, Microphone, PyAudioMicrophone, list_input_devices
from .sampler import AudioSampler, SamplerState
from .storage import JsonKeyValueStore, SessionStore, UnsupportedSchemaError
from .timeline import build_timeline

__all__ = [
    "AppConfig",
    "AudioSampler",
    "FadeOut",
    "FocusController",
    "FocusSession",
    "JsonKeyValueStore",
    "LevelRingBuffer",
    "MeteringConfig",
    "Microphone",
    "PeriodicTask",
    "PyAudioMicrophone",
    "SamplerState",
    "SessionStore",
    "SmoothingFilter",
    "TimelineItem",
    "UnsupportedSchemaError",
    "build_export",
    "build_timeline",
    "calculate_dbfs",
    "detect_driver_type",
    "draw_level_bars",
    "format_duration",
    "list_input_devices",
    "normalize_level",
]
