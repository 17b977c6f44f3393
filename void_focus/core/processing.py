"""Audio processing utilities for Void Focus.

This module provides the pure level math: converting raw audio buffers to a
dBFS reading and mapping a dBFS reading onto a [0, 1] display level, plus
driver detection for the device list.
"""

import math

import numpy as np
from loguru import logger

from .config import BOOST, GAIN, MAX_DB, MIN_DB, SILENCE_DB


def calculate_dbfs(audio_data: bytes) -> float:
    """Calculate the loudness of raw int16 audio in dBFS.

    Args:
        audio_data: Raw audio bytes (int16)

    Returns:
        dBFS level, between ``SILENCE_DB`` and 0
    """
    try:
        audio_array = np.frombuffer(audio_data, dtype=np.int16)
        if audio_array.size == 0:
            return SILENCE_DB

        # Calculate RMS (Root Mean Square)
        rms = np.sqrt(np.mean(audio_array.astype(float) ** 2))

        # Reference is max int16 value
        max_int16 = 32768
        if rms > 0:
            db = 20 * np.log10(rms / max_int16)
            return float(max(SILENCE_DB, min(0.0, db)))
        return SILENCE_DB
    except Exception as e:
        logger.debug(f"Error calculating dB level: {e}")
        return SILENCE_DB


def clamp_level(value: float) -> float:
    """Clamp a level value to [0.0, 1.0]."""
    return max(0.0, min(1.0, float(value)))


def normalize_level(
    db: float,
    min_db: float = MIN_DB,
    max_db: float = MAX_DB,
    boost: float = BOOST,
    gain: float = GAIN,
) -> float:
    """Map a dBFS meter reading onto a display level in [0, 1].

    The reading is mapped linearly from ``[min_db, max_db]`` and clamped, so
    readings outside the window saturate to exactly 0 or 1. A ``boost``
    exponent below 1 lifts quiet sounds; ``gain`` re-scales the result, which
    is clamped again.

    Args:
        db: Meter reading in dBFS
        min_db: Reading mapped to 0
        max_db: Reading mapped to 1
        boost: Exponent applied to the linear level (1.0 = linear)
        gain: Multiplier applied after the boost

    Returns:
        Level in [0, 1]

    Raises:
        ValueError: If the dB window is empty or ``boost`` is not positive
    """
    if min_db >= max_db:
        raise ValueError(f"min_db ({min_db}) must be below max_db ({max_db})")
    if boost <= 0:
        raise ValueError(f"boost must be positive, got {boost}")

    if math.isnan(db):
        return 0.0

    level = clamp_level((db - min_db) / (max_db - min_db))
    if boost != 1.0:
        level = level ** boost
    if gain != 1.0:
        level = clamp_level(level * gain)
    return level


def draw_level_bars(levels, height: int = 8) -> str:
    """Render a sequence of levels as a single row of block characters.

    Args:
        levels: Sequence of levels in [0, 1]
        height: Number of distinct bar heights

    Returns:
        String with one character per level
    """
    blocks = ' ▁▂▃▄▅▆▇█'
    steps = min(height, len(blocks) - 1)
    return ''.join(blocks[int(round(clamp_level(level) * steps))] for level in levels)


def detect_driver_type(device_name: str) -> str:
    """Detect the audio driver type from device name.

    Args:
        device_name: The name of the audio device

    Returns:
        Driver type: 'pulse', 'alsa', 'jack', 'default', etc.
    """
    name_lower = device_name.lower()

    if 'pulse' in name_lower or 'pipewire' in name_lower:
        return 'pulse'
    elif 'alsa' in name_lower or 'hw:' in name_lower or 'plughw' in name_lower:
        return 'alsa'
    elif 'jack' in name_lower:
        return 'jack'
    elif 'usb' in name_lower:
        return 'usb'
    else:
        return 'default'
