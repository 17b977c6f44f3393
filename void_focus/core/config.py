"""Configuration management for Void Focus.

This module provides configuration constants and the :class:`AppConfig` class
which merges defaults with values from an optional YAML file
(``.void-focus.yml`` in the working directory).

Audio constants
---------------
- ``NUM_BARS``          – number of level bars kept in the ring buffer
- ``TICK_INTERVAL``     – seconds between two meter reads
- ``MIN_DB`` / ``MAX_DB`` – dBFS window mapped onto the [0, 1] level range
- ``BOOST`` / ``GAIN``  – exponent and re-scale applied after the linear map
- ``SMOOTHING``         – exponential smoothing factor (alpha)
- ``JITTER``            – amplitude of the random wobble added to each level
- ``FADE_DECAY`` / ``FADE_INTERVAL`` / ``FADE_EPSILON`` – fade-out on stop
- ``CHUNK``             – frames per read; follows ``rate`` and ``tick_interval``
                          unless set explicitly

Configuration file
------------------
All constants above can be overridden at runtime via ``.void-focus.yml``
placed in the working directory:

.. code-block:: yaml

    audio:
      num_bars: 48
      tick_interval: 0.03
      min_db: -50
      boost: 0.6
      smoothing: 0.4
    storage:
      data_dir: ~/.void-focus
"""

from pathlib import Path
from typing import Any, Dict

import yaml

# Level pipeline parameters
NUM_BARS = 32
TICK_INTERVAL = 0.05  # 50ms
MIN_DB = -60.0
MAX_DB = 0.0
BOOST = 1.0
GAIN = 1.0
SMOOTHING = 0.3
JITTER = 0.02
QUANTIZE = 0  # 0 disables quantization; the mobile app used 8 steps

# Fade-out on stop
FADE_DECAY = 0.9
FADE_INTERVAL = 0.05
FADE_EPSILON = 0.01

# Capture parameters
RATE = 16000
CHUNK = int(RATE * TICK_INTERVAL)
CHANNEL = 1
SILENCE_DB = -160.0

# Storage
DATA_DIR = '~/.void-focus'
STORE_FILE = 'sessions.json'
SESSIONS_KEY = '@void_sessions'
SCHEMA_VERSION = 1
CONFIG_FILE = '.void-focus.yml'

_AUDIO_KEYS = (
    'num_bars', 'tick_interval', 'min_db', 'max_db', 'boost', 'gain',
    'smoothing', 'jitter', 'quantize', 'fade_decay', 'fade_interval',
    'fade_epsilon', 'rate', 'chunk', 'channel', 'device_id',
)
_STORAGE_KEYS = ('data_dir', 'file')


class AppConfig:
    """Application configuration management."""

    def __init__(self) -> None:
        """Initialize configuration with defaults."""
        self._config: Dict[str, Any] = {
            'num_bars': NUM_BARS,
            'tick_interval': TICK_INTERVAL,
            'min_db': MIN_DB,
            'max_db': MAX_DB,
            'boost': BOOST,
            'gain': GAIN,
            'smoothing': SMOOTHING,
            'jitter': JITTER,
            'quantize': QUANTIZE,
            'fade_decay': FADE_DECAY,
            'fade_interval': FADE_INTERVAL,
            'fade_epsilon': FADE_EPSILON,
            'rate': RATE,
            'chunk': None,  # derived from rate and tick_interval unless set
            'channel': CHANNEL,
            'device_id': None,
            'data_dir': DATA_DIR,
            'file': STORE_FILE,
        }
        self._load_yaml_config()

    def _load_yaml_config(self) -> None:
        """Load optional YAML configuration from the working directory."""
        config_path = Path.cwd() / CONFIG_FILE
        if not config_path.exists():
            return

        content = yaml.safe_load(config_path.read_text(encoding='utf-8'))
        if not content:
            return

        if not isinstance(content, dict):
            raise ValueError(f"Configuration in {CONFIG_FILE} must be a mapping")

        for section, keys in (('audio', _AUDIO_KEYS), ('storage', _STORAGE_KEYS)):
            section_config = content.get(section)
            if isinstance(section_config, dict):
                for key in keys:
                    if key in section_config:
                        self._config[key] = section_config[key]

        for key, value in content.items():
            if key in ('audio', 'storage'):
                continue
            self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self._config[key] = value

    def get_data_dir(self) -> Path:
        """Get the data directory as a Path object, creating it if needed.

        Returns:
            Data directory path
        """
        path = Path(str(self._config.get('data_dir', DATA_DIR))).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_store_path(self) -> Path:
        """Return the path of the JSON file backing the session store."""
        return self.get_data_dir() / str(self._config.get('file', STORE_FILE))

    def _get_chunk(self) -> int:
        """Frames per read, so one blocking read lasts about one tick."""
        chunk = self._config.get('chunk')
        if chunk:
            return int(chunk)
        return max(1, int(int(self._config['rate']) * float(self._config['tick_interval'])))

    def get_metering_config(self) -> Dict[str, Any]:
        """Capture settings passed to :meth:`Microphone.start_metering`."""
        return {
            'rate': int(self._config['rate']),
            'chunk': self._get_chunk(),
            'channel': int(self._config['channel']),
            'device_id': self._config.get('device_id'),
        }

    def get_sampler_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for :class:`~void_focus.core.sampler.AudioSampler`."""
        return {
            'num_bars': int(self._config['num_bars']),
            'tick_interval': float(self._config['tick_interval']),
            'min_db': float(self._config['min_db']),
            'max_db': float(self._config['max_db']),
            'boost': float(self._config['boost']),
            'gain': float(self._config['gain']),
            'smoothing': float(self._config['smoothing']),
            'jitter': float(self._config['jitter']),
            'quantize': int(self._config['quantize']),
            'fade_decay': float(self._config['fade_decay']),
            'fade_interval': float(self._config['fade_interval']),
            'fade_epsilon': float(self._config['fade_epsilon']),
        }
