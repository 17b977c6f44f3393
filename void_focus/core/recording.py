"""Microphone access for Void Focus.

Only loudness is ever measured: audio buffers are reduced to one dBFS number
and dropped, nothing is recorded to disk.

Main public classes
-------------------
:class:`Microphone`
    Asynchronous interface the :class:`~void_focus.core.sampler.AudioSampler`
    talks to.  Permission request, metering start/stop and single level reads.

:class:`PyAudioMicrophone`
    :class:`Microphone` backed by a blocking PyAudio input stream.  Blocking
    calls run in worker threads through :func:`asyncio.to_thread`.

:func:`list_input_devices`
    Enumerate input devices for ``void-focus list-devices``.
"""

import abc
import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pyaudio
from loguru import logger

from .config import CHANNEL, CHUNK, RATE
from .processing import calculate_dbfs, detect_driver_type


@dataclass
class MeteringConfig:
    """Capture settings for one metering run."""

    rate: int = RATE
    chunk: int = CHUNK
    channel: int = CHANNEL
    device_id: Optional[int] = None


@dataclass
class MeteringHandle:
    """An open PyAudio input stream and the interface that owns it."""

    audio: Any
    stream: Any
    chunk: int
    lock: threading.Lock = field(default_factory=threading.Lock)
    closed: bool = False


class Microphone(abc.ABC):
    """Asynchronous microphone capability."""

    @abc.abstractmethod
    async def request_permission(self) -> bool:
        """Return ``True`` when the microphone may be used."""

    @abc.abstractmethod
    async def start_metering(self, config: MeteringConfig) -> Any:
        """Acquire the device and return an opaque handle.

        Raises:
            Exception: If the device cannot be opened
        """

    @abc.abstractmethod
    async def read_level(self, handle: Any) -> Optional[float]:
        """Return the current loudness in dBFS, or ``None`` when unavailable."""

    @abc.abstractmethod
    async def stop_metering(self, handle: Any) -> None:
        """Release the device held by ``handle``."""


class PyAudioMicrophone(Microphone):
    """Microphone backed by PyAudio/PortAudio."""

    def __init__(self, device_id: Optional[int] = None) -> None:
        """Initialize the microphone.

        Args:
            device_id: Input device index; ``None`` selects the system default
        """
        self._device_id = device_id

    async def request_permission(self) -> bool:
        """Check that an input device can be resolved.

        Desktop systems have no runtime permission prompt; a missing or
        inaccessible device is reported the same way as a denial.
        """
        return await asyncio.to_thread(self._probe)

    async def start_metering(self, config: MeteringConfig) -> MeteringHandle:
        return await asyncio.to_thread(self._open, config)

    async def read_level(self, handle: MeteringHandle) -> Optional[float]:
        return await asyncio.to_thread(self._read, handle)

    async def stop_metering(self, handle: MeteringHandle) -> None:
        await asyncio.to_thread(self._close, handle)

    # ------------------------------------------------------------------
    # Blocking helpers, run in worker threads
    # ------------------------------------------------------------------

    def _probe(self) -> bool:
        audio = pyaudio.PyAudio()
        try:
            if self._device_id is None:
                audio.get_default_input_device_info()
                return True
            device_info = audio.get_device_info_by_index(self._device_id)
            return device_info.get('maxInputChannels', 0) > 0
        except (IOError, OSError, ValueError) as error:
            logger.info(f'No usable input device: {error}')
            return False
        finally:
            audio.terminate()

    def _open(self, config: MeteringConfig) -> MeteringHandle:
        device_id = config.device_id if config.device_id is not None else self._device_id
        audio = pyaudio.PyAudio()
        try:
            stream = audio.open(
                format=pyaudio.paInt16,
                channels=config.channel,
                rate=config.rate,
                input=True,
                input_device_index=device_id,
                frames_per_buffer=config.chunk,
            )
        except Exception:
            audio.terminate()
            raise
        logger.info(f'Metering started (device: {device_id if device_id is not None else "default"}, rate: {config.rate} Hz)')
        return MeteringHandle(audio=audio, stream=stream, chunk=config.chunk)

    def _read(self, handle: MeteringHandle) -> Optional[float]:
        with handle.lock:
            if handle.closed:
                return None
            data = handle.stream.read(handle.chunk, exception_on_overflow=False)
        return calculate_dbfs(data)

    def _close(self, handle: MeteringHandle) -> None:
        # Waits for an in-flight read to finish before closing the stream
        with handle.lock:
            if handle.closed:
                return
            handle.closed = True
            try:
                handle.stream.stop_stream()
                handle.stream.close()
            finally:
                handle.audio.terminate()
        logger.info('Microphone has been closed')


def list_input_devices(driver_filter: Optional[str] = None) -> List[Dict[str, Any]]:
    """List all available input audio devices.

    Args:
        driver_filter: Optional driver type to filter by ('pulse', 'alsa', 'jack', 'usb', 'default')

    Returns:
        List of dicts with keys: id, name, driver, channels, rate, is_default
    """
    audio = pyaudio.PyAudio()
    try:
        try:
            default_device_id = int(audio.get_default_input_device_info()['index'])
        except (IOError, OSError):
            default_device_id = -1

        devices = []
        for i in range(audio.get_device_count()):
            device_info = audio.get_device_info_by_index(i)
            if device_info.get('maxInputChannels', 0) <= 0:
                continue
            device_name = device_info.get('name', 'Unknown')
            driver_type = detect_driver_type(device_name)

            # Skip if driver filter is specified and doesn't match
            if driver_filter and driver_type != driver_filter.lower():
                continue

            devices.append({
                'id': i,
                'name': device_name,
                'driver': driver_type,
                'channels': device_info.get('maxInputChannels', 0),
                'rate': int(device_info.get('defaultSampleRate', 0)),
                'is_default': i == default_device_id,
            })
        return devices
    finally:
        audio.terminate()
