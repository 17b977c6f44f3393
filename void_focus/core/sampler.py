"""Live audio level sampling for Void Focus.

:class:`AudioSampler` owns the microphone for the duration of a focus session.
On every tick it reads one loudness value and pushes it through
:func:`~void_focus.core.processing.normalize_level`,
:class:`~void_focus.core.levels.SmoothingFilter` and
:class:`~void_focus.core.levels.LevelRingBuffer`, then notifies listeners with
the new bar levels.

Lifecycle::

    IDLE -> REQUESTING_PERMISSION -> RECORDING -> STOPPING -> IDLE

``REQUESTING_PERMISSION`` covers the whole start-up (permission prompt and
device acquisition).  After ``STOPPING`` the bars fade out on their own
periodic task, which a new :meth:`AudioSampler.start` cancels before clearing
the buffer.
"""

import enum
import random
from typing import Any, Callable, List, Optional

from loguru import logger

from .config import (
    BOOST, FADE_DECAY, FADE_EPSILON, FADE_INTERVAL, GAIN, JITTER, MAX_DB,
    MIN_DB, NUM_BARS, QUANTIZE, SMOOTHING, TICK_INTERVAL,
)
from .levels import FadeOut, LevelRingBuffer, PeriodicTask, SmoothingFilter
from .processing import normalize_level
from .recording import MeteringConfig, Microphone

LevelsListener = Callable[[List[float]], None]
ErrorHook = Callable[[str, Exception], None]


class SamplerState(enum.Enum):
    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    RECORDING = "recording"
    STOPPING = "stopping"


class AudioSampler:
    """Turns microphone loudness into a rolling window of bar levels."""

    def __init__(
        self,
        microphone: Microphone,
        metering_config: Optional[MeteringConfig] = None,
        num_bars: int = NUM_BARS,
        tick_interval: float = TICK_INTERVAL,
        min_db: float = MIN_DB,
        max_db: float = MAX_DB,
        boost: float = BOOST,
        gain: float = GAIN,
        smoothing: float = SMOOTHING,
        jitter: float = JITTER,
        quantize: int = QUANTIZE,
        fade_decay: float = FADE_DECAY,
        fade_interval: float = FADE_INTERVAL,
        fade_epsilon: float = FADE_EPSILON,
        rng: Optional[random.Random] = None,
        on_error: Optional[ErrorHook] = None,
    ) -> None:
        """Initialize the sampler.

        Args:
            microphone: Microphone capability to meter
            metering_config: Capture settings passed to ``start_metering``
            num_bars: Ring buffer capacity
            tick_interval: Seconds between meter reads
            min_db: dBFS reading shown as an empty bar
            max_db: dBFS reading shown as a full bar
            boost: Exponent lifting quiet sounds (1.0 = linear)
            gain: Multiplier applied after the boost
            smoothing: Smoothing factor (alpha) of the level filter
            jitter: Wobble added to every displayed level
            quantize: Output steps of the filter (0 = continuous)
            fade_decay: Per-step multiplier of the fade-out
            fade_interval: Seconds between fade-out steps
            fade_epsilon: Level below which the fade-out snaps to zero
            rng: Random generator used for the jitter
            on_error: Called with ``(operation, exception)`` when the device
                cannot be acquired or released

        Raises:
            ValueError: If a tunable is out of range
        """
        if min_db >= max_db:
            raise ValueError(f"min_db ({min_db}) must be below max_db ({max_db})")
        if boost <= 0:
            raise ValueError(f"boost must be positive, got {boost}")

        self._microphone = microphone
        self._metering_config = metering_config or MeteringConfig()
        self._tick_interval = tick_interval
        self._fade_interval = fade_interval
        self._min_db = min_db
        self._max_db = max_db
        self._boost = boost
        self._gain = gain
        self._on_error = on_error

        self._filter = SmoothingFilter(alpha=smoothing, jitter=jitter, quantize=quantize, rng=rng)
        self._buffer = LevelRingBuffer(num_bars)
        self._fade = FadeOut(decay=fade_decay, epsilon=fade_epsilon)

        self._state = SamplerState.IDLE
        self._permission_granted: Optional[bool] = None
        self._start_cancelled = False
        self._handle: Any = None
        self._ticker: Optional[PeriodicTask] = None
        self._fade_task: Optional[PeriodicTask] = None
        self._last_db: Optional[float] = None
        self._listeners: List[LevelsListener] = []

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is SamplerState.RECORDING

    @property
    def permission_granted(self) -> Optional[bool]:
        """``None`` until permission was asked for, then the answer."""
        return self._permission_granted

    @property
    def is_fading(self) -> bool:
        return self._fade_task is not None and self._fade_task.running

    @property
    def last_db(self) -> Optional[float]:
        """Most recent raw meter reading in dBFS."""
        return self._last_db

    def snapshot(self, length: Optional[int] = None) -> List[float]:
        """Current bar levels, oldest first."""
        return self._buffer.snapshot(length)

    def add_listener(self, listener: LevelsListener) -> None:
        """Register a callback receiving the bar levels after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: LevelsListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start(self) -> bool:
        """Start sampling.

        Returns:
            ``True`` when metering started, ``False`` when the sampler was not
            idle, permission was denied or the device could not be opened
        """
        if self._state is not SamplerState.IDLE:
            logger.debug(f"Sampler start ignored in state {self._state.value}")
            return False

        self._state = SamplerState.REQUESTING_PERMISSION
        self._start_cancelled = False

        if self._permission_granted is not True:
            try:
                granted = bool(await self._microphone.request_permission())
            except Exception as error:
                logger.warning(f"Microphone permission request failed: {error}")
                granted = False
            self._permission_granted = granted
            if not granted:
                logger.info("Microphone permission denied")
                self._state = SamplerState.IDLE
                return False
            if self._start_cancelled:
                self._state = SamplerState.IDLE
                return False

        # A fade still running from the previous session must not touch the new buffer
        await self._cancel_fade()
        self._buffer.clear()
        self._filter.reset()
        self._last_db = None

        try:
            handle = await self._microphone.start_metering(self._metering_config)
        except Exception as error:
            self._report("start", error)
            self._state = SamplerState.IDLE
            return False

        if self._start_cancelled:
            await self._release(handle)
            self._state = SamplerState.IDLE
            return False

        self._handle = handle
        self._state = SamplerState.RECORDING
        self._ticker = PeriodicTask(self._tick_interval, self._tick, name="meter-tick").start()
        logger.info("Audio sampling started")
        return True

    async def stop(self) -> None:
        """Stop sampling, release the microphone and fade the bars out."""
        if self._state in (SamplerState.IDLE, SamplerState.STOPPING):
            return
        if self._state is SamplerState.REQUESTING_PERMISSION:
            self._start_cancelled = True
            return

        self._state = SamplerState.STOPPING
        ticker, self._ticker = self._ticker, None
        handle, self._handle = self._handle, None
        try:
            if ticker is not None:
                await ticker.cancel()
        finally:
            await self._release(handle)
            self._fade_task = PeriodicTask(self._fade_interval, self._fade_step, name="fade-out").start()
            self._state = SamplerState.IDLE
            logger.info("Audio sampling stopped")

    async def wait_faded(self) -> None:
        """Wait until a running fade-out brought every bar to zero."""
        if self._fade_task is not None:
            await self._fade_task.wait()

    async def close(self) -> None:
        """Stop sampling and cancel any fade-out."""
        await self.stop()
        await self._cancel_fade()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _tick(self) -> Optional[bool]:
        handle = self._handle
        if handle is None:
            return False

        try:
            db = await self._microphone.read_level(handle)
        except Exception as error:
            logger.debug(f"Skipping meter tick: {error}")
            return None
        if db is None:
            return None

        self._last_db = db
        level = normalize_level(db, self._min_db, self._max_db, self._boost, self._gain)
        self._buffer.push(self._filter.update(level))
        self._notify()
        return None

    def _fade_step(self) -> bool:
        running = self._fade.step(self._buffer)
        self._notify()
        if not running:
            self._filter.reset()
            logger.debug("Fade-out finished")
        return running

    async def _cancel_fade(self) -> None:
        fade_task, self._fade_task = self._fade_task, None
        if fade_task is not None:
            await fade_task.cancel()

    async def _release(self, handle: Any) -> None:
        if handle is None:
            return
        try:
            await self._microphone.stop_metering(handle)
        except Exception as error:
            self._report("stop", error)

    def _notify(self) -> None:
        levels = self._buffer.snapshot()
        for listener in list(self._listeners):
            try:
                listener(levels)
            except Exception as error:
                logger.error(f"Level listener failed: {error}")

    def _report(self, operation: str, error: Exception) -> None:
        logger.warning(f"Microphone {operation} failed: {error}")
        if self._on_error is not None:
            self._on_error(operation, error)
