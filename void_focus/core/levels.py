"""Level smoothing, buffering and scheduling for Void Focus.

Main public classes
-------------------
:class:`SmoothingFilter`
    Exponential moving average with a small random wobble, so the display never
    looks dead during silence.

:class:`FadeOut`
    Decays a ring buffer towards zero after sampling stops instead of snapping
    the bars flat.

:class:`LevelRingBuffer`
    Fixed-size, oldest-evicted sequence of levels feeding the waveform.

:class:`PeriodicTask`
    An ``asyncio`` job run on a fixed cadence with an explicit ``cancel()``
    handle.  Used for both the meter tick and the fade-out.
"""

import asyncio
import contextlib
import inspect
import math
import random
from collections import deque
from typing import Any, Awaitable, Callable, List, Optional, Union

from loguru import logger

from .config import FADE_DECAY, FADE_EPSILON, JITTER, QUANTIZE, SMOOTHING
from .processing import clamp_level


class SmoothingFilter:
    """Stateful exponential smoother for normalized levels."""

    def __init__(
        self,
        alpha: float = SMOOTHING,
        jitter: float = JITTER,
        quantize: int = QUANTIZE,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the filter.

        Args:
            alpha: Weight of the newest reading, in (0, 1].  Close to 0 is
                smoother and slower, 1 follows the input directly.
            jitter: Half-width of the uniform wobble added after smoothing
            quantize: Number of discrete steps to round the output to
                (0 disables quantization)
            rng: Random generator for the wobble

        Raises:
            ValueError: If ``alpha`` or ``jitter`` is out of range
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {jitter}")

        self.alpha = alpha
        self.jitter = jitter
        self.quantize = quantize
        self._rng = rng or random.Random()
        self._smoothed = 0.0

    @property
    def smoothed(self) -> float:
        """Current smoothed level, without jitter."""
        return self._smoothed

    def update(self, raw_level: float) -> float:
        """Feed a raw level and return the level to display.

        Args:
            raw_level: Normalized level in [0, 1]

        Returns:
            Smoothed, jittered and clamped level
        """
        self._smoothed = self._smoothed * (1.0 - self.alpha) + raw_level * self.alpha

        level = self._smoothed
        if self.jitter:
            level += self._rng.uniform(-self.jitter, self.jitter)
        if self.quantize:
            level = round(level * self.quantize) / self.quantize
        return clamp_level(level)

    def reset(self) -> None:
        """Reset smoothing history."""
        self._smoothed = 0.0


class LevelRingBuffer:
    """Fixed-capacity FIFO of display levels, oldest first."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._levels: deque = deque([0.0] * capacity, maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._levels)

    def push(self, level: float) -> None:
        """Drop the oldest level and append ``level``."""
        self._levels.append(float(level))

    def snapshot(self, length: Optional[int] = None) -> List[float]:
        """Return exactly ``length`` levels, oldest first.

        When the buffer holds at least ``length`` levels the most recent ones
        are returned, otherwise the result is left-padded with zeros.

        Args:
            length: Number of levels wanted; defaults to the capacity
        """
        if length is None:
            length = self._capacity
        if length < 1:
            raise ValueError(f"length must be at least 1, got {length}")

        levels = list(self._levels)
        if len(levels) >= length:
            return levels[-length:]
        return [0.0] * (length - len(levels)) + levels

    def scale(self, factor: float) -> None:
        """Multiply every level by ``factor``."""
        self._levels = deque((level * factor for level in self._levels), maxlen=self._capacity)

    def clear(self) -> None:
        """Set every level back to zero."""
        self._levels = deque([0.0] * self._capacity, maxlen=self._capacity)

    def peak(self) -> float:
        return max(self._levels)


class FadeOut:
    """Exponential decay of a ring buffer down to silence."""

    def __init__(self, decay: float = FADE_DECAY, epsilon: float = FADE_EPSILON) -> None:
        if not 0.0 <= decay < 1.0:
            raise ValueError(f"decay must be in [0, 1), got {decay}")
        if epsilon <= 0.0:
            raise ValueError(f"epsilon must be positive, got {epsilon}")
        self.decay = decay
        self.epsilon = epsilon

    def step(self, buffer: LevelRingBuffer) -> bool:
        """Apply one decay step.

        Returns:
            ``True`` while the fade should keep running, ``False`` once every
            level fell below ``epsilon`` and the buffer was zeroed
        """
        buffer.scale(self.decay)
        if buffer.peak() < self.epsilon:
            buffer.clear()
            return False
        return True


TickCallback = Callable[[], Union[Any, Awaitable[Any]]]


class PeriodicTask:
    """Runs a callback every ``interval`` seconds on the running event loop.

    The callback may be a plain function or a coroutine function.  Each call is
    awaited before the next one is scheduled, so ticks never overlap; ticks
    missed while a slow callback was running are dropped rather than queued.
    The task ends when the callback returns ``False`` or when :meth:`cancel`
    is awaited.
    """

    def __init__(self, interval: float, callback: TickCallback, name: str = "periodic") -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PeriodicTask":
        """Schedule the task on the running loop and return ``self``."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)
        return self

    async def cancel(self) -> None:
        """Cancel the task, including an in-flight callback, and wait for it."""
        task = self._task
        if task is None:
            return
        if task is asyncio.current_task():
            task.cancel()
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug(f"{self._name} task cancelled")

    async def wait(self) -> None:
        """Wait for the task to finish on its own."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            next_tick += self._interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Drop the ticks we fell behind on
                next_tick += math.ceil(-delay / self._interval) * self._interval
                delay = next_tick - loop.time()
            await asyncio.sleep(max(0.0, delay))

            result = self._callback()
            if inspect.isawaitable(result):
                result = await result
            if result is False:
                return
