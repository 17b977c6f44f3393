"""Focus session lifecycle for Void Focus.

:class:`FocusController` is the single owner of the active session: it creates
the session record on :meth:`~FocusController.enter`, starts and stops the
:class:`~void_focus.core.sampler.AudioSampler` alongside it, and commits the
end time and duration on :meth:`~FocusController.exit`.

Only one controller may be alive per process, so there is never more than one
active session.  Call :meth:`~FocusController.close` to release it.
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .models import FocusSession, TimelineItem
from .sampler import AudioSampler
from .storage import SessionStore
from .timeline import build_timeline

SessionsListener = Callable[[List[FocusSession]], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).astimezone().isoformat()


def format_duration(seconds: int) -> str:
    """Format seconds as ``1h 2m 3s``, ``2m 3s`` or ``3s``."""
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    if h > 0:
        return f"{h}h {m}m {s}s"
    if m > 0:
        return f"{m}m {s}s"
    return f"{s}s"


def build_export(sessions: List[FocusSession], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the JSON export payload for ``sessions``.

    Times are rendered as local ISO 8601 strings; durations are given both in
    seconds and formatted.
    """
    exported = now or datetime.now().astimezone()
    return {
        "exported": exported.isoformat(),
        "totalSessions": len(sessions),
        "sessions": [
            {
                "id": s.id,
                "startTime": _iso(s.start_time),
                "endTime": _iso(s.end_time) if s.end_time is not None else None,
                "durationSeconds": s.duration,
                "durationFormatted": format_duration(s.duration),
            }
            for s in sessions
        ],
    }


class FocusController:
    """Owns the current focus session and the session list."""

    _instance: Optional["FocusController"] = None

    def __init__(
        self,
        store: SessionStore,
        sampler: Optional[AudioSampler] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Session repository
            sampler: Audio sampler started and stopped with each session
            clock: Returns the current time in epoch milliseconds

        Raises:
            RuntimeError: If another controller is still open
        """
        if FocusController._instance is not None:
            raise RuntimeError("A FocusController is already open in this process")
        FocusController._instance = self

        self._store = store
        self._sampler = sampler
        self._clock = clock
        self._current: Optional[FocusSession] = None
        self._sessions: List[FocusSession] = []
        self._listeners: List[SessionsListener] = []

    @property
    def current_session(self) -> Optional[FocusSession]:
        return self._current

    @property
    def in_focus(self) -> bool:
        return self._current is not None

    @property
    def sessions(self) -> List[FocusSession]:
        return list(self._sessions)

    @property
    def sampler(self) -> Optional[AudioSampler]:
        return self._sampler

    def add_listener(self, listener: SessionsListener) -> None:
        """Register a callback receiving the session list after every change."""
        self._listeners.append(listener)

    async def load(self) -> List[FocusSession]:
        """Reload sessions from the store."""
        self._set_sessions(await self._store.get_all())
        return self.sessions

    async def enter(self) -> FocusSession:
        """Start a new focus session, or return the one already running."""
        if self._current is not None:
            logger.debug(f"Session {self._current.id} already active")
            return self._current

        session = FocusSession(
            id=self._store.generate_id(),
            start_time=self._clock(),
        )
        self._current = session
        logger.info(f"Entered focus session {session.id}")
        self._set_sessions(await self._store.add(session))

        if self._sampler is not None:
            await self._sampler.start()
        return session

    async def exit(self) -> Optional[FocusSession]:
        """End the active session.

        Returns:
            The completed session, or ``None`` when no session was active
        """
        if self._sampler is not None:
            await self._sampler.stop()

        session = self._current
        if session is None:
            return None

        end_time = self._clock()
        duration = max(0, (end_time - session.start_time) // 1000)
        self._set_sessions(
            await self._store.update(
                session.id,
                end_time=end_time,
                duration=duration,
                is_active=False,
            )
        )
        self._current = None
        logger.info(f"Exited focus session {session.id} after {format_duration(duration)}")
        return FocusSession(
            id=session.id,
            start_time=session.start_time,
            end_time=end_time,
            duration=duration,
            is_active=False,
        )

    async def delete(self, session_id: str) -> List[FocusSession]:
        """Delete a stored session."""
        self._set_sessions(await self._store.delete(session_id))
        return self.sessions

    def elapsed(self) -> int:
        """Seconds since the active session started, 0 when idle."""
        if self._current is None:
            return 0
        return max(0, (self._clock() - self._current.start_time) // 1000)

    def timeline(self, now: Optional[datetime] = None) -> List[TimelineItem]:
        return build_timeline(self._sessions, now=now)

    def export(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return build_export(self._sessions, now=now)

    async def close(self) -> None:
        """Shut the sampler down and release the single-instance guard."""
        if self._sampler is not None:
            await self._sampler.close()
        if FocusController._instance is self:
            FocusController._instance = None

    def _set_sessions(self, sessions: List[FocusSession]) -> None:
        self._sessions = list(sessions)
        for listener in list(self._listeners):
            try:
                listener(self.sessions)
            except Exception as error:
                logger.error(f"Session listener failed: {error}")
