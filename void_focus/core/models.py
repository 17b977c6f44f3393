"""Data model for Void Focus sessions and the history timeline."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

SESSION = "session"
GAP = "gap"


@dataclass
class FocusSession:
    """One timed focus interval.

    Times are epoch milliseconds; ``duration`` is whole seconds and stays 0
    until the session is ended.
    """

    id: str
    start_time: int
    end_time: Optional[int] = None
    duration: int = 0
    is_active: bool = True

    @property
    def completed(self) -> bool:
        return not self.is_active and self.end_time is not None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the persisted (camelCase) record layout."""
        return {
            "id": self.id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FocusSession":
        """Build a session from a persisted record.

        Raises:
            KeyError: If ``id`` or ``startTime`` is missing
        """
        end_time = data.get("endTime")
        return cls(
            id=str(data["id"]),
            start_time=int(data["startTime"]),
            end_time=int(end_time) if end_time is not None else None,
            duration=int(data.get("duration", 0)),
            is_active=bool(data.get("isActive", end_time is None)),
        )


@dataclass
class TimelineItem:
    """Entry of the history timeline.

    For ``type == "session"`` the ``duration`` is in seconds; for
    ``type == "gap"`` it is a number of whole days without any session.
    """

    id: str
    type: str
    start_time: int
    end_time: int
    duration: int

    @property
    def is_gap(self) -> bool:
        return self.type == GAP

    @classmethod
    def session(cls, session: FocusSession) -> "TimelineItem":
        return cls(
            id=session.id,
            type=SESSION,
            start_time=session.start_time,
            end_time=session.end_time if session.end_time is not None else session.start_time,
            duration=session.duration,
        )

    @classmethod
    def gap(cls, item_id: str, start_time: int, end_time: int, days: int) -> "TimelineItem":
        return cls(id=item_id, type=GAP, start_time=start_time, end_time=end_time, duration=days)
