"""History timeline reconstruction for Void Focus.

Turns the stored sessions into the list shown by ``void-focus history``:
completed sessions, most recent first, with synthetic *gap* entries wherever
whole calendar days passed without any session.

Day arithmetic uses calendar dates (local midnight boundaries), not 24 hour
windows: a session late yesterday and one early today are one day apart.
A distance of ``n`` days is shown as a gap of ``n - 1`` days, and only when
``n > 1``, so same-day and next-day activity never produce a gap.
"""

from datetime import date, datetime, tzinfo
from typing import Iterable, List, Optional

from .models import FocusSession, TimelineItem


def _day(timestamp_ms: int, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz).date()


def days_between(earlier_ms: int, later_ms: int, tz: Optional[tzinfo] = None) -> int:
    """Number of calendar-day boundaries crossed between two timestamps."""
    return (_day(later_ms, tz) - _day(earlier_ms, tz)).days


def build_timeline(
    sessions: Iterable[FocusSession],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[TimelineItem]:
    """Build the ordered history timeline.

    Args:
        sessions: Sessions in any order; active ones are ignored
        now: Reference time for the gap before the latest session.
            Defaults to ``datetime.now(tz)``. A naive value is read as
            wall-clock time in ``tz``.
        tz: Time zone for day boundaries; ``None`` uses local time

    Returns:
        Timeline items sorted by start time, most recent first
    """
    completed = sorted(
        (s for s in sessions if s.completed),
        key=lambda s: (s.start_time, s.id),
        reverse=True,
    )
    if not completed:
        return []

    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None and tz is not None:
        # A naive reference time is wall-clock time in tz
        now = now.replace(tzinfo=tz)
    now_ms = int(now.timestamp() * 1000)
    today = now.astimezone(tz).date() if now.tzinfo is not None else now.date()

    timeline: List[TimelineItem] = []

    latest = completed[0]
    days_since = (today - _day(latest.end_time, tz)).days
    if days_since > 1:
        timeline.append(TimelineItem.gap("gap-now", latest.end_time, now_ms, days_since - 1))

    for index, session in enumerate(completed):
        timeline.append(TimelineItem.session(session))

        if index + 1 == len(completed):
            break
        older = completed[index + 1]
        days = days_between(older.end_time, session.start_time, tz)
        if days > 1:
            timeline.append(
                TimelineItem.gap(f"gap-{session.id}", older.end_time, session.start_time, days - 1)
            )

    return timeline
