"""Datamodels for hobbies and their tracking state."""

from __future__ import annotations

import datetime as dt
import enum
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from .utils import format_duration

UTC = dt.timezone.utc


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class HobbyTheme(str, enum.Enum):
    """Cosmetic category assigned round-robin to new hobbies."""

    GREEN = "green"
    RED = "red"
    BLUE = "blue"

    @classmethod
    def next_for(cls, count: int) -> "HobbyTheme":
        return THEMES[count % len(THEMES)]

    @classmethod
    def parse(cls, value: object) -> "HobbyTheme":
        try:
            return cls(value)
        except ValueError:
            return THEMES[0]


THEMES = (HobbyTheme.GREEN, HobbyTheme.RED, HobbyTheme.BLUE)


class TimeSession:
    """One completed tracking interval. Only the notes can change."""

    __slots__ = ("_id", "_start_time", "_end_time", "notes")

    def __init__(self, start_time: dt.datetime, end_time: dt.datetime, notes: str = "",
                 *, id: Optional[uuid.UUID] = None) -> None:
        start_time = as_utc(start_time)
        end_time = as_utc(end_time)
        if end_time < start_time:
            raise ValueError("end_time must not be before start_time")
        self._id = id or uuid.uuid4()
        self._start_time = start_time
        self._end_time = end_time
        self.notes = notes

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def start_time(self) -> dt.datetime:
        return self._start_time

    @property
    def end_time(self) -> dt.datetime:
        return self._end_time

    @property
    def duration(self) -> float:
        return (self._end_time - self._start_time).total_seconds()

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeSession):
            return NotImplemented
        return (
            self._start_time == other._start_time
            and self._end_time == other._end_time
            and self.notes == other.notes
        )

    def __repr__(self) -> str:
        return (f"TimeSession(start_time={self._start_time!r}, end_time={self._end_time!r}, "
                f"notes={self.notes!r})")


@dataclass(slots=True)
class Hobby:
    """A named activity with accumulated tracked time."""

    name: str
    description: str = ""
    color: str = "#007AFF"
    theme: HobbyTheme = HobbyTheme.GREEN
    user_id: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    total_time: float = 0.0
    sessions: List[TimeSession] = field(default_factory=list)
    created_date: dt.datetime = field(default_factory=utcnow)
    # persisted so a running session survives a restart
    is_currently_tracking: bool = False
    tracking_start_time: Optional[dt.datetime] = None

    @property
    def formatted_total_time(self) -> str:
        return format_duration(self.total_time)

    def mark_tracking(self, started_at: dt.datetime) -> None:
        self.is_currently_tracking = True
        self.tracking_start_time = as_utc(started_at)

    def clear_tracking(self) -> None:
        self.is_currently_tracking = False
        self.tracking_start_time = None

    def copy(self) -> "Hobby":
        return Hobby(
            name=self.name,
            description=self.description,
            color=self.color,
            theme=self.theme,
            user_id=self.user_id,
            id=self.id,
            total_time=self.total_time,
            sessions=list(self.sessions),
            created_date=self.created_date,
            is_currently_tracking=self.is_currently_tracking,
            tracking_start_time=self.tracking_start_time,
        )


@dataclass(slots=True)
class UserProfile:
    """Display metadata of the signed-in user."""

    id: str
    email: str
    name: str
    avatar_url: Optional[str] = None


__all__ = ["Hobby", "HobbyTheme", "THEMES", "TimeSession", "UserProfile", "as_utc", "utcnow"]
