"""Row shapes of the ``hobbies`` table and the local hobby blob."""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, List, Optional

from pydantic import (BaseModel, ConfigDict, Field, TypeAdapter, ValidationError,
                      field_validator, model_serializer)

from .models import Hobby, HobbyTheme, TimeSession, as_utc, utcnow

logger = logging.getLogger(__name__)


def _serialize_datetime(value: dt.datetime) -> str:
    return as_utc(value).isoformat()


class TimeSessionRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    start_time: dt.datetime
    end_time: dt.datetime
    duration: float = 0.0
    notes: str = ""

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start_time": _serialize_datetime(self.start_time),
            "end_time": _serialize_datetime(self.end_time),
            "duration": self.duration,
            "notes": self.notes,
        }

    @classmethod
    def from_session(cls, session: TimeSession) -> "TimeSessionRow":
        return cls(
            id=str(session.id),
            start_time=session.start_time,
            end_time=session.end_time,
            duration=session.duration,
            notes=session.notes,
        )

    def to_session(self) -> TimeSession:
        # ids are not preserved; sessions are matched by their timestamps
        start_time = as_utc(self.start_time)
        end_time = max(as_utc(self.end_time), start_time)
        return TimeSession(start_time, end_time, self.notes)


class HobbyRow(BaseModel):
    """One row of the remote ``hobbies`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    user_id: Optional[str] = None
    name: str
    description: str = ""
    color: str = "#007AFF"
    theme: str = HobbyTheme.GREEN.value
    total_time: float = 0.0
    sessions: List[TimeSessionRow] = Field(default_factory=list)
    created_date: dt.datetime = Field(default_factory=utcnow)
    is_currently_tracking: bool = False
    tracking_start_time: Optional[dt.datetime] = None

    @field_validator("description", "color", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("total_time", mode="before")
    @classmethod
    def _default_total(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("sessions", mode="before")
    @classmethod
    def _default_sessions(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "theme": self.theme,
            "total_time": self.total_time,
            "sessions": [session._serialize() for session in self.sessions],
            "created_date": _serialize_datetime(self.created_date),
            "is_currently_tracking": self.is_currently_tracking,
            "tracking_start_time": _serialize_datetime(self.tracking_start_time)
            if self.tracking_start_time
            else None,
        }

    @classmethod
    def from_hobby(cls, hobby: Hobby) -> "HobbyRow":
        return cls(
            id=str(hobby.id),
            user_id=hobby.user_id,
            name=hobby.name,
            description=hobby.description,
            color=hobby.color,
            theme=hobby.theme.value,
            total_time=hobby.total_time,
            sessions=[TimeSessionRow.from_session(session) for session in hobby.sessions],
            created_date=hobby.created_date,
            is_currently_tracking=hobby.is_currently_tracking,
            tracking_start_time=hobby.tracking_start_time,
        )

    def to_hobby(self) -> Hobby:
        try:
            hobby_id = uuid.UUID(self.id)
        except ValueError:
            hobby_id = uuid.uuid4()
        started_at = as_utc(self.tracking_start_time) if self.tracking_start_time else None
        return Hobby(
            id=hobby_id,
            user_id=self.user_id or None,
            name=self.name,
            description=self.description,
            color=self.color,
            theme=HobbyTheme.parse(self.theme),
            total_time=self.total_time,
            sessions=[session.to_session() for session in self.sessions],
            created_date=as_utc(self.created_date),
            # a row flagged tracking without a start time cannot be resumed
            is_currently_tracking=self.is_currently_tracking and started_at is not None,
            tracking_start_time=started_at if self.is_currently_tracking else None,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


HobbyRowList = TypeAdapter(List[HobbyRow])


def rows_from_payload(data: Any) -> List[HobbyRow]:
    """Validate rows one by one, dropping those that cannot be read at all."""
    rows: List[HobbyRow] = []
    for item in data or []:
        try:
            rows.append(HobbyRow.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping unreadable hobby row: %s", exc)
    return rows


def dump_hobbies(hobbies: List[Hobby]) -> str:
    rows = [HobbyRow.from_hobby(hobby) for hobby in hobbies]
    return HobbyRowList.dump_json(rows).decode("utf-8")


def load_hobbies(blob: str) -> List[Hobby]:
    return [row.to_hobby() for row in HobbyRowList.validate_json(blob)]


__all__ = [
    "HobbyRow",
    "TimeSessionRow",
    "dump_hobbies",
    "load_hobbies",
    "rows_from_payload",
]
