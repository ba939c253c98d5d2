from __future__ import annotations

import datetime as dt
import uuid
from pathlib import Path
from typing import Any, Generator, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from hobbytrack_desktop.database import create_sqlite_engine, make_session_factory
from hobbytrack_desktop.models import Hobby
from hobbytrack_desktop.schemas import HobbyRow
from hobbytrack_desktop.storage import StoreError

USER_ID = "0B8E6C2A-5F1D-4C3B-9A7E-1D2C3B4A5F60"
OTHER_USER_ID = "7d0c9f1e-2b3a-4c5d-8e9f-a0b1c2d3e4f5"


class FakeClock:
    def __init__(self, start: Optional[dt.datetime] = None) -> None:
        self.now = start or dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, seconds: float) -> dt.datetime:
        self.now = self.now + dt.timedelta(seconds=seconds)
        return self.now


class InMemoryStore:
    """Stand-in for the hosted table, holding the rows of every user."""

    def __init__(self, *, requires_user: bool = True, shared: bool = True) -> None:
        self.requires_user = requires_user
        self.shared = shared
        self.rows: dict[str, HobbyRow] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise StoreError(f"{operation} failed")

    def add_row(self, **values: Any) -> HobbyRow:
        values.setdefault("id", str(uuid.uuid4()))
        row = HobbyRow(**values)
        self.rows[row.id] = row
        return row

    def fetch_all(self, user_id: Optional[str]) -> list[Hobby]:
        self._record("fetch_all")
        return [row.to_hobby() for row in self.rows.values()
                if not self.requires_user or row.user_id == user_id]

    def insert(self, hobby: Hobby) -> None:
        self._record("insert")
        self.rows[str(hobby.id)] = HobbyRow.from_hobby(hobby)

    def update(self, hobby: Hobby) -> None:
        self._record("update")
        self.rows[str(hobby.id)] = HobbyRow.from_hobby(hobby)

    def delete(self, hobby_id: uuid.UUID) -> None:
        self._record("delete")
        self.rows.pop(str(hobby_id), None)

    def fetch_everyone(self) -> Optional[list[HobbyRow]]:
        self._record("fetch_everyone")
        return list(self.rows.values()) if self.shared else None


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def session_factory(tmp_path: Path) -> Generator[sessionmaker, None, None]:
    engine = create_sqlite_engine(tmp_path / "hobbies.db")
    try:
        yield make_session_factory(engine)
    finally:
        engine.dispose()
