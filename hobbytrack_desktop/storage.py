"""Persistence strategies for the hobby collection.

The tracker talks to exactly one :class:`HobbyStore`. ``LocalHobbyStore``
keeps the whole collection as one serialized blob in a key/value table,
``RemoteHobbyStore`` keeps one row per hobby in the hosted ``hobbies`` table
and additionally exposes every user's rows for the leaderboard.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, List, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .api_client import ApiError, SupabaseClient
from .database import AppSetting, db_session
from .models import Hobby
from .schemas import HobbyRow, dump_hobbies, load_hobbies, rows_from_payload

logger = logging.getLogger(__name__)

HOBBIES_TABLE = "hobbies"
SAVE_KEY = "SavedHobbies"


class StoreError(RuntimeError):
    """A persistence operation failed; the caller keeps its last known state."""


class HobbyStore(Protocol):
    requires_user: bool

    def fetch_all(self, user_id: Optional[str]) -> List[Hobby]:
        ...

    def insert(self, hobby: Hobby) -> None:
        ...

    def update(self, hobby: Hobby) -> None:
        ...

    def delete(self, hobby_id: uuid.UUID) -> None:
        ...

    def fetch_everyone(self) -> Optional[List[HobbyRow]]:
        """Rows of all users, or ``None`` when there is no shared data set."""
        ...


def sample_hobbies() -> List[Hobby]:
    return [
        Hobby(name="Guitar", description="Learning acoustic guitar", color="#FF6B6B"),
        Hobby(name="Cooking", description="Exploring new recipes", color="#4ECDC4"),
        Hobby(name="Photography", description="Street and landscape photography", color="#45B7D1"),
    ]


class LocalHobbyStore:
    """Whole collection serialized under one key, rewritten on every change."""

    requires_user = False

    def __init__(self, session_factory: sessionmaker, key: str = SAVE_KEY) -> None:
        self.session_factory = session_factory
        self.key = key
        self._lock = threading.Lock()

    def fetch_all(self, user_id: Optional[str]) -> List[Hobby]:
        with self._lock:
            blob = self._read()
            if blob is not None:
                try:
                    return load_hobbies(blob)
                except ValidationError as exc:
                    logger.warning("Stored hobbies could not be decoded, reseeding: %s", exc)
            hobbies = sample_hobbies()
            self._write(hobbies)
            return hobbies

    def insert(self, hobby: Hobby) -> None:
        self._mutate(lambda hobbies: hobbies + [hobby])

    def update(self, hobby: Hobby) -> None:
        self._mutate(lambda hobbies: [hobby if item.id == hobby.id else item for item in hobbies])

    def delete(self, hobby_id: uuid.UUID) -> None:
        self._mutate(lambda hobbies: [item for item in hobbies if item.id != hobby_id])

    def fetch_everyone(self) -> Optional[List[HobbyRow]]:
        return None

    # ------------------------------------------------------------------
    def _mutate(self, change: Callable[[List[Hobby]], List[Hobby]]) -> None:
        # read, change and write back in one transaction; writers run on worker threads
        with self._lock:
            try:
                with db_session(self.session_factory) as session:
                    record = session.get(AppSetting, self.key)
                    hobbies = self._decode(record.value) if record else []
                    value = dump_hobbies(change(hobbies))
                    if record:
                        record.value = value
                    else:
                        session.add(AppSetting(key=self.key, value=value))
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc

    @staticmethod
    def _decode(blob: str) -> List[Hobby]:
        try:
            return load_hobbies(blob)
        except ValidationError as exc:
            raise StoreError(f"Stored hobbies are corrupt: {exc}") from exc

    def _read(self) -> Optional[str]:
        try:
            with db_session(self.session_factory) as session:
                record = session.get(AppSetting, self.key)
                return record.value if record else None
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def _write(self, hobbies: List[Hobby]) -> None:
        value = dump_hobbies(hobbies)
        try:
            with db_session(self.session_factory) as session:
                record = session.get(AppSetting, self.key)
                if record:
                    record.value = value
                else:
                    session.add(AppSetting(key=self.key, value=value))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc


class RemoteHobbyStore:
    """One row per hobby in the hosted ``hobbies`` table."""

    requires_user = True

    def __init__(self, client: SupabaseClient, table: str = HOBBIES_TABLE) -> None:
        self.client = client
        self.table = table

    def fetch_all(self, user_id: Optional[str]) -> List[Hobby]:
        rows = self._select({"user_id": user_id} if user_id else None)
        return [row.to_hobby() for row in rows]

    def insert(self, hobby: Hobby) -> None:
        try:
            self.client.insert(self.table, HobbyRow.from_hobby(hobby).to_payload())
        except ApiError as exc:
            raise StoreError(str(exc)) from exc

    def update(self, hobby: Hobby) -> None:
        try:
            self.client.update(self.table, HobbyRow.from_hobby(hobby).to_payload(),
                               filters={"id": str(hobby.id)})
        except ApiError as exc:
            raise StoreError(str(exc)) from exc

    def delete(self, hobby_id: uuid.UUID) -> None:
        try:
            self.client.delete(self.table, filters={"id": str(hobby_id)})
        except ApiError as exc:
            raise StoreError(str(exc)) from exc

    def fetch_everyone(self) -> Optional[List[HobbyRow]]:
        return self._select(None)

    def _select(self, filters: Optional[dict]) -> List[HobbyRow]:
        try:
            data = self.client.select(self.table, filters=filters)
        except ApiError as exc:
            raise StoreError(str(exc)) from exc
        return rows_from_payload(data)


__all__ = [
    "HobbyStore",
    "LocalHobbyStore",
    "RemoteHobbyStore",
    "SAVE_KEY",
    "StoreError",
    "sample_hobbies",
]
