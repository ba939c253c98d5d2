from __future__ import annotations

import asyncio
import datetime as dt
import uuid
from typing import Any

import pytest
from sqlalchemy.orm import sessionmaker

from conftest import FakeClock
from hobbytrack_desktop.api_client import ApiError
from hobbytrack_desktop.database import AppSetting, db_session
from hobbytrack_desktop.models import Hobby
from hobbytrack_desktop.storage import SAVE_KEY, LocalHobbyStore, RemoteHobbyStore, StoreError
from hobbytrack_desktop.tracking import HobbyTracker


def test_local_store_seeds_samples_once(session_factory: sessionmaker):
    store = LocalHobbyStore(session_factory)
    seeded = store.fetch_all(None)
    assert [hobby.name for hobby in seeded] == ["Guitar", "Cooking", "Photography"]

    again = LocalHobbyStore(session_factory).fetch_all(None)
    assert [hobby.id for hobby in again] == [hobby.id for hobby in seeded]
    assert store.fetch_everyone() is None


def test_local_store_rewrites_whole_collection(session_factory: sessionmaker):
    store = LocalHobbyStore(session_factory)
    guitar, cooking, photography = store.fetch_all(None)

    chess = Hobby(name="Chess")
    store.insert(chess)
    cooking.total_time = 90.0
    store.update(cooking)
    store.delete(photography.id)

    hobbies = LocalHobbyStore(session_factory).fetch_all(None)
    assert [hobby.name for hobby in hobbies] == ["Guitar", "Cooking", "Chess"]
    assert hobbies[1].total_time == 90.0

    with db_session(session_factory) as session:
        assert session.query(AppSetting).filter(AppSetting.key == SAVE_KEY).count() == 1


def test_local_store_reseeds_corrupt_blob(session_factory: sessionmaker):
    with db_session(session_factory) as session:
        session.add(AppSetting(key=SAVE_KEY, value="{not json"))

    store = LocalHobbyStore(session_factory)
    assert len(store.fetch_all(None)) == 3


def test_local_store_corrupt_blob_fails_writes(session_factory: sessionmaker):
    with db_session(session_factory) as session:
        session.add(AppSetting(key=SAVE_KEY, value="[{\"id\": 1}]"))

    with pytest.raises(StoreError):
        LocalHobbyStore(session_factory).insert(Hobby(name="Chess"))


def test_tracking_state_survives_restart_with_local_store(session_factory: sessionmaker):
    clock = FakeClock()

    async def first_run() -> uuid.UUID:
        tracker = HobbyTracker(LocalHobbyStore(session_factory), clock=clock, rank_refresh_interval=0)
        await tracker.load()
        guitar = tracker.hobbies[0]
        await tracker.start(guitar)
        tracker.close()
        return guitar.id

    async def second_run(hobby_id: uuid.UUID) -> None:
        clock.advance(20)
        async with HobbyTracker(LocalHobbyStore(session_factory), clock=clock,
                                rank_refresh_interval=0) as tracker:
            await tracker.load()
            guitar = tracker.get_hobby(hobby_id)
            assert tracker.is_tracking(guitar)
            assert tracker.current_elapsed_time(guitar) == pytest.approx(20.0)
            await tracker.pause(guitar)

        hobbies = LocalHobbyStore(session_factory).fetch_all(None)
        assert hobbies[0].total_time == pytest.approx(20.0)
        assert hobbies[0].is_currently_tracking is False

    hobby_id = asyncio.run(first_run())
    asyncio.run(second_run(hobby_id))


def test_concurrent_starts_all_reach_local_store(session_factory: sessionmaker):
    clock = FakeClock()

    async def scenario() -> None:
        async with HobbyTracker(LocalHobbyStore(session_factory), clock=clock,
                                rank_refresh_interval=0) as tracker:
            await tracker.load()
            await asyncio.gather(*(tracker.start(hobby) for hobby in tracker.hobbies))
            assert len(tracker.tracked_hobbies) == 3

    asyncio.run(scenario())

    hobbies = LocalHobbyStore(session_factory).fetch_all(None)
    assert [hobby.is_currently_tracking for hobby in hobbies] == [True, True, True]
    assert all(hobby.tracking_start_time == clock.now for hobby in hobbies)


def test_concurrent_adds_all_reach_local_store(session_factory: sessionmaker):
    async def scenario() -> None:
        async with HobbyTracker(LocalHobbyStore(session_factory), rank_refresh_interval=0) as tracker:
            await tracker.load()
            added = await asyncio.gather(*(tracker.add_hobby(Hobby(name=name)) for name in ("Chess", "Piano", "Yoga")))
            assert all(hobby is not None for hobby in added)

    asyncio.run(scenario())

    names = {hobby.name for hobby in LocalHobbyStore(session_factory).fetch_all(None)}
    assert names == {"Guitar", "Cooking", "Photography", "Chess", "Piano", "Yoga"}


class FakeTableClient:
    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows or []
        self.requests: list[tuple[str, Any]] = []
        self.error: ApiError | None = None

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def select(self, table: str, *, columns: str = "*", filters=None):
        self.requests.append(("select", table, filters))
        self._check()
        return self.rows

    def insert(self, table: str, row):
        self.requests.append(("insert", table, row))
        self._check()

    def update(self, table: str, row, *, filters):
        self.requests.append(("update", table, row, filters))
        self._check()

    def delete(self, table: str, *, filters):
        self.requests.append(("delete", table, filters))
        self._check()


def test_remote_store_filters_by_owner():
    hobby_id = str(uuid.uuid4())
    client = FakeTableClient([
        {"id": hobby_id, "user_id": "user-1", "name": "Guitar", "theme": "blue", "total_time": 12,
         "created_date": "2024-01-01T00:00:00Z", "is_currently_tracking": False},
    ])
    store = RemoteHobbyStore(client)

    hobbies = store.fetch_all("user-1")
    assert client.requests[0] == ("select", "hobbies", {"user_id": "user-1"})
    assert str(hobbies[0].id) == hobby_id
    assert hobbies[0].created_date == dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)

    everyone = store.fetch_everyone()
    assert client.requests[1] == ("select", "hobbies", None)
    assert everyone[0].total_time == 12.0


def test_remote_store_writes_by_id():
    client = FakeTableClient()
    store = RemoteHobbyStore(client)
    hobby = Hobby(name="Guitar", user_id="user-1")

    store.insert(hobby)
    store.update(hobby)
    store.delete(hobby.id)

    insert, update, delete = client.requests
    assert insert[2]["id"] == str(hobby.id)
    assert insert[2]["user_id"] == "user-1"
    assert update[3] == {"id": str(hobby.id)}
    assert delete[2] == {"id": str(hobby.id)}


def test_remote_store_wraps_api_errors():
    client = FakeTableClient()
    client.error = ApiError("API error 503: unavailable")
    store = RemoteHobbyStore(client)

    with pytest.raises(StoreError):
        store.fetch_all("user-1")
    with pytest.raises(StoreError):
        store.update(Hobby(name="Guitar"))
