"""Hobby tracking engine.

``HobbyTracker`` owns the in-memory hobby collection, the per-hobby
start/pause/cancel state machine and the leaderboard cache. Persistence is
delegated to a :class:`~hobbytrack_desktop.storage.HobbyStore`, chosen when
the tracker is built, so the same engine serves the local-only and the
cloud-synced setup.

All state changes happen on the event loop that awaits the tracker's
coroutines. Store calls block (HTTP, SQLite) and therefore run in a worker
thread; their results are applied once control is back on the loop.

Every hobby that is being tracked has exactly one :class:`TrackingSession`
in the tracker's arena. The session owns the tick task that refreshes the
displayed elapsed time and is closed whenever the hobby leaves the tracking
state, is deleted or the collection is reloaded.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from .models import Hobby, HobbyTheme, TimeSession, utcnow
from .ranking import competition_rank, normalize_name
from .storage import HobbyStore, StoreError
from .utils import format_clock, format_clock_mmss

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]

DEFAULT_TICK_INTERVAL = 0.1
DEFAULT_RANK_REFRESH_INTERVAL = 30.0


class TrackingSession:
    """Running interval of one hobby and the tick refreshing its display."""

    def __init__(self, hobby_id: uuid.UUID, started_at: dt.datetime, base_total: float,
                 clock: Clock) -> None:
        self.hobby_id = hobby_id
        self.started_at = started_at
        self.base_total = base_total
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.elapsed = base_total
        self.refresh()

    def refresh(self) -> float:
        running = (self._clock() - self.started_at).total_seconds()
        self.elapsed = self.base_total + max(running, 0.0)
        return self.elapsed

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    @property
    def closed(self) -> bool:
        return self._task is None

    def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


class HobbyTracker:
    """Tracks time per hobby and keeps the collection in sync with a store."""

    def __init__(self, store: HobbyStore, user_id_provider: Callable[[], Optional[str]] = lambda: None,
                 *, clock: Clock = utcnow, tick_interval: float = DEFAULT_TICK_INTERVAL,
                 rank_refresh_interval: float = DEFAULT_RANK_REFRESH_INTERVAL) -> None:
        self.store = store
        self.user_id_provider = user_id_provider
        self.clock = clock
        self.tick_interval = tick_interval
        self.rank_refresh_interval = rank_refresh_interval

        self.hobbies: List[Hobby] = []
        self.selected_hobby: Optional[Hobby] = None
        self.rankings: Dict[str, int] = {}
        self.is_loading_rankings = False

        self._sessions: Dict[uuid.UUID, TrackingSession] = {}
        self._rank_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "HobbyTracker":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load(self) -> bool:
        """Replace the collection with the store's and resume running sessions."""
        user_id = self.user_id_provider()
        if self.store.requires_user and not user_id:
            logger.debug("No signed-in user, skipping hobby load")
            return False
        try:
            hobbies = await self._call(self.store.fetch_all, user_id)
        except StoreError as exc:
            logger.warning("Loading hobbies failed: %s", exc)
            return False

        self._close_sessions()
        self.hobbies = hobbies
        if self.selected_hobby is not None:
            self.selected_hobby = self.get_hobby(self.selected_hobby.id)

        for hobby in self.hobbies:
            if hobby.is_currently_tracking and hobby.tracking_start_time is not None:
                logger.info("Resuming tracking of %r started at %s", hobby.name,
                            hobby.tracking_start_time.isoformat())
                self._open_session(hobby)

        await self.load_rankings_for_all_hobbies()
        return True

    load_from_remote = load

    # ------------------------------------------------------------------
    # Hobby management
    # ------------------------------------------------------------------
    async def add_hobby(self, hobby: Hobby) -> Optional[Hobby]:
        user_id = self.user_id_provider()
        if self.store.requires_user and not user_id:
            logger.debug("No signed-in user, not adding %r", hobby.name)
            return None

        new_hobby = hobby.copy()
        new_hobby.user_id = user_id
        new_hobby.theme = HobbyTheme.next_for(len(self.hobbies))
        try:
            await self._call(self.store.insert, new_hobby)
        except StoreError as exc:
            logger.warning("Adding hobby %r failed: %s", hobby.name, exc)
            return None

        self.hobbies.append(new_hobby)
        return new_hobby

    async def update_hobby(self, hobby: Hobby) -> bool:
        updated = hobby.copy()
        session = self._sessions.get(updated.id)
        current = self.get_hobby(updated.id)
        if session is not None and current is not None:
            updated.is_currently_tracking = current.is_currently_tracking
            updated.tracking_start_time = current.tracking_start_time

        try:
            await self._call(self.store.update, updated)
        except StoreError as exc:
            logger.warning("Updating hobby %r failed: %s", hobby.name, exc)
            return False

        index = self._index_of(updated.id)
        previous_name = self.hobbies[index].name if index is not None else None
        if index is not None:
            self.hobbies[index] = updated
        if self.selected_hobby is not None and self.selected_hobby.id == updated.id:
            self.selected_hobby = updated
        if session is not None:
            session.base_total = updated.total_time
            session.refresh()

        if previous_name is not None:
            self._forget_rank_if_unused(previous_name)
        await self.update_ranking_for_hobby(updated.name)
        return True

    async def delete_hobby(self, hobby: Hobby) -> bool:
        current = self.get_hobby(hobby.id) or hobby
        try:
            await self._call(self.store.delete, hobby.id)
        except StoreError as exc:
            logger.warning("Deleting hobby %r failed: %s", current.name, exc)
            return False

        self.hobbies = [item for item in self.hobbies if item.id != hobby.id]
        if self.selected_hobby is not None and self.selected_hobby.id == hobby.id:
            self.selected_hobby = self.hobbies[0] if self.hobbies else None

        session = self._sessions.pop(hobby.id, None)
        if session is not None:
            session.close()
            self._stop_rank_refresh_if_idle()

        self._forget_rank_if_unused(current.name)
        return True

    def select_hobby(self, hobby: Optional[Hobby]) -> None:
        if hobby is None:
            self.selected_hobby = None
            return
        self.selected_hobby = self.get_hobby(hobby.id) or hobby

    async def add_session(self, hobby: Hobby, session: TimeSession) -> bool:
        """Log a completed interval and add its duration to the total."""
        current = self.get_hobby(hobby.id)
        if current is None:
            return False
        updated = current.copy()
        updated.sessions.append(session)
        updated.total_time += session.duration
        return await self.update_hobby(updated)

    # ------------------------------------------------------------------
    # Time tracking
    # ------------------------------------------------------------------
    async def start(self, hobby: Hobby) -> None:
        current = self.get_hobby(hobby.id)
        if current is None:
            logger.debug("Cannot start unknown hobby %s", hobby.id)
            return
        if current.id in self._sessions:
            return

        if current.is_currently_tracking and current.tracking_start_time is not None:
            # already running in the store, keep its original start time
            self._open_session(current)
            return

        current.mark_tracking(self.clock())
        self._open_session(current)
        await self._persist(current)

    async def pause(self, hobby: Hobby) -> None:
        session = self._sessions.pop(hobby.id, None)
        if session is None:
            return
        session.close()
        self._stop_rank_refresh_if_idle()

        current = self.get_hobby(hobby.id)
        if current is None:
            return
        started_at = current.tracking_start_time or session.started_at
        running = (self.clock() - started_at).total_seconds()
        current.total_time += max(running, 0.0)
        current.clear_tracking()

        await self._persist(current)
        await self.update_ranking_for_hobby(current.name)

    async def stop(self, hobby: Hobby) -> None:
        await self.pause(hobby)

    async def cancel(self, hobby: Hobby) -> None:
        session = self._sessions.pop(hobby.id, None)
        if session is not None:
            session.close()
            self._stop_rank_refresh_if_idle()

        current = self.get_hobby(hobby.id)
        if current is None or (session is None and not current.is_currently_tracking):
            return
        current.clear_tracking()
        await self._persist(current)

    def refresh_elapsed(self) -> None:
        for session in self._sessions.values():
            session.refresh()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_hobby(self, hobby_id: uuid.UUID) -> Optional[Hobby]:
        index = self._index_of(hobby_id)
        return self.hobbies[index] if index is not None else None

    def is_tracking(self, hobby: Hobby) -> bool:
        return hobby.id in self._sessions

    @property
    def tracked_hobbies(self) -> List[Hobby]:
        return [hobby for hobby in self.hobbies if hobby.id in self._sessions]

    def current_elapsed_time(self, hobby: Hobby) -> float:
        session = self._sessions.get(hobby.id)
        if session is not None:
            return session.elapsed
        current = self.get_hobby(hobby.id) or hobby
        return current.total_time

    def formatted_elapsed_time(self, hobby: Hobby) -> str:
        return format_clock(self.current_elapsed_time(hobby))

    def formatted_elapsed_time_mmss(self, hobby: Hobby) -> str:
        return format_clock_mmss(self.current_elapsed_time(hobby))

    def rank_for(self, hobby_name: str) -> Optional[int]:
        return self.rankings.get(normalize_name(hobby_name))

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------
    async def update_ranking_for_hobby(self, hobby_name: str) -> Optional[int]:
        user_id = self.user_id_provider()
        if not user_id:
            return None
        key = normalize_name(hobby_name)
        try:
            rows = await self._call(self.store.fetch_everyone)
        except StoreError as exc:
            logger.warning("Calculating ranking for %r failed: %s", hobby_name, exc)
            return self.rankings.get(key)
        if rows is None:
            return None

        rank = competition_rank(rows, hobby_name, user_id)
        if rank is None:
            self.rankings.pop(key, None)
        else:
            self.rankings[key] = rank
        return rank

    async def load_rankings_for_all_hobbies(self) -> None:
        self.is_loading_rankings = True
        try:
            for name in self._distinct_names(self.hobbies):
                await self.update_ranking_for_hobby(name)
        finally:
            self.is_loading_rankings = False

    async def refresh_rankings_for_active_hobbies(self) -> None:
        for name in self._distinct_names(self.tracked_hobbies):
            await self.update_ranking_for_hobby(name)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        self._close_sessions()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(func, *args)

    async def _persist(self, hobby: Hobby) -> bool:
        try:
            await self._call(self.store.update, hobby)
        except StoreError as exc:
            logger.warning("Saving tracking state of %r failed: %s", hobby.name, exc)
            return False
        return True

    def _index_of(self, hobby_id: uuid.UUID) -> Optional[int]:
        for index, item in enumerate(self.hobbies):
            if item.id == hobby_id:
                return index
        return None

    @staticmethod
    def _distinct_names(hobbies: List[Hobby]) -> List[str]:
        seen: set[str] = set()
        names: List[str] = []
        for hobby in hobbies:
            key = normalize_name(hobby.name)
            if key not in seen:
                seen.add(key)
                names.append(hobby.name)
        return names

    def _forget_rank_if_unused(self, name: str) -> None:
        key = normalize_name(name)
        if not any(normalize_name(item.name) == key for item in self.hobbies):
            self.rankings.pop(key, None)

    def _open_session(self, hobby: Hobby) -> TrackingSession:
        if hobby.tracking_start_time is None:
            raise ValueError(f"Hobby {hobby.name!r} has no tracking start time")
        session = TrackingSession(hobby.id, hobby.tracking_start_time, hobby.total_time, self.clock)
        session.attach(asyncio.get_running_loop().create_task(self._tick(session)))
        self._sessions[hobby.id] = session
        self._ensure_rank_refresh()
        return session

    async def _tick(self, session: TrackingSession) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            session.refresh()

    def _ensure_rank_refresh(self) -> None:
        if self.rank_refresh_interval <= 0:
            return
        if self._rank_task is None or self._rank_task.done():
            self._rank_task = asyncio.get_running_loop().create_task(self._refresh_rankings_periodically())

    async def _refresh_rankings_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.rank_refresh_interval)
            await self.refresh_rankings_for_active_hobbies()

    def _stop_rank_refresh_if_idle(self) -> None:
        if self._sessions or self._rank_task is None:
            return
        self._rank_task.cancel()
        self._rank_task = None

    def _close_sessions(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        self._stop_rank_refresh_if_idle()


__all__ = ["HobbyTracker", "TrackingSession"]
