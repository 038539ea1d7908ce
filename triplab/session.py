"""Session — the explicit service container for one signed-in traveler.

Built once when the traveler's session starts and closed when it ends. It
owns the identity, the notifier and every synchroniser and watcher it hands
out, so closing the session tears down all timers and subscriptions.

``run`` is the call-site error boundary: trip-planning errors become a
user-visible notice and the operation returns ``None``; optimistic local
state is never rolled back. Re-invoking the same method is the retry.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from triplab.config.settings import Settings, get_settings
from triplab.errors import TripLabError
from triplab.notify import Notifier
from triplab.realtime import Watcher, watch_activities, watch_trip, watch_users
from triplab.state import Activity
from triplab.store.base import DocumentStore
from triplab.sync.availability import AvailabilitySynchronizer
from triplab.sync.board import ActivityBoard
from triplab.sync.calendar import CalendarView, GridHitTester
from triplab.sync.drag import DragSelectionFSM
from triplab.sync.lock import LockCoordinator, LockOutcome
from triplab.trips import CreatedTrip, JoinResult, TripService

logger = logging.getLogger(__name__)

R = TypeVar("R")


class Session:
    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        user_name: str,
        *,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.store = store
        self.user_id = user_id
        self.user_name = user_name
        self.settings = settings or get_settings()
        self.notifier = notifier or Notifier()
        self.trips = TripService(
            store,
            code_length=self.settings.SHAREABLE_CODE_LENGTH,
            code_attempts=self.settings.CODE_ALLOCATION_ATTEMPTS,
        )
        self.locks = LockCoordinator(store)
        self._boards: dict[str, ActivityBoard] = {}
        self._synchronizers: dict[str, AvailabilitySynchronizer] = {}
        self._watchers: list[Watcher] = []
        self._locked: dict[str, bool] = {}
        self.closed = False

    # ─── Error boundary ─────────────────────────────

    async def run(
        self,
        operation: Callable[..., Awaitable[R]],
        *args: Any,
        success: Optional[str] = None,
        **kwargs: Any,
    ) -> Optional[R]:
        try:
            result = await operation(*args, **kwargs)
        except TripLabError as exc:
            logger.warning("%s failed for user %s: %s", getattr(operation, "__name__", operation), self.user_id, exc)
            self.notifier.error(exc.message)
            return None
        if success:
            self.notifier.success(success)
        return result

    # ─── Trips ──────────────────────────────────────

    async def create_trip(self, destination: str) -> Optional[CreatedTrip]:
        return await self.run(
            self.trips.create_trip, destination, self.user_id, self.user_name, success="Trip created!"
        )

    async def join_trip(self, code: str) -> Optional[JoinResult]:
        return await self.run(self.trips.join_trip, code, self.user_id, self.user_name)

    # ─── Availability ───────────────────────────────

    async def availability(self, trip_id: str) -> Optional[AvailabilitySynchronizer]:
        """The (cached, started) synchroniser for this traveler's dates on ``trip_id``."""
        if trip_id in self._synchronizers:
            return self._synchronizers[trip_id]
        trip = await self.run(self.trips.get_member_trip, trip_id, self.user_id)
        if trip is None:
            return None
        me = trip.users[self.user_id]
        self._locked[trip_id] = me.locked_dates
        sync = AvailabilitySynchronizer(
            self.store,
            trip_id,
            self.user_id,
            initial=me.selected_dates,
            delay=self.settings.DATE_WRITE_DEBOUNCE_SECONDS,
            on_error=lambda exc: self.notifier.error(exc.message),
        )
        await sync.start()
        self._synchronizers[trip_id] = sync
        return sync

    def is_locked(self, trip_id: str) -> bool:
        return self._locked.get(trip_id, False)

    def drag_selection(
        self,
        sync: AvailabilitySynchronizer,
        view: CalendarView,
        hit_tester: Optional[GridHitTester] = None,
    ) -> DragSelectionFSM:
        return DragSelectionFSM(
            sync, view, locked=lambda: self.is_locked(sync.trip_id), locator=hit_tester
        )

    async def set_locked(self, trip_id: str, locked: bool) -> Optional[LockOutcome]:
        sync = self._synchronizers.get(trip_id)
        if sync is not None and locked:
            # Lock what the traveler sees, not what the timer has yet to write.
            await sync.flush()
        outcome = await self.run(self.locks.set_locked, trip_id, self.user_id, locked)
        if outcome is not None:
            self._locked[trip_id] = outcome.user_locked
        return outcome

    async def toggle_lock(self, trip_id: str) -> Optional[LockOutcome]:
        return await self.set_locked(trip_id, not self.is_locked(trip_id))

    # ─── Activities ─────────────────────────────────

    def board(self, trip_id: str) -> ActivityBoard:
        if trip_id not in self._boards:
            self._boards[trip_id] = ActivityBoard(self.store, trip_id)
        return self._boards[trip_id]

    async def _as_member(self, trip_id: str, operation: Callable[..., Awaitable[R]], *args, **kwargs) -> R:
        await self.trips.get_member_trip(trip_id, self.user_id)
        return await operation(*args, **kwargs)

    async def add_activity(
        self, trip_id: str, day: date | str, slot: str, title: str, description: str = ""
    ) -> Optional[Activity]:
        return await self.run(
            self._as_member,
            trip_id,
            self.board(trip_id).add,
            day,
            slot,
            title=title,
            description=description,
            created_by=self.user_id,
            created_by_name=self.user_name,
        )

    async def edit_activity(
        self, trip_id: str, day: date | str, slot: str, activity_id: str, title: str,
        description: Optional[str] = None,
    ) -> Optional[Activity]:
        return await self.run(
            self._as_member, trip_id, self.board(trip_id).edit, day, slot, activity_id,
            acting_user=self.user_id, title=title, description=description,
        )

    async def delete_activity(self, trip_id: str, day: date | str, slot: str, activity_id: str) -> Optional[Activity]:
        return await self.run(
            self._as_member, trip_id, self.board(trip_id).delete, day, slot, activity_id,
            acting_user=self.user_id,
        )

    async def vote(self, trip_id: str, day: date | str, slot: str, activity_id: str, clicked: int) -> Optional[int]:
        """Up (1) or down (-1) click with the toggle law applied."""
        return await self.run(
            self._as_member, trip_id, self.board(trip_id).click_vote, day, slot, activity_id,
            self.user_id, clicked,
        )

    # ─── Watchers ───────────────────────────────────

    async def _track(self, watcher: Watcher) -> Watcher:
        self._watchers.append(watcher)
        return await watcher.start()

    async def watch_trip(self, trip_id: str) -> Watcher:
        watcher = watch_trip(self.store, trip_id)
        watcher.listen(lambda w: self._refresh_lock(trip_id, w))
        return await self._track(watcher)

    async def watch_users(self, trip_id: str) -> Watcher:
        return await self._track(watch_users(self.store, trip_id))

    async def watch_activities(self, trip_id: str, day: Optional[date] = None) -> Watcher:
        return await self._track(watch_activities(self.store, trip_id, day))

    def _refresh_lock(self, trip_id: str, watcher: Watcher) -> None:
        trip = watcher.value
        if trip is not None and self.user_id in trip.users:
            self._locked[trip_id] = trip.users[self.user_id].locked_dates

    # ─── Lifecycle ──────────────────────────────────

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for sync in self._synchronizers.values():
            await sync.close()
        for watcher in self._watchers:
            watcher.close()
        self._synchronizers.clear()
        self._watchers.clear()
        logger.info("Session closed for user %s", self.user_id)

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def open_synchronizers(self) -> Iterable[AvailabilitySynchronizer]:
        return list(self._synchronizers.values())
