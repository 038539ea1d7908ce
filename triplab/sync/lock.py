"""Lock coordinator — per-user lock flags and the trip-wide fields derived from them.

Each user toggles their own flag (unlocked <-> locked). After every
transition the acting client re-reads the trip and writes the derived
fields. There is no transaction: two users flipping at the same instant
race on ``allUsersLocked`` and the last write wins, but recomputation is
idempotent so the fields settle once events stop.

``overlappedDates`` is only ever written when everyone is locked with a
non-empty selection. Unlocking afterwards leaves the last agreement in
place; it is shown only while ``allUsersLocked`` is true.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from triplab.errors import NotAMemberError, NotFoundError
from triplab.state import Trip, parse_trip, sorted_iso
from triplab.store import paths
from triplab.store.base import DocumentStore
from triplab.sync.overlap import all_users_locked, every_selection_non_empty, overlap_for_users

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockOutcome:
    user_locked: bool
    all_users_locked: bool
    # None when the transition left overlappedDates untouched.
    overlapped_dates: Optional[list[date]] = None


class LockCoordinator:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def _load(self, trip_id: str) -> Trip:
        raw = await self.store.get(paths.trip(trip_id))
        if raw is None:
            raise NotFoundError("Trip not found")
        return parse_trip(trip_id, raw)

    async def set_locked(self, trip_id: str, user_id: str, locked: bool) -> LockOutcome:
        """Persist ``user_id``'s flag, then recompute the derived trip fields."""
        trip = await self._load(trip_id)
        if not trip.is_member(user_id):
            raise NotAMemberError(trip_id, user_id)

        await self.store.set(paths.locked_dates(trip_id, user_id), locked)
        logger.info("User %s %s dates on trip %s", user_id, "locked" if locked else "unlocked", trip_id)
        return await self.recompute(trip_id, user_locked=locked)

    async def toggle(self, trip_id: str, user_id: str) -> LockOutcome:
        trip = await self._load(trip_id)
        if not trip.is_member(user_id):
            raise NotAMemberError(trip_id, user_id)
        return await self.set_locked(trip_id, user_id, not trip.users[user_id].locked_dates)

    async def recompute(self, trip_id: str, user_locked: bool = False) -> LockOutcome:
        """Re-derive ``allUsersLocked`` (and the overlap when it holds) from stored flags."""
        trip = await self._load(trip_id)
        locked = all_users_locked(trip.users)
        await self.store.set(paths.all_users_locked(trip_id), locked)

        overlap: Optional[list[date]] = None
        if locked and every_selection_non_empty(trip.users):
            overlap = overlap_for_users(trip.users)
            await self.store.set(paths.overlapped_dates(trip_id), sorted_iso(overlap))
            logger.info("Trip %s: everyone locked, %d overlapping dates", trip_id, len(overlap))
        return LockOutcome(user_locked=user_locked, all_users_locked=locked, overlapped_dates=overlap)
