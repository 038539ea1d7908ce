"""Trip lifecycle — create a trip, join it by code, load it."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from triplab.codes import CODE_LENGTH, generate_code, require_valid_code
from triplab.colors import color_for_user
from triplab.errors import NotAMemberError, NotFoundError, ValidationError
from triplab.state import Trip, UserState, parse_trip
from triplab.store import paths
from triplab.store.base import DocumentStore

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _required(value: str | None, what: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} cannot be empty")
    return cleaned


@dataclass(frozen=True)
class CreatedTrip:
    trip_id: str
    shareable_code: str


@dataclass(frozen=True)
class JoinResult:
    trip_id: str
    already_joined: bool = False


class TripService:
    def __init__(self, store: DocumentStore, *, code_length: int = CODE_LENGTH, code_attempts: int = 5) -> None:
        self.store = store
        self.code_length = code_length
        self.code_attempts = code_attempts

    async def _allocate_code(self) -> str:
        for _ in range(self.code_attempts):
            code = generate_code(self.code_length)
            if not await self.store.exists(paths.code(code)):
                return code
            logger.info("Shareable code collision on %s, retrying", code)
        raise ValidationError("Could not allocate a unique trip code, please try again")

    async def create_trip(self, destination: str, user_id: str, user_name: str) -> CreatedTrip:
        """Create a trip with the creator as its first traveler and index its code."""
        destination = _required(destination, "Destination")
        user_name = _required(user_name, "Name")

        code = await self._allocate_code()
        trip_id = self.store.new_key(paths.TRIPS)
        now = _now_ms()
        trip = Trip(
            id=trip_id,
            destination=destination,
            shareable_code=code,
            created_by=user_id,
            created_at=now,
            users={
                user_id: UserState(
                    name=user_name,
                    color=color_for_user(user_id, [user_id]).hex,
                    locked_dates=False,
                    selected_dates=[],
                    joined_at=now,
                )
            },
        )
        await self.store.set(paths.trip(trip_id), trip.summary_document())
        await self.store.set(paths.code(code), trip_id)
        logger.info("Created trip %s (%s) for user %s", trip_id, code, user_id)
        return CreatedTrip(trip_id, code)

    async def resolve_code(self, code: str) -> str:
        code = require_valid_code(code, self.code_length)
        trip_id = await self.store.get(paths.code(code))
        if not trip_id:
            raise NotFoundError("Invalid trip code")
        return str(trip_id)

    async def join_trip(self, code: str, user_id: str, user_name: str) -> JoinResult:
        """Add ``user_id`` to the trip behind ``code``. Idempotent for members."""
        user_name = _required(user_name, "Name")
        trip_id = await self.resolve_code(code)
        trip = await self.get_trip(trip_id)
        if trip.is_member(user_id):
            return JoinResult(trip_id, already_joined=True)

        order = [*trip.user_ids(), user_id]
        user = UserState(
            name=user_name,
            color=color_for_user(user_id, order).hex,
            joined_at=max([_now_ms(), *(u.joined_at + 1 for u in trip.users.values())]),
        )
        await self.store.set(paths.user(trip_id, user_id), user.to_document())
        logger.info("User %s joined trip %s", user_id, trip_id)
        return JoinResult(trip_id)

    async def get_trip(self, trip_id: str) -> Trip:
        raw = await self.store.get(paths.trip(trip_id))
        if raw is None:
            raise NotFoundError("Trip not found")
        return parse_trip(trip_id, raw)

    async def get_member_trip(self, trip_id: str, user_id: str) -> Trip:
        trip = await self.get_trip(trip_id)
        require_member(trip, user_id)
        return trip


def require_member(trip: Trip, user_id: str) -> None:
    if not trip.is_member(user_id):
        raise NotAMemberError(trip.id, user_id)
