"""Tests for the lock coordinator and the derived trip fields."""

from __future__ import annotations

from datetime import date

import pytest
import pytest_asyncio

from triplab.errors import NotAMemberError, NotFoundError
from triplab.store import paths
from triplab.sync.lock import LockCoordinator
from triplab.trips import TripService


@pytest_asyncio.fixture
async def trip(memory_store):
    """Trip with Alice {07-01, 07-02} and Bob {07-02, 07-03}, both unlocked."""
    service = TripService(memory_store)
    created = await service.create_trip("Lisbon", "alice", "Alice")
    await service.join_trip(created.shareable_code, "bob", "Bob")
    await memory_store.set(paths.selected_dates(created.trip_id, "alice"), ["2024-07-01", "2024-07-02"])
    await memory_store.set(paths.selected_dates(created.trip_id, "bob"), ["2024-07-02", "2024-07-03"])
    return created.trip_id


class TestLockCoordinator:
    @pytest.mark.asyncio
    async def test_two_traveler_agreement(self, memory_store, trip):
        locks = LockCoordinator(memory_store)

        first = await locks.set_locked(trip, "alice", True)
        assert first.user_locked is True
        assert first.all_users_locked is False
        assert first.overlapped_dates is None
        assert await memory_store.get(paths.all_users_locked(trip)) is False

        second = await locks.set_locked(trip, "bob", True)
        assert second.all_users_locked is True
        assert second.overlapped_dates == [date(2024, 7, 2)]
        assert await memory_store.get(paths.all_users_locked(trip)) is True
        assert await memory_store.get(paths.overlapped_dates(trip)) == ["2024-07-02"]

    @pytest.mark.asyncio
    async def test_unlock_keeps_last_overlap(self, memory_store, trip):
        locks = LockCoordinator(memory_store)
        await locks.set_locked(trip, "alice", True)
        await locks.set_locked(trip, "bob", True)

        outcome = await locks.set_locked(trip, "alice", False)

        assert outcome.all_users_locked is False
        assert outcome.overlapped_dates is None
        assert await memory_store.get(paths.all_users_locked(trip)) is False
        assert await memory_store.get(paths.overlapped_dates(trip)) == ["2024-07-02"]

    @pytest.mark.asyncio
    async def test_empty_selection_does_not_write_overlap(self, memory_store, trip):
        await memory_store.set(paths.selected_dates(trip, "bob"), [])
        locks = LockCoordinator(memory_store)
        await locks.set_locked(trip, "alice", True)
        outcome = await locks.set_locked(trip, "bob", True)
        assert outcome.all_users_locked is True
        assert outcome.overlapped_dates is None
        assert await memory_store.get(paths.overlapped_dates(trip)) is None

    @pytest.mark.asyncio
    async def test_disjoint_selections_agree_on_nothing(self, memory_store, trip):
        await memory_store.set(paths.selected_dates(trip, "bob"), ["2024-08-01"])
        locks = LockCoordinator(memory_store)
        await locks.set_locked(trip, "alice", True)
        outcome = await locks.set_locked(trip, "bob", True)
        assert outcome.overlapped_dates == []

    @pytest.mark.asyncio
    async def test_toggle_flips_stored_flag(self, memory_store, trip):
        locks = LockCoordinator(memory_store)
        assert (await locks.toggle(trip, "alice")).user_locked is True
        assert (await locks.toggle(trip, "alice")).user_locked is False
        assert await memory_store.get(paths.locked_dates(trip, "alice")) is False

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, memory_store, trip):
        locks = LockCoordinator(memory_store)
        await locks.set_locked(trip, "alice", True)
        await locks.set_locked(trip, "bob", True)
        before = await memory_store.get(paths.trip(trip))
        await locks.recompute(trip)
        await locks.recompute(trip)
        assert await memory_store.get(paths.trip(trip)) == before

    @pytest.mark.asyncio
    async def test_non_member_is_rejected(self, memory_store, trip):
        locks = LockCoordinator(memory_store)
        with pytest.raises(NotAMemberError):
            await locks.set_locked(trip, "mallory", True)
        assert await memory_store.get(paths.user(trip, "mallory")) is None

    @pytest.mark.asyncio
    async def test_unknown_trip(self, memory_store):
        with pytest.raises(NotFoundError):
            await LockCoordinator(memory_store).set_locked("nope", "alice", True)
