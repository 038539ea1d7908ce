"""Shared test fixtures — stores, settings and a two-traveler trip."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from triplab.config.settings import Settings
from triplab.errors import RemoteWriteFailure
from triplab.store.memory import MemoryDocumentStore


async def settle(rounds: int = 5) -> None:
    """Let queued snapshot deliveries run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class RecordingStore(MemoryDocumentStore):
    """Memory store that records every ``set`` and can be told to reject writes."""

    def __init__(self, initial: dict | None = None) -> None:
        super().__init__(initial)
        self.writes: list[tuple[str, Any]] = []
        self.fail_paths: set[str] = set()

    async def _write(self, segments: list[str], value: Any) -> None:
        path = "/".join(segments)
        self.writes.append((path, value))
        if path in self.fail_paths:
            raise RemoteWriteFailure(path)
        await super()._write(segments, value)

    def writes_to(self, path: str) -> list[Any]:
        return [value for p, value in self.writes if p == path]


@pytest.fixture
def flush_events():
    return settle


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DATE_WRITE_DEBOUNCE_SECONDS=0.01,
        SITE_URL="https://triplab.test",
        OPENROUTER_API_KEY="",
    )


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    """Create a file-backed async document store for testing."""
    from triplab.store.sql import SqlDocumentStore

    db_url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    store = SqlDocumentStore(db_url)
    await store.init_db()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def trip_pair(memory_store, settings):
    """Alice creates a trip to Lisbon and Bob joins it. Yields ``(trip_id, alice, bob)``."""
    from triplab.session import Session

    alice = Session(memory_store, "alice", "Alice", settings=settings)
    bob = Session(memory_store, "bob", "Bob", settings=settings)
    created = await alice.create_trip("Lisbon")
    await bob.join_trip(created.shareable_code)
    yield created.trip_id, alice, bob
    await alice.close()
    await bob.close()
