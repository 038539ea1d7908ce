"""Tests for the document store — tree semantics, subscriptions, durable adapter."""

from __future__ import annotations

from typing import Any

import pytest

from triplab.errors import RemoteWriteFailure
from triplab.store import paths, tree
from triplab.store.memory import MemoryDocumentStore
from triplab.store.sql import SqlDocumentStore


# ─── Paths & tree helpers ────────────────────────────────


class TestPaths:
    def test_builders(self):
        from datetime import date
        from triplab.state import TimeSlot

        assert paths.selected_dates("t", "u") == "trips/t/users/u/selectedDates"
        assert paths.vote("t", date(2024, 7, 2), TimeSlot.EVENING, "a1", "u") == (
            "trips/t/activities/2024-07-02/evening/a1/votes/u"
        )
        assert paths.code("AB23CD") == "codes/AB23CD"

    def test_is_related(self):
        assert paths.is_related("trips/t", "trips/t/users/u")
        assert paths.is_related("trips/t/users/u", "trips/t")
        assert paths.is_related("trips/t", "trips/t")
        assert not paths.is_related("trips/t/users", "trips/t/activities")
        assert not paths.is_related("trips/t1", "trips/t2")


class TestTree:
    def test_prune_drops_empty_containers(self):
        assert tree.prune({"a": {}, "b": [], "c": None, "d": {"e": {}}, "f": 0}) == {"f": 0}
        assert tree.prune({}) is None

    def test_set_and_cleanup_parents(self):
        root = tree.set_at(None, ["a", "b", "c"], 1)
        assert root == {"a": {"b": {"c": 1}}}
        assert tree.set_at(root, ["a", "b", "c"], None) is None

    def test_get_returns_copy(self):
        root = {"a": {"b": [1, 2]}}
        copy = tree.get_at(root, ["a"])
        copy["b"].append(3)
        assert root["a"]["b"] == [1, 2]

    def test_update_children(self):
        root = tree.update_at({"a": {"x": 1, "y": 2}}, ["a"], {"x": None, "z": 3, "w/v": 4})
        assert root == {"a": {"y": 2, "z": 3, "w": {"v": 4}}}


# ─── Memory store ────────────────────────────────────────


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_set_get_remove(self, memory_store):
        await memory_store.set("trips/t/destination", "Lisbon")
        assert await memory_store.get("trips/t") == {"destination": "Lisbon"}
        assert await memory_store.exists("trips/t/destination")
        await memory_store.remove("trips/t/destination")
        assert await memory_store.get("trips") is None

    @pytest.mark.asyncio
    async def test_empty_list_deletes(self, memory_store):
        await memory_store.set("trips/t/users/u/selectedDates", ["2024-07-01"])
        await memory_store.set("trips/t/users/u/selectedDates", [])
        assert await memory_store.get("trips/t/users/u/selectedDates") is None

    @pytest.mark.asyncio
    async def test_subscriber_gets_initial_snapshot(self, memory_store, flush_events):
        await memory_store.set("trips/t/destination", "Lisbon")
        seen: list[Any] = []
        await memory_store.subscribe("trips/t", seen.append)
        await flush_events()
        assert seen == [{"destination": "Lisbon"}]

    @pytest.mark.asyncio
    async def test_delivery_is_never_reentrant(self, memory_store, flush_events):
        seen: list[Any] = []
        await memory_store.subscribe("trips/t", seen.append)
        await flush_events()
        seen.clear()
        await memory_store.set("trips/t/destination", "Porto")
        assert seen == []
        await flush_events()
        assert seen == [{"destination": "Porto"}]

    @pytest.mark.asyncio
    async def test_ancestor_descendant_and_unrelated(self, memory_store, flush_events):
        ancestor, descendant, unrelated = [], [], []
        await memory_store.subscribe("trips/t", ancestor.append)
        await memory_store.subscribe("trips/t/users/u/selectedDates", descendant.append)
        await memory_store.subscribe("trips/other", unrelated.append)
        await flush_events()
        for seen in (ancestor, descendant, unrelated):
            seen.clear()

        await memory_store.set("trips/t/users/u/selectedDates", ["2024-07-01"])
        await memory_store.set("trips/t/users", {"u": {"name": "U"}})
        await flush_events()

        assert len(ancestor) == 2
        assert descendant == [["2024-07-01"], None]
        assert unrelated == []

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, memory_store, flush_events):
        seen: list[Any] = []
        sub = await memory_store.subscribe("trips/t", seen.append)
        sub.cancel()
        sub.cancel()
        await memory_store.set("trips/t/x", 1)
        await flush_events()
        assert seen == []
        assert memory_store.subscription_count == 0

    @pytest.mark.asyncio
    async def test_subscription_context_manager(self, memory_store):
        with await memory_store.subscribe("trips/t", lambda _: None) as sub:
            assert sub.active
        assert not sub.active

    @pytest.mark.asyncio
    async def test_update_notifies_each_child(self, memory_store, flush_events):
        title, votes = [], []
        await memory_store.subscribe("trips/t/a/title", title.append)
        await memory_store.subscribe("trips/t/a/votes", votes.append)
        await flush_events()
        title.clear()
        votes.clear()
        await memory_store.update("trips/t/a", {"title": "Fado", "description": "night"})
        await flush_events()
        assert title == ["Fado"]
        assert votes == []
        assert await memory_store.get("trips/t/a") == {"title": "Fado", "description": "night"}

    @pytest.mark.asyncio
    async def test_new_keys_are_unique_and_never_look_like_options(self, memory_store):
        keys = [memory_store.new_key("trips") for _ in range(20)]
        assert len(set(keys)) == 20
        assert all(len(k) == 20 for k in keys)
        assert not any(k.startswith("-") for k in keys)

    @pytest.mark.asyncio
    async def test_adapter_failure_is_wrapped(self):
        class BrokenStore(MemoryDocumentStore):
            async def _write(self, segments, value):
                raise OSError("disk full")

        store = BrokenStore()
        with pytest.raises(RemoteWriteFailure) as excinfo:
            await store.set("trips/t/x", 1)
        assert excinfo.value.path == "trips/t/x"
        assert isinstance(excinfo.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_initial_tree_and_dump(self):
        store = MemoryDocumentStore({"codes": {"AB23CD": "t1"}, "trips": {}})
        assert store.dump() == {"codes": {"AB23CD": "t1"}}


# ─── SQL store ───────────────────────────────────────────


class TestSqlStore:
    @pytest.mark.asyncio
    async def test_document_round_trip(self, sql_store):
        await sql_store.set("trips/t1", {"destination": "Lisbon", "users": {"a": {"name": "A"}}})
        assert await sql_store.get("trips/t1/users/a/name") == "A"
        assert await sql_store.get("trips/t1/missing") is None
        assert await sql_store.get("trips/nope") is None

    @pytest.mark.asyncio
    async def test_nested_write_and_prune(self, sql_store):
        await sql_store.set("trips/t1/users/a/selectedDates", ["2024-07-01"])
        await sql_store.set("trips/t1/users/a/lockedDates", True)
        await sql_store.set("trips/t1/users/a/selectedDates", [])
        assert await sql_store.get("trips/t1") == {"users": {"a": {"lockedDates": True}}}
        await sql_store.remove("trips/t1/users/a/lockedDates")
        assert await sql_store.get("trips") is None

    @pytest.mark.asyncio
    async def test_collection_reads_assemble_rows(self, sql_store):
        await sql_store.set("codes/AB23CD", "t1")
        await sql_store.set("codes/XY45ZW", "t2")
        await sql_store.set("trips/t1/destination", "Lisbon")
        assert await sql_store.get("codes") == {"AB23CD": "t1", "XY45ZW": "t2"}
        assert await sql_store.get("") == {
            "codes": {"AB23CD": "t1", "XY45ZW": "t2"},
            "trips": {"t1": {"destination": "Lisbon"}},
        }

    @pytest.mark.asyncio
    async def test_update_across_documents(self, sql_store):
        await sql_store.update("", {"trips/t1/destination": "Lisbon", "codes/AB23CD": "t1"})
        assert await sql_store.get("codes/AB23CD") == "t1"
        assert await sql_store.get("trips/t1/destination") == "Lisbon"

    @pytest.mark.asyncio
    async def test_subscriptions(self, sql_store, flush_events):
        seen: list[Any] = []
        await sql_store.subscribe("trips/t1/users", seen.append)
        await sql_store.set("trips/t1/users/a/name", "A")
        await flush_events()
        assert seen == [None, {"a": {"name": "A"}}]

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        db_url = f"sqlite+aiosqlite:///{tmp_path / 'persist.db'}"
        first = SqlDocumentStore(db_url)
        await first.init_db()
        await first.set("trips/t1/destination", "Kyoto")
        await first.close()

        second = SqlDocumentStore(db_url)
        await second.init_db()
        try:
            assert await second.get("trips/t1/destination") == "Kyoto"
        finally:
            await second.close()
