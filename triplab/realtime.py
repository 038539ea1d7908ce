"""Live views of a trip — keep the latest parsed snapshot of a subscribed path."""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from triplab.errors import SchemaMismatchError
from triplab.state import ActivityTree, Trip, UserState, parse_activities, parse_trip, parse_user, parse_users
from triplab.store import paths
from triplab.store.base import DocumentStore, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Watcher(Generic[T]):
    """Subscribes to one path and parses every snapshot with ``parse``.

    ``value`` holds the latest good snapshot, ``error`` the latest problem
    (cleared by the next good snapshot), ``loading`` is True until the first
    snapshot or error arrives.
    """

    def __init__(
        self,
        store: DocumentStore,
        path: str,
        parse: Callable[[Any], T],
        *,
        missing: Optional[str] = None,
        empty: Optional[T] = None,
    ) -> None:
        self.store = store
        self.path = path
        self._parse = parse
        self._missing = missing
        self._empty = empty
        self.value: Optional[T] = empty
        self.error: Optional[str] = None
        self.loading = True
        self._listeners: list[Callable[["Watcher[T]"], None]] = []
        self._subscription: Optional[Subscription] = None

    def listen(self, listener: Callable[["Watcher[T]"], None]) -> None:
        self._listeners.append(listener)

    async def start(self) -> "Watcher[T]":
        if self._subscription is None:
            self._subscription = await self.store.subscribe(self.path, self._on_snapshot, on_error=self._on_error)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def __aenter__(self) -> "Watcher[T]":
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def _on_snapshot(self, raw: Any) -> None:
        if raw is None and self._missing is not None:
            self.value, self.error = None, self._missing
        else:
            try:
                self.value, self.error = self._parse(raw), None
            except SchemaMismatchError as exc:
                logger.warning("Schema mismatch at %s: %s", self.path, exc.detail)
                self.error = exc.message
        self.loading = False
        self._emit()

    def _on_error(self, exc: Exception) -> None:
        logger.error("Realtime error on %s: %s", self.path, exc)
        self.error = str(exc)
        self.loading = False
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self)


def watch_trip(store: DocumentStore, trip_id: str) -> Watcher[Trip]:
    return Watcher(store, paths.trip(trip_id), lambda raw: parse_trip(trip_id, raw), missing="Trip not found")


def watch_users(store: DocumentStore, trip_id: str) -> Watcher[dict[str, UserState]]:
    path = paths.users(trip_id)
    return Watcher(store, path, lambda raw: parse_users(raw, path), empty={})


def watch_user(store: DocumentStore, trip_id: str, user_id: str) -> Watcher[UserState]:
    path = paths.user(trip_id, user_id)
    return Watcher(store, path, lambda raw: parse_user(raw, path) if raw is not None else None)


def watch_activities(store: DocumentStore, trip_id: str, day=None) -> Watcher[ActivityTree]:
    """The whole activity tree, or a single day's slots when ``day`` is given."""
    path = paths.activities(trip_id, day)
    if day is None:
        return Watcher(store, path, lambda raw: parse_activities(raw, path), empty={})
    key = paths.join(day)
    return Watcher(
        store,
        path,
        lambda raw: parse_activities({key: raw} if raw is not None else {}, path),
        empty={},
    )
