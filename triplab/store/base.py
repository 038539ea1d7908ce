"""Document store interface — hierarchical key paths, point writes, push subscriptions.

Semantics shared by every adapter:

- last accepted write for a path wins, no merge;
- a write at path P notifies every subscription whose path is P, an
  ancestor of P or a descendant of P, with a snapshot of the subscription's
  own path taken right after the write;
- notifications are queued on the event loop, never delivered from inside
  the write call, and keep submission order per subscription;
- a new subscription receives an initial snapshot.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from triplab.errors import RemoteWriteFailure
from triplab.store import paths

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]

_KEY_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
_BASE = len(_KEY_ALPHABET)
_key_counter = itertools.count()


def generate_key() -> str:
    """Fresh child key, lexically ordered by creation time."""
    millis = time.time_ns() // 1_000_000
    stamp = ""
    for _ in range(8):
        stamp = _KEY_ALPHABET[millis % _BASE] + stamp
        millis //= _BASE
    seq = next(_key_counter) % (_BASE**2)
    suffix = _KEY_ALPHABET[seq // _BASE] + _KEY_ALPHABET[seq % _BASE]
    noise = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(10))
    return stamp + suffix + noise


class Subscription:
    """Handle for one push subscription. ``cancel()`` is idempotent."""

    def __init__(
        self,
        store: "DocumentStore",
        path: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.path = paths.join(path)
        self._store = store
        self._callback = callback
        self._on_error = on_error
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._store._discard(self)
        logger.debug("Subscription cancelled: %s", self.path)

    def _deliver(self, snapshot: Any) -> None:
        if self.active:
            self._callback(snapshot)

    def _fail(self, exc: Exception) -> None:
        if not self.active:
            return
        if self._on_error is not None:
            self._on_error(exc)
        else:
            logger.error("Subscription %s failed: %s", self.path, exc)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription {self.path} {state}>"


class DocumentStore(ABC):
    """Base class: adapters implement raw reads and writes, this class fans out."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    # ─── Adapter hooks ──────────────────────────────

    @abstractmethod
    async def _read(self, segments: list[str]) -> Any:
        """Return a deep copy of the value at ``segments`` or ``None``."""

    @abstractmethod
    async def _write(self, segments: list[str], value: Any) -> None:
        """Replace the value at ``segments``; ``None`` deletes."""

    @abstractmethod
    async def _write_children(self, segments: list[str], children: dict[str, Any]) -> None:
        """Apply several relative child writes as one operation."""

    # ─── Public API ─────────────────────────────────

    async def get(self, path: str) -> Any:
        return await self._read(paths.split(path))

    async def exists(self, path: str) -> bool:
        return await self.get(path) is not None

    async def set(self, path: str, value: Any) -> None:
        path = paths.join(path)
        logger.debug("set %s", path)
        try:
            await self._write(paths.split(path), value)
        except RemoteWriteFailure:
            raise
        except Exception as exc:
            raise RemoteWriteFailure(path) from exc
        await self._notify([path])

    async def update(self, path: str, children: dict[str, Any]) -> None:
        path = paths.join(path)
        logger.debug("update %s (%d children)", path, len(children))
        try:
            await self._write_children(paths.split(path), children)
        except RemoteWriteFailure:
            raise
        except Exception as exc:
            raise RemoteWriteFailure(path) from exc
        await self._notify([paths.join(path, key) for key in children])

    async def remove(self, path: str) -> None:
        await self.set(path, None)

    def new_key(self, path: str = "") -> str:
        return generate_key()

    async def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """Register ``callback`` for snapshots of ``path``; returns the handle."""
        subscription = Subscription(self, path, callback, on_error)
        self._subscriptions.append(subscription)
        logger.debug("Subscribed: %s", subscription.path)
        await self._dispatch(subscription)
        return subscription

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.cancel()

    # ─── Fan-out ────────────────────────────────────

    def _discard(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    async def _notify(self, changed: list[str]) -> None:
        for subscription in list(self._subscriptions):
            if any(paths.is_related(subscription.path, path) for path in changed):
                await self._dispatch(subscription)

    async def _dispatch(self, subscription: Subscription) -> None:
        loop = asyncio.get_running_loop()
        try:
            snapshot = await self._read(paths.split(subscription.path))
        except Exception as exc:
            loop.call_soon(subscription._fail, exc)
            return
        loop.call_soon(subscription._deliver, snapshot)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)
