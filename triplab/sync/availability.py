"""Availability synchroniser — a responsive local copy of one user's selected dates.

Local edits apply immediately and (re)arm a debounce timer; only the latest
selection inside the window is written. Push snapshots of the user's own
``selectedDates`` path are reconciled against what this instance meant to
write: echoes of our own writes are ignored so in-flight edits never flicker
back, anything else (another session for the same user) replaces local state.
A snapshot repeating the last remote value carries nothing new and is skipped.

Writes are fire-and-forget. A rejected write is logged and reported through
``on_error``; it is not retried and the optimistic local state is kept. The
next edit naturally re-attempts. Closing the synchroniser before the timer
fires abandons the pending write.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Callable, Iterable, Optional

from triplab.errors import SchemaMismatchError, TripLabError
from triplab.state import parse_selected_dates, sorted_iso
from triplab.store import paths
from triplab.store.base import DocumentStore, Subscription

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


class AvailabilitySynchronizer:
    def __init__(
        self,
        store: DocumentStore,
        trip_id: str,
        user_id: str,
        *,
        initial: Optional[Iterable[date]] = None,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        on_change: Optional[Callable[[list[date]], None]] = None,
        on_error: Optional[Callable[[TripLabError], None]] = None,
    ) -> None:
        self.store = store
        self.trip_id = trip_id
        self.user_id = user_id
        self.path = paths.selected_dates(trip_id, user_id)
        self.delay = delay
        self._on_change = on_change
        self._on_error = on_error

        self._seeded = initial is not None
        self._selected: list[date] = list(dict.fromkeys(initial or []))
        # Last value this instance intended to write.
        self._pending: frozenset[date] = frozenset(self._selected)
        # Last value seen from (or seeded by) the store.
        self._remote: frozenset[date] = frozenset(self._selected)
        # Values submitted to the store whose echo has not come back yet.
        self._unconfirmed: list[frozenset[date]] = []

        self._timer: Optional[asyncio.TimerHandle] = None
        self._writes: set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = None
        self._closed = False

    # ─── Lifecycle ──────────────────────────────────

    async def start(self) -> "AvailabilitySynchronizer":
        """Subscribe to the user's own ``selectedDates`` path."""
        if self._subscription is None:
            self._subscription = await self.store.subscribe(
                self.path, self.on_remote_snapshot, on_error=self._report
            )
        return self

    async def close(self) -> None:
        """Cancel the timer (abandoning any pending write) and the subscription."""
        self._closed = True
        self.cancel_pending()
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._writes:
            await asyncio.gather(*self._writes, return_exceptions=True)

    async def __aenter__(self) -> "AvailabilitySynchronizer":
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ─── Local state ────────────────────────────────

    @property
    def selected_dates(self) -> list[date]:
        return list(self._selected)

    @property
    def selected_set(self) -> frozenset[date]:
        return frozenset(self._selected)

    def is_selected(self, day: date) -> bool:
        return day in self._selected

    @property
    def has_pending_write(self) -> bool:
        return self._timer is not None

    def toggle(self, day: date) -> list[date]:
        """Flip membership of ``day`` and schedule a debounced write."""
        if day in self._selected:
            updated = [d for d in self._selected if d != day]
        else:
            updated = [*self._selected, day]
        self._apply_local(updated)
        return self.selected_dates

    def set_all(self, dates: Iterable[date]) -> list[date]:
        """Replace the whole selection (bulk drag commit) and schedule a write."""
        self._apply_local(list(dict.fromkeys(dates)))
        return self.selected_dates

    def _apply_local(self, updated: list[date]) -> None:
        if self._closed:
            logger.debug("Ignoring edit on closed synchroniser for %s", self.path)
            return
        self._selected = updated
        self._pending = frozenset(updated)
        self._changed()
        self._schedule_write()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.selected_dates)

    # ─── Debounced writes ───────────────────────────

    def _schedule_write(self) -> None:
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        value = self._pending
        if self._subscription is not None:
            # Only a subscribed instance hears echoes that confirm these.
            self._unconfirmed.append(value)
        task = asyncio.get_running_loop().create_task(self._write(value))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _write(self, value: frozenset[date]) -> None:
        try:
            await self.store.set(self.path, sorted_iso(value))
            logger.debug("Wrote %d dates to %s", len(value), self.path)
        except TripLabError as exc:
            logger.warning("Date selection write failed for %s: %s", self.path, exc)
            self._forget(value)
            self._report(exc)

    async def flush(self) -> None:
        """Write the pending selection now instead of waiting for the timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()
        if self._writes:
            await asyncio.gather(*self._writes, return_exceptions=True)

    def _forget(self, value: frozenset[date]) -> None:
        if value in self._unconfirmed:
            self._unconfirmed.remove(value)

    # ─── Remote reconciliation ──────────────────────

    def on_remote_snapshot(self, raw: Any) -> bool:
        """Reconcile a pushed snapshot. Returns True if local state was replaced."""
        try:
            remote = parse_selected_dates(raw, self.path)
        except SchemaMismatchError as exc:
            logger.warning("Ignoring malformed snapshot at %s: %s", self.path, exc.detail)
            self._report(exc)
            return False

        incoming = frozenset(remote)
        if not self._seeded:
            self._seeded = True
            self._remote = incoming
            return self._adopt(remote)
        if incoming == self._remote:
            # Re-delivery of a value already reconciled, e.g. the initial snapshot.
            return False
        self._remote = incoming

        if incoming == self._pending:
            # Echo of our latest intention.
            self._unconfirmed.clear()
            return False
        if incoming in self._unconfirmed:
            # Echo of an older write of ours; a newer one is pending or in flight.
            del self._unconfirmed[: self._unconfirmed.index(incoming) + 1]
            return False
        return self._adopt(remote)

    def _adopt(self, remote: list[date]) -> bool:
        if remote == self._selected:
            self._pending = frozenset(remote)
            return False
        logger.info("Remote selection for %s replaced local state", self.path)
        self.cancel_pending()
        self._unconfirmed.clear()
        self._selected = list(remote)
        self._pending = frozenset(remote)
        self._changed()
        return True

    def _report(self, exc: Exception) -> None:
        if isinstance(exc, TripLabError) and self._on_error is not None:
            self._on_error(exc)
        else:
            logger.error("Synchroniser error on %s: %s", self.path, exc)
