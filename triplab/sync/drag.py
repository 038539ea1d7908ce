"""Drag selection — paint or erase a run of calendar days in one gesture.

States: ``idle`` and ``dragging(mode, touched)``. The anchor decides the
mode: starting on a selected day erases, anything else paints. Release,
leaving the grid and cancellation all end the gesture through ``commit()``,
which applies the touched days to the synchroniser's selection in one
``set_all`` call.

A plain click never enters ``dragging``; ``click_date`` toggles directly.
"""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Callable, Optional, Union

from triplab.state import DragMode
from triplab.sync.availability import AvailabilitySynchronizer
from triplab.sync.calendar import CalendarView

logger = logging.getLogger(__name__)

CellLocator = Callable[[tuple[float, float]], Optional[date]]
LockCheck = Union[bool, Callable[[], bool]]


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


def _locked(check: LockCheck) -> bool:
    return check() if callable(check) else bool(check)


def click_date(
    synchronizer: AvailabilitySynchronizer,
    view: CalendarView,
    day: date,
    locked: LockCheck = False,
) -> bool:
    """Single click/tap: toggle ``day`` if it is interactable."""
    if not view.is_interactable(day, _locked(locked)):
        return False
    synchronizer.toggle(day)
    return True


class DragSelectionFSM:
    def __init__(
        self,
        synchronizer: AvailabilitySynchronizer,
        view: CalendarView,
        *,
        locked: LockCheck = False,
        locator: Optional[CellLocator] = None,
    ) -> None:
        self.synchronizer = synchronizer
        self.view = view
        self.locator = locator
        self._locked = locked
        self.state = DragState.IDLE
        self.mode: Optional[DragMode] = None
        self._touched: set[date] = set()

    @property
    def touched(self) -> frozenset[date]:
        return frozenset(self._touched)

    @property
    def dragging(self) -> bool:
        return self.state is DragState.DRAGGING

    def is_drag_target(self, day: date) -> bool:
        return day in self._touched

    def set_view(self, view: CalendarView) -> None:
        """Switch the displayed month; an in-progress drag keeps what it touched."""
        self.view = view

    def _selectable(self, day: date) -> bool:
        return self.view.is_interactable(day, _locked(self._locked))

    def start(self, anchor: date) -> bool:
        if self.dragging or not self._selectable(anchor):
            return False
        self.state = DragState.DRAGGING
        self.mode = DragMode.DESELECT if self.synchronizer.is_selected(anchor) else DragMode.SELECT
        self._touched = {anchor}
        logger.debug("Drag started at %s (%s)", anchor, self.mode.value)
        return True

    def enter(self, day: date) -> bool:
        if not self.dragging or not self._selectable(day):
            return False
        self._touched.add(day)
        return True

    def pointer_move(self, coordinate: tuple[float, float]) -> Optional[date]:
        """Touch drag: hit-test the coordinate and treat it as ``enter``."""
        if not self.dragging or self.locator is None:
            return None
        day = self.locator(coordinate)
        if day is None:
            return None
        return day if self.enter(day) else None

    def commit(self) -> Optional[list[date]]:
        """End the gesture; returns the new selection, or None if nothing changed hands."""
        touched, mode = self._touched, self.mode
        self.state = DragState.IDLE
        self.mode = None
        self._touched = set()
        if not touched or mode is None:
            return None

        current = self.synchronizer.selected_dates
        if mode is DragMode.SELECT:
            updated = current + sorted(d for d in touched if d not in current)
        else:
            updated = [d for d in current if d not in touched]
        logger.debug("Drag committed: %s %d dates", mode.value, len(touched))
        return self.synchronizer.set_all(updated)

    # Release, pointer leaving the grid and cancellation all commit.
    release = commit
    cancel = commit
