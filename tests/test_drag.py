"""Tests for the month grid, hit-testing and drag selection."""

from __future__ import annotations

from datetime import date

import pytest
import pytest_asyncio

from triplab.state import DragMode, UserState
from triplab.sync.availability import AvailabilitySynchronizer
from triplab.sync.calendar import CalendarView, GridHitTester, build_cells
from triplab.sync.drag import DragSelectionFSM, DragState, click_date


def jul(day: int) -> date:
    return date(2024, 7, day)


@pytest.fixture
def view() -> CalendarView:
    return CalendarView.for_month(2024, 7, today=jul(1))


@pytest_asyncio.fixture
async def sync(memory_store):
    synchronizer = AvailabilitySynchronizer(memory_store, "t1", "alice", initial=[jul(2)], delay=10)
    yield synchronizer
    await synchronizer.close()


class TestCalendarView:
    def test_grid_starts_on_sunday_and_pads_weeks(self, view):
        grid = view.grid()
        assert grid[0] == date(2024, 6, 30)
        assert len(grid) % 7 == 0
        assert all(len(week) == 7 for week in view.weeks())
        assert grid[-1] == date(2024, 8, 3)

    def test_interactable(self, view):
        assert view.is_interactable(jul(15))
        assert not view.is_interactable(date(2024, 6, 30))
        assert not view.is_interactable(jul(15), locked=True)
        assert not CalendarView(jul(20), today=jul(10)).is_interactable(jul(9))

    def test_navigation(self, view):
        assert view.next().month == date(2024, 8, 1)
        assert view.previous().month == date(2024, 6, 1)
        assert CalendarView(date(2024, 12, 25)).next().month == date(2025, 1, 1)
        assert view.title == "July 2024"

    def test_cells(self, view):
        users = {
            "alice": UserState(name="Alice", color="#E07A5F", selected_dates=[jul(2)]),
            "bob": UserState(name="Bob", color="#81B29A", selected_dates=[jul(2), jul(3)]),
        }
        cells = {c.day: c for c in build_cells(view, users, [jul(2)], overlap=[jul(2)], show_overlap=True)}
        assert cells[jul(2)].is_selected and cells[jul(2)].is_overlap
        assert [t[0] for t in cells[jul(2)].travelers] == ["alice", "bob"]
        assert not cells[jul(3)].is_overlap
        assert cells[jul(1)].is_today
        assert not cells[date(2024, 6, 30)].clickable


class TestHitTester:
    def test_locate(self, view):
        tester = GridHitTester(view, cell_width=10, cell_height=10)
        assert tester.locate(15, 5) == jul(1)
        assert tester.locate(35, 15) == jul(10)
        assert tester((5, 5)) == date(2024, 6, 30)

    def test_outside_and_gaps(self, view):
        tester = GridHitTester(view, cell_width=10, cell_height=10, origin=(100, 100), gap=2)
        assert tester.locate(50, 50) is None
        assert tester.locate(111, 101) is None
        assert tester.locate(112, 101) == jul(1)
        assert tester.locate(100 + 7 * 12, 101) is None
        assert tester.locate(101, 100 + 10 * 12) is None


class TestDragSelection:
    @pytest.mark.asyncio
    async def test_paint_unions_touched_days(self, sync, view):
        fsm = DragSelectionFSM(sync, view)
        assert fsm.start(jul(5))
        assert fsm.mode is DragMode.SELECT
        for day in (jul(6), jul(7), jul(6)):
            fsm.enter(day)
        assert fsm.is_drag_target(jul(6))
        assert fsm.commit() == [jul(2), jul(5), jul(6), jul(7)]
        assert fsm.state is DragState.IDLE
        assert sync.has_pending_write

    @pytest.mark.asyncio
    async def test_erase_from_selected_anchor(self, sync, view):
        sync.set_all([jul(2), jul(3), jul(4), jul(9)])
        fsm = DragSelectionFSM(sync, view)
        fsm.start(jul(3))
        assert fsm.mode is DragMode.DESELECT
        fsm.enter(jul(4))
        fsm.enter(jul(5))
        assert fsm.release() == [jul(2), jul(9)]

    @pytest.mark.asyncio
    async def test_days_outside_month_or_past_are_skipped(self, sync):
        view = CalendarView.for_month(2024, 7, today=jul(10))
        fsm = DragSelectionFSM(sync, view)
        assert not fsm.start(jul(9))
        assert fsm.start(jul(30))
        assert not fsm.enter(date(2024, 8, 1))
        assert not fsm.enter(jul(8))
        fsm.enter(jul(31))
        assert fsm.commit() == [jul(2), jul(30), jul(31)]

    @pytest.mark.asyncio
    async def test_locked_blocks_gesture(self, sync, view):
        locked = {"value": True}
        fsm = DragSelectionFSM(sync, view, locked=lambda: locked["value"])
        assert not fsm.start(jul(5))
        assert not click_date(sync, view, jul(5), locked=True)
        locked["value"] = False
        assert fsm.start(jul(5))

    @pytest.mark.asyncio
    async def test_touch_drag_uses_hit_testing(self, sync, view):
        fsm = DragSelectionFSM(sync, view, locator=GridHitTester(view, 10, 10))
        assert fsm.pointer_move((15, 5)) is None
        fsm.start(jul(8))
        assert fsm.pointer_move((25, 15)) == jul(9)
        assert fsm.pointer_move((500, 500)) is None
        assert fsm.cancel() == [jul(2), jul(8), jul(9)]

    @pytest.mark.asyncio
    async def test_commit_without_gesture(self, sync, view):
        fsm = DragSelectionFSM(sync, view)
        assert fsm.commit() is None
        assert not sync.has_pending_write

    @pytest.mark.asyncio
    async def test_click_toggles(self, sync, view):
        assert click_date(sync, view, jul(2))
        assert sync.selected_dates == []
        assert not click_date(sync, view, date(2024, 6, 30))
