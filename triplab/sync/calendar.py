"""Month grid model for the availability calendar.

Weeks start on Sunday. A day is interactable when it belongs to the displayed
month, is not in the past and the viewer has not locked their dates.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional

from triplab.state import UserState

WEEKDAYS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_CALENDAR = calendar.Calendar(firstweekday=calendar.SUNDAY)


@dataclass(frozen=True)
class CalendarView:
    """The displayed month (``month`` is normalised to its first day) and today."""

    month: date
    today: date = field(default_factory=date.today)

    def __post_init__(self) -> None:
        object.__setattr__(self, "month", self.month.replace(day=1))

    @classmethod
    def for_month(cls, year: int, month: int, today: Optional[date] = None) -> "CalendarView":
        return cls(date(year, month, 1), today or date.today())

    def in_month(self, day: date) -> bool:
        return (day.year, day.month) == (self.month.year, self.month.month)

    def is_past(self, day: date) -> bool:
        return day < self.today

    def is_interactable(self, day: date, locked: bool = False) -> bool:
        return not locked and self.in_month(day) and not self.is_past(day)

    def grid(self) -> list[date]:
        """Every day shown, padded to whole weeks."""
        return list(_CALENDAR.itermonthdates(self.month.year, self.month.month))

    def weeks(self) -> list[list[date]]:
        days = self.grid()
        return [days[i:i + 7] for i in range(0, len(days), 7)]

    def next(self) -> "CalendarView":
        last = self.month.replace(day=calendar.monthrange(self.month.year, self.month.month)[1])
        return CalendarView(last + timedelta(days=1), self.today)

    def previous(self) -> "CalendarView":
        return CalendarView((self.month - timedelta(days=1)).replace(day=1), self.today)

    @property
    def title(self) -> str:
        return f"{self.month:%B} {self.month.year}"


@dataclass(frozen=True)
class GridHitTester:
    """Resolve pointer coordinates to the calendar cell underneath.

    ``origin`` is the top-left corner of the grid; cells are laid out seven
    per row with ``gap`` pixels between them. Points in a gap or outside the
    grid resolve to ``None``.
    """

    view: CalendarView
    cell_width: float
    cell_height: float
    origin: tuple[float, float] = (0.0, 0.0)
    gap: float = 0.0

    def locate(self, x: float, y: float) -> Optional[date]:
        rel_x, rel_y = x - self.origin[0], y - self.origin[1]
        if rel_x < 0 or rel_y < 0:
            return None
        stride_x, stride_y = self.cell_width + self.gap, self.cell_height + self.gap
        col, off_x = divmod(rel_x, stride_x)
        row, off_y = divmod(rel_y, stride_y)
        if off_x >= self.cell_width or off_y >= self.cell_height:
            return None
        days = self.grid_days
        index = int(row) * 7 + int(col)
        if col >= 7 or index >= len(days):
            return None
        return days[index]

    @property
    def grid_days(self) -> list[date]:
        return self.view.grid()

    def __call__(self, coordinate: tuple[float, float]) -> Optional[date]:
        return self.locate(*coordinate)


@dataclass(frozen=True)
class CalendarCell:
    day: date
    in_month: bool
    is_today: bool
    is_past: bool
    is_selected: bool
    is_overlap: bool
    is_drag_target: bool
    clickable: bool
    # (user_id, name, color) of everyone who picked this day, in join order.
    travelers: tuple[tuple[str, str, str], ...] = ()


def build_cells(
    view: CalendarView,
    users: Mapping[str, UserState],
    selected: Iterable[date],
    *,
    locked: bool = False,
    overlap: Iterable[date] = (),
    show_overlap: bool = False,
    drag_targets: Iterable[date] = (),
) -> list[CalendarCell]:
    """Per-day display model for the current month grid."""
    selected, overlap, targets = set(selected), set(overlap), set(drag_targets)
    cells = []
    for day in view.grid():
        travelers = tuple(
            (uid, u.name, u.color) for uid, u in users.items() if day in u.date_set
        )
        cells.append(
            CalendarCell(
                day=day,
                in_month=view.in_month(day),
                is_today=day == view.today,
                is_past=view.is_past(day),
                is_selected=day in selected,
                is_overlap=show_overlap and day in overlap,
                is_drag_target=day in targets,
                clickable=view.is_interactable(day, locked),
                travelers=travelers,
            )
        )
    return cells
