"""Overlap engine — the dates every traveler can make."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Mapping

from triplab.state import UserState

logger = logging.getLogger(__name__)


def compute_overlap(date_sets: Iterable[Iterable[date]]) -> list[date]:
    """Chronologically sorted intersection of every set.

    Any empty input set yields ``[]``, as does an empty list of sets.
    """
    sets = [set(s) for s in date_sets]
    if not sets or any(not s for s in sets):
        return []
    overlap = set(sets[0])
    for other in sets[1:]:
        overlap &= other
        if not overlap:
            return []
    return sorted(overlap)


def all_users_locked(users: Mapping[str, UserState]) -> bool:
    """True iff there is at least one user and every user has locked."""
    return bool(users) and all(u.locked_dates for u in users.values())


def every_selection_non_empty(users: Mapping[str, UserState]) -> bool:
    return bool(users) and all(u.selected_dates for u in users.values())


def overlap_for_users(users: Mapping[str, UserState]) -> list[date]:
    return compute_overlap(u.date_set for u in users.values())


def overlap_status(users: Mapping[str, UserState]) -> dict:
    """``{"show_overlap", "overlap", "all_locked"}`` — show only once all have locked."""
    locked = all_users_locked(users)
    overlap = overlap_for_users(users)
    return {"show_overlap": locked and bool(overlap), "overlap": overlap, "all_locked": locked}


def unlocked_user_names(users: Mapping[str, UserState]) -> list[str]:
    return [u.name or "Unknown" for u in users.values() if not u.locked_dates]


def user_date_summary(users: Mapping[str, UserState]) -> list[dict]:
    return [
        {
            "user_id": uid,
            "name": u.name or "Unknown",
            "date_count": len(u.selected_dates),
            "locked": u.locked_dates,
            "dates": list(u.selected_dates),
        }
        for uid, u in users.items()
    ]


def format_date(day: date, with_year: bool = True) -> str:
    text = f"{day:%b} {day.day}"
    return f"{text}, {day.year}" if with_year else text


def date_range_description(dates: Iterable[date]) -> str:
    """e.g. ``"Jul 1 - Jul 3, 2024 (3 days)"``."""
    ordered = sorted(dates)
    if not ordered:
        return "No dates selected"
    if len(ordered) == 1:
        return format_date(ordered[0])
    first = format_date(ordered[0], with_year=False)
    last = format_date(ordered[-1])
    return f"{first} - {last} ({len(ordered)} days)"
