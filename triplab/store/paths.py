"""Document-tree path builders.

Layout::

    trips/{tripId}
    trips/{tripId}/users/{userId}
    trips/{tripId}/users/{userId}/selectedDates
    trips/{tripId}/users/{userId}/lockedDates
    trips/{tripId}/allUsersLocked
    trips/{tripId}/overlappedDates
    trips/{tripId}/activities/{date}/{slot}/{activityId}
    trips/{tripId}/activities/{date}/{slot}/{activityId}/votes/{userId}
    codes/{shareableCode}
"""

from __future__ import annotations

from datetime import date

TRIPS = "trips"
CODES = "codes"


def split(path: str) -> list[str]:
    """Split a slash path into non-empty segments."""
    return [part for part in path.strip("/").split("/") if part]


def join(*parts: object) -> str:
    segments: list[str] = []
    for part in parts:
        if isinstance(part, date):
            part = part.isoformat()
        elif hasattr(part, "value"):
            part = part.value
        segments.extend(split(str(part)))
    return "/".join(segments)


def is_related(a: str, b: str) -> bool:
    """True if ``a`` and ``b`` are equal or one is an ancestor of the other."""
    sa, sb = split(a), split(b)
    shortest = min(len(sa), len(sb))
    return sa[:shortest] == sb[:shortest]


def trip(trip_id: str) -> str:
    return join(TRIPS, trip_id)


def users(trip_id: str) -> str:
    return join(TRIPS, trip_id, "users")


def user(trip_id: str, user_id: str) -> str:
    return join(TRIPS, trip_id, "users", user_id)


def selected_dates(trip_id: str, user_id: str) -> str:
    return join(user(trip_id, user_id), "selectedDates")


def locked_dates(trip_id: str, user_id: str) -> str:
    return join(user(trip_id, user_id), "lockedDates")


def all_users_locked(trip_id: str) -> str:
    return join(TRIPS, trip_id, "allUsersLocked")


def overlapped_dates(trip_id: str) -> str:
    return join(TRIPS, trip_id, "overlappedDates")


def activities(trip_id: str, day: date | str | None = None, slot=None) -> str:
    return join(TRIPS, trip_id, "activities", *(p for p in (day, slot) if p is not None))


def activity(trip_id: str, day: date | str, slot, activity_id: str) -> str:
    return join(activities(trip_id, day, slot), activity_id)


def vote(trip_id: str, day: date | str, slot, activity_id: str, user_id: str) -> str:
    return join(activity(trip_id, day, slot, activity_id), "votes", user_id)


def code(shareable_code: str) -> str:
    return join(CODES, shareable_code)
