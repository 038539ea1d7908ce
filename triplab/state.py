"""
Document schema — the shape of everything stored under ``trips/{tripId}``.

Snapshots arriving from the document store are validated against these
pydantic models before any component looks at them. Field aliases match the
camelCase keys used in the stored tree. Enums use the str/int mixin for easy
serialisation.
"""

from __future__ import annotations

from datetime import date
from enum import Enum, IntEnum
from typing import Any, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from triplab.errors import SchemaMismatchError
from triplab.store import paths

SCHEMA_VERSION = 1


# ─── Enums ────────────────────────────────────────


class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


TIME_SLOTS: tuple[TimeSlot, ...] = tuple(TimeSlot)

SLOT_LABELS: dict[TimeSlot, tuple[str, str]] = {
    TimeSlot.MORNING: ("Morning", "6am - 12pm"),
    TimeSlot.AFTERNOON: ("Afternoon", "12pm - 6pm"),
    TimeSlot.EVENING: ("Evening", "6pm - 10pm"),
    TimeSlot.NIGHT: ("Night", "10pm - 6am"),
}


class DragMode(str, Enum):
    SELECT = "select"
    DESELECT = "deselect"


class VoteDirection(IntEnum):
    DOWN = -1
    CLEAR = 0
    UP = 1


# ─── Documents ────────────────────────────────────


def _listish(value: Any) -> Any:
    """The store prunes empty lists and may hand back index-keyed dicts."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [value[k] for k in sorted(value, key=lambda k: int(k))]
    return value


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_document(self) -> dict:
        """Serialise to the stored (camelCase, JSON-safe) shape."""
        return self.model_dump(by_alias=True, mode="json")


class UserState(_Document):
    name: str = ""
    color: str = ""
    selected_dates: list[date] = Field(default_factory=list, alias="selectedDates")
    locked_dates: bool = Field(False, alias="lockedDates")
    joined_at: int = Field(0, alias="joinedAt")

    @field_validator("selected_dates", mode="before")
    @classmethod
    def _coerce_dates(cls, value: Any) -> Any:
        return _listish(value)

    @field_validator("selected_dates")
    @classmethod
    def _dedupe(cls, value: list[date]) -> list[date]:
        return list(dict.fromkeys(value))

    @property
    def date_set(self) -> frozenset[date]:
        return frozenset(self.selected_dates)


class Activity(_Document):
    id: str
    title: str
    description: str = ""
    created_by: str = Field(alias="createdBy")
    created_by_name: str = Field("", alias="createdByName")
    created_at: int = Field(0, alias="createdAt")
    # Absence means "no vote"; 0 is never stored.
    votes: dict[str, Literal[-1, 1]] = Field(default_factory=dict)

    @field_validator("votes", mode="before")
    @classmethod
    def _coerce_votes(cls, value: Any) -> Any:
        return {} if value is None else value


SlotActivities = dict[str, Activity]
DayActivities = dict[TimeSlot, SlotActivities]
ActivityTree = dict[date, DayActivities]

_ACTIVITY_TREE: TypeAdapter[ActivityTree] = TypeAdapter(ActivityTree)
_SELECTED_DATES: TypeAdapter[list[date]] = TypeAdapter(list[date])


class Trip(_Document):
    id: str
    destination: str
    shareable_code: str = Field(alias="shareableCode")
    created_by: str = Field(alias="createdBy")
    created_at: int = Field(0, alias="createdAt")
    users: dict[str, UserState] = Field(default_factory=dict)
    overlapped_dates: list[date] = Field(default_factory=list, alias="overlappedDates")
    all_users_locked: bool = Field(False, alias="allUsersLocked")
    activities: ActivityTree = Field(default_factory=dict)
    schema_version: int = Field(SCHEMA_VERSION, alias="schemaVersion")

    @field_validator("users", "activities", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("overlapped_dates", mode="before")
    @classmethod
    def _coerce_overlap(cls, value: Any) -> Any:
        return _listish(value)

    @field_validator("schema_version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value > SCHEMA_VERSION:
            raise ValueError(f"schema version {value} is newer than supported {SCHEMA_VERSION}")
        return value

    def user_ids(self) -> list[str]:
        """User ids in join order (``joinedAt``, ties broken by stored order)."""
        order = list(self.users)
        return sorted(order, key=lambda uid: (self.users[uid].joined_at, order.index(uid)))

    def is_member(self, user_id: str) -> bool:
        return user_id in self.users

    def summary_document(self) -> dict:
        """The trip document without its nested activity tree."""
        doc = self.to_document()
        doc.pop("activities", None)
        doc.pop("id", None)
        return doc


# ─── Parsing ──────────────────────────────────────


def _describe(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0]
    where = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{where}: {first.get('msg', 'invalid value')}"


def parse_trip(trip_id: str, raw: Any) -> Trip:
    """Validate a ``trips/{tripId}`` snapshot."""
    path = paths.trip(trip_id)
    if not isinstance(raw, dict):
        raise SchemaMismatchError(path, "expected an object")
    try:
        return Trip.model_validate({**raw, "id": trip_id})
    except pydantic.ValidationError as exc:
        raise SchemaMismatchError(path, _describe(exc)) from exc


def parse_user(raw: Any, path: str = "user") -> UserState:
    """Validate a ``trips/{tripId}/users/{userId}`` snapshot."""
    if not isinstance(raw, dict):
        raise SchemaMismatchError(path, "expected an object")
    try:
        return UserState.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise SchemaMismatchError(path, _describe(exc)) from exc


def parse_users(raw: Any, path: str = "users") -> dict[str, UserState]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SchemaMismatchError(path, "expected an object")
    return {uid: parse_user(value, f"{path}/{uid}") for uid, value in raw.items()}


def parse_selected_dates(raw: Any, path: str = "selectedDates") -> list[date]:
    """Validate a ``selectedDates`` snapshot; duplicates are dropped."""
    try:
        return list(dict.fromkeys(_SELECTED_DATES.validate_python(_listish(raw))))
    except pydantic.ValidationError as exc:
        raise SchemaMismatchError(path, _describe(exc)) from exc


def parse_activities(raw: Any, path: str = "activities") -> ActivityTree:
    """Validate an ``activities`` subtree (date -> slot -> id -> Activity)."""
    try:
        return _ACTIVITY_TREE.validate_python(raw or {})
    except pydantic.ValidationError as exc:
        raise SchemaMismatchError(path, _describe(exc)) from exc


def parse_activity(raw: Any, path: str = "activity") -> Optional[Activity]:
    if raw is None:
        return None
    try:
        return Activity.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise SchemaMismatchError(path, _describe(exc)) from exc


def iso(day: date) -> str:
    return day.isoformat()


def sorted_iso(dates) -> list[str]:
    """Chronologically sorted, de-duplicated ISO strings for storage."""
    return [d.isoformat() for d in sorted(set(dates))]
