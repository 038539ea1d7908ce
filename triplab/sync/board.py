"""Activity board — proposals per day and time slot, with votes and conflicts.

Tree: ``activities/{date}/{slot}/{activityId}``. Ownership (only the creator
edits or deletes) is checked by the acting client against the stored
``createdBy``; nothing in the store enforces it.

A slot is in conflict while it holds more than one activity. Conflicts are
derived on every read and never stored.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Mapping, Optional, Union

from triplab.errors import NotFoundError, UnauthorizedError, ValidationError
from triplab.state import (
    TIME_SLOTS,
    Activity,
    ActivityTree,
    DayActivities,
    SlotActivities,
    TimeSlot,
    parse_activities,
    parse_activity,
)
from triplab.store import paths
from triplab.store.base import DocumentStore
from triplab.sync import voting

logger = logging.getLogger(__name__)

DateLike = Union[date, str]
SlotLike = Union[TimeSlot, str]


def _day(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r}") from None


def _slot(value: SlotLike) -> TimeSlot:
    try:
        return TimeSlot(value)
    except ValueError:
        raise ValidationError(f"Unknown time slot: {value!r}") from None


def _title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Activity title cannot be empty")
    return cleaned


def slot_has_conflict(activities: Optional[Mapping[str, Activity]]) -> bool:
    return len(activities or {}) > 1


def conflicts(tree: ActivityTree) -> dict[tuple[date, TimeSlot], int]:
    """Every (date, slot) currently in conflict, with its activity count."""
    return {
        (day, slot): len(items)
        for day, slots in tree.items()
        for slot, items in slots.items()
        if slot_has_conflict(items)
    }


def ranked(activities: Mapping[str, Activity]) -> list[Activity]:
    """Highest score first; equal scores keep stored order."""
    return sorted(activities.values(), key=lambda a: -voting.score(a.votes))


class ActivityBoard:
    def __init__(self, store: DocumentStore, trip_id: str) -> None:
        self.store = store
        self.trip_id = trip_id

    # ─── Reads ──────────────────────────────────────

    async def all(self) -> ActivityTree:
        path = paths.activities(self.trip_id)
        return parse_activities(await self.store.get(path), path)

    async def day(self, day: DateLike) -> DayActivities:
        day = _day(day)
        path = paths.activities(self.trip_id, day)
        raw = await self.store.get(path)
        if raw is None:
            return {}
        return parse_activities({day.isoformat(): raw}, path).get(day, {})

    async def slot(self, day: DateLike, slot: SlotLike) -> SlotActivities:
        return (await self.day(day)).get(_slot(slot), {})

    async def get(self, day: DateLike, slot: SlotLike, activity_id: str) -> Activity:
        path = paths.activity(self.trip_id, _day(day), _slot(slot), activity_id)
        activity = parse_activity(await self.store.get(path), path)
        if activity is None:
            raise NotFoundError("Activity not found")
        return activity

    async def conflict(self, day: DateLike, slot: SlotLike) -> bool:
        return slot_has_conflict(await self.slot(day, slot))

    async def day_summary(self, day: DateLike) -> dict[TimeSlot, dict]:
        """Per slot: activities (ranked) and the conflict flag."""
        activities = await self.day(day)
        return {
            slot: {
                "activities": ranked(activities.get(slot, {})),
                "conflict": slot_has_conflict(activities.get(slot)),
            }
            for slot in TIME_SLOTS
        }

    # ─── Writes ─────────────────────────────────────

    async def add(
        self,
        day: DateLike,
        slot: SlotLike,
        *,
        title: str,
        created_by: str,
        created_by_name: str = "",
        description: str = "",
    ) -> Activity:
        title = _title(title)
        day, slot = _day(day), _slot(slot)
        parent = paths.activities(self.trip_id, day, slot)
        activity = Activity(
            id=self.store.new_key(parent),
            title=title,
            description=(description or "").strip(),
            created_by=created_by,
            created_by_name=created_by_name or "Unknown",
            created_at=int(time.time() * 1000),
            votes={},
        )
        await self.store.set(paths.join(parent, activity.id), activity.to_document())
        logger.info("Activity %s added to %s/%s on trip %s", activity.id, day, slot.value, self.trip_id)
        return activity

    async def _owned(self, day: date, slot: TimeSlot, activity_id: str, acting_user: str) -> Activity:
        activity = await self.get(day, slot, activity_id)
        if activity.created_by != acting_user:
            raise UnauthorizedError("Only the person who proposed this activity can change it")
        return activity

    async def edit(
        self,
        day: DateLike,
        slot: SlotLike,
        activity_id: str,
        *,
        acting_user: str,
        title: str,
        description: Optional[str] = None,
    ) -> Activity:
        title = _title(title)
        day, slot = _day(day), _slot(slot)
        activity = await self._owned(day, slot, activity_id, acting_user)
        changes: dict[str, str] = {"title": title}
        if description is not None:
            changes["description"] = description.strip()
        await self.store.update(paths.activity(self.trip_id, day, slot, activity_id), changes)
        return activity.model_copy(update=changes)

    async def delete(self, day: DateLike, slot: SlotLike, activity_id: str, *, acting_user: str) -> Activity:
        """Remove an activity (creator only); returns what was removed."""
        day, slot = _day(day), _slot(slot)
        activity = await self._owned(day, slot, activity_id, acting_user)
        await self.store.remove(paths.activity(self.trip_id, day, slot, activity_id))
        logger.info("Activity %s deleted from %s/%s", activity_id, day, slot.value)
        return activity

    async def vote(self, day: DateLike, slot: SlotLike, activity_id: str, user_id: str, direction: int) -> int:
        """Set (``±1``) or clear (``0``) the user's vote; returns the stored direction."""
        value = voting.stored_value(direction)
        day, slot = _day(day), _slot(slot)
        await self.get(day, slot, activity_id)
        await self.store.set(paths.vote(self.trip_id, day, slot, activity_id, user_id), value)
        return value or 0

    async def click_vote(self, day: DateLike, slot: SlotLike, activity_id: str, user_id: str, clicked: int) -> int:
        """Apply an up/down click with the toggle law (same direction un-votes)."""
        activity = await self.get(day, slot, activity_id)
        direction = voting.resolve_click(voting.user_vote(activity.votes, user_id), clicked)
        return await self.vote(day, slot, activity_id, user_id, direction)
