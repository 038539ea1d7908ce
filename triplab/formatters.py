"""Plain-text renderings of trip state for the command line."""

from __future__ import annotations

from triplab.codes import shareable_url
from triplab.state import SLOT_LABELS, TIME_SLOTS, Trip
from triplab.sync import voting
from triplab.sync.board import ranked, slot_has_conflict
from triplab.sync.overlap import date_range_description, overlap_status, unlocked_user_names


def format_trip_status(trip: Trip, viewer_id: str, site_url: str) -> str:
    lines = [
        f"✈️  {trip.destination}",
        f"Code: {trip.shareable_code}  ({shareable_url(trip.shareable_code, site_url)})",
        "",
        "Travelers:",
    ]
    for uid in trip.user_ids():
        user = trip.users[uid]
        marker = "🔒" if user.locked_dates else "✏️ "
        you = " (you)" if uid == viewer_id else ""
        lines.append(f"  {marker} {user.name}{you}: {date_range_description(user.selected_dates)}")

    status = overlap_status(trip.users)
    lines.append("")
    if trip.all_users_locked and trip.overlapped_dates:
        lines.append(f"Everyone's available: {date_range_description(trip.overlapped_dates)}")
    elif status["all_locked"]:
        lines.append("Everyone has locked in, but there are no dates that work for all.")
    else:
        waiting = ", ".join(unlocked_user_names(trip.users))
        lines.append(f"Waiting on: {waiting}")
    return "\n".join(lines)


def format_day_plan(trip: Trip, viewer_id: str) -> str:
    """Every overlapping day with its slots, ranked activities and conflicts."""
    if not (trip.all_users_locked and trip.overlapped_dates):
        return "No overlapping dates to plan yet."
    lines: list[str] = []
    for index, day in enumerate(sorted(trip.overlapped_dates), start=1):
        lines.append(f"Day {index} — {day:%A, %B} {day.day}")
        slots = trip.activities.get(day, {})
        for slot in TIME_SLOTS:
            label, hours = SLOT_LABELS[slot]
            items = slots.get(slot, {})
            flag = "  ⚠️ Multiple activities in this time slot" if slot_has_conflict(items) else ""
            lines.append(f"  {label} ({hours}){flag}")
            for activity in ranked(items):
                mine = voting.user_vote(activity.votes, viewer_id)
                vote_mark = {1: " ▲", -1: " ▼"}.get(mine, "")
                lines.append(
                    f"    [{voting.format_score(voting.score(activity.votes))}]{vote_mark} "
                    f"{activity.title} — {activity.created_by_name} ({activity.id})"
                )
        lines.append("")
    return "\n".join(lines).rstrip()
