"""Entry point — configure logging, open the durable store, run one planning command."""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import os
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import typer
from dotenv import load_dotenv

from triplab.state import TimeSlot

app = typer.Typer(help="Collaborative trip planner: pick dates together, lock them in, vote on activities.",
                  no_args_is_help=True)

logger = logging.getLogger(__name__)


class VoteChoice(str, Enum):
    UP = "up"
    DOWN = "down"


def setup_logging(level: str) -> None:
    os.makedirs("data/logs", exist_ok=True)

    log_format = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Console handler
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(console)

    # File handler (rotating, persistent)
    file_handler = logging.handlers.RotatingFileHandler(
        "data/logs/triplab.log", maxBytes=5_000_000, backupCount=3
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(file_handler)


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"{value!r} is not a YYYY-MM-DD date") from None


def _run(ctx: typer.Context, command: Callable[..., Awaitable[None]]) -> None:
    """Open the store and a session for the caller, run ``command``, report notices."""
    from triplab.session import Session
    from triplab.store.sql import SqlDocumentStore

    settings = ctx.obj["settings"]

    async def _start() -> list[str]:
        os.makedirs("data", exist_ok=True)
        store = SqlDocumentStore(settings.DATABASE_URL)
        await store.init_db()
        logger.info("Document store ready.")
        try:
            async with Session(store, ctx.obj["user_id"], ctx.obj["name"], settings=settings) as session:
                await command(session)
                return session.notifier.errors()
        finally:
            await store.close()

    errors = asyncio.run(_start())
    for message in errors:
        typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    if errors:
        raise typer.Exit(1)


@app.callback()
def cli(
    ctx: typer.Context,
    user_id: str = typer.Option(..., "--user-id", envvar="TRIPLAB_USER_ID", help="Your traveler id"),
    name: str = typer.Option("", "--name", envvar="TRIPLAB_USER_NAME", help="Your display name"),
) -> None:
    load_dotenv()

    from triplab.config.settings import get_settings
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    ctx.obj = {"settings": settings, "user_id": user_id, "name": name or user_id}


@app.command()
def create(ctx: typer.Context, destination: str = typer.Argument(..., help="Where the trip goes")) -> None:
    """Create a trip and print its shareable code."""

    async def _command(session) -> None:
        created = await session.create_trip(destination)
        if created:
            typer.echo(f"Trip {created.trip_id} created. Share code: {created.shareable_code}")

    _run(ctx, _command)


@app.command()
def join(ctx: typer.Context, code: str = typer.Argument(..., help="Six-character trip code")) -> None:
    """Join a trip by its shareable code."""

    async def _command(session) -> None:
        joined = await session.join_trip(code)
        if joined:
            typer.echo(("Already in" if joined.already_joined else "Joined") + f" trip {joined.trip_id}")

    _run(ctx, _command)


@app.command()
def dates(
    ctx: typer.Context,
    trip_id: str,
    days: List[str] = typer.Argument(..., help="Dates to toggle (YYYY-MM-DD)"),
) -> None:
    """Toggle the dates you are available."""
    parsed = [_parse_day(day) for day in days]

    async def _command(session) -> None:
        sync = await session.availability(trip_id)
        if sync is None:
            return
        if session.is_locked(trip_id):
            session.notifier.error("Your dates are locked. Unlock them first.")
            return
        for day in parsed:
            sync.toggle(day)
        await sync.flush()
        typer.echo("Selected: " + (", ".join(d.isoformat() for d in sorted(sync.selected_dates)) or "none"))

    _run(ctx, _command)


def _lock_command(ctx: typer.Context, trip_id: str, locked: bool) -> None:
    async def _command(session) -> None:
        await session.availability(trip_id)
        outcome = await session.set_locked(trip_id, locked)
        if outcome:
            typer.echo(f"{'Locked' if locked else 'Unlocked'}. Everyone locked: {outcome.all_users_locked}")
            if outcome.overlapped_dates is not None:
                typer.echo("Overlap: " + (", ".join(d.isoformat() for d in outcome.overlapped_dates) or "none"))

    _run(ctx, _command)


@app.command()
def lock(ctx: typer.Context, trip_id: str) -> None:
    """Lock in your dates."""
    _lock_command(ctx, trip_id, True)


@app.command()
def unlock(ctx: typer.Context, trip_id: str) -> None:
    """Unlock your dates to edit them again."""
    _lock_command(ctx, trip_id, False)


@app.command()
def status(ctx: typer.Context, trip_id: str) -> None:
    """Show travelers, their dates and whether everyone agrees."""
    from triplab.formatters import format_trip_status

    async def _command(session) -> None:
        trip = await session.run(session.trips.get_member_trip, trip_id, session.user_id)
        if trip:
            typer.echo(format_trip_status(trip, session.user_id, session.settings.SITE_URL))

    _run(ctx, _command)


@app.command()
def plan(ctx: typer.Context, trip_id: str) -> None:
    """Show the day-by-day activity board for the agreed dates."""
    from triplab.formatters import format_day_plan

    async def _command(session) -> None:
        trip = await session.run(session.trips.get_member_trip, trip_id, session.user_id)
        if trip:
            typer.echo(format_day_plan(trip, session.user_id))

    _run(ctx, _command)


@app.command("add-activity")
def add_activity(
    ctx: typer.Context,
    trip_id: str,
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    slot: TimeSlot = typer.Argument(...),
    title: str = typer.Argument(...),
    description: str = typer.Option("", "--description", "-d"),
) -> None:
    """Propose an activity for a day and time slot."""
    parsed = _parse_day(day)

    async def _command(session) -> None:
        activity = await session.add_activity(trip_id, parsed, slot, title, description)
        if activity:
            typer.echo(f"Added {activity.title} ({activity.id})")

    _run(ctx, _command)


@app.command()
def vote(
    ctx: typer.Context,
    trip_id: str,
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    slot: TimeSlot = typer.Argument(...),
    activity_id: str = typer.Argument(...),
    direction: VoteChoice = typer.Argument(...),
) -> None:
    """Up- or down-vote an activity. Voting the same way twice clears your vote."""
    parsed = _parse_day(day)
    clicked = 1 if direction is VoteChoice.UP else -1

    async def _command(session) -> None:
        result = await session.vote(trip_id, parsed, slot, activity_id, clicked)
        if result is not None:
            typer.echo({1: "Upvoted", -1: "Downvoted", 0: "Vote cleared"}[result])

    _run(ctx, _command)


@app.command()
def ask(
    ctx: typer.Context,
    trip_id: str,
    question: str,
    model: Optional[str] = typer.Option(None, "--model", help="Model id understood by the chat proxy"),
) -> None:
    """Ask the planning assistant about a trip."""
    from triplab.chat import ChatClient

    async def _command(session) -> None:
        trip = await session.run(session.trips.get_member_trip, trip_id, session.user_id)
        if not trip:
            return
        client = ChatClient(session.settings.CHAT_PROXY_URL, timeout=session.settings.CHAT_TIMEOUT)
        if trip.all_users_locked and trip.overlapped_dates:
            days = trip.overlapped_dates
        else:
            days = trip.users[session.user_id].selected_dates
        answer = await session.run(client.plan, trip.destination, days, [], question, model)
        if answer:
            typer.echo(answer)

    _run(ctx, _command)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
