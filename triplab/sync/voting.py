"""Vote tallies and the single-vote-per-user rule."""

from __future__ import annotations

from typing import Mapping

from triplab.errors import ValidationError
from triplab.state import VoteDirection


def _direction(value: int) -> VoteDirection:
    try:
        return VoteDirection(value)
    except ValueError:
        raise ValidationError(f"Vote must be -1, 0 or 1, got {value!r}") from None


def apply_vote(votes: Mapping[str, int], user_id: str, direction: int) -> dict[str, int]:
    """Return a new vote map with ``user_id``'s vote set or cleared.

    ``0`` removes the entry; ``-1``/``1`` set or overwrite it.
    """
    direction = _direction(direction)
    updated = dict(votes)
    if direction is VoteDirection.CLEAR:
        updated.pop(user_id, None)
    else:
        updated[user_id] = int(direction)
    return updated


def stored_value(direction: int) -> int | None:
    """Value to write at ``votes/{userId}``; ``None`` means delete."""
    direction = _direction(direction)
    return None if direction is VoteDirection.CLEAR else int(direction)


def resolve_click(current: int | None, clicked: int) -> int:
    """Toggle law: same direction un-votes, the opposite one overwrites."""
    clicked = _direction(clicked)
    if clicked is VoteDirection.CLEAR:
        return 0
    return 0 if (current or 0) == clicked else int(clicked)


def user_vote(votes: Mapping[str, int], user_id: str) -> int:
    return votes.get(user_id, 0)


def score(votes: Mapping[str, int]) -> int:
    return sum(votes.values())


def format_score(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)
