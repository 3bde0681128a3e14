"""Rating Deviation (RD) bookkeeping.

RD measures how unsure we are about a rating. Playing shrinks it, sitting
out grows it. Both rules keep RD inside [MIN_RD, MAX_RD].
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Iterable, TypeVar

from pingpong_elo.defaults import (
    DEFAULT_RD,
    MAX_RD,
    MIN_RD,
    RD_DECAY_PER_MATCH,
    RD_INCREASE_PER_DAY,
)

ONE_DAY = timedelta(days=1)

P = TypeVar("P")


def clamp_rd(rd: float, min_rd: float = MIN_RD, max_rd: float = MAX_RD) -> float:
    return max(min_rd, min(max_rd, rd))


def rd_after_match(
    rd: float,
    decay: float = RD_DECAY_PER_MATCH,
    min_rd: float = MIN_RD,
    max_rd: float = MAX_RD,
) -> float:
    """RD after playing one match, win or lose."""
    return clamp_rd(rd - decay, min_rd, max_rd)


def days_inactive(last_played: datetime, now: datetime) -> int:
    """Whole days between *last_played* and *now*; never negative."""
    return max(0, (now - last_played) // ONE_DAY)


def rd_with_inactivity(
    current_rd: float,
    last_played: datetime | None,
    now: datetime | None = None,
    per_day: float = RD_INCREASE_PER_DAY,
    max_rd: float = MAX_RD,
) -> float:
    """Grow RD by *per_day* for each full day since *last_played*.

    Players who have never played keep their RD. Mixing naive and aware
    datetimes is the caller's problem, as with any datetime arithmetic.
    """
    if last_played is None:
        return current_rd

    if now is None:
        now = datetime.now(timezone.utc) if last_played.tzinfo else datetime.now()

    days = days_inactive(last_played, now)
    if days == 0:
        return current_rd

    return min(max_rd, current_rd + days * per_day)


def apply_inactivity_penalty(players: Iterable[P], now: datetime | None = None) -> list[P]:
    """Return copies of *players* (dataclasses with ``rd`` and
    ``last_played``) with RD grown for inactivity.

    Call this when loading players, not when updating ratings.
    """
    return [
        dataclasses.replace(
            player,
            rd=rd_with_inactivity(
                player.rd if player.rd is not None else DEFAULT_RD,
                player.last_played,
                now,
            ),
        )
        for player in players
    ]
