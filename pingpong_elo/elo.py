"""Elo rating engine: expected scores, K-factor policies, match updates.

Every function here is pure. Ratings are carried as floats internally and
rounded only when reported.

Uses the standard Elo formula:
  E_a = 1 / (1 + 10^((R_b - R_a) / 400))
  R_a' = R_a + K * (S_a - E_a)

where S_a is 1 for a win and 0 for a loss (ping-pong has no draws).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Union

from pingpong_elo.defaults import (
    BASE_K_FACTOR,
    DEFAULT_RD,
    FIXED_K_FACTOR,
    MAX_RD,
    MIN_RD,
    RD_DECAY_PER_MATCH,
    RD_K_DIVISOR,
)
from pingpong_elo.rd import rd_after_match


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 → 3, -2.5 → -2)."""
    whole = math.floor(value)
    return whole + 1 if value - whole >= 0.5 else whole


# ── Rating policies ──────────────────────────────────────────────────

@dataclass(frozen=True)
class FixedK:
    """Constant K for every player; RD is not tracked."""

    k: int = FIXED_K_FACTOR


@dataclass(frozen=True)
class RdScaled:
    """K scales with each player's RD; RD decays after every match."""

    base_k: int = BASE_K_FACTOR
    decay: float = RD_DECAY_PER_MATCH
    min_rd: float = MIN_RD
    max_rd: float = MAX_RD


RatingPolicy = Union[FixedK, RdScaled]

DEFAULT_POLICY: RatingPolicy = RdScaled()


# ── Structured results ───────────────────────────────────────────────

@dataclass
class MatchUpdate:
    """Outcome of a single match update."""

    winner_new_rating: int
    loser_new_rating: int
    rating_change: int  # winner's gain, rounded from the unrounded delta
    winner_k: int
    loser_k: int
    winner_new_rd: float | None = None  # None when RD is not tracked
    loser_new_rd: float | None = None


@dataclass
class BulkResult:
    """Final ratings after replaying a batch of games between A and B."""

    new_rating_a: int
    new_rating_b: int
    change_a: int
    change_b: int
    # Unrounded (rA, rB) after each game, starting with the inputs
    trajectory: list[tuple[float, float]] = field(default_factory=list)

    @property
    def games(self) -> int:
        return len(self.trajectory) - 1


# ── Core formulas ────────────────────────────────────────────────────

def expected_score(rating_self: float, rating_opponent: float) -> float:
    """Probability that *rating_self* beats *rating_opponent*.

    A 400-point gap means 10:1 odds.
    """
    try:
        odds_against = 10.0 ** ((rating_opponent - rating_self) / 400.0)
    except OverflowError:
        return 0.0  # gap beyond float range, the underdog cannot win
    return 1.0 / (1.0 + odds_against)


def win_probability(rating_self: float, rating_opponent: float) -> int:
    """Expected score as a whole percentage (0–100)."""
    return round_half_up(expected_score(rating_self, rating_opponent) * 100)


def dynamic_k_factor(rd: float, base_k: int = BASE_K_FACTOR) -> int:
    """K = base_k × (rd / 200), so roughly 5 at RD 50 and 35 at RD 350."""
    return round_half_up(base_k * (rd / RD_K_DIVISOR))


def k_factor(policy: RatingPolicy, rd: float | None = None) -> int:
    if isinstance(policy, FixedK):
        return policy.k
    return dynamic_k_factor(DEFAULT_RD if rd is None else rd, policy.base_k)


def _play(
    winner_rating: float,
    loser_rating: float,
    winner_k: float,
    loser_k: float,
) -> tuple[float, float]:
    """Unrounded ratings after the winner beats the loser once."""
    winner_expected = expected_score(winner_rating, loser_rating)
    loser_expected = expected_score(loser_rating, winner_rating)
    return (
        winner_rating + winner_k * (1.0 - winner_expected),
        loser_rating + loser_k * (0.0 - loser_expected),
    )


# ── Single match ─────────────────────────────────────────────────────

def update_ratings(
    winner_rating: float,
    loser_rating: float,
    winner_rd: float | None = None,
    loser_rd: float | None = None,
    policy: RatingPolicy = DEFAULT_POLICY,
) -> MatchUpdate:
    """Compute both players' ratings after one match.

    Under :class:`RdScaled` each side gets its own K from its RD (missing
    RDs count as a new player's) and both RDs decay, win or lose. Under
    :class:`FixedK` both sides share the same K and no RD is returned.
    """
    winner_k = k_factor(policy, winner_rd)
    loser_k = k_factor(policy, loser_rd)

    winner_new, loser_new = _play(winner_rating, loser_rating, winner_k, loser_k)

    update = MatchUpdate(
        winner_new_rating=round_half_up(winner_new),
        loser_new_rating=round_half_up(loser_new),
        rating_change=round_half_up(winner_new - winner_rating),
        winner_k=winner_k,
        loser_k=loser_k,
    )

    if isinstance(policy, RdScaled):
        update.winner_new_rd = rd_after_match(
            DEFAULT_RD if winner_rd is None else winner_rd,
            decay=policy.decay, min_rd=policy.min_rd, max_rd=policy.max_rd,
        )
        update.loser_new_rd = rd_after_match(
            DEFAULT_RD if loser_rd is None else loser_rd,
            decay=policy.decay, min_rd=policy.min_rd, max_rd=policy.max_rd,
        )

    return update


# ── Bulk matches ─────────────────────────────────────────────────────

def replay_games(
    rating_a: float,
    rating_b: float,
    winners: Iterable[str],
    k: int = FIXED_K_FACTOR,
) -> BulkResult:
    """Replay games between A and B in the given order with a fixed K.

    *winners* is a sequence of ``"a"`` / ``"b"``. Each game starts from the
    previous game's unrounded ratings, so the order changes the result.
    """
    ra, rb = float(rating_a), float(rating_b)
    trajectory = [(ra, rb)]

    for winner in winners:
        if winner == "a":
            ra, rb = _play(ra, rb, k, k)
        elif winner == "b":
            rb, ra = _play(rb, ra, k, k)
        else:
            raise ValueError(f"winner must be 'a' or 'b', got {winner!r}")
        trajectory.append((ra, rb))

    new_a = round_half_up(ra)
    new_b = round_half_up(rb)
    return BulkResult(
        new_rating_a=new_a,
        new_rating_b=new_b,
        change_a=new_a - round_half_up(rating_a),
        change_b=new_b - round_half_up(rating_b),
        trajectory=trajectory,
    )


def process_bulk_match_results(
    rating_a: float,
    rating_b: float,
    wins_a: int,
    wins_b: int,
    k: int = FIXED_K_FACTOR,
) -> BulkResult:
    """Apply a batch of games played in one sitting.

    All of A's wins are replayed before any of B's, whatever order the
    games were actually played in. RD is left alone.
    """
    return replay_games(rating_a, rating_b, ["a"] * wins_a + ["b"] * wins_b, k=k)
