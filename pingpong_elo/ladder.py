"""In-memory leaderboard: players, match requests, and match history.

A :class:`Ladder` is the context object callers pass around. The winner of
a game files a request; nothing changes until the opponent accepts it.
Only pending requests can be accepted, declined, or cancelled, so a
request's rating change is applied at most once.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from pingpong_elo.defaults import (
    DEFAULT_RATING,
    DEFAULT_RD,
    FIXED_K_FACTOR,
    LEADERBOARD_SIZE,
    MAX_RATING,
    MIN_RATING,
)
from pingpong_elo.elo import RatingPolicy, RdScaled, process_bulk_match_results, update_ratings
from pingpong_elo.rd import apply_inactivity_penalty


# ── Errors ───────────────────────────────────────────────────────────

class LadderError(Exception):
    """Base class for rejected ladder operations."""


class PlayerNotFound(LadderError):
    pass


class RequestNotFound(LadderError):
    pass


class NotAllowed(LadderError):
    pass


class RequestAlreadyProcessed(LadderError):
    pass


class InvalidMatch(LadderError):
    pass


# ── Records ──────────────────────────────────────────────────────────

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"
CANCELLED = "cancelled"


@dataclass
class PlayerRecord:
    uid: str
    display_name: str
    rating: float = DEFAULT_RATING
    rd: float | None = DEFAULT_RD  # None when RD is not tracked
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    last_played: datetime | None = None


@dataclass
class MatchRequest:
    """A reported result waiting for the opponent's confirmation.

    For a single match the sender is the winner. For a bulk request the
    win counts say who won how many games.
    """

    id: int
    sender_uid: str
    opponent_uid: str
    created_at: datetime
    updated_at: datetime
    status: str = PENDING
    is_bulk: bool = False
    sender_wins: int = 1
    opponent_wins: int = 0


@dataclass
class MatchRecord:
    """A confirmed match (or batch of games) as shown in history."""

    id: int
    user_uid: str
    opponent_uid: str
    winner_uid: str | None  # None when a bulk batch is tied
    user_rating_before: float
    user_rating_after: float
    opponent_rating_before: float
    opponent_rating_after: float
    played_at: datetime
    request_id: int | None = None
    wins_a: int | None = None
    wins_b: int | None = None
    is_bulk: bool = False


@dataclass
class PlayerStats:
    wins: int
    losses: int

    @property
    def win_rate(self) -> float:
        total = self.wins + self.losses
        return self.wins / total if total else 0.0


@dataclass
class RequestLists:
    sent: list[MatchRequest] = field(default_factory=list)
    received: list[MatchRequest] = field(default_factory=list)

    @property
    def all(self) -> list[MatchRequest]:
        return _newest_first(self.received + self.sent)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(requests: list[MatchRequest]) -> list[MatchRequest]:
    return sorted(requests, key=lambda r: (r.created_at, r.id), reverse=True)


def clamp_rating(rating: float) -> float:
    return max(MIN_RATING, min(MAX_RATING, rating))


# ── Ladder ───────────────────────────────────────────────────────────

class Ladder:
    """Players plus the request/confirm workflow that moves their ratings."""

    def __init__(
        self,
        policy: RatingPolicy | None = None,
        bulk_k: int = FIXED_K_FACTOR,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.policy = policy or RdScaled()
        self.bulk_k = bulk_k
        self.clock = clock
        self._players: dict[str, PlayerRecord] = {}
        self._requests: dict[int, MatchRequest] = {}
        self._matches: list[MatchRecord] = []
        self._request_ids = itertools.count(1)
        self._match_ids = itertools.count(1)

    # ── players ─────────────────────────────────────────────────────

    def register_player(self, uid: str, display_name: str) -> PlayerRecord:
        """Add a player with default rating and RD. Re-registering is a no-op."""
        if uid not in self._players:
            self._players[uid] = PlayerRecord(uid=uid, display_name=display_name)
        return self._players[uid]

    def get_player(self, uid: str) -> PlayerRecord:
        try:
            return self._players[uid]
        except KeyError:
            raise PlayerNotFound(f"Player not found: {uid}") from None

    def leaderboard(self, limit: int = LEADERBOARD_SIZE) -> list[PlayerRecord]:
        """Players by rating, highest first."""
        ranked = sorted(self._players.values(), key=lambda p: p.rating, reverse=True)
        return ranked[:limit]

    def search_players(self, term: str) -> list[PlayerRecord]:
        needle = term.strip().lower()
        if not needle:
            return []
        return [
            p for p in self._players.values()
            if needle in p.display_name.lower() or needle in p.uid.lower()
        ]

    def player_stats(self, uid: str) -> PlayerStats:
        player = self.get_player(uid)
        return PlayerStats(wins=player.wins, losses=player.losses)

    def players_with_inactivity(self, now: datetime | None = None) -> list[PlayerRecord]:
        """Copies of every player with RD grown for the days they sat out.

        Stored records are left alone, so calling this repeatedly never
        compounds the penalty.
        """
        return apply_inactivity_penalty(list(self._players.values()), now or self.clock())

    # ── requests ────────────────────────────────────────────────────

    def _new_request(self, sender_uid: str, opponent_uid: str, **kwargs) -> MatchRequest:
        self.get_player(sender_uid)
        self.get_player(opponent_uid)
        if sender_uid == opponent_uid:
            raise InvalidMatch("You cannot play against yourself")

        now = self.clock()
        request = MatchRequest(
            id=next(self._request_ids),
            sender_uid=sender_uid,
            opponent_uid=opponent_uid,
            created_at=now,
            updated_at=now,
            **kwargs,
        )
        self._requests[request.id] = request
        return request

    def create_match_request(self, sender_uid: str, opponent_uid: str) -> MatchRequest:
        """The sender reports beating the opponent once."""
        return self._new_request(sender_uid, opponent_uid)

    def create_bulk_match_request(
        self,
        sender_uid: str,
        opponent_uid: str,
        sender_wins: int,
        opponent_wins: int,
    ) -> MatchRequest:
        """The sender reports a session of several games."""
        if sender_wins < 0 or opponent_wins < 0:
            raise InvalidMatch("Wins cannot be negative")
        if sender_wins == 0 and opponent_wins == 0:
            raise InvalidMatch("Please enter at least one win")
        return self._new_request(
            sender_uid, opponent_uid,
            is_bulk=True, sender_wins=sender_wins, opponent_wins=opponent_wins,
        )

    def get_request(self, request_id: int) -> MatchRequest:
        try:
            return self._requests[request_id]
        except KeyError:
            raise RequestNotFound("Match request not found") from None

    def _pending_request(self, request_id: int, uid: str, role: str, verb: str) -> MatchRequest:
        request = self.get_request(request_id)
        owner = request.opponent_uid if role == "opponent" else request.sender_uid
        if owner != uid:
            raise NotAllowed(f"Only the {role} can {verb} this request")
        if request.status != PENDING:
            raise RequestAlreadyProcessed("This request has already been processed")
        return request

    def _close(self, request: MatchRequest, status: str) -> None:
        request.status = status
        request.updated_at = self.clock()

    def accept_match_request(self, request_id: int, opponent_uid: str) -> MatchRecord:
        """Opponent confirms the loss; both ratings and RDs move."""
        request = self._pending_request(request_id, opponent_uid, "opponent", "accept")
        if request.is_bulk:
            return self.accept_bulk_match_request(request_id, opponent_uid)

        winner = self.get_player(request.sender_uid)
        loser = self.get_player(request.opponent_uid)
        update = update_ratings(
            winner.rating, loser.rating, winner.rd, loser.rd, policy=self.policy,
        )

        now = self.clock()
        winner_before, loser_before = winner.rating, loser.rating
        winner.rating = clamp_rating(update.winner_new_rating)
        loser.rating = clamp_rating(update.loser_new_rating)
        if update.winner_new_rd is not None:
            winner.rd = update.winner_new_rd
            loser.rd = update.loser_new_rd
        winner.matches_played += 1
        winner.wins += 1
        loser.matches_played += 1
        loser.losses += 1
        winner.last_played = loser.last_played = now

        self._close(request, ACCEPTED)
        return self._record_match(
            request,
            winner_uid=winner.uid,
            user_rating_before=winner_before,
            user_rating_after=winner.rating,
            opponent_rating_before=loser_before,
            opponent_rating_after=loser.rating,
        )

    def accept_bulk_match_request(self, request_id: int, opponent_uid: str) -> MatchRecord:
        """Opponent confirms a session; ratings replay with a fixed K, RD untouched."""
        request = self._pending_request(request_id, opponent_uid, "opponent", "accept")
        if not request.is_bulk:
            raise InvalidMatch("This is not a bulk match request")

        sender = self.get_player(request.sender_uid)
        opponent = self.get_player(request.opponent_uid)
        result = process_bulk_match_results(
            sender.rating, opponent.rating,
            request.sender_wins, request.opponent_wins,
            k=self.bulk_k,
        )

        now = self.clock()
        total = request.sender_wins + request.opponent_wins
        sender_before, opponent_before = sender.rating, opponent.rating
        sender.rating = clamp_rating(result.new_rating_a)
        opponent.rating = clamp_rating(result.new_rating_b)
        sender.matches_played += total
        sender.wins += request.sender_wins
        sender.losses += request.opponent_wins
        opponent.matches_played += total
        opponent.wins += request.opponent_wins
        opponent.losses += request.sender_wins
        sender.last_played = opponent.last_played = now

        if request.sender_wins > request.opponent_wins:
            winner_uid: str | None = sender.uid
        elif request.opponent_wins > request.sender_wins:
            winner_uid = opponent.uid
        else:
            winner_uid = None

        self._close(request, ACCEPTED)
        return self._record_match(
            request,
            winner_uid=winner_uid,
            user_rating_before=sender_before,
            user_rating_after=sender.rating,
            opponent_rating_before=opponent_before,
            opponent_rating_after=opponent.rating,
            wins_a=request.sender_wins,
            wins_b=request.opponent_wins,
            is_bulk=True,
        )

    def decline_match_request(self, request_id: int, opponent_uid: str) -> None:
        request = self._pending_request(request_id, opponent_uid, "opponent", "decline")
        self._close(request, DECLINED)

    def cancel_match_request(self, request_id: int, sender_uid: str) -> None:
        request = self._pending_request(request_id, sender_uid, "sender", "cancel")
        self._close(request, CANCELLED)

    def match_requests(self, uid: str) -> RequestLists:
        """Requests sent and received by *uid*, newest first."""
        sent = [r for r in self._requests.values() if r.sender_uid == uid]
        received = [r for r in self._requests.values() if r.opponent_uid == uid]
        return RequestLists(sent=_newest_first(sent), received=_newest_first(received))

    def pending_received_requests(self, uid: str) -> list[MatchRequest]:
        return [r for r in self.match_requests(uid).received if r.status == PENDING]

    # ── history ─────────────────────────────────────────────────────

    def _record_match(self, request: MatchRequest, **fields) -> MatchRecord:
        match = MatchRecord(
            id=next(self._match_ids),
            user_uid=request.sender_uid,
            opponent_uid=request.opponent_uid,
            played_at=request.updated_at,
            request_id=request.id,
            **fields,
        )
        self._matches.append(match)
        return match

    def matches_for(self, uid: str) -> list[MatchRecord]:
        """Matches *uid* took part in, newest first."""
        mine = [m for m in self._matches if uid in (m.user_uid, m.opponent_uid)]
        return sorted(mine, key=lambda m: (m.played_at, m.id), reverse=True)
