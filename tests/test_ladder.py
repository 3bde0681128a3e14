"""Tests for pingpong_elo.ladder (players, match requests, history)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pingpong_elo.elo import FixedK
from pingpong_elo.ladder import (
    ACCEPTED,
    CANCELLED,
    DECLINED,
    PENDING,
    InvalidMatch,
    Ladder,
    LadderError,
    NotAllowed,
    PlayerNotFound,
    RequestAlreadyProcessed,
    RequestNotFound,
)

START = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Advances one minute every time it is read."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        return current


@pytest.fixture
def ladder() -> Ladder:
    lad = Ladder(clock=FakeClock())
    lad.register_player("alice", "Alice")
    lad.register_player("bob", "Bob")
    lad.register_player("cara", "Cara")
    return lad


# ── players ──────────────────────────────────────────────────────────

def test_new_player_defaults(ladder):
    alice = ladder.get_player("alice")
    assert alice.rating == 1000
    assert alice.rd == 300
    assert alice.matches_played == alice.wins == alice.losses == 0
    assert alice.last_played is None


def test_register_twice_keeps_existing_record(ladder):
    ladder.get_player("alice").rating = 1234
    again = ladder.register_player("alice", "Alice Again")
    assert again.rating == 1234
    assert again.display_name == "Alice"


def test_unknown_player(ladder):
    with pytest.raises(PlayerNotFound):
        ladder.get_player("nobody")


def test_leaderboard_sorted_and_limited(ladder):
    ladder.get_player("alice").rating = 900
    ladder.get_player("bob").rating = 1200
    ladder.get_player("cara").rating = 1050

    assert [p.uid for p in ladder.leaderboard()] == ["bob", "cara", "alice"]
    assert [p.uid for p in ladder.leaderboard(limit=2)] == ["bob", "cara"]


def test_search_players(ladder):
    assert [p.uid for p in ladder.search_players("BO")] == ["bob"]
    assert ladder.search_players("   ") == []


# ── single match requests ────────────────────────────────────────────

def test_request_is_pending_until_accepted(ladder):
    req = ladder.create_match_request("alice", "bob")
    assert req.status == PENDING
    assert not req.is_bulk
    assert ladder.get_player("alice").rating == 1000


def test_accept_updates_ratings_rd_and_counters(ladder):
    req = ladder.create_match_request("alice", "bob")
    match = ladder.accept_match_request(req.id, "bob")

    alice, bob = ladder.get_player("alice"), ladder.get_player("bob")
    assert (alice.rating, bob.rating) == (1015, 985)
    assert (alice.rd, bob.rd) == (295, 295)
    assert (alice.matches_played, alice.wins, alice.losses) == (1, 1, 0)
    assert (bob.matches_played, bob.wins, bob.losses) == (1, 0, 1)
    assert alice.last_played == bob.last_played is not None

    assert req.status == ACCEPTED
    assert match.winner_uid == "alice"
    assert (match.user_rating_before, match.user_rating_after) == (1000, 1015)
    assert (match.opponent_rating_before, match.opponent_rating_after) == (1000, 985)
    assert match.request_id == req.id
    assert not match.is_bulk


def test_fixed_k_ladder_leaves_rd_alone():
    lad = Ladder(policy=FixedK(), clock=FakeClock())
    lad.register_player("a", "A")
    lad.register_player("b", "B")
    req = lad.create_match_request("a", "b")
    lad.accept_match_request(req.id, "b")

    assert (lad.get_player("a").rating, lad.get_player("b").rating) == (1016, 984)
    assert lad.get_player("a").rd == 300


def test_only_opponent_can_accept(ladder):
    req = ladder.create_match_request("alice", "bob")
    with pytest.raises(NotAllowed, match="Only the opponent can accept this request"):
        ladder.accept_match_request(req.id, "alice")


def test_request_applies_at_most_once(ladder):
    req = ladder.create_match_request("alice", "bob")
    ladder.accept_match_request(req.id, "bob")
    with pytest.raises(RequestAlreadyProcessed):
        ladder.accept_match_request(req.id, "bob")
    assert ladder.get_player("alice").rating == 1015


def test_unknown_request(ladder):
    with pytest.raises(RequestNotFound, match="Match request not found"):
        ladder.accept_match_request(999, "bob")


def test_cannot_challenge_yourself(ladder):
    with pytest.raises(InvalidMatch):
        ladder.create_match_request("alice", "alice")


def test_request_against_unknown_player(ladder):
    with pytest.raises(PlayerNotFound):
        ladder.create_match_request("alice", "zed")


def test_decline_leaves_ratings(ladder):
    req = ladder.create_match_request("alice", "bob")
    ladder.decline_match_request(req.id, "bob")
    assert req.status == DECLINED
    assert ladder.get_player("bob").rating == 1000
    with pytest.raises(RequestAlreadyProcessed):
        ladder.accept_match_request(req.id, "bob")


def test_only_sender_can_cancel(ladder):
    req = ladder.create_match_request("alice", "bob")
    with pytest.raises(NotAllowed, match="Only the sender can cancel"):
        ladder.cancel_match_request(req.id, "bob")
    ladder.cancel_match_request(req.id, "alice")
    assert req.status == CANCELLED


def test_ratings_clamped_to_floor():
    lad = Ladder(clock=FakeClock())
    lad.register_player("a", "A")
    lad.register_player("b", "B")
    lad.get_player("a").rating = 100
    lad.get_player("b").rating = 100

    req = lad.create_match_request("b", "a")
    lad.accept_match_request(req.id, "a")
    assert lad.get_player("a").rating == 100


def test_errors_share_a_base_class(ladder):
    with pytest.raises(LadderError):
        ladder.get_request(42)


# ── bulk requests ────────────────────────────────────────────────────

def test_bulk_accept_replays_games(ladder):
    req = ladder.create_bulk_match_request("alice", "bob", 3, 1)
    match = ladder.accept_bulk_match_request(req.id, "bob")

    alice, bob = ladder.get_player("alice"), ladder.get_player("bob")
    assert (alice.rating, bob.rating) == (1024, 976)
    assert (alice.rd, bob.rd) == (300, 300)
    assert (alice.matches_played, alice.wins, alice.losses) == (4, 3, 1)
    assert (bob.matches_played, bob.wins, bob.losses) == (4, 1, 3)
    assert match.is_bulk
    assert (match.wins_a, match.wins_b) == (3, 1)
    assert match.winner_uid == "alice"


def test_bulk_split_session_has_no_winner(ladder):
    req = ladder.create_bulk_match_request("alice", "bob", 1, 1)
    match = ladder.accept_bulk_match_request(req.id, "bob")
    assert match.winner_uid is None
    assert (ladder.get_player("alice").rating, ladder.get_player("bob").rating) == (999, 1001)


def test_accept_match_request_routes_bulk(ladder):
    req = ladder.create_bulk_match_request("alice", "bob", 0, 2)
    match = ladder.accept_match_request(req.id, "bob")
    assert match.is_bulk
    assert match.winner_uid == "bob"


def test_bulk_accept_rejects_single_request(ladder):
    req = ladder.create_match_request("alice", "bob")
    with pytest.raises(InvalidMatch, match="This is not a bulk match request"):
        ladder.accept_bulk_match_request(req.id, "bob")


@pytest.mark.parametrize("wins, message", [
    ((0, 0), "Please enter at least one win"),
    ((-1, 2), "Wins cannot be negative"),
])
def test_bulk_request_validation(ladder, wins, message):
    with pytest.raises(InvalidMatch, match=message):
        ladder.create_bulk_match_request("alice", "bob", *wins)


# ── listings ─────────────────────────────────────────────────────────

def test_match_requests_newest_first(ladder):
    first = ladder.create_match_request("alice", "bob")
    second = ladder.create_match_request("cara", "alice")
    third = ladder.create_match_request("alice", "cara")

    lists = ladder.match_requests("alice")
    assert [r.id for r in lists.sent] == [third.id, first.id]
    assert [r.id for r in lists.received] == [second.id]
    assert [r.id for r in lists.all] == [third.id, second.id, first.id]


def test_pending_received_requests(ladder):
    r1 = ladder.create_match_request("alice", "bob")
    r2 = ladder.create_match_request("cara", "bob")
    ladder.decline_match_request(r1.id, "bob")
    assert [r.id for r in ladder.pending_received_requests("bob")] == [r2.id]


def test_matches_for_newest_first(ladder):
    r1 = ladder.create_match_request("alice", "bob")
    r2 = ladder.create_match_request("cara", "alice")
    ladder.accept_match_request(r1.id, "bob")
    ladder.accept_match_request(r2.id, "alice")

    history = ladder.matches_for("alice")
    assert [m.request_id for m in history] == [r2.id, r1.id]
    assert [m.request_id for m in ladder.matches_for("cara")] == [r2.id]


def test_player_stats(ladder):
    req = ladder.create_bulk_match_request("alice", "bob", 2, 3)
    ladder.accept_bulk_match_request(req.id, "bob")
    stats = ladder.player_stats("alice")
    assert (stats.wins, stats.losses) == (2, 3)
    assert stats.win_rate == pytest.approx(0.4)
    assert ladder.player_stats("cara").win_rate == 0.0


# ── inactivity ───────────────────────────────────────────────────────

def test_players_with_inactivity_does_not_compound(ladder):
    ladder.get_player("alice").last_played = START - timedelta(days=5)
    now = START + timedelta(hours=1)

    first = {p.uid: p.rd for p in ladder.players_with_inactivity(now)}
    second = {p.uid: p.rd for p in ladder.players_with_inactivity(now)}

    assert first["alice"] == 310
    assert first["bob"] == 300
    assert first == second
    assert ladder.get_player("alice").rd == 300
