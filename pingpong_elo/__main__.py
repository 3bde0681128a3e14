"""CLI entry point: python -m pingpong_elo {expected,match,bulk,inactivity,chart,leaderboard}."""

from __future__ import annotations

import argparse
import math
import sys
from datetime import datetime, timedelta

from pingpong_elo.chart import make_leaderboard_chart, make_trajectory_chart
from pingpong_elo.defaults import FIXED_K_FACTOR
from pingpong_elo.elo import (
    FixedK,
    RdScaled,
    expected_score,
    process_bulk_match_results,
    update_ratings,
    win_probability,
)
from pingpong_elo.ladder import PlayerRecord
from pingpong_elo.rd import rd_with_inactivity


def _fail(message: str) -> None:
    print(message, file=sys.stderr)
    sys.exit(1)


def _check_ratings(*ratings: float) -> None:
    for r in ratings:
        if not math.isfinite(r):
            _fail(f"Ratings must be finite numbers, got {r}.")


def _check_wins(wins_a: int, wins_b: int) -> None:
    if wins_a < 0 or wins_b < 0:
        _fail("Wins cannot be negative.")
    if wins_a == 0 and wins_b == 0:
        _fail("Please enter at least one win.")


# ── expected ─────────────────────────────────────────────────────────

def cmd_expected(args: argparse.Namespace) -> None:
    """Print the expected score of RATING against OPPONENT."""
    _check_ratings(args.rating, args.opponent)
    score = expected_score(args.rating, args.opponent)
    pct = win_probability(args.rating, args.opponent)
    print(f"Expected score: {score:.4f}")
    print(f"Win probability: {pct}%")


# ── match ────────────────────────────────────────────────────────────

def cmd_match(args: argparse.Namespace) -> None:
    """Print both players' ratings after the winner beats the loser once."""
    _check_ratings(args.winner, args.loser)
    if args.fixed_k is not None and (args.winner_rd is not None or args.loser_rd is not None):
        _fail("--winner-rd/--loser-rd have no effect with --fixed-k; RD is not tracked under a fixed K.")
    policy = FixedK(args.fixed_k) if args.fixed_k is not None else RdScaled()
    update = update_ratings(
        args.winner, args.loser,
        winner_rd=args.winner_rd, loser_rd=args.loser_rd,
        policy=policy,
    )

    print(f"Winner: {args.winner:.0f} → {update.winner_new_rating}  (K={update.winner_k})")
    print(f"Loser:  {args.loser:.0f} → {update.loser_new_rating}  (K={update.loser_k})")
    print(f"Change: {update.rating_change:+d}")
    if update.winner_new_rd is not None:
        print(f"RD:     winner {update.winner_new_rd:g}, loser {update.loser_new_rd:g}")


# ── bulk ─────────────────────────────────────────────────────────────

def cmd_bulk(args: argparse.Namespace) -> None:
    """Replay a session of games and print the final ratings."""
    _check_ratings(args.rating_a, args.rating_b)
    _check_wins(args.wins_a, args.wins_b)
    result = process_bulk_match_results(
        args.rating_a, args.rating_b, args.wins_a, args.wins_b, k=args.k,
    )

    if args.verbose:
        winners = ["A"] * args.wins_a + ["B"] * args.wins_b
        for game, (winner, (ra, rb)) in enumerate(zip(winners, result.trajectory[1:]), 1):
            print(f"  game {game:3d}: {winner} wins → A {ra:8.2f}  B {rb:8.2f}")

    print(f"A: {result.new_rating_a}  ({result.change_a:+d})")
    print(f"B: {result.new_rating_b}  ({result.change_b:+d})")


# ── inactivity ───────────────────────────────────────────────────────

def cmd_inactivity(args: argparse.Namespace) -> None:
    """Print RD after DAYS without a match."""
    if args.days < 0:
        _fail("Days cannot be negative.")
    now = datetime.now()
    try:
        last_played = now - timedelta(days=args.days)
    except OverflowError:
        _fail(f"Days out of range: {args.days}.")
    new_rd = rd_with_inactivity(args.rd, last_played, now)
    print(f"RD after {args.days} idle day(s): {new_rd:g}")


# ── chart ────────────────────────────────────────────────────────────

def cmd_chart(args: argparse.Namespace) -> None:
    """Chart both ratings across a bulk replay."""
    _check_ratings(args.rating_a, args.rating_b)
    _check_wins(args.wins_a, args.wins_b)
    result = process_bulk_match_results(
        args.rating_a, args.rating_b, args.wins_a, args.wins_b, k=args.k,
    )
    out = args.output or "bulk_match.png"
    make_trajectory_chart(result, output_path=out)
    print(f"Chart saved to {out}")


# ── leaderboard ──────────────────────────────────────────────────────

def _parse_entry(entry: str) -> PlayerRecord:
    """NAME=RATING or NAME=RATING/RD."""
    name, sep, value = entry.rpartition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=RATING[/RD], got {entry!r}")
    rating, _, rd = value.partition("/")
    try:
        return PlayerRecord(
            uid=name,
            display_name=name,
            rating=float(rating),
            rd=float(rd) if rd else None,
        )
    except ValueError:
        raise argparse.ArgumentTypeError(f"rating and RD must be numbers, got {value!r}") from None


def cmd_leaderboard(args: argparse.Namespace) -> None:
    """Print players ranked by rating, optionally as a chart."""
    players: list[PlayerRecord] = args.entries
    _check_ratings(*(p.rating for p in players))

    print("\nLeaderboard")
    print("=" * 40)
    ranked = sorted(players, key=lambda p: p.rating, reverse=True)
    for rank, player in enumerate(ranked, 1):
        rd = f" ± {player.rd:.0f}" if player.rd is not None else ""
        print(f"  {rank:2d}. {player.display_name:26s} {player.rating:7.0f}{rd}")

    if args.output:
        make_leaderboard_chart(players, output_path=args.output)
        print(f"Chart saved to {args.output}")


# ── main ─────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="pingpong_elo",
        description="Ping-pong Elo rating calculator",
    )
    sub = parser.add_subparsers(dest="command")

    p_exp = sub.add_parser("expected", help="Expected score and win probability")
    p_exp.add_argument("rating", type=float)
    p_exp.add_argument("opponent", type=float)

    p_match = sub.add_parser("match", help="Ratings after a single match")
    p_match.add_argument("winner", type=float, help="Winner's rating")
    p_match.add_argument("loser", type=float, help="Loser's rating")
    p_match.add_argument("--winner-rd", type=float, help="Winner's RD (default 300)")
    p_match.add_argument("--loser-rd", type=float, help="Loser's RD (default 300)")
    p_match.add_argument("--fixed-k", type=int, help="Use a fixed K instead of RD scaling")

    for name, help_text in (
        ("bulk", "Ratings after a session of games"),
        ("chart", "Chart a session of games"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("rating_a", type=float)
        p.add_argument("rating_b", type=float)
        p.add_argument("wins_a", type=int)
        p.add_argument("wins_b", type=int)
        p.add_argument("--k", type=int, default=FIXED_K_FACTOR, help=f"K-factor (default {FIXED_K_FACTOR})")
        if name == "bulk":
            p.add_argument("--verbose", "-v", action="store_true", help="Print every game")
        else:
            p.add_argument("--output", "-o", help="Output PNG path")

    p_idle = sub.add_parser("inactivity", help="RD after days without playing")
    p_idle.add_argument("rd", type=float)
    p_idle.add_argument("days", type=int)

    p_board = sub.add_parser("leaderboard", help="Rank players")
    p_board.add_argument("entries", nargs="+", type=_parse_entry, metavar="ENTRY",
                         help="NAME=RATING, or NAME=RATING/RD to chart the RD band")
    p_board.add_argument("--output", "-o", help="Also save a chart to this PNG path")

    args = parser.parse_args(argv)
    if args.command == "expected":
        cmd_expected(args)
    elif args.command == "match":
        cmd_match(args)
    elif args.command == "bulk":
        cmd_bulk(args)
    elif args.command == "inactivity":
        cmd_inactivity(args)
    elif args.command == "chart":
        cmd_chart(args)
    elif args.command == "leaderboard":
        cmd_leaderboard(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
