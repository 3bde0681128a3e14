"""Leaderboard and bulk-replay charts."""

from __future__ import annotations

from typing import Sequence

import matplotlib
matplotlib.use("Agg")  # non-interactive backend

import matplotlib.pyplot as plt

from pingpong_elo.defaults import MAX_RD, MIN_RD
from pingpong_elo.elo import BulkResult
from pingpong_elo.ladder import PlayerRecord


def make_leaderboard_chart(
    players: Sequence[PlayerRecord],
    output_path: str = "leaderboard.png",
    title: str = "Ping-Pong Leaderboard",
) -> str:
    """Plot each player's rating with its RD as a ± band, best player on top.

    Settled players (low RD) are drawn darker than provisional ones. A
    player whose RD is ``None`` gets a bare marker.

    Returns the path to the saved PNG.
    """
    ranked = sorted(players, key=lambda p: p.rating, reverse=True)
    labels = [
        f"{rank}. {p.display_name} ({p.wins}-{p.losses})"
        for rank, p in enumerate(ranked, 1)
    ]
    ratings = [p.rating for p in ranked]
    rds = [p.rd or 0.0 for p in ranked]
    # 0 = settled, 1 = brand new
    uncertainty = [
        (min(max(rd, MIN_RD), MAX_RD) - MIN_RD) / (MAX_RD - MIN_RD) if rd else 0.0
        for rd in rds
    ]
    colors = matplotlib.colormaps["viridis"](uncertainty)

    fig, ax = plt.subplots(figsize=(10, max(3, len(ranked) * 0.6)))
    rows = list(range(len(ranked)))
    for row, rating, rd, color in zip(rows, ratings, rds, colors):
        ax.errorbar(
            rating, row, xerr=rd, fmt="o", color=color,
            ecolor=color, elinewidth=3, capsize=4, markersize=8,
        )
        note = f"{rating:.0f} ± {rd:.0f}" if rd else f"{rating:.0f}"
        ax.annotate(
            note, (rating, row), xytext=(0, 9), textcoords="offset points",
            ha="center", fontsize=9,
        )

    ax.set_yticks(rows)
    ax.set_yticklabels(labels)
    ax.invert_yaxis()  # highest on top
    ax.set_xlabel("Rating (± RD)")
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.grid(axis="x", alpha=0.3)
    if ranked:
        ax.set_xlim(
            left=min(r - d for r, d in zip(ratings, rds)) - 50,
            right=max(r + d for r, d in zip(ratings, rds)) + 50,
        )

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def make_trajectory_chart(
    result: BulkResult,
    output_path: str = "bulk_match.png",
    labels: tuple[str, str] = ("Player A", "Player B"),
) -> str:
    """Plot both ratings game by game across a bulk replay.

    Returns the path to the saved PNG.
    """
    games = list(range(len(result.trajectory)))
    ratings_a = [ra for ra, _ in result.trajectory]
    ratings_b = [rb for _, rb in result.trajectory]

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(games, ratings_a, marker="o", color="#00E676", label=labels[0])
    ax.plot(games, ratings_b, marker="o", color="#2979FF", label=labels[1])

    ax.set_xlabel("Game")
    ax.set_ylabel("Rating")
    ax.set_title(
        f"{labels[0]} {result.change_a:+d}, {labels[1]} {result.change_b:+d}",
        fontsize=14, fontweight="bold",
    )
    ax.set_xticks(games)
    ax.legend()

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
