"""Rating constants shared by the engine, the ladder, and the CLI."""

from __future__ import annotations

# ── ratings ──────────────────────────────────────────────────────────

DEFAULT_RATING = 1000
MIN_RATING = 100  # soft floor, applied by callers
MAX_RATING = 3000  # soft ceiling, applied by callers

# Fixed-K model (bulk matches, simple single matches)
FIXED_K_FACTOR = 32

# RD-scaled model: K = BASE_K_FACTOR * (rd / 200)
BASE_K_FACTOR = 20
RD_K_DIVISOR = 200

# ── rating deviation ─────────────────────────────────────────────────

DEFAULT_RD = 300  # new players are uncertain
MIN_RD = 50
MAX_RD = 350
RD_DECAY_PER_MATCH = 5
RD_INCREASE_PER_DAY = 2

# ── leaderboard ──────────────────────────────────────────────────────

LEADERBOARD_SIZE = 50
