"""
Card value and table constants for two-player 6-Card Golf.

This module is the single source of truth for card point values and grid
geometry. Values can be customized via environment variables, see config.py.

Scoring:
    - Ace: 1 point
    - 2-10: Face value, except Five
    - Five: -5 points
    - Jack/Queen: 10 points
    - King: 0 points
    - Joker: -5 points
    - Matched column: 0 points
    - Four equal ranks in a 2x2 square: extra -10 points

Grid layout:
    [0] [1] [2]   <- top row
    [3] [4] [5]   <- bottom row
"""

from config import config


# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

DEFAULT_CARD_VALUES: dict[str, int] = config.card_values.to_dict()
SQUARE_BONUS: int = config.card_values.SQUARE_BONUS


# =============================================================================
# Table Constants
# =============================================================================

NUM_PLAYERS = 2
GRID_SIZE = 6
GRID_COLUMNS = 3
INITIAL_FLIPS = 2

# Column c pairs index c (top) with index c + 3 (bottom)
COLUMNS: tuple[tuple[int, int], ...] = tuple(
    (col, col + GRID_COLUMNS) for col in range(GRID_COLUMNS)
)

# 2x2 squares start at the left column of each adjacent column pair
SQUARE_COLUMNS: tuple[int, ...] = tuple(range(GRID_COLUMNS - 1))


# =============================================================================
# Game Defaults
# =============================================================================

DEFAULT_USE_JOKERS = config.game_defaults.use_jokers
DEFAULT_JOKER_SUITS = config.game_defaults.joker_suits
DEFAULT_FLIP_MODE = config.game_defaults.flip_mode
SYNC_MAX_RETRIES = config.SYNC_MAX_RETRIES
