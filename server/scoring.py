"""
Scoring for a 6-card Golf grid.

Card grid layout:
    [0] [1] [2]   <- top row
    [3] [4] [5]   <- bottom row
    Columns: (0,3), (1,4), (2,5)
    Squares: columns (0,1) and (1,2)

A hand is worth the sum of its column scores plus any square bonuses:
    - A column whose two cards share a rank scores 0.
    - Any other column scores the sum of its two card values.
    - Four equal ranks filling a 2x2 square add SQUARE_BONUS (-10) on top.

Lower is better. Final scoring requires every card face-up.
"""

from dataclasses import dataclass
from typing import Sequence

from cards import Card, Rank
from constants import COLUMNS, DEFAULT_CARD_VALUES, GRID_COLUMNS, GRID_SIZE, SQUARE_BONUS, SQUARE_COLUMNS


# Map Rank enum to point values (derived from constants.py as single source of truth)
RANK_VALUES: dict[Rank, int] = {rank: DEFAULT_CARD_VALUES[rank.value] for rank in Rank}


def card_value(rank: Rank) -> int:
    """Point value of a rank: K=0, 5=-5, JOKER=-5, J/Q=10, A=1, else face value."""
    return RANK_VALUES[rank]


def _check_grid(grid: Sequence[Card]) -> None:
    if len(grid) != GRID_SIZE:
        raise ValueError(f"Grid must hold {GRID_SIZE} cards, got {len(grid)}")


def column_score(grid: Sequence[Card], col: int) -> int:
    """
    Score one column of a fully revealed grid.

    Args:
        grid: Six cards.
        col: Column index 0-2.

    Returns:
        0 for a matched pair, otherwise the sum of both card values.

    Raises:
        ValueError: If either card in the column is still face-down.
    """
    _check_grid(grid)
    if not 0 <= col < GRID_COLUMNS:
        raise ValueError(f"Column must be 0-{GRID_COLUMNS - 1}, got {col}")

    top_idx, bottom_idx = COLUMNS[col]
    top, bottom = grid[top_idx], grid[bottom_idx]
    if not (top.face_up and bottom.face_up):
        raise ValueError(f"Column {col} is not fully revealed")

    if top.rank == bottom.rank:
        return 0
    return card_value(top.rank) + card_value(bottom.rank)


def square_bonus(grid: Sequence[Card], col: int) -> int:
    """
    Bonus for the 2x2 square spanning columns col and col + 1.

    Additive on top of column scores: the two matched columns inside the
    square already score 0, the bonus is an extra deduction.
    """
    _check_grid(grid)
    if col not in SQUARE_COLUMNS:
        raise ValueError(f"Square column must be one of {SQUARE_COLUMNS}, got {col}")

    ranks = {
        grid[col].rank,
        grid[col + 1].rank,
        grid[col + GRID_COLUMNS].rank,
        grid[col + 1 + GRID_COLUMNS].rank,
    }
    return SQUARE_BONUS if len(ranks) == 1 else 0


def total_score(grid: Sequence[Card]) -> int:
    """Sum of the three column scores and both square bonuses."""
    columns = sum(column_score(grid, col) for col in range(GRID_COLUMNS))
    squares = sum(square_bonus(grid, col) for col in SQUARE_COLUMNS)
    return columns + squares


@dataclass
class ScoreBreakdown:
    """
    Per-component score of a revealed grid.

    Attributes:
        columns: Score of each column.
        squares: Bonus of each 2x2 square.
    """

    columns: list[int]
    squares: list[int]

    @property
    def total(self) -> int:
        return sum(self.columns) + sum(self.squares)

    def to_dict(self) -> dict:
        return {"columns": self.columns, "squares": self.squares, "total": self.total}


def score_breakdown(grid: Sequence[Card]) -> ScoreBreakdown:
    """Column scores and square bonuses of a fully revealed grid."""
    return ScoreBreakdown(
        columns=[column_score(grid, col) for col in range(GRID_COLUMNS)],
        squares=[square_bonus(grid, col) for col in SQUARE_COLUMNS],
    )


def visible_score(grid: Sequence[Card]) -> int:
    """
    Running score of the face-up cards only, for display during play.

    Face-down cards count 0. A column or square only counts as matched
    when all of its cards are face-up.
    """
    _check_grid(grid)
    total = 0
    for top_idx, bottom_idx in COLUMNS:
        top, bottom = grid[top_idx], grid[bottom_idx]
        if top.face_up and bottom.face_up and top.rank == bottom.rank:
            continue
        for card in (top, bottom):
            if card.face_up:
                total += card_value(card.rank)

    for col in SQUARE_COLUMNS:
        block = (grid[col], grid[col + 1], grid[col + GRID_COLUMNS], grid[col + 1 + GRID_COLUMNS])
        if all(card.face_up for card in block) and len({card.rank for card in block}) == 1:
            total += SQUARE_BONUS
    return total


def determine_winner(scores: Sequence[int]) -> int:
    """
    Index of the winning player.

    Lower total wins. An exact tie goes to player 0.
    """
    if len(scores) != 2:
        raise ValueError(f"Expected two scores, got {len(scores)}")
    return 0 if scores[0] <= scores[1] else 1
