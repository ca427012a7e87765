"""
Card and deck model for two-player 6-Card Golf.

Cards are small value objects. Every helper in this module returns new lists
and new Card instances instead of mutating its arguments, so the engine can
treat a snapshot's piles as immutable inputs.

Piles:
    - Deck: face-down, drawn from the tail.
    - Discard pile: face-up, the tail is the top card.
"""

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence

from constants import GRID_SIZE, NUM_PLAYERS


class DeckExhausted(Exception):
    """Raised when neither the deck nor the discard pile can supply a card."""
    pass


class Suit(Enum):
    """Card suits for a standard deck."""

    SPADES = "♠"
    CLUBS = "♣"
    HEARTS = "♥"
    DIAMONDS = "♦"

    @classmethod
    def from_name(cls, name: str) -> "Suit":
        """Look up a suit by its name ('hearts') or symbol ('♥')."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            return cls(name.strip())


class Rank(Enum):
    """
    Card ranks with their snapshot values.

    Point values live in constants.DEFAULT_CARD_VALUES and are applied
    by scoring.card_value().
    """

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    JOKER = "JOKER"


STANDARD_RANKS: tuple[Rank, ...] = tuple(r for r in Rank if r != Rank.JOKER)

# Jokers paired with two of the four suits
DEFAULT_JOKER_SUITS: tuple[Optional[Suit], ...] = (Suit.HEARTS, Suit.SPADES)


@dataclass(frozen=True)
class Card:
    """
    A playing card.

    Attributes:
        suit: The card's suit, or None for a suit-less joker.
        rank: The card's rank (A, 2-10, J, Q, K, or JOKER).
        face_up: Whether the card is visible to both players.
    """

    suit: Optional[Suit]
    rank: Rank
    face_up: bool = False

    def revealed(self) -> "Card":
        """Return this card turned face-up."""
        if self.face_up:
            return self
        return replace(self, face_up=True)

    def hidden(self) -> "Card":
        """Return this card turned face-down."""
        if not self.face_up:
            return self
        return replace(self, face_up=False)

    def to_dict(self) -> dict:
        """Convert card to the snapshot dictionary shape."""
        return {
            "rank": self.rank.value,
            "suit": self.suit.value if self.suit else None,
            "faceUp": self.face_up,
        }

    def __str__(self) -> str:
        label = f"{self.rank.value}{self.suit.value if self.suit else ''}"
        return label if self.face_up else f"[{label}]"


@dataclass
class Deal:
    """
    Result of dealing a fresh deck.

    Attributes:
        grids: Six cards for each player, face-down.
        remaining_deck: Cards left to draw from.
        discard_pile: The single face-up card that starts the discard pile.
    """

    grids: list[list[Card]]
    remaining_deck: list[Card]
    discard_pile: list[Card]


def parse_joker_suits(names: Sequence[str]) -> tuple[Optional[Suit], ...]:
    """
    Turn a configured joker suit list into suits.

    "none" yields two suit-less jokers, "all" yields one joker per suit.
    """
    lowered = [n.strip().lower() for n in names if n.strip()]
    if lowered == ["none"]:
        return (None, None)
    if lowered == ["all"]:
        return tuple(Suit)
    return tuple(Suit.from_name(n) for n in lowered)


def build_deck(
    include_jokers: bool = False,
    joker_suits: Sequence[Optional[Suit]] = DEFAULT_JOKER_SUITS,
) -> list[Card]:
    """
    Build an unshuffled deck.

    One card per (rank, suit) pair for every non-joker rank, then one joker
    per entry of joker_suits when jokers are enabled. All cards face-down.

    Args:
        include_jokers: Whether to append joker cards.
        joker_suits: Suit for each joker (None for a suit-less joker).

    Returns:
        52 cards, or 52 + len(joker_suits) with jokers.
    """
    cards = [Card(suit, rank) for suit in Suit for rank in STANDARD_RANKS]
    if include_jokers:
        cards.extend(Card(suit, Rank.JOKER) for suit in joker_suits)
    return cards


def deck_size(
    include_jokers: bool = False,
    joker_suits: Sequence[Optional[Suit]] = DEFAULT_JOKER_SUITS,
) -> int:
    """Number of cards build_deck() produces for a ruleset."""
    return len(Suit) * len(STANDARD_RANKS) + (len(joker_suits) if include_jokers else 0)


def shuffle(cards: Sequence[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a uniformly random permutation of cards.

    Fisher-Yates: walk from the last index down to 1 and swap each position
    with a uniformly chosen index in [0, i]. The input is left untouched.

    Args:
        cards: Cards to shuffle.
        rng: Random source; pass a seeded random.Random for replayable games.
    """
    rng = rng or random.Random()
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal(deck: Sequence[Card]) -> Deal:
    """
    Deal two grids and seed the discard pile.

    The first six cards go to player 0, the next six to player 1. The
    following card is flipped face-up and starts the discard pile.

    Raises:
        DeckExhausted: If the deck holds fewer than 13 cards.
    """
    needed = GRID_SIZE * NUM_PLAYERS + 1
    if len(deck) < needed:
        raise DeckExhausted(f"Need {needed} cards to deal, deck has {len(deck)}")

    grids = [
        [card.hidden() for card in deck[i * GRID_SIZE:(i + 1) * GRID_SIZE]]
        for i in range(NUM_PLAYERS)
    ]
    first_discard = deck[GRID_SIZE * NUM_PLAYERS].revealed()
    remaining = list(deck[needed:])
    return Deal(grids=grids, remaining_deck=remaining, discard_pile=[first_discard])


def reshuffle_if_exhausted(
    deck: Sequence[Card],
    discard_pile: Sequence[Card],
    rng: Optional[random.Random] = None,
) -> tuple[list[Card], list[Card]]:
    """
    Rebuild an empty deck from the discard pile.

    Keeps the top discard visible, turns the rest face-down and shuffles
    them into a new deck. No card is drawn; the caller retries its draw.

    Args:
        deck: Current deck (returned unchanged if not empty).
        discard_pile: Current discard pile, top card last.
        rng: Random source for the shuffle.

    Returns:
        (new_deck, new_discard_pile)

    Raises:
        DeckExhausted: If the discard pile has one card or fewer.
    """
    if deck:
        return list(deck), list(discard_pile)

    if len(discard_pile) <= 1:
        raise DeckExhausted("Deck is empty and discard pile cannot be reshuffled")

    top_card = discard_pile[-1]
    new_deck = shuffle([card.hidden() for card in discard_pile[:-1]], rng)
    return new_deck, [top_card]
