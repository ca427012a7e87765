"""
Game logic for two-player 6-Card Golf.

This module implements the turn/phase state machine: seating, the deal,
the initial reveal, draw/swap/discard turns, the final round and game-over
scoring.

Every action is a pure function ``(GameState, ...) -> ActionResult``. The
input state is never mutated; a successful action returns a new state, a
rejected one returns the original state together with an ActionError.
Rule violations never raise.

Phases:
    SETUP -> (DEALT) -> INITIAL_FLIP -> ACTIVE_PLAY -> FINAL_ROUND -> GAME_OVER

    DEALT is transient: deal_new_game() moves straight on to INITIAL_FLIP.
    Each phase is its own dataclass carrying only the fields it needs, so a
    drawn card during the initial flip cannot be represented at all.

Card Layout:
    [0] [1] [2]   <- top row
    [3] [4] [5]   <- bottom row
"""

import copy
import logging
import random
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union

from cards import (
    Card,
    DeckExhausted,
    Suit,
    build_deck,
    deal,
    deck_size,
    parse_joker_suits,
    reshuffle_if_exhausted,
    shuffle,
)
from constants import (
    DEFAULT_FLIP_MODE,
    DEFAULT_JOKER_SUITS,
    DEFAULT_USE_JOKERS,
    GRID_SIZE,
    INITIAL_FLIPS,
    NUM_PLAYERS,
)
from scoring import determine_winner, score_breakdown, total_score, visible_score

logger = logging.getLogger(__name__)


class GamePhase(str, Enum):
    """Phase names as they appear in snapshots."""

    SETUP = "setup"
    DEALT = "dealt"
    INITIAL_FLIP = "initial_flip"
    ACTIVE_PLAY = "active_play"
    FINAL_ROUND = "final_round"
    GAME_OVER = "game_over"


class FlipMode(str, Enum):
    """
    What a Discard resolution does to the turn.

    NEVER: Discarding ends the turn.
    ALWAYS: After discarding, the player must flip one of their face-down
            cards before the turn ends (ends at once if none are left).
    """

    NEVER = "never"
    ALWAYS = "always"


class DrawSource(str, Enum):
    """Pile a card is drawn from."""

    DECK = "deck"
    DISCARD = "discard"


class ActionError(str, Enum):
    """Reasons an action is rejected. All are recoverable."""

    NOT_YOUR_TURN = "not_your_turn"
    INVALID_PHASE_ACTION = "invalid_phase_action"
    INVALID_CELL = "invalid_cell"
    ALREADY_FACE_UP = "already_face_up"
    DUPLICATE_RANK_IN_INITIAL_FLIP = "duplicate_rank_in_initial_flip"
    ALREADY_HOLDING_DRAWN_CARD = "already_holding_drawn_card"
    NO_DRAWN_CARD = "no_drawn_card"
    FLIP_REQUIRED = "flip_required"
    EMPTY_DISCARD_PILE = "empty_discard_pile"
    DECK_EXHAUSTED = "deck_exhausted"
    GAME_ALREADY_ENDED = "game_already_ended"
    GAME_FULL = "game_full"
    ALREADY_SEATED = "already_seated"
    NOT_SEATED = "not_seated"
    PLAYERS_NOT_READY = "players_not_ready"
    STALE_WRITE = "stale_write"


class Notice(str, Enum):
    """Announcements a successful action wants shown to the players."""

    GAME_DEALT = "game_dealt"
    PLAY_STARTED = "play_started"
    DECK_RESHUFFLED = "deck_reshuffled"
    FLIP_PENDING = "flip_pending"
    FINAL_TURN_GRANTED = "final_turn_granted"
    GAME_ENDED = "game_ended"


@dataclass
class GameOptions:
    """
    Ruleset for one game.

    Attributes:
        include_jokers: Whether the deck contains jokers.
        joker_suits: Suit of each joker (None for suit-less jokers).
        flip_mode: Whether a discard forces a flip before the turn ends.
    """

    include_jokers: bool = DEFAULT_USE_JOKERS
    joker_suits: tuple[Optional[Suit], ...] = field(
        default_factory=lambda: parse_joker_suits(DEFAULT_JOKER_SUITS)
    )
    flip_mode: FlipMode = field(default_factory=lambda: FlipMode(DEFAULT_FLIP_MODE))

    @property
    def total_cards(self) -> int:
        """Number of cards in play for this ruleset."""
        return deck_size(self.include_jokers, self.joker_suits)

    def to_dict(self) -> dict:
        return {
            "includeJokers": self.include_jokers,
            "jokerSuits": [s.value if s else None for s in self.joker_suits],
            "flipMode": self.flip_mode.value,
        }


@dataclass
class Player:
    """
    A seated player.

    Attributes:
        id: Identity supplied by the lobby.
        name: Display name.
        ready: Whether the player has confirmed they are ready to deal.
        cards: The player's 6-card grid (empty until dealt).
    """

    id: str
    name: str
    ready: bool = False
    cards: list[Card] = field(default_factory=list)

    def all_face_up(self) -> bool:
        """Check if all of the player's cards are revealed."""
        return bool(self.cards) and all(card.face_up for card in self.cards)

    def face_down_indices(self) -> list[int]:
        return [i for i, card in enumerate(self.cards) if not card.face_up]

    def flip_card(self, position: int) -> None:
        """Reveal the card at the given position."""
        self.cards[position] = self.cards[position].revealed()

    def swap_card(self, position: int, new_card: Card) -> Card:
        """
        Replace a card in the grid, face-up.

        Returns:
            The card that was replaced, in its previous orientation.
        """
        old_card = self.cards[position]
        self.cards[position] = new_card.revealed()
        return old_card

    def reveal_all(self) -> None:
        self.cards = [card.revealed() for card in self.cards]


# -----------------------------------------------------------------------------
# Phase states
# -----------------------------------------------------------------------------

@dataclass
class Setup:
    """Seats are being filled; nothing is dealt yet."""

    kind: ClassVar[GamePhase] = GamePhase.SETUP


@dataclass
class InitialFlip:
    """Each player reveals two of their own cards before play starts."""

    kind: ClassVar[GamePhase] = GamePhase.INITIAL_FLIP
    initial_flips_remaining: list[int] = field(
        default_factory=lambda: [INITIAL_FLIPS] * NUM_PLAYERS
    )


@dataclass
class TurnPhase:
    """
    Fields shared by the two phases in which players take turns.

    Attributes:
        drawn_card: Card held by the current player between draw and resolve.
        drawn_from_discard: Whether the held card came off the discard pile.
        awaiting_flip: A discard happened and a face-down card must be flipped.
    """

    drawn_card: Optional[Card] = None
    drawn_from_discard: bool = False
    awaiting_flip: bool = False

    def clear_hand(self) -> None:
        self.drawn_card = None
        self.drawn_from_discard = False
        self.awaiting_flip = False


@dataclass
class ActivePlay(TurnPhase):
    """Normal play: draw, then swap or discard."""

    kind: ClassVar[GamePhase] = GamePhase.ACTIVE_PLAY


@dataclass
class FinalRound(TurnPhase):
    """One grid is fully revealed; final_turn_player gets one last turn."""

    kind: ClassVar[GamePhase] = GamePhase.FINAL_ROUND
    final_turn_player: int = 0


@dataclass
class GameOver:
    """Frozen result. Both grids are face-up."""

    kind: ClassVar[GamePhase] = GamePhase.GAME_OVER
    scores: list[int] = field(default_factory=list)
    winner: Optional[int] = None


Phase = Union[Setup, InitialFlip, ActivePlay, FinalRound, GameOver]


@dataclass
class GameState:
    """
    The synchronized snapshot of one game.

    Attributes:
        game_id: Identifier of the game document.
        options: Ruleset.
        players: Seated players (two once dealt).
        deck: Face-down draw pile, top card last.
        discard_pile: Face-up pile, top card last.
        current_player_index: Whose turn it is (0 or 1).
        phase: Phase-specific state.
        version: Store version this state was read at. Actions never change it.
    """

    game_id: str
    options: GameOptions = field(default_factory=GameOptions)
    players: list[Player] = field(default_factory=list)
    deck: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    current_player_index: int = 0
    phase: Phase = field(default_factory=Setup)
    version: int = 0

    @property
    def phase_name(self) -> GamePhase:
        return self.phase.kind

    @property
    def game_started(self) -> bool:
        return not isinstance(self.phase, Setup)

    @property
    def game_ended(self) -> bool:
        return isinstance(self.phase, GameOver)

    @property
    def drawn_card(self) -> Optional[Card]:
        if isinstance(self.phase, TurnPhase):
            return self.phase.drawn_card
        return None

    @property
    def final_turn_player(self) -> Optional[int]:
        if isinstance(self.phase, FinalRound):
            return self.phase.final_turn_player
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.current_player_index < len(self.players):
            return self.players[self.current_player_index]
        return None

    def player_index(self, player_id: str) -> Optional[int]:
        """Seat index of a player id, or None if not seated."""
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return i
        return None

    def discard_top(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def all_cards(self) -> list[Card]:
        """Every card on the table: deck, discard pile, grids and the held card."""
        cards = list(self.deck) + list(self.discard_pile)
        for player in self.players:
            cards.extend(player.cards)
        if self.drawn_card is not None:
            cards.append(self.drawn_card)
        return cards

    def card_count(self) -> int:
        return len(self.all_cards())


@dataclass(frozen=True)
class ActionResult:
    """
    Outcome of an engine action.

    Attributes:
        state: The new state on success, the unchanged input on failure.
        error: Why the action was rejected, or None.
        notices: Announcements for the presentation layer.
    """

    state: GameState
    error: Optional[ActionError] = None
    notices: tuple[Notice, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Swap:
    """Resolve a drawn card by placing it at a grid cell."""

    cell: int


@dataclass(frozen=True)
class Discard:
    """Resolve a drawn card by throwing it on the discard pile."""


ResolveAction = Union[Swap, Discard]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _reject(state: GameState, error: ActionError, action: str, player: object = None) -> ActionResult:
    logger.debug(
        f"Rejected {action} by player {player}: {error.value}",
        extra={"game_id": state.game_id, "version": state.version},
    )
    return ActionResult(state=state, error=error)


def _valid_cell(cell: int) -> bool:
    return isinstance(cell, int) and 0 <= cell < GRID_SIZE


def _turn_error(state: GameState, player_index: int) -> Optional[ActionError]:
    """Common checks for actions taken during a player's turn."""
    if isinstance(state.phase, GameOver):
        return ActionError.GAME_ALREADY_ENDED
    if not isinstance(state.phase, TurnPhase):
        return ActionError.INVALID_PHASE_ACTION
    if player_index != state.current_player_index:
        return ActionError.NOT_YOUR_TURN
    return None


def _other(player_index: int) -> int:
    return (player_index + 1) % NUM_PLAYERS


# -----------------------------------------------------------------------------
# Seating & Deal
# -----------------------------------------------------------------------------

def new_game(game_id: Optional[str] = None, options: Optional[GameOptions] = None) -> GameState:
    """Create an empty game in the SETUP phase."""
    return GameState(
        game_id=game_id or str(uuid.uuid4()),
        options=options or GameOptions(),
    )


def seat_player(state: GameState, player_id: str, name: str) -> ActionResult:
    """Add a player to an open seat."""
    if isinstance(state.phase, GameOver):
        return _reject(state, ActionError.GAME_ALREADY_ENDED, "seat", player_id)
    if not isinstance(state.phase, Setup):
        return _reject(state, ActionError.INVALID_PHASE_ACTION, "seat", player_id)
    if state.player_index(player_id) is not None:
        return _reject(state, ActionError.ALREADY_SEATED, "seat", player_id)
    if len(state.players) >= NUM_PLAYERS:
        return _reject(state, ActionError.GAME_FULL, "seat", player_id)

    new_state = copy.deepcopy(state)
    new_state.players.append(Player(id=player_id, name=name))
    logger.info(f"Player {name} seated at {len(new_state.players) - 1}", extra={"game_id": state.game_id})
    return ActionResult(state=new_state)


def set_ready(state: GameState, player_id: str, ready: bool = True) -> ActionResult:
    """Mark a seated player as (not) ready to deal."""
    if not isinstance(state.phase, Setup):
        return _reject(state, ActionError.INVALID_PHASE_ACTION, "ready", player_id)
    index = state.player_index(player_id)
    if index is None:
        return _reject(state, ActionError.NOT_SEATED, "ready", player_id)

    new_state = copy.deepcopy(state)
    new_state.players[index].ready = ready
    return ActionResult(state=new_state)


def deal_new_game(state: GameState, rng: Optional[random.Random] = None) -> ActionResult:
    """
    Shuffle, deal both grids and start the initial flip.

    Legal from SETUP once both seats are filled and ready, and from
    GAME_OVER to deal a rematch to the same players.

    Args:
        state: Current state.
        rng: Random source for the shuffle.
    """
    if isinstance(state.phase, Setup):
        if len(state.players) < NUM_PLAYERS or not all(p.ready for p in state.players):
            return _reject(state, ActionError.PLAYERS_NOT_READY, "deal")
    elif not isinstance(state.phase, GameOver):
        return _reject(state, ActionError.INVALID_PHASE_ACTION, "deal")

    options = state.options
    deck = shuffle(build_deck(options.include_jokers, options.joker_suits), rng)
    dealt = deal(deck)

    new_state = copy.deepcopy(state)
    for player, grid in zip(new_state.players, dealt.grids):
        player.cards = grid
    new_state.deck = dealt.remaining_deck
    new_state.discard_pile = dealt.discard_pile
    new_state.current_player_index = 0

    # DEALT has no visible duration
    new_state.phase = InitialFlip()

    logger.info(
        f"Dealt {options.total_cards} cards, {len(new_state.deck)} left in deck",
        extra={"game_id": state.game_id},
    )
    return ActionResult(state=new_state, notices=(Notice.GAME_DEALT,))


# -----------------------------------------------------------------------------
# Initial Flip
# -----------------------------------------------------------------------------

def flip_initial_card(state: GameState, player_index: int, cell: int) -> ActionResult:
    """
    Reveal one of the player's own cards during the initial flip.

    The two initial flips of one player may not share a rank. After each
    flip the turn passes to the opponent while they still have flips left;
    once both counters reach 0, play starts with player 0.
    """
    action = "flip_initial"
    if isinstance(state.phase, GameOver):
        return _reject(state, ActionError.GAME_ALREADY_ENDED, action, player_index)
    if not isinstance(state.phase, InitialFlip):
        return _reject(state, ActionError.INVALID_PHASE_ACTION, action, player_index)
    if player_index != state.current_player_index:
        return _reject(state, ActionError.NOT_YOUR_TURN, action, player_index)
    if state.phase.initial_flips_remaining[player_index] <= 0:
        return _reject(state, ActionError.INVALID_PHASE_ACTION, action, player_index)
    if not _valid_cell(cell):
        return _reject(state, ActionError.INVALID_CELL, action, player_index)

    player = state.players[player_index]
    target = player.cards[cell]
    if target.face_up:
        return _reject(state, ActionError.ALREADY_FACE_UP, action, player_index)
    # During the initial flip every face-up card in a grid is one of its owner's flips
    if any(card.face_up and card.rank == target.rank for card in player.cards):
        return _reject(state, ActionError.DUPLICATE_RANK_IN_INITIAL_FLIP, action, player_index)

    new_state = copy.deepcopy(state)
    new_state.players[player_index].flip_card(cell)
    remaining = new_state.phase.initial_flips_remaining
    remaining[player_index] -= 1

    other = _other(player_index)
    if not any(remaining):
        new_state.phase = ActivePlay()
        new_state.current_player_index = 0
        logger.info("Initial flips done, play starts", extra={"game_id": state.game_id})
        return ActionResult(state=new_state, notices=(Notice.PLAY_STARTED,))

    if remaining[other] > 0:
        new_state.current_player_index = other
    return ActionResult(state=new_state)


# -----------------------------------------------------------------------------
# Turn Actions
# -----------------------------------------------------------------------------

def draw_card(
    state: GameState,
    player_index: int,
    source: Union[DrawSource, str],
    rng: Optional[random.Random] = None,
) -> ActionResult:
    """
    Draw a card from the deck or the discard pile into the player's hand.

    Drawing from an empty deck reshuffles the discard pile (all but its top
    card) into a new deck and returns that state with a DECK_RESHUFFLED
    notice but no card in hand; the caller draws again.

    Args:
        state: Current state.
        player_index: Seat of the acting player.
        source: "deck" or "discard".
        rng: Random source for a reshuffle.
    """
    source = DrawSource(source)
    action = f"draw_{source.value}"
    error = _turn_error(state, player_index)
    if error:
        return _reject(state, error, action, player_index)
    if state.phase.awaiting_flip:
        return _reject(state, ActionError.FLIP_REQUIRED, action, player_index)
    if state.phase.drawn_card is not None:
        return _reject(state, ActionError.ALREADY_HOLDING_DRAWN_CARD, action, player_index)

    if source == DrawSource.DISCARD:
        if not state.discard_pile:
            return _reject(state, ActionError.EMPTY_DISCARD_PILE, action, player_index)
        new_state = copy.deepcopy(state)
        new_state.phase.drawn_card = new_state.discard_pile.pop().revealed()
        new_state.phase.drawn_from_discard = True
        return ActionResult(state=new_state)

    if not state.deck:
        try:
            deck, discard_pile = reshuffle_if_exhausted(state.deck, state.discard_pile, rng)
        except DeckExhausted:
            return _reject(state, ActionError.DECK_EXHAUSTED, action, player_index)
        new_state = copy.deepcopy(state)
        new_state.deck = deck
        new_state.discard_pile = discard_pile
        logger.info(f"Reshuffled discard pile into {len(deck)} card deck", extra={"game_id": state.game_id})
        return ActionResult(state=new_state, notices=(Notice.DECK_RESHUFFLED,))

    new_state = copy.deepcopy(state)
    # Deck cards are revealed only once drawn
    new_state.phase.drawn_card = new_state.deck.pop().revealed()
    new_state.phase.drawn_from_discard = False
    return ActionResult(state=new_state)


def resolve_draw(state: GameState, player_index: int, action: ResolveAction) -> ActionResult:
    """
    Resolve the held card by swapping it into the grid or discarding it.

    Swap: the grid card at the cell goes face-up onto the discard pile and
    the held card takes its place face-up. The turn ends.

    Discard: the held card goes face-up onto the discard pile. The turn ends,
    unless the ruleset's FlipMode.ALWAYS requires a face-down card to be
    flipped first (see flip_card()).
    """
    name = "swap" if isinstance(action, Swap) else "discard"
    error = _turn_error(state, player_index)
    if error:
        return _reject(state, error, name, player_index)
    if state.phase.drawn_card is None:
        return _reject(state, ActionError.NO_DRAWN_CARD, name, player_index)

    if isinstance(action, Swap):
        if not _valid_cell(action.cell):
            return _reject(state, ActionError.INVALID_CELL, name, player_index)
        new_state = copy.deepcopy(state)
        old_card = new_state.players[player_index].swap_card(action.cell, new_state.phase.drawn_card)
        new_state.discard_pile.append(old_card.revealed())
        new_state.phase.clear_hand()
        return _end_turn(new_state)

    new_state = copy.deepcopy(state)
    new_state.discard_pile.append(new_state.phase.drawn_card.revealed())
    new_state.phase.clear_hand()

    player = new_state.players[player_index]
    if state.options.flip_mode == FlipMode.ALWAYS and player.face_down_indices():
        new_state.phase.awaiting_flip = True
        return ActionResult(state=new_state, notices=(Notice.FLIP_PENDING,))
    return _end_turn(new_state)


def flip_card(state: GameState, player_index: int, cell: int) -> ActionResult:
    """Flip a face-down card to complete a turn after a discard (FlipMode.ALWAYS)."""
    action = "flip"
    error = _turn_error(state, player_index)
    if error:
        return _reject(state, error, action, player_index)
    if not state.phase.awaiting_flip:
        return _reject(state, ActionError.INVALID_PHASE_ACTION, action, player_index)
    if not _valid_cell(cell):
        return _reject(state, ActionError.INVALID_CELL, action, player_index)
    if state.players[player_index].cards[cell].face_up:
        return _reject(state, ActionError.ALREADY_FACE_UP, action, player_index)

    new_state = copy.deepcopy(state)
    new_state.players[player_index].flip_card(cell)
    new_state.phase.clear_hand()
    return _end_turn(new_state)


# -----------------------------------------------------------------------------
# Turn & Game Flow (Internal)
# -----------------------------------------------------------------------------

def _end_turn(state: GameState) -> ActionResult:
    """
    Finish the current player's turn on a freshly copied state.

    The final-turn player's turn always ends the game. Otherwise a fully
    revealed grid grants the opponent exactly one final turn.
    """
    current = state.current_player_index
    other = _other(current)

    if isinstance(state.phase, FinalRound) and current == state.phase.final_turn_player:
        return _end_game(state)

    if isinstance(state.phase, ActivePlay) and state.players[current].all_face_up():
        state.phase = FinalRound(final_turn_player=other)
        state.current_player_index = other
        logger.info(
            f"Player {current} revealed all cards, player {other} gets a final turn",
            extra={"game_id": state.game_id},
        )
        return ActionResult(state=state, notices=(Notice.FINAL_TURN_GRANTED,))

    state.current_player_index = other
    return ActionResult(state=state)


def _end_game(state: GameState) -> ActionResult:
    """Reveal both grids, score them and freeze the game."""
    for player in state.players:
        player.reveal_all()

    scores = [total_score(player.cards) for player in state.players]
    winner = determine_winner(scores)
    state.phase = GameOver(scores=scores, winner=winner)

    logger.info(f"Game over: scores={scores}, winner={winner}", extra={"game_id": state.game_id})
    return ActionResult(state=state, notices=(Notice.GAME_ENDED,))


# -----------------------------------------------------------------------------
# State Queries
# -----------------------------------------------------------------------------

def score_board(state: GameState) -> list[dict]:
    """
    Per-player scores for display.

    Returns:
        One entry per seated player with the running score of their
        face-up cards, plus the column/square breakdown once their grid
        is fully revealed.
    """
    board = []
    for player in state.players:
        entry = {"playerId": player.id, "visible": 0, "breakdown": None}
        if len(player.cards) == GRID_SIZE:
            entry["visible"] = visible_score(player.cards)
            if player.all_face_up():
                entry["breakdown"] = score_breakdown(player.cards).to_dict()
        board.append(entry)
    return board


def legal_actions(state: GameState, player_index: int) -> list[str]:
    """
    Actions the given seat may take right now.

    Returns names the presentation layer can map to controls:
    "deal", "flip_initial", "draw_deck", "draw_discard", "swap",
    "discard", "flip".
    """
    phase = state.phase
    if isinstance(phase, Setup):
        if len(state.players) == NUM_PLAYERS and all(p.ready for p in state.players):
            return ["deal"]
        return []
    if isinstance(phase, GameOver):
        return ["deal"]
    if player_index != state.current_player_index:
        return []
    if isinstance(phase, InitialFlip):
        return ["flip_initial"]
    if phase.awaiting_flip:
        return ["flip"]
    if phase.drawn_card is not None:
        return ["swap", "discard"]

    actions = []
    if state.deck or len(state.discard_pile) > 1:
        actions.append("draw_deck")
    if state.discard_pile:
        actions.append("draw_discard")
    return actions


def state_problems(state: GameState) -> list[str]:
    """
    Check structural invariants of a state.

    Returns:
        Human-readable descriptions of every violated invariant
        (empty if the state is consistent).
    """
    problems = []
    phase = state.phase

    if len(state.players) > NUM_PLAYERS:
        problems.append(f"{len(state.players)} players seated, at most {NUM_PLAYERS} allowed")
    if len({p.id for p in state.players}) != len(state.players):
        problems.append("duplicate player ids")
    if state.current_player_index not in range(NUM_PLAYERS):
        problems.append(f"current player index {state.current_player_index} out of range")

    if isinstance(phase, Setup):
        if state.all_cards():
            problems.append("cards on the table before the deal")
        return problems

    if len(state.players) != NUM_PLAYERS:
        problems.append(f"dealt game needs {NUM_PLAYERS} players, has {len(state.players)}")
    for i, player in enumerate(state.players):
        if len(player.cards) != GRID_SIZE:
            problems.append(f"player {i} grid has {len(player.cards)} cards")

    expected = Counter(
        (c.suit, c.rank)
        for c in build_deck(state.options.include_jokers, state.options.joker_suits)
    )
    actual = Counter((c.suit, c.rank) for c in state.all_cards())
    if actual != expected:
        problems.append(
            f"card conservation violated: {sum(actual.values())} cards on table, "
            f"expected {state.options.total_cards}"
        )

    if any(not c.face_up for c in state.discard_pile):
        problems.append("face-down card in discard pile")
    if any(c.face_up for c in state.deck):
        problems.append("face-up card in deck")

    if isinstance(phase, InitialFlip):
        remaining = phase.initial_flips_remaining
        if len(remaining) != NUM_PLAYERS or any(r not in range(INITIAL_FLIPS + 1) for r in remaining):
            problems.append(f"invalid initial flip counters {remaining}")
        else:
            if state.current_player_index in range(NUM_PLAYERS) and remaining[state.current_player_index] == 0:
                problems.append(f"player {state.current_player_index} is to flip but has no initial flips left")
            if len(state.players) == NUM_PLAYERS:
                for i, player in enumerate(state.players):
                    flipped = GRID_SIZE - len(player.face_down_indices())
                    if flipped != INITIAL_FLIPS - remaining[i]:
                        problems.append(f"player {i} has {flipped} face-up cards, counter says {remaining[i]} left")
    elif isinstance(phase, TurnPhase):
        if phase.drawn_card is not None and not phase.drawn_card.face_up:
            problems.append("held card is face-down")
        if phase.awaiting_flip and phase.drawn_card is not None:
            problems.append("awaiting a flip while holding a card")
        if isinstance(phase, FinalRound) and phase.final_turn_player not in range(NUM_PLAYERS):
            problems.append(f"final turn player {phase.final_turn_player} out of range")
    elif isinstance(phase, GameOver):
        if any(not c.face_up for p in state.players for c in p.cards):
            problems.append("face-down card after game over")
        if len(phase.scores) != NUM_PLAYERS or phase.winner not in range(NUM_PLAYERS):
            problems.append("incomplete game over result")
        elif not problems:
            scores = [total_score(player.cards) for player in state.players]
            if phase.scores != scores:
                problems.append(f"stored scores {phase.scores} do not match the grids {scores}")
            elif phase.winner != determine_winner(scores):
                problems.append(f"winner {phase.winner} does not match scores {scores}")

    return problems

