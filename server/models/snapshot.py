"""
Snapshot schema for the shared game-state document.

The snapshot is the only thing exchanged with the persistence layer. It is
a flat JSON document with camelCase keys:

    {gameId, version, phase, gameStarted, gameEnded,
     options: {includeJokers, jokerSuits, flipMode},
     players: [{id, name, ready, cards: [Card x6]}],
     deck, discardPile, currentPlayerIndex, drawnCard, drawnFromDiscard,
     awaitingFlip, initialFlipsRemaining, finalTurnPlayer, scores, winner}

    Card = {rank, suit, faceUp}

Every snapshot coming from outside goes through from_snapshot(), which
validates it with pydantic and checks the engine invariants. Anything
malformed raises SnapshotError instead of reaching the engine.

Usage:
    data = to_snapshot(state)
    state = from_snapshot(data)
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cards import Card, Rank, Suit
from constants import GRID_SIZE, INITIAL_FLIPS, NUM_PLAYERS
from game import (
    ActivePlay,
    FinalRound,
    FlipMode,
    GameOptions,
    GameOver,
    GamePhase,
    GameState,
    InitialFlip,
    Player,
    Setup,
    TurnPhase,
    state_problems,
)


class SnapshotError(ValueError):
    """Raised when a snapshot is malformed or violates game invariants."""
    pass


class SnapshotModel(BaseModel):
    """Base for snapshot models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CardSnapshot(SnapshotModel):
    rank: Rank
    suit: Optional[Suit] = None
    face_up: bool = False

    @classmethod
    def from_card(cls, card: Card) -> "CardSnapshot":
        return cls(rank=card.rank, suit=card.suit, face_up=card.face_up)

    def to_card(self) -> Card:
        return Card(self.suit, self.rank, self.face_up)


class PlayerSnapshot(SnapshotModel):
    id: str
    name: str
    ready: bool = False
    cards: list[CardSnapshot] = Field(default_factory=list)

    @field_validator("cards")
    @classmethod
    def _grid_size(cls, cards: list[CardSnapshot]) -> list[CardSnapshot]:
        if len(cards) not in (0, GRID_SIZE):
            raise ValueError(f"grid must hold {GRID_SIZE} cards, got {len(cards)}")
        return cards


class OptionsSnapshot(SnapshotModel):
    include_jokers: bool = False
    joker_suits: list[Optional[Suit]] = Field(default_factory=list)
    flip_mode: FlipMode = FlipMode.NEVER


class GameSnapshot(SnapshotModel):
    """The full game-state document."""

    game_id: str
    version: int = Field(default=0, ge=0)
    phase: GamePhase = GamePhase.SETUP
    game_started: bool = False
    game_ended: bool = False
    options: OptionsSnapshot = Field(default_factory=OptionsSnapshot)
    players: list[PlayerSnapshot] = Field(default_factory=list, max_length=NUM_PLAYERS)
    deck: list[CardSnapshot] = Field(default_factory=list)
    discard_pile: list[CardSnapshot] = Field(default_factory=list)
    current_player_index: int = Field(default=0, ge=0, lt=NUM_PLAYERS)
    drawn_card: Optional[CardSnapshot] = None
    drawn_from_discard: bool = False
    awaiting_flip: bool = False
    initial_flips_remaining: list[int] = Field(
        default_factory=lambda: [INITIAL_FLIPS] * NUM_PLAYERS,
        min_length=NUM_PLAYERS,
        max_length=NUM_PLAYERS,
    )
    final_turn_player: Optional[int] = Field(default=None, ge=0, lt=NUM_PLAYERS)
    scores: Optional[list[int]] = None
    winner: Optional[int] = Field(default=None, ge=0, lt=NUM_PLAYERS)

    @model_validator(mode="after")
    def _phase_fields(self) -> "GameSnapshot":
        phase = self.phase
        in_turns = phase in (GamePhase.ACTIVE_PLAY, GamePhase.FINAL_ROUND)

        if phase == GamePhase.DEALT:
            raise ValueError("'dealt' is transient and never stored")
        if self.game_started != (phase != GamePhase.SETUP):
            raise ValueError(f"gameStarted={self.game_started} contradicts phase {phase.value}")
        if self.game_ended != (phase == GamePhase.GAME_OVER):
            raise ValueError(f"gameEnded={self.game_ended} contradicts phase {phase.value}")
        if not in_turns and (self.drawn_card is not None or self.drawn_from_discard or self.awaiting_flip):
            raise ValueError(f"held-card fields set during phase {phase.value}")
        if (self.final_turn_player is not None) != (phase == GamePhase.FINAL_ROUND):
            raise ValueError(f"finalTurnPlayer={self.final_turn_player} contradicts phase {phase.value}")
        if (self.scores is not None or self.winner is not None) != (phase == GamePhase.GAME_OVER):
            raise ValueError(f"scores/winner contradict phase {phase.value}")
        return self


# -----------------------------------------------------------------------------
# Conversion
# -----------------------------------------------------------------------------

def _cards(cards: list[Card]) -> list[CardSnapshot]:
    return [CardSnapshot.from_card(c) for c in cards]


def to_snapshot(state: GameState) -> dict[str, Any]:
    """
    Serialize a GameState into the flat snapshot document.

    Args:
        state: Engine state.

    Returns:
        JSON-compatible dict with camelCase keys.
    """
    phase = state.phase
    fields: dict[str, Any] = {}

    if isinstance(phase, InitialFlip):
        fields["initial_flips_remaining"] = list(phase.initial_flips_remaining)
    elif not isinstance(phase, Setup):
        fields["initial_flips_remaining"] = [0] * NUM_PLAYERS

    if isinstance(phase, TurnPhase):
        fields["drawn_card"] = CardSnapshot.from_card(phase.drawn_card) if phase.drawn_card else None
        fields["drawn_from_discard"] = phase.drawn_from_discard
        fields["awaiting_flip"] = phase.awaiting_flip
    if isinstance(phase, FinalRound):
        fields["final_turn_player"] = phase.final_turn_player
    if isinstance(phase, GameOver):
        fields["scores"] = list(phase.scores)
        fields["winner"] = phase.winner

    snapshot = GameSnapshot(
        game_id=state.game_id,
        version=state.version,
        phase=phase.kind,
        game_started=state.game_started,
        game_ended=state.game_ended,
        options=OptionsSnapshot(
            include_jokers=state.options.include_jokers,
            joker_suits=list(state.options.joker_suits),
            flip_mode=state.options.flip_mode,
        ),
        players=[
            PlayerSnapshot(id=p.id, name=p.name, ready=p.ready, cards=_cards(p.cards))
            for p in state.players
        ],
        deck=_cards(state.deck),
        discard_pile=_cards(state.discard_pile),
        current_player_index=state.current_player_index,
        **fields,
    )
    return snapshot.model_dump(by_alias=True, mode="json")


def _build_phase(snapshot: GameSnapshot):
    phase = snapshot.phase
    if phase == GamePhase.SETUP:
        return Setup()
    if phase == GamePhase.INITIAL_FLIP:
        return InitialFlip(initial_flips_remaining=list(snapshot.initial_flips_remaining))

    if phase == GamePhase.GAME_OVER:
        return GameOver(scores=list(snapshot.scores or []), winner=snapshot.winner)

    turn = {
        "drawn_card": snapshot.drawn_card.to_card() if snapshot.drawn_card else None,
        "drawn_from_discard": snapshot.drawn_from_discard,
        "awaiting_flip": snapshot.awaiting_flip,
    }
    if phase == GamePhase.FINAL_ROUND:
        return FinalRound(final_turn_player=snapshot.final_turn_player, **turn)
    return ActivePlay(**turn)


def from_snapshot(data: dict[str, Any]) -> GameState:
    """
    Validate a snapshot document and turn it into a GameState.

    Args:
        data: Snapshot dict as stored or received.

    Returns:
        The engine state.

    Raises:
        SnapshotError: If the document is malformed or inconsistent.
    """
    try:
        snapshot = GameSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(f"Malformed snapshot: {e}") from e

    state = GameState(
        game_id=snapshot.game_id,
        options=GameOptions(
            include_jokers=snapshot.options.include_jokers,
            joker_suits=tuple(snapshot.options.joker_suits),
            flip_mode=snapshot.options.flip_mode,
        ),
        players=[
            Player(id=p.id, name=p.name, ready=p.ready, cards=[c.to_card() for c in p.cards])
            for p in snapshot.players
        ],
        deck=[c.to_card() for c in snapshot.deck],
        discard_pile=[c.to_card() for c in snapshot.discard_pile],
        current_player_index=snapshot.current_player_index,
        phase=_build_phase(snapshot),
        version=snapshot.version,
    )

    problems = state_problems(state)
    if problems:
        raise SnapshotError(f"Inconsistent snapshot {snapshot.game_id}: {'; '.join(problems)}")
    return state


def snapshot_version(data: dict[str, Any]) -> int:
    """Version of a raw snapshot without full validation (0 if missing)."""
    version = data.get("version", 0)
    if not isinstance(version, int) or version < 0:
        raise SnapshotError(f"Invalid snapshot version: {version!r}")
    return version
