"""
Tests for the card and deck model.

Covers deck composition for each joker ruleset, the shuffle, the deal
layout and rebuilding an empty deck from the discard pile.

Run with: pytest test_cards.py -v
"""

import random

import pytest

from cards import (
    Card,
    DeckExhausted,
    Rank,
    Suit,
    build_deck,
    deal,
    deck_size,
    parse_joker_suits,
    reshuffle_if_exhausted,
    shuffle,
)


# =============================================================================
# Deck Composition
# =============================================================================

class TestBuildDeck:
    """Verify deck contents for each ruleset."""

    def test_standard_deck_has_52_unique_cards(self):
        deck = build_deck()
        assert len(deck) == 52
        assert len(set(deck)) == 52
        assert Rank.JOKER not in {c.rank for c in deck}

    def test_all_cards_start_face_down(self):
        assert not any(card.face_up for card in build_deck(include_jokers=True))

    def test_default_jokers_are_hearts_and_spades(self):
        deck = build_deck(include_jokers=True)
        jokers = [c for c in deck if c.rank == Rank.JOKER]
        assert len(deck) == 54
        assert {c.suit for c in jokers} == {Suit.HEARTS, Suit.SPADES}

    def test_suitless_jokers(self):
        suits = parse_joker_suits(["none"])
        deck = build_deck(include_jokers=True, joker_suits=suits)
        jokers = [c for c in deck if c.rank == Rank.JOKER]
        assert suits == (None, None)
        assert [c.suit for c in jokers] == [None, None]

    def test_four_suit_jokers(self):
        suits = parse_joker_suits(["all"])
        assert len(build_deck(include_jokers=True, joker_suits=suits)) == 56
        assert deck_size(True, suits) == 56

    def test_deck_size_matches_build(self):
        for include in (False, True):
            assert deck_size(include) == len(build_deck(include))

    def test_parse_suit_names_and_symbols(self):
        assert parse_joker_suits(["hearts", " Spades "]) == (Suit.HEARTS, Suit.SPADES)
        assert Suit.from_name("♦") == Suit.DIAMONDS

    def test_parse_unknown_suit_fails(self):
        with pytest.raises(ValueError):
            parse_joker_suits(["stars"])


# =============================================================================
# Card
# =============================================================================

class TestCard:

    def test_revealed_returns_new_face_up_card(self):
        card = Card(Suit.CLUBS, Rank.SEVEN)
        up = card.revealed()
        assert up.face_up
        assert not card.face_up
        assert up.hidden() == card

    def test_to_dict_uses_snapshot_keys(self):
        card = Card(Suit.HEARTS, Rank.TEN, face_up=True)
        assert card.to_dict() == {"rank": "10", "suit": "♥", "faceUp": True}

    def test_str_marks_face_down_cards(self):
        assert str(Card(Suit.HEARTS, Rank.ACE, face_up=True)) == "A♥"
        assert str(Card(Suit.HEARTS, Rank.ACE)) == "[A♥]"
        assert str(Card(None, Rank.JOKER, face_up=True)) == "JOKER"


# =============================================================================
# Shuffle
# =============================================================================

class TestShuffle:

    def test_shuffle_is_a_permutation(self):
        deck = build_deck(include_jokers=True)
        shuffled = shuffle(deck, random.Random(7))
        assert sorted(map(str, shuffled)) == sorted(map(str, deck))

    def test_shuffle_does_not_mutate_input(self):
        deck = build_deck()
        before = list(deck)
        shuffle(deck, random.Random(1))
        assert deck == before

    def test_seeded_shuffle_is_reproducible(self):
        deck = build_deck()
        assert shuffle(deck, random.Random(42)) == shuffle(deck, random.Random(42))

    def test_shuffle_changes_order(self):
        deck = build_deck()
        assert shuffle(deck, random.Random(3)) != deck

    def test_shuffle_of_empty_and_single(self):
        assert shuffle([]) == []
        card = Card(Suit.SPADES, Rank.KING)
        assert shuffle([card]) == [card]


# =============================================================================
# Deal
# =============================================================================

class TestDeal:

    def test_deal_layout(self):
        deck = build_deck()
        result = deal(deck)

        assert result.grids[0] == deck[0:6]
        assert result.grids[1] == deck[6:12]
        assert result.discard_pile == [deck[12].revealed()]
        assert result.remaining_deck == deck[13:]
        assert len(result.remaining_deck) == 39

    def test_dealt_grids_are_face_down(self):
        deck = [c.revealed() for c in build_deck()]
        result = deal(deck)
        for grid in result.grids:
            assert not any(c.face_up for c in grid)

    def test_deal_conserves_cards(self):
        deck = build_deck(include_jokers=True)
        result = deal(deck)
        total = sum(len(g) for g in result.grids) + len(result.remaining_deck) + len(result.discard_pile)
        assert total == 54

    def test_deal_needs_13_cards(self):
        with pytest.raises(DeckExhausted):
            deal(build_deck()[:12])
        assert deal(build_deck()[:13]).remaining_deck == []


# =============================================================================
# Reshuffle
# =============================================================================

class TestReshuffle:

    def setup_method(self):
        self.discard = [
            Card(Suit.HEARTS, Rank.TWO, face_up=True),
            Card(Suit.CLUBS, Rank.NINE, face_up=True),
            Card(Suit.SPADES, Rank.QUEEN, face_up=True),
            Card(Suit.DIAMONDS, Rank.FOUR, face_up=True),
        ]

    def test_rebuilds_deck_from_all_but_top(self):
        deck, discard = reshuffle_if_exhausted([], self.discard, random.Random(5))

        assert discard == [self.discard[-1]]
        assert len(deck) == 3
        assert not any(c.face_up for c in deck)
        assert {c.hidden() for c in self.discard[:-1]} == set(deck)

    def test_single_discard_cannot_reshuffle(self):
        with pytest.raises(DeckExhausted):
            reshuffle_if_exhausted([], self.discard[:1])
        with pytest.raises(DeckExhausted):
            reshuffle_if_exhausted([], [])

    def test_non_empty_deck_is_left_alone(self):
        remaining = [Card(Suit.CLUBS, Rank.ACE)]
        deck, discard = reshuffle_if_exhausted(remaining, self.discard)
        assert deck == remaining
        assert discard == self.discard
