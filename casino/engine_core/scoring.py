"""
Scoring - final tally of both capture piles.

Points:
- Most cards: more than 20 captured cards is worth 2; a 20-20 tie gives 1 each
- Spades: 6 or more spades is worth 2 (each player qualifies independently)
- Each Ace is worth 1
- Big Casino (10 of diamonds) is worth 2
- Little Casino (2 of spades) is worth 1

The winner has the strictly higher total; an exact tie has no winner.
Callable standalone so a client can preview scores mid-game.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from .constants import (
    ACE_POINTS,
    BIG_CASINO_POINTS,
    CARD_MAJORITY,
    LITTLE_CASINO_POINTS,
    MOST_CARDS_POINTS,
    MOST_SPADES_POINTS,
    SPADE_THRESHOLD,
    TIED_CARDS_POINTS,
)
from .state import Card, CapturePile, Suit

BIG_CASINO = Card("10", Suit.DIAMONDS)
LITTLE_CASINO = Card("2", Suit.SPADES)

CapturedCards = Union[CapturePile, Iterable[Iterable[Card]]]


@dataclass(frozen=True)
class ScoreDetail:
    """Per-player score breakdown."""
    most_cards: int
    most_spades: int
    aces: int
    big_casino: int
    little_casino: int
    total: int
    card_count: int
    spade_count: int


@dataclass(frozen=True)
class ScoreResult:
    scores: tuple[int, int]
    details: tuple[ScoreDetail, ScoreDetail]
    winner: int | None


def _flatten(captured: CapturedCards) -> tuple[Card, ...]:
    if isinstance(captured, CapturePile):
        return captured.cards
    return tuple(card for group in captured for card in group)


def _card_points(own_count: int, other_count: int) -> int:
    if own_count > CARD_MAJORITY:
        return MOST_CARDS_POINTS
    if own_count == CARD_MAJORITY and other_count == CARD_MAJORITY:
        return TIED_CARDS_POINTS
    return 0


def compute_scores(player_captures: Sequence[CapturedCards]) -> ScoreResult:
    """Score both players' captured cards."""
    if len(player_captures) != 2:
        raise ValueError("Casino is scored for exactly two players")

    piles = [_flatten(captured) for captured in player_captures]
    counts = [len(cards) for cards in piles]

    details = []
    for player, cards in enumerate(piles):
        spade_count = sum(1 for card in cards if card.suit is Suit.SPADES)
        most_cards = _card_points(counts[player], counts[1 - player])
        most_spades = MOST_SPADES_POINTS if spade_count >= SPADE_THRESHOLD else 0
        aces = ACE_POINTS * sum(1 for card in cards if card.rank == "A")
        big_casino = BIG_CASINO_POINTS if BIG_CASINO in cards else 0
        little_casino = LITTLE_CASINO_POINTS if LITTLE_CASINO in cards else 0
        details.append(ScoreDetail(
            most_cards=most_cards,
            most_spades=most_spades,
            aces=aces,
            big_casino=big_casino,
            little_casino=little_casino,
            total=most_cards + most_spades + aces + big_casino + little_casino,
            card_count=counts[player],
            spade_count=spade_count,
        ))

    scores = (details[0].total, details[1].total)
    if scores[0] > scores[1]:
        winner = 0
    elif scores[1] > scores[0]:
        winner = 1
    else:
        winner = None
    return ScoreResult(scores=scores, details=(details[0], details[1]), winner=winner)
