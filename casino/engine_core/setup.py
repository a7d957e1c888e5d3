"""
Game Setup - creates the initial game state.

This module handles:
- Creating the 40-card deck (A through 10 in four suits)
- Shuffling with a seed for determinism
- Dealing ten cards to each player; the table starts empty
"""

from __future__ import annotations
import random

from .constants import HAND_SIZE
from .rounds import deal
from .state import RANKS, Card, GameState, Suit


def create_deck() -> tuple[Card, ...]:
    """The full deck in a fixed order."""
    return tuple(Card(rank, suit) for suit in Suit for rank in RANKS)


def initialize_game(random_seed: int | None = None, starting_player: int = 0) -> GameState:
    """
    Set up a new game.

    Args:
        random_seed: Seed for deterministic shuffling
        starting_player: Index of the player who moves first

    Returns:
        Initial GameState ready for play
    """
    if starting_player not in (0, 1):
        raise ValueError("starting_player must be 0 or 1")

    rng = random.Random(random_seed)
    deck = list(create_deck())
    rng.shuffle(deck)

    remaining, hands = deal(tuple(deck), HAND_SIZE)
    return GameState(
        deck=remaining,
        player_hands=(tuple(hands[0]), tuple(hands[1])),
        current_player=starting_player,
        round=1,
    )
