"""
Round Controller - round and game transitions.

Runs after every reducer call. Once both hands are empty and no staging
stack is open:
- after round 1, ten more cards are dealt to each player from the deck
  (the table carries over);
- after the final round, the table is swept to the last capturer, the
  scores are computed and the game is frozen.
"""

from __future__ import annotations
import logging

from .action import Notice, NoticeKind
from .constants import FINAL_ROUND, HAND_SIZE
from .scoring import compute_scores
from .state import Card, GameState

logger = logging.getLogger(__name__)


def deal(deck: tuple[Card, ...], per_player: int) -> tuple[tuple[Card, ...], tuple[list[Card], list[Card]]]:
    """
    Deal alternately from the end of the deck, player 0 first.

    Returns (remaining deck, hands). Deals fewer cards if the deck runs out.
    """
    remaining = list(deck)
    hands: tuple[list[Card], list[Card]] = ([], [])
    for _ in range(per_player):
        for hand in hands:
            if remaining:
                hand.append(remaining.pop())
    return tuple(remaining), hands


def round_transition_due(state: GameState) -> bool:
    return not state.game_over and state.hands_empty and not state.stacks


def start_next_round(state: GameState) -> tuple[GameState, list[Notice]]:
    deck, hands = deal(state.deck, HAND_SIZE)
    next_round = state.round + 1
    state = state._copy_with(
        deck=deck,
        player_hands=(tuple(hands[0]), tuple(hands[1])),
        round=next_round,
    )
    logger.info("Round %d dealt, %d cards left in deck", next_round, len(deck))
    return state, [Notice(
        kind=NoticeKind.ROUND_OVER,
        message=f"Round {next_round - 1} complete. Dealing round {next_round}.",
        data={"round": next_round},
    )]


def sweep_table(state: GameState) -> tuple[GameState, list[Notice]]:
    """Give every card left on the table to the last capturer."""
    cards = state.table_cards()
    if not cards or state.last_capturer is None:
        return state, []

    player = state.last_capturer
    pile = state.captures(player).add_group(cards)
    state = state.with_captures(player, pile).with_table(())
    return state, [Notice(
        kind=NoticeKind.INFO,
        message=f"Player {player} sweeps the last {len(cards)} table cards.",
        data={"player": player, "cards": [card.card_id for card in cards]},
    )]


def finish_game(state: GameState) -> tuple[GameState, list[Notice]]:
    """Sweep, score and freeze the game."""
    state, notices = sweep_table(state)
    result = compute_scores(state.player_captures)
    state = state._copy_with(
        scores=result.scores,
        score_details=result.details,
        winner=result.winner,
        game_over=True,
    )
    if result.winner is None:
        message = f"Game over: tied at {result.scores[0]}."
    else:
        message = f"Game over: player {result.winner} wins {result.scores[0]}-{result.scores[1]}."
    logger.info("Game finished with scores %s", result.scores)
    notices.append(Notice(
        kind=NoticeKind.GAME_OVER,
        message=message,
        data={"scores": list(result.scores), "winner": result.winner},
    ))
    return state, notices


def advance_round(state: GameState) -> tuple[GameState, list[Notice]]:
    """Apply whichever round or game transition is due, if any."""
    if not round_transition_due(state):
        return state, []
    if state.round < FINAL_ROUND and state.deck:
        return start_next_round(state)
    return finish_game(state)
