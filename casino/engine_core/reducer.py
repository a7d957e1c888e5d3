"""
Reducer - Applies actions to game state.

The reducer is the single point of state change.
All state changes must go through reduce().

Design principles:
- Pure function: (state, action) -> ActionResult with the next state
- Validates before applying; a rejection returns the unchanged state
  plus a notice
- One handler per action class, checked to cover the whole Action union
- The round controller runs after every applied action
- Structural invariants are checked after every transition
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable
import logging

from .action import (
    ACTION_CLASSES,
    Action,
    ActionResult,
    AddToOpponentBuild,
    AddToOwnBuild,
    AddToStack,
    CancelStack,
    Capture,
    CommitStackToBuild,
    CreateBaseBuild,
    CreateBuild,
    CreateStack,
    EndGame,
    ExtendToMerge,
    FinalizeStack,
    ReorderStack,
    Trail,
    acting_player,
)
from .errors import EngineInvariantError
from .executors import (
    Transition,
    execute_add_to_opponent_build,
    execute_add_to_own_build,
    execute_capture,
    execute_create_base_build,
    execute_create_build,
    execute_extend_to_merge,
    execute_trail,
)
from .rounds import advance_round, finish_game
from .staging import (
    add_to_stack,
    cancel_stack,
    commit_stack_to_build,
    create_stack,
    disband_stack,
    finalize_stack,
    reorder_stack,
)
from .state import GameState
from . import validation as rules

logger = logging.getLogger(__name__)

Validator = Callable[[GameState, Action], rules.Validation]
Executor = Callable[[GameState, Action, rules.Validation], Transition]


def _end_game(state: GameState, action: EndGame, validation: rules.Validation) -> Transition:
    state, notices = finish_game(state)
    return Transition(state=state, turn_ended=False, notices=notices)


HANDLERS: dict[type, tuple[Validator, Executor]] = {
    Trail: (rules.validate_trail, execute_trail),
    Capture: (rules.validate_capture, execute_capture),
    CreateBuild: (rules.validate_create_build, execute_create_build),
    CreateBaseBuild: (rules.validate_create_base_build, execute_create_base_build),
    AddToOwnBuild: (rules.validate_add_to_own_build, execute_add_to_own_build),
    AddToOpponentBuild: (rules.validate_add_to_opponent_build, execute_add_to_opponent_build),
    ExtendToMerge: (rules.validate_extend_to_merge, execute_extend_to_merge),
    CreateStack: (rules.validate_create_stack, create_stack),
    AddToStack: (rules.validate_add_to_stack, add_to_stack),
    ReorderStack: (rules.validate_reorder_stack, reorder_stack),
    CommitStackToBuild: (rules.validate_commit_stack_to_build, commit_stack_to_build),
    FinalizeStack: (rules.validate_finalize_stack, finalize_stack),
    CancelStack: (rules.validate_cancel_stack, cancel_stack),
    EndGame: (rules.validate_end_game, _end_game),
}

_missing = set(ACTION_CLASSES) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"Actions without a handler: {sorted(c.__name__ for c in _missing)}")


@dataclass
class Reducer:
    """
    Reducer applies actions to game state.

    Stateless - all state is in GameState.
    """
    check_integrity: bool = True

    def apply(self, state: GameState, action: Action) -> ActionResult:
        """
        Apply an action to the game state.

        Returns ActionResult with the new state, or the unchanged state and
        a rejection notice.
        """
        handler = self._get_handler(action)
        if handler is None:
            return ActionResult.internal_error(
                state, f"No handler for action: {type(action).__name__}"
            )
        validator, executor = handler

        verdict = rules.validate_turn(state, action)
        if verdict.valid:
            verdict = validator(state, action)

        try:
            if not verdict.valid:
                if verdict.derived.get("disband"):
                    transition = self._disband(state, action, verdict)
                else:
                    logger.info(
                        "Rejected %s from player %s: %s",
                        type(action).__name__, acting_player(action), verdict.reason,
                    )
                    options = verdict.derived.get("options")
                    return ActionResult.rejected(
                        state,
                        verdict.reason or "Invalid move.",
                        verdict.code,
                        data={"options": options} if options else None,
                    )
            else:
                transition = executor(state, action, verdict)
        except EngineInvariantError as e:
            logger.exception("Engine invariant broken while applying %s", type(action).__name__)
            return ActionResult.internal_error(state, str(e))

        return self._finish(state, action, transition)

    def _get_handler(self, action: Action) -> tuple[Validator, Executor] | None:
        """Get the validator/executor pair for an action."""
        return HANDLERS.get(type(action))

    def _disband(self, state: GameState, action: Action, verdict: rules.Validation) -> Transition:
        stack = state.find_stack(action.stack_id)
        if stack is None:
            raise EngineInvariantError(f"Stack {action.stack_id} not found for disband")
        logger.info("Disbanding stack %s: %s", stack.stack_id, verdict.reason)
        return disband_stack(state, stack, verdict.reason or "", verdict.code)

    def _finish(self, before: GameState, action: Action, transition: Transition) -> ActionResult:
        state = transition.state
        notices = list(transition.notices)

        if transition.turn_ended:
            state = state._copy_with(current_player=state.opponent(state.current_player))

        state, round_notices = advance_round(state)
        notices.extend(round_notices)

        if self.check_integrity:
            issues = state.integrity_issues()
            if state.total_card_count() != before.total_card_count():
                issues.append(
                    f"Card count changed from {before.total_card_count()} "
                    f"to {state.total_card_count()}"
                )
            if issues:
                logger.error(
                    "State invariants broken by %s: %s", type(action).__name__, issues
                )
                return ActionResult.internal_error(before, "; ".join(issues))

        logger.debug(
            "Applied %s from player %s (round %d, next player %d)",
            type(action).__name__, acting_player(action), state.round, state.current_player,
        )
        return ActionResult.applied(state, notices, turn_ended=transition.turn_ended)


_default_reducer = Reducer()


def reduce(state: GameState, action: Action) -> ActionResult:
    """
    Convenience function to apply an action.

    Returns ActionResult; ``result.state`` is the state to keep either way.
    """
    return _default_reducer.apply(state, action)
