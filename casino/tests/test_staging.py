"""
Tests for staging stacks.

Tests:
- Creating and growing stacks
- The one-hand-card rule
- Cards taken from the opponent's captures
- Capturing an own stack of table cards
"""

from ..engine_core.action import (
    AddToStack,
    CancelStack,
    Capture,
    CreateStack,
    FinalizeStack,
    ReorderStack,
)
from ..engine_core.errors import RuleCode
from ..engine_core.reducer import reduce
from ..engine_core.state import CardOrigin
from .factories import c, cs, make_state, stack


class TestCreateStack:
    """Tests for starting a stack."""

    def test_bigger_card_at_bottom(self):
        """A hand card dropped on a bigger table card goes on top."""
        state = make_state(hands=("3H 9C", "2D"), table=("8D",))

        result = reduce(state, CreateStack(player=0, card=c("3H"), origin=CardOrigin.HAND, target=c("8D")))

        assert result.success
        assert not result.turn_ended
        new_stack = result.state.stack_owned_by(0)
        assert new_stack.plain_cards == cs("8D 3H")
        assert new_stack.hand_card_count == 1
        assert result.state.hand(0) == cs("9C")

    def test_table_card_on_table_card(self):
        state = make_state(hands=("8H", "2D"), table=("2C", "6D"))

        result = reduce(state, CreateStack(player=0, card=c("2C"), origin=CardOrigin.TABLE, target=c("6D")))

        new_stack = result.state.stack_owned_by(0)
        assert new_stack.plain_cards == cs("6D 2C")
        assert new_stack.hand_card_count == 0
        assert result.state.table == (new_stack,)

    def test_second_stack_blocked(self):
        """A player with an open stack cannot start another."""
        state = make_state(
            hands=("3H 9C", "2D"),
            table=("8D", stack("s1", 0, ("6D", "table"), ("2C", "table"))),
        )

        result = reduce(state, CreateStack(player=0, card=c("3H"), origin=CardOrigin.HAND, target=c("8D")))

        assert result.error_code == RuleCode.OPEN_STACK

    def test_stack_on_itself_rejected(self):
        state = make_state(hands=("3H", "2D"), table=("8D",))

        result = reduce(state, CreateStack(player=0, card=c("8D"), origin=CardOrigin.TABLE, target=c("8D")))

        assert result.error_code == RuleCode.NO_TARGETS

    def test_opponent_card_without_target(self):
        """The opponent's top captured card may start a stack on its own."""
        state = make_state(hands=("3H", "2D"), captures=((), ("4H 6S",)))

        result = reduce(state, CreateStack(player=0, card=c("6S"), origin=CardOrigin.OPPONENT_CAPTURE))

        assert result.success
        assert result.state.stack_owned_by(0).plain_cards == cs("6S")
        assert result.state.captures(1).groups == (cs("4H"),)

    def test_opponent_card_must_be_on_top(self):
        state = make_state(hands=("3H", "2D"), captures=((), ("4H 6S",)))

        result = reduce(state, CreateStack(player=0, card=c("4H"), origin=CardOrigin.OPPONENT_CAPTURE))

        assert result.error_code == RuleCode.NO_OPPONENT_CARD


class TestGrowStack:
    """Tests for adding to and reordering a stack."""

    def test_add_appends_on_top(self):
        state = make_state(
            hands=("10C 3S", "2D"),
            table=("2H", stack("s1", 0, ("8D", "table"))),
        )

        result = reduce(state, AddToStack(player=0, stack_id="s1", card=c("2H"), origin=CardOrigin.TABLE))

        assert result.success
        assert result.state.find_stack("s1").plain_cards == cs("8D 2H")

    def test_only_one_hand_card(self):
        state = make_state(
            hands=("10C 3S", "2D"),
            table=(stack("s1", 0, ("8D", "table"), ("AH", "hand")),),
        )

        result = reduce(state, AddToStack(player=0, stack_id="s1", card=c("3S"), origin=CardOrigin.HAND))

        assert result.error_code == RuleCode.HAND_CARD_LIMIT

    def test_reorder_needs_same_cards(self):
        state = make_state(
            hands=("10C", "2D"),
            table=(stack("s1", 0, ("2H", "table"), ("8D", "table")),),
        )

        result = reduce(state, ReorderStack(player=0, stack_id="s1", order=cs("8D 3H")))

        assert result.error_code == RuleCode.INVALID_ORDER

    def test_reorder_keeps_origins(self):
        state = make_state(
            hands=("3S", "2D"),
            table=(stack("s1", 0, ("2H", "table"), ("10C", "hand")),),
        )

        result = reduce(state, ReorderStack(player=0, stack_id="s1", order=cs("10C 2H")))

        reordered = result.state.find_stack("s1")
        assert reordered.plain_cards == cs("10C 2H")
        assert reordered.hand_cards == cs("10C")

    def test_other_players_stack(self):
        state = make_state(
            hands=("3S", "2D"),
            table=(stack("s1", 1, ("2H", "table"), ("8D", "table")),),
        )

        result = reduce(state, CancelStack(player=0, stack_id="s1"))

        assert result.error_code == RuleCode.NOT_STACK_OWNER


class TestCloseStack:
    """Tests for capturing and cancelling stacks."""

    def test_capture_own_table_stack(self):
        """A stack of table cards can be captured with a hand card."""
        state = make_state(
            hands=("8H 2S", "2D"),
            table=(stack("s1", 0, ("6D", "table"), ("2C", "table")),),
        )

        result = reduce(state, Capture(player=0, card=c("8H"), stack_id="s1"))

        assert result.success
        assert result.state.captures(0).groups[-1] == cs("6D 2C 8H")
        assert result.state.stacks == ()
        assert result.state.current_player == 1

    def test_capture_stack_with_hand_card_rejected(self):
        state = make_state(
            hands=("8H 2S", "2D"),
            table=(stack("s1", 0, ("6D", "table"), ("2C", "hand")),),
        )

        result = reduce(state, Capture(player=0, card=c("8H"), stack_id="s1"))

        assert result.error_code == RuleCode.HAND_CARD_LIMIT

    def test_cancel_returns_opponent_card(self):
        """An opponent card goes back on top of their captures."""
        state = make_state(hands=("3H", "2D"), captures=((), ("4H 6S",)))
        staged = reduce(state, CreateStack(player=0, card=c("6S"), origin=CardOrigin.OPPONENT_CAPTURE))
        stack_id = staged.state.stack_owned_by(0).stack_id

        result = reduce(staged.state, CancelStack(player=0, stack_id=stack_id))

        assert result.success
        assert result.state.captures(1).groups == (cs("4H 6S"),)
        assert result.state.table == ()

    def test_finalize_capture_with_opponent_card(self):
        """Opponent cards sit between table cards and the capturing card."""
        state = make_state(
            hands=("9C", "2D"),
            table=(stack("s1", 0, ("6S", "opponentCapture"), ("4D", "table"), ("10C", "hand")),),
            captures=((), ("4H",)),
        )

        result = reduce(state, FinalizeStack(player=0, stack_id="s1"))

        assert result.success
        assert result.state.captures(0).groups[-1] == cs("4D 6S 10C")
