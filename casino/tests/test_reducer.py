"""
Tests for the reducer (state transitions).

Tests:
- Handler coverage of the Action union
- Turn gate
- Trail, capture, build, steal and merge
- Stack finalization through the reducer
- Internal errors and integrity checks
"""

from ..engine_core.action import (
    ACTION_CLASSES,
    AddToOpponentBuild,
    AddToOwnBuild,
    CancelStack,
    Capture,
    CommitStackToBuild,
    CreateBaseBuild,
    CreateBuild,
    EndGame,
    ExtendToMerge,
    FinalizeIntent,
    FinalizeStack,
    NoticeKind,
    ReorderStack,
    Trail,
)
from ..engine_core.errors import EngineInvariantError, RuleCode
from ..engine_core.reducer import HANDLERS, reduce
from ..engine_core.validation import validate_trail
from .factories import build, c, cs, make_state, stack


class TestHandlers:
    """Tests for the dispatch table."""

    def test_every_action_has_a_handler(self):
        """The handler table covers exactly the Action union."""
        assert set(HANDLERS) == set(ACTION_CLASSES)


class TestTurnGate:
    """Tests for checks shared by every action."""

    def test_wrong_player_rejected(self):
        """Acting out of turn leaves the state untouched."""
        state = make_state(hands=("7H", "3C"), current_player=1)

        result = reduce(state, Trail(player=0, card=c("7H")))

        assert not result.success
        assert result.error_code == RuleCode.NOT_YOUR_TURN
        assert result.state is state
        assert result.notices[0].kind == NoticeKind.REJECTED

    def test_game_over_rejects_everything(self):
        state = make_state(hands=("7H", "3C"))._copy_with(game_over=True)

        result = reduce(state, Trail(player=0, card=c("7H")))

        assert result.error_code == RuleCode.GAME_OVER

    def test_open_stack_blocks_other_actions(self):
        """A player with a staging stack must finish it first."""
        state = make_state(
            hands=("7H 2C", "3D"),
            table=(stack("s1", 0, ("9S", "table"), ("AD", "hand")),),
        )

        result = reduce(state, Trail(player=0, card=c("2C")))

        assert result.error_code == RuleCode.OPEN_STACK


class TestTrail:
    """Tests for trailing."""

    def test_trail_places_card(self):
        state = make_state(hands=("7H 2D", "3C"), table=("5S",))

        result = reduce(state, Trail(player=0, card=c("7H")))

        assert result.success
        assert result.turn_ended
        assert result.state.table == cs("5S 7H")
        assert result.state.hand(0) == cs("2D")
        assert result.state.current_player == 1

    def test_round_one_trail_with_build_rejected(self):
        """Owning a build forbids trailing in round 1."""
        state = make_state(
            hands=("7H 9D", "2C"),
            table=(build("b0", "5C 4C", 9, owner=0),),
        )

        result = reduce(state, Trail(player=0, card=c("7H")))

        assert result.error_code == RuleCode.TRAIL_WITH_BUILD

    def test_duplicate_rank_rejected(self):
        """A loose card of the same rank must be captured, not trailed onto."""
        state = make_state(hands=("7H 2D", "3C"), table=("7S",))

        result = reduce(state, Trail(player=0, card=c("7H")))

        assert result.error_code == RuleCode.DUPLICATE_RANK

    def test_round_two_trail_is_staged(self):
        """In round 2 a trail becomes a single-card stack until confirmed."""
        state = make_state(
            hands=("7H 9D", "2C"),
            table=(build("b0", "5C 4C", 9, owner=0),),
            round=2,
        )

        staged = reduce(state, Trail(player=0, card=c("7H")))

        assert staged.success
        assert not staged.turn_ended
        assert staged.state.current_player == 0
        open_stack = staged.state.stack_owned_by(0)
        assert open_stack.plain_cards == cs("7H")

        confirmed = reduce(staged.state, FinalizeStack(player=0, stack_id=open_stack.stack_id))

        assert confirmed.success
        assert c("7H") in confirmed.state.loose_cards
        assert confirmed.state.stacks == ()
        assert confirmed.state.current_player == 1


class TestCapture:
    """Tests for capturing."""

    def test_capture_loose_and_build(self):
        """Table cards first, capturing card on top."""
        state = make_state(
            hands=("8H 2C", "3D"),
            table=("5D", "3C", build("b1", "6S 2D", 8, owner=1)),
        )

        result = reduce(state, Capture(player=0, card=c("8H"), loose=cs("5D 3C"), build_ids=("b1",)))

        assert result.success
        assert result.state.captures(0).groups[-1] == cs("5D 3C 6S 2D 8H")
        assert result.state.table == ()
        assert result.state.last_capturer == 0

    def test_capture_with_opponent_card(self):
        """The opponent's top captured card can complete a combination."""
        state = make_state(
            hands=("7H 2C", "3D"),
            table=("3H",),
            captures=((), ("5C 4S",)),
        )

        result = reduce(state, Capture(player=0, card=c("7H"), loose=cs("3H"), use_opponent_card=True))

        assert result.success
        assert result.state.captures(0).groups[-1] == cs("3H 4S 7H")
        assert result.state.captures(1).groups == (cs("5C"),)

    def test_partial_partition_rejected(self):
        """Every targeted card must be grouped."""
        state = make_state(hands=("10H 2C", "3D"), table=("6D", "3C"))

        result = reduce(state, Capture(player=0, card=c("10H"), loose=cs("6D 3C")))

        assert result.error_code == RuleCode.NO_PARTITION

    def test_build_value_must_match(self):
        state = make_state(
            hands=("9H 2C", "3D"),
            table=(build("b1", "6S 2D", 8, owner=1),),
        )

        result = reduce(state, Capture(player=0, card=c("9H"), build_ids=("b1",)))

        assert result.error_code == RuleCode.VALUE_MISMATCH

    def test_nothing_targeted(self):
        state = make_state(hands=("9H 2C", "3D"), table=("9D",))

        result = reduce(state, Capture(player=0, card=c("9H")))

        assert result.error_code == RuleCode.NO_TARGETS


class TestCreateBuild:
    """Tests for creating builds."""

    def test_sum_build(self):
        """6♣ on 4♦ with 10♥ in hand builds 10 from [4♦, 6♣]."""
        state = make_state(hands=("6C 10H 2H", "3S"), table=("4D",))

        result = reduce(state, CreateBuild(player=0, card=c("6C"), target=c("4D"), value=10))

        assert result.success
        new_build = result.state.build_owned_by(0)
        assert new_build.value == 10
        assert new_build.cards == cs("4D 6C")
        assert new_build.is_extendable
        assert result.state.hand(0) == cs("10H 2H")
        assert result.state.current_player == 1

    def test_capture_card_required(self):
        state = make_state(hands=("6C 2H", "3S"), table=("4D",))

        result = reduce(state, CreateBuild(player=0, card=c("6C"), target=c("4D"), value=10))

        assert result.error_code == RuleCode.NO_CAPTURE_CARD

    def test_opponent_value_taken(self):
        state = make_state(
            hands=("6C 10H", "2D"),
            table=("4D", build("b1", "7S 3H", 10, owner=1)),
        )

        result = reduce(state, CreateBuild(player=0, card=c("6C"), target=c("4D"), value=10))

        assert result.error_code == RuleCode.OPPONENT_BUILD_VALUE

    def test_one_build_limit(self):
        state = make_state(
            hands=("6C 10H 9C", "2D"),
            table=("4D", build("b0", "5C 4C", 9, owner=0)),
        )

        result = reduce(state, CreateBuild(player=0, card=c("6C"), target=c("4D"), value=10))

        assert result.error_code == RuleCode.ONE_BUILD_LIMIT
        assert "one build" in result.error

    def test_set_build_groups_matching_loose_cards(self):
        """Loose cards of the build's value join its base."""
        state = make_state(hands=("5H 5C 2D", "3S"), table=("5D", "5S"))

        result = reduce(state, CreateBuild(player=0, card=c("5H"), target=c("5D"), value=5))

        assert result.success
        new_build = result.state.build_owned_by(0)
        assert new_build.cards == cs("5S 5D 5H")
        assert not new_build.is_extendable
        assert result.state.loose_cards == ()

    def test_steal_on_build(self):
        """The opponent's matching top card is absorbed into a new build."""
        state = make_state(
            hands=("6C 10H 2H", "3D"),
            table=("4D",),
            captures=((), ("2C 10S",)),
        )

        result = reduce(state, CreateBuild(player=0, card=c("6C"), target=c("4D"), value=10))

        assert result.success
        new_build = result.state.build_owned_by(0)
        assert new_build.cards == cs("10S 4D 6C")
        assert not new_build.is_extendable
        assert result.state.captures(1).groups == (cs("2C"),)
        assert result.notices[0].kind == NoticeKind.INFO

    def test_base_build(self):
        """Several loose combinations are bound under one hand card."""
        state = make_state(hands=("8H 8C", "3D"), table=("5D", "3C", "6S", "2S"))

        result = reduce(state, CreateBaseBuild(player=0, card=c("8H"), table_cards=cs("5D 3C 6S 2S")))

        assert result.success
        new_build = result.state.build_owned_by(0)
        assert new_build.value == 8
        assert new_build.cards == cs("5D 3C 6S 2S 8H")
        assert not new_build.is_extendable
        assert result.state.table == (new_build,)


class TestOwnBuild:
    """Tests for increasing and reinforcing an own build."""

    def test_increase(self):
        state = make_state(hands=("3H 9C", "2D"), table=(build("b0", "4D 2C", 6, owner=0),))

        result = reduce(state, AddToOwnBuild(player=0, card=c("3H"), build_id="b0"))

        assert result.success
        updated = result.state.find_build("b0")
        assert updated.value == 9
        assert updated.cards == cs("4D 2C 3H")
        assert updated.is_extendable

    def test_reinforce(self):
        """Adding a card of the build's value keeps it and locks it."""
        state = make_state(hands=("6H 6C", "2D"), table=(build("b0", "4D 2C", 6, owner=0),))

        result = reduce(state, AddToOwnBuild(player=0, card=c("6H"), build_id="b0"))

        updated = result.state.find_build("b0")
        assert updated.value == 6
        assert not updated.is_extendable

    def test_reinforce_allowed_on_locked_build(self):
        state = make_state(
            hands=("6H 6C", "2D"),
            table=(build("b0", "4D 2C", 6, owner=0, is_extendable=False),),
        )

        result = reduce(state, AddToOwnBuild(player=0, card=c("6H"), build_id="b0"))

        assert result.success

    def test_increase_locked_build_rejected(self):
        state = make_state(
            hands=("3H 9C", "2D"),
            table=(build("b0", "4D 2C", 6, owner=0, is_extendable=False),),
        )

        result = reduce(state, AddToOwnBuild(player=0, card=c("3H"), build_id="b0"))

        assert result.error_code == RuleCode.BUILD_NOT_EXTENDABLE

    def test_increase_over_ten_rejected(self):
        state = make_state(hands=("3H 9C", "2D"), table=(build("b0", "6D 2C", 8, owner=0),))

        result = reduce(state, AddToOwnBuild(player=0, card=c("3H"), build_id="b0"))

        assert result.error_code == RuleCode.VALUE_OVER_TEN


class TestSteal:
    """Tests for taking over an opponent's build."""

    def test_steal(self):
        state = make_state(hands=("4C 9D", "7H"), table=(build("b1", "3S 2H", 5, owner=1),))

        result = reduce(state, AddToOpponentBuild(player=0, card=c("4C"), build_id="b1"))

        assert result.success
        stolen = result.state.find_build("b1")
        assert stolen.owner == 0
        assert stolen.value == 9
        assert stolen.cards == cs("4C 3S 2H")
        assert result.notices[0].kind == NoticeKind.INFO

    def test_steal_over_ten_rejected(self):
        """Stealing an 8-build with a 3 would make 11."""
        state = make_state(hands=("3C 10S", "7D"), table=(build("b1", "5H 3D", 8, owner=1),))

        result = reduce(state, AddToOpponentBuild(player=0, card=c("3C"), build_id="b1"))

        assert not result.success
        assert result.error_code == RuleCode.VALUE_OVER_TEN
        assert "over 10" in result.error
        assert result.state is state

    def test_steal_with_own_build_rejected(self):
        state = make_state(
            hands=("4C 9D 7C", "7H"),
            table=(build("b1", "3S 2H", 5, owner=1), build("b0", "4D 3D", 7, owner=0)),
        )

        result = reduce(state, AddToOpponentBuild(player=0, card=c("4C"), build_id="b1"))

        assert result.error_code == RuleCode.ONE_BUILD_LIMIT

    def test_extend_to_merge(self):
        """Raising the opponent's build to the own build's value merges them."""
        state = make_state(
            hands=("3D 9S", "2H"),
            table=(build("b0", "5H 4H", 9, owner=0), build("b1", "4C 2C", 6, owner=1)),
        )

        result = reduce(state, ExtendToMerge(player=0, card=c("3D"), build_id="b1"))

        assert result.success
        assert result.state.find_build("b1") is None
        merged = result.state.find_build("b0")
        assert merged.cards == cs("5H 4H 4C 3D 2C")
        assert not merged.is_extendable
        assert result.state.current_player == 1


class TestStackFinalization:
    """Tests for confirming staging stacks."""

    def test_commit_reinforces_opponent_build(self):
        """[9♠ table, A♦ hand] onto a 10-build takes it over and locks it."""
        state = make_state(
            hands=("10C", "5S"),
            table=(
                build("b1", "6H 4H", 10, owner=1),
                stack("s1", 0, ("9S", "table"), ("AD", "hand")),
            ),
        )

        result = reduce(state, CommitStackToBuild(player=0, stack_id="s1", build_id="b1"))

        assert result.success
        reinforced = result.state.find_build("b1")
        assert reinforced.cards == cs("6H 4H 9S AD")
        assert reinforced.owner == 0
        assert not reinforced.is_extendable
        assert result.state.current_player == 1

    def test_commit_merge_keeps_turn(self):
        """Table-only stacks merge into the own build without ending the turn."""
        state = make_state(
            hands=("7C", "2H"),
            table=(
                build("b0", "4H 3H", 7, owner=0),
                stack("s1", 0, ("5S", "table"), ("2D", "table")),
            ),
        )

        result = reduce(state, CommitStackToBuild(player=0, stack_id="s1", build_id="b0"))

        assert result.success
        assert not result.turn_ended
        assert result.state.current_player == 0
        assert result.state.find_build("b0").cards == cs("4H 3H 5S 2D")

    def test_failed_reinforce_disbands(self):
        """A hand card in a stack that does not fit the build disbands it."""
        state = make_state(
            hands=("10C", "5S"),
            table=(
                build("b1", "6H 4H", 10, owner=1),
                stack("s1", 0, ("8S", "table"), ("AD", "hand")),
            ),
        )

        result = reduce(state, CommitStackToBuild(player=0, stack_id="s1", build_id="b1"))

        assert result.success
        assert result.notices[0].kind == NoticeKind.DISBANDED
        assert set(result.state.loose_cards) == {c("8S"), c("AD")}
        assert result.state.current_player == 1

    def test_finalize_capture(self):
        state = make_state(
            hands=("3S", "7D"),
            table=(stack("s1", 0, ("8D", "table"), ("2H", "table"), ("10C", "hand")),),
        )

        result = reduce(state, FinalizeStack(player=0, stack_id="s1"))

        assert result.success
        assert result.state.captures(0).groups[-1] == cs("8D 2H 10C")
        assert result.state.last_capturer == 0

    def test_combo_order_then_reorder(self):
        """A badly ordered combo is rejected, not disbanded, and can be fixed."""
        state = make_state(
            hands=("3S", "7D"),
            table=(stack("s1", 0, ("2H", "table"), ("8D", "table"), ("10C", "hand")),),
        )

        rejected = reduce(state, FinalizeStack(player=0, stack_id="s1"))

        assert rejected.error_code == RuleCode.COMBO_ORDER
        assert "8♦ + 2♥" in rejected.error
        assert rejected.state is state

        reordered = reduce(state, ReorderStack(player=0, stack_id="s1", order=cs("8D 2H 10C")))
        assert reordered.success
        assert not reordered.turn_ended

        confirmed = reduce(reordered.state, FinalizeStack(player=0, stack_id="s1"))
        assert confirmed.success

    def test_choice_required_then_build(self):
        """Ambiguous stacks list the options; an explicit choice settles it."""
        state = make_state(
            hands=("10H 5S", "7D"),
            table=(stack("s1", 0, ("5D", "table"), ("5C", "hand")),),
        )

        ambiguous = reduce(state, FinalizeStack(player=0, stack_id="s1"))

        assert ambiguous.error_code == RuleCode.CHOICE_REQUIRED
        assert ambiguous.notices[0].kind == NoticeKind.CHOICE_REQUIRED
        assert ambiguous.notices[0].data["options"] == {"capture": True, "build_values": [5, 10]}

        chosen = reduce(
            state,
            FinalizeStack(player=0, stack_id="s1", intent=FinalizeIntent.BUILD, build_value=10),
        )

        assert chosen.success
        new_build = chosen.state.build_owned_by(0)
        assert new_build.value == 10
        assert new_build.cards == cs("5D 5C")
        assert new_build.is_extendable

    def test_no_options_disbands(self):
        state = make_state(
            hands=("2D", "3D"),
            table=(stack("s1", 0, ("7H", "table"), ("5C", "hand")),),
        )

        result = reduce(state, FinalizeStack(player=0, stack_id="s1"))

        assert result.success
        assert result.turn_ended
        assert result.notices[0].kind == NoticeKind.DISBANDED
        assert result.notices[0].code == RuleCode.NO_OPTIONS
        assert result.state.table == cs("7H 5C")

    def test_no_hand_card_rejected(self):
        state = make_state(
            hands=("2D", "3D"),
            table=(stack("s1", 0, ("6D", "table"), ("2C", "table")),),
        )

        result = reduce(state, FinalizeStack(player=0, stack_id="s1"))

        assert result.error_code == RuleCode.NO_HAND_CARD
        assert result.state is state

    def test_cancel_returns_cards(self):
        state = make_state(
            hands=("10C", "5S"),
            table=(stack("s1", 0, ("9S", "table"), ("AD", "hand")),),
        )

        result = reduce(state, CancelStack(player=0, stack_id="s1"))

        assert result.success
        assert result.state.hand(0) == cs("10C AD")
        assert result.state.table == cs("9S")
        assert result.state.current_player == 0


class TestEndGame:
    """Tests for ending the game early."""

    def test_end_game_sweeps_and_scores(self):
        state = make_state(
            hands=("7C", "2H"),
            table=("5S", "9D"),
            captures=(("AH 3C",), ()),
            last_capturer=0,
        )

        result = reduce(state, EndGame(reason="players agreed"))

        assert result.success
        assert result.state.game_over
        assert result.state.captures(0).cards == cs("AH 3C 5S 9D")
        assert result.state.scores == (1, 0)
        assert result.state.winner == 0
        assert result.notices[-1].kind == NoticeKind.GAME_OVER

        after = reduce(result.state, Trail(player=0, card=c("7C")))
        assert after.error_code == RuleCode.GAME_OVER


class TestInternalErrors:
    """Tests for invariant breaches."""

    def test_integrity_breach_reported(self):
        """A duplicated card makes the transition an internal error."""
        state = make_state(hands=("5H 9C", "2D"), table=("5H",))

        result = reduce(state, Trail(player=0, card=c("9C")))

        assert not result.success
        assert result.error_code == RuleCode.INTERNAL_ERROR
        assert result.notices[0].kind == NoticeKind.INTERNAL_ERROR
        assert result.state is state

    def test_executor_invariant_error(self, monkeypatch):
        """EngineInvariantError from an executor never escapes the reducer."""
        def broken(state, action, validation):
            raise EngineInvariantError("card to remove not found")

        monkeypatch.setitem(HANDLERS, Trail, (validate_trail, broken))
        state = make_state(hands=("7H", "3C"))

        result = reduce(state, Trail(player=0, card=c("7H")))

        assert result.error_code == RuleCode.INTERNAL_ERROR
        assert "card to remove not found" in result.error
        assert result.state is state
