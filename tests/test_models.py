"""Tests for match models, initial state creation and required actions."""

import pytest

from werewolf_match.engine import (
    CommandRejectedError,
    EngineConfig,
    InvariantViolationError,
    compute_required_action,
    create_initial_match_state,
    find_actor,
    require_player,
)
from werewolf_match.models import (
    CastVote,
    NightActionState,
    Phase,
    RequiredActionType,
    Role,
    SeerAlignment,
)

from factories import BASE_TIME, make_seeds, make_state, update_player


class TestCreateInitialMatchState:
    """Tests for create_initial_match_state."""

    def test_lobby_defaults(self) -> None:
        state = create_initial_match_state(make_seeds(), BASE_TIME)

        assert state.phase == Phase.LOBBY
        assert state.day_number == 0
        assert state.night_number == 1
        assert state.phase_started_at == BASE_TIME
        assert state.phase_ends_at == BASE_TIME + 10_000
        assert state.started_at == BASE_TIME
        assert state.public_summary == "Match created. Waiting in lobby."
        assert state.players_alive == 8
        assert state.winner is None

    def test_seats_follow_input_order(self) -> None:
        state = create_initial_match_state(make_seeds(), BASE_TIME)
        assert [p.seat for p in state.players] == list(range(1, 9))
        assert [p.player_id for p in state.players] == [f"p{i}" for i in range(1, 9)]

    def test_uses_configured_lobby_duration(self) -> None:
        config = EngineConfig.fast()
        state = create_initial_match_state(make_seeds(), BASE_TIME, config)
        assert state.phase_ends_at == BASE_TIME + config.phase_duration_ms(Phase.LOBBY)

    def test_role_seed_is_reproducible(self) -> None:
        first = create_initial_match_state(make_seeds(), BASE_TIME, role_seed=5)
        second = create_initial_match_state(make_seeds(), BASE_TIME + 1, role_seed=5)
        assert [p.role for p in first.players] == [p.role for p in second.players]

    def test_requires_eight_players(self) -> None:
        with pytest.raises(CommandRejectedError):
            create_initial_match_state(make_seeds(6), BASE_TIME)


class TestMatchState:
    """Tests for MatchState helpers."""

    def test_alive_count_recomputed(self) -> None:
        state = make_state(dead=["p5", "p6"])
        assert state.players_alive == 6
        state = update_player(state, "p5", alive=True)
        assert state.players_alive == 7

    def test_alive_players_in_seat_order(self) -> None:
        state = make_state(dead=["p2"])
        assert [p.seat for p in state.alive_players()] == [1, 3, 4, 5, 6, 7, 8]

    def test_alive_werewolves(self) -> None:
        state = make_state(dead=["p1"])
        assert [p.player_id for p in state.alive_werewolves()] == ["p2"]
        assert len(state.alive_non_werewolves()) == 6

    def test_display_name_falls_back_to_id(self) -> None:
        state = make_state()
        assert state.display_name("p3") == "Carol"
        assert state.display_name("nobody") == "nobody"

    def test_player_lookup_errors(self) -> None:
        state = make_state()
        with pytest.raises(InvariantViolationError):
            require_player(state, "ghost")
        with pytest.raises(CommandRejectedError):
            find_actor(state, "ghost")

    def test_has_voted_distinguishes_abstain_from_no_vote(self) -> None:
        state = make_state(Phase.DAY_VOTE)
        state = update_player(state, "p5", vote=CastVote(target_player_id=None))
        assert state.find_player("p5").has_voted
        assert not state.find_player("p6").has_voted

    def test_seer_alignment(self) -> None:
        assert SeerAlignment.for_role(Role.WEREWOLF) == SeerAlignment.WEREWOLF
        assert SeerAlignment.for_role(Role.DOCTOR) == SeerAlignment.NOT_WEREWOLF

    def test_night_action_state_is_empty(self) -> None:
        assert NightActionState().is_empty()
        assert not NightActionState(seer_inspect_target_player_id="p1").is_empty()


class TestRequiredAction:
    """Tests for compute_required_action."""

    def test_werewolf_targets_exclude_wolves(self) -> None:
        state = make_state(Phase.NIGHT, dead=["p8"])
        required = compute_required_action(state, "p1")
        assert required.type == RequiredActionType.WOLF_KILL
        assert required.allowed_targets == ("p3", "p4", "p5", "p6", "p7")
        assert not required.already_submitted

    def test_seer_cannot_target_self(self) -> None:
        required = compute_required_action(make_state(Phase.NIGHT), "p3")
        assert required.type == RequiredActionType.SEER_INSPECT
        assert "p3" not in required.allowed_targets
        assert len(required.allowed_targets) == 7

    def test_doctor_cannot_repeat_last_protection(self) -> None:
        state = update_player(make_state(Phase.NIGHT), "p4", doctor_last_protected_player_id="p5")
        required = compute_required_action(state, "p4")
        assert required.type == RequiredActionType.DOCTOR_PROTECT
        assert "p5" not in required.allowed_targets
        assert "p4" in required.allowed_targets

    def test_submitted_night_action(self) -> None:
        state = update_player(
            make_state(Phase.NIGHT),
            "p3",
            night_action=NightActionState(seer_inspect_target_player_id="p1"),
        )
        assert compute_required_action(state, "p3").already_submitted

    def test_villager_has_nothing_to_do_at_night(self) -> None:
        required = compute_required_action(make_state(Phase.NIGHT), "p5")
        assert required.type == RequiredActionType.NONE

    def test_vote_targets_all_alive(self) -> None:
        state = make_state(Phase.DAY_VOTE, dead=["p2"])
        required = compute_required_action(state, "p5")
        assert required.type == RequiredActionType.VOTE
        assert "p2" not in required.allowed_targets
        assert "p5" in required.allowed_targets

    def test_opening_submitted_for_today(self) -> None:
        state = make_state(Phase.DAY_OPENING, day_number=2)
        state = update_player(state, "p5", did_opening_for_day=1)
        assert not compute_required_action(state, "p5").already_submitted
        state = update_player(state, "p5", did_opening_for_day=2)
        assert compute_required_action(state, "p5").already_submitted

    def test_dead_player(self) -> None:
        required = compute_required_action(make_state(Phase.DAY_VOTE, dead=["p5"]), "p5")
        assert required.type == RequiredActionType.NONE
        assert required.already_submitted
