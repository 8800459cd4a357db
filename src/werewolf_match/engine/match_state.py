"""Match state creation and derived per-player views."""

from typing import Optional, Sequence

from werewolf_match.engine.config import EngineConfig
from werewolf_match.engine.exceptions import CommandRejectedError, InvariantViolationError
from werewolf_match.engine.hashing import Seed
from werewolf_match.engine.role_assign import assign_roles
from werewolf_match.models import (
    MatchPlayer,
    MatchState,
    Phase,
    PlayerSeed,
    RequiredAction,
    RequiredActionType,
    Role,
)

INITIAL_PUBLIC_SUMMARY = "Match created. Waiting in lobby."


def create_initial_match_state(
    players: Sequence[PlayerSeed],
    now: int,
    config: Optional[EngineConfig] = None,
    role_seed: Optional[Seed] = None,
) -> MatchState:
    """Build the LOBBY snapshot of a new match.

    Seats 1..8 follow the input order; roles come from ``assign_roles``.
    """
    config = config or EngineConfig()
    roles = assign_roles([p.player_id for p in players], role_seed)
    seated = tuple(
        MatchPlayer(
            player_id=seed.player_id,
            display_name=seed.display_name,
            seat=index + 1,
            role=roles[seed.player_id],
        )
        for index, seed in enumerate(players)
    )
    return MatchState(
        phase=Phase.LOBBY,
        day_number=0,
        night_number=1,
        phase_started_at=now,
        phase_ends_at=now + config.phase_duration_ms(Phase.LOBBY),
        started_at=now,
        public_summary=INITIAL_PUBLIC_SUMMARY,
        players_alive=len(seated),
        players=seated,
    )


def require_player(state: MatchState, player_id: str) -> MatchPlayer:
    """Look up a player that must exist in a known-valid state."""
    player = state.find_player(player_id)
    if player is None:
        raise InvariantViolationError(f"Unknown player {player_id}")
    return player


def find_actor(state: MatchState, player_id: str) -> MatchPlayer:
    """Look up the player issuing a command. Unknown ids are rejected."""
    player = state.find_player(player_id)
    if player is None:
        raise CommandRejectedError(f"Unknown player {player_id}")
    return player


def compute_required_action(state: MatchState, player_id: str) -> RequiredAction:
    """Derive what a player must submit in the current phase."""
    player = require_player(state, player_id)
    if not player.alive:
        return RequiredAction(type=RequiredActionType.NONE, already_submitted=True)

    alive = state.alive_players()

    if state.phase == Phase.NIGHT:
        action = player.night_action
        if player.role == Role.WEREWOLF:
            return RequiredAction(
                type=RequiredActionType.WOLF_KILL,
                allowed_targets=tuple(p.player_id for p in alive if p.role != Role.WEREWOLF),
                already_submitted=action.wolf_kill_target_player_id is not None,
            )
        if player.role == Role.SEER:
            return RequiredAction(
                type=RequiredActionType.SEER_INSPECT,
                allowed_targets=tuple(p.player_id for p in alive if p.player_id != player_id),
                already_submitted=action.seer_inspect_target_player_id is not None,
            )
        if player.role == Role.DOCTOR:
            return RequiredAction(
                type=RequiredActionType.DOCTOR_PROTECT,
                allowed_targets=tuple(
                    p.player_id for p in alive
                    if p.player_id != player.doctor_last_protected_player_id
                ),
                already_submitted=action.doctor_protect_target_player_id is not None,
            )
        return RequiredAction(type=RequiredActionType.NONE)

    if state.phase == Phase.DAY_OPENING:
        return RequiredAction(
            type=RequiredActionType.SPEAK_OPENING,
            already_submitted=player.did_opening_for_day == state.day_number,
        )
    if state.phase == Phase.DAY_DISCUSSION:
        return RequiredAction(type=RequiredActionType.SPEAK_DISCUSSION)
    if state.phase == Phase.DAY_VOTE:
        return RequiredAction(
            type=RequiredActionType.VOTE,
            allowed_targets=tuple(p.player_id for p in alive),
            already_submitted=player.has_voted,
        )
    return RequiredAction(type=RequiredActionType.NONE)
