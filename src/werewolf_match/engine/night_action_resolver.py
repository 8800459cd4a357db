"""Night action submission and resolution."""

import logging
from collections import Counter
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from werewolf_match.engine.exceptions import CommandRejectedError, InvariantViolationError
from werewolf_match.engine.hashing import select_deterministic
from werewolf_match.engine.match_state import find_actor, require_player
from werewolf_match.models import (
    MatchState,
    NightActionState,
    Phase,
    Role,
    SeerAlignment,
    SeerInspection,
)

logger = logging.getLogger(__name__)

WOLF_KILL_SEED = 0x6D2B79F5
DEFAULT_MAX_MISSED_RESPONSES = 4


class NightActionKind(str, Enum):
    WOLF_KILL = "WOLF_KILL"
    SEER_INSPECT = "SEER_INSPECT"
    DOCTOR_PROTECT = "DOCTOR_PROTECT"


_ACTION_FIELD = {
    NightActionKind.WOLF_KILL: "wolf_kill_target_player_id",
    NightActionKind.SEER_INSPECT: "seer_inspect_target_player_id",
    NightActionKind.DOCTOR_PROTECT: "doctor_protect_target_player_id",
}

_ACTION_ROLE = {
    NightActionKind.WOLF_KILL: Role.WEREWOLF,
    NightActionKind.SEER_INSPECT: Role.SEER,
    NightActionKind.DOCTOR_PROTECT: Role.DOCTOR,
}


class NightResolution(BaseModel):
    """Outcome of resolving one night."""

    model_config = ConfigDict(frozen=True)

    next_state: MatchState
    wolf_kill_target_player_id: Optional[str] = None
    protected_player_id: Optional[str] = None
    eliminated_player_id: Optional[str] = None
    timeout_eliminated_player_ids: tuple[str, ...] = ()
    seer_result: Optional[SeerInspection] = None

    @property
    def saved_by_doctor(self) -> bool:
        return self.wolf_kill_target_player_id is not None and self.eliminated_player_id is None

    @property
    def all_eliminated_player_ids(self) -> list[str]:
        ids = [self.eliminated_player_id] if self.eliminated_player_id else []
        return ids + list(self.timeout_eliminated_player_ids)


class NightActionResolver:
    """Validates night submissions and resolves the night.

    Resolution order:
    1. Wolf kill target (plurality of wolf votes, or a seeded default)
    2. Doctor protection cancels the kill if it names the same player
    3. Seer inspection against the target's current role
    4. Players over the missed-response threshold are removed
    """

    def __init__(self, max_missed_responses: int = DEFAULT_MAX_MISSED_RESPONSES):
        self.max_missed_responses = max_missed_responses

    def apply_action(
        self,
        state: MatchState,
        kind: NightActionKind,
        actor_id: str,
        target_id: str,
    ) -> MatchState:
        """Record one night submission.

        Raises:
            CommandRejectedError: Wrong phase, dead or wrong-role actor,
                ineligible target, or a repeat submission tonight.
        """
        if state.phase != Phase.NIGHT:
            raise CommandRejectedError(f"{kind.value} can only be handled during NIGHT")

        actor = find_actor(state, actor_id)
        if not actor.alive:
            raise CommandRejectedError("Dead players cannot act at night")
        if actor.role != _ACTION_ROLE[kind]:
            raise CommandRejectedError(
                f"Only a {_ACTION_ROLE[kind].value} can submit {kind.value}"
            )

        field = _ACTION_FIELD[kind]
        if getattr(actor.night_action, field) is not None:
            raise CommandRejectedError(f"{kind.value} already submitted tonight")

        target = find_actor(state, target_id)
        if not target.alive:
            raise CommandRejectedError(f"{kind.value} target must be alive")
        if kind == NightActionKind.WOLF_KILL and target.role == Role.WEREWOLF:
            raise CommandRejectedError("Wolf kill target must be a non-werewolf")
        if kind == NightActionKind.SEER_INSPECT and target.player_id == actor.player_id:
            raise CommandRejectedError("Seer cannot inspect themselves")
        if (
            kind == NightActionKind.DOCTOR_PROTECT
            and target.player_id == actor.doctor_last_protected_player_id
        ):
            raise CommandRejectedError(
                "Doctor cannot protect the same target on consecutive nights"
            )

        night_action = actor.night_action.model_copy(update={field: target.player_id})
        return state.with_player(actor.model_copy(update={"night_action": night_action}))

    def select_wolf_target(self, state: MatchState) -> Optional[str]:
        """Pick tonight's wolf target from the wolves' submissions.

        Ties between plurality leaders, and nights with no submissions, are
        settled by a hash seeded from (started_at, night_number) so the
        outcome never depends on arrival order.
        """
        wolves = state.alive_werewolves()
        eligible = state.alive_non_werewolves()
        if not wolves or not eligible:
            return None

        seed_base = f"{state.started_at}:{state.night_number}"
        votes = [
            w.night_action.wolf_kill_target_player_id
            for w in wolves
            if w.night_action.wolf_kill_target_player_id is not None
        ]
        if not votes:
            return select_deterministic(
                seed_base, [p.player_id for p in eligible], "wolf-default", WOLF_KILL_SEED
            )

        counts = Counter(votes)
        highest = max(counts.values())
        leaders = [target for target, count in counts.items() if count == highest]
        target_id = select_deterministic(seed_base, leaders, "wolf-vote", WOLF_KILL_SEED)
        if target_id not in {p.player_id for p in eligible}:
            raise InvariantViolationError(f"Wolf kill target {target_id} is not eligible")
        return target_id

    def resolve(self, state: MatchState, now: int) -> NightResolution:
        """Compute the next state after night ``state.night_number``."""
        if state.phase != Phase.NIGHT:
            raise InvariantViolationError("Night resolution can only be handled during NIGHT")

        alive_ids = {p.player_id for p in state.alive_players()}
        wolf_target = self.select_wolf_target(state)

        doctor = next((p for p in state.alive_players() if p.role == Role.DOCTOR), None)
        protected = doctor.night_action.doctor_protect_target_player_id if doctor else None
        if protected is not None and protected not in alive_ids:
            raise InvariantViolationError(f"Doctor protection target {protected} is not alive")

        seer = next((p for p in state.alive_players() if p.role == Role.SEER), None)
        seer_result = None
        if seer and seer.night_action.seer_inspect_target_player_id:
            target = require_player(state, seer.night_action.seer_inspect_target_player_id)
            seer_result = SeerInspection(
                night=state.night_number,
                target_player_id=target.player_id,
                result=SeerAlignment.for_role(target.role),
            )

        eliminated = wolf_target if wolf_target and wolf_target != protected else None
        timeouts = tuple(
            p.player_id
            for p in state.alive_players()
            if p.missed_responses >= self.max_missed_responses and p.player_id != eliminated
        )
        removed = set(timeouts)
        if eliminated:
            removed.add(eliminated)

        def settle(player):
            update: dict = {"night_action": NightActionState()}
            if player.player_id in removed:
                update.update(alive=False, eliminated_at=now, revealed_role=True)
            if player.role == Role.DOCTOR and player.alive:
                update["doctor_last_protected_player_id"] = protected
            if player.role == Role.SEER and seer_result and player.player_id == seer.player_id:
                update["seer_history"] = player.seer_history + (seer_result,)
            return player.model_copy(update=update)

        next_state = state.map_players(settle)
        if timeouts:
            logger.info("Night %d: removed for missed responses: %s", state.night_number, timeouts)

        return NightResolution(
            next_state=next_state,
            wolf_kill_target_player_id=wolf_target,
            protected_player_id=protected,
            eliminated_player_id=eliminated,
            timeout_eliminated_player_ids=timeouts,
            seer_result=seer_result,
        )
