"""Phase advance - resolves the ending phase, transitions and emits events."""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.engine.config import EngineConfig
from werewolf_match.engine.day_resolver import DayActionResolver
from werewolf_match.engine.match_state import require_player
from werewolf_match.engine.narrator import Narrator, PhaseOutcome
from werewolf_match.engine.night_action_resolver import NightActionResolver
from werewolf_match.engine.transitions import (
    advance_phase,
    can_advance_phase_early,
    force_end,
)
from werewolf_match.engine.win import evaluate_win_condition, forced_winner
from werewolf_match.events import (
    GameEnded,
    GameEndedPayload,
    MatchEvent,
    Narrator as NarratorEvent,
    NightResult,
    NightResultPayload,
    PhaseChanged,
    PhaseChangedPayload,
    PlayerEliminated,
    PlayerEliminatedPayload,
)
from werewolf_match.models import MatchState, Phase

logger = logging.getLogger(__name__)


class AdvanceResult(BaseModel):
    """Result of one advance attempt."""

    model_config = ConfigDict(frozen=True)

    next_state: MatchState
    events: list = Field(default_factory=list)
    advanced: bool = False
    outcome: PhaseOutcome = Field(default_factory=PhaseOutcome)


def should_advance_phase(state: MatchState, now: int) -> bool:
    return now >= state.phase_ends_at or can_advance_phase_early(state)


class PhaseAdvancer:
    """Runs the phase state machine over immutable snapshots.

    A single ``advance`` call:
    1. Resolves NIGHT or DAY_VOTE if that phase is ending
    2. Evaluates the win condition (and the max-duration forced end)
    3. Moves to the successor phase, or straight to ENDED
    4. Builds PHASE_CHANGED, result, elimination, GAME_ENDED and NARRATOR events
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.night_resolver = NightActionResolver(self.config.max_missed_responses)
        self.day_resolver = DayActionResolver()
        self.narrator = Narrator()

    def max_duration_reached(self, state: MatchState, now: int) -> bool:
        limit = self.config.max_match_duration_ms
        return limit is not None and now - state.started_at >= limit

    def advance(self, state: MatchState, now: int) -> AdvanceResult:
        if state.phase == Phase.ENDED or not should_advance_phase(state, now):
            return AdvanceResult(next_state=state)

        working = state
        outcome = PhaseOutcome()
        if state.phase == Phase.NIGHT:
            night = self.night_resolver.resolve(state, now)
            working = night.next_state
            outcome = PhaseOutcome(
                eliminated_player_id=night.eliminated_player_id,
                wolf_kill_target_player_id=night.wolf_kill_target_player_id,
                timeout_eliminated_player_ids=night.timeout_eliminated_player_ids,
            )
        elif state.phase == Phase.DAY_VOTE:
            vote = self.day_resolver.resolve_vote(state, now)
            working = vote.next_state
            outcome = PhaseOutcome(eliminated_player_id=vote.eliminated_player_id)

        winner = evaluate_win_condition(working)
        forced = winner is None and self.max_duration_reached(state, now)
        if forced:
            winner = forced_winner(working)
            logger.info("Match reached its max duration; forcing %s win", winner.value)
        if winner is not None:
            working = working.model_copy(update={"winner": winner})

        next_state = advance_phase(
            working, now, self.config, allow_early=now < state.phase_ends_at
        )
        if (state.phase == Phase.NIGHT and winner is not None) or forced:
            next_state = force_end(next_state, now)

        if next_state.phase == state.phase:
            return AdvanceResult(next_state=next_state)

        summary = self.narrator.narrate(state.phase, next_state, outcome)
        next_state = next_state.model_copy(update={"public_summary": summary})

        events = self._build_events(state, next_state, now, outcome)
        events.append(NarratorEvent.say(now, summary))
        logger.info(
            "Phase %s -> %s (day %d, %d alive)",
            state.phase.value,
            next_state.phase.value,
            next_state.day_number,
            next_state.players_alive,
        )
        return AdvanceResult(
            next_state=next_state, events=events, advanced=True, outcome=outcome
        )

    def _build_events(
        self,
        before: MatchState,
        after: MatchState,
        now: int,
        outcome: PhaseOutcome,
    ) -> list[MatchEvent]:
        events: list[MatchEvent] = [
            PhaseChanged(
                at=now,
                payload=PhaseChangedPayload(
                    from_phase=before.phase,
                    to_phase=after.phase,
                    day_number=after.day_number,
                    phase_ends_at=after.phase_ends_at,
                ),
            )
        ]

        eliminated: list[str] = []
        if before.phase == Phase.NIGHT:
            events.append(
                NightResult(
                    at=now,
                    payload=NightResultPayload(
                        killed_player_id=outcome.eliminated_player_id,
                        saved_by_doctor=(
                            outcome.wolf_kill_target_player_id is not None
                            and outcome.eliminated_player_id is None
                        ),
                    ),
                )
            )
            if outcome.eliminated_player_id:
                eliminated.append(outcome.eliminated_player_id)
            eliminated.extend(
                pid for pid in outcome.timeout_eliminated_player_ids if pid not in eliminated
            )
        elif before.phase == Phase.DAY_VOTE and outcome.eliminated_player_id:
            eliminated.append(outcome.eliminated_player_id)

        for player_id in eliminated:
            events.append(
                PlayerEliminated(
                    at=now,
                    payload=PlayerEliminatedPayload(
                        player_id=player_id,
                        role_revealed=require_player(after, player_id).role,
                    ),
                )
            )

        if after.phase == Phase.ENDED and after.winner is not None:
            events.append(
                GameEnded(at=now, payload=GameEndedPayload(winning_team=after.winner))
            )
        return events
