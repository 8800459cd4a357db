"""Phase successor graph, durations and early-advance predicates."""

from typing import Optional

from werewolf_match.engine.config import EngineConfig
from werewolf_match.models import MatchState, Phase

_SUCCESSOR = {
    Phase.LOBBY: Phase.NIGHT,
    Phase.NIGHT: Phase.DAY_ANNOUNCE,
    Phase.DAY_ANNOUNCE: Phase.DAY_OPENING,
    Phase.DAY_OPENING: Phase.DAY_DISCUSSION,
    Phase.DAY_DISCUSSION: Phase.DAY_VOTE,
    Phase.DAY_VOTE: Phase.DAY_RESOLUTION,
}

_PREVIOUS = {
    Phase.NIGHT: Phase.DAY_RESOLUTION,
    Phase.DAY_ANNOUNCE: Phase.NIGHT,
    Phase.DAY_OPENING: Phase.DAY_ANNOUNCE,
    Phase.DAY_DISCUSSION: Phase.DAY_OPENING,
    Phase.DAY_VOTE: Phase.DAY_DISCUSSION,
    Phase.DAY_RESOLUTION: Phase.DAY_VOTE,
}


def next_phase_for(state: MatchState) -> Phase:
    if state.phase == Phase.ENDED:
        return Phase.ENDED
    if state.phase == Phase.DAY_RESOLUTION:
        return Phase.ENDED if state.winner else Phase.NIGHT
    return _SUCCESSOR[state.phase]


def previous_phase(phase: Phase) -> Optional[Phase]:
    """Phase normally preceding ``phase`` (used to build prompt context)."""
    return _PREVIOUS.get(phase)


def can_advance_phase_early(state: MatchState) -> bool:
    """True when every alive player has done what the phase waits for."""
    alive = state.alive_players()
    if state.phase == Phase.LOBBY:
        return all(p.ready for p in alive)
    if state.phase == Phase.DAY_VOTE:
        return all(p.has_voted for p in alive)
    if state.phase == Phase.DAY_OPENING:
        return all(p.did_opening_for_day == state.day_number for p in alive)
    return False


def advance_phase(
    state: MatchState,
    now: int,
    config: EngineConfig,
    allow_early: bool = False,
) -> MatchState:
    """Move to the successor phase.

    No-op for ENDED, and before ``phase_ends_at`` unless ``allow_early``.
    """
    if state.phase == Phase.ENDED:
        return state
    if not allow_early and now < state.phase_ends_at:
        return state

    next_phase = next_phase_for(state)
    update = {
        "phase": next_phase,
        "day_number": state.day_number + (1 if state.phase == Phase.NIGHT else 0),
        "night_number": state.night_number + (
            1 if state.phase == Phase.DAY_RESOLUTION and next_phase == Phase.NIGHT else 0
        ),
        "phase_started_at": now,
        "phase_ends_at": now + config.phase_duration_ms(next_phase),
    }
    if next_phase == Phase.ENDED:
        update["ended_at"] = state.ended_at if state.ended_at is not None else now
    return state.model_copy(update=update)


def force_end(state: MatchState, now: int) -> MatchState:
    """Jump straight to ENDED."""
    return state.model_copy(
        update={
            "phase": Phase.ENDED,
            "phase_started_at": now,
            "phase_ends_at": now,
            "ended_at": state.ended_at if state.ended_at is not None else now,
        }
    )
