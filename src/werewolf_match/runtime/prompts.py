"""Round prompt construction.

A prompt has four blocks:
1. Header: match, phase and round, identity and role secrets
2. Players: every seat with alive/dead status
3. Action: what to submit, the JSON schema and the allowed targets
4. Context: recent visible events and private notes
"""

from typing import Optional, Sequence

from werewolf_match.engine.match_state import compute_required_action
from werewolf_match.engine.transitions import previous_phase
from werewolf_match.events import (
    EventFormatter,
    EventType,
    StoredEvent,
    is_private_to,
    is_visible_to_player,
)
from werewolf_match.models import MatchPlayer, MatchState, Phase, Role
from werewolf_match.runtime.agent_response import TurnContext

RESPONSE_SCHEMA = (
    '{"action":"SAY_PUBLIC","text":"..."}',
    '{"action":"WOLF_CHAT","text":"..."}',
    '{"action":"WOLF_KILL","targetPlayerId":"p:123"}',
    '{"action":"SEER_INSPECT","targetPlayerId":"p:123"}',
    '{"action":"DOCTOR_PROTECT","targetPlayerId":"p:123"}',
    '{"action":"VOTE","targetPlayerId":"p:123","reason":"..."}',
    "{}",
)


def build_round_prompt(match_id: str, turn: TurnContext, events: Sequence[StoredEvent]) -> str:
    blocks = [
        _header_block(match_id, turn),
        _players_block(turn.state),
        _action_block(turn),
        _context_block(turn, events),
    ]
    return "\n\n".join(block for block in blocks if block)


def _header_block(match_id: str, turn: TurnContext) -> str:
    state, player = turn.state, turn.player
    lines = [
        "You are playing Werewolf.",
        "Reply ONLY with valid JSON. No extra text.",
        "",
        f"Match: {match_id}",
        f"Phase: {state.phase.value} (round {turn.round_index + 1} of {turn.round_count})",
        f"Day: {state.day_number} Night: {state.night_number}",
        f"You are {player.display_name} (seat {player.seat}), role {player.role.value}.",
    ]
    if player.role == Role.WEREWOLF:
        wolves = ", ".join(
            f"{p.display_name} ({p.player_id})" for p in state.players_with_role(Role.WEREWOLF)
        )
        lines.append(f"Wolves: {wolves}")
    if player.role == Role.DOCTOR and player.doctor_last_protected_player_id:
        last = state.find_player(player.doctor_last_protected_player_id)
        if last is not None:
            lines.append(f"Last protected: {last.display_name} ({last.player_id})")
    return "\n".join(lines)


def _players_block(state: MatchState) -> str:
    lines = ["Players:"]
    for p in sorted(state.players, key=lambda p: p.seat):
        status = "alive" if p.alive else "dead"
        lines.append(f"- seat {p.seat}: {p.display_name} ({p.player_id}) {status}")
    return "\n".join(lines)


def _action_block(turn: TurnContext) -> str:
    phase, role = turn.state.phase, turn.player.role
    lines = ["Action:"]
    allowed: list[str] = []

    if phase == Phase.DAY_OPENING:
        allowed.append("SAY_PUBLIC")
        lines.append("Submit one opening statement.")
    elif phase == Phase.DAY_DISCUSSION:
        allowed.append("SAY_PUBLIC")
        lines.append("Submit a discussion message for this round.")
    elif phase == Phase.DAY_VOTE:
        allowed.append("VOTE")
        lines.append("Submit your vote (or abstain with null).")
    elif phase == Phase.NIGHT:
        if role == Role.WEREWOLF:
            if turn.is_final_night_round:
                allowed.append("WOLF_KILL")
                lines.append("Final round: submit your wolf kill vote.")
            else:
                allowed.append("WOLF_CHAT")
                lines.append("Wolf chat round: submit a short coordination message.")
        elif role == Role.SEER:
            allowed.append("SEER_INSPECT")
        elif role == Role.DOCTOR:
            allowed.append("DOCTOR_PROTECT")

    if allowed:
        lines.append(f"Allowed actions: {', '.join(allowed)}")
        lines.append("Reply with {} if you choose to do nothing.")
    else:
        lines.append("No action required. Reply with {} to acknowledge.")

    lines.append("Response JSON schema:")
    lines.extend(RESPONSE_SCHEMA)

    targets = _targets_block(turn.state, turn.player)
    if targets:
        lines.extend(["", targets])
    return "\n".join(lines)


def _targets_block(state: MatchState, player: MatchPlayer) -> Optional[str]:
    required = compute_required_action(state, player.player_id)
    if not required.allowed_targets:
        return None
    lines = ["Allowed targets:"]
    for target_id in required.allowed_targets:
        lines.append(f"- {state.display_name(target_id)} ({target_id})")
    return "\n".join(lines)


def annotate_phases(events: Sequence[StoredEvent]) -> list[tuple[Phase, StoredEvent]]:
    """Tag each event with the phase it happened in, dropping PHASE_CHANGED markers."""
    phase = Phase.LOBBY
    annotated = []
    for stored in events:
        if stored.type == EventType.PHASE_CHANGED:
            phase = stored.event.payload.to_phase
            continue
        annotated.append((phase, stored))
    return annotated


def _context_block(turn: TurnContext, events: Sequence[StoredEvent]) -> str:
    state, player = turn.state, turn.player
    cap = turn.config.max_context_lines
    formatter = EventFormatter({p.player_id: p.display_name for p in state.players})
    annotated = annotate_phases(events)

    def shared_lines(phase: Phase) -> list[str]:
        lines = []
        for event_phase, stored in annotated:
            visibility = stored.event.visibility
            if event_phase != phase or is_private_to(visibility, player.player_id):
                continue
            if not is_visible_to_player(visibility, player):
                continue
            line = formatter.format(stored.event)
            if line:
                lines.append(line)
        return lines[-cap:]

    private = [
        line
        for event_phase, stored in annotated
        if event_phase == state.phase and is_private_to(stored.event.visibility, player.player_id)
        for line in [formatter.format_private(stored.event)]
        if line
    ][-cap:]

    out: list[str] = []
    before = previous_phase(state.phase)
    if before is not None:
        previous = shared_lines(before)
        if previous:
            out.append(f"Previous phase ({before.value}) events:")
            out.extend(f"- {line}" for line in previous)
    current = shared_lines(state.phase)
    if current:
        out.append(f"Current phase ({state.phase.value}) events so far:")
        out.extend(f"- {line}" for line in current)
    if private:
        out.append("Private notes:")
        out.extend(f"- {line}" for line in private)
    return "\n".join(out)
