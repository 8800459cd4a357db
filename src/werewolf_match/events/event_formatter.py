"""Event formatter for prompts and human-readable logs.

Formats events with display names, e.g. "Alice voted for Bob." or
"Wolf chat - Carol: let's go for Dave".
"""

from typing import Optional

from werewolf_match.events.game_events import (
    GameEnded,
    MatchCreated,
    MatchEvent,
    Narrator,
    NightResult,
    PhaseChanged,
    PlayerEliminated,
    PublicMessage,
    VoteCast,
    WolfChatMessage,
)


class EventFormatter:
    """Format events using a player_id -> display name mapping."""

    def __init__(self, names: dict[str, str]):
        """Initialize formatter with a name mapping.

        Args:
            names: Dict mapping player_id to display name
        """
        self.names = names

    def name(self, player_id: str) -> str:
        return self.names.get(player_id, player_id)

    def format(self, event: MatchEvent) -> Optional[str]:
        """Format an event the way players see it in their context block.

        Returns None for events that carry nothing worth showing
        (match creation, phase changes, game end).
        """
        if isinstance(event, PublicMessage):
            return f"{self.name(event.payload.player_id)}: {event.payload.text}"
        if isinstance(event, VoteCast):
            voter = self.name(event.payload.voter_player_id)
            if event.payload.target_player_id is None:
                return f"{voter} abstained."
            return f"{voter} voted for {self.name(event.payload.target_player_id)}."
        if isinstance(event, NightResult):
            if event.payload.killed_player_id is not None:
                return f"Night result: {self.name(event.payload.killed_player_id)} was killed."
            if event.payload.saved_by_doctor:
                return "Night result: no one died (doctor saved)."
            return "Night result: no one died."
        if isinstance(event, PlayerEliminated):
            name = self.name(event.payload.player_id)
            return f"{name} was eliminated ({event.payload.role_revealed.value})."
        if isinstance(event, Narrator):
            return event.payload.text
        if isinstance(event, WolfChatMessage):
            return f"Wolf chat - {self.name(event.payload.from_wolf_id)}: {event.payload.text}"
        return None

    def format_private(self, event: MatchEvent) -> Optional[str]:
        """Format an event addressed privately to a single player."""
        if isinstance(event, Narrator):
            return event.payload.text
        if isinstance(event, NightResult) and event.payload.killed_player_id is not None:
            return f"Night result: {self.name(event.payload.killed_player_id)} was killed."
        return None

    def describe(self, event: MatchEvent) -> str:
        """Full transcript line, including the events players never see in prompts."""
        if isinstance(event, MatchCreated):
            seats = ", ".join(
                f"{p.seat}:{p.display_name}" for p in event.payload.players
            )
            return f"Match created with {len(event.payload.players)} players ({seats})"
        if isinstance(event, PhaseChanged):
            p = event.payload
            return f"--- {p.from_phase.value} -> {p.to_phase.value} (day {p.day_number}) ---"
        if isinstance(event, GameEnded):
            return f"Game over: {event.payload.winning_team.value} win"
        if isinstance(event, PublicMessage):
            return f"[{event.payload.kind.value}] {self.format(event)}"
        line = self.format(event)
        return line if line is not None else str(event)
