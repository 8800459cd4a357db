"""Narrator - the only place public prose is generated."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from werewolf_match.engine.match_state import require_player
from werewolf_match.models import MatchState, Phase


class PhaseOutcome(BaseModel):
    """What the resolution step that preceded a transition decided."""

    model_config = ConfigDict(frozen=True)

    eliminated_player_id: Optional[str] = None
    wolf_kill_target_player_id: Optional[str] = None
    timeout_eliminated_player_ids: tuple[str, ...] = ()


class Narrator:
    """Builds the public summary for a phase transition from fixed templates."""

    def narrate(
        self,
        from_phase: Phase,
        to_state: MatchState,
        outcome: Optional[PhaseOutcome] = None,
    ) -> Optional[str]:
        """Summary for entering ``to_state.phase``, or None if the phase did not change."""
        if from_phase == to_state.phase:
            return None
        outcome = outcome or PhaseOutcome()
        remain = f"{to_state.players_alive} players remain."
        day = to_state.day_number

        if to_state.phase == Phase.NIGHT:
            return f"Night {to_state.night_number} begins. {remain}"
        if to_state.phase == Phase.DAY_ANNOUNCE:
            return f"Day {day} dawns. {self._night_outcome(to_state, outcome)} {remain}"
        if to_state.phase == Phase.DAY_OPENING:
            return f"Day {day} opening statements begin. {remain}"
        if to_state.phase == Phase.DAY_DISCUSSION:
            return f"Day {day} discussion is open. {remain}"
        if to_state.phase == Phase.DAY_VOTE:
            return f"Day {day} voting begins. {remain}"
        if to_state.phase == Phase.DAY_RESOLUTION:
            return f"Votes are in. {self._vote_outcome(to_state, outcome)} {remain}"
        if to_state.phase == Phase.ENDED:
            if to_state.winner:
                return f"Game ended. {to_state.winner.value} win."
            return "Game ended."
        return to_state.public_summary

    def _night_outcome(self, state: MatchState, outcome: PhaseOutcome) -> str:
        if outcome.eliminated_player_id:
            player = require_player(state, outcome.eliminated_player_id)
            text = f"{player.display_name} was killed overnight ({player.role.value})."
        elif outcome.wolf_kill_target_player_id:
            text = "No one died overnight. A life was saved."
        else:
            text = "No one died overnight."
        if outcome.timeout_eliminated_player_ids:
            names = ", ".join(
                require_player(state, pid).display_name
                for pid in outcome.timeout_eliminated_player_ids
            )
            text += f" Removed for not responding: {names}."
        return text

    def _vote_outcome(self, state: MatchState, outcome: PhaseOutcome) -> str:
        if outcome.eliminated_player_id:
            player = require_player(state, outcome.eliminated_player_id)
            return f"{player.display_name} was eliminated ({player.role.value})."
        return "No one was eliminated."
