"""Win evaluation."""

from typing import Optional

from werewolf_match.models import MatchState, WinningTeam


def evaluate_win_condition(state: MatchState) -> Optional[WinningTeam]:
    """Villagers win with no wolves alive; wolves win at parity or better."""
    wolves = len(state.alive_werewolves())
    others = len(state.alive_non_werewolves())
    if wolves == 0:
        return WinningTeam.VILLAGERS
    if wolves >= others:
        return WinningTeam.WEREWOLVES
    return None


def forced_winner(state: MatchState) -> WinningTeam:
    """Winner when the match runs out of time: the side not outnumbered."""
    wolves = len(state.alive_werewolves())
    others = len(state.alive_non_werewolves())
    return WinningTeam.WEREWOLVES if wolves >= others else WinningTeam.VILLAGERS
