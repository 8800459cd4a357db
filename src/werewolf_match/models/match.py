"""Match-level models: phases, teams and the authoritative match snapshot."""

from enum import Enum
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .player import MatchPlayer, Role


class Phase(str, Enum):
    """Phases of a match, in successor order."""

    LOBBY = "LOBBY"
    NIGHT = "NIGHT"
    DAY_ANNOUNCE = "DAY_ANNOUNCE"
    DAY_OPENING = "DAY_OPENING"
    DAY_DISCUSSION = "DAY_DISCUSSION"
    DAY_VOTE = "DAY_VOTE"
    DAY_RESOLUTION = "DAY_RESOLUTION"
    ENDED = "ENDED"


class WinningTeam(str, Enum):
    """Which side won the match."""

    VILLAGERS = "VILLAGERS"
    WEREWOLVES = "WEREWOLVES"


class PublicMessageKind(str, Enum):
    """Kinds of public speech."""

    OPENING = "OPENING"
    DISCUSSION = "DISCUSSION"
    DEFENSE = "DEFENSE"
    LAST_WORDS = "LAST_WORDS"


class RequiredActionType(str, Enum):
    """The action a player is expected to submit in the current phase."""

    NONE = "NONE"
    WOLF_KILL = "WOLF_KILL"
    SEER_INSPECT = "SEER_INSPECT"
    DOCTOR_PROTECT = "DOCTOR_PROTECT"
    SPEAK_OPENING = "SPEAK_OPENING"
    SPEAK_DISCUSSION = "SPEAK_DISCUSSION"
    VOTE = "VOTE"


class RequiredAction(BaseModel):
    """Derived view of what a player must do right now."""

    model_config = ConfigDict(frozen=True)

    type: RequiredActionType
    allowed_targets: tuple[str, ...] = ()
    already_submitted: bool = False


class MatchState(BaseModel):
    """Immutable snapshot of a match.

    Every engine function returns a new MatchState. ``players_alive`` is a
    cached count that is recomputed whenever players change through
    ``with_players`` / ``with_player``.
    """

    model_config = ConfigDict(frozen=True)

    phase: Phase
    day_number: int = 0
    night_number: int = 1
    phase_started_at: int
    phase_ends_at: int
    started_at: int
    ended_at: Optional[int] = None
    winner: Optional[WinningTeam] = None
    public_summary: str = ""
    players_alive: int = 0
    players: tuple[MatchPlayer, ...] = Field(default_factory=tuple)

    def find_player(self, player_id: str) -> Optional[MatchPlayer]:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def alive_players(self) -> list[MatchPlayer]:
        """Alive players in seat order."""
        return sorted((p for p in self.players if p.alive), key=lambda p: p.seat)

    def alive_werewolves(self) -> list[MatchPlayer]:
        return [p for p in self.alive_players() if p.role == Role.WEREWOLF]

    def alive_non_werewolves(self) -> list[MatchPlayer]:
        return [p for p in self.alive_players() if p.role != Role.WEREWOLF]

    def players_with_role(self, role: Role) -> list[MatchPlayer]:
        return [p for p in self.players if p.role == role]

    def display_name(self, player_id: str) -> str:
        player = self.find_player(player_id)
        return player.display_name if player else player_id

    def with_players(self, players: Iterable[MatchPlayer]) -> "MatchState":
        players = tuple(players)
        return self.model_copy(
            update={
                "players": players,
                "players_alive": sum(1 for p in players if p.alive),
            }
        )

    def with_player(self, updated: MatchPlayer) -> "MatchState":
        return self.with_players(
            updated if p.player_id == updated.player_id else p for p in self.players
        )

    def map_players(self, fn: Callable[[MatchPlayer], MatchPlayer]) -> "MatchState":
        return self.with_players(fn(p) for p in self.players)

    def __str__(self) -> str:
        return (
            f"MatchState(phase={self.phase.value}, day={self.day_number}, "
            f"night={self.night_number}, alive={self.players_alive})"
        )
