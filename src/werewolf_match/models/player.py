"""Player and Role models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Player roles in a match."""

    WEREWOLF = "WEREWOLF"
    SEER = "SEER"
    DOCTOR = "DOCTOR"
    VILLAGER = "VILLAGER"


class SeerAlignment(str, Enum):
    """Result of a seer inspection."""

    WEREWOLF = "WEREWOLF"
    NOT_WEREWOLF = "NOT_WEREWOLF"

    @classmethod
    def for_role(cls, role: Role) -> "SeerAlignment":
        return cls.WEREWOLF if role == Role.WEREWOLF else cls.NOT_WEREWOLF


class RoleConfig(BaseModel):
    """Role configuration for match setup."""

    role: Role
    count: int = 0
    description: str = ""


# Distribution order matters: roles are handed out in this order to players
# sorted by their assignment hash.
STANDARD_8_PLAYER_CONFIG = [
    RoleConfig(role=Role.WEREWOLF, count=2, description="Kill one villager each night"),
    RoleConfig(role=Role.SEER, count=1, description="Check one player's alignment each night"),
    RoleConfig(role=Role.DOCTOR, count=1, description="Protect one player each night"),
    RoleConfig(role=Role.VILLAGER, count=4, description="No special abilities"),
]


def role_distribution(config: Optional[list[RoleConfig]] = None) -> list[Role]:
    """Expand a role config into one role per seat, in distribution order."""
    config = config if config is not None else STANDARD_8_PLAYER_CONFIG
    roles: list[Role] = []
    for entry in config:
        roles.extend([entry.role] * entry.count)
    return roles


class PlayerSeed(BaseModel):
    """Identity of a player joining a match, before roles are assigned."""

    model_config = ConfigDict(frozen=True)

    player_id: str = Field(min_length=1)
    display_name: str


class SeerInspection(BaseModel):
    """One seer inspection, appended to the seer's history at night resolution."""

    model_config = ConfigDict(frozen=True)

    night: int
    target_player_id: str
    result: SeerAlignment


class NightActionState(BaseModel):
    """Per-night scratch actions. Cleared after every night resolution."""

    model_config = ConfigDict(frozen=True)

    wolf_kill_target_player_id: Optional[str] = None
    seer_inspect_target_player_id: Optional[str] = None
    doctor_protect_target_player_id: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.wolf_kill_target_player_id is None
            and self.seer_inspect_target_player_id is None
            and self.doctor_protect_target_player_id is None
        )


class CastVote(BaseModel):
    """A day vote. A None target is an explicit abstain."""

    model_config = ConfigDict(frozen=True)

    target_player_id: Optional[str] = None


class MatchPlayer(BaseModel):
    """A seated player inside a match.

    Seat (1..8) is assigned at creation and never changes. A player who has
    not voted yet has ``vote = None``; an abstain is ``CastVote(target_player_id=None)``.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str
    display_name: str
    seat: int
    role: Role
    alive: bool = True
    ready: bool = False
    missed_responses: int = 0
    eliminated_at: Optional[int] = None
    revealed_role: bool = False
    doctor_last_protected_player_id: Optional[str] = None
    seer_history: tuple[SeerInspection, ...] = ()
    did_opening_for_day: Optional[int] = None
    vote: Optional[CastVote] = None
    last_public_message_at: Optional[int] = None
    last_wolf_chat_at: Optional[int] = None
    night_action: NightActionState = Field(default_factory=NightActionState)

    @property
    def is_werewolf(self) -> bool:
        return self.role == Role.WEREWOLF

    @property
    def has_voted(self) -> bool:
        return self.vote is not None

    def __str__(self) -> str:
        status = "alive" if self.alive else "dead"
        return f"{self.display_name}(seat {self.seat}, {self.role.value}, {status})"
