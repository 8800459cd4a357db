"""Models package - players, roles and match snapshots."""

from .player import (
    Role,
    SeerAlignment,
    RoleConfig,
    STANDARD_8_PLAYER_CONFIG,
    role_distribution,
    PlayerSeed,
    SeerInspection,
    NightActionState,
    CastVote,
    MatchPlayer,
)
from .match import (
    Phase,
    WinningTeam,
    PublicMessageKind,
    RequiredActionType,
    RequiredAction,
    MatchState,
)

__all__ = [
    "Role",
    "SeerAlignment",
    "RoleConfig",
    "STANDARD_8_PLAYER_CONFIG",
    "role_distribution",
    "PlayerSeed",
    "SeerInspection",
    "NightActionState",
    "CastVote",
    "MatchPlayer",
    "Phase",
    "WinningTeam",
    "PublicMessageKind",
    "RequiredActionType",
    "RequiredAction",
    "MatchState",
]
