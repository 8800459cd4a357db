"""Events package - event variants, visibility and log export."""

from .game_events import (
    EventType,
    VisibilityScope,
    EventVisibility,
    MatchCreatedPlayer,
    MatchCreatedPayload,
    PhaseChangedPayload,
    PublicMessagePayload,
    WolfChatMessagePayload,
    VoteCastPayload,
    NightResultPayload,
    PlayerEliminatedPayload,
    GameEndedPayload,
    NarratorPayload,
    MatchEvent,
    MatchCreated,
    PhaseChanged,
    PublicMessage,
    WolfChatMessage,
    VoteCast,
    NightResult,
    PlayerEliminated,
    GameEnded,
    Narrator,
    WerewolfEvent,
    StoredEvent,
)
from .event_visibility import (
    ViewerKind,
    ViewerContext,
    resolve_viewer_context,
    is_private_to,
    is_visible_to_player,
    is_visible_to_viewer,
    filter_visible_events,
)
from .event_formatter import EventFormatter
from .event_log import MatchEventLog

__all__ = [
    "EventType",
    "VisibilityScope",
    "EventVisibility",
    "MatchCreatedPlayer",
    "MatchCreatedPayload",
    "PhaseChangedPayload",
    "PublicMessagePayload",
    "WolfChatMessagePayload",
    "VoteCastPayload",
    "NightResultPayload",
    "PlayerEliminatedPayload",
    "GameEndedPayload",
    "NarratorPayload",
    "MatchEvent",
    "MatchCreated",
    "PhaseChanged",
    "PublicMessage",
    "WolfChatMessage",
    "VoteCast",
    "NightResult",
    "PlayerEliminated",
    "GameEnded",
    "Narrator",
    "WerewolfEvent",
    "StoredEvent",
    "ViewerKind",
    "ViewerContext",
    "resolve_viewer_context",
    "is_private_to",
    "is_visible_to_player",
    "is_visible_to_viewer",
    "filter_visible_events",
    "EventFormatter",
    "MatchEventLog",
]
