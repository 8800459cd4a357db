"""Event visibility filtering.

This module decides which events a viewer may read:

- PUBLIC events: visible to everyone
- WOLVES events: visible to werewolf players only
- PLAYER_PRIVATE events: visible to the named player only
- Spoiler viewers (post-game review, debugging) see everything
"""

from enum import Enum
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from werewolf_match.models import MatchPlayer, Role
from werewolf_match.events.game_events import (
    EventVisibility,
    StoredEvent,
    VisibilityScope,
)


class ViewerKind(str, Enum):
    SPOILER = "SPOILER"
    SPECTATOR = "SPECTATOR"
    PLAYER = "PLAYER"


class ViewerContext(BaseModel):
    """Who is looking at the match."""

    model_config = ConfigDict(frozen=True)

    kind: ViewerKind
    player: Optional[MatchPlayer] = None

    @classmethod
    def spoiler(cls) -> "ViewerContext":
        return cls(kind=ViewerKind.SPOILER)

    @classmethod
    def spectator(cls) -> "ViewerContext":
        return cls(kind=ViewerKind.SPECTATOR)

    @classmethod
    def for_player(cls, player: MatchPlayer) -> "ViewerContext":
        return cls(kind=ViewerKind.PLAYER, player=player)


def resolve_viewer_context(
    players: Sequence[MatchPlayer],
    viewer_player_id: Optional[str] = None,
    include_spoilers: bool = False,
) -> ViewerContext:
    """Resolve a viewer id into a viewer context.

    Unknown ids are treated as spectators rather than errors.
    """
    if include_spoilers:
        return ViewerContext.spoiler()
    if not viewer_player_id:
        return ViewerContext.spectator()
    for player in players:
        if player.player_id == viewer_player_id:
            return ViewerContext.for_player(player)
    return ViewerContext.spectator()


def is_private_to(visibility: EventVisibility, player_id: str) -> bool:
    return (
        visibility.scope == VisibilityScope.PLAYER_PRIVATE
        and visibility.player_id == player_id
    )


def is_visible_to_player(visibility: EventVisibility, player: MatchPlayer) -> bool:
    if visibility.scope == VisibilityScope.PUBLIC:
        return True
    if visibility.scope == VisibilityScope.WOLVES:
        return player.role == Role.WEREWOLF
    return is_private_to(visibility, player.player_id)


def is_visible_to_viewer(visibility: EventVisibility, viewer: ViewerContext) -> bool:
    if viewer.kind == ViewerKind.SPOILER:
        return True
    if visibility.scope == VisibilityScope.PUBLIC:
        return True
    if viewer.kind != ViewerKind.PLAYER or viewer.player is None:
        return False
    return is_visible_to_player(visibility, viewer.player)


def filter_visible_events(
    events: Iterable[StoredEvent], viewer: ViewerContext
) -> list[StoredEvent]:
    """Return the events the viewer may read, preserving order."""
    if viewer.kind == ViewerKind.SPOILER:
        return list(events)
    return [e for e in events if is_visible_to_viewer(e.event.visibility, viewer)]
