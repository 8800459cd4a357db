"""Read-only query surface: match state, visible events and match listing."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from werewolf_match.engine import CommandRejectedError, compute_required_action
from werewolf_match.events import (
    EventType,
    StoredEvent,
    ViewerContext,
    ViewerKind,
    filter_visible_events,
    resolve_viewer_context,
)
from werewolf_match.models import (
    MatchPlayer,
    MatchState,
    Phase,
    PublicMessageKind,
    RequiredAction,
    Role,
    SeerInspection,
    WinningTeam,
)
from werewolf_match.runtime.ports import MatchStore

DEFAULT_EVENTS_LIMIT = 50
MAX_EVENTS_LIMIT = 200
DEFAULT_RECENT_MESSAGES_LIMIT = 20
MAX_RECENT_MESSAGES_LIMIT = 50
DEFAULT_MATCHES_LIMIT = 20
MAX_MATCHES_LIMIT = 50


class MatchStatusFilter(str, Enum):
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    ALL = "ALL"


class PlayerView(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    display_name: str
    seat: int
    alive: bool
    eliminated_at: Optional[int] = None
    revealed_role: Optional[Role] = None


class YouView(BaseModel):
    """Private view of a living seated viewer."""

    model_config = ConfigDict(frozen=True)

    player_id: str
    role: Role
    known_wolves: Optional[list[str]] = None
    seer_history: Optional[list[SeerInspection]] = None
    required_action: RequiredAction


class RecentPublicMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    at: int
    player_id: str
    kind: PublicMessageKind
    text: str


class MatchStateView(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_id: str
    phase: Phase
    day_number: int
    night_number: int
    phase_started_at: int
    phase_ends_at: int
    started_at: int
    ended_at: Optional[int] = None
    winner: Optional[WinningTeam] = None
    public_summary: str
    players_alive: int
    players: list[PlayerView]
    you: Optional[YouView] = None
    recent_public_messages: Optional[list[RecentPublicMessage]] = None


class EventView(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    at: str
    type: EventType
    visibility: str
    payload: dict[str, Any]


class MatchEventsPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_id: str
    events: list[EventView]


class MatchSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_id: str
    phase: Phase
    day_number: int
    players_alive: int
    started_at: int
    ended_at: Optional[int] = None
    winner: Optional[WinningTeam] = None


def to_iso(at_ms: int) -> str:
    return datetime.fromtimestamp(at_ms / 1000, tz=timezone.utc).isoformat()


def _check_limit(limit: int, maximum: int, label: str) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= maximum:
        raise CommandRejectedError(f"{label} must be between 1 and {maximum}.")
    return limit


def parse_event_id(event_id: Optional[str]) -> Optional[int]:
    """``after_event_id`` is the decimal sequence number of an event."""
    if event_id is None:
        return None
    if not event_id.isdigit():
        raise CommandRejectedError("Invalid event id.")
    return int(event_id)


def should_reveal_role(state: MatchState, player: MatchPlayer, viewer: ViewerContext) -> bool:
    return (
        viewer.kind == ViewerKind.SPOILER
        or state.phase == Phase.ENDED
        or not player.alive
        or player.revealed_role
    )


def build_you_view(state: MatchState, player: MatchPlayer) -> YouView:
    known_wolves = None
    if player.role == Role.WEREWOLF:
        known_wolves = [p.player_id for p in state.players_with_role(Role.WEREWOLF)]
    seer_history = list(player.seer_history) if player.role == Role.SEER else None
    return YouView(
        player_id=player.player_id,
        role=player.role,
        known_wolves=known_wolves,
        seer_history=seer_history,
        required_action=compute_required_action(state, player.player_id),
    )


def to_event_view(stored: StoredEvent) -> EventView:
    event = stored.event
    return EventView(
        event_id=stored.event_id,
        at=to_iso(event.at),
        type=stored.type,
        visibility="PUBLIC" if event.visibility.is_public else "PRIVATE",
        payload=event.payload.model_dump(mode="json"),
    )


class MatchQueries:
    """Viewer-scoped reads over a MatchStore."""

    def __init__(self, store: MatchStore):
        self.store = store

    async def get_state(
        self,
        match_id: str,
        viewer_player_id: Optional[str] = None,
        include_spoilers: bool = False,
        include_recent_public_messages: bool = False,
        recent_public_messages_limit: int = DEFAULT_RECENT_MESSAGES_LIMIT,
    ) -> MatchStateView:
        if include_recent_public_messages:
            _check_limit(
                recent_public_messages_limit, MAX_RECENT_MESSAGES_LIMIT, "Recent messages limit"
            )
        snapshot = await self.store.load_snapshot(match_id)
        state = snapshot.state
        viewer = resolve_viewer_context(state.players, viewer_player_id, include_spoilers)

        players = [
            PlayerView(
                player_id=p.player_id,
                display_name=p.display_name,
                seat=p.seat,
                alive=p.alive,
                eliminated_at=p.eliminated_at,
                revealed_role=p.role if should_reveal_role(state, p, viewer) else None,
            )
            for p in sorted(state.players, key=lambda p: p.seat)
        ]

        you = None
        seated = state.find_player(viewer_player_id) if viewer_player_id else None
        if seated is not None and seated.alive:
            you = build_you_view(state, seated)

        recent = None
        if include_recent_public_messages:
            recent = await self._recent_public_messages(match_id, recent_public_messages_limit)

        return MatchStateView(
            match_id=match_id,
            phase=state.phase,
            day_number=state.day_number,
            night_number=state.night_number,
            phase_started_at=state.phase_started_at,
            phase_ends_at=state.phase_ends_at,
            started_at=state.started_at,
            ended_at=state.ended_at,
            winner=state.winner,
            public_summary=state.public_summary,
            players_alive=state.players_alive,
            players=players,
            you=you,
            recent_public_messages=recent,
        )

    async def _recent_public_messages(
        self, match_id: str, limit: int
    ) -> list[RecentPublicMessage]:
        messages = []
        for stored in await self.store.load_events(match_id, newest_first=True):
            if stored.type != EventType.PUBLIC_MESSAGE:
                continue
            payload = stored.event.payload
            messages.append(
                RecentPublicMessage(
                    event_id=stored.event_id,
                    at=stored.event.at,
                    player_id=payload.player_id,
                    kind=payload.kind,
                    text=payload.text,
                )
            )
            if len(messages) >= limit:
                break
        messages.reverse()
        return messages

    async def get_events(
        self,
        match_id: str,
        viewer_player_id: Optional[str] = None,
        include_spoilers: bool = False,
        after_event_id: Optional[str] = None,
        limit: int = DEFAULT_EVENTS_LIMIT,
    ) -> MatchEventsPage:
        """Events the viewer may read.

        Without ``after_event_id`` the newest ``limit`` events are returned,
        otherwise the oldest ``limit`` events after it. Both in seq order.
        """
        _check_limit(limit, MAX_EVENTS_LIMIT, "Event limit")
        after_seq = parse_event_id(after_event_id)
        snapshot = await self.store.load_snapshot(match_id)
        viewer = resolve_viewer_context(
            snapshot.state.players, viewer_player_id, include_spoilers
        )
        visible = filter_visible_events(
            await self.store.load_events(match_id, after_seq=after_seq), viewer
        )
        page = visible[:limit] if after_seq is not None else visible[-limit:]
        return MatchEventsPage(match_id=match_id, events=[to_event_view(e) for e in page])

    async def list_matches(
        self, status: str = MatchStatusFilter.ACTIVE, limit: int = DEFAULT_MATCHES_LIMIT
    ) -> list[MatchSummary]:
        _check_limit(limit, MAX_MATCHES_LIMIT, "Match limit")
        try:
            status = MatchStatusFilter(status)
        except ValueError:
            raise CommandRejectedError(f"Invalid match status {status!r}.") from None

        snapshots = await self.store.list_matches()
        if status == MatchStatusFilter.ACTIVE:
            snapshots = [s for s in snapshots if s.state.phase != Phase.ENDED]
        elif status == MatchStatusFilter.ENDED:
            snapshots = [s for s in snapshots if s.state.phase == Phase.ENDED]
        snapshots.sort(key=lambda s: s.state.started_at, reverse=True)

        return [
            MatchSummary(
                match_id=s.match_id,
                phase=s.state.phase,
                day_number=s.state.day_number,
                players_alive=s.state.players_alive,
                started_at=s.state.started_at,
                ended_at=s.state.ended_at,
                winner=s.state.winner,
            )
            for s in snapshots[:limit]
        ]
