"""Event types for the match log.

Events are immutable and append-only. Every variant carries a typed payload
and a visibility scope that decides who may read it.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from werewolf_match.models import (
    Phase,
    PublicMessageKind,
    Role,
    WinningTeam,
)


class EventType(str, Enum):
    """Tags of the event variants."""

    MATCH_CREATED = "MATCH_CREATED"
    PHASE_CHANGED = "PHASE_CHANGED"
    PUBLIC_MESSAGE = "PUBLIC_MESSAGE"
    WOLF_CHAT_MESSAGE = "WOLF_CHAT_MESSAGE"
    VOTE_CAST = "VOTE_CAST"
    NIGHT_RESULT = "NIGHT_RESULT"
    PLAYER_ELIMINATED = "PLAYER_ELIMINATED"
    GAME_ENDED = "GAME_ENDED"
    NARRATOR = "NARRATOR"


class VisibilityScope(str, Enum):
    """Who may read an event."""

    PUBLIC = "PUBLIC"
    WOLVES = "WOLVES"
    PLAYER_PRIVATE = "PLAYER_PRIVATE"


class EventVisibility(BaseModel):
    """Visibility of an event. PLAYER_PRIVATE events name their single reader."""

    model_config = ConfigDict(frozen=True)

    scope: VisibilityScope = VisibilityScope.PUBLIC
    player_id: Optional[str] = None

    @model_validator(mode="after")
    def check_player_id(self) -> "EventVisibility":
        if self.scope == VisibilityScope.PLAYER_PRIVATE and not self.player_id:
            raise ValueError("PLAYER_PRIVATE visibility requires a player_id")
        if self.scope != VisibilityScope.PLAYER_PRIVATE and self.player_id is not None:
            raise ValueError(f"{self.scope.value} visibility cannot name a player")
        return self

    @classmethod
    def public(cls) -> "EventVisibility":
        return cls(scope=VisibilityScope.PUBLIC)

    @classmethod
    def wolves(cls) -> "EventVisibility":
        return cls(scope=VisibilityScope.WOLVES)

    @classmethod
    def private(cls, player_id: str) -> "EventVisibility":
        return cls(scope=VisibilityScope.PLAYER_PRIVATE, player_id=player_id)

    @property
    def is_public(self) -> bool:
        return self.scope == VisibilityScope.PUBLIC

    def __str__(self) -> str:
        if self.scope == VisibilityScope.PLAYER_PRIVATE:
            return f"PRIVATE({self.player_id})"
        return self.scope.value


# ============================================================================
# Payloads
# ============================================================================


class MatchCreatedPlayer(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    display_name: str
    seat: int


class MatchCreatedPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    players: tuple[MatchCreatedPlayer, ...]
    phase_ends_at: int


class PhaseChangedPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_phase: Phase
    to_phase: Phase
    day_number: int
    phase_ends_at: int


class PublicMessagePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    text: str
    kind: PublicMessageKind = PublicMessageKind.DISCUSSION
    reply_to_event_id: Optional[str] = None


class WolfChatMessagePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_wolf_id: str
    text: str


class VoteCastPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    voter_player_id: str
    target_player_id: Optional[str] = None  # None = abstain
    reason: Optional[str] = None


class NightResultPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    killed_player_id: Optional[str] = None
    saved_by_doctor: bool = False


class PlayerEliminatedPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    role_revealed: Role


class GameEndedPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    winning_team: WinningTeam


class NarratorPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


# ============================================================================
# Event variants
# ============================================================================


class MatchEvent(BaseModel):
    """Base class for all match events."""

    model_config = ConfigDict(frozen=True)

    at: int
    visibility: EventVisibility = Field(default_factory=EventVisibility.public)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(at={self.at}, visibility={self.visibility})"


class MatchCreated(MatchEvent):
    type: Literal["MATCH_CREATED"] = "MATCH_CREATED"
    payload: MatchCreatedPayload

    def __str__(self) -> str:
        return f"MatchCreated(players={len(self.payload.players)})"


class PhaseChanged(MatchEvent):
    type: Literal["PHASE_CHANGED"] = "PHASE_CHANGED"
    payload: PhaseChangedPayload

    def __str__(self) -> str:
        p = self.payload
        return f"PhaseChanged({p.from_phase.value} -> {p.to_phase.value}, day={p.day_number})"


class PublicMessage(MatchEvent):
    type: Literal["PUBLIC_MESSAGE"] = "PUBLIC_MESSAGE"
    payload: PublicMessagePayload

    def __str__(self) -> str:
        p = self.payload
        return f"PublicMessage({p.player_id}, {p.kind.value}: {p.text})"


class WolfChatMessage(MatchEvent):
    type: Literal["WOLF_CHAT_MESSAGE"] = "WOLF_CHAT_MESSAGE"
    visibility: EventVisibility = Field(default_factory=EventVisibility.wolves)
    payload: WolfChatMessagePayload

    def __str__(self) -> str:
        return f"WolfChat({self.payload.from_wolf_id}: {self.payload.text})"


class VoteCast(MatchEvent):
    type: Literal["VOTE_CAST"] = "VOTE_CAST"
    payload: VoteCastPayload

    def __str__(self) -> str:
        target = self.payload.target_player_id or "abstain"
        return f"VoteCast({self.payload.voter_player_id} -> {target})"


class NightResult(MatchEvent):
    type: Literal["NIGHT_RESULT"] = "NIGHT_RESULT"
    payload: NightResultPayload

    def __str__(self) -> str:
        return (
            f"NightResult(killed={self.payload.killed_player_id}, "
            f"saved={self.payload.saved_by_doctor})"
        )


class PlayerEliminated(MatchEvent):
    type: Literal["PLAYER_ELIMINATED"] = "PLAYER_ELIMINATED"
    payload: PlayerEliminatedPayload

    def __str__(self) -> str:
        return f"PlayerEliminated({self.payload.player_id}, {self.payload.role_revealed.value})"


class GameEnded(MatchEvent):
    type: Literal["GAME_ENDED"] = "GAME_ENDED"
    payload: GameEndedPayload

    def __str__(self) -> str:
        return f"GameEnded({self.payload.winning_team.value})"


class Narrator(MatchEvent):
    type: Literal["NARRATOR"] = "NARRATOR"
    payload: NarratorPayload

    @classmethod
    def say(
        cls, at: int, text: str, visibility: Optional[EventVisibility] = None
    ) -> "Narrator":
        return cls(
            at=at,
            visibility=visibility or EventVisibility.public(),
            payload=NarratorPayload(text=text),
        )

    def __str__(self) -> str:
        return f"Narrator[{self.visibility}]({self.payload.text})"


WerewolfEvent = Annotated[
    Union[
        MatchCreated,
        PhaseChanged,
        PublicMessage,
        WolfChatMessage,
        VoteCast,
        NightResult,
        PlayerEliminated,
        GameEnded,
        Narrator,
    ],
    Field(discriminator="type"),
]


class StoredEvent(BaseModel):
    """An event after persistence assigned its per-match sequence number."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    seq: int
    event: WerewolfEvent

    @property
    def event_id(self) -> str:
        return str(self.seq)

    @property
    def type(self) -> EventType:
        return EventType(self.event.type)

    def __str__(self) -> str:
        return f"#{self.seq} {self.event}"
