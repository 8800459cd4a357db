"""Player commands applied to a match snapshot.

Each command validates its input, computes the next snapshot and the single
event it emits. Nothing is persisted here.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.engine.config import EngineConfig
from werewolf_match.engine.day_resolver import DayActionResolver
from werewolf_match.engine.exceptions import CommandRejectedError
from werewolf_match.engine.match_state import find_actor
from werewolf_match.engine.night_action_resolver import NightActionKind, NightActionResolver
from werewolf_match.events import (
    EventVisibility,
    Narrator,
    PublicMessage,
    PublicMessagePayload,
    VoteCast,
    VoteCastPayload,
    WolfChatMessage,
    WolfChatMessagePayload,
)
from werewolf_match.models import (
    MatchState,
    Phase,
    PublicMessageKind,
    Role,
    SeerAlignment,
)


class CommandOutcome(BaseModel):
    """Next snapshot, the emitted event (if any) and the caller-facing data."""

    model_config = ConfigDict(frozen=True)

    next_state: MatchState
    event: Optional[Any] = None
    changed: bool = True
    data: dict = Field(default_factory=dict)


def normalize_text(text: str, max_chars: int, label: str) -> str:
    trimmed = (text or "").strip()
    if not trimmed:
        raise CommandRejectedError(f"{label} cannot be empty.")
    if len(trimmed) > max_chars:
        raise CommandRejectedError(f"{label} exceeds {max_chars} characters.")
    return trimmed


def normalize_message_kind(kind: Optional[str]) -> PublicMessageKind:
    try:
        return PublicMessageKind(kind or PublicMessageKind.DISCUSSION)
    except ValueError:
        raise CommandRejectedError("Invalid public message kind.") from None


def _check_cooldown(last_at: Optional[int], now: int, cooldown_ms: int, message: str) -> None:
    if last_at is not None and now - last_at < cooldown_ms:
        raise CommandRejectedError(message)


class MatchCommands:
    """Validation and application of every player command."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.night = NightActionResolver(self.config.max_missed_responses)
        self.day = DayActionResolver()

    def ready(self, state: MatchState, player_id: str, now: int) -> CommandOutcome:
        if state.phase != Phase.LOBBY:
            raise CommandRejectedError("Ready can only be handled during LOBBY")
        player = find_actor(state, player_id)
        if not player.alive:
            raise CommandRejectedError("Dead players cannot ready")
        data = {"player_id": player_id, "ready": True}
        if player.ready:
            return CommandOutcome(next_state=state, changed=False, data=data)
        return CommandOutcome(
            next_state=state.with_player(player.model_copy(update={"ready": True})),
            event=Narrator.say(now, f"{player.display_name} is ready."),
            data=data,
        )

    def say_public(
        self,
        state: MatchState,
        player_id: str,
        text: str,
        now: int,
        kind: Optional[str] = None,
        reply_to_event_id: Optional[str] = None,
    ) -> CommandOutcome:
        text = normalize_text(text, self.config.public_message_max_chars, "Public message text")
        message_kind = normalize_message_kind(kind)
        player = find_actor(state, player_id)
        cooldown_s = self.config.public_message_cooldown_ms / 1000
        _check_cooldown(
            player.last_public_message_at,
            now,
            self.config.public_message_cooldown_ms,
            f"Public messages are limited to one every {cooldown_s:g} seconds.",
        )

        next_state = self.day.apply_public_message(state, player_id)
        speaker = find_actor(next_state, player_id)
        next_state = next_state.with_player(
            speaker.model_copy(update={"last_public_message_at": now})
        )
        event = PublicMessage(
            at=now,
            payload=PublicMessagePayload(
                player_id=player_id,
                text=text,
                kind=message_kind,
                reply_to_event_id=reply_to_event_id,
            ),
        )
        return CommandOutcome(
            next_state=next_state,
            event=event,
            data={"message": {"player_id": player_id, "kind": message_kind.value, "text": text}},
        )

    def vote(
        self,
        state: MatchState,
        voter_id: str,
        target_id: Optional[str],
        now: int,
        reason: Optional[str] = None,
    ) -> CommandOutcome:
        if reason is not None:
            reason = reason.strip() or None
        if reason is not None and len(reason) > self.config.vote_reason_max_chars:
            raise CommandRejectedError(
                f"Vote reason exceeds {self.config.vote_reason_max_chars} characters."
            )
        next_state = self.day.apply_vote(state, voter_id, target_id)
        event = VoteCast(
            at=now,
            payload=VoteCastPayload(
                voter_player_id=voter_id, target_player_id=target_id, reason=reason
            ),
        )
        return CommandOutcome(
            next_state=next_state,
            event=event,
            data={"vote": {"voter_player_id": voter_id, "target_player_id": target_id}},
        )

    def wolf_kill(
        self, state: MatchState, player_id: str, target_id: str, now: int
    ) -> CommandOutcome:
        next_state = self.night.apply_action(state, NightActionKind.WOLF_KILL, player_id, target_id)
        target = find_actor(state, target_id)
        return CommandOutcome(
            next_state=next_state,
            event=Narrator.say(
                now,
                f"Wolves selected {target.display_name} as their target.",
                EventVisibility.wolves(),
            ),
            data={"selection": {"by_player_id": player_id, "target_player_id": target_id}},
        )

    def seer_inspect(
        self, state: MatchState, player_id: str, target_id: str, now: int
    ) -> CommandOutcome:
        next_state = self.night.apply_action(
            state, NightActionKind.SEER_INSPECT, player_id, target_id
        )
        target = find_actor(state, target_id)
        alignment = SeerAlignment.for_role(target.role)
        return CommandOutcome(
            next_state=next_state,
            event=Narrator.say(
                now,
                f"Your vision reveals {target.display_name} is {alignment.value}.",
                EventVisibility.private(player_id),
            ),
            data={"result": {"target_player_id": target_id, "alignment": alignment.value}},
        )

    def doctor_protect(
        self, state: MatchState, player_id: str, target_id: str, now: int
    ) -> CommandOutcome:
        next_state = self.night.apply_action(
            state, NightActionKind.DOCTOR_PROTECT, player_id, target_id
        )
        target = find_actor(state, target_id)
        return CommandOutcome(
            next_state=next_state,
            event=Narrator.say(
                now,
                f"You will protect {target.display_name} tonight.",
                EventVisibility.private(player_id),
            ),
            data={"protection": {"by_player_id": player_id, "target_player_id": target_id}},
        )

    def wolf_chat(
        self, state: MatchState, player_id: str, text: str, now: int
    ) -> CommandOutcome:
        text = normalize_text(text, self.config.wolf_chat_max_chars, "Wolf chat message")
        if state.phase != Phase.NIGHT:
            raise CommandRejectedError("Wolf chat can only be handled during NIGHT")
        player = find_actor(state, player_id)
        if not player.alive:
            raise CommandRejectedError("Dead players cannot use wolf chat")
        if player.role != Role.WEREWOLF:
            raise CommandRejectedError("Only werewolves can use wolf chat")
        cooldown_s = self.config.wolf_chat_cooldown_ms / 1000
        _check_cooldown(
            player.last_wolf_chat_at,
            now,
            self.config.wolf_chat_cooldown_ms,
            f"Wolf chat is limited to one message every {cooldown_s:g} seconds.",
        )
        event = WolfChatMessage(
            at=now, payload=WolfChatMessagePayload(from_wolf_id=player_id, text=text)
        )
        return CommandOutcome(
            next_state=state.with_player(player.model_copy(update={"last_wolf_chat_at": now})),
            event=event,
            data={"message": {"player_id": player_id, "text": text}},
        )
