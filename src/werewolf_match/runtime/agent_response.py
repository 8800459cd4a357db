"""Parsing of agent replies into round actions.

Replies are read as a JSON object first. Anything that fails structured
validation degrades to a chat line where chat is allowed, and is otherwise
only logged. Free text never becomes a game-affecting action.
"""

import json
import logging
import re
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.engine.config import EngineConfig
from werewolf_match.engine.match_state import compute_required_action
from werewolf_match.models import (
    MatchPlayer,
    MatchState,
    Phase,
    PublicMessageKind,
    RequiredActionType,
    Role,
)

logger = logging.getLogger(__name__)

MESSAGE_KEYS = (
    "text", "message", "content", "statement", "reason", "response",
    "reply", "output", "result", "thought", "thoughts",
)
NESTED_MESSAGE_KEYS = ("text", "content", "message", "response", "reply", "output")
PASS_ACTIONS = ("PASS", "NONE")


# ============================================================================
# Round actions
# ============================================================================


class LogChannel(str, Enum):
    PUBLIC = "PUBLIC"
    WOLF_CHAT = "WOLF_CHAT"
    PRIVATE = "PRIVATE"


class SayPublicAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["SAY_PUBLIC"] = "SAY_PUBLIC"
    player_id: str
    text: str
    kind: PublicMessageKind


class WolfChatAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["WOLF_CHAT"] = "WOLF_CHAT"
    player_id: str
    text: str


class NightTargetAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["WOLF_KILL", "SEER_INSPECT", "DOCTOR_PROTECT"]
    player_id: str
    target_player_id: str


class VoteAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["VOTE"] = "VOTE"
    player_id: str
    target_player_id: Optional[str] = None
    reason: Optional[str] = None


class LogMessageAction(BaseModel):
    """Display-only line. Never changes match state."""

    model_config = ConfigDict(frozen=True)

    type: Literal["LOG_MESSAGE"] = "LOG_MESSAGE"
    player_id: str
    text: str
    channel: LogChannel
    kind: Optional[PublicMessageKind] = None


RoundAction = Annotated[
    Union[SayPublicAction, WolfChatAction, NightTargetAction, VoteAction, LogMessageAction],
    Field(discriminator="type"),
]


class TurnContext(BaseModel):
    """One player's turn in one round."""

    model_config = ConfigDict(frozen=True)

    state: MatchState
    player: MatchPlayer
    round_index: int
    round_count: int
    config: EngineConfig = Field(default_factory=EngineConfig)

    @property
    def is_final_night_round(self) -> bool:
        return (
            self.state.phase == Phase.NIGHT
            and self.round_index == max(0, self.round_count - 1)
        )

    @property
    def is_wolf_chat_round(self) -> bool:
        return (
            self.state.phase == Phase.NIGHT
            and self.player.role == Role.WEREWOLF
            and not self.is_final_night_round
        )

    @property
    def speech_kind(self) -> PublicMessageKind:
        if self.state.phase == Phase.DAY_OPENING:
            return PublicMessageKind.OPENING
        return PublicMessageKind.DISCUSSION


class ParsedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    responded: bool
    action: Optional[RoundAction] = None
    message_text: Optional[str] = None


# ============================================================================
# Text helpers
# ============================================================================


def strip_code_fence(text: str) -> str:
    if text.startswith("```") and text.endswith("```") and len(text) >= 6:
        inner = re.sub(r"^```[a-zA-Z]*\n?", "", text)
        return re.sub(r"```$", "", inner).strip()
    return text


def normalize_message_text(text: Optional[str]) -> Optional[str]:
    if not text or not text.strip():
        return None
    stripped = strip_code_fence(text.strip()).strip()
    return stripped or None


def truncate_text(text: str, max_chars: int) -> Optional[str]:
    """Trim, drop code fences and cut to ``max_chars``."""
    normalized = normalize_message_text(text)
    if normalized is None:
        return None
    if len(normalized) <= max_chars:
        return normalized
    return normalized[:max_chars].rstrip()


def extract_json_candidate(text: str) -> Optional[str]:
    if text.startswith("{") and text.endswith("}"):
        return text
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def parse_json_object(text: str) -> Optional[dict[str, Any]]:
    """First JSON object found in ``text``, or None."""
    candidate = extract_json_candidate(strip_code_fence(text.strip()))
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug("Failed to parse agent JSON response: %s", e)
        return None
    return parsed if isinstance(parsed, dict) else None


def _string_from_value(value: Any, keys: tuple[str, ...] = NESTED_MESSAGE_KEYS) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            found = _string_from_value(item)
            if found:
                return found
        return None
    if isinstance(value, dict):
        for key in keys:
            found = _string_from_value(value.get(key))
            if found:
                return found
    return None


def extract_message_text(payload: dict[str, Any]) -> Optional[str]:
    return _string_from_value(payload, MESSAGE_KEYS)


# ============================================================================
# Action builders
# ============================================================================


def is_allowed_target(turn: TurnContext, target_id: str, action: RequiredActionType) -> bool:
    required = compute_required_action(turn.state, turn.player.player_id)
    return required.type == action and target_id in required.allowed_targets


def build_round_action(
    action_type: str, payload: dict[str, Any], turn: TurnContext
) -> Optional[RoundAction]:
    """Validate a structured action against the player's current obligations."""
    phase = turn.state.phase
    player = turn.player
    target = payload.get("targetPlayerId", payload.get("target_player_id"))

    if action_type == "SAY_PUBLIC":
        if phase not in (Phase.DAY_OPENING, Phase.DAY_DISCUSSION):
            return None
        text = truncate_text(
            extract_message_text(payload) or "", turn.config.public_message_max_chars
        )
        if not text:
            return None
        return SayPublicAction(player_id=player.player_id, text=text, kind=turn.speech_kind)

    if action_type == "WOLF_CHAT":
        if not turn.is_wolf_chat_round:
            return None
        text = truncate_text(
            extract_message_text(payload) or "", turn.config.wolf_chat_max_chars
        )
        if not text:
            return None
        return WolfChatAction(player_id=player.player_id, text=text)

    if action_type in ("WOLF_KILL", "SEER_INSPECT", "DOCTOR_PROTECT"):
        if phase != Phase.NIGHT:
            return None
        if action_type == "WOLF_KILL" and not turn.is_final_night_round:
            return None
        if not isinstance(target, str):
            return None
        if not is_allowed_target(turn, target, RequiredActionType(action_type)):
            return None
        return NightTargetAction(
            type=action_type, player_id=player.player_id, target_player_id=target
        )

    if action_type == "VOTE":
        if phase != Phase.DAY_VOTE:
            return None
        target_id = target if isinstance(target, str) else None
        if target_id is not None and not is_allowed_target(
            turn, target_id, RequiredActionType.VOTE
        ):
            return None
        reason = payload.get("reason")
        return VoteAction(
            player_id=player.player_id,
            target_player_id=target_id,
            reason=reason if isinstance(reason, str) else None,
        )

    return None


def build_fallback_chat_action(text: str, turn: TurnContext) -> Optional[RoundAction]:
    """Treat free text as chat where the phase and role allow chat."""
    if turn.state.phase in (Phase.DAY_OPENING, Phase.DAY_DISCUSSION):
        message = truncate_text(text, turn.config.public_message_max_chars)
        if not message:
            return None
        return SayPublicAction(
            player_id=turn.player.player_id, text=message, kind=turn.speech_kind
        )
    if turn.is_wolf_chat_round:
        message = truncate_text(text, turn.config.wolf_chat_max_chars)
        if not message:
            return None
        return WolfChatAction(player_id=turn.player.player_id, text=message)
    return None


def build_display_message_action(text: str, turn: TurnContext) -> Optional[LogMessageAction]:
    """Log the free text that accompanied a non-chat action."""
    player_id = turn.player.player_id
    if turn.state.phase == Phase.NIGHT:
        if turn.player.role == Role.WEREWOLF:
            if turn.is_final_night_round:
                return None
            message = truncate_text(text, turn.config.wolf_chat_max_chars)
            if not message:
                return None
            return LogMessageAction(player_id=player_id, text=message, channel=LogChannel.WOLF_CHAT)
        message = truncate_text(text, turn.config.public_message_max_chars)
        if not message:
            return None
        return LogMessageAction(player_id=player_id, text=message, channel=LogChannel.PRIVATE)

    message = truncate_text(text, turn.config.public_message_max_chars)
    if not message:
        return None
    return LogMessageAction(
        player_id=player_id, text=message, channel=LogChannel.PUBLIC, kind=turn.speech_kind
    )


def build_pass_log_action(response_text: Optional[str], turn: TurnContext) -> LogMessageAction:
    text = "pass" if response_text and response_text.strip() else "no response"
    if turn.is_wolf_chat_round:
        return LogMessageAction(
            player_id=turn.player.player_id, text=text, channel=LogChannel.WOLF_CHAT
        )
    if turn.state.phase == Phase.NIGHT:
        # Night lines never go public; their absence would single out the wolves.
        return LogMessageAction(
            player_id=turn.player.player_id, text=text, channel=LogChannel.PRIVATE
        )
    return LogMessageAction(
        player_id=turn.player.player_id,
        text=text,
        channel=LogChannel.PUBLIC,
        kind=turn.speech_kind,
    )


def _fallback(
    message_text: Optional[str], turn: TurnContext, structured: bool = False
) -> ParsedResponse:
    """Chat fallback. A well-formed JSON reply always counts as a response."""
    action = build_fallback_chat_action(message_text, turn) if message_text else None
    if action is None and not message_text and not structured:
        return ParsedResponse(responded=False)
    return ParsedResponse(responded=True, action=action, message_text=message_text)


def parse_agent_response(response_text: Optional[str], turn: TurnContext) -> ParsedResponse:
    """Turn a raw agent reply into at most one action plus optional free text."""
    if response_text is None or not response_text.strip():
        return ParsedResponse(responded=False)

    payload = parse_json_object(response_text)
    if payload is None:
        return _fallback(normalize_message_text(response_text), turn)

    raw_action = payload.get("action")
    action_type = raw_action.strip().upper() if isinstance(raw_action, str) else ""
    message_text = normalize_message_text(extract_message_text(payload))
    if not action_type or action_type in PASS_ACTIONS:
        return _fallback(message_text, turn, structured=True)

    action = build_round_action(action_type, payload, turn)
    if action is not None:
        return ParsedResponse(responded=True, action=action, message_text=message_text)
    return _fallback(message_text, turn, structured=True)
