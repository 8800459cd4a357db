"""Round orchestration: prompt every living agent, then apply their replies.

A round is reserved once per ``(match_id, phase, phase_started_at,
round_index)``. Replies are gathered with bounded concurrency and a per-call
timeout, then applied to a fresh snapshot under the same phase fence.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.engine import (
    CommandOutcome,
    CommandRejectedError,
    EngineConfig,
    MatchCommands,
    MatchNotFoundError,
    StaleSnapshotError,
    compute_required_action,
)
from werewolf_match.events import (
    EventVisibility,
    Narrator,
    PublicMessage,
    PublicMessagePayload,
    StoredEvent,
    WolfChatMessage,
    WolfChatMessagePayload,
)
from werewolf_match.models import MatchPlayer, MatchState, Phase, PublicMessageKind
from werewolf_match.runtime.agent_response import (
    LogChannel,
    LogMessageAction,
    NightTargetAction,
    ParsedResponse,
    RoundAction,
    SayPublicAction,
    TurnContext,
    VoteAction,
    WolfChatAction,
    build_display_message_action,
    build_pass_log_action,
    parse_agent_response,
)
from werewolf_match.runtime.match_service import MatchService, commit_with_retry
from werewolf_match.runtime.ports import AgentGateway, MatchSnapshot, MatchStore, RoundKey
from werewolf_match.runtime.prompts import build_round_prompt
from werewolf_match.runtime.scheduler import system_clock

logger = logging.getLogger(__name__)


class RoundReport(BaseModel):
    """What happened in one round run."""

    model_config = ConfigDict(frozen=True)

    ran: bool
    responded: list[str] = Field(default_factory=list)
    missed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    applied_actions: int = 0


class AgentReply(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    skipped: bool = False
    response_text: Optional[str] = None
    parsed: ParsedResponse = Field(default_factory=lambda: ParsedResponse(responded=False))


def conversation_id_for(match_id: str) -> str:
    return f"werewolf:{match_id}"


class RoundRunner:
    """Runs the RUN_ROUND job for a match."""

    def __init__(
        self,
        store: MatchStore,
        gateway: AgentGateway,
        service: MatchService,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], int] = system_clock,
    ):
        self.store = store
        self.gateway = gateway
        self.service = service
        self.config = config or service.config
        self.clock = clock
        self.commands = MatchCommands(self.config)

    async def handle_round_job(self, args: dict[str, Any]) -> RoundReport:
        try:
            key = RoundKey(
                match_id=args["match_id"],
                phase=Phase(args["phase"]),
                phase_started_at=int(args["phase_started_at"]),
                round_index=int(args["round_index"]),
            )
        except (KeyError, ValueError):
            raise CommandRejectedError(f"Malformed round job arguments: {args}") from None
        return await self.run_round(key, int(args.get("scheduled_at", key.phase_started_at)))

    async def run_round(self, key: RoundKey, scheduled_at: int) -> RoundReport:
        if not await self.store.reserve_round(key, scheduled_at, self.clock()):
            logger.debug(
                "Round %s/%d of match %s not reserved",
                key.phase.value, key.round_index, key.match_id,
            )
            return RoundReport(ran=False)

        try:
            snapshot = await self.store.load_snapshot(key.match_id)
        except MatchNotFoundError:
            return RoundReport(ran=False)
        state = snapshot.state
        if state.phase != key.phase or state.phase_started_at != key.phase_started_at:
            return RoundReport(ran=False)
        round_count = self.config.round_count(state.phase)
        if not 0 <= key.round_index < round_count:
            return RoundReport(ran=False)

        events = await self.store.load_events(
            key.match_id, limit=self.config.max_prompt_events, newest_first=True
        )
        events.reverse()

        logger.info(
            "Match %s: %s round %d/%d",
            key.match_id, state.phase.value, key.round_index + 1, round_count,
        )
        replies = await self.collect_replies(key, state, events, round_count)
        actions, report = self.plan_actions(key, state, replies, round_count)
        applied = await self.apply_round_results(key, actions, report.missed)
        return report.model_copy(update={"applied_actions": applied})

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def collect_replies(
        self,
        key: RoundKey,
        state: MatchState,
        events: Sequence[StoredEvent],
        round_count: int,
    ) -> list[AgentReply]:
        """Ask every living player's agent for a reply, in seat order."""
        semaphore = asyncio.Semaphore(self.config.agent_concurrency)
        timeout_ms = self.config.round_response_timeout_ms

        async def ask(player: MatchPlayer) -> AgentReply:
            async with semaphore:
                agent_id = await self.gateway.agent_for(key.match_id, player)
                if agent_id is None:
                    return AgentReply(player_id=player.player_id, skipped=True)
                turn = TurnContext(
                    state=state,
                    player=player,
                    round_index=key.round_index,
                    round_count=round_count,
                    config=self.config,
                )
                prompt = build_round_prompt(key.match_id, turn, events)
                logger.debug("Prompt for %s (%s):\n%s", player.display_name, agent_id, prompt)
                response_text = await self._send(agent_id, key.match_id, prompt, timeout_ms)
                logger.debug("Reply from %s: %r", player.display_name, response_text)
                return AgentReply(
                    player_id=player.player_id,
                    response_text=response_text,
                    parsed=parse_agent_response(response_text, turn),
                )

        players = state.alive_players()
        results = await asyncio.gather(*(ask(p) for p in players), return_exceptions=True)

        replies = []
        for player, result in zip(players, results):
            if isinstance(result, BaseException):
                logger.warning("Round response for %s failed: %s", player.display_name, result)
                replies.append(AgentReply(player_id=player.player_id))
                continue
            replies.append(result)
        return replies

    async def _send(
        self, agent_id: str, match_id: str, prompt: str, timeout_ms: int
    ) -> Optional[str]:
        conversation_id = conversation_id_for(match_id)
        try:
            return await asyncio.wait_for(
                self.gateway.send(agent_id, prompt, conversation_id, conversation_id, timeout_ms),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning("Agent %s timed out after %d ms", agent_id, timeout_ms)
        except Exception as e:
            logger.warning("Agent %s failed: %s", agent_id, e)
        return None

    def plan_actions(
        self,
        key: RoundKey,
        state: MatchState,
        replies: Sequence[AgentReply],
        round_count: int,
    ) -> tuple[list[RoundAction], RoundReport]:
        """Turn replies into the ordered action list plus a report."""
        actions: list[RoundAction] = []
        responded: list[str] = []
        missed: list[str] = []
        skipped: list[str] = []

        for reply in replies:
            player = state.find_player(reply.player_id)
            if player is None:
                continue
            if reply.skipped:
                skipped.append(reply.player_id)
                continue
            turn = TurnContext(
                state=state,
                player=player,
                round_index=key.round_index,
                round_count=round_count,
                config=self.config,
            )
            parsed = reply.parsed
            if not parsed.responded:
                missed.append(reply.player_id)
                actions.append(build_pass_log_action(None, turn))
                continue

            responded.append(reply.player_id)
            if parsed.action is not None:
                actions.append(parsed.action)
            is_chat = isinstance(parsed.action, (SayPublicAction, WolfChatAction))
            if parsed.message_text and not is_chat:
                display = build_display_message_action(parsed.message_text, turn)
                if display is not None:
                    actions.append(display)
            if parsed.action is None and not parsed.message_text:
                actions.append(build_pass_log_action(reply.response_text, turn))

        report = RoundReport(ran=True, responded=responded, missed=missed, skipped=skipped)
        return actions, report

    # =========================================================================
    # Commit
    # =========================================================================

    def apply_action(
        self, state: MatchState, action: RoundAction, now: int
    ) -> Optional[CommandOutcome]:
        """Apply one round action. Returns None for duplicates and rejections."""
        player_id = action.player_id
        if isinstance(action, (NightTargetAction, VoteAction)):
            if compute_required_action(state, player_id).already_submitted:
                logger.debug("Skipping duplicate %s from %s", action.type, player_id)
                return None

        try:
            if isinstance(action, SayPublicAction):
                return self.commands.say_public(
                    state, player_id, action.text, now, kind=action.kind.value
                )
            if isinstance(action, WolfChatAction):
                return self.commands.wolf_chat(state, player_id, action.text, now)
            if isinstance(action, NightTargetAction):
                apply = {
                    "WOLF_KILL": self.commands.wolf_kill,
                    "SEER_INSPECT": self.commands.seer_inspect,
                    "DOCTOR_PROTECT": self.commands.doctor_protect,
                }[action.type]
                return apply(state, player_id, action.target_player_id, now)
            if isinstance(action, VoteAction):
                return self.commands.vote(
                    state, player_id, action.target_player_id, now, reason=action.reason
                )
        except CommandRejectedError as e:
            logger.warning("Rejected %s from %s: %s", action.type, player_id, e)
            return None

        return self._log_message(state, action, now)

    @staticmethod
    def _log_message(
        state: MatchState, action: LogMessageAction, now: int
    ) -> Optional[CommandOutcome]:
        player = state.find_player(action.player_id)
        if player is None:
            return None
        if action.channel == LogChannel.PUBLIC:
            event = PublicMessage(
                at=now,
                payload=PublicMessagePayload(
                    player_id=player.player_id,
                    text=action.text,
                    kind=action.kind or PublicMessageKind.DISCUSSION,
                ),
            )
        elif action.channel == LogChannel.WOLF_CHAT:
            event = WolfChatMessage(
                at=now,
                payload=WolfChatMessagePayload(from_wolf_id=player.player_id, text=action.text),
            )
        else:
            event = Narrator.say(
                now,
                f"{player.display_name}: {action.text}",
                EventVisibility.private(player.player_id),
            )
        return CommandOutcome(next_state=state, event=event)

    async def apply_round_results(
        self, key: RoundKey, actions: Sequence[RoundAction], missed_player_ids: Sequence[str]
    ) -> int:
        """Apply the round's actions to a fresh snapshot. Returns the number applied."""
        now = self.clock()
        missed = set(missed_player_ids)

        async def mutate(snapshot: MatchSnapshot) -> int:
            state = snapshot.state
            if state.phase != key.phase or state.phase_started_at != key.phase_started_at:
                logger.debug("Discarding round results for match %s: phase moved on", key.match_id)
                return 0

            changed = False
            if missed:
                state = state.map_players(
                    lambda p: p.model_copy(update={"missed_responses": p.missed_responses + 1})
                    if p.alive and p.player_id in missed
                    else p
                )
                changed = True

            events = []
            for action in actions:
                outcome = self.apply_action(state, action, now)
                if outcome is None:
                    continue
                state = outcome.next_state
                if outcome.event is not None:
                    events.append(outcome.event)
                changed = True

            if not changed:
                return 0
            await self.store.write_match_state(snapshot, state)
            if events:
                await self.store.append_events(key.match_id, events)
            self.service.schedule_early_advance(key.match_id, state)
            return len(events)

        try:
            return await commit_with_retry(self.store, key.match_id, mutate)
        except StaleSnapshotError:
            logger.warning("Gave up applying round results for match %s", key.match_id)
            return 0
