"""Command surface and the phase advance job.

Every mutation is a read-modify-write cycle against the persistence
collaborator with optimistic concurrency: a write that loses a race is
retried against a fresh snapshot (player commands) or dropped as superseded
(scheduled jobs).
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.engine import (
    CommandOutcome,
    CommandRejectedError,
    EngineConfig,
    MatchCommands,
    MatchNotFoundError,
    PhaseAdvancer,
    StaleSnapshotError,
    can_advance_phase_early,
    create_initial_match_state,
)
from werewolf_match.engine.hashing import Seed
from werewolf_match.events import MatchCreated, MatchCreatedPayload, MatchCreatedPlayer
from werewolf_match.models import MatchState, Phase, PlayerSeed
from werewolf_match.runtime.idempotency import IdempotencyGuard, IdempotencyScope
from werewolf_match.runtime.ports import JobName, MatchSnapshot, MatchStore, Scheduler
from werewolf_match.runtime.scheduler import system_clock

logger = logging.getLogger(__name__)

DEFAULT_WRITE_ATTEMPTS = 3


class CommandResult(BaseModel):
    """Small payload returned to the caller of a command."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    event_id: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    reused: bool = False


async def commit_with_retry(
    store: MatchStore,
    match_id: str,
    mutate: Callable[[MatchSnapshot], Awaitable[Any]],
    attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> Any:
    """Run ``mutate`` on fresh snapshots until its write is not stale."""
    last_error: Optional[StaleSnapshotError] = None
    for attempt in range(attempts):
        snapshot = await store.load_snapshot(match_id)
        try:
            return await mutate(snapshot)
        except StaleSnapshotError as e:
            last_error = e
            logger.debug("Stale write on match %s (attempt %d)", match_id, attempt + 1)
    raise last_error


class MatchService:
    """Player commands, match creation and the ADVANCE_PHASE job."""

    def __init__(
        self,
        store: MatchStore,
        scheduler: Scheduler,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], int] = system_clock,
        idempotency: Optional[IdempotencyGuard] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.config = config or EngineConfig()
        self.clock = clock
        self.idempotency = idempotency or IdempotencyGuard()
        self.commands = MatchCommands(self.config)
        self.advancer = PhaseAdvancer(self.config)

    # =========================================================================
    # Match creation
    # =========================================================================

    async def create_match(
        self, players: Sequence[PlayerSeed], role_seed: Optional[Seed] = None
    ) -> str:
        now = self.clock()
        state = create_initial_match_state(players, now, self.config, role_seed)
        match_id = await self.store.create_match(state)
        await self.store.append_events(
            match_id,
            [
                MatchCreated(
                    at=now,
                    payload=MatchCreatedPayload(
                        players=tuple(
                            MatchCreatedPlayer(
                                player_id=p.player_id, display_name=p.display_name, seat=p.seat
                            )
                            for p in state.players
                        ),
                        phase_ends_at=state.phase_ends_at,
                    ),
                )
            ],
        )
        self.schedule_advance(match_id, state, now)
        logger.info("Created match %s with %d players", match_id, len(state.players))
        return match_id

    # =========================================================================
    # Commands
    # =========================================================================

    async def _run_command(
        self,
        scope: IdempotencyScope,
        match_id: str,
        player_id: str,
        idempotency_key: Optional[str],
        apply: Callable[[MatchState, int], CommandOutcome],
    ) -> CommandResult:
        now = self.clock()

        async def mutate(snapshot: MatchSnapshot) -> CommandResult:
            outcome = apply(snapshot.state, now)
            if not outcome.changed:
                return CommandResult(match_id=match_id, data=outcome.data)
            await self.store.write_match_state(snapshot, outcome.next_state)
            event_id = None
            if outcome.event is not None:
                seqs = await self.store.append_events(match_id, [outcome.event])
                event_id = str(seqs[0])
            self.schedule_early_advance(match_id, outcome.next_state)
            return CommandResult(match_id=match_id, event_id=event_id, data=outcome.data)

        async def run() -> CommandResult:
            return await commit_with_retry(self.store, match_id, mutate)

        result, reused = await self.idempotency.run(
            scope, idempotency_key, player_id, match_id, now, run
        )
        return result.model_copy(update={"reused": reused}) if reused else result

    async def ready(
        self, match_id: str, player_id: str, idempotency_key: Optional[str] = None
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.READY, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.ready(state, player_id, now),
        )

    async def say_public(
        self,
        match_id: str,
        player_id: str,
        text: str,
        kind: Optional[str] = None,
        reply_to_event_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.PUBLIC_MESSAGE, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.say_public(
                state, player_id, text, now, kind=kind, reply_to_event_id=reply_to_event_id
            ),
        )

    async def cast_vote(
        self,
        match_id: str,
        player_id: str,
        target_player_id: Optional[str],
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.VOTE, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.vote(
                state, player_id, target_player_id, now, reason=reason
            ),
        )

    async def wolf_kill(
        self,
        match_id: str,
        player_id: str,
        target_player_id: str,
        idempotency_key: Optional[str] = None,
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.WOLF_KILL, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.wolf_kill(state, player_id, target_player_id, now),
        )

    async def seer_inspect(
        self,
        match_id: str,
        player_id: str,
        target_player_id: str,
        idempotency_key: Optional[str] = None,
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.SEER_INSPECT, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.seer_inspect(state, player_id, target_player_id, now),
        )

    async def doctor_protect(
        self,
        match_id: str,
        player_id: str,
        target_player_id: str,
        idempotency_key: Optional[str] = None,
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.DOCTOR_PROTECT, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.doctor_protect(
                state, player_id, target_player_id, now
            ),
        )

    async def wolf_chat(
        self,
        match_id: str,
        player_id: str,
        text: str,
        idempotency_key: Optional[str] = None,
    ) -> CommandResult:
        return await self._run_command(
            IdempotencyScope.WOLF_CHAT, match_id, player_id, idempotency_key,
            lambda state, now: self.commands.wolf_chat(state, player_id, text, now),
        )

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule_advance(self, match_id: str, state: MatchState, now: int) -> None:
        if state.phase == Phase.ENDED:
            return
        self.scheduler.schedule(
            max(0, state.phase_ends_at - now),
            JobName.ADVANCE_PHASE,
            {
                "match_id": match_id,
                "expected_phase": state.phase.value,
                "expected_phase_ends_at": state.phase_ends_at,
            },
        )

    def schedule_early_advance(self, match_id: str, state: MatchState) -> None:
        if state.phase == Phase.ENDED or not can_advance_phase_early(state):
            return
        self.scheduler.schedule(
            0,
            JobName.ADVANCE_PHASE,
            {
                "match_id": match_id,
                "expected_phase": state.phase.value,
                "expected_phase_ends_at": state.phase_ends_at,
            },
        )

    def schedule_rounds(self, match_id: str, state: MatchState, now: int) -> None:
        for round_index in range(self.config.round_count(state.phase)):
            start_at = self.config.round_start_at(state.phase_started_at, round_index)
            self.scheduler.schedule(
                max(0, start_at - now),
                JobName.RUN_ROUND,
                {
                    "match_id": match_id,
                    "phase": state.phase.value,
                    "phase_started_at": state.phase_started_at,
                    "round_index": round_index,
                    "scheduled_at": start_at,
                },
            )

    # =========================================================================
    # ADVANCE_PHASE job
    # =========================================================================

    async def advance_phase(
        self, match_id: str, expected_phase: Phase, expected_phase_ends_at: int
    ) -> bool:
        """Advance the match if the fencing token still matches.

        Stale or duplicate deliveries return False without side effects.
        """
        try:
            snapshot = await self.store.load_snapshot(match_id)
        except MatchNotFoundError:
            logger.warning("Advance job for unknown match %s", match_id)
            return False
        state = snapshot.state
        if state.phase != expected_phase or state.phase_ends_at != expected_phase_ends_at:
            logger.debug("Stale advance job for match %s (%s)", match_id, expected_phase.value)
            return False

        now = self.clock()
        result = self.advancer.advance(state, now)
        if not result.advanced:
            if state.phase != Phase.ENDED and now < state.phase_ends_at:
                # Timer fired early; try again at the deadline.
                self.schedule_advance(match_id, state, now)
            return False

        try:
            await self.store.write_match_state(snapshot, result.next_state)
        except StaleSnapshotError:
            logger.debug("Advance for match %s superseded by a concurrent write", match_id)
            return False
        await self.store.append_events(match_id, result.events)

        self.schedule_advance(match_id, result.next_state, now)
        self.schedule_rounds(match_id, result.next_state, now)
        if result.next_state.phase == Phase.ENDED:
            winner = result.next_state.winner.value if result.next_state.winner else "nobody"
            logger.info("Match %s ended: %s win", match_id, winner)
        return True

    async def handle_advance_job(self, args: dict[str, Any]) -> bool:
        try:
            phase = Phase(args["expected_phase"])
        except (KeyError, ValueError):
            raise CommandRejectedError(f"Malformed advance job arguments: {args}") from None
        return await self.advance_phase(
            args["match_id"], phase, int(args["expected_phase_ends_at"])
        )
