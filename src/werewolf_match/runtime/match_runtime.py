"""MatchRuntime - wires the command service, round runner and queries together."""

import logging
from typing import Callable, Optional

from werewolf_match.engine import EngineConfig
from werewolf_match.events import MatchEventLog
from werewolf_match.runtime.idempotency import IdempotencyGuard
from werewolf_match.runtime.match_service import MatchService
from werewolf_match.runtime.ports import AgentGateway, JobName, MatchStore
from werewolf_match.runtime.queries import MatchQueries
from werewolf_match.runtime.round_runner import RoundRunner
from werewolf_match.runtime.scheduler import system_clock

logger = logging.getLogger(__name__)


class MatchRuntime:
    """One engine instance bound to its collaborators.

    Registers the ADVANCE_PHASE and RUN_ROUND handlers on the scheduler, so
    the scheduler must expose ``register(job, handler)`` (both bundled
    schedulers do).

    Example:
        store = InMemoryMatchStore()
        clock = VirtualClock()
        scheduler = VirtualScheduler(clock)
        runtime = MatchRuntime(store, scheduler, gateway, EngineConfig.fast(), clock)
        match_id = await runtime.service.create_match(players)
        await scheduler.run_until_idle()
    """

    def __init__(
        self,
        store: MatchStore,
        scheduler,
        gateway: AgentGateway,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], int] = system_clock,
        idempotency: Optional[IdempotencyGuard] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.config = config or EngineConfig()
        self.clock = clock
        self.service = MatchService(store, scheduler, self.config, clock, idempotency)
        self.rounds = RoundRunner(store, gateway, self.service, self.config, clock)
        self.queries = MatchQueries(store)

        scheduler.register(JobName.ADVANCE_PHASE, self.service.handle_advance_job)
        scheduler.register(JobName.RUN_ROUND, self.rounds.handle_round_job)

    async def export_log(self, match_id: str, metadata: Optional[dict] = None) -> MatchEventLog:
        snapshot = await self.store.load_snapshot(match_id)
        events = await self.store.load_events(match_id)
        return MatchEventLog.build(match_id, snapshot.state, events, metadata)
