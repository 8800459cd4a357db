"""Runtime package - commands, jobs, round orchestration and queries."""

from .ports import (
    AgentGateway,
    JobName,
    MatchSnapshot,
    MatchStore,
    RoundKey,
    Scheduler,
)
from .idempotency import (
    IdempotencyGuard,
    IdempotencyRecord,
    IdempotencyScope,
    IdempotencyStore,
    InMemoryIdempotencyStore,
)
from .scheduler import AsyncioScheduler, VirtualClock, VirtualScheduler, system_clock
from .agent_response import ParsedResponse, TurnContext, parse_agent_response
from .prompts import build_round_prompt
from .match_service import CommandResult, MatchService, commit_with_retry
from .round_runner import RoundReport, RoundRunner
from .queries import MatchQueries, MatchStateView, MatchEventsPage, MatchSummary
from .match_runtime import MatchRuntime

__all__ = [
    "AgentGateway",
    "JobName",
    "MatchSnapshot",
    "MatchStore",
    "RoundKey",
    "Scheduler",
    "IdempotencyGuard",
    "IdempotencyRecord",
    "IdempotencyScope",
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "AsyncioScheduler",
    "VirtualClock",
    "VirtualScheduler",
    "system_clock",
    "ParsedResponse",
    "TurnContext",
    "parse_agent_response",
    "build_round_prompt",
    "CommandResult",
    "MatchService",
    "commit_with_retry",
    "RoundReport",
    "RoundRunner",
    "MatchQueries",
    "MatchStateView",
    "MatchEventsPage",
    "MatchSummary",
    "MatchRuntime",
]
