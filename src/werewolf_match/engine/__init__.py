"""Engine package - pure match decision logic."""

from .config import EngineConfig
from .exceptions import (
    MatchEngineError,
    CommandRejectedError,
    IdempotencyConflictError,
    StaleSnapshotError,
    MatchNotFoundError,
    InvariantViolationError,
)
from .hashing import hash32, select_deterministic
from .role_assign import assign_roles, ROLE_DISTRIBUTION
from .match_state import (
    create_initial_match_state,
    compute_required_action,
    find_actor,
    require_player,
)
from .night_action_resolver import NightActionKind, NightActionResolver, NightResolution
from .day_resolver import DayActionResolver, DayVoteResolution
from .win import evaluate_win_condition, forced_winner
from .narrator import Narrator, PhaseOutcome
from .transitions import (
    advance_phase,
    can_advance_phase_early,
    force_end,
    next_phase_for,
    previous_phase,
)
from .phase_advance import AdvanceResult, PhaseAdvancer, should_advance_phase
from .commands import CommandOutcome, MatchCommands

__all__ = [
    "EngineConfig",
    "MatchEngineError",
    "CommandRejectedError",
    "IdempotencyConflictError",
    "StaleSnapshotError",
    "MatchNotFoundError",
    "InvariantViolationError",
    "hash32",
    "select_deterministic",
    "assign_roles",
    "ROLE_DISTRIBUTION",
    "create_initial_match_state",
    "compute_required_action",
    "find_actor",
    "require_player",
    "NightActionKind",
    "NightActionResolver",
    "NightResolution",
    "DayActionResolver",
    "DayVoteResolution",
    "evaluate_win_condition",
    "forced_winner",
    "Narrator",
    "PhaseOutcome",
    "advance_phase",
    "can_advance_phase_early",
    "force_end",
    "next_phase_for",
    "previous_phase",
    "AdvanceResult",
    "PhaseAdvancer",
    "should_advance_phase",
    "CommandOutcome",
    "MatchCommands",
]
