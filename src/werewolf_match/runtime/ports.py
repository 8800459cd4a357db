"""Collaborator interfaces the runtime depends on.

Persistence, scheduling and the agent gateway are external systems. The
runtime only talks to them through these protocols.
"""

from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict

from werewolf_match.events import MatchEvent, StoredEvent
from werewolf_match.models import MatchPlayer, MatchState, Phase


class MatchSnapshot(BaseModel):
    """A loaded match plus the version used for optimistic writes."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    version: int
    state: MatchState


class RoundKey(BaseModel):
    """Reservation key of one round run. Inserted at most once."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    phase: Phase
    phase_started_at: int
    round_index: int


class MatchStore(Protocol):
    """Persistence collaborator."""

    async def create_match(self, state: MatchState) -> str:
        """Store a new match and return its id."""
        ...

    async def load_snapshot(self, match_id: str) -> MatchSnapshot:
        """Load a match with players ordered by seat.

        Raises:
            MatchNotFoundError: If the match does not exist.
        """
        ...

    async def write_match_state(
        self, previous: MatchSnapshot, new_state: MatchState
    ) -> MatchSnapshot:
        """Atomically replace the match if it is still at ``previous.version``.

        Raises:
            StaleSnapshotError: If another writer got there first.
        """
        ...

    async def append_events(self, match_id: str, events: Sequence[MatchEvent]) -> list[int]:
        """Append events and return their assigned sequence numbers."""
        ...

    async def load_events(
        self,
        match_id: str,
        after_seq: Optional[int] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[StoredEvent]:
        ...

    async def reserve_round(self, key: RoundKey, scheduled_at: int, now: int) -> bool:
        """Insert a round reservation.

        Returns False if the match is gone, ended, no longer in
        ``(key.phase, key.phase_started_at)``, or the key already exists.
        """
        ...

    async def list_matches(self) -> list[MatchSnapshot]:
        ...


class AgentGateway(Protocol):
    """Turns a text prompt into a text reply for a player's external agent.

    Any exception raised by ``send`` is treated as "no response".
    """

    async def agent_for(self, match_id: str, player: MatchPlayer) -> Optional[str]:
        """Agent id driving ``player``, or None if nobody drives it."""
        ...

    async def send(
        self,
        agent_id: str,
        prompt: str,
        sender_id: str,
        conversation_id: str,
        timeout_ms: int,
    ) -> Optional[str]:
        ...


class JobName(str, Enum):
    """Callbacks the scheduler can invoke."""

    ADVANCE_PHASE = "ADVANCE_PHASE"
    RUN_ROUND = "RUN_ROUND"


class Scheduler(Protocol):
    """Runs a job after a delay, at least once and never early.

    Arguments must carry the fencing fields the callee uses to reject stale
    deliveries.
    """

    def schedule(self, delay_ms: int, job: JobName, args: dict[str, Any]) -> None:
        ...
