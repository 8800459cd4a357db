"""In-memory persistence collaborator.

Used by the simulator and the tests. Snapshots are immutable pydantic
models, so storing them by reference is safe.
"""

import logging
import uuid
from typing import Any, Optional, Sequence

from werewolf_match.engine.exceptions import MatchNotFoundError, StaleSnapshotError
from werewolf_match.events import MatchEvent, StoredEvent
from werewolf_match.models import MatchState, Phase
from werewolf_match.runtime.ports import MatchSnapshot, RoundKey

logger = logging.getLogger(__name__)


def diff_match_state(previous: MatchState, new: MatchState) -> dict[str, Any]:
    """Field-level diff between two snapshots.

    Match fields map to their new value; ``players`` maps player_id to the
    changed player fields. A field the new state omits shows up as None.
    """
    diff: dict[str, Any] = {}
    for name in MatchState.model_fields:
        if name == "players":
            continue
        if getattr(previous, name) != getattr(new, name):
            diff[name] = getattr(new, name)

    old_players = {p.player_id: p for p in previous.players}
    player_diffs: dict[str, dict[str, Any]] = {}
    for player in new.players:
        old = old_players.get(player.player_id)
        if old is None:
            player_diffs[player.player_id] = player.model_dump()
            continue
        changed = {
            field: getattr(player, field)
            for field in type(player).model_fields
            if getattr(old, field) != getattr(player, field)
        }
        if changed:
            player_diffs[player.player_id] = changed
    if player_diffs:
        diff["players"] = player_diffs
    return diff


class InMemoryMatchStore:
    """Version-counted match snapshots, per-match event logs and round reservations."""

    def __init__(self):
        self._matches: dict[str, MatchSnapshot] = {}
        self._events: dict[str, list[StoredEvent]] = {}
        self._reservations: dict[RoundKey, dict[str, int]] = {}

    async def create_match(self, state: MatchState) -> str:
        match_id = uuid.uuid4().hex
        self._matches[match_id] = MatchSnapshot(
            match_id=match_id, version=1, state=self._normalize(state)
        )
        self._events[match_id] = []
        return match_id

    @staticmethod
    def _normalize(state: MatchState) -> MatchState:
        return state.with_players(sorted(state.players, key=lambda p: p.seat))

    async def load_snapshot(self, match_id: str) -> MatchSnapshot:
        snapshot = self._matches.get(match_id)
        if snapshot is None:
            raise MatchNotFoundError(match_id)
        return snapshot

    async def write_match_state(
        self, previous: MatchSnapshot, new_state: MatchState
    ) -> MatchSnapshot:
        current = await self.load_snapshot(previous.match_id)
        if current.version != previous.version:
            raise StaleSnapshotError(previous.match_id, previous.version, current.version)
        new_state = self._normalize(new_state)
        diff = diff_match_state(current.state, new_state)
        if not diff:
            return current
        logger.debug("Match %s write: %s", previous.match_id, sorted(diff))
        updated = MatchSnapshot(
            match_id=previous.match_id, version=current.version + 1, state=new_state
        )
        self._matches[previous.match_id] = updated
        return updated

    async def append_events(self, match_id: str, events: Sequence[MatchEvent]) -> list[int]:
        if match_id not in self._matches:
            raise MatchNotFoundError(match_id)
        log = self._events[match_id]
        seqs = []
        for event in events:
            seq = log[-1].seq + 1 if log else 1
            log.append(StoredEvent(match_id=match_id, seq=seq, event=event))
            seqs.append(seq)
        return seqs

    async def load_events(
        self,
        match_id: str,
        after_seq: Optional[int] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[StoredEvent]:
        if match_id not in self._matches:
            raise MatchNotFoundError(match_id)
        events = [
            e for e in self._events[match_id] if after_seq is None or e.seq > after_seq
        ]
        if newest_first:
            events.reverse()
        if limit is not None:
            events = events[:limit]
        return events

    async def reserve_round(self, key: RoundKey, scheduled_at: int, now: int) -> bool:
        snapshot = self._matches.get(key.match_id)
        if snapshot is None:
            return False
        state = snapshot.state
        if state.phase != key.phase or state.phase_started_at != key.phase_started_at:
            return False
        if state.phase == Phase.ENDED:
            return False
        if key in self._reservations:
            return False
        self._reservations[key] = {"scheduled_at": scheduled_at, "started_at": now}
        return True

    async def list_matches(self) -> list[MatchSnapshot]:
        return list(self._matches.values())
