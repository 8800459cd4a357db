"""Idempotency guard for player-submitted commands."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from werewolf_match.engine.exceptions import CommandRejectedError, IdempotencyConflictError

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 8
MAX_KEY_LENGTH = 128


class IdempotencyScope(str, Enum):
    READY = "match.ready"
    PUBLIC_MESSAGE = "match.public_message"
    VOTE = "match.vote"
    WOLF_CHAT = "match.night.wolf_chat"
    WOLF_KILL = "match.night.wolf_kill"
    SEER_INSPECT = "match.night.seer_inspect"
    DOCTOR_PROTECT = "match.night.doctor_protect"


class IdempotencyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    scope: IdempotencyScope
    key: str
    player_id: str
    match_id: str
    result: Any
    created_at: int


class IdempotencyStore(Protocol):
    async def get(self, scope: IdempotencyScope, key: str) -> Optional[IdempotencyRecord]:
        ...

    async def put(self, record: IdempotencyRecord) -> None:
        ...


class InMemoryIdempotencyStore:
    def __init__(self):
        self._records: dict[tuple[IdempotencyScope, str], IdempotencyRecord] = {}

    async def get(self, scope: IdempotencyScope, key: str) -> Optional[IdempotencyRecord]:
        return self._records.get((scope, key))

    async def put(self, record: IdempotencyRecord) -> None:
        self._records[(record.scope, record.key)] = record

    def __len__(self) -> int:
        return len(self._records)


def validate_idempotency_key(key: Optional[str]) -> None:
    if key is None:
        return
    if not MIN_KEY_LENGTH <= len(key) <= MAX_KEY_LENGTH:
        raise CommandRejectedError("Idempotency key length is invalid.")


class IdempotencyGuard:
    """Memoizes ``(scope, key) -> result`` for the player and match that first used it.

    Calls with the same key are serialized so a retry racing the original
    request never runs the command twice.
    """

    def __init__(self, store: Optional[IdempotencyStore] = None):
        self.store = store or InMemoryIdempotencyStore()
        self._locks: dict[tuple[IdempotencyScope, str], asyncio.Lock] = {}
        self._lock_users: dict[tuple[IdempotencyScope, str], int] = {}

    async def run(
        self,
        scope: IdempotencyScope,
        key: Optional[str],
        player_id: str,
        match_id: str,
        now: int,
        fn: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        """Run ``fn`` once per key.

        Returns:
            (result, reused) where reused is True for a replayed result.
        """
        validate_idempotency_key(key)
        if key is None:
            return await fn(), False

        lock_key = (scope, key)
        lock = self._locks.setdefault(lock_key, asyncio.Lock())
        self._lock_users[lock_key] = self._lock_users.get(lock_key, 0) + 1
        try:
            async with lock:
                return await self._run_locked(scope, key, player_id, match_id, now, fn)
        finally:
            self._lock_users[lock_key] -= 1
            if not self._lock_users[lock_key]:
                del self._lock_users[lock_key]
                del self._locks[lock_key]

    async def _run_locked(
        self,
        scope: IdempotencyScope,
        key: str,
        player_id: str,
        match_id: str,
        now: int,
        fn: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        existing = await self.store.get(scope, key)
        if existing is not None:
            if existing.player_id != player_id:
                raise IdempotencyConflictError(
                    "Idempotency key already used by another player."
                )
            if existing.match_id != match_id:
                raise IdempotencyConflictError(
                    "Idempotency key already used for another match."
                )
            logger.debug("Replaying %s result for key %s", scope.value, key)
            return existing.result, True

        result = await fn()
        await self.store.put(
            IdempotencyRecord(
                scope=scope,
                key=key,
                player_id=player_id,
                match_id=match_id,
                result=result,
                created_at=now,
            )
        )
        return result, False
