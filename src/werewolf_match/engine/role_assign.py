"""Deterministic role assignment."""

from typing import Optional, Sequence

from werewolf_match.engine.exceptions import CommandRejectedError
from werewolf_match.engine.hashing import Seed, hash32
from werewolf_match.models import Role, role_distribution

ROLE_DISTRIBUTION: tuple[Role, ...] = tuple(role_distribution())
REQUIRED_PLAYERS = len(ROLE_DISTRIBUTION)
ROLE_ASSIGN_SEED = 0x9E3779B9


def assign_roles(player_ids: Sequence[str], seed: Optional[Seed] = None) -> dict[str, Role]:
    """Assign the fixed 8-player role distribution.

    Players are sorted by ``hash32(player_id, seed)`` (ties broken by id) and
    receive roles in distribution order. Identical inputs always produce
    identical assignments.

    Raises:
        CommandRejectedError: If there are not exactly 8 players or ids repeat.
    """
    if len(player_ids) != REQUIRED_PLAYERS:
        raise CommandRejectedError(f"assign_roles requires {REQUIRED_PLAYERS} players")
    if len(set(player_ids)) != len(player_ids):
        raise CommandRejectedError("assign_roles requires unique player ids")

    effective_seed = ROLE_ASSIGN_SEED if seed is None else seed
    ordered = sorted(player_ids, key=lambda pid: (hash32(pid, effective_seed), pid))
    return {pid: role for pid, role in zip(ordered, ROLE_DISTRIBUTION)}
