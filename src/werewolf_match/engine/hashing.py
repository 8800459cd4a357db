"""Deterministic hashing used for seeded selections.

All randomness in the engine comes from these functions so that any outcome
can be recomputed from the match state alone.
"""

import hashlib
from typing import Sequence, Union

Seed = Union[int, str]


def hash32(value: str, seed: Seed = 0) -> int:
    """Well-mixed unsigned 32-bit hash of ``value`` under ``seed``."""
    digest = hashlib.blake2b(
        value.encode("utf-8"),
        digest_size=4,
        key=str(seed).encode("utf-8")[:64],
    ).digest()
    return int.from_bytes(digest, "big")


def select_deterministic(
    seed_base: str, candidates: Sequence[str], label: str, seed: Seed = 0
) -> str:
    """Pick one candidate reproducibly.

    Candidates are de-duplicated and sorted first, so arrival order never
    affects the result.
    """
    unique = sorted(set(candidates))
    if not unique:
        raise ValueError("select_deterministic requires at least one candidate")
    key = f"{seed_base}:{label}:{','.join(unique)}"
    return unique[hash32(key, seed) % len(unique)]
