"""Storage package - persistence collaborator implementations."""

from .memory import InMemoryMatchStore, diff_match_state

__all__ = ["InMemoryMatchStore", "diff_match_state"]
