"""Engine exceptions."""


class MatchEngineError(Exception):
    """Base class for match engine errors."""


class CommandRejectedError(MatchEngineError):
    """A command failed validation. No state was changed.

    Raised for wrong phase, dead or wrong-role actors, ineligible targets,
    duplicate submissions, cooldowns and text length violations.
    """


class IdempotencyConflictError(CommandRejectedError):
    """An idempotency key was already used by another player or match."""


class StaleSnapshotError(MatchEngineError):
    """The stored match moved on since the snapshot being written was loaded."""

    def __init__(self, match_id: str, expected_version: int, actual_version: int):
        self.match_id = match_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Match {match_id} is at version {actual_version}, expected {expected_version}"
        )


class MatchNotFoundError(MatchEngineError):
    """No match with the given id exists."""

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match {match_id} not found")


class InvariantViolationError(MatchEngineError):
    """A known-valid snapshot is corrupted (e.g. an unknown player id)."""
