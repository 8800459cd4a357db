"""Engine configuration.

All timing and limit knobs live in one pydantic model that is passed to the
engine at construction time.
"""

from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.models import Phase


DEFAULT_PHASE_DURATIONS_MS: dict[Phase, int] = {
    Phase.LOBBY: 10_000,
    Phase.NIGHT: 60_000,
    Phase.DAY_ANNOUNCE: 10_000,
    Phase.DAY_OPENING: 15_000,
    Phase.DAY_DISCUSSION: 45_000,
    Phase.DAY_VOTE: 15_000,
    Phase.DAY_RESOLUTION: 10_000,
    Phase.ENDED: 0,
}

DEFAULT_ROUND_COUNTS: dict[Phase, int] = {
    Phase.NIGHT: 4,
    Phase.DAY_OPENING: 1,
    Phase.DAY_DISCUSSION: 3,
    Phase.DAY_VOTE: 1,
}


class EngineConfig(BaseModel):
    """Durations, round counts and limits for a match engine."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    phase_durations_ms: dict[Phase, int] = Field(
        default_factory=lambda: dict(DEFAULT_PHASE_DURATIONS_MS)
    )
    round_counts: dict[Phase, int] = Field(
        default_factory=lambda: dict(DEFAULT_ROUND_COUNTS)
    )
    round_duration_ms: int = Field(default=15_000, gt=0)
    round_buffer_ms: int = Field(default=5_000, ge=0)
    response_timeout_ms: Optional[int] = Field(default=None, gt=0)
    agent_concurrency: int = Field(default=4, ge=1)
    max_missed_responses: int = Field(default=4, ge=1)
    max_match_duration_ms: Optional[int] = Field(default=None, gt=0)

    public_message_max_chars: int = Field(default=500, ge=1)
    public_message_cooldown_ms: int = Field(default=3_000, ge=0)
    wolf_chat_max_chars: int = Field(default=400, ge=1)
    wolf_chat_cooldown_ms: int = Field(default=2_000, ge=0)
    vote_reason_max_chars: int = Field(default=200, ge=1)

    max_prompt_events: int = Field(default=200, ge=1)
    max_context_lines: int = Field(default=12, ge=1)

    def round_count(self, phase: Phase) -> int:
        return self.round_counts.get(phase, 0)

    def phase_duration_ms(self, phase: Phase) -> int:
        """Phases split into rounds last exactly as long as their rounds."""
        rounds = self.round_count(phase)
        if rounds > 0:
            return rounds * self.round_duration_ms
        return self.phase_durations_ms.get(phase, DEFAULT_PHASE_DURATIONS_MS[phase])

    @property
    def round_response_timeout_ms(self) -> int:
        if self.response_timeout_ms is not None:
            return self.response_timeout_ms
        return min(10_000, max(1_000, self.round_duration_ms - self.round_buffer_ms))

    def round_start_at(self, phase_started_at: int, round_index: int) -> int:
        return phase_started_at + round_index * self.round_duration_ms

    @classmethod
    def fast(cls, **overrides) -> "EngineConfig":
        """Short durations for simulations and end-to-end runs."""
        values = dict(
            phase_durations_ms={
                Phase.LOBBY: 2_000,
                Phase.NIGHT: 6_000,
                Phase.DAY_ANNOUNCE: 2_000,
                Phase.DAY_OPENING: 1_500,
                Phase.DAY_DISCUSSION: 4_500,
                Phase.DAY_VOTE: 1_500,
                Phase.DAY_RESOLUTION: 2_000,
                Phase.ENDED: 0,
            },
            round_duration_ms=1_500,
            round_buffer_ms=500,
            public_message_cooldown_ms=0,
            wolf_chat_cooldown_ms=0,
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_yaml(cls, filepath: str) -> "EngineConfig":
        """Load a config from a YAML file. Missing keys keep their defaults."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)
