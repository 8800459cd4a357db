"""Tests for EngineConfig durations, presets and YAML loading."""

import os
import tempfile

import pytest
from pydantic import ValidationError

from werewolf_match.engine import EngineConfig
from werewolf_match.models import Phase


class TestDurations:
    """Phase and round timing."""

    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.phase_duration_ms(Phase.LOBBY) == 10_000
        assert config.phase_duration_ms(Phase.DAY_ANNOUNCE) == 10_000
        assert config.phase_duration_ms(Phase.ENDED) == 0
        assert config.round_count(Phase.DAY_ANNOUNCE) == 0

    def test_round_phases_last_as_long_as_their_rounds(self) -> None:
        config = EngineConfig()
        assert config.phase_duration_ms(Phase.NIGHT) == 4 * 15_000
        assert config.phase_duration_ms(Phase.DAY_DISCUSSION) == 3 * 15_000
        assert config.phase_duration_ms(Phase.DAY_VOTE) == 15_000

    def test_response_timeout_derived_from_round_duration(self) -> None:
        assert EngineConfig().round_response_timeout_ms == 10_000
        assert EngineConfig(round_duration_ms=3_000).round_response_timeout_ms == 1_000
        assert EngineConfig(round_duration_ms=12_000).round_response_timeout_ms == 7_000
        assert EngineConfig(response_timeout_ms=250).round_response_timeout_ms == 250

    def test_round_start_offsets(self) -> None:
        config = EngineConfig()
        assert config.round_start_at(1_000, 0) == 1_000
        assert config.round_start_at(1_000, 2) == 31_000

    def test_fast_preset(self) -> None:
        config = EngineConfig.fast()
        assert config.phase_duration_ms(Phase.NIGHT) == 4 * 1_500
        assert config.public_message_cooldown_ms == 0
        assert EngineConfig.fast(agent_concurrency=2).agent_concurrency == 2


class TestValidation:
    """Bad values are rejected by pydantic."""

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(night_rounds=4)

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(agent_concurrency=0)


class TestFromYaml:
    """Loading overrides from a YAML file."""

    def test_overrides_and_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "engine.yaml")
            with open(path, "w", encoding="utf-8") as f:
                f.write(
                    "round_duration_ms: 2000\n"
                    "max_missed_responses: 2\n"
                    "phase_durations_ms:\n"
                    "  LOBBY: 500\n"
                )
            config = EngineConfig.from_yaml(path)

        assert config.round_duration_ms == 2_000
        assert config.max_missed_responses == 2
        assert config.phase_duration_ms(Phase.LOBBY) == 500
        assert config.phase_duration_ms(Phase.NIGHT) == 8_000
        assert config.agent_concurrency == 4

    def test_empty_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "empty.yaml")
            open(path, "w", encoding="utf-8").close()
            config = EngineConfig.from_yaml(path)
        assert config == EngineConfig()

    def test_unknown_key_in_file_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "bad.yaml")
            with open(path, "w", encoding="utf-8") as f:
                f.write("turbo: true\n")
            with pytest.raises(ValidationError):
                EngineConfig.from_yaml(path)
