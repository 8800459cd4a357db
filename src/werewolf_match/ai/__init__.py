"""Stub agents for running matches without an external agent service."""

from werewolf_match.ai.stub_agent import (
    StubAgent,
    StubAgentGateway,
    parse_allowed_actions,
    parse_allowed_targets,
)

__all__ = [
    "StubAgent",
    "StubAgentGateway",
    "parse_allowed_actions",
    "parse_allowed_targets",
]
