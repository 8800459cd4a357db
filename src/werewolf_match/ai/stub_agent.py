"""Stub agents for simulations and tests.

These agents answer round prompts with valid random JSON without calling
an LLM. A StubAgentGateway can handle ANY round: it parses the prompt's
"Allowed actions" and "Allowed targets" blocks to see what is being asked.
"""

import json
import random
import re
from typing import Optional

from werewolf_match.models import MatchPlayer

SPEECHES = [
    "I don't have much to say yet. I'll be watching carefully.",
    "The werewolves have been quiet today. That's suspicious behavior.",
    "We should trust claims that are backed by evidence.",
    "I think we need more information before making a decision.",
    "Let's not jump to conclusions. Stay rational everyone.",
    "I'll share my thoughts after hearing from more players.",
    "Something feels off about the early discussion.",
]

WOLF_CHAT = [
    "Let's keep our heads down today.",
    "The doctor is probably protecting someone loud. Pick a quiet one.",
    "I'll follow your lead on the target.",
    "Don't defend each other too hard tomorrow.",
]

VOTE_REASONS = [
    "Their story doesn't add up.",
    "They have been too quiet.",
    "Gut feeling.",
]

_ACTIONS_RE = re.compile(r"^Allowed actions:\s*(.+)$", re.MULTILINE)
_TARGET_RE = re.compile(r"^- .*\(([^()]+)\)\s*$")


def parse_allowed_actions(prompt: str) -> list[str]:
    match = _ACTIONS_RE.search(prompt)
    if not match:
        return []
    return [a.strip() for a in match.group(1).split(",") if a.strip()]


def parse_allowed_targets(prompt: str) -> list[str]:
    """Player ids listed under the "Allowed targets:" heading."""
    lines = prompt.splitlines()
    try:
        start = lines.index("Allowed targets:")
    except ValueError:
        return []
    targets = []
    for line in lines[start + 1:]:
        match = _TARGET_RE.match(line)
        if not match:
            break
        targets.append(match.group(1))
    return targets


class StubAgent:
    """One stub agent. Parses the prompt and returns a valid random reply."""

    def __init__(
        self,
        seed: Optional[int] = None,
        missing_rate: float = 0.0,
        plain_text_rate: float = 0.0,
    ):
        self._rng = random.Random(seed)
        self.missing_rate = missing_rate
        self.plain_text_rate = plain_text_rate

    def respond(self, prompt: str) -> Optional[str]:
        if self._rng.random() < self.missing_rate:
            return None

        actions = parse_allowed_actions(prompt)
        if not actions:
            return "{}"
        action = actions[0]
        targets = parse_allowed_targets(prompt)

        if action == "SAY_PUBLIC":
            speech = self._rng.choice(SPEECHES)
            if self._rng.random() < self.plain_text_rate:
                return speech
            return json.dumps({"action": action, "text": speech})
        if action == "WOLF_CHAT":
            return json.dumps({"action": action, "text": self._rng.choice(WOLF_CHAT)})
        if action == "VOTE":
            return json.dumps(self._vote(targets))
        if action in ("WOLF_KILL", "SEER_INSPECT", "DOCTOR_PROTECT"):
            if not targets:
                return "{}"
            return json.dumps({"action": action, "targetPlayerId": self._rng.choice(targets)})
        return "{}"

    def _vote(self, targets: list[str]) -> dict:
        if not targets or self._rng.random() < 0.1:  # 10% abstain chance
            return {"action": "VOTE", "targetPlayerId": None}
        # Weighted toward earlier seats to reduce ties
        weights = [1.0 / (i + 1) for i in range(len(targets))]
        target = self._rng.choices(targets, weights=weights)[0]
        return {
            "action": "VOTE",
            "targetPlayerId": target,
            "reason": self._rng.choice(VOTE_REASONS),
        }


class StubAgentGateway:
    """Agent gateway backed by one StubAgent per player.

    Same seed + same match = identical replies, independent of the order in
    which concurrent calls complete.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        missing_rate: float = 0.0,
        plain_text_rate: float = 0.0,
        unassigned: Optional[set[str]] = None,
    ):
        self.seed = seed
        self.missing_rate = missing_rate
        self.plain_text_rate = plain_text_rate
        self.unassigned = set(unassigned or ())
        self.agents: dict[str, StubAgent] = {}
        self.prompts: list[tuple[str, str]] = []

    async def agent_for(self, match_id: str, player: MatchPlayer) -> Optional[str]:
        if player.player_id in self.unassigned:
            return None
        agent_id = f"stub:{player.player_id}"
        if agent_id not in self.agents:
            agent_seed = None if self.seed is None else self.seed * 100 + player.seat
            self.agents[agent_id] = StubAgent(
                agent_seed, self.missing_rate, self.plain_text_rate
            )
        return agent_id

    async def send(
        self,
        agent_id: str,
        prompt: str,
        sender_id: str,
        conversation_id: str,
        timeout_ms: int,
    ) -> Optional[str]:
        self.prompts.append((agent_id, prompt))
        return self.agents[agent_id].respond(prompt)
