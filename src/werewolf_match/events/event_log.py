"""Exportable per-match event log."""

from datetime import datetime
from typing import Iterable, Optional

import yaml
from pydantic import BaseModel, Field

from werewolf_match.models import MatchState
from werewolf_match.events.game_events import StoredEvent
from werewolf_match.events.event_formatter import EventFormatter


class MatchEventLog(BaseModel):
    """Chronological event log of one match.

    Structure:
    - names: player_id -> display name
    - roles_secret: player_id -> role (only exported on request)
    - events: stored events in seq order
    """

    match_id: str
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    names: dict[str, str] = Field(default_factory=dict)
    roles_secret: dict[str, str] = Field(default_factory=dict)
    events: list[StoredEvent] = Field(default_factory=list)
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        match_id: str,
        state: MatchState,
        events: Iterable[StoredEvent],
        metadata: Optional[dict] = None,
    ) -> "MatchEventLog":
        return cls(
            match_id=match_id,
            names={p.player_id: p.display_name for p in state.players},
            roles_secret={p.player_id: p.role.value for p in state.players},
            events=sorted(events, key=lambda e: e.seq),
            metadata=metadata or {},
        )

    def lines(self, include_private: bool = False) -> list[str]:
        formatter = EventFormatter(self.names)
        out = []
        for stored in self.events:
            visibility = stored.event.visibility
            if not include_private and not visibility.is_public:
                continue
            prefix = "" if visibility.is_public else f"({visibility}) "
            out.append(f"#{stored.seq} {prefix}{formatter.describe(stored.event)}")
        return out

    def __str__(self) -> str:
        """Human-readable transcript of every event, private ones included."""
        header = f"Match {self.match_id} ({len(self.names)} players)"
        return "\n".join([header, *self.lines(include_private=True)])

    def to_yaml(self, include_private: bool = False) -> str:
        """Serialize the event log to a YAML string.

        Roles and non-public events are dropped unless include_private is set.
        """
        data = self.model_dump(mode="json")
        if not include_private:
            data["roles_secret"] = {}
            data["events"] = [
                e for e in data["events"]
                if e["event"]["visibility"]["scope"] == "PUBLIC"
            ]
        return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def save_to_file(self, filepath: str, include_private: bool = False) -> None:
        """Serialize the event log to a YAML file."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_yaml(include_private=include_private))

    @classmethod
    def load_from_file(cls, filepath: str) -> "MatchEventLog":
        """Load an event log from a YAML file."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data)
