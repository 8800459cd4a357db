"""Day speech bookkeeping and vote resolution."""

from collections import Counter
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from werewolf_match.engine.exceptions import CommandRejectedError
from werewolf_match.engine.match_state import find_actor
from werewolf_match.models import CastVote, MatchState, Phase

SPEAKING_PHASES = (Phase.DAY_OPENING, Phase.DAY_DISCUSSION)


class DayVoteResolution(BaseModel):
    """Outcome of the day vote."""

    model_config = ConfigDict(frozen=True)

    next_state: MatchState
    eliminated_player_id: Optional[str] = None
    tally: dict[str, int] = Field(default_factory=dict)


class DayActionResolver:
    """Validates day actions and resolves the vote."""

    def apply_public_message(self, state: MatchState, actor_id: str) -> MatchState:
        """Record that a player spoke. Text and cooldown checks live in commands.

        DAY_OPENING allows one statement per player per day.
        """
        if state.phase not in SPEAKING_PHASES:
            raise CommandRejectedError(
                "SAY_PUBLIC can only be handled during DAY_OPENING or DAY_DISCUSSION"
            )
        actor = find_actor(state, actor_id)
        if not actor.alive:
            raise CommandRejectedError("Dead players cannot speak publicly")

        if state.phase == Phase.DAY_OPENING:
            if actor.did_opening_for_day == state.day_number:
                raise CommandRejectedError("Opening statement already submitted for this day")
            return state.with_player(
                actor.model_copy(update={"did_opening_for_day": state.day_number})
            )
        return state

    def apply_vote(
        self, state: MatchState, voter_id: str, target_id: Optional[str]
    ) -> MatchState:
        """Record a vote. ``target_id=None`` is an explicit abstain."""
        if state.phase != Phase.DAY_VOTE:
            raise CommandRejectedError("VOTE can only be handled during DAY_VOTE")
        voter = find_actor(state, voter_id)
        if not voter.alive:
            raise CommandRejectedError("Dead players cannot vote")
        if voter.has_voted:
            raise CommandRejectedError("Vote already cast today")
        if target_id is not None:
            target = find_actor(state, target_id)
            if not target.alive:
                raise CommandRejectedError("Vote target must be alive")

        return state.with_player(
            voter.model_copy(update={"vote": CastVote(target_player_id=target_id)})
        )

    def tally(self, state: MatchState) -> Counter:
        counts: Counter = Counter()
        for player in state.alive_players():
            if player.vote is not None and player.vote.target_player_id is not None:
                counts[player.vote.target_player_id] += 1
        return counts

    def resolve_vote(self, state: MatchState, now: int) -> DayVoteResolution:
        """Eliminate the unique plurality leader, if any, and clear all votes."""
        counts = self.tally(state)
        eliminated = None
        if counts:
            highest = max(counts.values())
            leaders = [target for target, count in counts.items() if count == highest]
            if len(leaders) == 1:
                eliminated = leaders[0]

        def settle(player):
            update: dict = {"vote": None}
            if player.player_id == eliminated and player.alive:
                update.update(alive=False, eliminated_at=now, revealed_role=True)
            return player.model_copy(update=update)

        return DayVoteResolution(
            next_state=state.map_players(settle),
            eliminated_player_id=eliminated,
            tally=dict(counts),
        )
