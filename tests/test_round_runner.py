"""Tests for RoundRunner."""

import asyncio
import json

import pytest

from werewolf_match.engine import EngineConfig
from werewolf_match.events import (
    EventType,
    ViewerContext,
    VisibilityScope,
    filter_visible_events,
)
from werewolf_match.models import Phase
from werewolf_match.runtime import (
    JobName,
    MatchService,
    RoundKey,
    RoundRunner,
    VirtualClock,
    VirtualScheduler,
)
from werewolf_match.storage import InMemoryMatchStore

from factories import BASE_TIME, make_state


class ScriptedGateway:
    """Replies from a per-player script.

    A script entry may be a string, None (no reply), an exception instance
    (raised) or a float (seconds to stall before replying "{}").
    """

    def __init__(self, script=None, default=None, unassigned=()):
        self.script = script or {}
        self.default = default
        self.unassigned = set(unassigned)
        self.prompts = {}

    async def agent_for(self, match_id, player):
        if player.player_id in self.unassigned:
            return None
        return f"agent:{player.player_id}"

    async def send(self, agent_id, prompt, sender_id, conversation_id, timeout_ms):
        player_id = agent_id.split(":", 1)[1]
        self.prompts[player_id] = prompt
        entry = self.script.get(player_id, self.default)
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, float):
            await asyncio.sleep(entry)
            return "{}"
        return entry


def say(text: str) -> str:
    return json.dumps({"action": "SAY_PUBLIC", "text": text})


def vote(target) -> str:
    return json.dumps({"action": "VOTE", "targetPlayerId": target})


async def setup(phase: Phase, gateway, config=None, **state_kw):
    config = config or EngineConfig()
    clock = VirtualClock(BASE_TIME)
    scheduler = VirtualScheduler(clock)
    store = InMemoryMatchStore()
    service = MatchService(store, scheduler, config, clock)
    runner = RoundRunner(store, gateway, service, config, clock)
    match_id = await store.create_match(make_state(phase, config=config, **state_kw))
    key = RoundKey(match_id=match_id, phase=phase, phase_started_at=BASE_TIME, round_index=0)
    return runner, store, scheduler, key


async def stored_events(store, key):
    return await store.load_events(key.match_id)


class TestDiscussionRound:
    """Tests for a discussion round."""

    @pytest.mark.asyncio
    async def test_every_player_speaks(self) -> None:
        gateway = ScriptedGateway(default=say("I have a hunch"))
        runner, store, _, key = await setup(Phase.DAY_DISCUSSION, gateway)

        report = await runner.run_round(key, BASE_TIME)

        assert report.ran
        assert report.responded == [f"p{i}" for i in range(1, 9)]
        assert report.applied_actions == 8
        events = await stored_events(store, key)
        assert [e.event.payload.player_id for e in events] == [f"p{i}" for i in range(1, 9)]
        assert all(e.type == EventType.PUBLIC_MESSAGE for e in events)

    @pytest.mark.asyncio
    async def test_prompts_only_go_to_living_players(self) -> None:
        gateway = ScriptedGateway(default=say("hi"))
        runner, _, _, key = await setup(Phase.DAY_DISCUSSION, gateway, dead=["p7"])
        await runner.run_round(key, BASE_TIME)
        assert "p7" not in gateway.prompts
        assert "Phase: DAY_DISCUSSION (round 1 of 3)" in gateway.prompts["p5"]

    @pytest.mark.asyncio
    async def test_missing_reply_counts_and_logs(self) -> None:
        gateway = ScriptedGateway(script={"p5": None}, default=say("hi"))
        runner, store, _, key = await setup(Phase.DAY_DISCUSSION, gateway)

        report = await runner.run_round(key, BASE_TIME)

        assert report.missed == ["p5"]
        state = (await store.load_snapshot(key.match_id)).state
        assert state.find_player("p5").missed_responses == 1
        events = await stored_events(store, key)
        texts = {e.event.payload.player_id: e.event.payload.text for e in events}
        assert texts["p5"] == "no response"

    @pytest.mark.asyncio
    async def test_failures_and_timeouts_are_missed(self) -> None:
        config = EngineConfig(response_timeout_ms=50)
        gateway = ScriptedGateway(
            script={"p2": RuntimeError("agent offline"), "p6": 5.0},
            default=say("hi"),
        )
        runner, _, _, key = await setup(Phase.DAY_DISCUSSION, gateway, config=config)

        report = await runner.run_round(key, BASE_TIME)

        assert report.missed == ["p2", "p6"]
        assert len(report.responded) == 6

    @pytest.mark.asyncio
    async def test_unassigned_players_are_skipped(self) -> None:
        gateway = ScriptedGateway(default=say("hi"), unassigned={"p8"})
        runner, store, _, key = await setup(Phase.DAY_DISCUSSION, gateway)

        report = await runner.run_round(key, BASE_TIME)

        assert report.skipped == ["p8"]
        assert "p8" not in report.missed
        state = (await store.load_snapshot(key.match_id)).state
        assert state.find_player("p8").missed_responses == 0
        assert len(await stored_events(store, key)) == 7


class TestRoundFencing:
    """Tests for reservation and phase fencing."""

    @pytest.mark.asyncio
    async def test_round_runs_once(self) -> None:
        gateway = ScriptedGateway(default=say("hi"))
        runner, store, _, key = await setup(Phase.DAY_DISCUSSION, gateway)
        assert (await runner.run_round(key, BASE_TIME)).ran
        assert not (await runner.run_round(key, BASE_TIME)).ran
        assert len(await stored_events(store, key)) == 8

    @pytest.mark.asyncio
    async def test_stale_phase_is_ignored(self) -> None:
        gateway = ScriptedGateway(default=say("hi"))
        runner, store, _, key = await setup(Phase.DAY_DISCUSSION, gateway)
        stale = key.model_copy(update={"phase_started_at": BASE_TIME - 45_000})
        assert not (await runner.run_round(stale, BASE_TIME)).ran
        assert gateway.prompts == {}

    @pytest.mark.asyncio
    async def test_round_index_out_of_range(self) -> None:
        gateway = ScriptedGateway(default=say("hi"))
        runner, _, _, key = await setup(Phase.DAY_DISCUSSION, gateway)
        beyond = key.model_copy(update={"round_index": 3})
        assert not (await runner.run_round(beyond, BASE_TIME)).ran

    @pytest.mark.asyncio
    async def test_handle_round_job(self) -> None:
        gateway = ScriptedGateway(default=say("hi"))
        runner, _, _, key = await setup(Phase.DAY_DISCUSSION, gateway)
        report = await runner.handle_round_job(
            {
                "match_id": key.match_id,
                "phase": "DAY_DISCUSSION",
                "phase_started_at": BASE_TIME,
                "round_index": 0,
                "scheduled_at": BASE_TIME,
            }
        )
        assert report.ran


class TestVoteRound:
    """Tests for a vote round."""

    @pytest.mark.asyncio
    async def test_unanimous_votes_schedule_early_advance(self) -> None:
        gateway = ScriptedGateway(script={"p1": vote("p2")}, default=vote("p1"))
        runner, store, scheduler, key = await setup(Phase.DAY_VOTE, gateway)

        report = await runner.run_round(key, BASE_TIME)

        assert report.applied_actions == 8
        types = [e.type for e in await stored_events(store, key)]
        assert types == [EventType.VOTE_CAST] * 8
        [(due, job, args)] = scheduler.pending_jobs()
        assert job == JobName.ADVANCE_PHASE
        assert due == BASE_TIME
        assert args["expected_phase"] == "DAY_VOTE"

    @pytest.mark.asyncio
    async def test_plain_text_does_not_vote(self) -> None:
        gateway = ScriptedGateway(default="I vote for Alice")
        runner, store, scheduler, key = await setup(Phase.DAY_VOTE, gateway)

        await runner.run_round(key, BASE_TIME)

        state = (await store.load_snapshot(key.match_id)).state
        assert not any(p.has_voted for p in state.players)
        assert scheduler.pending == 0


class TestNightRound:
    """Tests for night rounds."""

    @pytest.mark.asyncio
    async def test_final_round_records_night_actions(self) -> None:
        gateway = ScriptedGateway(
            script={
                "p1": json.dumps({"action": "WOLF_KILL", "targetPlayerId": "p5"}),
                "p2": json.dumps({"action": "WOLF_KILL", "targetPlayerId": "p6"}),
                "p3": json.dumps({"action": "SEER_INSPECT", "targetPlayerId": "p1"}),
                "p4": json.dumps({"action": "DOCTOR_PROTECT", "targetPlayerId": "p5"}),
            },
            default="{}",
        )
        runner, store, _, key = await setup(Phase.NIGHT, gateway)
        final = key.model_copy(update={"round_index": 3})

        await runner.run_round(final, BASE_TIME + 45_000)

        state = (await store.load_snapshot(key.match_id)).state
        assert state.find_player("p1").night_action.wolf_kill_target_player_id == "p5"
        assert state.find_player("p2").night_action.wolf_kill_target_player_id == "p6"
        assert state.find_player("p3").night_action.seer_inspect_target_player_id == "p1"
        assert state.find_player("p4").night_action.doctor_protect_target_player_id == "p5"

    @pytest.mark.asyncio
    async def test_wolf_chat_round(self) -> None:
        gateway = ScriptedGateway(
            script={"p1": json.dumps({"action": "WOLF_CHAT", "text": "Erin?"})},
            default="{}",
        )
        runner, store, _, key = await setup(Phase.NIGHT, gateway)

        await runner.run_round(key, BASE_TIME)

        events = await stored_events(store, key)
        chat = [e for e in events if e.type == EventType.WOLF_CHAT_MESSAGE]
        assert [e.event.payload.text for e in chat if e.event.payload.from_wolf_id == "p1"] == [
            "Erin?"
        ]


def wolf_kill(target: str, text=None) -> str:
    payload = {"action": "WOLF_KILL", "targetPlayerId": target}
    if text:
        payload["text"] = text
    return json.dumps(payload)


async def night_round_events(gateway, round_index: int):
    runner, store, _, key = await setup(Phase.NIGHT, gateway)
    key = key.model_copy(update={"round_index": round_index})
    await runner.run_round(key, BASE_TIME + round_index * 15_000)
    state = (await store.load_snapshot(key.match_id)).state
    return state, await stored_events(store, key)


class TestNightRoundVisibility:
    """Night rounds never reveal roles through public events."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("round_index", [0, 3])
    async def test_everyone_passing_emits_nothing_public(self, round_index) -> None:
        gateway = ScriptedGateway(default=json.dumps({"action": "PASS"}))
        _, events = await night_round_events(gateway, round_index)

        assert events
        assert [e for e in events if e.event.visibility.is_public] == []

    @pytest.mark.asyncio
    async def test_villager_pass_is_a_private_note(self) -> None:
        gateway = ScriptedGateway(script={"p6": None}, default="{}")
        _, events = await night_round_events(gateway, 0)

        notes = [
            e for e in events
            if e.event.visibility.scope == VisibilityScope.PLAYER_PRIVATE
            and e.event.visibility.player_id == "p6"
        ]
        assert len(notes) == 1
        assert notes[0].type == EventType.NARRATOR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("round_index", [0, 3])
    async def test_mixed_replies_hide_roles_from_spectators(self, round_index) -> None:
        gateway = ScriptedGateway(
            script={
                "p1": wolf_kill("p5", text="she talks too much"),
                "p2": None,
                "p3": "still thinking",
                "p4": json.dumps({"action": "PASS"}),
                "p5": None,
                "p6": RuntimeError("agent offline"),
                "p7": wolf_kill("p8"),
                "p8": "I sleep",
            },
        )
        state, events = await night_round_events(gateway, round_index)

        assert filter_visible_events(events, ViewerContext.spectator()) == []
        for player in state.players:
            visible = filter_visible_events(events, ViewerContext.for_player(player))
            for stored in visible:
                visibility = stored.event.visibility
                if visibility.scope == VisibilityScope.WOLVES:
                    assert player.is_werewolf
                else:
                    assert visibility.scope == VisibilityScope.PLAYER_PRIVATE
                    assert visibility.player_id == player.player_id

    @pytest.mark.asyncio
    async def test_non_wolves_see_only_their_own_line(self) -> None:
        gateway = ScriptedGateway(default=None)
        state, events = await night_round_events(gateway, 0)

        for player in state.players:
            if player.is_werewolf:
                continue
            visible = filter_visible_events(events, ViewerContext.for_player(player))
            assert [e.event.payload.text for e in visible] == [
                f"{player.display_name}: no response"
            ]
