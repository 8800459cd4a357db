"""Tests for MatchCommands."""

import pytest

from werewolf_match.engine import CommandRejectedError, EngineConfig, MatchCommands
from werewolf_match.events import VisibilityScope
from werewolf_match.models import Phase, PublicMessageKind

from factories import BASE_TIME, make_state

NOW = BASE_TIME + 1_000


class TestReady:
    """Tests for the ready command."""

    def test_marks_ready_with_narration(self) -> None:
        outcome = MatchCommands().ready(make_state(Phase.LOBBY), "p3", NOW)
        assert outcome.next_state.find_player("p3").ready
        assert outcome.event.payload.text == "Carol is ready."
        assert outcome.data == {"player_id": "p3", "ready": True}

    def test_repeat_is_unchanged(self) -> None:
        commands = MatchCommands()
        state = commands.ready(make_state(Phase.LOBBY), "p3", NOW).next_state
        again = commands.ready(state, "p3", NOW)
        assert not again.changed
        assert again.event is None
        assert again.next_state == state

    def test_rejected_after_lobby(self) -> None:
        with pytest.raises(CommandRejectedError, match="LOBBY"):
            MatchCommands().ready(make_state(Phase.NIGHT), "p3", NOW)

    def test_unknown_player(self) -> None:
        with pytest.raises(CommandRejectedError, match="Unknown"):
            MatchCommands().ready(make_state(Phase.LOBBY), "nobody", NOW)


class TestSayPublic:
    """Tests for public speech."""

    def test_trims_and_records(self) -> None:
        outcome = MatchCommands().say_public(
            make_state(Phase.DAY_DISCUSSION), "p5", "  I trust Carol.  ", NOW
        )
        assert outcome.event.payload.text == "I trust Carol."
        assert outcome.event.payload.kind == PublicMessageKind.DISCUSSION
        assert outcome.event.visibility.is_public
        assert outcome.next_state.find_player("p5").last_public_message_at == NOW
        assert outcome.data["message"]["text"] == "I trust Carol."

    def test_rejects_empty_and_long_text(self) -> None:
        commands = MatchCommands(EngineConfig(public_message_max_chars=10))
        state = make_state(Phase.DAY_DISCUSSION)
        with pytest.raises(CommandRejectedError, match="empty"):
            commands.say_public(state, "p5", "   ", NOW)
        with pytest.raises(CommandRejectedError, match="10 characters"):
            commands.say_public(state, "p5", "x" * 11, NOW)

    def test_rejects_unknown_kind(self) -> None:
        with pytest.raises(CommandRejectedError, match="kind"):
            MatchCommands().say_public(
                make_state(Phase.DAY_DISCUSSION), "p5", "hello", NOW, kind="SHOUT"
            )

    def test_cooldown(self) -> None:
        commands = MatchCommands(EngineConfig(public_message_cooldown_ms=3_000))
        state = commands.say_public(make_state(Phase.DAY_DISCUSSION), "p5", "one", NOW).next_state
        with pytest.raises(CommandRejectedError, match="one every 3 seconds"):
            commands.say_public(state, "p5", "two", NOW + 2_999)
        assert commands.say_public(state, "p5", "two", NOW + 3_000).event is not None

    def test_opening_marks_statement(self) -> None:
        outcome = MatchCommands().say_public(
            make_state(Phase.DAY_OPENING, day_number=1), "p5", "Hi all", NOW, kind="OPENING"
        )
        assert outcome.next_state.find_player("p5").did_opening_for_day == 1
        assert outcome.event.payload.kind == PublicMessageKind.OPENING

    def test_reply_reference(self) -> None:
        outcome = MatchCommands().say_public(
            make_state(Phase.DAY_DISCUSSION), "p5", "Agreed", NOW, reply_to_event_id="12"
        )
        assert outcome.event.payload.reply_to_event_id == "12"


class TestVote:
    """Tests for the vote command."""

    def test_vote_event(self) -> None:
        outcome = MatchCommands().vote(
            make_state(Phase.DAY_VOTE), "p5", "p1", NOW, reason="  acted odd  "
        )
        assert outcome.event.payload.target_player_id == "p1"
        assert outcome.event.payload.reason == "acted odd"
        assert outcome.data == {"vote": {"voter_player_id": "p5", "target_player_id": "p1"}}

    def test_abstain(self) -> None:
        outcome = MatchCommands().vote(make_state(Phase.DAY_VOTE), "p5", None, NOW)
        assert outcome.event.payload.target_player_id is None
        assert outcome.next_state.find_player("p5").has_voted

    def test_reason_length(self) -> None:
        commands = MatchCommands(EngineConfig(vote_reason_max_chars=5))
        with pytest.raises(CommandRejectedError, match="reason"):
            commands.vote(make_state(Phase.DAY_VOTE), "p5", "p1", NOW, reason="too long")


class TestNightCommands:
    """Tests for wolf_kill, seer_inspect and doctor_protect."""

    def test_wolf_kill_is_visible_to_wolves(self) -> None:
        outcome = MatchCommands().wolf_kill(make_state(), "p1", "p5", NOW)
        assert outcome.event.visibility.scope == VisibilityScope.WOLVES
        assert outcome.event.payload.text == "Wolves selected Erin as their target."
        assert outcome.data == {
            "selection": {"by_player_id": "p1", "target_player_id": "p5"}
        }

    def test_seer_inspect_reveals_alignment_privately(self) -> None:
        outcome = MatchCommands().seer_inspect(make_state(), "p3", "p2", NOW)
        assert outcome.event.visibility.scope == VisibilityScope.PLAYER_PRIVATE
        assert outcome.event.visibility.player_id == "p3"
        assert outcome.event.payload.text == "Your vision reveals Bob is WEREWOLF."
        assert outcome.data["result"]["alignment"] == "WEREWOLF"

    def test_seer_sees_doctor_as_village(self) -> None:
        outcome = MatchCommands().seer_inspect(make_state(), "p3", "p4", NOW)
        assert outcome.data["result"]["alignment"] == "NOT_WEREWOLF"

    def test_doctor_protect(self) -> None:
        outcome = MatchCommands().doctor_protect(make_state(), "p4", "p4", NOW)
        assert outcome.event.payload.text == "You will protect Dave tonight."
        action = outcome.next_state.find_player("p4").night_action
        assert action.doctor_protect_target_player_id == "p4"


class TestWolfChat:
    """Tests for wolf chat."""

    def test_wolf_can_chat_at_night(self) -> None:
        outcome = MatchCommands().wolf_chat(make_state(), "p1", "Erin next", NOW)
        assert outcome.event.visibility.scope == VisibilityScope.WOLVES
        assert outcome.event.payload.from_wolf_id == "p1"
        assert outcome.next_state.find_player("p1").last_wolf_chat_at == NOW

    def test_non_wolf_rejected(self) -> None:
        with pytest.raises(CommandRejectedError, match="Only werewolves"):
            MatchCommands().wolf_chat(make_state(), "p5", "hi", NOW)

    def test_day_rejected(self) -> None:
        with pytest.raises(CommandRejectedError, match="NIGHT"):
            MatchCommands().wolf_chat(make_state(Phase.DAY_DISCUSSION), "p1", "hi", NOW)

    def test_cooldown(self) -> None:
        commands = MatchCommands(EngineConfig(wolf_chat_cooldown_ms=2_000))
        state = commands.wolf_chat(make_state(), "p1", "one", NOW).next_state
        with pytest.raises(CommandRejectedError, match="2 seconds"):
            commands.wolf_chat(state, "p1", "two", NOW + 1_000)
