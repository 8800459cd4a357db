"""Tests for InMemoryMatchStore."""

import pytest

from werewolf_match.engine import MatchNotFoundError, StaleSnapshotError
from werewolf_match.events import Narrator
from werewolf_match.models import Phase
from werewolf_match.runtime import RoundKey
from werewolf_match.storage import InMemoryMatchStore, diff_match_state

from factories import BASE_TIME, make_state, update_player


def round_key(match_id: str, state, round_index: int = 0) -> RoundKey:
    return RoundKey(
        match_id=match_id,
        phase=state.phase,
        phase_started_at=state.phase_started_at,
        round_index=round_index,
    )


class TestSnapshots:
    """Tests for versioned snapshot writes."""

    @pytest.mark.asyncio
    async def test_create_and_load(self) -> None:
        store = InMemoryMatchStore()
        match_id = await store.create_match(make_state())
        snapshot = await store.load_snapshot(match_id)
        assert snapshot.version == 1
        assert [p.seat for p in snapshot.state.players] == list(range(1, 9))

    @pytest.mark.asyncio
    async def test_unknown_match(self) -> None:
        with pytest.raises(MatchNotFoundError):
            await InMemoryMatchStore().load_snapshot("missing")

    @pytest.mark.asyncio
    async def test_write_bumps_version(self) -> None:
        store = InMemoryMatchStore()
        match_id = await store.create_match(make_state())
        snapshot = await store.load_snapshot(match_id)
        updated = await store.write_match_state(
            snapshot, update_player(snapshot.state, "p5", missed_responses=1)
        )
        assert updated.version == 2
        state = (await store.load_snapshot(match_id)).state
        assert state.find_player("p5").missed_responses == 1

    @pytest.mark.asyncio
    async def test_stale_write_rejected(self) -> None:
        store = InMemoryMatchStore()
        match_id = await store.create_match(make_state())
        first = await store.load_snapshot(match_id)
        await store.write_match_state(first, update_player(first.state, "p5", ready=True))

        with pytest.raises(StaleSnapshotError) as exc_info:
            await store.write_match_state(first, update_player(first.state, "p6", ready=True))
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2

    @pytest.mark.asyncio
    async def test_unchanged_write_keeps_version(self) -> None:
        store = InMemoryMatchStore()
        match_id = await store.create_match(make_state())
        snapshot = await store.load_snapshot(match_id)
        assert (await store.write_match_state(snapshot, snapshot.state)).version == 1


class TestEvents:
    """Tests for the per-match event log."""

    @pytest.mark.asyncio
    async def test_seq_starts_at_one(self) -> None:
        store = InMemoryMatchStore()
        match_id = await store.create_match(make_state())
        seqs = await store.append_events(
            match_id, [Narrator.say(BASE_TIME, "a"), Narrator.say(BASE_TIME, "b")]
        )
        assert seqs == [1, 2]
        assert await store.append_events(match_id, [Narrator.say(BASE_TIME, "c")]) == [3]

    @pytest.mark.asyncio
    async def test_load_filters(self) -> None:
        store = InMemoryMatchStore()
        match_id = await store.create_match(make_state())
        await store.append_events(match_id, [Narrator.say(BASE_TIME, str(i)) for i in range(5)])

        assert [e.seq for e in await store.load_events(match_id, after_seq=3)] == [4, 5]
        newest = await store.load_events(match_id, limit=2, newest_first=True)
        assert [e.seq for e in newest] == [5, 4]

    @pytest.mark.asyncio
    async def test_events_for_unknown_match(self) -> None:
        with pytest.raises(MatchNotFoundError):
            await InMemoryMatchStore().append_events("missing", [])


class TestReserveRound:
    """Tests for round reservations."""

    @pytest.mark.asyncio
    async def test_reserves_once(self) -> None:
        store = InMemoryMatchStore()
        state = make_state(Phase.NIGHT)
        match_id = await store.create_match(state)
        key = round_key(match_id, state)
        assert await store.reserve_round(key, BASE_TIME, BASE_TIME)
        assert not await store.reserve_round(key, BASE_TIME, BASE_TIME + 1)
        assert await store.reserve_round(round_key(match_id, state, 1), BASE_TIME, BASE_TIME)

    @pytest.mark.asyncio
    async def test_rejects_other_phase(self) -> None:
        store = InMemoryMatchStore()
        state = make_state(Phase.NIGHT)
        match_id = await store.create_match(state)
        stale = RoundKey(
            match_id=match_id,
            phase=Phase.NIGHT,
            phase_started_at=BASE_TIME - 1,
            round_index=0,
        )
        assert not await store.reserve_round(stale, BASE_TIME, BASE_TIME)

    @pytest.mark.asyncio
    async def test_rejects_ended_and_missing(self) -> None:
        store = InMemoryMatchStore()
        state = make_state(Phase.ENDED)
        match_id = await store.create_match(state)
        assert not await store.reserve_round(round_key(match_id, state), BASE_TIME, BASE_TIME)
        assert not await store.reserve_round(round_key("missing", state), BASE_TIME, BASE_TIME)


class TestDiffMatchState:
    """Tests for diff_match_state."""

    def test_reports_changed_fields(self) -> None:
        before = make_state()
        after = update_player(before, "p5", alive=False).model_copy(
            update={"public_summary": "x"}
        )
        diff = diff_match_state(before, after)
        assert diff["public_summary"] == "x"
        assert diff["players_alive"] == 7
        assert diff["players"] == {"p5": {"alive": False}}

    def test_identical(self) -> None:
        assert diff_match_state(make_state(), make_state()) == {}
