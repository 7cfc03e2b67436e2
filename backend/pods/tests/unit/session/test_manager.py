"""Tests for PodSessionManager: locking, persistence and event delivery around commands."""

import asyncio
import time
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from pods.pairing.settings import PodSettings
from pods.session.enums import Outcome, RoundCommand, SessionErrorCode, TableResult
from pods.session.events import EventType
from pods.session.manager import PodSessionManager
from pods.session.types import SessionSnapshot
from pods.tests.helpers import make_session


class MemoryStorage:
    """In-memory SessionStorage."""

    def __init__(self) -> None:
        self.saved: dict[str, str] = {}

    def save_session(self, code: str, content: str) -> None:
        self.saved[code] = content

    def load_sessions(self) -> list[str]:
        return list(self.saved.values())

    def delete_session(self, code: str) -> None:
        self.saved.pop(code, None)


class SlowSecondSaveStorage(MemoryStorage):
    """Blocks the second save long enough for a later command to save first."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def save_session(self, code: str, content: str) -> None:
        self.calls += 1
        if self.calls == 2:
            time.sleep(0.3)
        super().save_session(code, content)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def manager(storage):
    return PodSessionManager(storage=storage)


@pytest.fixture
def listener(manager):
    mock = AsyncMock()
    manager.events.subscribe(mock)
    return mock


async def _session_with_players(manager, count=8, settings=None):
    snapshot = await manager.create_session("host", settings=settings)
    for i in range(1, count + 1):
        result = await manager.join(snapshot.code, f"p{i}", f"Player {i}")
        assert result.ok
    return snapshot.code


def _event_types(listener):
    return [call.args[0].type for call in listener.await_args_list]


class TestCreateAndJoin:
    async def test_create_session_persists_snapshot(self, manager, storage):
        snapshot = await manager.create_session("host", event_name="Friday")

        assert snapshot.event_name == "Friday"
        assert snapshot.code in storage.saved
        assert manager.get_session(snapshot.code).host_id == "host"

    async def test_join_publishes_event(self, manager, listener):
        snapshot = await manager.create_session("host")

        result = await manager.join(snapshot.code, "alice", "Alice")

        assert result.ok
        event = listener.await_args.args[0]
        assert event.type == EventType.PARTICIPANT_JOINED
        assert event.payload == {"participant_id": "alice"}
        assert [p.participant_id for p in event.session.participants] == ["alice"]

    async def test_unknown_session(self, manager):
        result = await manager.join("ZZZZZZ", "alice")
        assert result.error == SessionErrorCode.SESSION_NOT_FOUND

    async def test_blank_code_or_id_is_invalid(self, manager):
        snapshot = await manager.create_session("host")

        assert (await manager.join("", "alice")).error == SessionErrorCode.INVALID_REQUEST
        assert (await manager.join(snapshot.code, " ")).error == SessionErrorCode.INVALID_REQUEST

    async def test_code_lookup_is_case_insensitive(self, manager):
        snapshot = await manager.create_session("host")
        assert (await manager.join(snapshot.code.lower(), "alice")).ok

    async def test_expired_session_rejected(self, manager):
        snapshot = await manager.create_session("host")
        manager.registry.get(snapshot.code).expires_at = datetime.now(UTC) - timedelta(seconds=1)

        result = await manager.join(snapshot.code, "alice")

        assert result.error == SessionErrorCode.SESSION_EXPIRED

    async def test_rejected_command_publishes_nothing(self, manager, listener):
        snapshot = await manager.create_session("host")
        await manager.join(snapshot.code, "alice")
        listener.reset_mock()

        result = await manager.join(snapshot.code, "alice")

        assert result.error == SessionErrorCode.ALREADY_JOINED
        listener.assert_not_awaited()


class TestRoundCommands:
    async def test_generate_publishes_round_generated(self, manager, listener, storage):
        code = await _session_with_players(manager)
        listener.reset_mock()

        result = await manager.handle_round(code, RoundCommand.GENERATE_FIRST)

        assert result.ok
        assert _event_types(listener) == [EventType.ROUND_GENERATED]
        restored = SessionSnapshot.model_validate_json(storage.saved[code])
        assert restored.current_round == 1
        assert len(restored.tables) == 2

    async def test_round_events_by_command(self, manager, listener):
        code = await _session_with_players(manager)
        listener.reset_mock()

        for command in (RoundCommand.GENERATE_FIRST, RoundCommand.START, RoundCommand.RESET, RoundCommand.END_GAME):
            assert (await manager.handle_round(code, command)).ok

        assert _event_types(listener) == [
            EventType.ROUND_GENERATED,
            EventType.ROUND_STARTED,
            EventType.ROUND_RESET,
            EventType.SESSION_ENDED,
        ]

    async def test_insufficient_participants(self, manager, listener):
        code = await _session_with_players(manager, count=5)
        listener.reset_mock()

        result = await manager.handle_round(code, RoundCommand.GENERATE_FIRST)

        assert result.error == SessionErrorCode.INSUFFICIENT_PARTICIPANTS
        assert result.message
        listener.assert_not_awaited()

    async def test_get_session_returns_detached_snapshot(self, manager):
        code = await _session_with_players(manager)
        before = manager.get_session(code)

        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)

        assert before.tables is None
        assert manager.get_session(code).tables is not None

    async def test_get_unknown_session(self, manager):
        assert manager.get_session("NOPE") is None


class TestResults:
    async def test_win_publishes_game_ended(self, manager, listener):
        code = await _session_with_players(manager)
        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)
        winner_id = manager.get_session(code).tables[0].participant_ids[0]
        listener.reset_mock()

        result = await manager.report_outcome(code, winner_id, Outcome.WIN)

        assert result.winner_id == winner_id
        event = listener.await_args.args[0]
        assert event.type == EventType.GAME_ENDED
        assert event.payload["winner_id"] == winner_id

    async def test_unseated_win_changes_nothing(self, manager, storage):
        code = await _session_with_players(manager)
        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)
        await manager.join(code, "late")
        saved_before = storage.saved[code]
        before = manager.get_session(code)

        result = await manager.report_outcome(code, "late", Outcome.WIN)

        assert result.error == SessionErrorCode.PARTICIPANT_NOT_FOUND
        assert manager.get_session(code) == before
        assert storage.saved[code] == saved_before

    async def test_drop_publishes_participant_dropped(self, manager, listener):
        code = await _session_with_players(manager)
        listener.reset_mock()

        result = await manager.report_outcome(code, "p2", Outcome.DROP)

        assert result.removed.participant_id == "p2"
        assert _event_types(listener) == [EventType.PARTICIPANT_DROPPED]

    async def test_host_table_result(self, manager, listener):
        code = await _session_with_players(manager)
        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)
        listener.reset_mock()

        result = await manager.set_table_result(code, 1, 1, TableResult.DRAW)

        assert result.ok
        assert manager.get_session(code).tables[0].is_draw
        assert _event_types(listener) == [EventType.GAME_ENDED]

    async def test_clearing_result_publishes_nothing(self, manager, listener):
        code = await _session_with_players(manager)
        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)
        listener.reset_mock()

        assert (await manager.set_table_result(code, 1, 1, TableResult.NONE)).ok
        listener.assert_not_awaited()


class TestSeatingCommands:
    async def test_move_participant(self, manager):
        code = await _session_with_players(manager)
        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)
        pid = manager.get_session(code).tables[0].participant_ids[0]

        result = await manager.move_participant(code, 1, 2, 1, pid)

        assert result.ok
        assert pid in manager.get_session(code).tables[1].participant_ids

    async def test_custom_group_lifecycle(self, manager):
        code = await _session_with_players(manager, settings=PodSettings(allow_custom_groups=True))

        created = await manager.create_custom_group(code, ["p1", "p2"])
        deleted = await manager.delete_custom_group(code, created.group_id)

        assert created.ok
        assert deleted.ok
        assert all(not p.custom_group_id for p in manager.get_session(code).participants)

    async def test_update_settings_publishes_event(self, manager, listener):
        code = await _session_with_players(manager)
        listener.reset_mock()

        result = await manager.update_settings(code, "host", settings=PodSettings(max_rounds=5))

        assert result.ok
        assert manager.get_session(code).settings.max_rounds == 5
        assert _event_types(listener) == [EventType.SETTINGS_UPDATED]


class TestBestEffortBoundaries:
    async def test_persistence_failure_does_not_fail_command(self, listener):
        storage = MagicMock()
        storage.save_session.side_effect = OSError("disk full")
        manager = PodSessionManager(storage=storage)
        manager.events.subscribe(listener)
        snapshot = await manager.create_session("host")

        result = await manager.join(snapshot.code, "alice")

        assert result.ok
        assert "alice" in {p.participant_id for p in manager.get_session(snapshot.code).participants}
        listener.assert_awaited()

    async def test_listener_failure_does_not_fail_command(self, manager):
        manager.events.subscribe(AsyncMock(side_effect=RuntimeError("broadcast down")))
        snapshot = await manager.create_session("host")

        result = await manager.join(snapshot.code, "alice")

        assert result.ok

    async def test_works_without_storage(self):
        manager = PodSessionManager()
        snapshot = await manager.create_session("host")
        assert (await manager.join(snapshot.code, "alice")).ok


class TestConcurrency:
    async def test_concurrent_joins_are_serialized(self, manager):
        snapshot = await manager.create_session("host")

        results = await asyncio.gather(*(manager.join(snapshot.code, f"p{i}") for i in range(20)))

        assert all(r.ok for r in results)
        assert len(manager.get_session(snapshot.code).participants) == 20

    async def test_concurrent_duplicate_join_only_once(self, manager):
        snapshot = await manager.create_session("host")

        results = await asyncio.gather(*(manager.join(snapshot.code, "same") for _ in range(5)))

        assert sum(r.ok for r in results) == 1


class TestLifecycle:
    async def test_restore_sessions_from_storage(self, storage):
        first = PodSessionManager(storage=storage)
        code = await _session_with_players(first)
        await first.handle_round(code, RoundCommand.GENERATE_FIRST)

        second = PodSessionManager(storage=storage)
        restored = await second.restore_sessions()

        assert restored == 1
        assert second.get_session(code) == first.get_session(code)

    async def test_restore_skips_ended_expired_and_malformed(self, storage):
        ended = make_session(code="ENDED2")
        ended.ended = True
        expired = make_session(code="EXPRD2")
        expired.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        storage.saved["ENDED2"] = SessionSnapshot.from_session(ended).model_dump_json()
        storage.saved["EXPRD2"] = SessionSnapshot.from_session(expired).model_dump_json()
        storage.saved["BROKEN"] = '{"code": 42}'

        manager = PodSessionManager(storage=storage)

        assert await manager.restore_sessions() == 0
        assert manager.registry.session_count == 0

    async def test_reaper_persists_and_publishes_expiry(self, manager, listener, storage):
        code = await _session_with_players(manager)
        await manager.handle_round(code, RoundCommand.GENERATE_FIRST)
        manager.registry.get(code).expires_at = datetime.now(UTC) - timedelta(seconds=1)
        listener.reset_mock()

        await manager.registry.reap_expired()

        assert manager.get_session(code) is None
        assert _event_types(listener) == [EventType.SESSION_EXPIRED]
        saved = SessionSnapshot.model_validate_json(storage.saved[code])
        assert saved.ended
        assert saved.archived
        assert len(saved.archive) == 1

    async def test_invalidate_session(self, manager, listener, storage):
        snapshot = await manager.create_session("host")
        listener.reset_mock()

        assert await manager.invalidate_session(snapshot.code)
        assert snapshot.code not in storage.saved
        assert manager.get_session(snapshot.code) is None
        assert _event_types(listener) == [EventType.SESSION_ENDED]
        assert not await manager.invalidate_session(snapshot.code)

    async def test_start_and_stop(self, manager):
        manager.start()
        await manager.stop()


class TestSnapshotOrdering:
    async def test_revision_bumped_only_by_successful_commands(self, manager):
        snapshot = await manager.create_session("host")

        await manager.join(snapshot.code, "alice")
        await manager.join(snapshot.code, "alice")

        assert snapshot.revision == 0
        assert manager.get_session(snapshot.code).revision == 1

    async def test_slow_save_never_overwrites_newer_snapshot(self):
        storage = SlowSecondSaveStorage()
        manager = PodSessionManager(storage=storage)
        snapshot = await manager.create_session("host")

        await asyncio.gather(manager.join(snapshot.code, "a"), manager.join(snapshot.code, "b"))

        stored = SessionSnapshot.model_validate_json(storage.saved[snapshot.code])
        assert {p.participant_id for p in stored.participants} == {"a", "b"}
        assert stored == manager.get_session(snapshot.code)

    async def test_older_snapshot_is_skipped(self, manager, storage):
        snapshot = await manager.create_session("host")
        await manager.join(snapshot.code, "a")
        older = manager.get_session(snapshot.code)
        await manager.join(snapshot.code, "b")

        await manager._persist(older)

        stored = SessionSnapshot.model_validate_json(storage.saved[snapshot.code])
        assert {p.participant_id for p in stored.participants} == {"a", "b"}

    async def test_save_after_invalidate_does_not_restore_file(self, manager, storage):
        snapshot = await manager.create_session("host")
        await manager.join(snapshot.code, "a")
        before_invalidate = manager.get_session(snapshot.code)

        await manager.invalidate_session(snapshot.code)
        await manager._persist(before_invalidate)

        assert snapshot.code not in storage.saved

    async def test_restore_keeps_stored_revision(self, storage):
        first = PodSessionManager(storage=storage)
        snapshot = await first.create_session("host")
        await first.join(snapshot.code, "a")

        second = PodSessionManager(storage=storage)
        await second.restore_sessions()
        await second._persist(snapshot)

        stored = SessionSnapshot.model_validate_json(storage.saved[snapshot.code])
        assert stored.revision == 1
