"""
Session manager: the inbound interface of the pod engine.

Every mutating command follows the same path:
look up the session, acquire its lock, run the RoundController, take a
snapshot, release the lock, then persist the snapshot and publish events.
Persistence and listener failures are logged and never change the result
of a command that already succeeded in memory.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from pods.session.controller import RoundController
from pods.session.enums import Outcome, RoundCommand, SessionErrorCode, TableResult
from pods.session.events import EventBus, EventType, SessionEvent
from pods.session.registry import DEFAULT_SESSION_TTL, SessionRegistry
from pods.session.results import CommandResult
from pods.session.types import SessionSnapshot
from shared.logging import session_context

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from pods.pairing.settings import PodSettings
    from pods.session.models import PodSession
    from shared.storage import SessionStorage

logger = structlog.get_logger()

_ROUND_EVENTS: dict[RoundCommand, EventType] = {
    RoundCommand.GENERATE_FIRST: EventType.ROUND_GENERATED,
    RoundCommand.GENERATE: EventType.ROUND_GENERATED,
    RoundCommand.REGENERATE: EventType.ROUND_GENERATED,
    RoundCommand.START: EventType.ROUND_STARTED,
    RoundCommand.RESET: EventType.ROUND_RESET,
    RoundCommand.END_ROUND: EventType.ROUND_ENDED,
    RoundCommand.END_GAME: EventType.SESSION_ENDED,
}


class PodSessionManager:
    """Coordinates registry, controller, storage and event delivery."""

    def __init__(
        self,
        *,
        registry: SessionRegistry | None = None,
        controller: RoundController | None = None,
        storage: SessionStorage | None = None,
        events: EventBus | None = None,
        code_length: int = 6,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        reaper_interval_seconds: float = 300,
    ) -> None:
        self._controller = controller or RoundController()
        self._registry = registry or SessionRegistry(
            reaper_interval_seconds=reaper_interval_seconds,
            on_session_expired=self.on_session_expired,
            controller=self._controller,
        )
        self._storage = storage
        self.events = events or EventBus()
        self._code_length = code_length
        self._save_locks: dict[str, asyncio.Lock] = {}
        self._saved_revisions: dict[str, int] = {}
        self._session_ttl = session_ttl

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # --- Lifecycle ---

    def start(self) -> None:
        self._registry.start_reaper()

    async def stop(self) -> None:
        await self._registry.stop_reaper()

    async def restore_sessions(self) -> int:
        """Load stored snapshots into the registry. Returns the number restored.

        Ended and expired sessions are skipped; malformed snapshots are
        logged and skipped.
        """
        if self._storage is None:
            return 0
        contents = await asyncio.to_thread(self._storage.load_sessions)
        restored = 0
        for content in contents:
            try:
                snapshot = SessionSnapshot.model_validate_json(content)
            except ValidationError:
                logger.exception("skipping malformed session snapshot")
                continue
            session = snapshot.to_session()
            if session.ended or session.is_expired():
                continue
            self._registry.add(session)
            self._saved_revisions[session.code] = session.revision
            restored += 1
        logger.info("sessions restored", count=restored)
        return restored

    async def on_session_expired(self, session: PodSession) -> None:
        """Registry callback: persist and announce a session the reaper closed."""
        snapshot = SessionSnapshot.from_session(session)
        await self._persist(snapshot)
        await self._publish(EventType.SESSION_EXPIRED, snapshot)

    # --- Queries ---

    def get_session(self, code: str) -> SessionSnapshot | None:
        session = self._registry.get(code)
        if session is None:
            return None
        return SessionSnapshot.from_session(session)

    # --- Commands ---

    async def create_session(
        self,
        host_id: str,
        *,
        event_name: str = "",
        settings: PodSettings | None = None,
    ) -> SessionSnapshot:
        """Create a session. Raises ValueError for an empty host id."""
        session = self._registry.create_session(
            host_id,
            code_length=self._code_length,
            ttl=self._session_ttl,
            settings=settings,
            event_name=event_name,
        )
        snapshot = SessionSnapshot.from_session(session)
        await self._persist(snapshot)
        return snapshot

    async def join(self, code: str, participant_id: str, name: str = "", character: str = "") -> CommandResult:
        result, snapshot = await self._execute(
            code,
            lambda session: self._controller.join(session, participant_id, name, character),
            require_id=participant_id,
        )
        if snapshot is not None:
            await self._publish(EventType.PARTICIPANT_JOINED, snapshot, participant_id=participant_id)
        return result

    async def handle_round(self, code: str, command: RoundCommand) -> CommandResult:
        result, snapshot = await self._execute(code, lambda session: self._controller.handle_round(session, command))
        if snapshot is not None:
            await self._publish(_ROUND_EVENTS[command], snapshot, command=command, round_number=result.round_number)
        return result

    async def report_outcome(
        self,
        code: str,
        participant_id: str,
        outcome: Outcome,
        *,
        character: str = "",
        statistics: Mapping[str, Any] | None = None,
    ) -> CommandResult:
        result, snapshot = await self._execute(
            code,
            lambda session: self._controller.report_outcome(
                session,
                participant_id,
                outcome,
                character=character,
                statistics=statistics,
            ),
            require_id=participant_id,
        )
        if snapshot is None:
            return result
        if outcome == Outcome.DROP:
            await self._publish(EventType.PARTICIPANT_DROPPED, snapshot, participant_id=participant_id)
        elif outcome in (Outcome.WIN, Outcome.DRAW):
            await self._publish(
                EventType.GAME_ENDED,
                snapshot,
                outcome=outcome,
                winner_id=result.winner_id,
                table_number=result.table_number,
            )
        return result

    async def set_table_result(
        self,
        code: str,
        table_number: int,
        round_number: int,
        result: TableResult,
        participant_id: str = "",
    ) -> CommandResult:
        outcome, snapshot = await self._execute(
            code,
            lambda session: self._controller.set_table_result(
                session,
                table_number,
                round_number,
                result,
                participant_id,
            ),
        )
        if snapshot is not None and result != TableResult.NONE:
            await self._publish(
                EventType.GAME_ENDED,
                snapshot,
                outcome=result,
                winner_id=outcome.winner_id,
                table_number=table_number,
            )
        return outcome

    async def move_participant(
        self,
        code: str,
        from_table: int,
        to_table: int,
        round_number: int,
        participant_id: str,
    ) -> CommandResult:
        result, _ = await self._execute(
            code,
            lambda session: self._controller.move_participant(
                session,
                from_table,
                to_table,
                round_number,
                participant_id,
            ),
            require_id=participant_id,
        )
        return result

    async def create_custom_group(
        self,
        code: str,
        participant_ids: Sequence[str],
        *,
        auto_fill: bool = True,
    ) -> CommandResult:
        result, _ = await self._execute(
            code,
            lambda session: self._controller.create_custom_group(session, participant_ids, auto_fill=auto_fill),
        )
        return result

    async def delete_custom_group(self, code: str, group_id: str) -> CommandResult:
        result, _ = await self._execute(code, lambda session: self._controller.delete_custom_group(session, group_id))
        return result

    async def update_settings(
        self,
        code: str,
        host_id: str,
        *,
        settings: PodSettings | None = None,
        event_name: str | None = None,
    ) -> CommandResult:
        result, snapshot = await self._execute(
            code,
            lambda session: self._controller.update_settings(
                session,
                host_id,
                settings=settings,
                event_name=event_name,
            ),
            require_id=host_id,
        )
        if snapshot is not None:
            await self._publish(EventType.SETTINGS_UPDATED, snapshot)
        return result

    async def invalidate_session(self, code: str) -> bool:
        """Remove a session from the registry and storage and announce it as ended."""
        session = self._registry.get(code)
        if session is None:
            return False
        lock = self._registry.lock_for(session.code)
        if lock is None:
            return False
        async with lock:
            if self._registry.get(code) is not session:
                return False
            session.ended = True
            session.revision += 1
            self._registry.remove(session.code)
            snapshot = SessionSnapshot.from_session(session)
        logger.info("session invalidated", code=session.code)
        await self._discard(snapshot)
        await self._publish(EventType.SESSION_ENDED, snapshot, reason="invalidated")
        return True

    # --- Internals ---

    async def _execute(
        self,
        code: str,
        operation: Callable[[PodSession], CommandResult],
        *,
        require_id: str | None = None,
    ) -> tuple[CommandResult, SessionSnapshot | None]:
        """Run one controller operation under the session lock.

        Returns the result and, on success, a snapshot taken inside the
        lock. The snapshot is persisted before returning.
        """
        if not code or not code.strip() or (require_id is not None and not require_id.strip()):
            return CommandResult.fail(SessionErrorCode.INVALID_REQUEST), None

        session = self._registry.get(code)
        lock = self._registry.lock_for(code)
        if session is None or lock is None:
            return CommandResult.fail(SessionErrorCode.SESSION_NOT_FOUND), None

        with session_context(session.code):
            async with lock:
                if self._registry.get(code) is not session:
                    return CommandResult.fail(SessionErrorCode.SESSION_NOT_FOUND), None
                if session.is_expired():
                    return CommandResult.fail(SessionErrorCode.SESSION_EXPIRED), None
                result = operation(session)
                snapshot = None
                if result.ok:
                    session.revision += 1
                    snapshot = SessionSnapshot.from_session(session)

            if snapshot is None:
                logger.info("command rejected", error_code=result.error)
                return result, None
            await self._persist(snapshot)
        return result, snapshot

    def _save_lock(self, code: str) -> asyncio.Lock:
        return self._save_locks.setdefault(code, asyncio.Lock())

    async def _persist(self, snapshot: SessionSnapshot) -> None:
        """Best-effort save of a session snapshot.

        Saves for one code run one at a time, and a snapshot older than the
        last one written is skipped, so a slow save never overwrites newer
        state.
        """
        if self._storage is None:
            return
        async with self._save_lock(snapshot.code):
            if snapshot.revision < self._saved_revisions.get(snapshot.code, -1):
                logger.debug("skipping stale session snapshot", code=snapshot.code, revision=snapshot.revision)
                return
            try:
                content = snapshot.model_dump_json()
                await asyncio.to_thread(self._storage.save_session, snapshot.code, content)
            except Exception:
                logger.exception("failed to persist session", code=snapshot.code)
                return
            self._saved_revisions[snapshot.code] = snapshot.revision

    async def _discard(self, snapshot: SessionSnapshot) -> None:
        """Best-effort delete of a stored session. Later saves of older snapshots are skipped."""
        if self._storage is None:
            return
        async with self._save_lock(snapshot.code):
            self._saved_revisions[snapshot.code] = snapshot.revision
            try:
                await asyncio.to_thread(self._storage.delete_session, snapshot.code)
            except Exception:
                logger.exception("failed to delete stored session", code=snapshot.code)

    async def _publish(self, event_type: EventType, snapshot: SessionSnapshot, **payload: Any) -> None:
        await self.events.publish(SessionEvent(type=event_type, session=snapshot, payload=payload))
