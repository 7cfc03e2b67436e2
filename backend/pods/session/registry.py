"""Session registry: room code to session map, per-session locks and the expiry reaper."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from pods.session.codes import generate_room_code, normalize_code
from pods.session.controller import RoundController
from pods.session.models import PodSession

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pods.pairing.settings import PodSettings

logger = structlog.get_logger()

MAX_CODE_ATTEMPTS = 1000
DEFAULT_SESSION_TTL = timedelta(days=7)


class SessionRegistry:
    """Owns every live PodSession.

    Sessions are keyed by upper-cased room code. Each session has its own
    asyncio.Lock; callers hold it for every multi-step mutation. Sessions
    never share a lock, so commands for different pods run independently.
    """

    def __init__(
        self,
        *,
        reaper_interval_seconds: float = 300,
        on_session_expired: Callable[[PodSession], Awaitable[None]] | None = None,
        controller: RoundController | None = None,
    ) -> None:
        self._sessions: dict[str, PodSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._reaper_interval_seconds = reaper_interval_seconds
        self._on_session_expired = on_session_expired
        self._controller = controller or RoundController()
        self._reaper_task: asyncio.Task[None] | None = None

    def create_session(
        self,
        host_id: str,
        *,
        code_length: int = 6,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        settings: PodSettings | None = None,
        event_name: str = "",
    ) -> PodSession:
        """Create a session under a fresh room code.

        Raises ValueError for an empty host id and RuntimeError when no
        unused code is found within MAX_CODE_ATTEMPTS draws.
        """
        if not host_id.strip():
            raise ValueError("host_id is required")

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_room_code(code_length)
            if code in self._sessions:
                continue
            now = datetime.now(UTC)
            session = PodSession(code=code, host_id=host_id, created_at=now, expires_at=now + ttl, event_name=event_name)
            if settings is not None:
                session.settings = settings
            self.add(session)
            logger.info("session created", code=code, host_id=host_id)
            return session

        raise RuntimeError("Unable to generate a unique room code, try a longer code length")

    def add(self, session: PodSession) -> None:
        """Register an existing session, e.g. one restored from storage."""
        key = normalize_code(session.code)
        self._sessions[key] = session
        self._locks.setdefault(key, asyncio.Lock())

    def get(self, code: str) -> PodSession | None:
        if not code or not code.strip():
            return None
        return self._sessions.get(normalize_code(code))

    def lock_for(self, code: str) -> asyncio.Lock | None:
        return self._locks.get(normalize_code(code))

    def remove(self, code: str) -> PodSession | None:
        key = normalize_code(code)
        self._locks.pop(key, None)
        return self._sessions.pop(key, None)

    def sessions(self) -> list[PodSession]:
        return list(self._sessions.values())

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    # --- Expiry reaper ---

    def start_reaper(self) -> None:
        """Start the periodic expiry reaper task. Idempotent."""
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        """Cancel the reaper task."""
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:  # pragma: no cover - long-running background loop
        """Periodically archive and evict expired sessions."""
        while True:
            await asyncio.sleep(self._reaper_interval_seconds)
            try:
                await self.reap_expired()
            except Exception:
                logger.exception("session reaper encountered an error")

    async def reap_expired(self, now: datetime | None = None) -> list[PodSession]:
        """Archive, close and evict every expired session.

        Each session is handled under its own lock and re-checked there.
        The on_session_expired callback runs after the lock is released;
        callback errors are logged and never raised.
        """
        now = now or datetime.now(UTC)
        candidates = [code for code, session in list(self._sessions.items()) if session.is_expired(now)]
        reaped: list[PodSession] = []

        for code in candidates:
            lock = self._locks.get(code)
            if lock is None:
                continue
            async with lock:
                session = self._sessions.get(code)
                if session is None or not session.is_expired(now):
                    continue
                self._controller.expire(session)
                self._sessions.pop(code, None)
                reaped.append(session)
            self._locks.pop(code, None)
            logger.info("session expired", code=code, rounds=len(session.archive))

        if self._on_session_expired:
            for session in reaped:
                try:
                    await self._on_session_expired(session)
                except Exception:
                    logger.exception("error in on_session_expired callback", code=session.code)
        return reaped
