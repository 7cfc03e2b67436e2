"""Wiring for a running pod service: logging, storage, restore and the expiry reaper."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog

from pods.server.settings import PodServerSettings
from pods.session.manager import PodSessionManager
from shared.logging import setup_logging
from shared.storage import LocalSessionStorage

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pods.session.events import EventBus
    from shared.storage import SessionStorage

logger = structlog.get_logger()


def build_session_manager(
    settings: PodServerSettings | None = None,
    *,
    storage: SessionStorage | None = None,
    events: EventBus | None = None,
) -> PodSessionManager:
    """Create a PodSessionManager configured from settings.

    Uses LocalSessionStorage under settings.data_dir unless a storage is
    given or persistence is turned off.
    """
    if settings is None:  # pragma: no cover
        settings = PodServerSettings()

    if storage is None and settings.persist_sessions:
        storage = LocalSessionStorage(settings.data_dir)

    return PodSessionManager(
        storage=storage,
        events=events,
        code_length=settings.code_length,
        session_ttl=settings.session_ttl,
        reaper_interval_seconds=settings.reaper_interval_seconds,
    )


@contextlib.asynccontextmanager
async def session_runtime(
    settings: PodServerSettings | None = None,
    *,
    storage: SessionStorage | None = None,
    events: EventBus | None = None,
    configure_logging: bool = True,
) -> AsyncIterator[PodSessionManager]:
    """Run a session manager for the duration of the block.

    Restores stored sessions and starts the reaper on entry; stops the
    reaper on exit.
    """
    if settings is None:  # pragma: no cover
        settings = PodServerSettings()
    if configure_logging:
        setup_logging(log_dir=settings.log_dir)

    manager = build_session_manager(settings, storage=storage, events=events)
    await manager.restore_sessions()
    manager.start()
    logger.info("pod service ready", code_length=settings.code_length, ttl_seconds=settings.session_ttl_seconds)
    try:
        yield manager
    finally:
        await manager.stop()
        logger.info("pod service stopped")
