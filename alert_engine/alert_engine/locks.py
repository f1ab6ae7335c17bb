"""Per-alert mutual exclusion.

Edits, runs and deletes of one alert are linearised through an
``asyncio.Lock`` keyed by alert id; different alerts never contend.  Locks
are created on first use and dropped once no task holds or waits on them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class AlertLockRegistry:
    """Registry of per-alert locks for a single event loop."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, alert_id: str) -> AsyncIterator[None]:
        """Hold the lock for *alert_id* for the duration of the block."""
        entry = self._entries.get(alert_id)
        if entry is None:
            entry = _Entry()
            self._entries[alert_id] = entry
        entry.users += 1
        try:
            if entry.lock.locked():
                logger.debug("Waiting for in-flight operation on alert %s", alert_id)
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(alert_id) is entry:
                del self._entries[alert_id]

    @asynccontextmanager
    async def transaction(self, session: AsyncSession, alert_id: str) -> AsyncIterator[None]:
        """Hold the alert's lock around a unit of work on *session*.

        The session is committed before the lock is released, so the next
        holder always sees the previous holder's writes.  On error the
        session is rolled back, also under the lock.
        """
        async with self.hold(alert_id):
            try:
                yield
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def is_locked(self, alert_id: str) -> bool:
        entry = self._entries.get(alert_id)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)


_registry: AlertLockRegistry | None = None


def get_lock_registry() -> AlertLockRegistry:
    """Return the process-wide registry used by the services."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = AlertLockRegistry()
    return _registry


def reset_lock_registry() -> None:
    """Drop the process-wide registry (test isolation)."""
    global _registry  # noqa: PLW0603
    _registry = None
