"""
Background eviction of idle rooms.
"""

import asyncio
import logging
import math
import time
from typing import Callable, List, Optional, Protocol

from .repository import RoomRepository

logger = logging.getLogger(__name__)


class IdleNotifier(Protocol):
    async def notify_room_deleted(self, room_id: str, reason: str): ...

    async def notify_idle_warning(self, room_id: str, seconds_remaining: int): ...


class IdleReaper:
    """
    Periodically sweeps the repository.

    Rooms idle for ``idle_timeout`` seconds are announced and deleted. Rooms idle
    for ``warning_threshold`` seconds get one warning with the seconds left; any
    player action re-arms the warning by touching the room.
    """

    def __init__(
        self,
        repository: RoomRepository,
        notifier: IdleNotifier,
        idle_timeout: float = 3600.0,
        warning_threshold: Optional[float] = None,
        interval: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository
        self.notifier = notifier
        self.idle_timeout = idle_timeout
        self.warning_threshold = warning_threshold if warning_threshold is not None else idle_timeout - 60.0
        self.interval = interval
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Run one pass; returns the ids of rooms deleted."""
        now = self.clock() if now is None else now
        deleted = []

        for room in self.repository.list_rooms():
            idle_for = now - room.last_activity

            if idle_for >= self.idle_timeout:
                minutes = int(self.idle_timeout // 60)
                await self.notifier.notify_room_deleted(
                    room.room_id, f"Room closed after {minutes} minute(s) of inactivity"
                )
                if self.repository.delete_room(room.room_id):
                    deleted.append(room.room_id)
                    logger.info(f"Deleted idle room {room.room_id} (idle for {idle_for:.0f}s)")
            elif self.repository.claim_idle_warning(room.room_id, now, self.warning_threshold):
                # Stamped before notifying; a touch during the send re-arms it
                remaining = max(0, math.ceil(self.idle_timeout - idle_for))
                await self.notifier.notify_idle_warning(room.room_id, remaining)
                logger.info(f"Sent idle warning to room {room.room_id}, {remaining}s remaining")

        return deleted

    async def run(self):
        logger.info(
            f"Idle reaper started: timeout {self.idle_timeout:.0f}s, "
            f"warning at {self.warning_threshold:.0f}s, every {self.interval:.0f}s"
        )
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Error during idle room sweep: {e}")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Idle reaper stopped")


def create_reaper(repository: RoomRepository, notifier: IdleNotifier, settings) -> IdleReaper:
    """Build a reaper from ``ServerSettings`` (already clamped)."""
    return IdleReaper(
        repository,
        notifier,
        idle_timeout=settings.idle_timeout_seconds,
        warning_threshold=settings.idle_warning_seconds,
        interval=float(settings.room_cleanup_interval_seconds),
    )
