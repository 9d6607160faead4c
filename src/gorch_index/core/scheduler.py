"""Debounced rebuild scheduling for file-change notifications."""

from __future__ import annotations

import asyncio
import logging

from gorch_index.core.index import IndexBuilder
from gorch_index.models import RebuildResult

logger = logging.getLogger(__name__)


class RebuildScheduler:
    """Coalesces change notifications into one delayed rebuild.

    A single timer is armed by the first notification and is never reset or
    duplicated by later ones. When it fires while a rebuild is running, the
    scheduled rebuild is dropped. With ``trailing=True`` notifications that
    arrive during a rebuild are put back into the pending set once it
    completes and a new timer is armed for them.
    """

    def __init__(self, builder: IndexBuilder, delay: float = 1.0, trailing: bool = False) -> None:
        self._builder = builder
        self._delay = delay
        self._trailing = trailing
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[RebuildResult]] = set()
        self._arrived_during_rebuild: set[str] = set()

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def notify(self, uri: str) -> None:
        self._builder.pending.add(uri)
        if self._builder.busy:
            self._arrived_during_rebuild.add(uri)
        if self._timer is None:
            self._timer = asyncio.get_running_loop().call_later(self._delay, self._fire)
            logger.debug("Rebuild scheduled in %.2fs", self._delay)

    async def rebuild_now(self) -> RebuildResult:
        if self._builder.busy:
            return await self._builder.rebuild()
        self._arrived_during_rebuild.clear()
        try:
            return await self._builder.rebuild()
        finally:
            self._reschedule_trailing()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in self._tasks:
            task.cancel()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _fire(self) -> None:
        self._timer = None
        if self._builder.busy:
            logger.debug("Rebuild already running, dropping scheduled rebuild")
            return
        if not self._builder.pending:
            return
        task = asyncio.ensure_future(self.rebuild_now())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _reschedule_trailing(self) -> None:
        arrived, self._arrived_during_rebuild = self._arrived_during_rebuild, set()
        if not self._trailing or not arrived:
            return
        logger.debug("Rescheduling rebuild for %d change(s) seen during the last rebuild", len(arrived))
        self._builder.pending.update(arrived)
        if self._timer is None:
            self._timer = asyncio.get_running_loop().call_later(self._delay, self._fire)
