from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from watchfiles import awatch

from gorch_index.store.filesystem import DSL_SUFFIX, HOST_SUFFIX, path_to_uri

logger = logging.getLogger(__name__)

_SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({DSL_SUFFIX, HOST_SUFFIX})


def _is_supported_file(path: Path) -> bool:
    return path.suffix in _SUPPORTED_EXTENSIONS


class WatchfilesWatcher:
    """Watch a workspace for ``.gorch`` and ``.go`` changes and report their URIs.

    Implements the ``FileWatcherPort`` protocol.
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: Callable[[set[str]], Coroutine[Any, Any, None]],
        exclude_dirs: tuple[str, ...] = (),
    ) -> None:
        self._directory = Path(directory)
        self._on_change = on_change
        self._exclude_dirs = frozenset(exclude_dirs)
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watcher started for %s", self._directory)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Watcher stopped for %s", self._directory)

    def _wanted(self, path: Path) -> bool:
        if not _is_supported_file(path):
            return False
        try:
            parts = path.relative_to(self._directory).parts[:-1]
        except ValueError:
            parts = path.parts[:-1]
        return not self._exclude_dirs.intersection(parts)

    async def _watch(self) -> None:
        async for changes in awatch(self._directory):
            uris = {path_to_uri(p) for _, p in changes if self._wanted(Path(p))}
            if uris:
                logger.info("Detected changes in %d file(s)", len(uris))
                try:
                    await self._on_change(uris)
                except Exception:
                    logger.exception("Error in watcher callback")
