from __future__ import annotations

import logging
from dataclasses import dataclass

from gorch_index.config import Settings
from gorch_index.core.diagnostics import DiagnosticsEngine, InMemoryDiagnosticSink
from gorch_index.core.index import IndexBuilder, WorkspaceIndex
from gorch_index.core.ports.diagnostics import DiagnosticSink
from gorch_index.core.ports.documents import DocumentStore
from gorch_index.core.ports.watcher import FileWatcherPort
from gorch_index.core.resolution import DefinitionService, HostTooling, build_resolvers
from gorch_index.core.scheduler import RebuildScheduler
from gorch_index.errors import DocumentReadError
from gorch_index.models import Diagnostic, DocumentKind, Hover, Location, Position, RebuildResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSummary:
    version: int
    operators: int
    fragments: int
    structs: int
    stale: int
    pending: int
    busy: bool


class WorkspaceSession:
    """Owns the index, diagnostics and resolution for one workspace.

    Replaces process-wide singletons: everything lives as long as the session,
    between ``start()`` and ``stop()``.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings | None = None,
        sink: DiagnosticSink | None = None,
        tooling: HostTooling | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store
        self.sink: DiagnosticSink = sink if sink is not None else InMemoryDiagnosticSink()
        self.builder = IndexBuilder(store)
        self.scheduler = RebuildScheduler(
            self.builder,
            delay=self.settings.debounce_seconds,
            trailing=self.settings.trailing_rebuild,
        )
        self.diagnostics = DiagnosticsEngine(self.sink)
        self.definitions = DefinitionService(build_resolvers(store, tooling))
        self.watcher: FileWatcherPort | None = None
        self._open: dict[str, str | None] = {}
        self.builder.on_rebuilt(self._rediagnose_open)

    @property
    def snapshot(self) -> WorkspaceIndex:
        return self.builder.snapshot

    async def start(self, watcher: FileWatcherPort | None = None) -> RebuildResult | None:
        result = None
        if self.builder.needs_update():
            logger.info("Initializing index for %s", self.settings.root)
            result = await self.refresh()
        else:
            stale = await self.builder.stale_structs()
            if stale:
                logger.info("Refreshing index, %d struct(s) changed on disk", len(stale))
                result = await self.refresh()
        if watcher is not None:
            self.watcher = watcher
            await watcher.start()
        return result

    async def stop(self) -> None:
        self.scheduler.cancel()
        if self.watcher is not None:
            await self.watcher.stop()
            self.watcher = None

    async def refresh(self) -> RebuildResult:
        return await self.scheduler.rebuild_now()

    def notify_change(self, uri: str) -> None:
        if self.store.kind_of(uri) is None:
            return
        logger.debug("Change noticed: %s", uri)
        self.scheduler.notify(uri)

    async def on_files_changed(self, uris: set[str]) -> None:
        for uri in sorted(uris):
            self.notify_change(uri)

    def open(self, uri: str, text: str | None = None) -> None:
        """Track *uri* so it is re-checked after every rebuild; *text* is an unsaved buffer."""
        self._open[uri] = text

    def close(self, uri: str) -> None:
        self._open.pop(uri, None)
        self.sink.clear(uri)

    async def check(self, uri: str, text: str | None = None) -> list[Diagnostic]:
        if text is None:
            text = (await self.store.read(uri)).text
        return self.diagnostics.publish(self.snapshot, uri, text)

    async def definition(self, uri: str, position: Position, text: str | None = None) -> Location | None:
        if text is None:
            text = (await self.store.read(uri)).text
        return await self.definitions.definition(self.snapshot, text, position)

    async def hover(self, uri: str, position: Position, text: str | None = None) -> Hover | None:
        if text is None:
            text = (await self.store.read(uri)).text
        return await self.definitions.hover(self.snapshot, text, position)

    async def check_all(self) -> dict[str, list[Diagnostic]]:
        results: dict[str, list[Diagnostic]] = {}
        for uri in await self.store.list_documents(DocumentKind.DSL):
            results[uri] = await self.check(uri)
        return results

    async def summary(self) -> IndexSummary:
        snapshot = self.snapshot
        stale = await self.builder.stale_structs()
        return IndexSummary(
            version=snapshot.version,
            operators=len(snapshot.operators()),
            fragments=len(snapshot.fragments()),
            structs=len(snapshot.structs()),
            stale=len(stale),
            pending=len(self.builder.pending),
            busy=self.builder.busy,
        )

    async def _rediagnose_open(self, snapshot: WorkspaceIndex) -> None:
        for uri, text in sorted(self._open.items()):
            if text is None:
                try:
                    text = (await self.store.read(uri)).text
                except DocumentReadError as exc:
                    logger.warning("Dropping diagnostics for unreadable document: %s", exc)
                    self.sink.clear(uri)
                    continue
            self.diagnostics.publish(snapshot, uri, text)
