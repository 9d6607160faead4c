"""Wire a ``WorkspaceSession`` to the filesystem, the environment and gopls."""

from __future__ import annotations

from pathlib import Path

from gorch_index.config import load_settings
from gorch_index.core.ports.diagnostics import DiagnosticSink
from gorch_index.core.session import WorkspaceSession
from gorch_index.store.filesystem import FilesystemDocumentStore
from gorch_index.tooling.gopls import GoplsClient


def open_session(root: str | Path | None = None, sink: DiagnosticSink | None = None) -> WorkspaceSession:
    settings = load_settings(root)
    store = FilesystemDocumentStore(settings.root, settings.exclude_dirs)
    tooling = GoplsClient.discover(settings.root) if settings.use_gopls else None
    return WorkspaceSession(store, settings, sink=sink, tooling=tooling)
