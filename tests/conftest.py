"""Shared fixtures and helpers for tests."""

import asyncio
from pathlib import Path

import pytest

from gorch_index.config import Settings
from gorch_index.core.diagnostics import InMemoryDiagnosticSink
from gorch_index.core.session import WorkspaceSession
from gorch_index.models import SourceDocument
from gorch_index.store import InMemoryDocumentStore

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Sample workspace
# ---------------------------------------------------------------------------

REGISTRY_DSL = """\
REGISTER("github.com/acme/flows/ops") {
    OPERATOR("fetch/fetch.go", "FetchOp", "fetch", 1)
    OPERATOR("parse/parse.go", "ParseOp", 2)
    OPERATOR("store/store.go", "StoreOp", "store", 0)
}
"""

FLOW_DSL = """\
FRAGMENT("common") {
    fetch(),
    ParseOp()
}

START("main") {
    UNFOLD("common"),
    store()
}
"""

OPS_GO = """\
package ops

// FetchOp downloads the payload.
type FetchOp struct {
    URL string
}

type ParseOp struct{}

type StoreOp struct {
    Table string
}
"""


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(
        {
            "flows/registry.gorch": REGISTRY_DSL,
            "flows/main.gorch": FLOW_DSL,
            "ops/ops.go": OPS_GO,
        }
    )


@pytest.fixture
def sink() -> InMemoryDiagnosticSink:
    return InMemoryDiagnosticSink()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(root=tmp_path, debounce_seconds=0.01)


@pytest.fixture
def session(store: InMemoryDocumentStore, settings: Settings, sink: InMemoryDiagnosticSink) -> WorkspaceSession:
    return WorkspaceSession(store, settings, sink=sink)


@pytest.fixture
def registry_dsl() -> str:
    return REGISTRY_DSL


@pytest.fixture
def flow_dsl() -> str:
    return FLOW_DSL


@pytest.fixture
def ops_go() -> str:
    return OPS_GO


class GatedDocumentStore(InMemoryDocumentStore):
    """In-memory store whose reads wait on ``gate``; clear it to hold a rebuild open."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        super().__init__(documents)
        self.gate = asyncio.Event()
        self.gate.set()

    async def read(self, uri: str) -> SourceDocument:
        await self.gate.wait()
        return await super().read(uri)


@pytest.fixture
def gated_store() -> GatedDocumentStore:
    return GatedDocumentStore(
        {
            "flows/registry.gorch": REGISTRY_DSL,
            "flows/main.gorch": FLOW_DSL,
            "ops/ops.go": OPS_GO,
        }
    )
