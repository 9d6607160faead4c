"""Workspace index snapshots and the builder that produces them."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import TypeVar

from gorch_index.core.dsl import extract_declarations
from gorch_index.core.golang import extract_structs
from gorch_index.core.ports.documents import DocumentStore
from gorch_index.errors import REBUILD_BUSY_MESSAGE, DocumentReadError
from gorch_index.models import (
    DocumentKind,
    FragmentDeclaration,
    OperatorDeclaration,
    RebuildResult,
    StructDeclaration,
)

logger = logging.getLogger(__name__)

_D = TypeVar("_D", OperatorDeclaration, FragmentDeclaration, StructDeclaration)

RebuildListener = Callable[["WorkspaceIndex"], Awaitable[None]]


def _first_by_name(declarations: Iterable[_D]) -> dict[str, _D]:
    by_name: dict[str, _D] = {}
    for declaration in declarations:
        by_name.setdefault(declaration.name, declaration)
    return by_name


class WorkspaceIndex:
    """Immutable snapshot of every declaration in the workspace.

    Lookups by name return the first declaration in scan order. The list
    accessors return fresh lists so callers cannot alter the snapshot.
    """

    def __init__(
        self,
        operators: Iterable[OperatorDeclaration] = (),
        fragments: Iterable[FragmentDeclaration] = (),
        structs: Iterable[StructDeclaration] = (),
        version: int = 0,
        built_at: datetime | None = None,
    ) -> None:
        self._operators = tuple(operators)
        self._fragments = tuple(fragments)
        self._structs = tuple(structs)
        self._operator_by_name = _first_by_name(self._operators)
        self._fragment_by_name = _first_by_name(self._fragments)
        self._struct_by_name = _first_by_name(self._structs)
        self.version = version
        self.built_at = built_at

    def __repr__(self) -> str:
        return (
            f"WorkspaceIndex(version={self.version}, operators={len(self._operators)}, "
            f"fragments={len(self._fragments)}, structs={len(self._structs)})"
        )

    def operators(self) -> list[OperatorDeclaration]:
        return list(self._operators)

    def fragments(self) -> list[FragmentDeclaration]:
        return list(self._fragments)

    def structs(self) -> list[StructDeclaration]:
        return list(self._structs)

    def operators_in(self, uri: str) -> list[OperatorDeclaration]:
        return [op for op in self._operators if op.document_uri == uri]

    def find_operator(self, name: str) -> OperatorDeclaration | None:
        return self._operator_by_name.get(name)

    def find_fragment(self, name: str) -> FragmentDeclaration | None:
        return self._fragment_by_name.get(name)

    def find_struct(self, name: str) -> StructDeclaration | None:
        return self._struct_by_name.get(name)

    def names(self) -> tuple[set[str], set[str], set[str]]:
        return (
            {op.name for op in self._operators},
            {frag.name for frag in self._fragments},
            {struct.name for struct in self._structs},
        )


class IndexBuilder:
    """Rebuilds the workspace index from a document store.

    Only one rebuild runs at a time. Each successful rebuild replaces the
    snapshot with a single assignment, so readers see either the previous
    snapshot or the new one.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._snapshot = WorkspaceIndex()
        self._busy = False
        self._listeners: list[RebuildListener] = []
        self.pending: set[str] = set()

    @property
    def snapshot(self) -> WorkspaceIndex:
        return self._snapshot

    @property
    def busy(self) -> bool:
        return self._busy

    def needs_update(self) -> bool:
        return self._snapshot.built_at is None or bool(self.pending)

    def on_rebuilt(self, listener: RebuildListener) -> None:
        self._listeners.append(listener)

    async def rebuild(self) -> RebuildResult:
        if self._busy:
            logger.warning("Index rebuild already in progress, skipping")
            return RebuildResult(success=False, errors=[REBUILD_BUSY_MESSAGE], version=self._snapshot.version)

        self._busy = True
        started = time.perf_counter()
        errors: list[str] = []
        logger.info("Index rebuild started (%d pending change(s))", len(self.pending))
        try:
            operators, fragments = await self._scan_dsl(errors)
            structs = await self._scan_host(errors)
            snapshot = WorkspaceIndex(
                operators=operators,
                fragments=fragments,
                structs=structs,
                version=self._snapshot.version + 1,
                built_at=datetime.now(timezone.utc),
            )
            self._snapshot = snapshot
        except Exception as exc:
            logger.exception("Index rebuild failed")
            errors.append(f"Index rebuild failed: {exc}")
            current = self._snapshot
            return RebuildResult(
                success=False,
                operator_count=len(current.operators()),
                fragment_count=len(current.fragments()),
                struct_count=len(current.structs()),
                duration_ms=(time.perf_counter() - started) * 1000,
                errors=errors,
                version=current.version,
            )
        finally:
            self._busy = False
            self.pending.clear()

        result = RebuildResult(
            success=True,
            operator_count=len(operators),
            fragment_count=len(fragments),
            struct_count=len(structs),
            duration_ms=(time.perf_counter() - started) * 1000,
            errors=errors,
            version=snapshot.version,
        )
        logger.info(
            "Index rebuild v%d complete: %d operators, %d fragments, %d structs in %.1fms (%d error(s))",
            result.version,
            result.operator_count,
            result.fragment_count,
            result.struct_count,
            result.duration_ms,
            len(errors),
        )
        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception:
                logger.exception("Error in rebuild listener")
        return result

    async def stale_structs(self) -> list[StructDeclaration]:
        """Return indexed structs whose file changed or vanished since the last rebuild."""
        stale: list[StructDeclaration] = []
        for struct in self._snapshot.structs():
            try:
                modified = await self._store.last_modified(struct.document_uri)
            except DocumentReadError:
                stale.append(struct)
                continue
            if modified > struct.last_modified:
                stale.append(struct)
        return stale

    async def _list(self, kind: DocumentKind, errors: list[str]) -> list[str]:
        try:
            return await self._store.list_documents(kind)
        except (DocumentReadError, OSError) as exc:
            message = f"Failed to list {kind.value} documents: {exc}"
            logger.error(message)
            errors.append(message)
            return []

    async def _scan_dsl(self, errors: list[str]) -> tuple[list[OperatorDeclaration], list[FragmentDeclaration]]:
        operators: list[OperatorDeclaration] = []
        fragments: list[FragmentDeclaration] = []
        discovered_at = datetime.now(timezone.utc)
        uris = await self._list(DocumentKind.DSL, errors)
        logger.debug("Scanning %d DSL document(s)", len(uris))
        for uri in uris:
            try:
                document = await self._store.read(uri)
            except DocumentReadError as exc:
                logger.error("%s", exc)
                errors.append(str(exc))
                continue
            try:
                found = extract_declarations(document.text, uri, discovered_at)
            except Exception as exc:
                logger.exception("Failed to extract declarations from %s", uri)
                errors.append(f"Failed to extract declarations from {uri}: {exc}")
                continue
            operators.extend(found.operators)
            fragments.extend(found.fragments)
            logger.debug("Parsed %s: %d operators, %d fragments", uri, len(found.operators), len(found.fragments))
        return operators, fragments

    async def _scan_host(self, errors: list[str]) -> list[StructDeclaration]:
        structs: list[StructDeclaration] = []
        uris = await self._list(DocumentKind.HOST, errors)
        logger.debug("Scanning %d Go document(s)", len(uris))
        for uri in uris:
            try:
                document = await self._store.read(uri)
                modified = await self._store.last_modified(uri)
            except DocumentReadError as exc:
                logger.error("%s", exc)
                errors.append(str(exc))
                continue
            try:
                found = extract_structs(document.text, uri, self._store.relative_path(uri), modified)
            except Exception as exc:
                logger.exception("Failed to extract structs from %s", uri)
                errors.append(f"Failed to extract structs from {uri}: {exc}")
                continue
            structs.extend(found)
            logger.debug("Scanned %s: %d struct(s)", uri, len(found))
        return structs
