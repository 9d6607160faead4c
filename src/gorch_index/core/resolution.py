"""Jump-to-definition and hover for Gorch DSL documents.

Resolution runs in two steps. The cursor is first classified into a target
(struct, fragment, operator or keyword). The target is then handed to an
ordered list of resolvers; the first one that returns a location wins.
"""

from __future__ import annotations

import logging
from typing import Protocol

from gorch_index.core.diagnostics import file_name
from gorch_index.core.dsl import ParsedDsl, SymbolKind, SymbolTarget
from gorch_index.core.golang import find_struct
from gorch_index.core.index import WorkspaceIndex
from gorch_index.core.keywords import KEYWORD_DOCS
from gorch_index.core.ports.documents import DocumentStore
from gorch_index.errors import DocumentReadError
from gorch_index.models import DocumentKind, Hover, Location, OperatorDeclaration, Position, StructDeclaration

logger = logging.getLogger(__name__)

_MAX_DEFINITION_LINES = 20


class HostTooling(Protocol):
    async def find_struct(self, name: str) -> Location | None: ...


class SymbolResolver(Protocol):
    name: str

    async def resolve(self, kind: SymbolKind, name: str, snapshot: WorkspaceIndex) -> Location | None: ...


class ExternalToolResolver:
    """Asks external Go tooling (gopls) where a struct lives."""

    name = "external"

    def __init__(self, tooling: HostTooling) -> None:
        self._tooling = tooling

    async def resolve(self, kind: SymbolKind, name: str, snapshot: WorkspaceIndex) -> Location | None:
        if kind is not SymbolKind.STRUCT:
            return None
        return await self._tooling.find_struct(name)


class IndexResolver:
    """Looks the name up in the current snapshot; fast but possibly stale."""

    name = "index"

    async def resolve(self, kind: SymbolKind, name: str, snapshot: WorkspaceIndex) -> Location | None:
        if kind is SymbolKind.STRUCT:
            struct = snapshot.find_struct(name)
            return Location(uri=struct.document_uri, span=struct.span) if struct else None
        if kind is SymbolKind.FRAGMENT:
            fragment = snapshot.find_fragment(name)
            return Location(uri=fragment.document_uri, span=fragment.span) if fragment else None
        return None


class LiveScanResolver:
    """Scans Go documents on demand; slow but always current."""

    name = "live-scan"

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def find(self, name: str) -> StructDeclaration | None:
        for uri in await self._store.list_documents(DocumentKind.HOST):
            try:
                document = await self._store.read(uri)
            except DocumentReadError as exc:
                logger.debug("Live scan skipped %s", exc)
                continue
            if name not in document.text:
                continue
            struct = find_struct(document.text, name, uri, self._store.relative_path(uri))
            if struct is not None:
                return struct
        return None

    async def resolve(self, kind: SymbolKind, name: str, snapshot: WorkspaceIndex) -> Location | None:
        if kind is not SymbolKind.STRUCT:
            return None
        struct = await self.find(name)
        return Location(uri=struct.document_uri, span=struct.span) if struct else None


def build_resolvers(store: DocumentStore, tooling: HostTooling | None = None) -> list[SymbolResolver]:
    """Return the resolver tiers in lookup order; external tooling only when available."""
    resolvers: list[SymbolResolver] = []
    if tooling is not None:
        resolvers.append(ExternalToolResolver(tooling))
    resolvers.append(IndexResolver())
    resolvers.append(LiveScanResolver(store))
    return resolvers


def classify(text: str, position: Position) -> SymbolTarget | None:
    return ParsedDsl(text).symbol_at(position)


class DefinitionService:
    def __init__(self, resolvers: list[SymbolResolver], scanner: LiveScanResolver | None = None) -> None:
        self._resolvers = list(resolvers)
        self._scanner = scanner or next((r for r in resolvers if isinstance(r, LiveScanResolver)), None)

    @property
    def tiers(self) -> list[str]:
        return [resolver.name for resolver in self._resolvers]

    async def definition(self, snapshot: WorkspaceIndex, text: str, position: Position) -> Location | None:
        target = classify(text, position)
        if target is None or target.kind is SymbolKind.KEYWORD:
            return None
        kind, name = target.kind, target.name
        if kind is SymbolKind.OPERATOR:
            operator = snapshot.find_operator(name)
            if operator is None:
                logger.debug("No operator named %s in index v%d", name, snapshot.version)
                return None
            kind, name = SymbolKind.STRUCT, operator.struct_name
        return await self.resolve(kind, name, snapshot)

    async def resolve(self, kind: SymbolKind, name: str, snapshot: WorkspaceIndex) -> Location | None:
        for resolver in self._resolvers:
            try:
                location = await resolver.resolve(kind, name, snapshot)
            except Exception:
                logger.exception("Resolver %s failed for %s %s", resolver.name, kind.value, name)
                continue
            if location is not None:
                logger.debug("Resolved %s %s via %s", kind.value, name, resolver.name)
                return location
        logger.debug("No definition for %s %s", kind.value, name)
        return None

    async def hover(self, snapshot: WorkspaceIndex, text: str, position: Position) -> Hover | None:
        target = classify(text, position)
        if target is None:
            return None

        if target.kind is SymbolKind.KEYWORD:
            return Hover(contents=KEYWORD_DOCS[target.name], span=target.span)

        if target.kind is SymbolKind.FRAGMENT:
            fragment = snapshot.find_fragment(target.name)
            if fragment is None:
                return Hover(contents=f"**Fragment**: `{target.name}` *(not found)*", span=target.span)
            contents = (
                f"**Fragment**: `{fragment.name}`\n\n"
                f"**File**: `{file_name(fragment.document_uri)}` (line {fragment.span.start.line + 1})"
            )
            return Hover(contents=contents, span=target.span)

        operator: OperatorDeclaration | None = None
        struct_name = target.name
        if target.kind is SymbolKind.OPERATOR:
            operator = snapshot.find_operator(target.name)
            if operator is None:
                return None
            struct_name = operator.struct_name

        struct = snapshot.find_struct(struct_name)
        if struct is None and self._scanner is not None:
            try:
                struct = await self._scanner.find(struct_name)
            except Exception:
                logger.exception("Resolver %s failed for struct %s", self._scanner.name, struct_name)
        return Hover(contents=_struct_markdown(struct_name, struct, operator), span=target.span)


def _struct_markdown(name: str, struct: StructDeclaration | None, operator: OperatorDeclaration | None) -> str:
    parts: list[str] = []
    if operator is not None:
        parts.append(f"**Operator**: `{operator.name}`")
        parts.append(f"**Sequence**: `{operator.sequence}`")
        parts.append(f"**Package**: `{operator.package_path}`")
    if struct is None:
        parts.append(f"**Go Struct**: `{name}` *(not found)*")
        return "\n\n".join(parts)

    parts.append(f"**Go Struct**: `{name}`")
    parts.append(f"**Package**: `{struct.package_path}`")
    parts.append(f"**File**: `{struct.relative_path}`")
    if struct.definition:
        lines = struct.definition.splitlines()
        if len(lines) > _MAX_DEFINITION_LINES:
            lines = [*lines[:_MAX_DEFINITION_LINES], "    // ... (truncated)"]
        body = "\n".join(lines)
        parts.append(f"**Definition**:\n```go\n{body}\n```")
    return "\n\n".join(parts)
