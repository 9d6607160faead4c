"""Cross-file consistency checks for Gorch DSL documents."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Hashable
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

from gorch_index.core.dsl import ParsedDsl
from gorch_index.core.index import WorkspaceIndex
from gorch_index.core.ports.diagnostics import DiagnosticSink
from gorch_index.models import Diagnostic, DiagnosticCode, OperatorDeclaration, Severity, Span

logger = logging.getLogger(__name__)

_NO_SEQUENCE = 0


def file_name(uri: str) -> str:
    path = unquote(urlparse(uri).path) or uri
    return PurePosixPath(path).name or uri


class InMemoryDiagnosticSink:
    """Keeps the latest diagnostics per document; each publish replaces the previous list."""

    def __init__(self) -> None:
        self.diagnostics: dict[str, list[Diagnostic]] = {}

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics[uri] = list(diagnostics)

    def clear(self, uri: str) -> None:
        self.diagnostics.pop(uri, None)

    def get(self, uri: str) -> list[Diagnostic]:
        return list(self.diagnostics.get(uri, []))


def _error(code: DiagnosticCode, message: str, uri: str, span: Span) -> Diagnostic:
    return Diagnostic(severity=Severity.ERROR, code=code, message=message, document_uri=uri, span=span)


def _conflicts(
    operators: list[OperatorDeclaration],
    key: Callable[[OperatorDeclaration], Hashable],
) -> list[list[OperatorDeclaration]]:
    groups: dict[Hashable, list[OperatorDeclaration]] = defaultdict(list)
    for op in operators:
        groups[key(op)].append(op)
    return [group for group in groups.values() if len(group) > 1]


class DiagnosticsEngine:
    """Computes per-document diagnostics from an index snapshot.

    Every check looks at the whole workspace but only reports locations that
    belong to the document being checked.
    """

    def __init__(self, sink: DiagnosticSink | None = None) -> None:
        self._sink = sink

    def diagnose(self, snapshot: WorkspaceIndex, uri: str, text: str) -> list[Diagnostic]:
        parsed = ParsedDsl(text, uri)
        operators = snapshot.operators()
        diagnostics: list[Diagnostic] = []
        diagnostics.extend(self._duplicate_sequences(operators, uri))
        diagnostics.extend(self._duplicate_names(operators, uri))
        diagnostics.extend(self._unregistered_calls(snapshot, parsed))
        diagnostics.extend(self._missing_fragments(snapshot, parsed))
        diagnostics.extend(self._missing_structs(snapshot, uri))
        logger.debug("Diagnostics for %s: %d issue(s) against index v%d", uri, len(diagnostics), snapshot.version)
        return diagnostics

    def publish(self, snapshot: WorkspaceIndex, uri: str, text: str) -> list[Diagnostic]:
        diagnostics = self.diagnose(snapshot, uri, text)
        if self._sink is not None:
            self._sink.publish(uri, diagnostics)
        return diagnostics

    @staticmethod
    def _duplicate_sequences(operators: list[OperatorDeclaration], uri: str) -> list[Diagnostic]:
        # Sequence numbers are checked across the whole workspace, not per REGISTER block.
        # TODO: revisit once it is settled whether sequences only need to be unique within one block.
        numbered = [op for op in operators if op.sequence != _NO_SEQUENCE]
        found: list[Diagnostic] = []
        for group in _conflicts(numbered, lambda op: op.sequence):
            where = ", ".join(f"{op.name} ({file_name(op.document_uri)})" for op in group)
            message = f"Duplicate operator sequence {group[0].sequence}. Found in: {where}"
            found.extend(
                _error(DiagnosticCode.DUPLICATE_SEQUENCE, message, uri, op.span)
                for op in group
                if op.document_uri == uri
            )
        return found

    @staticmethod
    def _duplicate_names(operators: list[OperatorDeclaration], uri: str) -> list[Diagnostic]:
        found: list[Diagnostic] = []
        for group in _conflicts(operators, lambda op: op.name):
            where = ", ".join(
                f"{op.package_path}/{op.relative_path} ({file_name(op.document_uri)})" for op in group
            )
            message = f"Duplicate operator name '{group[0].name}'. Found in: {where}"
            found.extend(
                _error(DiagnosticCode.DUPLICATE_NAME, message, uri, op.span) for op in group if op.document_uri == uri
            )
        return found

    @staticmethod
    def _unregistered_calls(snapshot: WorkspaceIndex, parsed: ParsedDsl) -> list[Diagnostic]:
        return [
            _error(
                DiagnosticCode.UNREGISTERED_OPERATOR,
                f"Unregistered operator '{call.name}'. Please add it to a REGISTER block.",
                parsed.uri,
                call.span,
            )
            for call in parsed.operator_calls()
            if snapshot.find_operator(call.name) is None
        ]

    @staticmethod
    def _missing_fragments(snapshot: WorkspaceIndex, parsed: ParsedDsl) -> list[Diagnostic]:
        return [
            _error(
                DiagnosticCode.FRAGMENT_NOT_FOUND,
                f"FRAGMENT '{expansion.name}' not found. Please define it in a FRAGMENT block.",
                parsed.uri,
                expansion.span,
            )
            for expansion in parsed.expansions()
            if snapshot.find_fragment(expansion.name) is None
        ]

    @staticmethod
    def _missing_structs(snapshot: WorkspaceIndex, uri: str) -> list[Diagnostic]:
        return [
            _error(
                DiagnosticCode.STRUCT_NOT_FOUND,
                f"Go struct '{op.struct_name}' not found. Please ensure the struct exists in your Go code.",
                uri,
                op.span,
            )
            for op in snapshot.operators_in(uri)
            if snapshot.find_struct(op.struct_name) is None
        ]
