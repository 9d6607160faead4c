"""FastMCP server exposing gorch-index tools."""

from __future__ import annotations

from typing import Any

from fastmcp import FastMCP

from gorch_index.core.session import WorkspaceSession
from gorch_index.models import Position
from gorch_index.store.filesystem import path_to_uri


def create_mcp_server(session: WorkspaceSession) -> FastMCP:
    """Create a FastMCP server wired to the given workspace session.

    Positions exchanged with clients are zero-based, as in LSP.
    """

    mcp = FastMCP(
        "gorch-index",
        instructions="Check Gorch DSL files against their Go structs, find definitions and hover docs.",
    )

    def _uri(path: str) -> str:
        if path.startswith("file://"):
            return path
        return path_to_uri(session.settings.root / path)

    @mcp.tool()
    async def refresh_index() -> dict[str, Any]:
        """Rebuild the workspace index from disk."""
        result = await session.refresh()
        return result.model_dump()

    @mcp.tool()
    async def check_document(path: str, text: str | None = None) -> list[dict[str, Any]]:
        """Report cross-reference diagnostics for a .gorch file, optionally for unsaved *text*."""
        await session.start()
        diagnostics = await session.check(_uri(path), text)
        return [diagnostic.model_dump(mode="json") for diagnostic in diagnostics]

    @mcp.tool()
    async def find_definition(path: str, line: int, character: int, text: str | None = None) -> dict[str, Any] | None:
        """Locate the declaration of the symbol at a zero-based position."""
        await session.start()
        location = await session.definition(_uri(path), Position(line=line, character=character), text)
        if location is None:
            return None
        return {"path": session.store.relative_path(location.uri), **location.model_dump(mode="json")}

    @mcp.tool()
    async def hover(path: str, line: int, character: int, text: str | None = None) -> str | None:
        """Return markdown hover documentation for the symbol at a zero-based position."""
        await session.start()
        result = await session.hover(_uri(path), Position(line=line, character=character), text)
        return result.contents if result else None

    @mcp.tool()
    async def list_operators(package: str | None = None) -> list[dict[str, Any]]:
        """List registered operators, optionally filtered by package path."""
        await session.start()
        return [
            {
                "name": op.name,
                "struct": op.struct_name,
                "package": op.package_path,
                "sequence": op.sequence,
                "path": session.store.relative_path(op.document_uri),
                "line": op.span.start.line,
            }
            for op in session.snapshot.operators()
            if package is None or op.package_path == package
        ]

    return mcp
