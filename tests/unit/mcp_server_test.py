"""Tests for the MCP server tool definitions."""

from __future__ import annotations

import inspect
from typing import Any

import pytest

from gorch_index.core.keywords import KEYWORD_DOCS
from gorch_index.core.session import WorkspaceSession
from gorch_index.mcp.server import create_mcp_server

BUFFER_URI = "file:///work/flows/draft.gorch"


def _tool(session: WorkspaceSession, name: str) -> Any:
    server = create_mcp_server(session)
    return server._tool_manager._tools[name].fn  # type: ignore[attr-defined]


class TestMcpServerCreation:
    def test_creates_server(self, session: WorkspaceSession) -> None:
        server = create_mcp_server(session)
        assert server is not None
        assert server.name == "gorch-index"

    def test_server_has_tools(self, session: WorkspaceSession) -> None:
        server = create_mcp_server(session)
        tool_names = {t.name for t in server._tool_manager._tools.values()}
        assert tool_names >= {"refresh_index", "check_document", "find_definition", "hover", "list_operators"}

    def test_buffer_text_is_optional(self, session: WorkspaceSession) -> None:
        sig = inspect.signature(_tool(session, "check_document"))
        assert sig.parameters["text"].default is None


class TestMcpTools:
    @pytest.mark.asyncio
    async def test_refresh_index(self, session: WorkspaceSession) -> None:
        result = await _tool(session, "refresh_index")()
        assert result["success"] is True
        assert result["operator_count"] == 3

    @pytest.mark.asyncio
    async def test_list_operators(self, session: WorkspaceSession) -> None:
        list_operators = _tool(session, "list_operators")
        operators = await list_operators()
        assert [op["name"] for op in operators] == ["fetch", "ParseOp", "store"]
        assert operators[0]["struct"] == "FetchOp"
        assert operators[0]["path"] == "flows/registry.gorch"

        assert await list_operators(package="not/a/package") == []

    @pytest.mark.asyncio
    async def test_check_document_with_buffer(self, session: WorkspaceSession) -> None:
        diagnostics = await _tool(session, "check_document")(BUFFER_URI, 'START("d") {\n    mystery_op()\n}\n')
        assert len(diagnostics) == 1
        assert diagnostics[0]["code"] == "unregistered-operator"
        assert diagnostics[0]["span"]["start"] == {"line": 1, "character": 4}

    @pytest.mark.asyncio
    async def test_find_definition_with_buffer(self, session: WorkspaceSession) -> None:
        location = await _tool(session, "find_definition")(BUFFER_URI, 1, 6, 'START("d") {\n    fetch()\n}\n')
        assert location is not None
        assert location["path"] == "ops/ops.go"
        assert location["span"]["start"] == {"line": 3, "character": 5}

    @pytest.mark.asyncio
    async def test_hover_keyword(self, session: WorkspaceSession) -> None:
        contents = await _tool(session, "hover")(BUFFER_URI, 0, 1, 'START("d") {\n}\n')
        assert contents == KEYWORD_DOCS["START"]
