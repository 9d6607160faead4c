"""End-to-end tests: a session over a real directory."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from gorch_index.models import DiagnosticCode, Position
from gorch_index.store import path_to_uri
from gorch_index.watcher.watchfiles_adapter import WatchfilesWatcher
from gorch_index.workspace import open_session


class TestOpenSession:
    def test_gopls_disabled_by_environment(self, workspace: Path) -> None:
        session = open_session(workspace)
        assert session.definitions.tiers == ["index", "live-scan"]
        assert session.settings.exclude_dirs == ("vendor", ".git")

    @pytest.mark.asyncio
    async def test_index_ignores_excluded_directories(self, workspace: Path) -> None:
        session = open_session(workspace)
        result = await session.refresh()

        assert result.success is True
        assert (result.operator_count, result.fragment_count, result.struct_count) == (3, 1, 3)
        struct = session.snapshot.find_struct("FetchOp")
        assert struct is not None
        assert struct.relative_path == "ops/ops.go"

    @pytest.mark.asyncio
    async def test_check_definition_and_hover(self, workspace: Path) -> None:
        session = open_session(workspace)
        await session.start()
        main = path_to_uri(workspace / "flows" / "main.gorch")

        assert await session.check(main) == []

        location = await session.definition(main, Position(line=1, character=5))
        assert location is not None
        assert location.uri == path_to_uri(workspace / "ops" / "ops.go")

        hover = await session.hover(main, Position(line=1, character=5))
        assert hover is not None
        assert "**File**: `ops/ops.go`" in hover.contents

    @pytest.mark.asyncio
    async def test_edits_on_disk_show_up_after_rebuild(self, workspace: Path) -> None:
        session = open_session(workspace)
        await session.start()
        main_path = workspace / "flows" / "main.gorch"
        main = path_to_uri(main_path)
        session.open(main)

        main_path.write_text('START("main") {\n    UNFOLD("extra")\n}\n', encoding="utf-8")
        await session.refresh()
        (diagnostic,) = session.sink.get(main)  # type: ignore[attr-defined]
        assert diagnostic.code is DiagnosticCode.FRAGMENT_NOT_FOUND

        (workspace / "flows" / "extra.gorch").write_text('FRAGMENT("extra") {\n}\n', encoding="utf-8")
        await session.refresh()
        assert session.sink.get(main) == []  # type: ignore[attr-defined]


class TestWatcher:
    @pytest.mark.asyncio
    async def test_file_changes_schedule_a_rebuild(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GORCH_INDEX_DEBOUNCE_SECONDS", "0.05")
        session = open_session(workspace)
        watcher = WatchfilesWatcher(workspace, session.on_files_changed, session.settings.exclude_dirs)
        await session.start(watcher)
        try:
            await asyncio.sleep(0.2)
            (workspace / "ops" / "more.go").write_text("package ops\n\ntype MoreOp struct{}\n", encoding="utf-8")
            for _ in range(100):
                if session.snapshot.find_struct("MoreOp") is not None:
                    break
                await asyncio.sleep(0.05)
        finally:
            await session.stop()

        assert session.snapshot.find_struct("MoreOp") is not None
        assert session.snapshot.version >= 2
