"""Fixtures for tests that run against a real workspace directory."""

from pathlib import Path

import pytest


@pytest.fixture
def workspace(tmp_path: Path, registry_dsl: str, flow_dsl: str, ops_go: str, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Lay out a small Gorch workspace under ``tmp_path``; gopls is disabled."""
    for name in ("GORCH_INDEX_ROOT", "GORCH_INDEX_DEBOUNCE_SECONDS", "GORCH_INDEX_TRAILING_REBUILD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GORCH_INDEX_USE_GOPLS", "false")
    monkeypatch.setenv("GORCH_INDEX_EXCLUDE", "vendor,.git")

    (tmp_path / "flows").mkdir()
    (tmp_path / "flows" / "registry.gorch").write_text(registry_dsl, encoding="utf-8")
    (tmp_path / "flows" / "main.gorch").write_text(flow_dsl, encoding="utf-8")
    (tmp_path / "ops").mkdir()
    (tmp_path / "ops" / "ops.go").write_text(ops_go, encoding="utf-8")
    (tmp_path / "vendor" / "dep").mkdir(parents=True)
    (tmp_path / "vendor" / "dep" / "dep.go").write_text("package dep\n\ntype FetchOp struct{}\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("not indexed\n", encoding="utf-8")
    return tmp_path
