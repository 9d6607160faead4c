"""Optional struct lookup through the ``gopls`` command line."""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path

from gorch_index.models import Location, Position, Span
from gorch_index.store.filesystem import path_to_uri

logger = logging.getLogger(__name__)

# /abs/path/file.go:12:6-12:13 Name Struct
_SYMBOL_LINE_RE = re.compile(
    r"^(?P<path>.+?):(?P<line>\d+):(?P<col>\d+)-(?:(?P<end_line>\d+):)?(?P<end_col>\d+)"
    r"\s+(?P<name>\S+)\s+(?P<kind>\S+)$"
)


def parse_workspace_symbols(output: str, name: str, root: Path) -> Location | None:
    """Pick the first ``Struct`` symbol called *name* from ``gopls workspace_symbol`` output."""
    for raw in output.splitlines():
        match = _SYMBOL_LINE_RE.match(raw.strip())
        if match is None:
            continue
        symbol = match.group("name")
        if match.group("kind").lower() != "struct":
            continue
        if symbol != name and not symbol.endswith(f".{name}"):
            continue
        line = int(match.group("line")) - 1
        end_line = int(match.group("end_line") or match.group("line")) - 1
        path = Path(match.group("path"))
        if not path.is_absolute():
            path = root / path
        return Location(
            uri=path_to_uri(path),
            span=Span(
                start=Position(line=line, character=int(match.group("col")) - 1),
                end=Position(line=end_line, character=int(match.group("end_col")) - 1),
            ),
        )
    return None


class GoplsClient:
    """Runs ``gopls workspace_symbol`` in the workspace root."""

    def __init__(self, root: str | Path, executable: str = "gopls", timeout: float = 5.0) -> None:
        self.root = Path(root)
        self.executable = executable
        self.timeout = timeout

    @classmethod
    def discover(cls, root: str | Path) -> GoplsClient | None:
        executable = shutil.which("gopls")
        if executable is None:
            logger.info("gopls not found on PATH, external struct lookup disabled")
            return None
        return cls(root, executable)

    async def find_struct(self, name: str) -> Location | None:
        process = await asyncio.create_subprocess_exec(
            self.executable,
            "workspace_symbol",
            name,
            cwd=str(self.root),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("gopls timed out after %.1fs looking up %s", self.timeout, name)
            return None
        if process.returncode != 0:
            logger.debug("gopls exited with %s: %s", process.returncode, stderr.decode(errors="replace").strip())
            return None
        return parse_workspace_symbols(stdout.decode(errors="replace"), name, self.root)
