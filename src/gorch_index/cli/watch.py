import asyncio
import contextlib

from rich.console import Console

from gorch_index.cli.workspace import RootOption, _open, print_diagnostics
from gorch_index.core.index import WorkspaceIndex
from gorch_index.core.session import WorkspaceSession
from gorch_index.watcher.watchfiles_adapter import WatchfilesWatcher

console = Console()


async def _watch(session: WorkspaceSession) -> None:
    async def _report(snapshot: WorkspaceIndex) -> None:
        console.print(
            f"[green]Index v{snapshot.version}[/green]: {len(snapshot.operators())} operators, "
            f"{len(snapshot.fragments())} fragments, {len(snapshot.structs())} structs"
        )
        for uri, diagnostics in (await session.check_all()).items():
            print_diagnostics(session, uri, diagnostics)

    session.builder.on_rebuilt(_report)
    watcher = WatchfilesWatcher(session.settings.root, session.on_files_changed, session.settings.exclude_dirs)
    await session.start(watcher)
    try:
        await asyncio.Event().wait()
    finally:
        await session.stop()


def watch(root: RootOption = None) -> None:
    """Keep the index current and re-check DSL files as they change."""
    session = _open(root)
    console.print(f"Watching {session.settings.root} (Ctrl+C to stop)")
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_watch(session))
