import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from gorch_index.core.session import WorkspaceSession
from gorch_index.errors import GorchIndexError
from gorch_index.models import Diagnostic, Position, Severity
from gorch_index.store.filesystem import path_to_uri

console = Console()

RootOption = Annotated[
    Path | None,
    typer.Option("--root", help="Workspace root (defaults to GORCH_INDEX_ROOT or cwd)."),
]


def _get_session(root: Path | None = None) -> WorkspaceSession:
    from gorch_index.workspace import open_session

    return open_session(root)


def _open(root: Path | None) -> WorkspaceSession:
    try:
        return _get_session(root)
    except GorchIndexError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]", soft_wrap=True)
        raise typer.Exit(2) from exc


def _render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]]) -> None:
    table = Table(show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)


def _position(line: int, column: int) -> Position:
    """Convert the 1-based LINE/COL users type into a zero-based position."""
    if line < 1 or column < 1:
        console.print("[red]LINE and COL are 1-based and must be positive.[/red]")
        raise typer.Exit(2)
    return Position(line=line - 1, character=column - 1)


def print_diagnostics(session: WorkspaceSession, uri: str, diagnostics: list[Diagnostic]) -> None:
    relative = session.store.relative_path(uri)
    for diagnostic in diagnostics:
        start = diagnostic.span.start
        colour = "red" if diagnostic.severity is Severity.ERROR else "yellow"
        console.print(
            f"{relative}:{start.line + 1}:{start.character + 1}: "
            f"[{colour}]{diagnostic.severity.value}[/{colour}] [dim]\\[{diagnostic.code.value}][/dim] "
            f"{escape(diagnostic.message)}",
            highlight=False,
            soft_wrap=True,
        )


def index(root: RootOption = None) -> None:
    """Rebuild the workspace index and show what it holds."""
    session = _open(root)

    async def _run() -> None:
        result = await session.refresh()
        summary = await session.summary()
        _render_table(
            ["version", "operators", "fragments", "structs", "stale", "duration_ms"],
            [
                (
                    summary.version,
                    summary.operators,
                    summary.fragments,
                    summary.structs,
                    summary.stale,
                    f"{result.duration_ms:.1f}",
                )
            ],
        )
        for error in result.errors:
            console.print(f"[yellow]{escape(error)}[/yellow]", soft_wrap=True)
        if not result.success:
            raise typer.Exit(1)

    asyncio.run(_run())


def check(
    files: Annotated[list[Path] | None, typer.Argument(help="DSL files to check (default: all .gorch files).")] = None,
    root: RootOption = None,
) -> None:
    """Report cross-reference diagnostics for DSL documents."""
    session = _open(root)

    async def _run() -> None:
        await session.refresh()
        if files:
            results = {path_to_uri(path): await session.check(path_to_uri(path)) for path in files}
        else:
            results = await session.check_all()
        total = 0
        for uri, diagnostics in results.items():
            print_diagnostics(session, uri, diagnostics)
            total += len(diagnostics)
        checked = len(results)
        if total:
            console.print(f"[red]{total} problem(s)[/red] in {checked} file(s)")
            raise typer.Exit(1)
        console.print(f"[green]No problems[/green] in {checked} file(s)")

    try:
        asyncio.run(_run())
    except GorchIndexError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]", soft_wrap=True)
        raise typer.Exit(2) from exc


def definition(
    file: Annotated[Path, typer.Argument(help="DSL file.")],
    line: Annotated[int, typer.Argument(help="1-based line.")],
    col: Annotated[int, typer.Argument(help="1-based column.")],
    root: RootOption = None,
) -> None:
    """Show where the symbol under the cursor is declared."""
    position = _position(line, col)
    session = _open(root)

    async def _run() -> None:
        await session.refresh()
        location = await session.definition(path_to_uri(file), position)
        if location is None:
            console.print("[yellow]No definition found.[/yellow]")
            raise typer.Exit(1)
        start = location.span.start
        console.print(
            f"{session.store.relative_path(location.uri)}:{start.line + 1}:{start.character + 1}",
            highlight=False,
            soft_wrap=True,
        )

    try:
        asyncio.run(_run())
    except GorchIndexError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]", soft_wrap=True)
        raise typer.Exit(2) from exc


def hover(
    file: Annotated[Path, typer.Argument(help="DSL file.")],
    line: Annotated[int, typer.Argument(help="1-based line.")],
    col: Annotated[int, typer.Argument(help="1-based column.")],
    root: RootOption = None,
) -> None:
    """Show hover documentation for the symbol under the cursor."""
    position = _position(line, col)
    session = _open(root)

    async def _run() -> None:
        await session.refresh()
        result = await session.hover(path_to_uri(file), position)
        if result is None:
            console.print("[yellow]Nothing to show.[/yellow]")
            raise typer.Exit(1)
        console.print(Markdown(result.contents))

    try:
        asyncio.run(_run())
    except GorchIndexError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]", soft_wrap=True)
        raise typer.Exit(2) from exc
