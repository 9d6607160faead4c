import typer
from rich.console import Console

from gorch_index.cli.workspace import RootOption, _open

serve_app = typer.Typer(help="Start servers.")
console = Console(stderr=True)


@serve_app.command("mcp")
def mcp(
    transport: str = "stdio",
    root: RootOption = None,
) -> None:
    """Start the MCP server."""
    from gorch_index.mcp.server import create_mcp_server

    session = _open(root)
    server = create_mcp_server(session)
    console.print(f"[green]Starting MCP server for {session.settings.root} (transport: {transport})[/green]")
    server.run(transport=transport)  # type: ignore[arg-type]
