import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from gorch_index.cli.serve import serve_app
from gorch_index.cli.watch import watch
from gorch_index.cli.workspace import check, definition, hover, index

app = typer.Typer(
    name="gorch-index",
    help="Gorch index CLI: cross-reference checks, definitions and hovers for .gorch workspaces.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output to stderr.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app.command("index")(index)
app.command("check")(check)
app.command("definition")(definition)
app.command("hover")(hover)
app.command("watch")(watch)
app.add_typer(serve_app, name="serve")


def main() -> None:
    app()
