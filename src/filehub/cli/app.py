import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from filehub.cli.common import err_console
from filehub.cli.files import files_app
from filehub.cli.folders import folders_app
from filehub.cli.remote import remote_app
from filehub.cli.serve import serve
from filehub.cli.share import share_app
from filehub.cli.sync import sync, usage

app = typer.Typer(
    name="filehub",
    help="filehub CLI: local-first file storage with background sync.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=verbose)],
        force=True,
    )


app.add_typer(files_app, name="files")
app.add_typer(folders_app, name="folders")
app.add_typer(share_app, name="share")
app.command("sync")(sync)
app.command("usage")(usage)
app.add_typer(remote_app, name="remote")
app.command("serve")(serve)


def main() -> None:
    app()
