import sys
from pathlib import Path
from typing import Annotated

import typer

from filehub.cli.common import console, fail, render_table, run_with_hub
from filehub.core.files import format_file_size
from filehub.core.hub import FileHub
from filehub.models import AddResult, FileRecord, IncomingFile

files_app = typer.Typer(help="Add, list, move and remove files.")


@files_app.command("add")
def add(
    paths: Annotated[list[Path], typer.Argument(help="Files to add.", exists=True, dir_okay=False)],
    folder: Annotated[str | None, typer.Option(help="Folder id to place the files in.")] = None,
) -> None:
    """Store files locally, picking a tier by size."""
    incoming = [IncomingFile(name=path.name, data=path.read_bytes(), folder_id=folder) for path in paths]

    async def _action(hub: FileHub) -> list[AddResult]:
        return await hub.add_files(incoming)

    results = run_with_hub(_action)
    for result in results:
        if result.record is not None:
            console.print(
                f"[green]Added[/green] {result.name} ({format_file_size(result.record.size_bytes)}) "
                f"as {result.record.id} in {result.record.blob_location.value}"
            )
        else:
            console.print(f"[red]Failed[/red] {result.name}: {result.error}")
    if not all(result.ok for result in results):
        raise typer.Exit(1)


@files_app.command("list")
def list_files(
    folder: Annotated[str | None, typer.Option(help="Only files in this folder id.")] = None,
) -> None:
    """List stored files."""

    async def _action(hub: FileHub) -> list[FileRecord]:
        if folder is not None:
            hub.get_folder(folder)
            return hub.files_in(folder)
        return hub.files

    records = run_with_hub(_action)
    render_table(
        ["id", "name", "size", "type", "location", "folder"],
        [
            (r.id, r.name, format_file_size(r.size_bytes), r.mime_type, r.blob_location.value, r.folder_id)
            for r in records
        ],
    )


@files_app.command("rm")
def remove(file_id: Annotated[str, typer.Argument(help="File id.")]) -> None:
    """Remove a file and its bytes."""

    async def _action(hub: FileHub) -> None:
        await hub.remove_file(file_id)

    run_with_hub(_action)
    console.print(f"[green]Removed[/green] {file_id}")


@files_app.command("mv")
def move(
    file_id: Annotated[str, typer.Argument(help="File id.")],
    folder: Annotated[str | None, typer.Option(help="Target folder id; omit for root.")] = None,
) -> None:
    """Move a file into a folder or back to root."""

    async def _action(hub: FileHub) -> FileRecord:
        return await hub.move_file(file_id, folder)

    record = run_with_hub(_action)
    console.print(f"[green]Moved[/green] {record.name} to {record.folder_id or 'root'}")


@files_app.command("cat")
def cat(file_id: Annotated[str, typer.Argument(help="File id.")]) -> None:
    """Write a file's bytes to stdout."""

    async def _action(hub: FileHub) -> bytes:
        return await hub.read_file(file_id)

    data = run_with_hub(_action)
    try:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    except BrokenPipeError as exc:
        raise fail("output closed") from exc
