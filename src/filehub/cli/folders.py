from typing import Annotated

import typer

from filehub.cli.common import console, render_table, run_with_hub
from filehub.core.hub import FileHub
from filehub.models import FolderColor, FolderRecord

folders_app = typer.Typer(help="Manage colored folders.")


@folders_app.command("create")
def create(
    name: Annotated[str, typer.Argument(help="Folder name.")],
    color: Annotated[FolderColor, typer.Option(help="Folder color.")] = FolderColor.BLUE,
) -> None:
    """Create a folder."""

    async def _action(hub: FileHub) -> FolderRecord:
        return await hub.create_folder(name, color)

    folder = run_with_hub(_action)
    console.print(f"[green]Created[/green] folder {folder.name} ({folder.id})")


@folders_app.command("list")
def list_folders() -> None:
    """List folders with their file counts."""

    async def _action(hub: FileHub) -> list[tuple[str, str, str, int]]:
        return [(f.id, f.name, f.color.value, len(hub.files_in(f.id))) for f in hub.folders]

    render_table(["id", "name", "color", "files"], run_with_hub(_action))


@folders_app.command("rm")
def remove(folder_id: Annotated[str, typer.Argument(help="Folder id.")]) -> None:
    """Delete a folder; its files move to root."""

    async def _action(hub: FileHub) -> None:
        await hub.delete_folder(folder_id)

    run_with_hub(_action)
    console.print(f"[green]Deleted[/green] folder {folder_id}")


@folders_app.command("rename")
def rename(
    folder_id: Annotated[str, typer.Argument(help="Folder id.")],
    name: Annotated[str, typer.Argument(help="New name.")],
) -> None:
    """Rename a folder."""

    async def _action(hub: FileHub) -> FolderRecord:
        return await hub.rename_folder(folder_id, name)

    folder = run_with_hub(_action)
    console.print(f"[green]Renamed[/green] folder {folder.id} to {folder.name}")


@folders_app.command("color")
def recolor(
    folder_id: Annotated[str, typer.Argument(help="Folder id.")],
    color: Annotated[FolderColor, typer.Argument(help="New color.")],
) -> None:
    """Change a folder's color."""

    async def _action(hub: FileHub) -> FolderRecord:
        return await hub.update_folder(folder_id, color=color)

    folder = run_with_hub(_action)
    console.print(f"[green]Recolored[/green] folder {folder.name} to {folder.color.value}")
