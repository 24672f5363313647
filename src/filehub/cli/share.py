from typing import Annotated

import typer

from filehub.cli.common import console, render_table, run_with_hub
from filehub.core.hub import FileHub
from filehub.models import GrantView, Permission, RemoteFile, RemoteFolder, ShareGrant

share_app = typer.Typer(help="Share files and folders with other users.")


@share_app.command("add")
def add(
    target_id: Annotated[str, typer.Argument(help="File or folder id.")],
    email: Annotated[str, typer.Argument(help="Recipient email.")],
    permission: Annotated[Permission, typer.Option(help="Access level.")] = Permission.VIEW,
) -> None:
    """Grant a user access to a file or folder."""

    async def _action(hub: FileHub) -> ShareGrant:
        return await hub.share(target_id, email, permission)

    grant = run_with_hub(_action)
    console.print(f"[green]Shared[/green] {target_id} with {email} ({grant.permission.value})")


@share_app.command("rm")
def revoke(
    target_id: Annotated[str, typer.Argument(help="File or folder id.")],
    recipient_id: Annotated[str, typer.Argument(help="Recipient user id.")],
) -> None:
    """Revoke a grant."""

    async def _action(hub: FileHub) -> None:
        await hub.revoke(target_id, recipient_id)

    run_with_hub(_action)
    console.print(f"[green]Revoked[/green] {recipient_id} on {target_id}")


@share_app.command("list")
def list_grants(target_id: Annotated[str, typer.Argument(help="File or folder id.")]) -> None:
    """List who has access to a file or folder."""

    async def _action(hub: FileHub) -> list[GrantView]:
        return await hub.list_grants(target_id)

    grants = run_with_hub(_action)
    render_table(["recipient_id", "label", "permission"], [(g.recipient_id, g.label, g.permission.value) for g in grants])


@share_app.command("inbox")
def inbox() -> None:
    """List files and folders other users shared with you."""

    async def _action(hub: FileHub) -> list[RemoteFile | RemoteFolder]:
        return await hub.list_shared_with_me()

    items = run_with_hub(_action)
    render_table(
        ["id", "kind", "name", "owner_id"],
        [(i.id, "file" if isinstance(i, RemoteFile) else "folder", i.name, i.owner_id) for i in items],
    )
