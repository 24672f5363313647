"""Commands against the PostgreSQL remote store."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from filehub.cli.common import console, fail
from filehub.config import Settings
from filehub.errors import FileHubError
from filehub.models import Principal

remote_app = typer.Typer(help="Manage the remote store.")


def _remote_url() -> str:
    url = Settings.from_env().remote_url
    if not url:
        raise fail("FILEHUB_REMOTE_URL is not set.")
    return url


@remote_app.command("migrate")
def migrate(
    migrations_dir: Annotated[
        Path | None, typer.Option(help="Alembic scripts to use instead of the packaged ones.")
    ] = None,
) -> None:
    """Create or upgrade the remote schema."""
    from filehub.db.migrations import run_migrations

    run_migrations(_remote_url(), migrations_dir)
    console.print("[green]Remote schema is up to date.[/green]")


@remote_app.command("register")
def register(
    email: Annotated[str, typer.Argument(help="Email of the new user.")],
    name: Annotated[str | None, typer.Option(help="Display name.")] = None,
) -> None:
    """Add a user to the remote store."""
    from filehub.db.engine import get_remote_engine
    from filehub.db.remote import PostgresRemoteService

    service = PostgresRemoteService(get_remote_engine(_remote_url()))

    async def _run() -> Principal:
        try:
            return await service.register_principal(email, name)
        finally:
            await service.dispose()

    try:
        principal = asyncio.run(_run())
    except FileHubError as exc:
        raise fail(f"{type(exc).__name__}: {exc}") from exc
    console.print(f"[green]Registered[/green] {principal.email} as {principal.id}")
