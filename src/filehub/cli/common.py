import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from filehub.config import Settings
from filehub.core.hub import FileHub
from filehub.errors import FileHubError
from filehub.wiring import create_hub

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


def render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]]) -> None:
    table = Table(show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row))
    console.print(table)
    console.print(f"({len(rows)} rows)")


def fail(message: str) -> typer.Exit:
    err_console.print(f"[red]{message}[/red]")
    return typer.Exit(1)


def run_with_hub(action: Callable[[FileHub], Awaitable[T]]) -> T:
    """Open a session from the environment, run ``action`` and close it again."""

    async def _run() -> T:
        hub = await create_hub(Settings.from_env())
        try:
            await hub.load()
            return await action(hub)
        finally:
            await hub.aclose()

    try:
        return asyncio.run(_run())
    except FileHubError as exc:
        raise fail(f"{type(exc).__name__}: {exc}") from exc
    except ValueError as exc:
        raise fail(str(exc)) from exc
