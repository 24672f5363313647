from filehub.cli.common import console, render_table, run_with_hub
from filehub.core.files import format_file_size
from filehub.core.hub import FileHub
from filehub.models import StorageUsage, SyncReport


def sync() -> None:
    """Run one reconciliation pass now and print what changed."""

    async def _action(hub: FileHub) -> SyncReport:
        return await hub.sync_now()

    report = run_with_hub(_action)
    if report.skipped:
        console.print("[yellow]Skipped:[/yellow] not signed in or remote unavailable")
        return
    render_table(
        ["kind", "created", "adopted", "updated", "deleted"],
        [
            ("folders", report.folders_created, report.folders_adopted, report.folders_updated, report.folders_deleted),
            ("files", report.files_uploaded, report.files_adopted, report.files_updated, report.files_deleted),
        ],
    )
    for failure in report.failures:
        console.print(f"[red]Failed[/red] {failure.kind.value} {failure.name}: {failure.error}: {failure.message}")


def usage() -> None:
    """Show local storage usage."""

    async def _action(hub: FileHub) -> StorageUsage:
        return await hub.get_storage_usage()

    result = run_with_hub(_action)
    quota = format_file_size(result.quota_bytes) if result.quota_bytes is not None else "unknown"
    console.print(f"Used {format_file_size(result.used_bytes)} of {quota}")
