"""Guest Sync CLI - operator commands."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings

app = typer.Typer(
    name="guest-sync",
    help="Guest Sync - WiFi captive-portal contacts into GoHighLevel",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _with_session(fn: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
    """Run ``fn`` against a fresh engine bound to the configured database."""
    from .database import create_tables

    async def runner():
        engine = create_async_engine(settings.database_url, echo=settings.echo_sql)
        try:
            if "sqlite" in settings.database_url:
                await create_tables(engine)
            factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with factory() as db:
                return await fn(db)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read {path}: {e}[/red]")
        raise typer.Exit(1)


@app.command("serve")
def serve(
    port: int = typer.Option(3000, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the webhook and setup server."""
    import uvicorn

    console.print(f"[bold cyan]Starting Guest Sync at http://{host}:{port}[/bold cyan]")
    uvicorn.run("guest_sync.app:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db():
    """Create all tables (use Alembic for PostgreSQL deployments)."""
    from .database import create_tables

    async def run():
        engine = create_async_engine(settings.database_url, echo=settings.echo_sql)
        try:
            await create_tables(engine)
        finally:
            await engine.dispose()

    asyncio.run(run())
    console.print("[green]Database tables created.[/green]")


@app.command("load-venues")
def load_venues(file: Path = typer.Argument(..., help="JSON array of venue records")):
    """Load or replace venue directory records."""
    from pydantic import ValidationError

    from .schemas.mapping import VenueIn
    from .services import directory_svc

    raw = _load_json(file)
    if not isinstance(raw, list):
        console.print("[red]Expected a JSON array of venues[/red]")
        raise typer.Exit(1)
    try:
        venues = [VenueIn.model_validate(v) for v in raw]
    except ValidationError as e:
        console.print(f"[red]Invalid venue record:[/red] {e}")
        raise typer.Exit(1)

    count = _with_session(lambda db: directory_svc.load_venues(db, venues))
    console.print(f"[green]Loaded {count} venues.[/green]")


@app.command("match")
def match_venue(
    email: str = typer.Argument(..., help="Location owner email"),
    name: str = typer.Argument("", help="GHL location name"),
):
    """Show which venues onboarding would map for an email and location name."""
    from .matching import GroupMatch, SingleMatch, match
    from .services.directory_svc import VenueDirectory

    venues = _with_session(lambda db: VenueDirectory(db).venues_for(email))
    result = match(email, name, venues)

    if isinstance(result, GroupMatch):
        table = Table(title=f"Hospitality group: {result.group_name}")
        table.add_column("Venue")
        table.add_column("Devices", justify="right")
        for v in result.venues:
            table.add_row(v.display_name, str(len(v.device_ids)))
        console.print(table)
    elif isinstance(result, SingleMatch):
        console.print(
            f"[green]Single venue:[/green] {result.venue.display_name} "
            f"({len(result.venue.device_ids)} devices)"
        )
    else:
        console.print(f"[yellow]No match among {len(venues)} venues for {email}[/yellow]")


@app.command("map")
def map_devices(
    tenant_id: str = typer.Argument(..., help="GHL location id"),
    macs: list[str] = typer.Argument(..., help="MAC addresses"),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Sub-venue tag"),
):
    """Map access point MAC addresses to a location."""
    from .identity import InvalidFormat, normalize_device_id
    from .services import mapping_svc

    normalized = []
    for mac in macs:
        try:
            normalized.append(normalize_device_id(mac))
        except InvalidFormat:
            console.print(f"[red]Invalid MAC address: {mac}[/red]")
            raise typer.Exit(1)

    count = _with_session(
        lambda db: mapping_svc.bulk_map(db, tenant_id, normalized, label=label)
    )
    console.print(f"[green]Mapped {count} devices to {tenant_id}.[/green]")


@app.command("sync-log")
def sync_log(
    tenant_id: str = typer.Argument(..., help="GHL location id"),
    limit: int = typer.Option(50, "--limit", "-n", help="Max entries"),
):
    """Show recent sync attempts for a location."""
    from .services import audit_svc

    entries = _with_session(lambda db: audit_svc.recent(db, tenant_id, limit=limit))
    if not entries:
        console.print(f"[yellow]No sync history for {tenant_id}[/yellow]")
        return

    stats = audit_svc.summarize(entries)
    table = Table(title=f"Sync log for {tenant_id}")
    table.add_column("When")
    table.add_column("Status")
    table.add_column("Email")
    table.add_column("Reason / contact")
    colors = {"success": "green", "skipped": "yellow", "error": "red"}
    for e in entries:
        table.add_row(
            e.created_at.strftime("%Y-%m-%d %H:%M:%S") if e.created_at else "",
            f"[{colors.get(e.status, 'white')}]{e.status}[/]",
            e.contact_email or "",
            e.crm_contact_id if e.status == "success" else (e.reason or ""),
        )
    console.print(table)
    console.print(
        f"{stats['total']} total, {stats['success']} success, "
        f"{stats['skipped']} skipped, {stats['errors']} errors"
    )


@app.command("replay")
def replay(file: Path = typer.Argument(..., help="JSON array of contact events")):
    """Run saved contact events through the sync pipeline."""
    from .services.sync_svc import SyncPipeline

    raw = _load_json(file)
    events = raw.get("contacts") if isinstance(raw, dict) else raw
    if not isinstance(events, list):
        console.print("[red]Expected a JSON array or an object with a 'contacts' array[/red]")
        raise typer.Exit(1)

    pipeline = SyncPipeline()
    result = _with_session(
        lambda db: pipeline.process_batch(db, [e if isinstance(e, dict) else {} for e in events])
    )

    table = Table(title="Replay results")
    table.add_column("Email")
    table.add_column("Status")
    table.add_column("Detail")
    for item in result.results:
        table.add_row(item.email or "", item.status, item.ghl_contact_id or item.reason or "")
    console.print(table)
    s = result.summary
    console.print(f"{s.total} total, {s.success} success, {s.skipped} skipped, {s.errors} errors")
    if s.errors:
        raise typer.Exit(1)
