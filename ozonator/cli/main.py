# ozonator/cli/main.py
"""
Command line access to the engine, mainly for support and scripting:

    ozonator init-db
    ozonator check-auth
    ozonator sync
    ozonator products | stock | runs | registry
    ozonator sales --since 2024-01-01 --to 2024-01-31 [--offline]
"""
import asyncio
import json
from typing import Awaitable, Callable, Optional, TypeVar

import click
import iso8601
from dotenv import load_dotenv

from ozonator.core.config import clear_settings_cache, get_settings
from ozonator.core.logging_config import configure_logging
from ozonator.database import LocalStore
from ozonator.schemas.credentials import StaticCredentialProvider
from ozonator.schemas.views import SalesPeriod
from ozonator.services.sales_view_service import as_utc, default_period
from ozonator.services.sync_service import SyncService

T = TypeVar("T")


def _run(action: Callable[[SyncService], Awaitable[T]]) -> T:
    """Open the local store from settings, run one engine action, close the store"""

    async def _main():
        settings = get_settings()
        store = LocalStore(settings.DATABASE_URL)
        try:
            await store.init_models()
            service = SyncService(store, StaticCredentialProvider.from_settings(settings))
            return await action(service)
        finally:
            await store.dispose()

    return asyncio.run(_main())


def _echo_json(rows) -> None:
    click.echo(json.dumps([row.model_dump(mode="json") for row in rows], ensure_ascii=False, indent=2))


def _parse_date(value: Optional[str]):
    if not value:
        return None
    try:
        return as_utc(iso8601.parse_date(value))
    except iso8601.ParseError as e:
        raise click.BadParameter(str(e))


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="dotenv file with OZON_* settings")
def cli(env_file):
    """Ozon catalog mirror"""
    load_dotenv(env_file)
    clear_settings_cache()
    configure_logging()


@cli.command("init-db")
def init_db():
    """Create the local tables"""
    async def _noop(service: SyncService):
        return service.store.database_url

    url = _run(_noop)
    click.echo(f"Local store initialized at {url}")


@cli.command("check-auth")
def check_auth():
    """Verify the configured Client-Id / Api-Key pair"""
    result = _run(lambda service: service.run_credential_check())
    if result.ok:
        click.echo(f"Credentials OK. Store: {result.resolved_display_name or '(name unavailable)'}")
    else:
        click.echo(f"Credential check failed: {result.error}", err=True)
        raise SystemExit(1)


@cli.command("sync")
def sync():
    """Mirror the catalog and placements into the local store"""
    result = _run(lambda service: service.run_catalog_sync())
    if not result.ok:
        click.echo(f"Sync failed: {result.error}", err=True)
        raise SystemExit(1)

    click.echo(f"Synced {result.item_count} items over {result.page_count} pages ({result.added_count} new)")
    click.echo(f"Placement rows: {result.placement_row_count}")
    if result.placement_warning:
        click.echo(f"Warning: {result.placement_warning}", err=True)


@cli.command("products")
@click.option("--store", default=None, help="Store identity (Client-Id); defaults to the configured one")
def products(store):
    """Print the local catalog as JSON"""
    _echo_json(_run(lambda service: service.read_catalog(store)))


@cli.command("stock")
@click.option("--store", default=None, help="Store identity (Client-Id); defaults to the configured one")
def stock(store):
    """Print the stock-by-warehouse view as JSON"""
    _echo_json(_run(lambda service: service.read_stock_view(store)))


@cli.command("sales")
@click.option("--store", default=None, help="Store identity (Client-Id); defaults to the configured one")
@click.option("--since", default=None, help="Period start, ISO 8601")
@click.option("--to", "to_", default=None, help="Period end, ISO 8601")
@click.option("--offline", is_flag=True, help="Use archived responses only")
def sales(store, since, to_, offline):
    """Print the sales view as JSON"""
    fallback = default_period()
    period = SalesPeriod(since=_parse_date(since) or fallback.since, to=_parse_date(to_) or fallback.to)
    _echo_json(_run(lambda service: service.read_sales_view(store, period, live=not offline)))


@cli.command("runs")
@click.option("--store", default=None, help="Store identity (Client-Id); defaults to the configured one")
def runs(store):
    """Print the sync run log as JSON"""
    _echo_json(_run(lambda service: service.list_runs(store)))


@cli.command("registry")
def registry():
    """Print what has been learned about each API endpoint"""
    _echo_json(_run(lambda service: service.list_registry()))


if __name__ == "__main__":
    cli()
