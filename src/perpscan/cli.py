import asyncio
from typing import Awaitable, Callable, Sequence

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .adapters.jsonl_sink import JSONLRecordSink
from .adapters.parquet_sink import ParquetRecordSink
from .application.service import PerpsService
from .config import AppSettings
from .domain.models import Record, record_to_row
from .exceptions import PerpscanError
from .logging import setup_logging
from .ports.storage import RecordSink

console = Console()

Query = Callable[[PerpsService], Awaitable[Sequence[Record]]]


def _sink_for(path: str) -> RecordSink:
    if path.endswith(".parquet"):
        return ParquetRecordSink(path)
    if path.endswith((".jsonl", ".ndjson")):
        return JSONLRecordSink(path)
    raise click.UsageError(f"--out must end in .parquet, .jsonl or .ndjson: {path}")


def _summary(title: str, records: Sequence[Record]) -> Table:
    table = Table(title=title, show_lines=False)
    if len(records) == 1:
        table.add_column("field"); table.add_column("value", overflow="fold")
        for k, v in record_to_row(records[0]).items():
            table.add_row(k, str(v))
        return table
    table.add_column("records", justify="right")
    table.add_column("first block", justify="right")
    table.add_column("last block", justify="right")
    blocks = [r.block_number for r in records if hasattr(r, "block_number")]
    table.add_row(f"{len(records):,}",
                  f"{min(blocks):,}" if blocks else "-",
                  f"{max(blocks):,}" if blocks else "-")
    return table


def _run(settings: AppSettings, title: str, query: Query, out: str | None) -> None:
    sink = _sink_for(out) if out else None

    async def main() -> tuple[Sequence[Record], int]:
        async with PerpsService.from_settings(settings) as svc:
            with console.status(f"[bold]collecting {title}[/]"):
                records = await query(svc)
        written = await sink.write_records(records) if sink else 0
        return records, written

    try:
        records, written = asyncio.run(main())
    except PerpscanError as e:
        raise click.ClickException(str(e))

    console.print(_summary(title, records))
    if sink:
        console.print(f"[bold]done[/]: wrote {written} records to {out}")


@click.group()
@click.option("--log-level", default=None, help="Overrides PERPSCAN_LOG_LEVEL")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """perpscan: paginated history reader for the Synthetix v3 perps market."""
    settings = AppSettings()
    setup_logging(log_level or settings.log_level)
    ctx.obj = settings


_out_option = click.option("--out", type=str, default=None, help="Export to .parquet or .jsonl (replaces an existing file)")


def _event_command(name: str, title: str, bounded: str, paginated: str) -> None:
    @cli.command(name, help=f"Retrieve {title}, by block range or paginated to the chain head.")
    @click.option("--from-block", type=int, default=0, show_default=True,
                  help="0 means the contract's first deployed block")
    @click.option("--to-block", type=int, default=None, help="Omit for latest")
    @click.option("--limit", type=int, default=None,
                  help="Paginate from the first block to the head in chunks of this many blocks (0 = default)")
    @_out_option
    @click.pass_obj
    def command(settings: AppSettings, from_block: int, to_block: int | None, limit: int | None, out: str | None):
        if limit is not None and (from_block or to_block is not None):
            raise click.UsageError("--limit cannot be combined with --from-block/--to-block")
        if limit is not None:
            chunk = limit or settings.pagination.block_limit
            _run(settings, title, lambda svc: getattr(svc, paginated)(chunk), out)
        else:
            _run(settings, title, lambda svc: getattr(svc, bounded)(from_block, to_block), out)


_event_command("trades", "trades", "retrieve_trades", "retrieve_trades_limit")
_event_command("orders", "orders", "retrieve_orders", "retrieve_orders_limit")
_event_command("market-updates", "market updates", "retrieve_market_updates", "retrieve_market_updates_limit")
_event_command("liquidations", "liquidations", "retrieve_liquidations", "retrieve_liquidations_limit")


@cli.command("accounts")
@click.option("--limit", type=int, default=None, help="Paginate account discovery in chunks of this many blocks")
@_out_option
@click.pass_obj
def accounts_cmd(settings: AppSettings, limit: int | None, out: str | None):
    """Every account created on the perps market, with owner and permissions."""
    if limit is None:
        _run(settings, "accounts", lambda svc: svc.format_accounts(), out)
    else:
        chunk = limit or settings.pagination.block_limit
        _run(settings, "accounts", lambda svc: svc.format_accounts_limit(chunk), out)


@cli.command("account")
@click.argument("account_id", type=int)
@_out_option
@click.pass_obj
def account_cmd(settings: AppSettings, account_id: int, out: str | None):
    """One account, read at the latest block."""
    async def q(svc: PerpsService): return [await svc.format_account(account_id)]
    _run(settings, f"account {account_id}", q, out)


@cli.command("position")
@click.argument("account_id", type=int)
@click.argument("market_id", type=int)
@_out_option
@click.pass_obj
def position_cmd(settings: AppSettings, account_id: int, market_id: int, out: str | None):
    """Open position of ACCOUNT_ID in MARKET_ID at the latest block."""
    async def q(svc: PerpsService): return [await svc.get_position(account_id, market_id)]
    _run(settings, f"position {account_id}/{market_id}", q, out)


@cli.command("market")
@click.argument("market_id", type=int)
@click.pass_obj
def market_cmd(settings: AppSettings, market_id: int):
    """Name and symbol of a perps market."""
    async def q(svc: PerpsService): return [await svc.get_market_metadata(market_id)]
    _run(settings, f"market {market_id}", q, None)


@cli.command("contracts")
@click.pass_obj
def contracts_cmd(settings: AppSettings):
    """Show the configured contracts and their pagination floors."""
    table = Table(title="contracts")
    for f in ("contract", "address", "first block"):
        table.add_column(f)
    for name in ("core", "spot_market", "perps_market"):
        c = getattr(settings, name)
        table.add_row(name, c.address or "[red]unset[/]", f"{c.first_block:,}")
    console.print(Panel(table, subtitle=f"rpc: {settings.rpc.url or 'unset'}"))


if __name__ == "__main__":
    cli()
