import json, asyncio, logging, time, uuid
from dataclasses import replace
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .adapters.endpoint_pool import EndpointPool
from .adapters.parquet_sink import ParquetEventSink, ParquetTransactionSink
from .adapters.query_store_jsonl import JSONLQueryStore
from .adapters.rpc_httpx import HttpxRPC, check_endpoints
from .application.reports import error_report, success_report
from .application.use_cases import analyze_contract_with_scan, fetch_events
from .application.utils import _now_ts_str
from .config import Settings
from .domain.models import ContractAnalysis, EventQueryResult, SavedQuery
from .errors import ContractScanError

console = Console()
err_console = Console(stderr=True)

def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )

def _settings(ctx: click.Context, rpc: tuple[str, ...], **overrides) -> Settings:
    cfg: Settings = ctx.obj["settings"]
    if rpc:
        cfg = replace(cfg, rpc_endpoints=tuple(rpc))
    clean = {k: v for k, v in overrides.items() if v is not None}
    try:
        return replace(cfg, **clean).validated()
    except ValueError as e:
        raise click.BadParameter(str(e))

def _make_rpc(cfg: Settings) -> HttpxRPC:
    return HttpxRPC(EndpointPool(cfg.rpc_endpoints), timeout_s=cfg.timeout_s, max_conn=cfg.max_connections)

async def _save(store_path: str, kind: str, result, from_date, to_date) -> str:
    store = JSONLQueryStore(store_path)
    return await store.save(SavedQuery(
        query_id=uuid.uuid4().hex,
        kind=kind,
        contract_address=result.contract_address,
        from_date=from_date,
        to_date=to_date,
        created_at=time.time(),
        payload=success_report(result),
    ))

def _run(coro, as_json: bool):
    try:
        return asyncio.run(coro)
    except ContractScanError as e:
        if as_json:
            click.echo(json.dumps(error_report(e), indent=2))
            raise click.exceptions.Exit(1)
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.ClickException(str(e))

def _print_analysis(a: ContractAnalysis) -> None:
    lines = [
        f"[bold]status[/]: {a.status}",
        f"[bold]blocks[/]: {a.from_block:,} → {a.to_block:,}  (analyzed {a.blocks_analyzed:,}, tip {a.current_block:,})",
        f"[bold]transactions[/]: {a.transaction_count}  •  [bold]unique senders[/]: {a.unique_sender_count}",
        f"[bold]total fees[/]: {a.total_fees}  •  [bold]avg fee[/]: {a.avg_fee}",
    ]
    if a.failed_blocks:
        lines.append(f"[yellow]incomplete[/]: {len(a.failed_blocks)} block(s) could not be fetched")
    if a.contract_info:
        lines.append(f"[bold]contract[/]: {a.contract_info}")
    if a.message:
        lines.append(a.message)
    if a.suggestion:
        lines.append(f"[dim]{a.suggestion}[/]")
    console.print(Panel("\n".join(lines), title=a.contract_address, expand=True))
    if a.sample_transactions:
        t = Table("block", "hash", "sender", "type", "max_fee", title=f"first {len(a.sample_transactions)} transactions")
        for tx in a.sample_transactions:
            t.add_row(str(tx.block_number), tx.hash, tx.sender_address or "-", tx.type, tx.max_fee)
        console.print(t)

def _print_events(r: EventQueryResult, limit: int = 25) -> None:
    status = "[green]complete[/]" if r.complete else "[yellow]incomplete[/]"
    console.print(
        f"[bold]{r.total_event_count}[/] events • blocks {r.from_block:,} → {r.to_block:,} • "
        f"{r.pages_fetched} page(s) • {status}"
    )
    if not r.decoded_events:
        return
    t = Table("block", "tx", "event", "fields", "≈ time (UTC)", title=f"first {min(limit, r.total_event_count)} events")
    for ev in r.decoded_events[:limit]:
        fields = ", ".join(f"{k}={v}" for k, v in ev.decoded_fields.items()) or "-"
        t.add_row(str(ev.event.block_number), ev.event.transaction_hash, ev.event_name, fields, ev.estimated_time_iso)
    console.print(t)


@click.group()
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def cli(ctx: click.Context, log_level: str):
    """contractscan: Starknet contract activity discovery."""
    _configure_logging(log_level)
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = Settings.from_env()
    except ValueError as e:
        raise click.ClickException(f"invalid configuration: {e}")

_rpc_option = click.option("--rpc", multiple=True, help="RPC endpoint URL; repeat for failover order")
_date_options = [
    click.option("--from-date", default=None, help="Start date (ISO-8601)"),
    click.option("--to-date", default=None, help="End date (ISO-8601)"),
]

def _with_dates(f):
    for opt in reversed(_date_options):
        f = opt(f)
    return f

@cli.command("analyze")
@click.argument("address")
@_with_dates
@_rpc_option
@click.option("--concurrency", type=int, default=None, help="Max parallel block fetches")
@click.option("--json", "as_json", is_flag=True, help="Print the JSON payload instead of tables")
@click.option("--parquet-out", type=str, default="", help="Directory to export all matched transactions to")
@click.option("--save", "store_path", type=str, default="", help="JSONL saved-query store to append the result to")
@click.pass_context
def analyze_cmd(ctx, address, from_date, to_date, rpc, concurrency, as_json, parquet_out, store_path):
    """Aggregate the transactions touching ADDRESS."""
    cfg = _settings(ctx, rpc, concurrency=concurrency)

    async def run():
        async with _make_rpc(cfg) as client:
            analysis, scan = await analyze_contract_with_scan(client, address, from_date, to_date, settings=cfg)
        if parquet_out:
            path = await ParquetTransactionSink(parquet_out).write_transactions(
                f"transactions_{analysis.contract_address}_{_now_ts_str()}", scan.transactions)
            err_console.print(f"[dim]wrote {len(scan.transactions)} transactions → {path}[/]", highlight=False)
        if store_path:
            qid = await _save(store_path, "analyze", analysis, from_date, to_date)
            err_console.print(f"[dim]saved query {qid}[/]")
        return analysis

    analysis = _run(run(), as_json)
    if as_json:
        click.echo(json.dumps(success_report(analysis), indent=2))
    else:
        _print_analysis(analysis)

@cli.command("events")
@click.argument("address")
@_with_dates
@_rpc_option
@click.option("--max-pages", type=int, default=None, help="Safety cap on event pages")
@click.option("--json", "as_json", is_flag=True, help="Print the JSON payload instead of tables")
@click.option("--parquet-out", type=str, default="", help="Directory to export decoded events to")
@click.option("--save", "store_path", type=str, default="", help="JSONL saved-query store to append the result to")
@click.pass_context
def events_cmd(ctx, address, from_date, to_date, rpc, max_pages, as_json, parquet_out, store_path):
    """Fetch and decode the events emitted by ADDRESS."""
    cfg = _settings(ctx, rpc, events_max_pages=max_pages)

    async def run():
        async with _make_rpc(cfg) as client:
            result = await fetch_events(client, address, from_date, to_date, settings=cfg)
        if parquet_out:
            path = await ParquetEventSink(parquet_out).write_events(
                f"events_{result.contract_address}_{_now_ts_str()}", result.decoded_events)
            err_console.print(f"[dim]wrote {result.total_event_count} events → {path}[/]", highlight=False)
        if store_path:
            qid = await _save(store_path, "events", result, from_date, to_date)
            err_console.print(f"[dim]saved query {qid}[/]")
        return result

    result = _run(run(), as_json)
    if as_json:
        click.echo(json.dumps(success_report(result), indent=2))
    else:
        _print_events(result)

@cli.command("endpoints")
@_rpc_option
@click.pass_context
def endpoints_cmd(ctx, rpc):
    """Check every configured endpoint with starknet_chainId."""
    cfg = _settings(ctx, rpc)
    health = _run(check_endpoints(cfg.rpc_endpoints, timeout_s=cfg.timeout_s), False)
    t = Table("endpoint", "status", "chain id", "latency (ms)", "error")
    for h in health:
        t.add_row(h.url, "[green]ok[/]" if h.ok else "[red]down[/]", h.chain_id or "-",
                  f"{h.latency_ms:.1f}" if h.latency_ms is not None else "-", h.error or "")
    console.print(t)
    if not any(h.ok for h in health):
        raise click.ClickException("All RPC endpoints failed")

@cli.command("queries")
@click.argument("store_path")
@click.option("--id", "query_id", default=None, help="Print one saved query as JSON")
@click.option("--limit", type=int, default=50, show_default=True)
def queries_cmd(store_path, query_id, limit):
    """List the queries saved in STORE_PATH."""
    store = JSONLQueryStore(store_path)
    if query_id:
        q = asyncio.run(store.get(query_id))
        if q is None:
            raise click.ClickException(f"no saved query with id {query_id}")
        click.echo(json.dumps(q.payload, indent=2))
        return
    rows = asyncio.run(store.list(limit))
    t = Table("id", "kind", "contract", "from", "to", "saved at (UTC)")
    for q in rows:
        saved = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(q.created_at))
        t.add_row(q.query_id, q.kind, q.contract_address, q.from_date or "-", q.to_date or "-", saved)
    console.print(t)

if __name__ == "__main__":
    cli()
