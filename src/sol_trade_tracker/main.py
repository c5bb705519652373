"""
Main CLI application for Solana Trade Tracker.
"""

from .utils import (
    is_valid_solana_address,
    summarize_reports,
    sort_reports,
    format_usd,
    format_price,
    format_percent,
    shorten_address,
    time_ago,
    SORT_KEYS,
)
from .models import TokenReport, PositionStatus
from typing import Optional, List
from datetime import datetime, timezone
import csv
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel

from .config import Config
from .api_clients import (
    HeliusClient,
    DexScreenerClient,
    GeckoTerminalClient,
    TransactionFetchError,
)
from .orchestrator import ReportOrchestrator

# Logging setup
import logging
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="sol-tracker",
    help="Analyze a Solana wallet's swap history: PnL, missed gains and roundtrips per token."
)

console = Console()


def load_config() -> Config:
    """Load application configuration."""
    try:
        return Config.from_env()
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        console.print(
            "\n[yellow]Please create a .env file with your API key:[/yellow]")
        console.print("HELIUS_API_KEY=your_key_here")
        raise typer.Exit(1)


def run_analysis(wallet: str, config: Config) -> List[TokenReport]:
    """Run the full wallet analysis behind a progress spinner."""

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting analysis...", total=None)

        orchestrator = ReportOrchestrator(
            config,
            transaction_client=HeliusClient(config),
            price_client=DexScreenerClient(config),
            candle_client=GeckoTerminalClient(config),
            on_progress=lambda message: progress.update(task, description=message),
        )
        reports = orchestrator.analyze_wallet(wallet)

    return reports


def _pnl_style(value: float) -> str:
    return "green" if value >= 0 else "red"


def _status_label(report: TokenReport) -> str:
    if report.is_roundtrip:
        return "[magenta]🔄 Roundtrip[/magenta]"
    if report.status == PositionStatus.HOLDING:
        return "[green]🟢 Holding[/green]"
    return "[dim]⚫ Closed[/dim]"


def display_summary(reports: List[TokenReport]):
    """Display wallet-level totals in a panel."""
    summary = summarize_reports(reports)

    panel = Panel(
        f"Tokens Traded: [bold]{summary.tokens_traded}[/bold]\n"
        f"Total Invested: [bold]{format_usd(summary.total_invested)}[/bold]\n"
        f"Realized P&L: [{_pnl_style(summary.total_realized_pnl)}]"
        f"{format_usd(summary.total_realized_pnl)}[/{_pnl_style(summary.total_realized_pnl)}]\n"
        f"Unrealized P&L: [{_pnl_style(summary.total_unrealized_pnl)}]"
        f"{format_usd(summary.total_unrealized_pnl)}[/{_pnl_style(summary.total_unrealized_pnl)}]\n"
        f"Missed Gains: [yellow]{format_usd(summary.total_missed_gains)}[/yellow]\n"
        f"Win Rate: {summary.win_rate:.1f}% ({summary.winners}/{summary.tokens_traded})\n"
        f"Roundtrips: [magenta]{summary.roundtrips}[/magenta]",
        title="Wallet Summary",
        expand=False
    )
    console.print(panel)


def display_results_table(wallet: str, reports: List[TokenReport]):
    """Display per-token results in a rich table."""

    if not reports:
        console.print("[yellow]No directional trades found.[/yellow]")
        return

    table = Table(title=f"\nTrades for {shorten_address(wallet)}")

    table.add_column("Token", style="cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Invested", justify="right")
    table.add_column("Avg Buy", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Total P&L", justify="right")
    table.add_column("P&L %", justify="right")
    table.add_column("Max Gain", style="green", justify="right")
    table.add_column("Drawdown", style="red", justify="right")
    table.add_column("Missed", style="yellow", justify="right")
    table.add_column("Last Trade", style="white", no_wrap=True)

    for report in reports:
        pnl_pct = (report.unrealized_pnl_percent
                   if report.status == PositionStatus.HOLDING
                   else report.realized_pnl_percent)
        style = _pnl_style(report.total_pnl)
        missed = format_percent(report.missed_gains_percent) if report.sells else "-"

        table.add_row(
            report.symbol or shorten_address(report.mint),
            _status_label(report),
            format_usd(report.total_buy_amount),
            format_price(report.avg_buy_price),
            format_price(report.current_price),
            f"[{style}]{format_usd(report.total_pnl)}[/{style}]",
            f"[{style}]{format_percent(pnl_pct)}[/{style}]",
            format_percent(report.max_gain_possible),
            format_percent(report.max_drawdown),
            missed,
            time_ago(report.last_trade_timestamp) if report.last_trade_timestamp else "-",
        )

    console.print(table)


CSV_FIELDS = [
    'mint', 'symbol', 'name', 'status', 'is_roundtrip', 'current_price',
    'total_buy_amount', 'total_buy_tokens', 'avg_buy_price',
    'total_sell_amount', 'total_sell_tokens', 'avg_sell_price',
    'realized_pnl', 'realized_pnl_percent', 'tokens_held',
    'unrealized_value', 'unrealized_pnl', 'unrealized_pnl_percent',
    'max_price_after_buy', 'min_price_after_buy', 'max_price_after_sell',
    'max_gain_possible', 'max_drawdown', 'missed_gains', 'missed_gains_percent',
]


def export_to_csv(reports: List[TokenReport], filepath: str):
    """Export token reports to CSV, one row per token."""
    with open(filepath, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(CSV_FIELDS)

        for report in reports:
            row = []
            for field_name in CSV_FIELDS:
                value = getattr(report, field_name)
                if isinstance(value, PositionStatus):
                    value = value.value
                row.append(value)
            writer.writerow(row)


def _trade_to_dict(trade) -> dict:
    return {
        'signature': trade.signature,
        'timestamp': trade.timestamp,
        'date': datetime.fromtimestamp(trade.timestamp, tz=timezone.utc).isoformat(),
        'direction': trade.direction.value,
        'asset_amount': trade.asset_amount,
        'stable_amount': trade.stable_amount,
        'unit_price': trade.unit_price,
        'stable_mint': trade.stable_mint,
    }


def export_to_json(wallet: str, reports: List[TokenReport], filepath: str):
    """Export the summary and token reports, including trade history, to JSON."""
    summary = summarize_reports(reports)
    data = {
        'wallet': wallet,
        'analysis_date': datetime.now(timezone.utc).isoformat(),
        'summary': {
            'tokens_traded': summary.tokens_traded,
            'total_invested': summary.total_invested,
            'total_realized_pnl': summary.total_realized_pnl,
            'total_unrealized_pnl': summary.total_unrealized_pnl,
            'total_missed_gains': summary.total_missed_gains,
            'winners': summary.winners,
            'win_rate': summary.win_rate,
            'roundtrips': summary.roundtrips,
        },
        'tokens': []
    }

    for report in reports:
        token_data = {field_name: getattr(report, field_name) for field_name in CSV_FIELDS}
        token_data['status'] = report.status.value
        token_data['market_cap'] = report.market_cap
        token_data['pair_address'] = report.pair_address
        token_data['price_change_24h'] = report.price_change_24h
        token_data['buys'] = [_trade_to_dict(t) for t in report.buys]
        token_data['sells'] = [_trade_to_dict(t) for t in report.sells]
        data['tokens'].append(token_data)

    with open(filepath, 'w') as jsonfile:
        json.dump(data, jsonfile, indent=2, default=str)


@app.command()
def analyze(
    wallet: str = typer.Argument(..., help="Solana wallet address"),
    output_format: Optional[str] = typer.Option(
        None, "--format", "-f", help="Output format: table, csv, json"),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output file path"),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Number of recent swap transactions to fetch"),
    sort_by: str = typer.Option(
        "pnl", "--sort", "-s", help="Sort by: pnl, missed, invested, recent"),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Maximum concurrent price lookups"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"),
):
    """Analyze the swap history of a Solana wallet."""

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    if not is_valid_solana_address(wallet):
        console.print(f"[red]Invalid Solana wallet address: {wallet}[/red]")
        raise typer.Exit(1)

    if sort_by not in SORT_KEYS:
        console.print(
            f"[red]Unknown sort key '{sort_by}'. Use one of: {', '.join(SORT_KEYS)}[/red]")
        raise typer.Exit(1)

    config = load_config()
    if output_format:
        config.output_format = output_format
    if limit:
        config.max_transactions = limit
    if workers:
        config.max_concurrent_lookups = workers

    console.print(f"[cyan]Analyzing wallet {wallet}...[/cyan]")
    try:
        reports = run_analysis(wallet, config)
    except TransactionFetchError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    reports = sort_reports(reports, sort_by)

    if config.output_format == "table" or not output_file:
        display_summary(reports)
        display_results_table(wallet, reports)

    if output_file:
        if config.output_format == "csv":
            export_to_csv(reports, output_file)
            console.print(f"[green]Results exported to {output_file}[/green]")
        elif config.output_format == "json":
            export_to_json(wallet, reports, output_file)
            console.print(f"[green]Results exported to {output_file}[/green]")
        else:
            console.print(
                f"[yellow]Unsupported output format: {config.output_format}[/yellow]")


@app.command()
def setup():
    """Setup the application by creating a .env file template."""
    env_content = """# Solana Trade Tracker Configuration

# Required: Helius API Key (get a free key from https://helius.dev)
HELIUS_API_KEY=your_helius_api_key_here

# Fetch Settings
MAX_TRANSACTIONS=100
CANDLE_LIMIT=168
RATE_LIMIT_DELAY=0.2
MAX_CONCURRENT_LOOKUPS=1
REQUEST_TIMEOUT=15
MAX_RETRIES=2
# RETRY_BASE_DELAY=0.5

# Analysis Heuristics
ROUNDTRIP_MULTIPLIER=1.5
HOLDING_DUST_THRESHOLD=0.001

# Output Settings
OUTPUT_FORMAT=table

# Endpoint Overrides
# HELIUS_BASE_URL=https://api-mainnet.helius-rpc.com/v0
# DEXSCREENER_BASE_URL=https://api.dexscreener.com
# GECKOTERMINAL_BASE_URL=https://api.geckoterminal.com/api/v2
"""

    env_path = Path(".env")
    if env_path.exists():
        console.print("[yellow].env file already exists![/yellow]")
        if not typer.confirm("Overwrite existing .env file?"):
            return

    with open(env_path, 'w') as f:
        f.write(env_content)

    console.print(f"[green]Created .env file at {env_path.absolute()}[/green]")
    console.print(
        "\n[yellow]Please edit the .env file and add your API key:[/yellow]")
    console.print("1. Get a Helius API key from https://helius.dev")
    console.print(
        "2. Replace 'your_helius_api_key_here' with your real key")
    console.print("3. Run: sol-tracker analyze <wallet_address>")


if __name__ == "__main__":
    app()
