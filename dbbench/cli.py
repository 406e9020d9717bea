"""
Data-Access Benchmark - CLI

Usage:
    dbbench run --strategy raw,dal --warmup 5 --iterations 50
    dbbench run -s raw -c findUserById,batchGetUsers -f all
    dbbench list-strategies
    dbbench list-cases
"""

import asyncio
import logging
import sqlite3
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .benchmark.cases import CASES
from .benchmark.errors import CaseSetupError, ConfigurationError
from .benchmark.reporter import REPORT_FORMATS, ResultAggregator, format_ms
from .benchmark.runner import BenchmarkConfig, BenchmarkOrchestrator, RunResult
from .config import Config
from .strategies import STRATEGIES, list_strategies
from .strategies.base import StrategyError

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(verbose: bool = False, debug: bool = False):
    """Configure logging level."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )

    logging.getLogger("dbbench").setLevel(level)


def _split_names(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output (INFO level)')
@click.option('--debug', is_flag=True, help='Enable debug output (DEBUG level, shows per-iteration failures)')
@click.pass_context
def cli(ctx, verbose, debug):
    """
    Data-Access Benchmark Tool

    Runs a fixed set of query cases against interchangeable data-access
    strategies and reports comparable latency statistics.

    Use -v for verbose output, --debug for per-iteration failure logs.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug
    setup_logging(verbose, debug)


@cli.command()
@click.option('--strategy', '-s', 'strategies', default=None,
              help=f"Comma-separated strategies ({'|'.join(STRATEGIES)}), default: all")
@click.option('--case', '-c', 'cases', default=None, help='Comma-separated case names, default: all')
@click.option('--warmup', '-w', default=None, type=click.IntRange(min=0), help='Warmup iterations')
@click.option('--iterations', '-n', default=None, type=click.IntRange(min=0), help='Measured iterations')
@click.option('--timeout', '-t', default=None, type=click.FloatRange(min=0, min_open=True),
              help='Per-iteration deadline in seconds')
@click.option('--out', '-o', 'out_dir', default=None, type=click.Path(file_okay=False),
              help='Output directory for reports')
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'csv', 'md', 'all']), default='all',
              help='Output format')
def run(strategies, cases, warmup, iterations, timeout, out_dir, fmt):
    """
    Run the benchmark matrix.

    Example:
        dbbench run -s raw,dal -c findUserById -w 5 -n 100
    """
    env = BenchmarkConfig.from_env()
    config = BenchmarkConfig(
        warmup=env.warmup if warmup is None else warmup,
        iterations=env.iterations if iterations is None else iterations,
        timeout=env.timeout if timeout is None else timeout,
    )

    orchestrator = BenchmarkOrchestrator(config=config)

    try:
        strategy_names, selected = orchestrator.validate(_split_names(strategies), _split_names(cases))
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(f"\n[bold blue]Data-Access Benchmark[/bold blue]")
    console.print(f"warmup=[cyan]{config.warmup}[/cyan]  iterations=[cyan]{config.iterations}[/cyan]"
                  + (f"  timeout=[cyan]{config.timeout}s[/cyan]" if config.timeout else ""))
    console.print(f"Strategies: [cyan]{', '.join(strategy_names)}[/cyan]")
    console.print(f"Cases     : [cyan]{', '.join(c.name for c in selected)}[/cyan]\n")

    def on_case_start(strategy_name, bench_case):
        logger.info(f"{strategy_name}: {bench_case.name}")

    def on_result(result: RunResult):
        err_style = "red" if result.errors else "green"
        console.print(
            f"  {result.strategy:<6} {result.case:<28} "
            f"mean={result.mean:8.2f}ms  p50={result.p50:8.2f}ms  "
            f"p95={result.p95:8.2f}ms  [{err_style}]err={result.errors}[/{err_style}]"
        )

    orchestrator.on_case_start(on_case_start).on_result(on_result)

    try:
        with console.status("Running benchmark..."):
            asyncio.run(orchestrator.run(strategy_names, [c.name for c in selected]))
    except CaseSetupError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except (StrategyError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error initializing strategy: {e}[/red]")
        console.print("Make sure your .env file is configured correctly.")
        sys.exit(1)

    formats = REPORT_FORMATS if fmt == 'all' else (fmt,)
    output_dir = Config.ensure_directories(Path(out_dir) if out_dir else None)

    try:
        paths = orchestrator.aggregator.write_all(output_dir, formats)
    except OSError as e:
        console.print(f"[red]Error writing reports to {output_dir}: {e}[/red]")
        sys.exit(1)

    _print_summary_table(orchestrator.aggregator)

    console.print("\n[bold]Results:[/bold]")
    for path in paths.values():
        console.print(f"  [green]{path}[/green]")


def _print_summary_table(aggregator: ResultAggregator):
    """Print results as a table."""
    table = Table(title="Benchmark Summary")
    table.add_column("Strategy", style="cyan")
    table.add_column("Case")
    for label in ("Mean", "P50", "P95", "P99", "Min", "Max"):
        table.add_column(f"{label} (ms)", justify="right")
    table.add_column("Errors", justify="right")

    for r in aggregator.results:
        table.add_row(
            r.strategy,
            r.case,
            format_ms(r.mean),
            format_ms(r.p50),
            format_ms(r.p95),
            format_ms(r.p99),
            format_ms(r.min),
            format_ms(r.max),
            f"[red]{r.errors}[/red]" if r.errors else "0",
        )

    console.print()
    console.print(table)


@cli.command('list-strategies')
def list_strategies_cmd():
    """List available strategies."""
    console.print("\n[bold]Available Strategies:[/bold]\n")

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Display Name")
    table.add_column("Config")

    for name in list_strategies():
        strategy_class = STRATEGIES[name]
        config = Config.get_strategy_config(name) or {}
        table.add_row(
            name,
            strategy_class.display_name,
            ", ".join(f"{k}={v}" for k, v in config.items()),
        )

    console.print(table)


@cli.command('list-cases')
def list_cases_cmd():
    """List registered benchmark cases."""
    console.print("\n[bold]Registered Cases:[/bold]\n")

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Setup", justify="center")
    table.add_column("Teardown", justify="center")

    for bench_case in CASES:
        table.add_row(
            bench_case.name,
            bench_case.description,
            "yes" if bench_case.setup else "-",
            "yes" if bench_case.teardown else "-",
        )

    console.print(table)
    console.print("\nUse: dbbench run -c <case>[,<case>...]")


@cli.command('init')
def init():
    """Initialize the report directory and check configuration."""
    console.print("\n[bold blue]Initializing Benchmark Project[/bold blue]\n")

    report_dir = Config.ensure_directories()
    console.print(f"✅ Created report directory: {report_dir}")

    env_file = Path(".env")
    if not env_file.exists():
        console.print("\n[yellow]⚠️  No .env file found, using defaults.[/yellow]")
        console.print("Copy .env.example to .env to change them:")
        console.print("  cp .env.example .env")
    else:
        console.print("✅ .env file exists")

    console.print("\n[bold]Next steps:[/bold]")
    console.print("1. Adjust BENCH_* and SQLITE_PATH in .env if needed")
    console.print("2. Run: dbbench list-cases")
    console.print("3. Run: dbbench run -s raw,dal")


if __name__ == "__main__":
    cli()
