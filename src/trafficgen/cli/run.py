"""``trafficgen run``: generate traffic until interrupted, then summarise."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from trafficgen._internal.config import SuccessPolicy, load_config
from trafficgen._internal.errors import ConfigError, TrafficGenError
from trafficgen._internal.logging import setup_logging
from trafficgen.engine.controller import EXIT_CONFIG_ERROR, EXIT_START_FAILED, run_generator

if TYPE_CHECKING:
    from trafficgen._internal.config import GeneratorConfig
    from trafficgen.engine.controller import RunReport
    from trafficgen.metrics.models import AggregateStats

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _make_live_table(stats: AggregateStats | None) -> Table:
    """Build the live statistics table.

    Args:
        stats: Latest statistics, or None before the first report.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if stats is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{stats.elapsed_seconds:.0f}s")
    table.add_row("Active Workers", f"{stats.active_workers}/{stats.workers}")
    table.add_row("Sent", str(stats.sent))
    table.add_row("Succeeded", str(stats.succeeded))
    table.add_row("Failed", str(stats.failed))
    table.add_row("Requests/sec", f"{stats.requests_per_second:.1f}")
    table.add_row("p50 Latency", f"{stats.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{stats.latency_p95:.1f}ms")
    return table


def _print_summary(report: RunReport) -> None:
    """Print the final statistics and the shutdown outcome."""
    stats = report.stats
    table = Table(
        title="Traffic Summary",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Stopped By", report.stop_reason)
    table.add_row("Duration", f"{stats.elapsed_seconds:.1f}s")
    table.add_row("Workers", str(stats.workers))
    table.add_row("Sent", str(stats.sent))
    table.add_row("Succeeded", str(stats.succeeded))
    table.add_row("Failed", str(stats.failed))
    table.add_row("Error Rate", f"{stats.error_rate * 100:.2f}%")
    table.add_row("Avg Requests/sec", f"{stats.requests_per_second:.1f}")
    table.add_row("Latency min/avg/max", (
        f"{stats.latency_min:.1f} / {stats.latency_avg:.1f} / {stats.latency_max:.1f}ms"
    ))
    table.add_row("p50 / p95 / p99", (
        f"{stats.latency_p50:.1f} / {stats.latency_p95:.1f} / {stats.latency_p99:.1f}ms"
    ))
    console.print(table)

    if stats.responses_by_status or stats.errors_by_type:
        breakdown = Table(
            title="Outcome Breakdown",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        breakdown.add_column("Outcome")
        breakdown.add_column("Count", justify="right")
        for status, count in stats.responses_by_status.items():
            breakdown.add_row(f"HTTP {status}", str(count))
        for error_type, count in stats.errors_by_type.items():
            if not error_type.startswith("HTTP "):
                breakdown.add_row(error_type, str(count))
        console.print(breakdown)

    if report.join.clean:
        console.print(
            f"[green]All workers stopped cleanly[/green] "
            f"in {report.join.elapsed_seconds:.2f}s."
        )
    else:
        ids = ", ".join(str(i) for i in report.join.timed_out_workers)
        console.print(
            f"[red]TIMED OUT:[/red] worker(s) {ids} did not stop within the "
            f"grace period and were force-cancelled."
        )


def _print_banner(config: GeneratorConfig) -> None:
    workers = config.workers
    duration = f"{config.duration}s" if config.duration is not None else "until Ctrl+C"
    console.print(
        Panel(
            f"[bold]Target:[/bold]   {workers.target}\n"
            f"[bold]Workers:[/bold]  {workers.worker_count}\n"
            f"[bold]Delay:[/bold]    {workers.request_interval}s\n"
            f"[bold]Timeout:[/bold]  {workers.request_timeout}s\n"
            f"[bold]Policy:[/bold]   {workers.success_policy.value}\n"
            f"[bold]Duration:[/bold] {duration}",
            title="trafficgen",
            border_style="cyan",
        )
    )


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    url: str | None = typer.Argument(
        None,
        help="Target URL. Falls back to TRAFFICGEN_URL.",
        show_default=False,
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Concurrent workers [env: TRAFFICGEN_WORKERS, default: 15].",
    ),
    delay: float | None = typer.Option(
        None,
        "--delay",
        help="Seconds between requests per worker [env: TRAFFICGEN_DELAY, default: 0.0667].",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Per-request timeout in seconds [env: TRAFFICGEN_TIMEOUT, default: 10].",
    ),
    grace_period: float | None = typer.Option(
        None,
        "--grace-period",
        "-g",
        help="Seconds workers get to stop after Ctrl+C [env: TRAFFICGEN_GRACE_PERIOD, default: 5].",
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Stop automatically after this many seconds [env: TRAFFICGEN_DURATION].",
    ),
    success_policy: SuccessPolicy | None = typer.Option(
        None,
        "--success-policy",
        help="'any' counts every HTTP response as success; 'status' fails status >= 400.",
        case_sensitive=False,
    ),
    report_interval: float | None = typer.Option(
        None,
        "--report-interval",
        help="Seconds between live statistics refreshes [env: TRAFFICGEN_REPORT_INTERVAL, default: 1].",
    ),
    no_live: bool = typer.Option(
        False,
        "--no-live",
        help="Disable the live statistics table.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging, one line per request.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as one JSON object per line.",
    ),
) -> None:
    """Send concurrent GET requests to URL until interrupted."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        json_format=json_logs,
    )

    try:
        config = load_config(
            url,
            workers=workers,
            delay=delay,
            timeout=timeout,
            grace_period=grace_period,
            duration=duration,
            success_policy=success_policy,
            report_interval=report_interval,
        )
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc

    _print_banner(config)

    # Per-request DEBUG lines and a live table fight over the terminal
    show_live = not (no_live or verbose)
    live = (
        Live(_make_live_table(None), console=console, refresh_per_second=2, transient=True)
        if show_live
        else None
    )

    def _on_stats(stats: AggregateStats) -> None:
        if live is not None:
            live.update(_make_live_table(stats))

    try:
        with live if live is not None else nullcontext():
            report = run_generator(config, on_stats=_on_stats)
    except TrafficGenError as exc:
        console.print(f"[red]Failed to start:[/red] {exc}")
        raise typer.Exit(code=EXIT_START_FAILED) from exc

    _print_summary(report)
    raise typer.Exit(code=report.exit_code)
