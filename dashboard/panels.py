"""
Dashboard Panels - Individual UI components.

Each function renders one read view of an ``EngineSnapshot``. Panels only
read the snapshot; they never reach back into the engine.
"""

from datetime import datetime, timezone
from typing import Optional

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.activity_feed import ActivityKind
from core.engine import EngineSnapshot
from logic.market_overview import MarketCondition, RowTint
from logic.positions import total_exposure
from logic.trigger_proximity import Direction, TriggerBand
from dashboard.formatting import (
    format_currency,
    format_number,
    format_percentage,
    format_pnl,
    format_time_ago,
    format_uptime,
    pnl_style,
)

CONDITION_STYLES = {
    MarketCondition.TRENDING: "green",
    MarketCondition.VOLATILE: "yellow",
    MarketCondition.SIDEWAYS: "dim",
}

TINT_STYLES = {
    RowTint.BULLISH: "green",
    RowTint.BEARISH: "red",
    RowTint.NEUTRAL: "white",
}

BAND_STYLES = {
    TriggerBand.IMMINENT: "bold green",
    TriggerBand.GETTING_CLOSE: "yellow",
    TriggerBand.WATCHING: "dim",
}

ACTIVITY_STYLES = {
    ActivityKind.TRADE_OPEN: "green",
    ActivityKind.SHORT_OPEN: "magenta",
    ActivityKind.TRADE_CLOSE: "cyan",
    ActivityKind.TRADE_CANCEL: "dim",
    ActivityKind.ANALYSIS: "yellow",
}


def _flag(up: bool) -> tuple[str, str]:
    return ("●", "green") if up else ("●", "red")


def render_top_bar(snapshot: EngineSnapshot, clock: str = "") -> Text:
    """Render the status bar at top of dashboard."""
    bar = Text()
    status = snapshot.status
    report = snapshot.staleness

    bar.append("CAPITAL: ", style="dim")
    bar.append(format_currency(snapshot.performance.capital), style="bold white")
    if status and status.delta_balance_inr is not None:
        bar.append(f" (₹{status.delta_balance_inr:,.0f} on Delta)", style="dim")
    bar.append(" │ ")

    bar.append("BOT: ", style="dim")
    if report is not None:
        state = report.bot_state.value.upper()
        bar.append(state, style="green bold" if state == "RUNNING" else "yellow")
    else:
        bar.append("UNKNOWN", style="dim")
    bar.append(" │ ")

    for label, up in (
        ("Binance", bool(report and report.binance_connected)),
        ("Delta", bool(report and report.delta_connected)),
    ):
        dot, style = _flag(up)
        bar.append(f"{label} ", style="dim")
        bar.append(dot, style=style)
        bar.append(" ")
    if report is not None and report.is_stale:
        age = "no heartbeat" if report.age_seconds is None else f"{report.age_seconds:.0f}s"
        bar.append(f"STALE ({age})", style="yellow")
    bar.append("│ ")

    if status is not None:
        bar.append("Shorting ", style="dim")
        bar.append("ON" if status.shorting_enabled else "OFF",
                   style="green" if status.shorting_enabled else "dim")
        bar.append(f" │ Lev {status.leverage_level:g}x", style="dim")
        bar.append(f" │ {status.active_strategies_count} strategies", style="dim")
        bar.append(f" │ Up {format_uptime(status.uptime_seconds)}", style="dim")
        bar.append(" │ ")

    bar.append(clock or datetime.now(timezone.utc).strftime("%H:%M:%S UTC"), style="dim")
    return bar


def render_market_panel(snapshot: EngineSnapshot, limit: int = 12) -> Panel:
    """Market overview ranked by signal strength."""
    table = Table(box=None, padding=(0, 1), expand=True)
    table.add_column("Pair", style="cyan")
    table.add_column("Ex", width=7)
    table.add_column("Price", justify="right")
    table.add_column("Cond", width=9)
    table.add_column("Strategy", style="yellow")
    table.add_column("RSI", justify="right", width=5)
    table.add_column("ADX", justify="right", width=5)
    table.add_column("Str", justify="right", width=4)

    rows = snapshot.market_overview[:limit]
    for r in rows:
        rsi = format_number(r.rsi, 1)
        table.add_row(
            r.pair,
            r.exchange.value,
            format_number(r.price, 4),
            f"[{CONDITION_STYLES[r.condition]}]{r.condition.value}[/]",
            r.strategy[:12],
            f"[{TINT_STYLES[r.tint]}]{rsi}[/]",
            format_number(r.adx, 1),
            f"{r.signal_strength:.0f}",
        )

    if not rows:
        table.add_row("[dim]No instruments yet[/]", "", "", "", "", "", "", "")

    return Panel(table, title=f"[bold cyan]Market ({len(snapshot.market_overview)})[/]", border_style="cyan")


def render_triggers_panel(snapshot: EngineSnapshot, limit: int = 10) -> Panel:
    """Instruments closest to an entry trigger."""
    table = Table(box=None, padding=(0, 1), expand=True)
    table.add_column("Pair", style="cyan")
    table.add_column("Dir", width=5)
    table.add_column("Dist", justify="right", width=6)
    table.add_column("Band", width=13)
    table.add_column("MACD", width=10)
    table.add_column("Next")

    rows = snapshot.triggers[:limit]
    for r in rows:
        direction = "[red]SHORT[/]" if r.direction == Direction.SHORT else "[green]BUY[/]"
        dist = f"{r.distance_pct:.1f}" if r.has_indicator_data or r.distance_overridden else "-"
        table.add_row(
            f"{r.pair} [dim]{r.exchange.value}[/]",
            direction,
            dist,
            f"[{BAND_STYLES[r.band]}]{r.band.value}[/]",
            r.macd_status.value,
            f"[dim]{r.next_action}[/]",
        )

    if not rows:
        table.add_row("[dim]No instruments[/]", "", "", "", "", "")

    return Panel(table, title="[bold yellow]Triggers[/]", border_style="yellow")


def render_positions_panel(snapshot: EngineSnapshot, limit: int = 8) -> Panel:
    """Render open positions."""
    table = Table(box=None, padding=(0, 1), expand=True)
    table.add_column("Pair", style="cyan")
    table.add_column("Type", width=6)
    table.add_column("Lev", justify="right", width=4)
    table.add_column("Entry", justify="right")
    table.add_column("Exposure", justify="right")
    table.add_column("P&L", justify="right")

    positions = snapshot.open_positions
    for p in positions[:limit]:
        table.add_row(
            f"{p.pair} [dim]{p.exchange.value}[/]",
            p.position_type.value.upper(),
            f"{p.leverage:g}x",
            format_number(p.entry_price, 4),
            format_currency(p.effective_exposure),
            f"[{pnl_style(p.upstream_pnl)}]{format_pnl(p.upstream_pnl)}[/]",
        )

    if not positions:
        table.add_row("[dim]No open positions[/]", "", "", "", "", "")

    return Panel(
        table,
        title=f"[bold green]Positions ({len(positions)})[/]",
        subtitle=f"[dim]{format_currency(total_exposure(positions))}[/]",
        border_style="green",
    )


def render_activity_panel(snapshot: EngineSnapshot, limit: int = 12,
                          now: Optional[datetime] = None) -> Panel:
    """Render the rolling activity feed."""
    lines = []
    for entry in snapshot.activity[:limit]:
        style = ACTIVITY_STYLES.get(entry.kind, "dim")
        ts = entry.timestamp.strftime("%H:%M:%S")
        lines.append(f"[dim]{ts}[/] [{style}]{entry.description}[/]")

    if not lines:
        lines.append("[dim]No activity yet[/]")

    last = snapshot.activity[0].timestamp if snapshot.activity else None
    return Panel(
        "\n".join(lines),
        title="[bold blue]Activity[/]",
        subtitle=f"[dim]{format_time_ago(last, now)}[/]",
        border_style="blue",
    )


def render_stats_panel(snapshot: EngineSnapshot, limit: int = 6) -> Panel:
    """Render performance summary and per-strategy stats."""
    perf = snapshot.performance
    lines = [
        f"Total P&L: [{pnl_style(perf.total_pnl)}]{format_pnl(perf.total_pnl)}[/]",
        f"Today:     [{pnl_style(perf.today_pnl)}]{format_pnl(perf.today_pnl)}[/]",
        f"Win Rate:  {perf.win_rate:.1f}%",
        f"Trades:    {perf.trade_count} ({perf.open_positions} open)",
        "",
    ]

    for stat in snapshot.strategy_stats[:limit]:
        lines.append(
            f"[yellow]{stat.strategy[:14]:<14}[/] {stat.total_trades:>3} "
            f"{format_percentage(stat.win_rate)} "
            f"[{pnl_style(stat.total_pnl)}]{format_pnl(stat.total_pnl)}[/]"
        )
    if not snapshot.strategy_stats:
        lines.append("[dim]No trades yet[/]")

    return Panel("\n".join(lines), title="[bold magenta]Performance[/]", border_style="magenta")


def render_advisory_panel(snapshot: EngineSnapshot, limit: int = 3) -> Panel:
    """Render recent non-fatal problems (failed backfills, malformed rows)."""
    if snapshot.advisories:
        lines = [f"[yellow]{msg[:90]}[/]" for msg in snapshot.advisories[:limit]]
    else:
        lines = ["[dim]No issues[/]"]
    return Panel("\n".join(lines), title="[dim]Advisories[/]", border_style="dim")
