"""Tests for terminal dashboard panels."""

import io
from datetime import datetime, timedelta, timezone

from rich.console import Console

from core.engine import EngineSnapshot, TelemetryEngine
from core.events import ChangeKind, StreamChange, StreamName
from dashboard.display import Dashboard
from dashboard.formatting import format_currency, format_percentage, format_pnl, format_time_ago, format_uptime
from dashboard.panels import (
    render_activity_panel,
    render_market_panel,
    render_positions_panel,
    render_stats_panel,
    render_top_bar,
    render_triggers_panel,
)
from tests.test_helpers import T0, analysis_row, status_row, trade_row


def _text(renderable) -> str:
    console = Console(file=io.StringIO(), width=200, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


def _populated_engine(settings) -> TelemetryEngine:
    now = datetime.now(timezone.utc)
    engine = TelemetryEngine(settings)
    for stream, record in (
        (StreamName.TRADES, trade_row(id="t1", pair="TEST/USDT", ts=(now - timedelta(minutes=5)).isoformat(),
                                      price=50, amount=1, strategy="Grid")),
        (StreamName.TRADES, trade_row(id="t2", pair="TEST/USDT", ts=(now - timedelta(minutes=1)).isoformat(),
                                      status="closed", pnl=5, strategy="Grid")),
        (StreamName.ANALYSIS, analysis_row(id="a1", pair="TEST/USDT", ts=now.isoformat(), rsi=31)),
        (StreamName.STATUS, status_row(id="s1", ts=now.isoformat(), capital=1500, shorting_enabled=True,
                                       leverage_level=5, uptime_seconds=7260, bot_state="running")),
    ):
        engine.apply_change(StreamChange(stream=stream, kind=ChangeKind.INSERT, record=record))
    return engine


def test_panels_handle_empty_snapshot():
    empty = EngineSnapshot()
    assert "No instruments yet" in _text(render_market_panel(empty))
    assert "No instruments" in _text(render_triggers_panel(empty))
    assert "No open positions" in _text(render_positions_panel(empty))
    assert "No activity yet" in _text(render_activity_panel(empty))
    assert "No trades yet" in _text(render_stats_panel(empty))
    assert "UNKNOWN" in _text(render_top_bar(empty, "12:00:00 UTC"))


def test_panels_render_engine_views(test_settings):
    snap = _populated_engine(test_settings).snapshot

    assert "TEST/USDT" in _text(render_market_panel(snap))
    assert "Imminent" in _text(render_triggers_panel(snap))
    positions = _text(render_positions_panel(snap))
    assert "$50.00" in positions
    activity = _text(render_activity_panel(snap))
    assert "Closed TEST/USDT on Binance, P&L +5.00" in activity
    assert "+$5.00" in _text(render_stats_panel(snap))


def test_top_bar_shows_status(test_settings):
    snap = _populated_engine(test_settings).snapshot
    bar = _text(render_top_bar(snap, "09:00:00 UTC"))

    assert "$1,500.00" in bar
    assert "RUNNING" in bar
    assert "Shorting ON" in bar
    assert "Lev 5x" in bar
    assert "Up 2h 1m" in bar
    assert "09:00:00 UTC" in bar


def test_dashboard_layout_renders(test_settings):
    dashboard = Dashboard(_populated_engine(test_settings), console=Console(file=io.StringIO(), width=200))
    layout = dashboard.render()
    assert layout["market"] is not None
    assert "TEST/USDT" in _text(layout)


def test_formatters():
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(-3) == "-$3.00"
    assert format_pnl(12) == "+$12.00"
    assert format_pnl(-3.4) == "-$3.40"
    assert format_percentage(2) == "+2.00%"
    assert format_percentage(-0.5) == "-0.50%"
    assert format_uptime(59) == "0m"
    assert format_uptime(3 * 3600 + 120) == "3h 2m"
    assert format_time_ago(T0 - timedelta(minutes=5), now=T0) == "5m ago"
    assert format_time_ago(None) == "never"
