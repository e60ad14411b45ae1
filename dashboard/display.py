"""
Main Dashboard Display - terminal view of the telemetry engine.

Renders the engine's latest snapshot into a rich Layout and keeps it
fresh with rich Live. Rendering never mutates engine state.
"""

import asyncio
from typing import Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live

from core.engine import EngineSnapshot, TelemetryEngine
from core.logging_utils import get_logger, suppress_console_logging
from dashboard.panels import (
    render_activity_panel,
    render_advisory_panel,
    render_market_panel,
    render_positions_panel,
    render_stats_panel,
    render_top_bar,
    render_triggers_panel,
)

logger = get_logger(__name__)

REFRESH_SECONDS = 0.5


class Dashboard:
    """Clean, modular terminal dashboard."""

    def __init__(self, engine: TelemetryEngine, console: Optional[Console] = None):
        self.engine = engine
        self.console = console or Console()

    def render(self, snapshot: Optional[EngineSnapshot] = None) -> Layout:
        """Render the full dashboard layout."""
        snapshot = snapshot or self.engine.snapshot

        layout = Layout()
        layout.split_column(
            Layout(name="header", size=1),
            Layout(name="main"),
            Layout(name="footer", size=5),
        )

        layout["main"].split_row(
            Layout(name="left", ratio=3),
            Layout(name="right", ratio=2),
        )

        # Left column: Market + Triggers
        layout["left"].split_column(
            Layout(name="market", ratio=3),
            Layout(name="triggers", ratio=2),
        )

        # Right column: Positions + Activity + Performance
        layout["right"].split_column(
            Layout(name="positions", ratio=1),
            Layout(name="activity", ratio=2),
            Layout(name="stats", ratio=1),
        )

        layout["header"].update(render_top_bar(snapshot, self.engine.utc_clock))
        layout["market"].update(render_market_panel(snapshot))
        layout["triggers"].update(render_triggers_panel(snapshot))
        layout["positions"].update(render_positions_panel(snapshot))
        layout["activity"].update(render_activity_panel(snapshot))
        layout["stats"].update(render_stats_panel(snapshot))
        layout["footer"].update(render_advisory_panel(snapshot))

        return layout


async def run_dashboard(engine: TelemetryEngine, log_file: Optional[str] = "alphawatch.log") -> None:
    """Drive the dashboard with rich Live until cancelled or the engine closes."""
    dashboard = Dashboard(engine)

    # Console logging would tear the full-screen view; keep it in a file meanwhile
    suppress_console_logging(True, log_file=log_file)
    try:
        with Live(
            dashboard.render(),
            console=dashboard.console,
            refresh_per_second=2,
            screen=True,
        ) as live:
            while not engine.closed:
                try:
                    live.update(dashboard.render())
                except Exception as e:
                    logger.warning("[DASH] Render failed: %s", e)
                await asyncio.sleep(REFRESH_SECONDS)
    finally:
        suppress_console_logging(False)
