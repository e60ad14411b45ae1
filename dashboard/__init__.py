"""
Dashboard module - Terminal UI for the telemetry engine.

Built with Rich. Each panel is a separate component for easy maintenance.
"""

from dashboard.display import Dashboard, run_dashboard

__all__ = ["Dashboard", "run_dashboard"]
