"""UI module - web API over the telemetry engine."""

from ui.web_server import create_app, run_server, run_server_async, snapshot_to_dict

__all__ = [
    "create_app",        # FastAPI app bound to an engine
    "run_server",        # Run web server (blocking)
    "run_server_async",  # Run web server as an async task
    "snapshot_to_dict",  # JSON form of an engine snapshot
]
