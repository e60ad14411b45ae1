#!/usr/bin/env python3
"""
AlphaWatch - live dashboard for an automated trading bot

Usage:
    python run.py                   # Terminal dashboard
    python run.py --web             # Web API + websocket stream
    python run.py --web -p 9000     # Web API on a custom port
    python run.py --help            # Show all options

Connects to the bot's tables when SUPABASE_URL and SUPABASE_KEY are set,
otherwise starts disconnected with empty views.
"""

import argparse
import asyncio

from core.config import settings
from core.engine import TelemetryEngine
from core.logging_utils import get_logger, setup_logging

logger = get_logger(__name__)


def build_adapter(cfg=settings):
    """PostgREST poller when credentials are configured, else None."""
    if not cfg.is_configured:
        logger.warning("[MAIN] SUPABASE_URL / SUPABASE_KEY not set; no transport")
        return None
    from datafeeds.collectors.rest_poller import RestPoller
    from datafeeds.rest_client import RestClient
    return RestPoller(RestClient(cfg), cfg)


async def _run(args) -> None:
    engine = TelemetryEngine(settings, build_adapter(settings))
    await engine.start()
    try:
        if args.web:
            from ui.web_server import run_server_async
            print(f"Web dashboard API: http://localhost:{args.port}/api/state")
            await run_server_async(engine, host=args.host, port=args.port)
        else:
            from dashboard.display import run_dashboard
            await run_dashboard(engine)
    finally:
        await engine.close()


def main():
    parser = argparse.ArgumentParser(
        prog='alphawatch',
        description='AlphaWatch - live trading bot dashboard',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py              Terminal dashboard
  python run.py --web        Web API on 0.0.0.0:8080
"""
    )

    parser.add_argument('--web', action='store_true',
                        help='Serve the web API instead of the terminal dashboard')
    parser.add_argument('--host', type=str, default='0.0.0.0',
                        help='Web API bind host (default: 0.0.0.0)')
    parser.add_argument('-p', '--port', type=int, default=8080,
                        help='Web API port (default: 8080)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Override LOG_LEVEL (DEBUG, INFO, WARNING, ...)')

    args = parser.parse_args()
    setup_logging(args.log_level or settings.log_level)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
