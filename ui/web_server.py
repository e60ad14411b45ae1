"""
FastAPI server exposing the telemetry engine's read views.

The engine is attached to ``app.state`` by ``create_app``; every endpoint
reads the latest published snapshot and never mutates the store.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from core.commands import CommandError
from core.engine import EngineSnapshot, TelemetryEngine
from core.logging_utils import get_logger
from core.models.base import to_jsonable
from logic.positions import exposure_by_exchange, total_exposure
from logic.trade_export import trades_to_csv

logger = get_logger(__name__)

PUSH_INTERVAL_SECONDS = 0.5
STAT_GROUPINGS = ("strategy", "exchange", "market_type")


class CommandRequest(BaseModel):
    command: str
    params: dict[str, str] = Field(default_factory=dict)


def _stats(snapshot: EngineSnapshot, by: str) -> list[dict]:
    groups = {
        "strategy": snapshot.strategy_stats,
        "exchange": snapshot.strategy_exchange_stats,
        "market_type": snapshot.market_type_stats,
    }
    return [s.to_dict() for s in groups[by]]


def _staleness(snapshot: EngineSnapshot) -> Optional[dict]:
    report = snapshot.staleness
    if report is None:
        return None
    data = to_jsonable(report)
    data["connected"] = report.connected
    return data


def snapshot_to_dict(snapshot: EngineSnapshot, clock: str = "") -> dict:
    """Serializable form of a snapshot."""
    return {
        "ts": datetime.now(timezone.utc).isoformat(),
        "version": snapshot.version,
        "utc_clock": clock,
        "connected": snapshot.connected,
        "connectivity": _staleness(snapshot),
        "status": to_jsonable(snapshot.status),
        "performance": to_jsonable(snapshot.performance),
        "market_overview": to_jsonable(snapshot.market_overview),
        "triggers": to_jsonable(snapshot.triggers),
        "open_positions": to_jsonable(snapshot.open_positions),
        "exposure": {
            "total": total_exposure(snapshot.open_positions),
            "by_exchange": exposure_by_exchange(snapshot.open_positions),
        },
        "strategy_stats": _stats(snapshot, "strategy"),
        "activity": to_jsonable(snapshot.activity),
        "recent_trades": to_jsonable(snapshot.recent_trades),
        "exchange_filter": snapshot.exchange_filter,
        "counts": snapshot.counts,
        "advisories": list(snapshot.advisories),
    }


def create_app(engine: TelemetryEngine) -> FastAPI:
    app = FastAPI(title="AlphaWatch Dashboard API")
    app.state.engine = engine
    app.state.clients = set()

    def _engine(request: Request) -> TelemetryEngine:
        return request.app.state.engine

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for real-time snapshot updates."""
        await websocket.accept()
        clients = websocket.app.state.clients
        eng = websocket.app.state.engine
        clients.add(websocket)
        try:
            while True:
                await websocket.send_json(snapshot_to_dict(eng.snapshot, eng.utc_clock))
                await asyncio.sleep(PUSH_INTERVAL_SECONDS)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.debug("[WEB] Websocket closed: %s", e)
        finally:
            clients.discard(websocket)

    @app.get("/api/state")
    async def get_state(request: Request):
        eng = _engine(request)
        return snapshot_to_dict(eng.snapshot, eng.utc_clock)

    @app.get("/api/market")
    async def get_market(request: Request):
        return to_jsonable(_engine(request).snapshot.market_overview)

    @app.get("/api/triggers")
    async def get_triggers(request: Request):
        return to_jsonable(_engine(request).snapshot.triggers)

    @app.get("/api/positions")
    async def get_positions(request: Request):
        rows = _engine(request).snapshot.open_positions
        return {
            "positions": to_jsonable(rows),
            "total_exposure": total_exposure(rows),
            "by_exchange": exposure_by_exchange(rows),
        }

    @app.get("/api/strategies")
    async def get_strategies(request: Request, by: str = Query("strategy")):
        if by not in STAT_GROUPINGS:
            raise HTTPException(status_code=422, detail=f"by must be one of {', '.join(STAT_GROUPINGS)}")
        return _stats(_engine(request).snapshot, by)

    @app.get("/api/activity")
    async def get_activity(request: Request):
        return to_jsonable(_engine(request).snapshot.activity)

    @app.get("/api/performance")
    async def get_performance(request: Request):
        return to_jsonable(_engine(request).snapshot.performance)

    @app.get("/api/trades")
    async def get_trades(request: Request, exchange: Optional[str] = Query(None)):
        try:
            trades = _engine(request).trades_view(exchange)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
        return to_jsonable([t.to_record() for t in trades])

    @app.get("/api/trades.csv", response_class=PlainTextResponse)
    async def get_trades_csv(request: Request, exchange: Optional[str] = Query(None)):
        try:
            trades = _engine(request).trades_view(exchange)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
        return PlainTextResponse(
            trades_to_csv(trades),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="trades.csv"'},
        )

    @app.post("/api/commands")
    async def post_command(request: Request, body: CommandRequest):
        try:
            cmd = _engine(request).send_command(body.command, body.params)
        except CommandError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
        return {"success": True, "command": cmd.to_record()}

    @app.get("/api/health")
    async def health_check(request: Request):
        eng = _engine(request)
        snapshot = eng.snapshot
        return {
            "status": "ok",
            "connected": snapshot.connected,
            "transport_connected": eng.transport_connected,
            "stale": snapshot.staleness.is_stale if snapshot.staleness else True,
            "counts": snapshot.counts,
            "clients": len(request.app.state.clients),
        }

    return app


def run_server(engine: TelemetryEngine, host: str = "0.0.0.0", port: int = 8080):
    """Run the web server (blocking)."""
    uvicorn.run(create_app(engine), host=host, port=port, log_level="warning")


async def run_server_async(engine: TelemetryEngine, host: str = "0.0.0.0", port: int = 8080):
    """Run the web server as async task."""
    config = uvicorn.Config(create_app(engine), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    await server.serve()
