"""Record factories and a scripted adapter shared by the test modules."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from core.events import ChangeKind, StreamChange, StreamName
from core.models import AnalysisSnapshot, StatusSnapshot, TradeEvent
from datafeeds.base import TransportError

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def at(seconds: float = 0, base: datetime = T0) -> str:
    return (base + timedelta(seconds=seconds)).isoformat()


def trade_row(
    id: str = "t1",
    pair: str = "BTC/USDT",
    exchange: str = "binance",
    ts: Optional[str] = None,
    pnl: float = 0.0,
    status: str = "open",
    strategy: str = "Grid",
    price: float = 100.0,
    amount: float = 1.0,
    side: str = "buy",
    position_type: str = "spot",
    leverage: float = 1,
) -> dict:
    return {
        "id": id,
        "timestamp": ts or at(),
        "pair": pair,
        "exchange": exchange,
        "side": side,
        "price": price,
        "amount": amount,
        "strategy": strategy,
        "pnl": pnl,
        "position_type": position_type,
        "leverage": leverage,
        "status": status,
    }


def analysis_row(
    id: str = "a1",
    pair: Optional[str] = "BTC/USDT",
    exchange: Optional[str] = "binance",
    ts: Optional[str] = None,
    **indicators,
) -> dict:
    row = {
        "id": id,
        "timestamp": ts or at(),
        "pair": pair,
        "exchange": exchange,
        "strategy_selected": indicators.pop("strategy_selected", "Momentum"),
        "market_condition": indicators.pop("market_condition", "trending up"),
        "reason": indicators.pop("reason", ""),
    }
    row.update(indicators)
    return row


def status_row(id: str = "s1", ts: Optional[str] = None, **fields) -> dict:
    row = {"id": id, "timestamp": ts or at(), "binance_balance": 1000.0, "delta_balance": 500.0}
    row.update(fields)
    return row


def make_trade(**kwargs) -> TradeEvent:
    return TradeEvent.from_record(trade_row(**kwargs))


def make_analysis(**kwargs) -> AnalysisSnapshot:
    return AnalysisSnapshot.from_record(analysis_row(**kwargs))


def make_status(**kwargs) -> StatusSnapshot:
    return StatusSnapshot.from_record(status_row(**kwargs))


class FakeAdapter:
    """Serves canned backfill pages and lets a test push changes by hand."""

    def __init__(self, rows: Optional[dict] = None, failing=(), connect_on_subscribe: bool = True):
        self.rows = rows or {}
        self.failing = set(failing)
        self.connect_on_subscribe = connect_on_subscribe
        self.backfill_calls: list[tuple[StreamName, int]] = []
        self.unsubscribe_calls = 0
        self.published = []
        self.on_change = None
        self.on_status = None

    async def backfill(self, stream: StreamName, limit: int) -> list[dict]:
        self.backfill_calls.append((stream, limit))
        if stream in self.failing:
            raise TransportError(f"{stream.value} unavailable")
        return list(self.rows.get(stream, []))[:limit]

    async def subscribe(self, on_change, on_status) -> None:
        self.on_change = on_change
        self.on_status = on_status
        if self.connect_on_subscribe:
            on_status(True)

    async def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1

    def publish_command(self, command) -> None:
        self.published.append(command)

    def push(self, stream: StreamName, record: dict, kind: ChangeKind = ChangeKind.INSERT) -> bool:
        return self.on_change(StreamChange(stream=stream, kind=kind, record=record))
