"""Rolling activity feed synthesized from trades and analysis snapshots.

Newest entries sit at the front; the feed never holds more than
``capacity`` entries and older ones fall off the end.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Deque, Iterable, Optional, Union

from core.models import AnalysisSnapshot, Exchange, PositionType, TradeEvent, TradeStatus


class ActivityKind(str, Enum):
    TRADE_OPEN = "trade_open"
    SHORT_OPEN = "short_open"
    TRADE_CLOSE = "trade_close"
    TRADE_CANCEL = "trade_cancel"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class TradeSource:
    trade: TradeEvent


@dataclass(frozen=True)
class AnalysisSource:
    snapshot: AnalysisSnapshot


FeedSource = Union[TradeSource, AnalysisSource]


@dataclass(frozen=True)
class ActivityEntry:
    kind: ActivityKind
    timestamp: datetime
    description: str
    source_id: str
    pair: Optional[str] = None
    exchange: Optional[Exchange] = None
    pnl: Optional[float] = None


def _exchange_label(exchange: Optional[Exchange]) -> str:
    return exchange.value.capitalize() if exchange else "Binance"


def _describe_trade(trade: TradeEvent) -> tuple[ActivityKind, str, Optional[float]]:
    where = f"{trade.pair} on {_exchange_label(trade.exchange)}"
    if trade.status == TradeStatus.CLOSED:
        return ActivityKind.TRADE_CLOSE, f"Closed {where}, P&L {trade.pnl:+.2f}", trade.pnl
    if trade.status == TradeStatus.CANCELLED:
        return ActivityKind.TRADE_CANCEL, f"Cancelled {trade.side.value.upper()} {where}", None

    leverage = f" {trade.leverage:g}x" if trade.leverage > 1 else ""
    strategy = f" ({trade.strategy})" if trade.strategy else ""
    if trade.position_type == PositionType.SHORT:
        return (
            ActivityKind.SHORT_OPEN,
            f"Opened SHORT{leverage} {where} @ {trade.price:,.4f}{strategy}",
            None,
        )
    return (
        ActivityKind.TRADE_OPEN,
        f"Opened {trade.side.value.upper()}{leverage} {where} @ {trade.price:,.4f}{strategy}",
        None,
    )


def synthesize(source: FeedSource) -> ActivityEntry:
    """Turn a trade or analysis record into a typed feed entry."""
    match source:
        case TradeSource(trade=trade):
            kind, description, pnl = _describe_trade(trade)
            return ActivityEntry(
                kind=kind,
                timestamp=trade.timestamp,
                description=description,
                source_id=trade.id,
                pair=trade.pair,
                exchange=trade.exchange,
                pnl=pnl,
            )
        case AnalysisSource(snapshot=snap):
            subject = snap.pair or "Market"
            condition = snap.market_condition or "unknown"
            strategy = snap.strategy_selected or "none"
            return ActivityEntry(
                kind=ActivityKind.ANALYSIS,
                timestamp=snap.timestamp,
                description=f"{subject}: {condition} -> {strategy}",
                source_id=snap.id,
                pair=snap.pair,
                exchange=snap.exchange,
            )
    raise TypeError(f"unsupported feed source {type(source).__name__}")


class ActivityFeed:
    """Bounded newest-first buffer of activity entries."""

    def __init__(self, capacity: int = 50, seed_trades: int = 40, seed_analysis: int = 20):
        self.capacity = capacity
        self.seed_trades = seed_trades
        self.seed_analysis = seed_analysis
        self._entries: Deque[ActivityEntry] = deque(maxlen=capacity)

    def seed(self, trades: Iterable[TradeEvent], analysis: Iterable[AnalysisSnapshot]) -> None:
        """Rebuild from the most recent trades and analysis (both newest-first)."""
        sources: list[FeedSource] = [TradeSource(t) for t in list(trades)[: self.seed_trades]]
        sources += [AnalysisSource(a) for a in list(analysis)[: self.seed_analysis]]
        entries = sorted((synthesize(s) for s in sources), key=lambda e: e.timestamp, reverse=True)
        self._entries = deque(entries[: self.capacity], maxlen=self.capacity)

    def push(self, source: FeedSource) -> ActivityEntry:
        """Prepend a live event; the oldest entry drops when full."""
        entry = synthesize(source)
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> tuple[ActivityEntry, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
