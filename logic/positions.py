"""Open positions with leveraged exposure.

Live P&L is whatever the bot last wrote on the trade row; nothing is
re-priced here.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from core.models import Exchange, PositionType, Side, TradeEvent


@dataclass(frozen=True)
class OpenPositionRow:
    id: str
    pair: str
    exchange: Exchange
    side: Side
    position_type: PositionType
    leverage: float
    entry_price: float
    amount: float
    strategy: str
    opened_at: datetime
    upstream_pnl: float
    effective_exposure: float


def effective_exposure(trade: TradeEvent) -> float:
    """Notional including leverage: amount x price x leverage."""
    return trade.amount * trade.price * trade.leverage


def build_open_positions(trades: Iterable[TradeEvent]) -> tuple[OpenPositionRow, ...]:
    rows = [
        OpenPositionRow(
            id=t.id,
            pair=t.pair,
            exchange=t.exchange,
            side=t.side,
            position_type=t.position_type,
            leverage=t.leverage,
            entry_price=t.price,
            amount=t.amount,
            strategy=t.strategy,
            opened_at=t.timestamp,
            upstream_pnl=t.pnl,
            effective_exposure=effective_exposure(t),
        )
        for t in trades
        if t.is_open
    ]
    rows.sort(key=lambda r: (r.opened_at, r.id), reverse=True)
    return tuple(rows)


def total_exposure(rows: Iterable[OpenPositionRow]) -> float:
    return sum(r.effective_exposure for r in rows)


def exposure_by_exchange(rows: Iterable[OpenPositionRow]) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for r in rows:
        totals[r.exchange.value] += r.effective_exposure
    return dict(totals)
