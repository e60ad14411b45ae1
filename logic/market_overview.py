"""
Market Overview - ranks every known instrument by signal strength.

Rows come from the union of traded and analysed instruments. An instrument
with trades but no analysis yet still shows up, priced from its last trade.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional

from core.instruments import Instrument, known_instruments
from core.models import AnalysisSnapshot, Exchange, TradeEvent


class MarketCondition(str, Enum):
    TRENDING = "Trending"
    VOLATILE = "Volatile"
    SIDEWAYS = "Sideways"


class RowTint(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class MarketOverviewRow:
    pair: str
    exchange: Exchange
    price: Optional[float]
    price_change_15m: Optional[float]
    condition: MarketCondition
    market_condition: str
    strategy: str
    adx: Optional[float]
    rsi: Optional[float]
    signal_strength: float
    trade_count: int
    tint: RowTint
    has_analysis: bool
    reason: str = ""
    updated_at: Optional[datetime] = None
    macd_value: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_lower: Optional[float] = None
    atr: Optional[float] = None
    volume_ratio: Optional[float] = None

    @property
    def key(self) -> str:
        return f"{self.pair}:{self.exchange.value}"


def classify_condition(text: Optional[str]) -> MarketCondition:
    """Bucket free-text market condition into Trending / Volatile / Sideways."""
    c = (text or "").lower()
    if "trend" in c:
        return MarketCondition.TRENDING
    if "volatile" in c or "breakout" in c:
        return MarketCondition.VOLATILE
    return MarketCondition.SIDEWAYS


def rsi_tint(rsi: Optional[float]) -> RowTint:
    value = 50.0 if rsi is None else rsi
    if value < 40:
        return RowTint.BULLISH
    if value > 60:
        return RowTint.BEARISH
    return RowTint.NEUTRAL


def _build_row(
    instrument: Instrument,
    snap: Optional[AnalysisSnapshot],
    last_trade: Optional[TradeEvent],
    trade_count: int,
) -> MarketOverviewRow:
    if snap is None:
        return MarketOverviewRow(
            pair=instrument.pair,
            exchange=instrument.exchange,
            price=last_trade.price if last_trade else None,
            price_change_15m=None,
            condition=classify_condition(None),
            market_condition="",
            strategy=last_trade.strategy if last_trade else "",
            adx=None,
            rsi=None,
            signal_strength=0.0,
            trade_count=trade_count,
            tint=rsi_tint(None),
            has_analysis=False,
            updated_at=last_trade.timestamp if last_trade else None,
        )

    price = snap.current_price
    if price is None and last_trade is not None:
        price = last_trade.price
    return MarketOverviewRow(
        pair=instrument.pair,
        exchange=instrument.exchange,
        price=price,
        price_change_15m=snap.price_change_15m,
        condition=classify_condition(snap.market_condition),
        market_condition=snap.market_condition,
        strategy=snap.strategy_selected or (last_trade.strategy if last_trade else ""),
        adx=snap.adx,
        rsi=snap.rsi,
        signal_strength=snap.signal_strength or 0.0,
        trade_count=trade_count,
        tint=rsi_tint(snap.rsi),
        has_analysis=True,
        reason=snap.reason,
        updated_at=snap.timestamp,
        macd_value=snap.macd_value,
        macd_signal=snap.macd_signal,
        macd_histogram=snap.macd_histogram,
        bb_upper=snap.bb_upper,
        bb_lower=snap.bb_lower,
        atr=snap.atr,
        volume_ratio=snap.volume_ratio,
    )


def build_market_overview(
    trades: Iterable[TradeEvent],
    latest_analysis: Mapping[str, AnalysisSnapshot],
) -> tuple[MarketOverviewRow, ...]:
    """Rank instruments: signal strength desc, then trade count desc.

    ``trades`` must be newest-first (as the store returns them) so the
    first trade seen per instrument is its last trade.
    """
    trades = list(trades)
    counts: Counter = Counter()
    last_trade: dict[str, TradeEvent] = {}
    for t in trades:
        counts[t.instrument_key] += 1
        last_trade.setdefault(t.instrument_key, t)

    instruments = known_instruments(trades, latest_analysis.values())
    rows = [
        _build_row(inst, latest_analysis.get(inst.key), last_trade.get(inst.key), counts[inst.key])
        for inst in instruments
    ]
    rows.sort(key=lambda r: (-r.signal_strength, -r.trade_count, r.pair, r.exchange.value))
    return tuple(rows)
