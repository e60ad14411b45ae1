"""
Trigger Proximity - how close each instrument is to a buy or short signal.

Distance is a 0-100 score from the latest RSI reading:
    buy:   max(0, (rsi - 30) / 70 * 100)      oversold threshold 30
    short: max(0, (70 - rsi) / 70 * 100)      overbought threshold 70
Short is only considered on exchanges that allow shorting, and only wins
when strictly closer. A bot-supplied ``entry_distance_pct`` overrides the
RSI-derived estimate.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional

from core.instruments import Instrument
from core.models import AnalysisSnapshot, Exchange

BUY_THRESHOLD = 30.0
SHORT_THRESHOLD = 70.0
RSI_SPAN = 70.0
MAX_DISTANCE = 100.0

IMMINENT_BELOW = 15.0
CLOSE_UP_TO = 40.0
FAST_CANDLES_BELOW = 25.0
MACD_FLAT = 0.0005


class Direction(str, Enum):
    BUY = "buy"
    SHORT = "short"


class TriggerBand(str, Enum):
    IMMINENT = "Imminent"
    GETTING_CLOSE = "Getting close"
    WATCHING = "Watching"


class MacdStatus(str, Enum):
    CONVERGING = "Converging"
    BULLISH = "Bullish"
    BEARISH = "Bearish"
    NO_DATA = "No data"


@dataclass(frozen=True)
class TriggerRow:
    pair: str
    exchange: Exchange
    rsi: Optional[float]
    target: float
    direction: Direction
    distance_pct: float
    band: TriggerBand
    macd_status: MacdStatus
    next_action: str
    has_indicator_data: bool
    distance_overridden: bool = False

    @property
    def key(self) -> str:
        return f"{self.pair}:{self.exchange.value}"


def rsi_distances(rsi: float, can_short: bool) -> tuple[float, float]:
    """Return ``(buy_distance, short_distance)`` for an RSI reading."""
    buy = max(0.0, (rsi - BUY_THRESHOLD) / RSI_SPAN * 100)
    short = max(0.0, (SHORT_THRESHOLD - rsi) / RSI_SPAN * 100) if can_short else MAX_DISTANCE
    return buy, short


def band_for(distance: float) -> TriggerBand:
    if distance < IMMINENT_BELOW:
        return TriggerBand.IMMINENT
    if distance <= CLOSE_UP_TO:
        return TriggerBand.GETTING_CLOSE
    return TriggerBand.WATCHING


def macd_status(histogram: Optional[float]) -> MacdStatus:
    if histogram is None:
        return MacdStatus.NO_DATA
    if abs(histogram) < MACD_FLAT:
        return MacdStatus.CONVERGING
    if histogram > 0:
        return MacdStatus.BULLISH
    return MacdStatus.BEARISH


def next_action(band: TriggerBand, direction: Direction, target: float, distance: float) -> str:
    label = "Short" if direction == Direction.SHORT else "Buy"
    if band == TriggerBand.IMMINENT:
        return f"{label} signal very close, RSI near {target:.0f}"
    if band == TriggerBand.GETTING_CLOSE:
        candles = "1-2" if distance < FAST_CANDLES_BELOW else "2-3"
        return f"{label} possible in {candles} candles"
    return f"Far from {label.lower()} trigger, monitoring"


def compute_trigger(
    instrument: Instrument,
    snap: Optional[AnalysisSnapshot],
    short_exchanges: Iterable[str] = ("delta",),
) -> TriggerRow:
    rsi = snap.rsi if snap else None
    can_short = instrument.exchange.value in set(short_exchanges)

    direction = Direction.BUY
    target = BUY_THRESHOLD
    distance = MAX_DISTANCE
    if rsi is not None:
        buy, short = rsi_distances(rsi, can_short)
        if can_short and short < buy:
            direction, target, distance = Direction.SHORT, SHORT_THRESHOLD, short
        else:
            distance = buy

    overridden = snap is not None and snap.entry_distance_pct is not None
    if overridden:
        distance = snap.entry_distance_pct

    band = band_for(distance)
    if rsi is None and not overridden:
        action = "Awaiting indicator data from bot"
    else:
        action = next_action(band, direction, target, distance)

    return TriggerRow(
        pair=instrument.pair,
        exchange=instrument.exchange,
        rsi=rsi,
        target=target,
        direction=direction,
        distance_pct=distance,
        band=band,
        macd_status=macd_status(snap.macd_histogram if snap else None),
        next_action=action,
        has_indicator_data=rsi is not None,
        distance_overridden=overridden,
    )


def build_trigger_proximity(
    instruments: Iterable[Instrument],
    latest_analysis: Mapping[str, AnalysisSnapshot],
    short_exchanges: Iterable[str] = ("delta",),
) -> tuple[TriggerRow, ...]:
    """Rows with indicator data first, then closest-to-trigger first."""
    short_exchanges = frozenset(short_exchanges)
    rows = [compute_trigger(inst, latest_analysis.get(inst.key), short_exchanges) for inst in instruments]
    rows.sort(key=lambda r: (not r.has_indicator_data, r.distance_pct, r.pair, r.exchange.value))
    return tuple(rows)
