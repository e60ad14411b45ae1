"""Per-instrument strategy analysis snapshot."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from core.helpers import optional_float, parse_timestamp
from core.models.base import Exchange, RecordError, parse_enum, require, to_jsonable

logger = logging.getLogger(__name__)

INDICATOR_FIELDS = (
    "rsi",
    "adx",
    "macd_value",
    "macd_signal",
    "macd_histogram",
    "bb_upper",
    "bb_lower",
    "atr",
    "volume_ratio",
    "signal_strength",
    "current_price",
    "price_change_15m",
    "entry_distance_pct",
)


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Indicator readings the bot logged for one instrument (or the whole market).

    Every indicator is optional; ``None`` means the bot did not send it.
    """

    id: str
    timestamp: datetime
    pair: Optional[str] = None
    exchange: Optional[Exchange] = None
    strategy_selected: str = ""
    market_condition: str = ""
    reason: str = ""

    rsi: Optional[float] = None
    adx: Optional[float] = None
    macd_value: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_lower: Optional[float] = None
    atr: Optional[float] = None
    volume_ratio: Optional[float] = None
    signal_strength: Optional[float] = None
    current_price: Optional[float] = None
    price_change_15m: Optional[float] = None
    entry_distance_pct: Optional[float] = None

    @property
    def is_market_wide(self) -> bool:
        return not self.pair

    def indicators(self) -> dict[str, float]:
        """Indicators that are present, by field name."""
        values = {}
        for name in INDICATOR_FIELDS:
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values

    def to_record(self) -> dict:
        return to_jsonable(asdict(self))

    @classmethod
    def from_record(cls, record: dict) -> "AnalysisSnapshot":
        timestamp = parse_timestamp(require(record, "timestamp"))
        if timestamp is None:
            raise RecordError(f"unparseable timestamp {record.get('timestamp')!r}")

        indicators = {}
        for name in INDICATOR_FIELDS:
            raw = record.get(name)
            value = optional_float(raw)
            if raw is not None and value is None:
                logger.debug("[MODEL] Dropping non-numeric %s=%r on analysis %s", name, raw, record.get("id"))
            indicators[name] = value

        exchange = record.get("exchange")
        pair = record.get("pair")
        return cls(
            id=str(require(record, "id")),
            timestamp=timestamp,
            pair=str(pair) if pair else None,
            exchange=parse_enum(Exchange, exchange, None, "exchange") if exchange else None,
            strategy_selected=str(record.get("strategy_selected") or ""),
            market_condition=str(record.get("market_condition") or ""),
            reason=str(record.get("reason") or ""),
            **indicators,
        )
