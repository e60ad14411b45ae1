"""Trade lifecycle record."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum

from core.helpers import finite_float, parse_timestamp
from core.models.base import (
    DEFAULT_EXCHANGE,
    Exchange,
    RecordError,
    parse_enum,
    require,
    to_jsonable,
)


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PositionType(str, Enum):
    SPOT = "spot"
    LONG = "long"
    SHORT = "short"


class TradeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TradeEvent:
    """One trade as written by the bot.

    Created when the position opens and replaced once when it closes
    (``open -> closed``), keeping the same ``id``.
    """

    id: str
    timestamp: datetime
    pair: str
    exchange: Exchange
    side: Side
    price: float
    amount: float
    strategy: str = ""
    pnl: float = 0.0
    position_type: PositionType = PositionType.SPOT
    leverage: float = 1.0
    status: TradeStatus = TradeStatus.OPEN

    @property
    def instrument_key(self) -> str:
        return f"{self.pair}:{self.exchange.value}"

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def is_futures(self) -> bool:
        return self.position_type != PositionType.SPOT

    def to_record(self) -> dict:
        return to_jsonable(asdict(self))

    @classmethod
    def from_record(cls, record: dict) -> "TradeEvent":
        timestamp = parse_timestamp(require(record, "timestamp"))
        if timestamp is None:
            raise RecordError(f"unparseable timestamp {record.get('timestamp')!r}")
        leverage = finite_float(record.get("leverage"), 1.0)
        return cls(
            id=str(require(record, "id")),
            timestamp=timestamp,
            pair=str(require(record, "pair")),
            exchange=parse_enum(Exchange, record.get("exchange"), DEFAULT_EXCHANGE, "exchange"),
            side=parse_enum(Side, record.get("side"), Side.BUY, "side"),
            price=finite_float(record.get("price")),
            amount=finite_float(record.get("amount")),
            strategy=str(record.get("strategy") or ""),
            pnl=finite_float(record.get("pnl")),
            position_type=parse_enum(PositionType, record.get("position_type"), PositionType.SPOT, "position_type"),
            leverage=leverage if leverage > 0 else 1.0,
            status=parse_enum(TradeStatus, record.get("status"), TradeStatus.OPEN, "status"),
        )
