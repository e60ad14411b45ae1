"""Bot heartbeat / status snapshot."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from core.helpers import finite_float, optional_bool, optional_float, parse_timestamp
from core.models.base import RecordError, parse_enum, require, to_jsonable


class BotRunState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class StatusSnapshot:
    """Rolling "current status" row; each arrival supersedes the last."""

    id: str
    timestamp: datetime
    capital: Optional[float] = None
    binance_balance: float = 0.0
    delta_balance: float = 0.0
    delta_balance_inr: Optional[float] = None
    binance_connected: Optional[bool] = None
    delta_connected: Optional[bool] = None
    win_rate: float = 0.0
    total_pnl: float = 0.0
    bot_state: Optional[BotRunState] = None
    uptime_seconds: float = 0.0
    leverage_level: float = 1.0
    shorting_enabled: bool = False
    active_strategies_count: int = 0
    active_strategy: Optional[str] = None

    @property
    def total_capital(self) -> float:
        if self.capital is not None:
            return self.capital
        return self.binance_balance + self.delta_balance

    def to_record(self) -> dict:
        return to_jsonable(asdict(self))

    @classmethod
    def from_record(cls, record: dict) -> "StatusSnapshot":
        timestamp = parse_timestamp(require(record, "timestamp"))
        if timestamp is None:
            raise RecordError(f"unparseable timestamp {record.get('timestamp')!r}")
        bot_state = record.get("bot_state")
        return cls(
            id=str(require(record, "id")),
            timestamp=timestamp,
            capital=optional_float(record.get("capital")),
            binance_balance=finite_float(record.get("binance_balance")),
            delta_balance=finite_float(record.get("delta_balance")),
            delta_balance_inr=optional_float(record.get("delta_balance_inr")),
            binance_connected=optional_bool(record.get("binance_connected")),
            delta_connected=optional_bool(record.get("delta_connected")),
            win_rate=finite_float(record.get("win_rate")),
            total_pnl=finite_float(record.get("total_pnl")),
            bot_state=parse_enum(BotRunState, bot_state, None, "bot_state") if bot_state else None,
            uptime_seconds=finite_float(record.get("uptime_seconds")),
            leverage_level=finite_float(record.get("leverage_level"), 1.0),
            shorting_enabled=bool(optional_bool(record.get("shorting_enabled"))),
            active_strategies_count=int(finite_float(record.get("active_strategies_count"))),
            active_strategy=record.get("active_strategy") or None,
        )
