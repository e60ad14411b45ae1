"""
Strategy Statistics - group-by-reduce over trades.

Three groupings share one reducer:
1. per strategy
2. per strategy x exchange
3. per strategy x market type (spot vs futures)

A win is ``pnl > 0``, a loss ``pnl < 0``; flat trades count toward the
total only.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from core.models import StatusSnapshot, TradeEvent

SPOT = "spot"
FUTURES = "futures"


@dataclass
class _Accumulator:
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: float = 0.0
    last_active: Optional[datetime] = None

    def add(self, trade: TradeEvent) -> None:
        self.total_trades += 1
        self.total_pnl += trade.pnl
        if trade.pnl > 0:
            self.wins += 1
        elif trade.pnl < 0:
            self.losses += 1
        if self.last_active is None or trade.timestamp > self.last_active:
            self.last_active = trade.timestamp


@dataclass(frozen=True)
class StrategyStat:
    """Performance of one strategy group."""
    strategy: str
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: float = 0.0
    last_active: Optional[datetime] = None
    exchange: Optional[str] = None
    market_type: Optional[str] = None

    @property
    def win_rate(self) -> float:
        """Win percentage (0-100)."""
        if self.total_trades == 0:
            return 0.0
        return self.wins / self.total_trades * 100

    @property
    def avg_pnl(self) -> float:
        """Average P&L per trade."""
        if self.total_trades == 0:
            return 0.0
        return self.total_pnl / self.total_trades

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "exchange": self.exchange,
            "market_type": self.market_type,
            "total_trades": self.total_trades,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": self.win_rate,
            "total_pnl": self.total_pnl,
            "avg_pnl": self.avg_pnl,
            "last_active": self.last_active.isoformat() if self.last_active else None,
        }


def market_type(trade: TradeEvent) -> str:
    return FUTURES if trade.is_futures else SPOT


def _group(
    trades: Iterable[TradeEvent],
    key: Callable[[TradeEvent], tuple],
) -> dict[tuple, _Accumulator]:
    groups: dict[tuple, _Accumulator] = {}
    for t in trades:
        groups.setdefault(key(t), _Accumulator()).add(t)
    return groups


def _freeze(group_key: tuple, acc: _Accumulator, **labels) -> StrategyStat:
    return StrategyStat(
        strategy=group_key[0],
        total_trades=acc.total_trades,
        wins=acc.wins,
        losses=acc.losses,
        total_pnl=acc.total_pnl,
        last_active=acc.last_active,
        **labels,
    )


def strategy_stats(trades: Iterable[TradeEvent]) -> tuple[StrategyStat, ...]:
    groups = _group(trades, lambda t: (t.strategy,))
    return tuple(_freeze(k, groups[k]) for k in sorted(groups))


def strategy_exchange_stats(trades: Iterable[TradeEvent]) -> tuple[StrategyStat, ...]:
    groups = _group(trades, lambda t: (t.strategy, t.exchange.value))
    return tuple(_freeze(k, groups[k], exchange=k[1]) for k in sorted(groups))


def market_type_stats(trades: Iterable[TradeEvent]) -> tuple[StrategyStat, ...]:
    groups = _group(trades, lambda t: (t.strategy, market_type(t)))
    return tuple(_freeze(k, groups[k], market_type=k[1]) for k in sorted(groups))


def stats_for(trades: Iterable[TradeEvent], strategy: str) -> StrategyStat:
    """Stats for a single strategy; empty stats when it never traded."""
    groups = _group((t for t in trades if t.strategy == strategy), lambda t: (t.strategy,))
    acc = groups.get((strategy,))
    return _freeze((strategy,), acc) if acc else StrategyStat(strategy=strategy)


@dataclass(frozen=True)
class PerformanceSummary:
    total_pnl: float = 0.0
    today_pnl: float = 0.0
    win_rate: float = 0.0
    capital: float = 0.0
    open_positions: int = 0
    trade_count: int = 0
    by_exchange_pnl: dict = field(default_factory=dict)


def performance_summary(
    trades: Iterable[TradeEvent],
    status: Optional[StatusSnapshot],
    now: Optional[datetime] = None,
) -> PerformanceSummary:
    """Headline numbers: totals from the bot's status, today's P&L from trades (UTC day)."""
    now = now or datetime.now(timezone.utc)
    start_of_day = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

    today = 0.0
    open_count = 0
    count = 0
    by_exchange: dict[str, float] = {}
    for t in trades:
        count += 1
        if t.timestamp >= start_of_day:
            today += t.pnl
        if t.is_open:
            open_count += 1
        by_exchange[t.exchange.value] = by_exchange.get(t.exchange.value, 0.0) + t.pnl

    return PerformanceSummary(
        total_pnl=status.total_pnl if status else 0.0,
        today_pnl=today,
        win_rate=status.win_rate if status else 0.0,
        capital=status.total_capital if status else 0.0,
        open_positions=open_count,
        trade_count=count,
        by_exchange_pnl=by_exchange,
    )
