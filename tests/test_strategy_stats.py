from datetime import timedelta

import pytest

from logic.strategy_stats import (
    market_type_stats,
    performance_summary,
    stats_for,
    strategy_exchange_stats,
    strategy_stats,
)
from tests.test_helpers import T0, at, make_status, make_trade


def test_win_rate_total_and_average():
    trades = [
        make_trade(id="1", pnl=10, status="closed"),
        make_trade(id="2", pnl=-5, status="closed"),
        make_trade(id="3", pnl=0, status="closed"),
    ]

    (stat,) = strategy_stats(trades)

    assert stat.total_trades == 3
    assert stat.wins == 1
    assert stat.losses == 1
    assert stat.win_rate == pytest.approx(33.33, abs=0.01)
    assert stat.total_pnl == 5
    assert stat.avg_pnl == pytest.approx(1.67, abs=0.01)


def test_grouped_by_strategy_and_exchange():
    trades = [
        make_trade(id="1", strategy="Grid", exchange="binance", pnl=1),
        make_trade(id="2", strategy="Grid", exchange="delta", pnl=2, position_type="long"),
        make_trade(id="3", strategy="Momentum", exchange="delta", pnl=-1, position_type="short"),
    ]

    by_exchange = {(s.strategy, s.exchange): s.total_pnl for s in strategy_exchange_stats(trades)}
    by_market = {(s.strategy, s.market_type): s.total_trades for s in market_type_stats(trades)}

    assert by_exchange == {("Grid", "binance"): 1, ("Grid", "delta"): 2, ("Momentum", "delta"): -1}
    assert by_market == {("Grid", "spot"): 1, ("Grid", "futures"): 1, ("Momentum", "futures"): 1}


def test_last_active_is_latest_trade():
    trades = [make_trade(id="1", ts=at(0)), make_trade(id="2", ts=at(90))]
    assert stats_for(trades, "Grid").last_active == T0 + timedelta(seconds=90)


def test_stats_for_unknown_strategy_is_empty():
    stat = stats_for([make_trade()], "Arbitrage")
    assert stat.total_trades == 0
    assert stat.win_rate == 0
    assert stat.avg_pnl == 0


def test_performance_summary_today_uses_utc_day():
    now = T0 + timedelta(hours=1)
    trades = [
        make_trade(id="y", ts=at(-13 * 3600), pnl=100, status="closed"),
        make_trade(id="a", ts=at(0), pnl=4, status="closed"),
        make_trade(id="b", ts=at(60), pnl=-1, exchange="delta"),
    ]
    status = make_status(total_pnl=250, win_rate=61.5, capital=2000)

    summary = performance_summary(trades, status, now=now)

    assert summary.today_pnl == 3
    assert summary.total_pnl == 250
    assert summary.win_rate == 61.5
    assert summary.capital == 2000
    assert summary.open_positions == 1
    assert summary.trade_count == 3
    assert summary.by_exchange_pnl == {"binance": 104, "delta": -1}


def test_performance_summary_without_status():
    summary = performance_summary([], None, now=T0)
    assert summary.total_pnl == 0
    assert summary.capital == 0
