"""Wire record parsing."""

from datetime import datetime, timezone

import pytest

from core.models import (
    AnalysisSnapshot,
    BotCommand,
    BotRunState,
    CommandKind,
    Exchange,
    PositionType,
    RecordError,
    StatusSnapshot,
    TradeEvent,
    TradeStatus,
)
from tests.test_helpers import analysis_row, status_row, trade_row


def test_trade_from_record_parses_all_fields():
    trade = TradeEvent.from_record(
        trade_row(
            id="42",
            exchange="DELTA",
            ts="2026-10-19T12:00:00Z",
            position_type="short",
            leverage=5,
            status="closed",
            pnl=-3.5,
        )
    )
    assert trade.id == "42"
    assert trade.exchange == Exchange.DELTA
    assert trade.timestamp == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    assert trade.position_type == PositionType.SHORT
    assert trade.leverage == 5
    assert trade.status == TradeStatus.CLOSED
    assert trade.pnl == -3.5
    assert trade.instrument_key == "BTC/USDT:delta"
    assert trade.is_futures
    assert not trade.is_open


def test_trade_defaults_when_optional_fields_missing():
    row = trade_row()
    for key in ("exchange", "position_type", "leverage", "status", "pnl"):
        row.pop(key)
    trade = TradeEvent.from_record(row)
    assert trade.exchange == Exchange.BINANCE
    assert trade.position_type == PositionType.SPOT
    assert trade.leverage == 1
    assert trade.status == TradeStatus.OPEN
    assert trade.pnl == 0.0


@pytest.mark.parametrize("row", [
    {"timestamp": "2026-10-19T12:00:00Z", "pair": "BTC/USDT"},
    trade_row(ts="not-a-date"),
    trade_row(exchange="kraken"),
    trade_row(status="exploded"),
])
def test_malformed_trade_raises_record_error(row):
    with pytest.raises(RecordError):
        TradeEvent.from_record(row)


def test_analysis_indicators_are_optional():
    snap = AnalysisSnapshot.from_record(analysis_row(rsi="41.5", adx=None, macd_histogram="n/a"))
    assert snap.rsi == 41.5
    assert snap.adx is None
    assert snap.macd_histogram is None
    assert snap.indicators() == {"rsi": 41.5}


def test_analysis_without_pair_is_market_wide():
    snap = AnalysisSnapshot.from_record(analysis_row(pair=None, exchange=None))
    assert snap.is_market_wide
    assert snap.exchange is None


def test_status_capital_falls_back_to_balances():
    status = StatusSnapshot.from_record(status_row(binance_balance=700, delta_balance=300))
    assert status.capital is None
    assert status.total_capital == 1000

    explicit = StatusSnapshot.from_record(status_row(capital=1234.5))
    assert explicit.total_capital == 1234.5


def test_status_flags_and_state():
    status = StatusSnapshot.from_record(
        status_row(binance_connected="true", delta_connected=False, bot_state="Paused", shorting_enabled=1)
    )
    assert status.binance_connected is True
    assert status.delta_connected is False
    assert status.bot_state == BotRunState.PAUSED
    assert status.shorting_enabled is True


def test_command_record_shape():
    cmd = BotCommand(command=CommandKind.FORCE_STRATEGY, params={"strategy": "Grid"})
    record = cmd.to_record()
    assert record["command"] == "force_strategy"
    assert record["params"] == {"strategy": "Grid"}
    assert record["executed"] is False
    assert "id" not in record
