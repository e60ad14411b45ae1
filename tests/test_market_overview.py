from core.instruments import latest_analysis_by_instrument
from logic.market_overview import (
    MarketCondition,
    RowTint,
    build_market_overview,
    classify_condition,
    rsi_tint,
)
from tests.test_helpers import at, make_analysis, make_trade


def _overview(trades, snaps):
    trades = sorted(trades, key=lambda t: t.timestamp, reverse=True)
    return build_market_overview(trades, latest_analysis_by_instrument(snaps))


def test_ranked_by_strength_then_trade_count():
    snaps = [
        make_analysis(id="a", pair="AAA/USDT", signal_strength=40),
        make_analysis(id="b", pair="BBB/USDT", signal_strength=80),
        make_analysis(id="c", pair="CCC/USDT", signal_strength=40),
    ]
    trades = [
        make_trade(id="t1", pair="CCC/USDT", ts=at(1)),
        make_trade(id="t2", pair="CCC/USDT", ts=at(2)),
        make_trade(id="t3", pair="AAA/USDT", ts=at(3)),
    ]

    rows = _overview(trades, snaps)

    assert [(r.pair, r.signal_strength, r.trade_count) for r in rows] == [
        ("BBB/USDT", 80, 0),
        ("CCC/USDT", 40, 2),
        ("AAA/USDT", 40, 1),
    ]


def test_traded_instrument_without_analysis_uses_last_trade():
    trades = [
        make_trade(id="t1", pair="DOGE/USDT", price=0.10, ts=at(0), strategy="Grid"),
        make_trade(id="t2", pair="DOGE/USDT", price=0.12, ts=at(60), strategy="Momentum"),
    ]

    (row,) = _overview(trades, [])

    assert not row.has_analysis
    assert row.price == 0.12
    assert row.strategy == "Momentum"
    assert row.signal_strength == 0
    assert row.tint == RowTint.NEUTRAL


def test_analysis_fields_flow_into_row():
    snap = make_analysis(
        current_price=101.5, rsi=35, adx=28, price_change_15m=-0.4,
        market_condition="Volatile breakout", strategy_selected="Breakout",
    )

    (row,) = _overview([], [snap])

    assert row.price == 101.5
    assert row.condition == MarketCondition.VOLATILE
    assert row.strategy == "Breakout"
    assert row.tint == RowTint.BULLISH
    assert row.price_change_15m == -0.4


def test_classify_condition():
    assert classify_condition("Trending Up") == MarketCondition.TRENDING
    assert classify_condition("volatile") == MarketCondition.VOLATILE
    assert classify_condition("BREAKOUT") == MarketCondition.VOLATILE
    assert classify_condition("range bound") == MarketCondition.SIDEWAYS
    assert classify_condition(None) == MarketCondition.SIDEWAYS


def test_rsi_tint_bands():
    assert rsi_tint(39.9) == RowTint.BULLISH
    assert rsi_tint(40) == RowTint.NEUTRAL
    assert rsi_tint(60) == RowTint.NEUTRAL
    assert rsi_tint(60.1) == RowTint.BEARISH
    assert rsi_tint(None) == RowTint.NEUTRAL


def test_recomputing_unchanged_input_is_identical():
    snaps = [make_analysis(id=f"a{i}", pair=f"P{i}/USDT", signal_strength=i * 10) for i in range(5)]
    trades = [make_trade(id=f"t{i}", pair=f"P{i % 3}/USDT", ts=at(i)) for i in range(9)]

    assert _overview(trades, snaps) == _overview(trades, snaps)
