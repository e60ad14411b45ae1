from core.activity_feed import ActivityFeed, ActivityKind, AnalysisSource, TradeSource, synthesize
from tests.test_helpers import at, make_analysis, make_trade


def test_feed_is_bounded_to_most_recent_fifty():
    feed = ActivityFeed(capacity=50)

    for i in range(60):
        feed.push(TradeSource(make_trade(id=f"t{i}", ts=at(i), status="closed", pnl=1)))

    entries = feed.entries()
    assert len(entries) == 50
    assert [e.source_id for e in entries] == [f"t{i}" for i in range(59, 9, -1)]


def test_trade_entries_by_status():
    opened = synthesize(TradeSource(make_trade(strategy="Grid", price=101.5)))
    short = synthesize(TradeSource(make_trade(exchange="delta", position_type="short", leverage=5, side="sell")))
    closed = synthesize(TradeSource(make_trade(status="closed", pnl=-2.5)))
    cancelled = synthesize(TradeSource(make_trade(status="cancelled")))

    assert opened.kind == ActivityKind.TRADE_OPEN
    assert opened.description == "Opened BUY BTC/USDT on Binance @ 101.5000 (Grid)"
    assert short.kind == ActivityKind.SHORT_OPEN
    assert "SHORT 5x" in short.description
    assert "Delta" in short.description
    assert closed.kind == ActivityKind.TRADE_CLOSE
    assert closed.description == "Closed BTC/USDT on Binance, P&L -2.50"
    assert closed.pnl == -2.5
    assert cancelled.kind == ActivityKind.TRADE_CANCEL


def test_analysis_entry():
    entry = synthesize(AnalysisSource(make_analysis(market_condition="sideways", strategy_selected="Grid")))
    assert entry.kind == ActivityKind.ANALYSIS
    assert entry.description == "BTC/USDT: sideways -> Grid"

    market = synthesize(AnalysisSource(make_analysis(pair=None, exchange=None)))
    assert market.description.startswith("Market:")


def test_seed_merges_recent_trades_and_analysis():
    feed = ActivityFeed(capacity=5, seed_trades=2, seed_analysis=2)
    trades = [make_trade(id=f"t{i}", ts=at(i * 10)) for i in (5, 4, 3)]
    snaps = [make_analysis(id=f"a{i}", ts=at(i * 10 + 5)) for i in (5, 4, 3)]

    feed.seed(trades, snaps)

    assert [e.source_id for e in feed.entries()] == ["a5", "t5", "a4", "t4"]


def test_trade_update_appends_second_entry():
    feed = ActivityFeed()
    feed.push(TradeSource(make_trade(id="t1")))
    feed.push(TradeSource(make_trade(id="t1", status="closed", pnl=3)))

    kinds = [e.kind for e in feed.entries()]
    assert kinds == [ActivityKind.TRADE_CLOSE, ActivityKind.TRADE_OPEN]
