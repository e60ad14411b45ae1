import asyncio

import pytest

from core.engine import TelemetryEngine
from core.events import ChangeKind, StreamName
from core.models import BotCommand, CommandKind
from datafeeds.base import EventStreamAdapter, TransportError
from datafeeds.collectors.rest_poller import MAX_BACKOFF_SECONDS, BackoffState, RestPoller
from tests.test_helpers import analysis_row, at, status_row, trade_row


class FakeClient:
    """Tables hold rows newest first, as PostgREST returns them."""

    def __init__(self, tables=None, fail: bool = False, failing_tables=()):
        self.tables = tables or {}
        self.fail = fail
        self.failing_tables = set(failing_tables)
        self.inserted = []
        self.id_lookups = []

    def _check(self, table):
        if self.fail or table in self.failing_tables:
            raise TransportError(f"GET {table} returned HTTP 500")

    def fetch_latest(self, table, limit):
        self._check(table)
        return list(self.tables.get(table, []))[:limit]

    def fetch_by_ids(self, table, ids):
        self._check(table)
        self.id_lookups.append((table, list(ids)))
        wanted = set(ids)
        return [r for r in self.tables.get(table, []) if str(r["id"]) in wanted]

    def insert(self, table, record):
        if self.fail:
            raise TransportError("HTTP 503")
        self.inserted.append((table, record))


def test_poller_satisfies_adapter_protocol(test_settings):
    assert isinstance(RestPoller(FakeClient(), test_settings), EventStreamAdapter)


@pytest.mark.asyncio
async def test_backfill_returns_rows_newest_first(test_settings):
    client = FakeClient({"trades": [trade_row(id="t2"), trade_row(id="t1")]})
    poller = RestPoller(client, test_settings)

    rows = await poller.backfill(StreamName.TRADES, 500)

    assert [r["id"] for r in rows] == ["t2", "t1"]
    assert await poller.backfill(StreamName.ANALYSIS, 100) == []


@pytest.mark.asyncio
async def test_poll_emits_inserts_and_updates(test_settings):
    client = FakeClient({"trades": [trade_row(id="t1")], "bot_status": [status_row(id="s1")]})
    poller = RestPoller(client, test_settings, poll_interval=60)
    await poller.backfill(StreamName.TRADES, 500)
    await poller.backfill(StreamName.STATUS, 1)

    changes, statuses = [], []
    await poller.subscribe(changes.append, statuses.append)
    try:
        assert statuses == [True]
        assert await poller.poll_once() == 0

        client.tables["trades"] = [trade_row(id="t2"), trade_row(id="t1", status="closed", pnl=4)]
        delivered = await poller.poll_once()

        assert delivered == 2
        assert [(c.record["id"], c.kind) for c in changes] == [
            ("t1", ChangeKind.UPDATE),
            ("t2", ChangeKind.INSERT),
        ]
        assert all(c.stream == StreamName.TRADES for c in changes)
        assert await poller.poll_once() == 0
    finally:
        await poller.unsubscribe()


@pytest.mark.asyncio
async def test_failed_polls_report_disconnect(test_settings):
    client = FakeClient({"trades": [trade_row(id="t1")]})
    poller = RestPoller(client, test_settings, poll_interval=0.01)
    await poller.backfill(StreamName.TRADES, 500)

    statuses = []
    await poller.subscribe(lambda _c: None, statuses.append)
    client.fail = True
    try:
        for _ in range(100):
            if False in statuses:
                break
            await asyncio.sleep(0.01)
        assert statuses[:2] == [True, False]
        assert poller.errors >= 1
    finally:
        await poller.unsubscribe()


def test_backoff_doubles_and_caps():
    backoff = BackoffState(base_interval=2)
    delays = [backoff.record_failure() for _ in range(6)]
    assert delays == [4, 8, 16, 32, MAX_BACKOFF_SECONDS, MAX_BACKOFF_SECONDS]
    assert backoff.record_success() == 2
    assert backoff.consecutive_failures == 0


def test_publish_command_inserts_row(test_settings):
    client = FakeClient()
    poller = RestPoller(client, test_settings)

    poller.publish_command(BotCommand(command=CommandKind.PAUSE))

    table, record = client.inserted[0]
    assert table == "bot_commands"
    assert record["command"] == "pause"


def test_publish_command_failure_is_logged_not_raised(test_settings):
    poller = RestPoller(FakeClient(fail=True), test_settings)
    poller.publish_command(BotCommand(command=CommandKind.RESUME))
    assert poller.errors == 1


def _window_overflow_tables(open_status="open", pnl=0.0):
    # 60 newer closed trades push the open one out of the 50-row poll window
    newer = [trade_row(id=f"c{i}", ts=at(100 + i), status="closed", pnl=1) for i in range(60)]
    newer.reverse()
    return {"trades": newer + [trade_row(id="old", ts=at(0), status=open_status, pnl=pnl)]}


@pytest.mark.asyncio
async def test_close_of_trade_outside_poll_window_is_delivered(test_settings):
    client = FakeClient(_window_overflow_tables())
    poller = RestPoller(client, test_settings, poll_interval=60)
    engine = TelemetryEngine(test_settings, poller)
    await engine.start()
    try:
        assert [p.id for p in engine.snapshot.open_positions] == ["old"]

        client.tables = _window_overflow_tables(open_status="closed", pnl=7)
        assert await poller.poll_once() == 1

        snap = engine.snapshot
        assert snap.open_positions == ()
        assert snap.activity[0].source_id == "old"
        assert client.id_lookups == [("trades", ["old"])]

        # Closed trades are no longer re-read
        await poller.poll_once()
        assert len(client.id_lookups) == 1
    finally:
        await engine.close()


@pytest.mark.asyncio
async def test_failing_stream_does_not_block_the_others(test_settings):
    client = FakeClient({"trades": [], "strategy_log": [analysis_row(id="a1")]}, failing_tables={"strategy_log"})
    poller = RestPoller(client, test_settings, poll_interval=60)
    await poller.backfill(StreamName.TRADES, 500)

    changes, statuses = [], []
    await poller.subscribe(changes.append, statuses.append)
    try:
        client.tables["trades"] = [trade_row(id="t1")]
        assert await poller.poll_once() == 1
        assert [c.record["id"] for c in changes] == ["t1"]
        assert poller.errors == 1
        assert statuses == [True]
    finally:
        await poller.unsubscribe()


@pytest.mark.asyncio
async def test_poll_raises_when_every_stream_fails(test_settings):
    poller = RestPoller(FakeClient(fail=True), test_settings, poll_interval=60)
    await poller.subscribe(lambda _c: None, lambda _s: None)
    try:
        with pytest.raises(TransportError):
            await poller.poll_once()
        assert poller.errors == len(StreamName)
    finally:
        await poller.unsubscribe()


class ExplodingClient(FakeClient):
    def insert(self, table, record):
        raise RuntimeError("socket closed")


def test_unexpected_publish_failure_is_logged_not_raised(test_settings):
    poller = RestPoller(ExplodingClient(), test_settings)
    poller.publish_command(BotCommand(command=CommandKind.PAUSE))
    assert poller.errors == 1


@pytest.mark.asyncio
async def test_background_publish_failure_is_contained(test_settings):
    poller = RestPoller(ExplodingClient(), test_settings)
    poller.publish_command(BotCommand(command=CommandKind.RESUME))
    for _ in range(100):
        if poller.errors:
            break
        await asyncio.sleep(0.01)
    assert poller.errors == 1
