"""Telemetry engine: the single state object behind every dashboard view.

Lifecycle:
    engine = TelemetryEngine(settings, adapter)
    await engine.start()      # backfill each stream, seed the feed, subscribe
    ...                       # adapter pushes StreamChange -> apply_change()
    await engine.close()      # unsubscribe, stop the clock (idempotent)

Every accepted change mutates the store, fully recomputes the views that
depend on that stream and publishes a new immutable ``EngineSnapshot``.
There is one writer (the event loop), so nothing here takes a lock.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Deque, Optional, Union

from core.activity_feed import ActivityEntry, ActivityFeed, AnalysisSource, TradeSource
from core.commands import CommandQueue
from core.config import Settings
from core.config import settings as default_settings
from core.events import ChangeKind, StreamChange, StreamName, TelemetryEventBus
from core.instruments import InstrumentResolver, known_instruments
from core.logging_utils import get_logger
from core.models import (
    AnalysisSnapshot,
    BotCommand,
    CommandKind,
    Exchange,
    RecordError,
    StatusSnapshot,
    TradeEvent,
)
from core.staleness import StalenessMonitor, StalenessReport
from core.stream_store import AppendResult, StreamStore
from logic.market_overview import MarketOverviewRow, build_market_overview
from logic.positions import OpenPositionRow, build_open_positions
from logic.strategy_stats import (
    PerformanceSummary,
    StrategyStat,
    market_type_stats,
    performance_summary,
    strategy_exchange_stats,
    strategy_stats,
)
from logic.trigger_proximity import TriggerRow, build_trigger_proximity

if TYPE_CHECKING:
    from datafeeds.base import EventStreamAdapter

logger = get_logger(__name__)

ALL_EXCHANGES = "all"
MAX_ADVISORIES = 50
RECENT_TRADES = 10

PARSERS: dict[StreamName, Callable[[dict], Any]] = {
    StreamName.TRADES: TradeEvent.from_record,
    StreamName.ANALYSIS: AnalysisSnapshot.from_record,
    StreamName.STATUS: StatusSnapshot.from_record,
}


class View(str, Enum):
    MARKET_OVERVIEW = "market_overview"
    TRIGGERS = "triggers"
    OPEN_POSITIONS = "open_positions"
    STRATEGY_STATS = "strategy_stats"
    PERFORMANCE = "performance"
    TRADES = "trades"


AFFECTED_VIEWS: dict[StreamName, frozenset[View]] = {
    StreamName.TRADES: frozenset({
        View.MARKET_OVERVIEW,
        View.TRIGGERS,
        View.OPEN_POSITIONS,
        View.STRATEGY_STATS,
        View.PERFORMANCE,
        View.TRADES,
    }),
    StreamName.ANALYSIS: frozenset({View.MARKET_OVERVIEW, View.TRIGGERS}),
    StreamName.STATUS: frozenset({View.PERFORMANCE}),
}


def parse_record(stream: StreamName, raw: dict):
    """Build the typed record for ``stream``; raises RecordError when unusable."""
    if not isinstance(raw, dict):
        raise RecordError(f"expected a mapping, got {type(raw).__name__}")
    return PARSERS[stream](raw)


@dataclass(frozen=True)
class EngineSnapshot:
    """Read-only state handed to presentation. Never mutate its contents."""

    version: int = 0
    market_overview: tuple[MarketOverviewRow, ...] = ()
    triggers: tuple[TriggerRow, ...] = ()
    open_positions: tuple[OpenPositionRow, ...] = ()
    strategy_stats: tuple[StrategyStat, ...] = ()
    strategy_exchange_stats: tuple[StrategyStat, ...] = ()
    market_type_stats: tuple[StrategyStat, ...] = ()
    performance: PerformanceSummary = field(default_factory=PerformanceSummary)
    trades: tuple[TradeEvent, ...] = ()
    recent_trades: tuple[TradeEvent, ...] = ()
    exchange_filter: str = ALL_EXCHANGES
    activity: tuple[ActivityEntry, ...] = ()
    status: Optional[StatusSnapshot] = None
    staleness: Optional[StalenessReport] = None
    counts: dict = field(default_factory=dict)
    advisories: tuple[str, ...] = ()
    published_at: Optional[datetime] = None

    @property
    def connected(self) -> bool:
        return bool(self.staleness and self.staleness.connected)


class TelemetryEngine:
    """Fuses trades, analysis and status streams into derived views."""

    def __init__(self, settings: Optional[Settings] = None, adapter: Optional["EventStreamAdapter"] = None):
        self.settings = settings or default_settings
        self.adapter = adapter

        self.store = StreamStore(
            max_trades=self.settings.max_trades,
            max_analysis=self.settings.max_analysis,
        )
        self.resolver = InstrumentResolver()
        self.feed = ActivityFeed(
            capacity=self.settings.activity_feed_capacity,
            seed_trades=self.settings.feed_seed_trades,
            seed_analysis=self.settings.feed_seed_analysis,
        )
        self.monitor = StalenessMonitor(self.settings.stale_after_seconds)
        self.commands = CommandQueue()
        self.bus: TelemetryEventBus[EngineSnapshot] = TelemetryEventBus("snapshot")

        self.transport_connected = False
        self.exchange_filter = ALL_EXCHANGES
        self.utc_clock = ""
        self.advisories: Deque[str] = deque(maxlen=MAX_ADVISORIES)

        self._views: dict[View, Any] = {}
        self._resolver_dirty = True
        self._snapshot = EngineSnapshot()
        self._version = 0
        self._started = False
        self._closed = False
        self._subscribed = False
        self._clock_task: Optional[asyncio.Task] = None
        self._publisher: Optional[Callable[[BotCommand], None]] = None
        self._recompute(set(View))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Backfill, seed the feed, subscribe and start the clock."""
        if self._started or self._closed:
            return
        self._started = True

        if self.adapter is None:
            logger.warning("[ENGINE] No transport configured; running disconnected")
            self._advise("transport unavailable")
        else:
            s = self.settings
            await asyncio.gather(
                self._backfill(StreamName.TRADES, s.trades_backfill_limit),
                self._backfill(StreamName.STATUS, s.status_backfill_limit),
                self._backfill(StreamName.ANALYSIS, s.analysis_backfill_limit),
            )

        self.monitor.observe(self.store.current_status)
        self.feed.seed(self.store.trades(), self.store.analysis())
        self._resolver_dirty = True
        self._recompute(set(View))
        self._publish()

        if self.adapter is not None and not self._closed:
            await self._subscribe()

        if not self._closed:
            self._clock_task = asyncio.create_task(self._run_clock(), name="engine-utc-clock")
        logger.info("[ENGINE] Started: %s", self.store.counts())

    async def close(self) -> None:
        """Stop all further mutation and release timers. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        task, self._clock_task = self._clock_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self._publisher is not None:
            self.commands.remove_handler(self._publisher)
            self._publisher = None

        if self.adapter is not None and self._subscribed:
            self._subscribed = False
            try:
                await self.adapter.unsubscribe()
            except Exception as e:
                logger.warning("[ENGINE] Unsubscribe failed: %s", e)
        self.transport_connected = False
        self.bus.clear()
        logger.info("[ENGINE] Closed")

    @property
    def closed(self) -> bool:
        return self._closed

    async def _backfill(self, stream: StreamName, limit: int) -> None:
        try:
            rows = await self.adapter.backfill(stream, limit)
        except Exception as e:
            logger.warning("[ENGINE] Backfill of %s failed: %s", stream.value, e)
            self._advise(f"backfill {stream.value} failed: {e}")
            return
        records = []
        for raw in rows or []:
            try:
                records.append(parse_record(stream, raw))
            except RecordError as e:
                logger.warning("[ENGINE] Skipping malformed %s row: %s", stream.value, e)
                self._advise(f"malformed {stream.value} row: {e}")
        self.store.backfill(stream, records)

    async def _subscribe(self) -> None:
        try:
            await self.adapter.subscribe(self.apply_change, self.set_transport_connected)
            self._subscribed = True
        except Exception as e:
            logger.warning("[ENGINE] Subscribe failed: %s", e)
            self._advise(f"subscribe failed: {e}")
            return
        publisher = getattr(self.adapter, "publish_command", None)
        if callable(publisher):
            self._publisher = publisher
            self.commands.on_command(publisher)

    async def _run_clock(self) -> None:
        while not self._closed:
            self.tick()
            await asyncio.sleep(1.0)

    def tick(self, now: Optional[datetime] = None) -> None:
        """One clock second: refresh the UTC clock, republish if connectivity flipped."""
        now = now or datetime.now(timezone.utc)
        self.utc_clock = now.strftime("%H:%M:%S") + " UTC"
        if self.connectivity(now).connected != self._snapshot.connected:
            self._publish(now)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def apply_change(self, change: StreamChange) -> bool:
        """Apply one pushed record. Returns True when state changed."""
        if self._closed:
            logger.debug("[ENGINE] Closed; dropping %s %s", change.stream.value, change.kind.value)
            return False
        try:
            record = parse_record(change.stream, change.record)
        except RecordError as e:
            logger.warning("[ENGINE] Skipping malformed %s %s: %s", change.stream.value, change.kind.value, e)
            self._advise(f"malformed {change.stream.value} {change.kind.value}: {e}")
            return False

        if change.stream == StreamName.TRADES and self.store.get_trade(record.id) == record:
            logger.debug("[ENGINE] Trade %s redelivered unchanged", record.id)
            return False

        if change.kind == ChangeKind.UPDATE:
            result = self.store.replace(change.stream, record)
        else:
            result = self.store.append(change.stream, record)
        if result == AppendResult.IGNORED:
            return False

        if change.stream == StreamName.TRADES:
            self.feed.push(TradeSource(record))
        elif change.stream == StreamName.ANALYSIS:
            self.feed.push(AnalysisSource(record))
            self._resolver_dirty = True
        else:
            self.monitor.observe(self.store.current_status)

        self._recompute(AFFECTED_VIEWS[change.stream])
        self._publish()
        return True

    def set_transport_connected(self, connected: bool) -> None:
        if self._closed or connected == self.transport_connected:
            return
        self.transport_connected = connected
        logger.info("[ENGINE] Transport %s", "connected" if connected else "disconnected")
        self._publish()

    def set_exchange_filter(self, value: Union[str, Exchange]) -> None:
        """Restrict the trades view to one exchange (or ``all``). The store is untouched."""
        normalized = self._normalize_filter(value)
        if normalized == self.exchange_filter:
            return
        self.exchange_filter = normalized
        self._recompute({View.TRADES})
        self._publish()

    def send_command(self, command: Union[CommandKind, str], params: Optional[dict] = None) -> BotCommand:
        return self.commands.enqueue(command, params)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> EngineSnapshot:
        return self._snapshot

    def on_snapshot(self, handler: Callable[[EngineSnapshot], None]) -> None:
        self.bus.subscribe(handler)

    def remove_listener(self, handler: Callable[[EngineSnapshot], None]) -> bool:
        return self.bus.unsubscribe(handler)

    def connectivity(self, now: Optional[datetime] = None) -> StalenessReport:
        return self.monitor.report(self.transport_connected, now)

    def trades_view(self, exchange: Optional[Union[str, Exchange]] = None) -> tuple[TradeEvent, ...]:
        """Trades newest-first, filtered by ``exchange`` or the engine's current filter."""
        selected = self.exchange_filter if exchange is None else self._normalize_filter(exchange)
        trades = self.store.trades()
        if selected == ALL_EXCHANGES:
            return trades
        return tuple(t for t in trades if t.exchange.value == selected)

    @property
    def advisory_log(self) -> tuple[str, ...]:
        return tuple(self.advisories)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _normalize_filter(value: Union[str, Exchange]) -> str:
        if isinstance(value, Exchange):
            return value.value
        lowered = str(value).strip().lower()
        if lowered == ALL_EXCHANGES:
            return ALL_EXCHANGES
        try:
            return Exchange(lowered).value
        except ValueError:
            raise ValueError(f"unknown exchange filter {value!r}") from None

    def _advise(self, message: str) -> None:
        stamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        self.advisories.appendleft(f"{stamp} {message}")

    def _recompute(self, views: set[View] | frozenset[View]) -> None:
        trades = self.store.trades()

        if View.MARKET_OVERVIEW in views or View.TRIGGERS in views:
            if self._resolver_dirty:
                self.resolver.rebuild(self.store.analysis())
                self._resolver_dirty = False
            latest = self.resolver.latest_by_instrument
            if View.MARKET_OVERVIEW in views:
                self._views[View.MARKET_OVERVIEW] = build_market_overview(trades, latest)
            if View.TRIGGERS in views:
                self._views[View.TRIGGERS] = build_trigger_proximity(
                    known_instruments(trades, latest.values()),
                    latest,
                    self.settings.short_exchange_set,
                )

        if View.OPEN_POSITIONS in views:
            self._views[View.OPEN_POSITIONS] = build_open_positions(trades)

        if View.STRATEGY_STATS in views:
            self._views[View.STRATEGY_STATS] = (
                strategy_stats(trades),
                strategy_exchange_stats(trades),
                market_type_stats(trades),
            )

        if View.PERFORMANCE in views:
            self._views[View.PERFORMANCE] = performance_summary(trades, self.store.current_status)

        if View.TRADES in views:
            self._views[View.TRADES] = self.trades_view()

    def _publish(self, now: Optional[datetime] = None) -> None:
        now = now or datetime.now(timezone.utc)
        by_strategy, by_exchange, by_market_type = self._views[View.STRATEGY_STATS]
        self._version += 1
        self._snapshot = EngineSnapshot(
            version=self._version,
            market_overview=self._views[View.MARKET_OVERVIEW],
            triggers=self._views[View.TRIGGERS],
            open_positions=self._views[View.OPEN_POSITIONS],
            strategy_stats=by_strategy,
            strategy_exchange_stats=by_exchange,
            market_type_stats=by_market_type,
            performance=self._views[View.PERFORMANCE],
            trades=self._views[View.TRADES],
            recent_trades=self.store.trades()[:RECENT_TRADES],
            exchange_filter=self.exchange_filter,
            activity=self.feed.entries(),
            status=self.store.current_status,
            staleness=self.connectivity(now),
            counts=self.store.counts(),
            advisories=tuple(self.advisories),
            published_at=now,
        )
        self.bus.emit(self._snapshot)
