"""
REST Stream Poller

Implements the event-stream adapter on top of PostgREST polling.
- Backfill is one ``fetch_latest`` per stream
- Each poll compares rows by id: unseen ids become inserts, changed rows updates
- Trades still open are re-read by id every poll, so a close outside the window is seen
- A failing stream is skipped for that poll; only a poll where every stream
  fails flips the transport to disconnected and backs off exponentially
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Optional

from core.config import Settings
from core.config import settings as default_settings
from core.events import ChangeKind, StreamChange, StreamName
from core.logging_utils import get_logger
from core.models import BotCommand
from datafeeds.base import ChangeHandler, StatusHandler, TransportError

logger = get_logger(__name__)

COMMANDS_TABLE = "bot_commands"
MAX_BACKOFF_SECONDS = 60.0

# Rows re-read per stream on every poll
POLL_LIMITS = {
    StreamName.TRADES: 50,
    StreamName.ANALYSIS: 20,
    StreamName.STATUS: 1,
}

# Ids per `id=in.(...)` request when re-reading open trades
OPEN_ID_BATCH = 100


@dataclass
class BackoffState:
    """Tracks consecutive poll failures."""
    base_interval: float = 2.0
    consecutive_failures: int = 0

    def record_failure(self) -> float:
        """Record a failed poll and return the delay before the next one."""
        self.consecutive_failures += 1
        delay = min(MAX_BACKOFF_SECONDS, self.base_interval * 2 ** self.consecutive_failures)
        logger.warning("[POLLER] Poll failed, backing off %.1fs (#%s)", delay, self.consecutive_failures)
        return delay

    def record_success(self) -> float:
        self.consecutive_failures = 0
        return self.base_interval


def fingerprint(row: dict) -> str:
    return json.dumps(row, sort_keys=True, default=str)


class RestPoller:
    """
    Polls the bot's tables and pushes changes to the engine.

    The client is anything with ``fetch_latest(table, limit)``,
    ``fetch_by_ids(table, ids)`` and ``insert(table, record)``; calls run in
    the default executor.
    """

    def __init__(self, client, settings: Optional[Settings] = None, poll_interval: Optional[float] = None):
        self.client = client
        self.settings = settings or default_settings
        interval = self.settings.poll_interval_seconds if poll_interval is None else poll_interval
        self.backoff = BackoffState(base_interval=interval)

        self._seen: dict[StreamName, dict[str, str]] = {s: {} for s in StreamName}
        self._open_trades: set[str] = set()
        self._on_change: Optional[ChangeHandler] = None
        self._on_status: Optional[StatusHandler] = None
        self._connected = False
        self._reachable = False
        self._running = False
        self._task: Optional[asyncio.Task] = None

        # Stats
        self.polls = 0
        self.errors = 0
        self.changes = 0

    async def _fetch(self, table: str, limit: int) -> list[dict]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.client.fetch_latest(table, limit))

    async def backfill(self, stream: StreamName, limit: int) -> list[dict]:
        rows = await self._fetch(stream.value, limit)
        rows = [r for r in rows if isinstance(r, dict)]
        for row in rows:
            if row.get("id") is not None:
                self._remember(stream, row)
        self._reachable = True
        logger.info("[POLLER] Backfill %s: %d rows", stream.value, len(rows))
        return rows

    async def subscribe(self, on_change: ChangeHandler, on_status: StatusHandler) -> None:
        """Start the polling loop."""
        self._on_change = on_change
        self._on_status = on_status
        self._running = True
        self._task = asyncio.create_task(self._poll_loop(), name="rest-poller")
        if self._reachable:
            self._set_connected(True)
        logger.info("[POLLER] Started (every %.1fs)", self.backoff.base_interval)

    async def unsubscribe(self) -> None:
        """Stop polling. No callbacks fire afterwards."""
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._on_change = None
        self._on_status = None
        logger.info("[POLLER] Stopped")

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        if self._on_status:
            self._on_status(connected)

    async def _poll_loop(self) -> None:
        delay = self.backoff.base_interval
        while self._running:
            try:
                await asyncio.sleep(delay)
                if not self._running:
                    break
                await self.poll_once()
                delay = self.backoff.record_success()
                self._set_connected(True)
            except asyncio.CancelledError:
                break
            except TransportError as e:
                self.errors += 1
                logger.warning("[POLLER] %s", e)
                delay = self.backoff.record_failure()
                self._set_connected(False)
            except Exception as e:
                self.errors += 1
                logger.warning("[POLLER] Unexpected poll error: %s", e, exc_info=True)
                delay = self.backoff.record_failure()
                self._set_connected(False)

    async def poll_once(self) -> int:
        """Fetch every stream once and deliver what changed. Returns the change count.

        A stream whose fetch fails is logged and skipped; the others still
        deliver. Raises ``TransportError`` only when every stream failed.
        """
        self.polls += 1
        streams = list(StreamName)
        pages = await asyncio.gather(*(self._fetch_stream(s) for s in streams), return_exceptions=True)

        failures = []
        delivered = 0
        for stream, rows in zip(streams, pages):
            if isinstance(rows, BaseException):
                if not isinstance(rows, Exception):
                    raise rows
                self.errors += 1
                failures.append(rows)
                logger.warning("[POLLER] %s poll failed: %s", stream.value, rows)
                continue
            for change in self._diff(stream, rows):
                if not self._running or self._on_change is None:
                    self.changes += delivered
                    return delivered
                self._on_change(change)
                delivered += 1
        self.changes += delivered

        if len(failures) == len(streams):
            raise TransportError(f"all streams failed: {failures[0]}")
        return delivered

    async def _fetch_stream(self, stream: StreamName) -> list[dict]:
        rows = await self._fetch(stream.value, POLL_LIMITS[stream])
        if stream is not StreamName.TRADES or not self._open_trades:
            return rows

        # Open trades that fell out of the window are re-read by id
        in_page = {str(r["id"]) for r in rows if isinstance(r, dict) and r.get("id") is not None}
        missing = sorted(self._open_trades - in_page)
        loop = asyncio.get_running_loop()
        older = []
        for i in range(0, len(missing), OPEN_ID_BATCH):
            batch = missing[i:i + OPEN_ID_BATCH]
            older.extend(await loop.run_in_executor(
                None, lambda b=batch: self.client.fetch_by_ids(stream.value, b)))
        returned = {str(r["id"]) for r in older if isinstance(r, dict) and r.get("id") is not None}
        gone = set(missing) - returned
        if gone:
            logger.debug("[POLLER] %d open trades no longer in %s", len(gone), stream.value)
            self._open_trades -= gone
        # Everything re-read by id predates the window
        return rows + older

    def _remember(self, stream: StreamName, row: dict) -> None:
        row_id = str(row["id"])
        self._seen[stream][row_id] = fingerprint(row)
        if stream is StreamName.TRADES:
            if str(row.get("status") or "").lower() == "open":
                self._open_trades.add(row_id)
            else:
                self._open_trades.discard(row_id)

    def _diff(self, stream: StreamName, rows: list[dict]) -> list[StreamChange]:
        seen = self._seen[stream]
        changes = []
        # Rows arrive newest-first; deliver oldest-first
        for row in reversed(rows):
            if not isinstance(row, dict) or row.get("id") is None:
                continue
            fp = fingerprint(row)
            previous = seen.get(str(row["id"]))
            if previous == fp:
                continue
            self._remember(stream, row)
            kind = ChangeKind.INSERT if previous is None else ChangeKind.UPDATE
            changes.append(StreamChange(stream=stream, kind=kind, record=row))
        return changes

    def publish_command(self, command: BotCommand) -> None:
        """Write a command row for the bot to pick up."""
        record = command.to_record()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._insert_command(record)
            return
        loop.run_in_executor(None, self._insert_command, record)

    def _insert_command(self, record: dict) -> None:
        # Runs detached in the executor; must not raise
        try:
            self.client.insert(COMMANDS_TABLE, record)
            logger.info("[CMD] Command %s published", record.get("command"))
        except TransportError as e:
            self.errors += 1
            logger.warning("[CMD] Command %s not published: %s", record.get("command"), e)
        except Exception as e:
            self.errors += 1
            logger.error("[CMD] Command %s failed: %s", record.get("command"), e, exc_info=True)

    def get_stats(self) -> dict:
        return {
            "polls": self.polls,
            "changes": self.changes,
            "errors": self.errors,
            "connected": self._connected,
            "consecutive_failures": self.backoff.consecutive_failures,
        }
