"""In-memory store for the three telemetry streams.

Owns the raw collections. Trades and analysis snapshots are kept by id;
reads return immutable tuples ordered newest-first by
``(timestamp, insertion sequence)``. Status keeps only the current and the
previous snapshot.

Identity rules:
    trades    insert of a known id replaces it in place (status transitions)
    analysis  insert-only; a known id is ignored
    status    newest arrival becomes current; older arrivals are ignored
A push ``update`` replaces by identity on every stream.
"""

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from core.events import StreamName
from core.logging_utils import get_logger
from core.models import AnalysisSnapshot, StatusSnapshot, TradeEvent

logger = get_logger(__name__)

StreamRecord = Union[TradeEvent, AnalysisSnapshot, StatusSnapshot]


class AppendResult(str, Enum):
    INSERTED = "inserted"
    REPLACED = "replaced"
    IGNORED = "ignored"


@dataclass
class _Entry:
    record: StreamRecord
    seq: int


def _newest_first(entries: Iterable[_Entry]) -> list[_Entry]:
    return sorted(entries, key=lambda e: (e.record.timestamp, e.seq), reverse=True)


class StreamStore:
    """Append-only, identity-deduplicated stream collections."""

    def __init__(self, max_trades: int = 0, max_analysis: int = 0):
        self.max_trades = max_trades
        self.max_analysis = max_analysis
        self._seq = itertools.count()
        self._trades: dict[str, _Entry] = {}
        self._analysis: dict[str, _Entry] = {}
        self._status_current: Optional[StatusSnapshot] = None
        self._status_previous: Optional[StatusSnapshot] = None
        self._trades_view: Optional[tuple[TradeEvent, ...]] = None
        self._analysis_view: Optional[tuple[AnalysisSnapshot, ...]] = None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def append(self, stream: StreamName, record: StreamRecord) -> AppendResult:
        """Insert a record, enforcing the stream's identity rule."""
        self._check_type(stream, record)
        if stream == StreamName.TRADES:
            return self._upsert(self._trades, record, self.max_trades, stream)
        if stream == StreamName.ANALYSIS:
            if record.id in self._analysis:
                logger.debug("[STORE] Duplicate analysis %s ignored", record.id)
                return AppendResult.IGNORED
            return self._upsert(self._analysis, record, self.max_analysis, stream)
        return self._set_status(record, replace=False)

    def replace(self, stream: StreamName, record: StreamRecord) -> AppendResult:
        """Apply a full replacement by identity (push ``update``)."""
        self._check_type(stream, record)
        if stream == StreamName.TRADES:
            return self._upsert(self._trades, record, self.max_trades, stream)
        if stream == StreamName.ANALYSIS:
            return self._upsert(self._analysis, record, self.max_analysis, stream)
        return self._set_status(record, replace=True)

    def backfill(self, stream: StreamName, records: Iterable[StreamRecord]) -> int:
        """Bulk-load records delivered newest-first. Returns how many were kept."""
        kept = 0
        # Apply oldest-first so insertion order follows arrival time
        for record in reversed(list(records)):
            if self.append(stream, record) != AppendResult.IGNORED:
                kept += 1
        logger.info("[STORE] Backfilled %s: %d kept", stream.value, kept)
        return kept

    def _upsert(self, bucket: dict[str, _Entry], record: StreamRecord, cap: int,
                stream: StreamName) -> AppendResult:
        existing = bucket.get(record.id)
        if existing is not None:
            existing.record = record
            result = AppendResult.REPLACED
        else:
            bucket[record.id] = _Entry(record=record, seq=next(self._seq))
            result = AppendResult.INSERTED
            if cap and len(bucket) > cap:
                self._evict_oldest(bucket, cap, stream)
        self._invalidate(stream)
        return result

    def _evict_oldest(self, bucket: dict[str, _Entry], cap: int, stream: StreamName) -> None:
        overflow = len(bucket) - cap
        oldest = _newest_first(bucket.values())[-overflow:]
        for entry in oldest:
            del bucket[entry.record.id]
        logger.info("[STORE] Evicted %d oldest %s records (cap %d)", overflow, stream.value, cap)

    def _set_status(self, record: StatusSnapshot, replace: bool) -> AppendResult:
        current = self._status_current
        if current is not None and record.id == current.id:
            if not replace:
                return AppendResult.IGNORED
            self._status_current = record
            return AppendResult.REPLACED
        if current is not None and record.timestamp < current.timestamp:
            logger.info(
                "[STORE] Status %s (%s) older than current %s, ignored",
                record.id, record.timestamp.isoformat(), current.timestamp.isoformat(),
            )
            return AppendResult.IGNORED
        self._status_previous = current
        self._status_current = record
        return AppendResult.INSERTED

    def _invalidate(self, stream: StreamName) -> None:
        if stream == StreamName.TRADES:
            self._trades_view = None
        elif stream == StreamName.ANALYSIS:
            self._analysis_view = None

    @staticmethod
    def _check_type(stream: StreamName, record: StreamRecord) -> None:
        expected = {
            StreamName.TRADES: TradeEvent,
            StreamName.ANALYSIS: AnalysisSnapshot,
            StreamName.STATUS: StatusSnapshot,
        }[stream]
        if not isinstance(record, expected):
            raise TypeError(f"{stream.value} expects {expected.__name__}, got {type(record).__name__}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def trades(self) -> tuple[TradeEvent, ...]:
        if self._trades_view is None:
            self._trades_view = tuple(e.record for e in _newest_first(self._trades.values()))
        return self._trades_view

    def analysis(self) -> tuple[AnalysisSnapshot, ...]:
        if self._analysis_view is None:
            self._analysis_view = tuple(e.record for e in _newest_first(self._analysis.values()))
        return self._analysis_view

    def get_trade(self, trade_id: str) -> Optional[TradeEvent]:
        entry = self._trades.get(trade_id)
        return entry.record if entry else None

    @property
    def current_status(self) -> Optional[StatusSnapshot]:
        return self._status_current

    @property
    def previous_status(self) -> Optional[StatusSnapshot]:
        return self._status_previous

    def counts(self) -> dict[str, int]:
        return {
            StreamName.TRADES.value: len(self._trades),
            StreamName.ANALYSIS.value: len(self._analysis),
            StreamName.STATUS.value: 1 if self._status_current else 0,
        }

    def __len__(self) -> int:
        return len(self._trades) + len(self._analysis)
