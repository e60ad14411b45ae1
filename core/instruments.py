"""Instrument identity and latest-analysis index."""

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from core.models import DEFAULT_EXCHANGE, AnalysisSnapshot, Exchange, TradeEvent


@dataclass(frozen=True, order=True)
class Instrument:
    pair: str
    exchange: Exchange

    @property
    def key(self) -> str:
        return instrument_key(self.pair, self.exchange)


def instrument_key(pair: str, exchange: Optional[Union[Exchange, str]]) -> str:
    """Canonical ``pair:exchange`` key; analysis rows without exchange mean binance."""
    if exchange is None or exchange == "":
        exchange = DEFAULT_EXCHANGE
    value = exchange.value if isinstance(exchange, Exchange) else str(exchange).lower()
    return f"{pair}:{value}"


def analysis_instrument(snapshot: AnalysisSnapshot) -> Optional[Instrument]:
    if snapshot.is_market_wide:
        return None
    return Instrument(snapshot.pair, snapshot.exchange or DEFAULT_EXCHANGE)


def latest_analysis_by_instrument(
    snapshots: Iterable[AnalysisSnapshot],
) -> dict[str, AnalysisSnapshot]:
    """Latest snapshot per instrument key, decided by timestamp.

    On equal timestamps the snapshot seen first wins, so a newest-first
    input keeps the most recently inserted one. Market-wide rows are skipped.
    """
    latest: dict[str, AnalysisSnapshot] = {}
    for snap in snapshots:
        instrument = analysis_instrument(snap)
        if instrument is None:
            continue
        current = latest.get(instrument.key)
        if current is None or snap.timestamp > current.timestamp:
            latest[instrument.key] = snap
    return latest


def known_instruments(
    trades: Iterable[TradeEvent],
    snapshots: Iterable[AnalysisSnapshot] = (),
) -> tuple[Instrument, ...]:
    """Union of instruments seen in trades and pair-carrying analysis, first-seen order."""
    seen: dict[str, Instrument] = {}
    for trade in trades:
        inst = Instrument(trade.pair, trade.exchange)
        seen.setdefault(inst.key, inst)
    for snap in snapshots:
        inst = analysis_instrument(snap)
        if inst is not None:
            seen.setdefault(inst.key, inst)
    return tuple(seen.values())


class InstrumentResolver:
    """Caches the latest-analysis index; rebuilt after each analysis mutation."""

    def __init__(self):
        self._latest: dict[str, AnalysisSnapshot] = {}

    def rebuild(self, snapshots: Iterable[AnalysisSnapshot]) -> None:
        self._latest = latest_analysis_by_instrument(snapshots)

    def latest(self, instrument: Union[Instrument, str]) -> Optional[AnalysisSnapshot]:
        key = instrument.key if isinstance(instrument, Instrument) else instrument
        return self._latest.get(key)

    @property
    def latest_by_instrument(self) -> dict[str, AnalysisSnapshot]:
        return dict(self._latest)

    def __len__(self) -> int:
        return len(self._latest)
