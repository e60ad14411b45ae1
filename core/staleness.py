"""Heartbeat freshness and connectivity flags from the bot's status stream."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from core.models import BotRunState, StatusSnapshot


@dataclass(frozen=True)
class StalenessReport:
    last_heartbeat: Optional[datetime]
    age_seconds: Optional[float]
    is_stale: bool
    heartbeat_advanced: bool
    transport_connected: bool
    binance_connected: bool
    delta_connected: bool
    bot_state: BotRunState

    @property
    def connected(self) -> bool:
        """Transport up and the bot's heartbeat is fresh."""
        return self.transport_connected and not self.is_stale


class StalenessMonitor:
    """Tracks the current and prior heartbeat and judges freshness."""

    def __init__(self, stale_after_seconds: float = 120.0):
        self.stale_after_seconds = stale_after_seconds
        self._current: Optional[StatusSnapshot] = None
        self._prior: Optional[StatusSnapshot] = None

    def observe(self, status: Optional[StatusSnapshot]) -> None:
        if status is None or status is self._current:
            return
        self._prior = self._current
        self._current = status

    @property
    def current(self) -> Optional[StatusSnapshot]:
        return self._current

    def age_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        if self._current is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self._current.timestamp).total_seconds()

    def report(self, transport_connected: bool, now: Optional[datetime] = None) -> StalenessReport:
        status = self._current
        age = self.age_seconds(now)
        is_stale = age is None or age > self.stale_after_seconds
        advanced = (
            status is not None
            and (self._prior is None or status.timestamp > self._prior.timestamp)
        )

        def _exchange_flag(flag: Optional[bool]) -> bool:
            up = transport_connected if flag is None else flag
            return up and not is_stale

        if status is not None and status.bot_state is not None:
            bot_state = status.bot_state
        else:
            bot_state = BotRunState.RUNNING if transport_connected else BotRunState.PAUSED

        return StalenessReport(
            last_heartbeat=status.timestamp if status else None,
            age_seconds=age,
            is_stale=is_stale,
            heartbeat_advanced=advanced,
            transport_connected=transport_connected,
            binance_connected=_exchange_flag(status.binance_connected if status else None),
            delta_connected=_exchange_flag(status.delta_connected if status else None),
            bot_state=bot_state,
        )
