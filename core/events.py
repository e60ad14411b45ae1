"""Stream change events and a small synchronous bus for engine snapshots.

Adapters deliver ``StreamChange`` objects; the engine applies them and
publishes an immutable snapshot to every listener registered on the bus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StreamName(str, Enum):
    """Wire table names of the three telemetry streams."""

    TRADES = "trades"
    ANALYSIS = "strategy_log"
    STATUS = "bot_status"


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True)
class StreamChange:
    """One pushed record: stream, change kind and the raw row."""

    stream: StreamName
    kind: ChangeKind
    record: dict[str, Any]
    received_at: datetime = field(default_factory=_utc_now)


class TelemetryEventBus(Generic[T]):
    """Minimal sync bus; a failing listener never breaks the data path."""

    def __init__(self, name: str = "snapshot"):
        self.name = name
        self._handlers: List[Callable[[T], None]] = []

    def subscribe(self, handler: Callable[[T], None]) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: Callable[[T], None]) -> bool:
        """Remove a handler. Returns True if removed."""
        try:
            self._handlers.remove(handler)
            return True
        except ValueError:
            return False

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def emit(self, event: T) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.warning("[EVENT] %s handler error: %s", self.name, e, exc_info=True)
                continue
