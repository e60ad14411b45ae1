"""Transport boundary for the telemetry engine."""

from typing import Callable, Protocol, runtime_checkable

from core.events import StreamChange, StreamName
from core.models import BotCommand

ChangeHandler = Callable[[StreamChange], None]
StatusHandler = Callable[[bool], None]


class TransportError(RuntimeError):
    """The transport could not deliver a backfill page or a command."""


@runtime_checkable
class EventStreamAdapter(Protocol):
    """Delivers a bounded backfill per stream, then pushes new records.

    ``backfill`` returns raw rows newest-first, and an empty list (never
    None) when the stream has no data.
    """

    async def backfill(self, stream: StreamName, limit: int) -> list[dict]:
        ...

    async def subscribe(self, on_change: ChangeHandler, on_status: StatusHandler) -> None:
        ...

    async def unsubscribe(self) -> None:
        ...


@runtime_checkable
class CommandPublisher(Protocol):
    """Optional adapter capability: forward a queued command to the bot."""

    def publish_command(self, command: BotCommand) -> None:
        ...
