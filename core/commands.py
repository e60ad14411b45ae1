"""Outbound command queue (dashboard -> bot).

Commands are validated for shape only and handed to whatever publisher the
transport offers. Nothing here interprets or authorizes them.
"""

from collections import deque
from typing import Callable, Deque, Optional, Union

from core.logging_utils import get_logger
from core.models import BotCommand, CommandKind

logger = get_logger(__name__)

MAX_RECENT_COMMANDS = 100


class CommandError(ValueError):
    """Unknown command or malformed parameters."""


class CommandQueue:
    def __init__(self, maxlen: int = MAX_RECENT_COMMANDS):
        self._commands: Deque[BotCommand] = deque(maxlen=maxlen)
        self._handlers: list[Callable[[BotCommand], None]] = []

    def on_command(self, handler: Callable[[BotCommand], None]) -> None:
        self._handlers.append(handler)

    def remove_handler(self, handler: Callable[[BotCommand], None]) -> bool:
        try:
            self._handlers.remove(handler)
            return True
        except ValueError:
            return False

    def enqueue(self, command: Union[CommandKind, str], params: Optional[dict] = None) -> BotCommand:
        try:
            kind = CommandKind(command)
        except ValueError:
            raise CommandError(f"unknown command {command!r}") from None
        params = {str(k): str(v) for k, v in (params or {}).items()}
        if kind == CommandKind.FORCE_STRATEGY and not params.get("strategy"):
            raise CommandError("force_strategy requires a 'strategy' parameter")

        cmd = BotCommand(command=kind, params=params)
        self._commands.append(cmd)
        logger.info("[CMD] Queued %s %s", kind.value, params or "")
        for handler in list(self._handlers):
            try:
                handler(cmd)
            except Exception as e:
                logger.warning("[CMD] Publish failed for %s: %s", kind.value, e)
        return cmd

    def pending(self) -> tuple[BotCommand, ...]:
        return tuple(c for c in self._commands if not c.executed)

    def recent(self) -> tuple[BotCommand, ...]:
        return tuple(self._commands)

    def drain(self) -> list[BotCommand]:
        """Pop every queued command, oldest first."""
        drained = list(self._commands)
        self._commands.clear()
        return drained
