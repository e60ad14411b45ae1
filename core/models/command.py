"""Outbound command record (dashboard -> bot)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class CommandKind(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    FORCE_STRATEGY = "force_strategy"


@dataclass
class BotCommand:
    """A command queued for the bot. The dashboard never interprets it."""

    command: CommandKind
    params: dict[str, str] = field(default_factory=dict)
    executed: bool = False
    id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> dict:
        record = {
            "command": self.command.value,
            "params": dict(self.params),
            "executed": self.executed,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.id:
            record["id"] = self.id
        return record
