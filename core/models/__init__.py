"""Typed records for the three telemetry streams and outbound commands."""

from core.models.analysis import INDICATOR_FIELDS, AnalysisSnapshot
from core.models.base import DEFAULT_EXCHANGE, Exchange, RecordError
from core.models.command import BotCommand, CommandKind
from core.models.status import BotRunState, StatusSnapshot
from core.models.trade import PositionType, Side, TradeEvent, TradeStatus

__all__ = [
    "AnalysisSnapshot",
    "BotCommand",
    "BotRunState",
    "CommandKind",
    "DEFAULT_EXCHANGE",
    "Exchange",
    "INDICATOR_FIELDS",
    "PositionType",
    "RecordError",
    "Side",
    "StatusSnapshot",
    "TradeEvent",
    "TradeStatus",
]
