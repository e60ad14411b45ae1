"""Display formatters shared by the terminal dashboard and CSV/web output."""

from datetime import datetime, timezone
from typing import Optional


def format_currency(value: float) -> str:
    """USD with thousands separators and two decimals: ``$1,234.50``."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_pnl(value: float) -> str:
    """Always signed: ``+$12.00`` / ``-$3.40``."""
    return f"{'+' if value >= 0 else '-'}{format_currency(abs(value))}"


def format_percentage(value: float) -> str:
    return f"{'+' if value >= 0 else ''}{value:.2f}%"


def format_number(value: Optional[float], decimals: int = 2, missing: str = "-") -> str:
    if value is None:
        return missing
    return f"{value:,.{decimals}f}"


def format_uptime(seconds: Optional[float]) -> str:
    if not seconds:
        return "0m"
    total = int(seconds)
    hours, minutes = total // 3600, (total % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_time_ago(ts: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Coarse relative time: ``just now``, ``5m ago``, ``3h ago``, ``2d ago``."""
    if ts is None:
        return "never"
    now = now or datetime.now(timezone.utc)
    seconds = (now - ts).total_seconds()
    if seconds < 0:
        return "in the future"
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"


def pnl_style(value: float) -> str:
    if value > 0:
        return "green"
    if value < 0:
        return "red"
    return "dim"
