"""CSV export of the trade history."""

import csv
import io
from typing import Iterable

from core.models import TradeEvent

CSV_COLUMNS = (
    "id",
    "timestamp",
    "pair",
    "exchange",
    "side",
    "price",
    "amount",
    "strategy",
    "pnl",
    "position_type",
    "leverage",
    "status",
)


def trades_to_csv(trades: Iterable[TradeEvent]) -> str:
    """Render trades as CSV with a header row; empty string when there are none."""
    trades = list(trades)
    if not trades:
        return ""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for t in trades:
        record = t.to_record()
        writer.writerow({col: record.get(col, "") for col in CSV_COLUMNS})
    return buf.getvalue()
