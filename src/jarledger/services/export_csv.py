"""CSV export of jar ledger rows."""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path
from typing import Iterable

from ..models.transaction import Transaction

HEADERS = ["id", "jar_id", "type", "amount", "note", "memo", "occurred_at", "user_id", "operation_id"]


def _serialize_value(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def export_transactions_csv(*, transactions: Iterable[Transaction], output_path: Path) -> Path:
    """Write transactions to CSV at ``output_path`` and return the path.

    Amounts are written positive as stored; ``type`` carries the direction.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=HEADERS, quoting=csv.QUOTE_MINIMAL)
        writer.writeheader()
        for tx in transactions:
            writer.writerow({name: _serialize_value(getattr(tx, name, None)) for name in HEADERS})
    return output_path
