"""CSV export of jar history."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from decimal import Decimal

from jarledger.models import Transaction
from jarledger.services import reports
from jarledger.services.export_csv import HEADERS, export_transactions_csv


def test_export_writes_header_and_rows(tmp_path):
    when = datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
    rows = [
        Transaction(id=1, jar_id=2, user_id=3, type="fill", amount=Decimal("10.00"), note="Pay, day", occurred_at=when),
        Transaction(id=2, jar_id=2, type="spend", amount=Decimal("4.50"), occurred_at=when),
    ]

    output = export_transactions_csv(transactions=rows, output_path=tmp_path / "nested" / "out.csv")

    with output.open(newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        assert reader.fieldnames == HEADERS
        data = list(reader)

    assert data[0]["note"] == "Pay, day"
    assert data[0]["amount"] == "10.00"
    assert data[0]["occurred_at"] == "2024-02-03T04:05:06+00:00"
    assert data[1]["type"] == "spend"
    assert data[1]["amount"] == "4.50"
    assert data[1]["user_id"] == ""
    assert data[1]["note"] == ""


def test_export_jar_history(backend, jar_factory, user, tmp_path):
    jar = jar_factory("Groceries", balance=25)
    backend.ledger.spend(jar.id, 30, "Big shop", user_id=user.id)

    history = reports.jar_history(backend.store, jar.id, user_id=user.id, limit=None)
    output = export_transactions_csv(transactions=history, output_path=tmp_path / "history.csv")

    with output.open(newline="", encoding="utf-8") as fh:
        data = list(csv.DictReader(fh))

    assert [row["type"] for row in data] == ["spend", "fill"]
    assert data[0]["amount"] == "30.00"
    assert data[0]["note"] == "Big shop"
    assert all(row["operation_id"] for row in data)


def test_export_empty_history(tmp_path):
    output = export_transactions_csv(transactions=[], output_path=tmp_path / "empty.csv")

    assert output.read_text(encoding="utf-8").strip() == ",".join(HEADERS)


def test_export_keeps_transfer_memo(backend, jar_factory, user, tmp_path):
    source = jar_factory("Savings", balance=20)
    destination = jar_factory("Rent")
    backend.ledger.transfer(source.id, destination.id, 5, "March share", user_id=user.id)

    history = reports.jar_history(backend.store, destination.id, user_id=user.id, limit=None)
    output = export_transactions_csv(transactions=history, output_path=tmp_path / "rent.csv")

    with output.open(newline="", encoding="utf-8") as fh:
        (row,) = list(csv.DictReader(fh))

    assert row["note"] == "Transfer from Savings"
    assert row["memo"] == "March share"
