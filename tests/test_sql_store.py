"""SQLModel ledger store specifics: clamped increments, ordering and detached rows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlmodel import select

from jarledger.errors import JarNotFound, TierLimitExceeded, UserNotFound
from jarledger.infra.repositories import SQLModelUserRepository
from jarledger.models import Jar, JarMember, LedgerOperation, Transaction, User
from jarledger.services.ledger import JarLedger


@pytest.fixture
def owner(session_factory) -> User:
    return SQLModelUserRepository(session_factory).create(User(email="owner@example.com"))


@pytest.fixture
def jar(sql_store, owner) -> Jar:
    return sql_store.insert_jar(Jar(owner_id=owner.id, name="Groceries"))


def test_increment_balance_is_clamped_at_zero(sql_store, jar):
    assert sql_store.increment_balance(jar.id, Decimal("12.50")) == Decimal("12.50")
    assert sql_store.increment_balance(jar.id, Decimal("-20")) == Decimal("0.00")
    assert sql_store.get_jar(jar.id).balance == Decimal("0")


def test_increment_missing_jar(sql_store):
    with pytest.raises(JarNotFound):
        sql_store.increment_balance(404, Decimal("1"))
    with pytest.raises(JarNotFound):
        sql_store.update_jar_balance(404, Decimal("1"))


def test_update_jar_balance_never_stores_negative(sql_store, jar):
    sql_store.update_jar_balance(jar.id, Decimal("-3"))

    assert sql_store.get_jar(jar.id).balance == Decimal("0")


def test_insert_jar_positions_and_guard(sql_store, owner):
    seen = []

    def guard(existing: int) -> None:
        seen.append(existing)
        if existing >= 2:
            raise TierLimitExceeded(limit=2, existing=existing)

    first = sql_store.insert_jar(Jar(owner_id=owner.id, name="A", position=99), guard=guard)
    second = sql_store.insert_jar(Jar(owner_id=owner.id, name="B"), guard=guard)
    with pytest.raises(TierLimitExceeded):
        sql_store.insert_jar(Jar(owner_id=owner.id, name="C"), guard=guard)

    assert (first.position, second.position) == (0, 1)
    assert seen == [0, 1, 2]
    assert sql_store.count_jars(owner.id) == 2


def test_insert_jar_for_unknown_owner(sql_store):
    with pytest.raises(UserNotFound):
        sql_store.insert_jar(Jar(owner_id=404, name="Orphan"))


def test_insert_transactions_and_ordering(sql_store, jar, owner):
    base = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    rows = sql_store.insert_transactions(
        [
            Transaction(jar_id=jar.id, user_id=owner.id, type="fill", amount=Decimal("5"), occurred_at=base),
            Transaction(
                jar_id=jar.id, user_id=owner.id, type="spend", amount=Decimal("2"),
                occurred_at=base + timedelta(days=1),
            ),
        ]
    )
    single = sql_store.insert_transaction(
        Transaction(jar_id=jar.id, user_id=owner.id, type="fill", amount=Decimal("1"), occurred_at=base)
    )

    assert all(row.id is not None for row in rows)
    listed = sql_store.list_transactions(jar.id)
    # Newest first; equal timestamps fall back to insertion order, newest first.
    assert [t.id for t in listed] == [rows[1].id, single.id, rows[0].id]
    assert [t.id for t in sql_store.list_transactions(jar.id, limit=1)] == [rows[1].id]
    assert [t.id for t in sql_store.list_user_transactions(owner.id)] == [t.id for t in listed]


def test_returned_rows_are_detached(sql_store, jar):
    fetched = sql_store.get_jar(jar.id)
    fetched.name = "Renamed locally"

    assert sql_store.get_jar(jar.id).name == "Groceries"


def test_update_jar_persists_editable_fields(sql_store, jar):
    jar.name = "Food"
    jar.color = "#4ECDC4"
    jar.target_amount = Decimal("300")
    jar.balance = Decimal("1000")

    updated = sql_store.update_jar(jar)

    assert updated.name == "Food"
    assert updated.color == "#4ECDC4"
    assert updated.target_amount == Decimal("300")
    # Balances only move through ledger operations.
    assert updated.balance == Decimal("0")


def test_operations_record_their_key(session_factory, sql_store, jar, owner):
    txn = JarLedger(sql_store, retry_backoff=0).fill(
        jar.id, 3, user_id=owner.id, operation_key="recorded"
    )

    with session_factory() as session:
        operation = session.get(LedgerOperation, "recorded")
        stored = session.exec(select(Transaction).where(Transaction.operation_id == "recorded")).all()

    assert operation is not None
    assert operation.kind == "fill"
    assert operation.user_id == owner.id
    assert [t.id for t in stored] == [txn.id]


def test_delete_jar_cascade_removes_members_and_rows(sql_store, session_factory, jar, owner):
    friend = SQLModelUserRepository(session_factory).create(User(email="friend@example.com"))
    sql_store.add_member(JarMember(jar_id=jar.id, user_id=friend.id, role="editor"))
    sql_store.insert_transaction(Transaction(jar_id=jar.id, type="fill", amount=Decimal("1")))

    sql_store.delete_jar_cascade(jar.id)

    assert sql_store.get_jar(jar.id) is None
    assert sql_store.get_member(jar.id, friend.id) is None
    assert sql_store.list_transactions(jar.id) == []


def test_transaction_timestamp_defaults_to_now(sql_store, jar):
    before = datetime.now(timezone.utc)

    stored = sql_store.insert_transaction(Transaction(jar_id=jar.id, type="fill", amount=Decimal("1")))

    assert stored.occurred_at is not None
    occurred = stored.occurred_at.replace(tzinfo=stored.occurred_at.tzinfo or timezone.utc)
    assert occurred >= before - timedelta(seconds=1)


def test_deleted_ids_are_not_reused(sql_store, jar, owner):
    txn = sql_store.insert_transaction(Transaction(jar_id=jar.id, type="fill", amount=Decimal("1")))
    sql_store.delete_jar_cascade(jar.id)

    replacement = sql_store.insert_jar(Jar(owner_id=owner.id, name="Groceries"))
    next_txn = sql_store.insert_transaction(
        Transaction(jar_id=replacement.id, type="fill", amount=Decimal("1"))
    )

    assert replacement.id > jar.id
    assert next_txn.id > txn.id
