"""SQLModel implementation of the ledger store."""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Iterator, Optional, Sequence

from sqlalchemy import case, delete, func, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from ...domain.operations import OperationPlan, OperationResult, UserTier
from ...domain.repositories.ledger import JarGuard
from ...errors import JarNotFound, OperationKeyConflict, PersistenceFailure, UserNotFound
from ...logging_config import get_logger
from ...models.jar import Jar, JarMember
from ...models.operation import LedgerOperation
from ...models.transaction import Transaction, TransactionType
from ...models.user import User

logger = get_logger(__name__)

ZERO = Decimal("0.00")


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures as ``PersistenceFailure``.

    Lock timeouts and dropped connections surface as ``OperationalError`` and
    are marked retryable.
    """
    try:
        yield
    except OperationalError as exc:
        logger.warning("Storage unavailable during %s: %s", action, exc.orig)
        raise PersistenceFailure(f"{action} failed: {exc.orig}", retryable=True) from exc
    except SQLAlchemyError as exc:
        logger.error("Storage error during %s", action, exc_info=True)
        raise PersistenceFailure(f"{action} failed: {exc}") from exc


def _detached_copy(record: Transaction) -> Transaction:
    return Transaction(**record.model_dump(exclude={"id"}))


def _transaction_order(record: Transaction) -> int:
    # transfer_out first so a replayed transfer returns (out, in)
    return 0 if record.type == TransactionType.TRANSFER_OUT.value else 1


class SQLModelLedgerStore:
    """SQLModel-based ledger store; every public call uses its own session."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    # -- jars -------------------------------------------------------------

    def get_jar(self, jar_id: int) -> Optional[Jar]:
        with translate_errors("get_jar"), self.session_factory() as session:
            jar = session.get(Jar, jar_id)
            if jar:
                session.expunge(jar)
            return jar

    def list_jars(self, owner_id: int, order_by_position: bool = True) -> list[Jar]:
        with translate_errors("list_jars"), self.session_factory() as session:
            statement = select(Jar).where(Jar.owner_id == owner_id)
            if order_by_position:
                statement = statement.order_by(Jar.position, Jar.created_at, Jar.id)  # type: ignore
            else:
                statement = statement.order_by(Jar.id)  # type: ignore
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def count_jars(self, owner_id: int) -> int:
        with translate_errors("count_jars"), self.session_factory() as session:
            return self._count_jars(session, owner_id)

    @staticmethod
    def _count_jars(session: Session, owner_id: int) -> int:
        statement = select(func.count()).select_from(Jar).where(Jar.owner_id == owner_id)
        return int(session.exec(statement).one())

    def insert_jar(self, jar: Jar, guard: Optional[JarGuard] = None) -> Jar:
        """Count, guard and insert inside one transaction.

        A no-op update on the owner's row takes the write lock first, so two
        sessions creating jars for the same owner serialize on the count.
        """
        with translate_errors("insert_jar"), self.session_factory() as session:
            locked = session.exec(
                update(User)
                .where(User.id == jar.owner_id)
                .values(is_pro=User.is_pro)
                .execution_options(synchronize_session=False)
            )
            if locked.rowcount == 0:
                raise UserNotFound(jar.owner_id)
            existing = self._count_jars(session, jar.owner_id)
            if guard is not None:
                guard(existing)
            row = Jar(**jar.model_dump(exclude={"id", "position"}), position=existing)
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def update_jar(self, jar: Jar) -> Jar:
        with translate_errors("update_jar"), self.session_factory() as session:
            row = session.get(Jar, jar.id)
            if row is None:
                raise JarNotFound(jar.id)
            for field in ("name", "emoji", "color", "target_amount", "is_shared"):
                setattr(row, field, getattr(jar, field))
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def update_jar_balance(self, jar_id: int, new_balance: Decimal) -> None:
        with translate_errors("update_jar_balance"), self.session_factory() as session:
            result = session.exec(
                update(Jar)
                .where(Jar.id == jar_id)
                .values(balance=max(ZERO, new_balance))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise JarNotFound(jar_id)
            session.commit()

    def increment_balance(self, jar_id: int, delta: Decimal) -> Decimal:
        with translate_errors("increment_balance"), self.session_factory() as session:
            balance = self._apply_delta(session, jar_id, delta)
            session.commit()
            return balance

    @staticmethod
    def _apply_delta(session: Session, jar_id: int, delta: Decimal) -> Decimal:
        """``balance = max(0, balance + delta)`` evaluated by the database."""
        shifted = Jar.balance + delta
        session.exec(
            update(Jar)
            .where(Jar.id == jar_id)
            .values(balance=case((shifted < 0, ZERO), else_=shifted))
            .execution_options(synchronize_session=False)
        )
        balance = session.exec(select(Jar.balance).where(Jar.id == jar_id)).first()
        if balance is None:
            raise JarNotFound(jar_id)
        return Decimal(balance)

    def delete_jar_cascade(self, jar_id: int) -> None:
        with translate_errors("delete_jar_cascade"), self.session_factory() as session:
            session.exec(delete(Transaction).where(Transaction.jar_id == jar_id))
            session.exec(delete(JarMember).where(JarMember.jar_id == jar_id))
            session.exec(delete(Jar).where(Jar.id == jar_id))
            session.commit()

    # -- transactions -----------------------------------------------------

    def insert_transaction(self, record: Transaction) -> Transaction:
        return self.insert_transactions([record])[0]

    def insert_transactions(self, records: Sequence[Transaction]) -> list[Transaction]:
        with translate_errors("insert_transactions"), self.session_factory() as session:
            rows = [_detached_copy(record) for record in records]
            session.add_all(rows)
            session.commit()
            for row in rows:
                session.refresh(row)
            session.expunge_all()
            return rows

    def list_transactions(self, jar_id: int, limit: Optional[int] = None) -> list[Transaction]:
        with translate_errors("list_transactions"), self.session_factory() as session:
            statement = (
                select(Transaction)
                .where(Transaction.jar_id == jar_id)
                .order_by(Transaction.occurred_at.desc(), Transaction.id.desc())  # type: ignore
            )
            if limit is not None:
                statement = statement.limit(limit)
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_user_transactions(self, user_id: int, limit: Optional[int] = None) -> list[Transaction]:
        with translate_errors("list_user_transactions"), self.session_factory() as session:
            statement = (
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .order_by(Transaction.occurred_at.desc(), Transaction.id.desc())  # type: ignore
            )
            if limit is not None:
                statement = statement.limit(limit)
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    # -- operations -------------------------------------------------------

    def apply_operation(self, plan: OperationPlan) -> OperationResult:
        """Write the operation key, balance deltas and ledger rows in one transaction.

        The key row is inserted first: a duplicate key fails before any balance
        moves and the stored outcome is returned instead.
        """
        try:
            with self.session_factory() as session:
                session.add(
                    LedgerOperation(
                        id=plan.operation_id,
                        kind=plan.kind.value,
                        user_id=plan.user_id,
                        fingerprint=plan.fingerprint,
                    )
                )
                session.flush()

                balances: dict[int, Decimal] = {}
                for posting in plan.postings:
                    balances[posting.jar_id] = self._apply_delta(
                        session, posting.jar_id, posting.delta
                    )

                rows = []
                for posting in plan.postings:
                    row = _detached_copy(posting.transaction)
                    row.operation_id = plan.operation_id
                    rows.append(row)
                session.add_all(rows)
                session.commit()
                for row in rows:
                    session.refresh(row)
                session.expunge_all()
                return OperationResult(
                    operation_id=plan.operation_id,
                    transactions=tuple(rows),
                    balances=balances,
                )
        except IntegrityError as exc:
            replay = self._replay(plan)
            if replay is None:
                logger.error("Integrity error applying %s", plan.operation_id, exc_info=True)
                raise PersistenceFailure(f"apply_operation failed: {exc.orig}") from exc
            return replay
        except OperationalError as exc:
            logger.warning("Storage unavailable applying %s: %s", plan.operation_id, exc.orig)
            raise PersistenceFailure(
                f"apply_operation failed: {exc.orig}", retryable=True
            ) from exc
        except SQLAlchemyError as exc:
            logger.error("Storage error applying %s", plan.operation_id, exc_info=True)
            raise PersistenceFailure(f"apply_operation failed: {exc}") from exc

    def _replay(self, plan: OperationPlan) -> Optional[OperationResult]:
        with translate_errors("replay_operation"), self.session_factory() as session:
            existing = session.get(LedgerOperation, plan.operation_id)
            if existing is None:
                return None
            if existing.fingerprint != plan.fingerprint:
                raise OperationKeyConflict(plan.operation_id)
            rows = list(
                session.exec(
                    select(Transaction)
                    .where(Transaction.operation_id == plan.operation_id)
                    .order_by(Transaction.id)  # type: ignore
                ).all()
            )
            if len(rows) != len(plan.postings):
                # The rows went with a deleted jar; the key cannot be answered.
                raise OperationKeyConflict(plan.operation_id)
            rows.sort(key=_transaction_order)
            balances = {}
            for jar_id in plan.jar_ids:
                balance = session.exec(select(Jar.balance).where(Jar.id == jar_id)).first()
                if balance is not None:
                    balances[jar_id] = Decimal(balance)
            session.expunge_all()
            return OperationResult(
                operation_id=plan.operation_id,
                transactions=tuple(rows),
                replayed=True,
                balances=balances,
            )

    # -- users and members ------------------------------------------------

    def get_user_tier(self, user_id: int) -> UserTier:
        with translate_errors("get_user_tier"), self.session_factory() as session:
            is_pro = session.exec(select(User.is_pro).where(User.id == user_id)).first()
            if is_pro is None:
                raise UserNotFound(user_id)
            return UserTier(user_id=user_id, is_pro=bool(is_pro))

    def add_member(self, member: JarMember) -> JarMember:
        with translate_errors("add_member"), self.session_factory() as session:
            row = JarMember(**member.model_dump(exclude={"id"}))
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def get_member(self, jar_id: int, user_id: int) -> Optional[JarMember]:
        with translate_errors("get_member"), self.session_factory() as session:
            member = session.exec(
                select(JarMember)
                .where(JarMember.jar_id == jar_id)
                .where(JarMember.user_id == user_id)
            ).first()
            if member:
                session.expunge(member)
            return member

    def update_member(self, member: JarMember) -> JarMember:
        with translate_errors("update_member"), self.session_factory() as session:
            row = session.get(JarMember, member.id)
            if row is None:
                raise JarNotFound(member.jar_id)
            row.role = member.role
            row.accepted_at = member.accepted_at
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row
