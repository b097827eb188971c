"""Starknet Lightning Mixer - Record store.

Durable storage for depositors, transactions and their mixing steps. One
``MixerStore`` is built at startup and injected into the lifecycle service and
the step scheduler.

Every write opens its own session. Joint step/transaction transitions go
through ``apply_transition`` so they commit (or fail) as one unit, and can be
made conditional on the transaction's current status.
"""

import logging
from collections.abc import Collection, Iterable, Mapping
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlmodel import or_, select

from mixer.core.exceptions import ConflictError, NotFoundError
from mixer.models.mixing_step import MixingStep, StepName
from mixer.models.transaction import PrivacyLevel, Transaction, TransactionStatus
from mixer.models.user import User
from mixer.utils.helpers import utc_now
from mixer.utils.pagination import OffsetPage, OffsetParams, paginate_query

logger = logging.getLogger(__name__)

# Written once at creation
IMMUTABLE_TRANSACTION_FIELDS = frozenset(
    {"id", "depositor", "gross_amount", "amount", "fee", "payment_handle", "created_at"}
)
IMMUTABLE_STEP_FIELDS = frozenset({"id", "transaction_id", "step_name"})


def _check_mutable(changes: Mapping[str, Any], immutable: frozenset[str]) -> None:
    forbidden = immutable.intersection(changes)
    if forbidden:
        raise ValueError(f"Fields cannot be modified: {', '.join(sorted(forbidden))}")


class MixerStore:
    """CRUD accessors over the users, transactions and mixing_steps tables."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # ============ Users ============

    async def touch_user(self, address: str) -> User:
        """Create the depositor record or refresh its last activity time."""
        async with self._session_factory() as db:
            now = utc_now()
            result = await db.execute(select(User).where(User.address == address))
            user = result.scalar_one_or_none()
            if user:
                user.last_active_at = now
            else:
                user = User(address=address, created_at=now, last_active_at=now)
                db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                # Concurrent first deposit from the same address
                await db.rollback()
                result = await db.execute(select(User).where(User.address == address))
                return result.scalar_one()
            await db.refresh(user)
            return user

    async def get_user(self, address: str) -> User | None:
        async with self._session_factory() as db:
            result = await db.execute(select(User).where(User.address == address))
            return result.scalar_one_or_none()

    # ============ Transactions ============

    async def create_transaction(
        self,
        transaction: Transaction,
        steps: Iterable[tuple[StepName, str]],
    ) -> Transaction:
        """Insert a transaction and its step placeholders atomically.

        Args:
            transaction: New transaction (status pending)
            steps: (name, description) pairs in pipeline order

        Returns:
            The persisted transaction
        """
        async with self._session_factory() as db:
            db.add(transaction)
            await db.flush()
            for name, description in steps:
                db.add(
                    MixingStep(
                        transaction_id=transaction.id,
                        step_name=name,
                        step_description=description,
                    )
                )
                # One flush per step keeps auto-increment ids in pipeline order
                await db.flush()
            await db.commit()
            await db.refresh(transaction)
            return transaction

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        async with self._session_factory() as db:
            return await db.get(Transaction, transaction_id)

    async def list_user_transactions(
        self,
        address: str,
        limit: int = 50,
        offset: int = 0,
        status: TransactionStatus | None = None,
    ) -> OffsetPage[Transaction]:
        """List a depositor's transactions, newest first."""
        query = select(Transaction).where(Transaction.depositor == address)
        if status:
            query = query.where(Transaction.status == status)
        query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())  # type: ignore

        async with self._session_factory() as db:
            return await paginate_query(db, query, OffsetParams(limit=limit, offset=offset))

    async def search_transactions(
        self,
        *,
        text: str | None = None,
        status: TransactionStatus | None = None,
        token_symbol: str | None = None,
        privacy_level: PrivacyLevel | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> OffsetPage[Transaction]:
        """Filter transactions across all depositors, newest first.

        ``text`` matches id, depositor or recipient substrings.
        """
        query = select(Transaction)
        if text:
            query = query.where(
                or_(
                    Transaction.id.contains(text),  # type: ignore
                    Transaction.depositor.contains(text),  # type: ignore
                    Transaction.recipient.contains(text),  # type: ignore
                )
            )
        if status:
            query = query.where(Transaction.status == status)
        if token_symbol:
            query = query.where(Transaction.token_symbol == token_symbol.upper())
        if privacy_level:
            query = query.where(Transaction.privacy_level == privacy_level)
        if start:
            query = query.where(Transaction.created_at >= start)
        if end:
            query = query.where(Transaction.created_at <= end)
        query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())  # type: ignore

        async with self._session_factory() as db:
            return await paginate_query(db, query, OffsetParams(limit=limit, offset=offset))

    async def transactions_created_since(self, start: datetime) -> list[Transaction]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Transaction)
                .where(Transaction.created_at >= start)
                .order_by(Transaction.created_at)
            )
            return list(result.scalars().all())

    async def apply_transition(
        self,
        transaction_id: str,
        *,
        expected: Collection[TransactionStatus] | None = None,
        changes: Mapping[str, Any] | None = None,
        step_name: StepName | None = None,
        step_changes: Mapping[str, Any] | None = None,
    ) -> Transaction:
        """Update a transaction and optionally one of its steps in one commit.

        Args:
            transaction_id: Transaction to update
            expected: If given, only apply when the current status is one of these
            changes: Transaction column values
            step_name: Step to update alongside the transaction
            step_changes: Step column values

        Returns:
            The updated transaction

        Raises:
            NotFoundError: Unknown transaction or step
            ConflictError: Current status not in ``expected``
            ValueError: Attempt to modify an immutable field
        """
        values = dict(changes or {})
        _check_mutable(values, IMMUTABLE_TRANSACTION_FIELDS)
        if step_changes:
            _check_mutable(step_changes, IMMUTABLE_STEP_FIELDS)
        values["updated_at"] = utc_now()

        async with self._session_factory() as db:
            stmt = sa.update(Transaction).where(Transaction.id == transaction_id)
            if expected is not None:
                stmt = stmt.where(Transaction.status.in_(list(expected)))  # type: ignore
            result = await db.execute(stmt.values(**values))

            if result.rowcount == 0:
                await db.rollback()
                current = await db.get(Transaction, transaction_id)
                if current is None:
                    raise NotFoundError("Transaction not found", transaction_id)
                raise ConflictError(
                    f"Transaction {transaction_id} is {current.status.value}",
                    current.status.value,
                )

            if step_name is not None and step_changes:
                step_result = await db.execute(
                    sa.update(MixingStep)
                    .where(
                        MixingStep.transaction_id == transaction_id,
                        MixingStep.step_name == step_name,
                    )
                    .values(**step_changes)
                )
                if step_result.rowcount == 0:
                    await db.rollback()
                    raise NotFoundError(f"Step '{step_name.value}' not found", transaction_id)

            await db.commit()
            return await db.get(Transaction, transaction_id, populate_existing=True)

    async def update_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        """Unconditional partial update of a transaction."""
        return await self.apply_transition(transaction_id, changes=changes)

    # ============ Mixing steps ============

    async def get_steps(self, transaction_id: str) -> list[MixingStep]:
        """Steps of a transaction in pipeline order."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(MixingStep)
                .where(MixingStep.transaction_id == transaction_id)
                .order_by(MixingStep.id)
            )
            return list(result.scalars().all())

    async def get_step(self, transaction_id: str, step_name: StepName) -> MixingStep | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(MixingStep).where(
                    MixingStep.transaction_id == transaction_id,
                    MixingStep.step_name == step_name,
                )
            )
            return result.scalar_one_or_none()

    async def update_step(
        self, transaction_id: str, step_name: StepName, **changes: Any
    ) -> MixingStep:
        """Unconditional partial update of one step."""
        await self.apply_transition(transaction_id, step_name=step_name, step_changes=changes)
        step = await self.get_step(transaction_id, step_name)
        if step is None:
            raise NotFoundError(f"Step '{step_name.value}' not found", transaction_id)
        return step
