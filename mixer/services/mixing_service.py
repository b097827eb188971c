"""Mixing Service - Lifecycle operations on mixing transactions.

Owns the public operations (initiate, status, history, cancel, retry, delete)
plus the read-side queries (detail, steps, stats, search). Guards are enforced
with conditional store transitions, so a request racing the scheduler either
applies cleanly or reports a conflict.
"""

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Protocol

import pydantic

from mixer.core.config import Settings
from mixer.core.constants import get_token_address
from mixer.core.exceptions import (
    ConflictError,
    IntegrationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from mixer.db.store import MixerStore
from mixer.integrations import LightningNode
from mixer.models.mixing_step import MixingStep, StepName, StepStatus
from mixer.models.transaction import (
    PrivacyLevel,
    PrivacySettings,
    Transaction,
    TransactionStatus,
)
from mixer.services.broadcaster import EventBroadcaster
from mixer.services.fee_service import calculate_fee, estimate_completion_seconds
from mixer.services.pipeline import PIPELINE
from mixer.utils.helpers import format_amount, generate_id, utc_now
from mixer.utils.pagination import OffsetPage

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "Cancelled by user"

STATS_PERIODS: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_STATS_PERIOD = "24h"
STATS_TOKENS = ("STRK", "ETH", "USDC")


class PipelineStarter(Protocol):
    def start(self, transaction_id: str, *, resume: bool = False) -> Any: ...


@dataclass
class DepositResult:
    """Handle returned by ``initiate``."""

    transaction: Transaction
    estimated_completion: int
    fee: Decimal

    @property
    def transaction_id(self) -> str:
        return self.transaction.id

    @property
    def payment_handle(self) -> str:
        return self.transaction.payment_handle


@dataclass
class TransactionSnapshot:
    """A transaction with its ordered steps and recomputed ETA."""

    transaction: Transaction
    steps: list[MixingStep]
    estimated_completion: int


@dataclass
class TransactionStats:
    """Aggregates over transactions created within a period."""

    period: str
    total_transactions: int
    status_counts: dict[str, int]
    total_volume: str
    average_processing_time: int  # seconds
    success_rate: float  # percent of finished transactions
    privacy_levels: dict[str, int]
    tokens: dict[str, int]


class MixingService:
    """Service for mixing transaction lifecycle operations."""

    def __init__(
        self,
        store: MixerStore,
        scheduler: PipelineStarter,
        broadcaster: EventBroadcaster,
        lightning: LightningNode,
        settings: Settings,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.broadcaster = broadcaster
        self.lightning = lightning
        self.settings = settings

    # ============ Initiate ============

    def _validate_deposit(
        self,
        user_address: str | None,
        token: str | None,
        amount: Decimal | str | int | None,
        recipient: str | None,
        privacy_settings: PrivacySettings | Mapping[str, Any] | None,
    ) -> tuple[Decimal, PrivacySettings]:
        missing = [
            name
            for name, value in (
                ("userAddress", user_address),
                ("token", token),
                ("amount", amount),
                ("recipient", recipient),
                ("privacySettings", privacy_settings),
            )
            if value is None or value == ""
        ]
        if missing:
            raise ValidationError("Missing required fields", {"requiredFields": missing})

        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except InvalidOperation as e:
            raise ValidationError("Amount must be a number", {"amount": str(amount)}) from e
        if not value.is_finite() or value <= 0:
            raise ValidationError("Amount must be greater than 0", {"amount": str(amount)})

        if isinstance(privacy_settings, PrivacySettings):
            return value, privacy_settings
        try:
            return value, PrivacySettings.model_validate(privacy_settings)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid privacy level. Must be: low, medium, or high",
                {"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def initiate(
        self,
        user_address: str,
        token: str,
        amount: Decimal | str | int,
        recipient: str,
        privacy_settings: PrivacySettings | Mapping[str, Any],
    ) -> DepositResult:
        """Create a mixing transaction and start its pipeline.

        Args:
            user_address: Depositor address
            token: Token symbol (e.g. 'STRK')
            amount: Gross deposit amount
            recipient: Recipient address
            privacy_settings: Privacy configuration

        Returns:
            DepositResult with the transaction, fee and ETA

        Raises:
            ValidationError: Missing or invalid input
            UpstreamError: The Lightning invoice could not be issued
        """
        gross, privacy = self._validate_deposit(
            user_address, token, amount, recipient, privacy_settings
        )
        fee, net = calculate_fee(gross, privacy.privacy_level)
        symbol = token.upper()

        amount_sats = int((net * self.settings.sats_per_token_unit).to_integral_value(ROUND_FLOOR))
        if amount_sats < 1:
            minimum = format_amount(Decimal(1) / self.settings.sats_per_token_unit)
            raise ValidationError(
                f"Amount too small: net amount after fees must be at least {minimum} {symbol}",
                {"amount": str(amount), "minimumNetAmount": minimum},
            )
        try:
            invoice = await self.lightning.create_invoice(
                amount_sats,
                memo=f"Privacy mix for {user_address}",
                expiry=self.settings.invoice_expiry_seconds,
                private=True,
            )
        except IntegrationError as e:
            logger.warning(f"[initiate] invoice creation failed for {user_address}: {e.message}")
            raise UpstreamError(
                f"Failed to create Lightning invoice: {e.message}", e.details
            ) from e

        await self.store.touch_user(user_address)
        transaction = await self.store.create_transaction(
            Transaction(
                id=generate_id("tx"),
                depositor=user_address,
                recipient=recipient,
                token_address=get_token_address(symbol),
                token_symbol=symbol,
                gross_amount=format_amount(gross),
                amount=format_amount(net),
                fee=format_amount(fee),
                payment_handle=invoice.payment_request,
                status=TransactionStatus.PENDING,
                privacy_level=privacy.privacy_level,
                privacy_settings=privacy.model_dump(mode="json", by_alias=True),
                progress=0,
            ),
            [(step.name, step.description) for step in PIPELINE],
        )
        logger.info(
            f"[initiate] {transaction.id} created: {transaction.gross_amount} {symbol} "
            f"fee={transaction.fee} level={privacy.privacy_level.value}"
        )

        self.scheduler.start(transaction.id)
        self.broadcaster.publish(
            {
                "type": "transactionCreated",
                "transactionId": transaction.id,
                "status": transaction.status.value,
                "userAddress": user_address,
            }
        )
        return DepositResult(
            transaction=transaction,
            estimated_completion=estimate_completion_seconds(privacy),
            fee=fee,
        )

    # ============ Queries ============

    async def get_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self.store.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found", transaction_id)
        return transaction

    async def get_status(self, transaction_id: str) -> TransactionSnapshot:
        """Status snapshot: transaction, ordered steps and recomputed ETA."""
        transaction = await self.get_transaction(transaction_id)
        steps = await self.store.get_steps(transaction_id)
        return TransactionSnapshot(
            transaction=transaction,
            steps=steps,
            estimated_completion=estimate_completion_seconds(transaction.privacy),
        )

    async def get_steps(self, transaction_id: str) -> list[MixingStep]:
        await self.get_transaction(transaction_id)
        return await self.store.get_steps(transaction_id)

    async def list_history(
        self,
        user_address: str | None,
        limit: int = 50,
        offset: int = 0,
        status: TransactionStatus | None = None,
    ) -> OffsetPage[Transaction]:
        """Depositor's transactions, newest first."""
        if not user_address:
            raise ValidationError("User address is required")
        return await self.store.list_user_transactions(user_address, limit, offset, status)

    async def search(
        self,
        query: str | None = None,
        status: TransactionStatus | None = None,
        token_symbol: str | None = None,
        privacy_level: PrivacyLevel | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> OffsetPage[Transaction]:
        if start_date and end_date and start_date > end_date:
            raise ValidationError("startDate must not be after endDate")
        return await self.store.search_transactions(
            text=query,
            status=status,
            token_symbol=token_symbol,
            privacy_level=privacy_level,
            start=start_date,
            end=end_date,
            limit=limit,
            offset=offset,
        )

    async def get_stats(self, period: str | None = None) -> TransactionStats:
        """Aggregate statistics for transactions created within ``period``."""
        if period not in STATS_PERIODS:
            period = DEFAULT_STATS_PERIOD
        since = utc_now() - STATS_PERIODS[period]
        transactions = await self.store.transactions_created_since(since)

        statuses = Counter(tx.status.value for tx in transactions)
        completed = [tx for tx in transactions if tx.status == TransactionStatus.COMPLETED]
        finished = len(completed) + statuses[TransactionStatus.FAILED.value]

        durations = [
            (tx.completed_at - tx.created_at).total_seconds()
            for tx in completed
            if tx.completed_at is not None
        ]
        tokens = Counter(
            tx.token_symbol if tx.token_symbol in STATS_TOKENS else "other" for tx in transactions
        )
        levels = Counter(tx.privacy_level.value for tx in transactions)
        volume = sum((tx.gross_amount_value for tx in transactions), Decimal(0))

        return TransactionStats(
            period=period,
            total_transactions=len(transactions),
            status_counts={s.value: statuses[s.value] for s in TransactionStatus},
            total_volume=format_amount(volume),
            average_processing_time=int(sum(durations) / len(durations)) if durations else 0,
            success_rate=round(len(completed) / finished * 100, 2) if finished else 0.0,
            privacy_levels={level.value: levels[level.value] for level in PrivacyLevel},
            tokens={symbol: tokens[symbol] for symbol in (*STATS_TOKENS, "other")},
        )

    # ============ Lifecycle transitions ============

    async def cancel(self, transaction_id: str) -> Transaction:
        """Cancel a pending transaction (pending -> failed).

        Raises:
            NotFoundError: Unknown transaction
            ConflictError: Transaction is not pending
        """
        try:
            transaction = await self.store.apply_transition(
                transaction_id,
                expected={TransactionStatus.PENDING},
                changes={"status": TransactionStatus.FAILED, "error": CANCELLED_ERROR},
            )
        except ConflictError as e:
            raise ConflictError(
                f"Cannot cancel transaction with status: {e.current_status}", e.current_status
            ) from e

        logger.info(f"[cancel] {transaction_id} cancelled by user")
        self.broadcaster.publish(
            {
                "type": "transactionCancelled",
                "transactionId": transaction_id,
                "status": TransactionStatus.FAILED.value,
                "error": CANCELLED_ERROR,
            }
        )
        return transaction

    async def retry(
        self, transaction_id: str, step_name: StepName | str | None = None
    ) -> Transaction:
        """Re-arm a failed transaction (failed -> processing).

        Args:
            transaction_id: Transaction to retry
            step_name: Optional step to reset to pending

        Raises:
            ValidationError: Unknown step name
            NotFoundError: Unknown transaction
            ConflictError: Transaction is not failed
        """
        step = None
        if step_name:
            try:
                step = StepName(step_name)
            except ValueError as e:
                raise ValidationError(f"Unknown step: {step_name}") from e

        try:
            transaction = await self.store.apply_transition(
                transaction_id,
                expected={TransactionStatus.FAILED},
                changes={"status": TransactionStatus.PROCESSING, "error": None},
                step_name=step,
                step_changes={
                    "status": StepStatus.PENDING,
                    "progress": 0,
                    "started_at": None,
                    "completed_at": None,
                    "error": None,
                }
                if step
                else None,
            )
        except ConflictError as e:
            raise ConflictError(
                f"Cannot retry transaction with status: {e.current_status}", e.current_status
            ) from e

        logger.info(f"[retry] {transaction_id} re-armed (step={step.value if step else '-'})")
        if self.settings.retry_restarts_pipeline:
            self.scheduler.start(transaction_id, resume=True)
        return transaction

    async def delete(self, transaction_id: str) -> Transaction:
        """Soft-delete a failed transaction (failed -> deleted)."""
        try:
            transaction = await self.store.apply_transition(
                transaction_id,
                expected={TransactionStatus.FAILED},
                changes={"status": TransactionStatus.DELETED},
            )
        except ConflictError as e:
            raise ConflictError(
                f"Cannot delete transaction with status: {e.current_status}", e.current_status
            ) from e

        logger.info(f"[delete] {transaction_id} marked deleted")
        return transaction
