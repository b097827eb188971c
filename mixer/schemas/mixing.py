"""Starknet Lightning Mixer - Mixing schemas.

Schemas for the deposit, status, history and cancel endpoints.
"""

from decimal import Decimal

from pydantic import Field

from mixer.models.mixing_step import MixingStep
from mixer.models.transaction import PrivacySettings, Transaction
from mixer.schemas.common import CamelModel
from mixer.services.mixing_service import DepositResult, TransactionSnapshot
from mixer.utils.helpers import format_amount, format_utc_datetime

# ============ Deposit ============


class DepositRequest(CamelModel):
    """Request to start a mixing transaction.

    Field presence and amount > 0 are checked by the service so that both
    produce the same error envelope.
    """

    user_address: str | None = Field(default=None, max_length=128, description="Depositor address")
    token: str | None = Field(default=None, max_length=20, description="Token symbol")
    amount: Decimal | None = Field(default=None, description="Gross deposit amount")
    recipient: str | None = Field(default=None, max_length=128, description="Recipient address")
    privacy_settings: PrivacySettings | None = None


class DepositResponse(CamelModel):
    transaction_id: str
    lightning_invoice: str = Field(..., description="Lightning invoice for the net amount")
    estimated_completion: int = Field(..., description="Estimated seconds to completion")
    fee: str

    @classmethod
    def from_result(cls, result: DepositResult) -> "DepositResponse":
        return cls(
            transaction_id=result.transaction_id,
            lightning_invoice=result.payment_handle,
            estimated_completion=result.estimated_completion,
            fee=format_amount(result.fee),
        )


# ============ Steps / status ============


class StepResponse(CamelModel):
    id: int
    name: str
    description: str
    status: str
    progress: int
    started_at: str | None = None
    completed_at: str | None = None
    error: str | None = None

    @classmethod
    def from_model(cls, step: MixingStep) -> "StepResponse":
        return cls(
            id=step.id,
            name=step.step_name.value,
            description=step.step_description,
            status=step.status.value,
            progress=step.progress,
            started_at=format_utc_datetime(step.started_at),
            completed_at=format_utc_datetime(step.completed_at),
            error=step.error,
        )


class StatusResponse(CamelModel):
    transaction_id: str
    status: str
    progress: int
    steps: list[StepResponse]
    estimated_completion: int
    created_at: str
    updated_at: str
    completed_at: str | None = None
    transaction_hash: str | None = None
    error: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: TransactionSnapshot) -> "StatusResponse":
        tx = snapshot.transaction
        return cls(
            transaction_id=tx.id,
            status=tx.status.value,
            progress=tx.progress,
            steps=[StepResponse.from_model(step) for step in snapshot.steps],
            estimated_completion=snapshot.estimated_completion,
            created_at=format_utc_datetime(tx.created_at),
            updated_at=format_utc_datetime(tx.updated_at),
            completed_at=format_utc_datetime(tx.completed_at),
            transaction_hash=tx.transaction_hash,
            error=tx.error,
        )


# ============ History ============


class TransactionSummary(CamelModel):
    """History/search list item."""

    id: str
    user_address: str
    recipient: str
    token_symbol: str
    amount: str
    net_amount: str
    fee: str
    status: str
    progress: int
    privacy_level: str
    created_at: str
    completed_at: str | None = None
    transaction_hash: str | None = None

    @classmethod
    def from_model(cls, tx: Transaction) -> "TransactionSummary":
        return cls(
            id=tx.id,
            user_address=tx.depositor,
            recipient=tx.recipient,
            token_symbol=tx.token_symbol,
            amount=tx.gross_amount,
            net_amount=tx.amount,
            fee=tx.fee,
            status=tx.status.value,
            progress=tx.progress,
            privacy_level=tx.privacy_level.value,
            created_at=format_utc_datetime(tx.created_at),
            completed_at=format_utc_datetime(tx.completed_at),
            transaction_hash=tx.transaction_hash,
        )


class HistoryResponse(CamelModel):
    transactions: list[TransactionSummary]
    total_count: int
    has_more: bool


class TransitionResponse(CamelModel):
    """Result of cancel/retry/delete."""

    transaction_id: str
    status: str
