"""Starknet Lightning Mixer - Transaction schemas.

Schemas for the transaction detail, steps, retry, stats and search endpoints.
"""

from pydantic import Field

from mixer.models.mixing_step import StepName
from mixer.models.transaction import PrivacySettings, Transaction
from mixer.schemas.common import CamelModel
from mixer.schemas.mixing import StepResponse
from mixer.services.mixing_service import TransactionStats
from mixer.utils.helpers import format_utc_datetime


class TransactionDetail(CamelModel):
    """All attributes of a transaction."""

    id: str
    user_address: str
    recipient: str
    token_address: str
    token_symbol: str
    amount: str
    net_amount: str
    fee: str
    lightning_invoice: str
    status: str
    progress: int
    privacy_settings: PrivacySettings
    transaction_hash: str | None = None
    error: str | None = None
    created_at: str
    updated_at: str
    completed_at: str | None = None

    @classmethod
    def from_model(cls, tx: Transaction) -> "TransactionDetail":
        return cls(
            id=tx.id,
            user_address=tx.depositor,
            recipient=tx.recipient,
            token_address=tx.token_address,
            token_symbol=tx.token_symbol,
            amount=tx.gross_amount,
            net_amount=tx.amount,
            fee=tx.fee,
            lightning_invoice=tx.payment_handle,
            status=tx.status.value,
            progress=tx.progress,
            privacy_settings=tx.privacy,
            transaction_hash=tx.transaction_hash,
            error=tx.error,
            created_at=format_utc_datetime(tx.created_at),
            updated_at=format_utc_datetime(tx.updated_at),
            completed_at=format_utc_datetime(tx.completed_at),
        )


class TransactionDetailResponse(CamelModel):
    transaction: TransactionDetail
    steps: list[StepResponse]


class RetryRequest(CamelModel):
    step_name: StepName | None = Field(default=None, description="Step to reset to pending")


class StatsResponse(CamelModel):
    period: str
    total_transactions: int
    status_counts: dict[str, int]
    total_volume: str
    average_processing_time: int = Field(..., description="Seconds, completed transactions")
    success_rate: float = Field(..., description="Percent of finished transactions")
    privacy_levels: dict[str, int]
    tokens: dict[str, int]

    @classmethod
    def from_stats(cls, stats: TransactionStats) -> "StatsResponse":
        return cls(
            period=stats.period,
            total_transactions=stats.total_transactions,
            status_counts=stats.status_counts,
            total_volume=stats.total_volume,
            average_processing_time=stats.average_processing_time,
            success_rate=stats.success_rate,
            privacy_levels=stats.privacy_levels,
            tokens=stats.tokens,
        )
