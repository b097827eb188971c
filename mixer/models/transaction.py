"""Starknet Lightning Mixer - Transaction model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel

from mixer.utils.helpers import utc_now


class TransactionStatus(str, Enum):
    """Transaction status.

    State transitions:
    - pending -> confirmed -> processing -> completed
    - pending / confirmed / processing -> failed | refunded
    - failed -> processing (retry) | deleted
    """

    PENDING = "pending"  # Created, deposit not yet accepted
    CONFIRMED = "confirmed"  # Deposit step completed
    PROCESSING = "processing"  # Pipeline steps running
    COMPLETED = "completed"  # Withdrawal sent, result hash assigned
    FAILED = "failed"  # Step error or user cancellation
    REFUNDED = "refunded"
    DELETED = "deleted"  # Soft delete of a failed transaction

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.REFUNDED,
        TransactionStatus.DELETED,
    }
)

ACTIVE_STATUSES = frozenset(
    {
        TransactionStatus.PENDING,
        TransactionStatus.CONFIRMED,
        TransactionStatus.PROCESSING,
    }
)


class PrivacyLevel(str, Enum):
    """User-selected privacy level; drives fee rate and ETA."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PrivacySettings(BaseModel):
    """Privacy configuration value object embedded in a transaction.

    Serialized with camelCase keys, both on the wire and in the
    ``privacy_settings`` JSON column.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    privacy_level: PrivacyLevel
    delay_hours: float = PydanticField(default=0, ge=0)
    split_into_multiple: bool = False
    split_count: int = PydanticField(default=1, ge=1)
    use_random_amounts: bool = False


class Transaction(SQLModel, table=True):
    """Mixing transaction model.

    One user-initiated mixing request and its full lifecycle. Amounts are
    stored as decimal strings; they are written once at creation.

    Attributes:
        id: Opaque unique id (tx_ prefix), immutable
        depositor: Depositor address (references users.address)
        recipient: Recipient address
        token_address: Starknet contract address of the deposited token
        token_symbol: Token symbol (e.g. 'STRK')
        gross_amount: Deposited amount before fee
        amount: Net amount (gross_amount - fee)
        fee: Mixing fee
        payment_handle: Lightning invoice issued for the net amount
        status: Lifecycle status
        privacy_level: Copy of privacy_settings.privacyLevel for filtering
        privacy_settings: Serialized PrivacySettings
        progress: Overall progress percentage [0, 100]
        transaction_hash: Result hash, set on completion
        error: Failure reason
    """

    __tablename__ = "transactions"

    id: str = Field(primary_key=True, max_length=64)
    depositor: str = Field(max_length=128, foreign_key="users.address", index=True)
    recipient: str = Field(max_length=128)
    token_address: str = Field(default="", max_length=128)
    token_symbol: str = Field(max_length=20, index=True)

    # Money fields - decimal strings
    gross_amount: str = Field(max_length=64, description="Amount before fee")
    amount: str = Field(max_length=64, description="Net amount after fee")
    fee: str = Field(max_length=64, description="Mixing fee")

    payment_handle: str = Field(
        max_length=512,
        unique=True,
        description="Lightning invoice (payment request)",
    )

    # Status
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING,
        index=True,
        description="Transaction status",
    )
    privacy_level: PrivacyLevel = Field(index=True)
    privacy_settings: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=sa.Column(sa.JSON, nullable=False),
    )
    progress: int = Field(default=0, ge=0, le=100)

    # Result
    transaction_hash: str | None = Field(default=None, max_length=128)
    error: str | None = Field(default=None, max_length=1024)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = Field(default=None)

    @property
    def privacy(self) -> PrivacySettings:
        """Embedded privacy settings as a value object."""
        return PrivacySettings.model_validate(self.privacy_settings)

    @property
    def gross_amount_value(self) -> Decimal:
        return Decimal(self.gross_amount)

    @property
    def net_amount_value(self) -> Decimal:
        return Decimal(self.amount)
