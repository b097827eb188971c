"""Starknet Lightning Mixer - Mixing step model."""

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class StepName(str, Enum):
    """Pipeline step names, declared in execution order."""

    DEPOSIT = "deposit"
    SWAP = "swap"
    LIGHTNING = "lightning"
    CASHU = "cashu"
    MIXING = "mixing"
    REDEEM = "redeem"
    WITHDRAWAL = "withdrawal"


STEP_ORDER: tuple[StepName, ...] = tuple(StepName)


class StepStatus(str, Enum):
    """Mixing step status."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


class MixingStep(SQLModel, table=True):
    """One stage of a transaction's mixing pipeline.

    Ordering within a transaction follows the auto-increment id, which
    matches pipeline order because all steps are inserted together.
    """

    __tablename__ = "mixing_steps"

    id: int | None = Field(default=None, primary_key=True)
    transaction_id: str = Field(foreign_key="transactions.id", index=True, max_length=64)
    step_name: StepName = Field(description="Pipeline step name")
    step_description: str = Field(max_length=255)
    status: StepStatus = Field(default=StepStatus.PENDING)
    progress: int = Field(default=0, ge=0, le=100)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    error: str | None = Field(default=None, max_length=1024)

    __table_args__ = (
        sa.UniqueConstraint("transaction_id", "step_name", name="uq_transaction_step"),
    )
