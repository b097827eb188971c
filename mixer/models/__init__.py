"""Models module - SQLModel database entities."""

from mixer.models.mixing_step import STEP_ORDER, MixingStep, StepName, StepStatus
from mixer.models.transaction import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    PrivacyLevel,
    PrivacySettings,
    Transaction,
    TransactionStatus,
)
from mixer.models.user import User

__all__ = [
    # User
    "User",
    # Transaction
    "Transaction",
    "TransactionStatus",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    "PrivacyLevel",
    "PrivacySettings",
    # Mixing steps
    "MixingStep",
    "StepName",
    "StepStatus",
    "STEP_ORDER",
]
