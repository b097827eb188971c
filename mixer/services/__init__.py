"""Services module - business logic layer."""

from mixer.services.broadcaster import EventBroadcaster, Observer, QueuedObserver
from mixer.services.mixing_service import (
    DepositResult,
    MixingService,
    TransactionSnapshot,
    TransactionStats,
)
from mixer.services.pipeline import PIPELINE, PipelineStep, StepActions
from mixer.services.step_scheduler import StepScheduler

__all__ = [
    "EventBroadcaster",
    "Observer",
    "QueuedObserver",
    "MixingService",
    "DepositResult",
    "TransactionSnapshot",
    "TransactionStats",
    "PIPELINE",
    "PipelineStep",
    "StepActions",
    "StepScheduler",
]
