"""Schemas module - HTTP and push-channel wire formats."""

from mixer.schemas.common import ApiResponse, CamelModel, ErrorResponse
from mixer.schemas.mixing import (
    DepositRequest,
    DepositResponse,
    HistoryResponse,
    StatusResponse,
    StepResponse,
    TransactionSummary,
    TransitionResponse,
)
from mixer.schemas.transaction import (
    RetryRequest,
    StatsResponse,
    TransactionDetail,
    TransactionDetailResponse,
)
from mixer.schemas.ws import ClientMessage, ServerReply

__all__ = [
    "ApiResponse",
    "CamelModel",
    "ErrorResponse",
    "DepositRequest",
    "DepositResponse",
    "HistoryResponse",
    "StatusResponse",
    "StepResponse",
    "TransactionSummary",
    "TransitionResponse",
    "RetryRequest",
    "StatsResponse",
    "TransactionDetail",
    "TransactionDetailResponse",
    "ClientMessage",
    "ServerReply",
]
