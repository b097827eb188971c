"""Starknet Lightning Mixer - Mixing API routes.

Deposit, status polling, history and cancellation.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status

from mixer.api.deps import MixingServiceDep
from mixer.models.transaction import TransactionStatus
from mixer.schemas.common import ApiResponse
from mixer.schemas.mixing import (
    DepositRequest,
    DepositResponse,
    HistoryResponse,
    StatusResponse,
    TransactionSummary,
    TransitionResponse,
)

router = APIRouter(prefix="/mix", tags=["mixing"])


@router.post(
    "/deposit",
    response_model=ApiResponse[DepositResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_deposit(
    data: DepositRequest,
    service: MixingServiceDep,
) -> ApiResponse[DepositResponse]:
    """Start a mixing transaction.

    Returns the Lightning invoice for the net amount, the fee and an estimated
    completion time. The pipeline runs in the background.
    """
    result = await service.initiate(
        user_address=data.user_address,
        token=data.token,
        amount=data.amount,
        recipient=data.recipient,
        privacy_settings=data.privacy_settings,
    )
    return ApiResponse(
        data=DepositResponse.from_result(result),
        message="Mixing transaction created",
    )


@router.get("/status/{transaction_id}", response_model=ApiResponse[StatusResponse])
async def get_status(transaction_id: str, service: MixingServiceDep) -> ApiResponse[StatusResponse]:
    """Poll a transaction's status, progress and steps."""
    snapshot = await service.get_status(transaction_id)
    return ApiResponse(data=StatusResponse.from_snapshot(snapshot))


@router.get("/history", response_model=ApiResponse[HistoryResponse])
async def get_history(
    service: MixingServiceDep,
    user_address: Annotated[str | None, Query(alias="userAddress")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    status_filter: Annotated[TransactionStatus | None, Query(alias="status")] = None,
) -> ApiResponse[HistoryResponse]:
    """Depositor's transactions, newest first."""
    page = await service.list_history(user_address, limit, offset, status_filter)
    return ApiResponse(
        data=HistoryResponse(
            transactions=[TransactionSummary.from_model(tx) for tx in page.items],
            total_count=page.total,
            has_more=page.has_more,
        )
    )


@router.post("/cancel/{transaction_id}", response_model=ApiResponse[TransitionResponse])
async def cancel_transaction(
    transaction_id: str, service: MixingServiceDep
) -> ApiResponse[TransitionResponse]:
    """Cancel a pending transaction."""
    tx = await service.cancel(transaction_id)
    return ApiResponse(
        data=TransitionResponse(transaction_id=tx.id, status=tx.status.value),
        message="Transaction cancelled successfully",
    )
