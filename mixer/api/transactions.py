"""Starknet Lightning Mixer - Transaction API routes.

Detail, steps, retry, delete, stats and search.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query

from mixer.api.deps import MixingServiceDep
from mixer.models.transaction import PrivacyLevel, TransactionStatus
from mixer.schemas.common import ApiResponse
from mixer.schemas.mixing import (
    HistoryResponse,
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
from mixer.utils.helpers import to_naive_utc

router = APIRouter(prefix="/transactions", tags=["transactions"])


# Fixed paths are declared before /{transaction_id}


@router.get("/stats", response_model=ApiResponse[StatsResponse])
async def get_stats(
    service: MixingServiceDep,
    period: Annotated[str, Query(description="1h, 24h, 7d or 30d")] = "24h",
) -> ApiResponse[StatsResponse]:
    stats = await service.get_stats(period)
    return ApiResponse(data=StatsResponse.from_stats(stats))


@router.get("/search", response_model=ApiResponse[HistoryResponse])
async def search_transactions(
    service: MixingServiceDep,
    query: Annotated[str | None, Query(max_length=128)] = None,
    status_filter: Annotated[TransactionStatus | None, Query(alias="status")] = None,
    token_symbol: Annotated[str | None, Query(alias="tokenSymbol")] = None,
    privacy_level: Annotated[PrivacyLevel | None, Query(alias="privacyLevel")] = None,
    start_date: Annotated[datetime | None, Query(alias="startDate")] = None,
    end_date: Annotated[datetime | None, Query(alias="endDate")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ApiResponse[HistoryResponse]:
    """Search transactions across all depositors."""
    page = await service.search(
        query=query,
        status=status_filter,
        token_symbol=token_symbol,
        privacy_level=privacy_level,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
        limit=limit,
        offset=offset,
    )
    return ApiResponse(
        data=HistoryResponse(
            transactions=[TransactionSummary.from_model(tx) for tx in page.items],
            total_count=page.total,
            has_more=page.has_more,
        )
    )


@router.get("/{transaction_id}", response_model=ApiResponse[TransactionDetailResponse])
async def get_transaction(
    transaction_id: str, service: MixingServiceDep
) -> ApiResponse[TransactionDetailResponse]:
    snapshot = await service.get_status(transaction_id)
    return ApiResponse(
        data=TransactionDetailResponse(
            transaction=TransactionDetail.from_model(snapshot.transaction),
            steps=[StepResponse.from_model(step) for step in snapshot.steps],
        )
    )


@router.get("/{transaction_id}/steps", response_model=ApiResponse[list[StepResponse]])
async def get_transaction_steps(
    transaction_id: str, service: MixingServiceDep
) -> ApiResponse[list[StepResponse]]:
    steps = await service.get_steps(transaction_id)
    return ApiResponse(data=[StepResponse.from_model(step) for step in steps])


@router.post("/{transaction_id}/retry", response_model=ApiResponse[TransitionResponse])
async def retry_transaction(
    transaction_id: str,
    service: MixingServiceDep,
    data: RetryRequest | None = None,
) -> ApiResponse[TransitionResponse]:
    """Re-arm a failed transaction, optionally resetting one step."""
    tx = await service.retry(transaction_id, data.step_name if data else None)
    return ApiResponse(
        data=TransitionResponse(transaction_id=tx.id, status=tx.status.value),
        message="Transaction retry initiated",
    )


@router.delete("/{transaction_id}", response_model=ApiResponse[TransitionResponse])
async def delete_transaction(
    transaction_id: str, service: MixingServiceDep
) -> ApiResponse[TransitionResponse]:
    """Soft-delete a failed transaction."""
    tx = await service.delete(transaction_id)
    return ApiResponse(
        data=TransitionResponse(transaction_id=tx.id, status=tx.status.value),
        message="Transaction deleted successfully",
    )
