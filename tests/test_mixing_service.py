"""Lifecycle operations: initiate, status, history, cancel, retry, delete, stats."""

from decimal import Decimal

import pytest

from mixer.core.exceptions import (
    ConflictError,
    IntegrationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from mixer.models import PrivacyLevel, StepName, StepStatus, TransactionStatus

from .conftest import RECIPIENT, USER


async def test_initiate_then_run_to_completion(service, deposit, scheduler, spy_scheduler, store):
    result = await deposit(amount=Decimal("1000"))

    tx = result.transaction
    assert result.fee == Decimal("8")
    assert tx.gross_amount == "1000"
    assert tx.amount == "992"
    assert tx.fee == "8"
    assert tx.token_address.startswith("0x04718f")
    assert result.estimated_completion == 360
    assert spy_scheduler.starts == [(tx.id, False)]

    snapshot = await service.get_status(tx.id)
    assert snapshot.transaction.status == TransactionStatus.PENDING
    assert snapshot.transaction.progress == 0
    assert len(snapshot.steps) == 7

    await scheduler.run(tx.id)

    snapshot = await service.get_status(tx.id)
    assert snapshot.transaction.status == TransactionStatus.COMPLETED
    assert snapshot.transaction.progress == 100
    assert all(step.status == StepStatus.COMPLETED for step in snapshot.steps)


async def test_initiate_issues_invoice_for_net_amount(deposit):
    result = await deposit(amount=Decimal("1000"))

    # 992 net * 1000 sats, encoded in millisatoshis
    assert result.payment_handle.startswith("lnbc992000000n1")


async def test_initiate_broadcasts_created_event(deposit, recorder):
    result = await deposit()

    created = recorder.events[-1]
    assert created["type"] == "transactionCreated"
    assert created["transactionId"] == result.transaction_id
    assert created["status"] == "pending"
    assert created["userAddress"] == USER


async def test_initiate_registers_depositor(deposit, store):
    await deposit()

    assert await store.get_user(USER) is not None


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "NaN"])
async def test_initiate_rejects_non_positive_amount(deposit, store, spy_scheduler, amount):
    with pytest.raises(ValidationError):
        await deposit(amount=amount)

    assert (await store.search_transactions()).total == 0
    assert spy_scheduler.starts == []


async def test_initiate_rejects_amount_below_one_sat(deposit, store, spy_scheduler):
    with pytest.raises(ValidationError, match="Amount too small") as exc_info:
        await deposit(amount=Decimal("0.0005"), privacy_settings={"privacyLevel": "low"})

    assert exc_info.value.details["minimumNetAmount"] == "0.001"
    assert (await store.search_transactions()).total == 0
    assert spy_scheduler.starts == []


async def test_initiate_accepts_one_sat_of_net_value(deposit):
    result = await deposit(amount=Decimal("0.001"), privacy_settings={"privacyLevel": "low"})

    assert result.fee == Decimal("0")
    assert result.payment_handle.startswith("lnbc1000n1")


async def test_initiate_reports_missing_fields(deposit):
    with pytest.raises(ValidationError) as exc_info:
        await deposit(recipient="", privacy_settings=None)

    assert exc_info.value.details["requiredFields"] == ["recipient", "privacySettings"]


async def test_initiate_rejects_unknown_privacy_level(deposit):
    with pytest.raises(ValidationError, match="Invalid privacy level"):
        await deposit(privacy_settings={"privacyLevel": "extreme"})


async def test_invoice_failure_creates_nothing(deposit, integrations, store, recorder, monkeypatch):
    async def broken_invoice(*args, **kwargs):
        raise IntegrationError("node offline")

    monkeypatch.setattr(integrations.lightning, "create_invoice", broken_invoice)

    with pytest.raises(UpstreamError, match="node offline"):
        await deposit()

    assert (await store.search_transactions()).total == 0
    assert recorder.events == []


async def test_status_of_unknown_transaction(service):
    with pytest.raises(NotFoundError):
        await service.get_status("tx_unknown")
    with pytest.raises(NotFoundError):
        await service.get_steps("tx_unknown")


# ============ Cancel ============


async def test_cancel_pending_transaction(service, deposit, recorder):
    result = await deposit()

    tx = await service.cancel(result.transaction_id)

    assert tx.status == TransactionStatus.FAILED
    assert tx.error == "Cancelled by user"
    event = recorder.events[-1]
    assert event["type"] == "transactionCancelled"
    assert event["status"] == "failed"
    assert event["error"] == "Cancelled by user"


async def test_cancel_completed_transaction_conflicts(service, deposit, scheduler):
    result = await deposit()
    await scheduler.run(result.transaction_id)
    before = await service.get_transaction(result.transaction_id)

    with pytest.raises(ConflictError) as exc_info:
        await service.cancel(result.transaction_id)

    assert exc_info.value.current_status == "completed"
    assert "completed" in exc_info.value.message
    after = await service.get_transaction(result.transaction_id)
    assert after.status == before.status
    assert after.transaction_hash == before.transaction_hash
    assert after.error is None


async def test_cancel_unknown_transaction(service):
    with pytest.raises(NotFoundError):
        await service.cancel("tx_unknown")


# ============ Retry / delete ============


async def fail_at_cashu(deposit, scheduler, integrations, monkeypatch):
    async def broken_mint(amount):
        raise IntegrationError("mint down")

    monkeypatch.setattr(integrations.cashu, "mint_tokens", broken_mint)
    result = await deposit()
    await scheduler.run(result.transaction_id)
    monkeypatch.undo()
    return result.transaction_id


async def test_retry_resets_named_step_only(
    service, deposit, scheduler, spy_scheduler, integrations, store, monkeypatch
):
    tx_id = await fail_at_cashu(deposit, scheduler, integrations, monkeypatch)
    before = {s.step_name: s for s in await store.get_steps(tx_id)}

    tx = await service.retry(tx_id, "cashu")

    assert tx.status == TransactionStatus.PROCESSING
    assert tx.error is None
    after = {s.step_name: s for s in await store.get_steps(tx_id)}
    cashu = after[StepName.CASHU]
    assert cashu.status == StepStatus.PENDING
    assert cashu.progress == 0
    assert cashu.started_at is None
    assert cashu.completed_at is None
    assert cashu.error is None
    for name in (StepName.DEPOSIT, StepName.SWAP, StepName.LIGHTNING, StepName.MIXING):
        assert after[name].status == before[name].status
        assert after[name].completed_at == before[name].completed_at
    assert spy_scheduler.starts[-1] == (tx_id, True)


async def test_retry_without_restart(
    service, deposit, scheduler, spy_scheduler, integrations, settings, monkeypatch
):
    tx_id = await fail_at_cashu(deposit, scheduler, integrations, monkeypatch)
    settings.retry_restarts_pipeline = False

    await service.retry(tx_id)

    assert (tx_id, True) not in spy_scheduler.starts


async def test_retried_transaction_completes(
    service, deposit, scheduler, integrations, store, monkeypatch
):
    tx_id = await fail_at_cashu(deposit, scheduler, integrations, monkeypatch)

    await service.retry(tx_id, StepName.CASHU)
    tx = await scheduler.run(tx_id, resume=True)

    assert tx.status == TransactionStatus.COMPLETED
    assert all(s.status == StepStatus.COMPLETED for s in await store.get_steps(tx_id))


async def test_retry_requires_failed_status(service, deposit):
    result = await deposit()

    with pytest.raises(ConflictError) as exc_info:
        await service.retry(result.transaction_id)

    assert exc_info.value.current_status == "pending"


async def test_retry_rejects_unknown_step(service, deposit):
    result = await deposit()
    await service.cancel(result.transaction_id)

    with pytest.raises(ValidationError):
        await service.retry(result.transaction_id, "teleport")


async def test_delete_only_failed_transactions(service, deposit):
    result = await deposit()

    with pytest.raises(ConflictError):
        await service.delete(result.transaction_id)

    await service.cancel(result.transaction_id)
    tx = await service.delete(result.transaction_id)

    assert tx.status == TransactionStatus.DELETED
    # Still stored
    stored = await service.get_transaction(result.transaction_id)
    assert stored.status == TransactionStatus.DELETED

    with pytest.raises(ConflictError):
        await service.delete(result.transaction_id)


# ============ History / search / stats ============


async def test_history_pagination_and_filter(service, deposit):
    ids = [(await deposit()).transaction_id for _ in range(3)]
    await deposit(user_address="0xsomeone-else")
    await service.cancel(ids[0])

    page = await service.list_history(USER, limit=2, offset=0)
    assert page.total == 3
    assert len(page.items) == 2
    assert page.has_more

    page = await service.list_history(USER, limit=2, offset=2)
    assert len(page.items) == 1
    assert not page.has_more

    failed = await service.list_history(USER, status=TransactionStatus.FAILED)
    assert [tx.id for tx in failed.items] == [ids[0]]
    assert not failed.has_more


async def test_history_requires_user_address(service):
    with pytest.raises(ValidationError):
        await service.list_history("")


async def test_search_by_recipient_and_level(service, deposit):
    await deposit(privacy_settings={"privacyLevel": "high"})
    await deposit(recipient="0xelsewhere")

    by_recipient = await service.search(query=RECIPIENT)
    assert by_recipient.total == 1

    by_level = await service.search(privacy_level=PrivacyLevel.HIGH)
    assert by_level.total == 1


async def test_stats_are_computed_from_store(service, deposit, scheduler):
    done = await deposit(amount=Decimal("1000"), token="ETH")
    await scheduler.run(done.transaction_id)
    cancelled = await deposit(amount=Decimal("500"), privacy_settings={"privacyLevel": "high"})
    await service.cancel(cancelled.transaction_id)
    await deposit(amount=Decimal("20"), token="DOGE")

    stats = await service.get_stats("bogus")

    assert stats.period == "24h"
    assert stats.total_transactions == 3
    assert stats.status_counts["completed"] == 1
    assert stats.status_counts["failed"] == 1
    assert stats.status_counts["pending"] == 1
    assert stats.total_volume == "1520"
    assert stats.success_rate == 50.0
    assert stats.privacy_levels == {"low": 0, "medium": 2, "high": 1}
    assert stats.tokens == {"STRK": 1, "ETH": 1, "USDC": 0, "other": 1}
    assert stats.average_processing_time >= 0
