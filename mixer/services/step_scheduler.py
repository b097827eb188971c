"""Step Scheduler - Drives transactions through the mixing pipeline.

Each run is an asyncio task owned by the scheduler. A run:

1. Accepts the deposit: pending -> confirmed (conditional, so a concurrent
   cancel either wins cleanly or loses with a conflict).
2. For every later step: marks it in-progress and raises the transaction's
   progress in one write, broadcasts, performs the step action, waits the
   scaled step duration, then marks it completed.
3. Completes the final step and the transaction together, assigning the
   result hash that is also broadcast.

Any exception inside a run is recorded as a transaction failure; nothing
escapes the task.
"""

import asyncio
import logging
from functools import partial

from mixer.core.exceptions import ConflictError, NotFoundError
from mixer.db.store import MixerStore
from mixer.models.mixing_step import StepName, StepStatus
from mixer.models.transaction import ACTIVE_STATUSES, Transaction, TransactionStatus
from mixer.services.broadcaster import EventBroadcaster
from mixer.services.pipeline import PIPELINE, PipelineContext, PipelineStep, StepActions
from mixer.utils.helpers import generate_tx_hash, utc_now

logger = logging.getLogger(__name__)

RUNNING_STATUSES = frozenset({TransactionStatus.CONFIRMED, TransactionStatus.PROCESSING})


class PipelineAborted(Exception):
    """The transaction left the running states underneath the run."""

    pass


class StepScheduler:
    """Owns the pipeline tasks of all in-flight transactions."""

    def __init__(
        self,
        store: MixerStore,
        broadcaster: EventBroadcaster,
        actions: StepActions | None = None,
        duration_scale: float = 1.0,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.actions = actions
        self.duration_scale = duration_scale
        self._tasks: dict[str, asyncio.Task] = {}

    # ============ Task supervision ============

    def start(self, transaction_id: str, *, resume: bool = False) -> asyncio.Task:
        """Start the pipeline for a transaction in the background.

        A transaction has at most one run; starting it again while a run is
        active returns the existing task. A resume requested while the old run
        is still unwinding is queued and starts once that run is done.
        """
        existing = self._tasks.get(transaction_id)
        if existing and not existing.done():
            if resume:
                logger.info(f"[scheduler] {transaction_id} still unwinding, restart queued")
                existing.add_done_callback(partial(self._restart, transaction_id))
            else:
                logger.warning(f"[scheduler] {transaction_id} already running")
            return existing

        task = asyncio.create_task(
            self.run(transaction_id, resume=resume), name=f"pipeline:{transaction_id}"
        )
        self._tasks[transaction_id] = task
        task.add_done_callback(partial(self._on_done, transaction_id))
        return task

    def _on_done(self, transaction_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(transaction_id) is task:
            del self._tasks[transaction_id]
        if task.cancelled():
            logger.info(f"[scheduler] {transaction_id} run cancelled")
        elif task.exception() is not None:
            logger.error(f"[scheduler] {transaction_id} run crashed", exc_info=task.exception())

    def _restart(self, transaction_id: str, task: asyncio.Task) -> None:
        # Runs after _on_done, so the finished run is already unregistered
        if task.cancelled():
            logger.info(f"[scheduler] {transaction_id} queued restart dropped, run was cancelled")
            return
        self.start(transaction_id, resume=True)

    def is_running(self, transaction_id: str) -> bool:
        task = self._tasks.get(transaction_id)
        return task is not None and not task.done()

    @property
    def running_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait(self, transaction_id: str) -> None:
        """Wait for a transaction's current run, if any."""
        task = self._tasks.get(transaction_id)
        if task:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all runs and wait for them to unwind."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info(f"[scheduler] cancelling {len(tasks)} pipeline runs")
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ============ Pipeline ============

    async def run(self, transaction_id: str, *, resume: bool = False) -> Transaction | None:
        """Execute the pipeline for one transaction.

        Args:
            transaction_id: Transaction to process
            resume: Skip steps already completed (retry)

        Returns:
            The completed transaction, or None if the run failed or was aborted
        """
        transaction = await self.store.get_transaction(transaction_id)
        if transaction is None:
            logger.warning(f"[scheduler] {transaction_id} not found, nothing to run")
            return None
        if transaction.status.is_terminal:
            logger.info(f"[scheduler] {transaction_id} is {transaction.status.value}, nothing to run")
            return None

        ctx = PipelineContext(transaction=transaction)
        try:
            return await self._run_pipeline(ctx, resume)
        except PipelineAborted as e:
            logger.info(f"[scheduler] {transaction_id} aborted: {e}")
        except Exception as e:
            step = ctx.current_step.value if ctx.current_step else "-"
            logger.exception(f"[scheduler] {transaction_id} failed at step {step}")
            await self._record_failure(ctx, str(e) or type(e).__name__)
        return None

    async def _run_pipeline(self, ctx: PipelineContext, resume: bool) -> Transaction | None:
        completed: set[StepName] = set()
        if resume:
            steps = await self.store.get_steps(ctx.transaction.id)
            completed = {s.step_name for s in steps if s.status == StepStatus.COMPLETED}

        progress = ctx.transaction.progress
        result = None
        for step in PIPELINE:
            if step.name in completed:
                continue
            ctx.current_step = step.name
            if step.name == StepName.DEPOSIT:
                progress = await self._accept_deposit(ctx, step, progress)
            else:
                progress, result = await self._run_step(ctx, step, progress)
        ctx.current_step = None
        return result

    def _scaled(self, step: PipelineStep) -> float:
        return step.duration * self.duration_scale

    async def _transition(self, transaction_id: str, **kwargs) -> Transaction:
        try:
            return await self.store.apply_transition(transaction_id, **kwargs)
        except ConflictError as e:
            raise PipelineAborted(f"transaction is {e.current_status}") from e
        except NotFoundError as e:
            raise PipelineAborted(e.message) from e

    async def _accept_deposit(self, ctx: PipelineContext, step: PipelineStep, progress: int) -> int:
        progress = max(progress, step.progress_increment)
        now = utc_now()
        tx = await self._transition(
            ctx.transaction.id,
            expected={TransactionStatus.PENDING, TransactionStatus.PROCESSING},
            changes={"status": TransactionStatus.CONFIRMED, "progress": progress},
            step_name=step.name,
            step_changes={
                "status": StepStatus.COMPLETED,
                "progress": 100,
                "started_at": now,
                "completed_at": now,
                "error": None,
            },
        )
        ctx.transaction = tx
        self._publish_update(tx, step.name)
        return progress

    async def _run_step(
        self, ctx: PipelineContext, step: PipelineStep, progress: int
    ) -> tuple[int, Transaction | None]:
        progress = min(100, progress + step.progress_increment)
        tx = await self._transition(
            ctx.transaction.id,
            expected=RUNNING_STATUSES,
            changes={"status": TransactionStatus.PROCESSING, "progress": progress},
            step_name=step.name,
            step_changes={
                "status": StepStatus.IN_PROGRESS,
                "progress": 0,
                "started_at": utc_now(),
                "completed_at": None,
                "error": None,
            },
        )
        ctx.transaction = tx
        self._publish_update(tx, step.name)
        logger.info(f"[scheduler] {tx.id} step {step.name.value} started ({progress}%)")

        action = self.actions.for_step(step.name) if self.actions else None
        if action:
            await action(ctx)
        await asyncio.sleep(self._scaled(step))

        step_done = {"status": StepStatus.COMPLETED, "progress": 100, "completed_at": utc_now()}
        if step is not PIPELINE[-1]:
            await self._transition(
                tx.id,
                expected={TransactionStatus.PROCESSING},
                step_name=step.name,
                step_changes=step_done,
            )
            return progress, None

        tx_hash = generate_tx_hash()
        tx = await self._transition(
            tx.id,
            expected={TransactionStatus.PROCESSING},
            changes={
                "status": TransactionStatus.COMPLETED,
                "progress": 100,
                "completed_at": step_done["completed_at"],
                "transaction_hash": tx_hash,
                "error": None,
            },
            step_name=step.name,
            step_changes=step_done,
        )
        ctx.transaction = tx
        self.broadcaster.publish(
            {
                "type": "transactionCompleted",
                "transactionId": tx.id,
                "status": tx.status.value,
                "transactionHash": tx_hash,
            }
        )
        logger.info(f"[scheduler] {tx.id} completed hash={tx_hash}")
        return 100, tx

    async def _record_failure(self, ctx: PipelineContext, message: str) -> None:
        """Mark the transaction and the failing step failed, then broadcast."""
        step_changes = None
        if ctx.current_step and ctx.current_step != StepName.DEPOSIT:
            step_changes = {"status": StepStatus.FAILED, "error": message}
        try:
            await self.store.apply_transition(
                ctx.transaction.id,
                expected=ACTIVE_STATUSES,
                changes={"status": TransactionStatus.FAILED, "error": message},
                step_name=ctx.current_step if step_changes else None,
                step_changes=step_changes,
            )
        except ConflictError as e:
            logger.warning(
                f"[scheduler] {ctx.transaction.id} failure not recorded, already {e.current_status}"
            )
            return
        except Exception:
            logger.exception(f"[scheduler] {ctx.transaction.id} could not record failure")
            return

        self.broadcaster.publish(
            {
                "type": "transactionFailed",
                "transactionId": ctx.transaction.id,
                "status": TransactionStatus.FAILED.value,
                "error": message,
            }
        )

    def _publish_update(self, tx: Transaction, step_name: StepName) -> None:
        self.broadcaster.publish(
            {
                "type": "transactionUpdate",
                "transactionId": tx.id,
                "status": tx.status.value,
                "progress": tx.progress,
                "step": step_name.value,
            }
        )
