"""Mixing pipeline - Step table and per-step integration actions."""

import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal

from mixer.integrations import Integrations, Proof
from mixer.models.mixing_step import StepName
from mixer.models.transaction import Transaction

logger = logging.getLogger(__name__)

BTC_SYMBOL = "BTC"


@dataclass(frozen=True)
class PipelineStep:
    """One entry of the fixed pipeline."""

    name: StepName
    description: str
    duration: float  # nominal seconds
    progress_increment: int


PIPELINE: tuple[PipelineStep, ...] = (
    PipelineStep(StepName.DEPOSIT, "Processing deposit on Starknet", 0.0, 10),
    PipelineStep(StepName.SWAP, "Swapping to Bitcoin", 2.0, 15),
    PipelineStep(StepName.LIGHTNING, "Creating Lightning payment", 3.0, 20),
    PipelineStep(StepName.CASHU, "Minting Cashu tokens", 2.0, 15),
    PipelineStep(StepName.MIXING, "Applying privacy transformations", 5.0, 25),
    PipelineStep(StepName.REDEEM, "Redeeming and swapping back", 3.0, 20),
    PipelineStep(StepName.WITHDRAWAL, "Sending to recipient", 2.0, 5),
)


@dataclass
class PipelineContext:
    """Intermediate values carried between steps of one run."""

    transaction: Transaction
    current_step: StepName | None = None
    btc_amount: Decimal | None = None
    sats: int | None = None
    proofs: list[Proof] = field(default_factory=list)
    redeemed_sats: int | None = None
    withdrawal_tx: str | None = None


def split_amounts(
    total: int, count: int, randomize: bool = False, rng: random.Random | None = None
) -> list[int]:
    """Split ``total`` into ``count`` positive parts summing to ``total``.

    The part count is capped at ``total``. Equal split puts the remainder on
    the last part.
    """
    count = max(1, min(count, total))
    if not randomize:
        part, remainder = divmod(total, count)
        return [part] * (count - 1) + [part + remainder]

    rng = rng or random.Random()
    # Random cut points over 1..total-1 give strictly positive parts
    cuts = sorted(rng.sample(range(1, total), count - 1))
    bounds = [0, *cuts, total]
    return [high - low for low, high in zip(bounds, bounds[1:], strict=False)]


StepAction = Callable[[PipelineContext], Awaitable[None]]


class StepActions:
    """Integration calls performed while each pipeline step is in progress."""

    def __init__(
        self,
        integrations: Integrations,
        sats_per_token_unit: int = 1000,
        rng: random.Random | None = None,
    ) -> None:
        self.integrations = integrations
        self.sats_per_token_unit = sats_per_token_unit
        self._rng = rng or random.Random()
        self._actions: dict[StepName, StepAction] = {
            StepName.SWAP: self.swap,
            StepName.LIGHTNING: self.lightning,
            StepName.CASHU: self.cashu,
            StepName.MIXING: self.mixing,
            StepName.REDEEM: self.redeem,
            StepName.WITHDRAWAL: self.withdrawal,
        }

    def for_step(self, name: StepName) -> StepAction | None:
        return self._actions.get(name)

    def _net_sats(self, ctx: PipelineContext) -> int:
        net = ctx.transaction.net_amount_value * self.sats_per_token_unit
        return int(net.to_integral_value(rounding=ROUND_FLOOR))

    async def _ensure_proofs(self, ctx: PipelineContext) -> None:
        # A resumed run has no proofs from earlier steps
        if not ctx.proofs:
            ctx.proofs = await self.integrations.cashu.mint_tokens(ctx.sats or self._net_sats(ctx))

    async def swap(self, ctx: PipelineContext) -> None:
        tx = ctx.transaction
        execution = await self.integrations.swap.execute_swap(
            tx.token_symbol, BTC_SYMBOL, tx.net_amount_value
        )
        ctx.btc_amount = execution.output_amount
        logger.info(f"[pipeline] {tx.id} swapped {tx.amount} {tx.token_symbol} to BTC")

    async def lightning(self, ctx: PipelineContext) -> None:
        payment = await self.integrations.lightning.pay_invoice(ctx.transaction.payment_handle)
        ctx.sats = payment.value_sats

    async def cashu(self, ctx: PipelineContext) -> None:
        ctx.proofs = await self.integrations.cashu.mint_tokens(ctx.sats or self._net_sats(ctx))

    async def mixing(self, ctx: PipelineContext) -> None:
        privacy = ctx.transaction.privacy
        if not privacy.split_into_multiple or privacy.split_count <= 1:
            return
        await self._ensure_proofs(ctx)
        total = sum(proof.amount for proof in ctx.proofs)
        outputs = split_amounts(total, privacy.split_count, privacy.use_random_amounts, self._rng)
        split, change = await self.integrations.cashu.split_proofs(ctx.proofs, outputs)
        ctx.proofs = split + change
        logger.info(f"[pipeline] {ctx.transaction.id} split into {len(outputs)} outputs")

    async def redeem(self, ctx: PipelineContext) -> None:
        await self._ensure_proofs(ctx)
        ctx.redeemed_sats = await self.integrations.cashu.redeem_tokens(ctx.proofs)
        ctx.proofs = []

    async def withdrawal(self, ctx: PipelineContext) -> None:
        tx = ctx.transaction
        btc_amount = ctx.btc_amount
        if btc_amount is None:
            quote = await self.integrations.swap.get_quote(
                tx.token_symbol, BTC_SYMBOL, tx.net_amount_value
            )
            btc_amount = quote.to_amount
        execution = await self.integrations.swap.execute_swap(
            BTC_SYMBOL, tx.token_symbol, btc_amount
        )
        ctx.withdrawal_tx = execution.tx_hash
