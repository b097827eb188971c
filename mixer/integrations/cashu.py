"""Starknet Lightning Mixer - Simulated Cashu mint."""

import logging
import secrets

from mixer.core.exceptions import IntegrationError
from mixer.integrations.base import CashuMint, Proof, SimulatedService

logger = logging.getLogger(__name__)

# Keyset denominations, largest first
DENOMINATIONS: tuple[int, ...] = (2048, 1024, 512, 256, 128, 64, 32, 16, 8, 4, 2, 1)


class SimulatedCashuMint(SimulatedService, CashuMint):
    """In-process mint: issues proofs greedily by denomination and tracks spent secrets."""

    SERVICE_NAME = "cashu"

    def __init__(self, mint_url: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.mint_url = mint_url
        self.keyset_id = f"keyset_{secrets.token_hex(8)}"
        self._spent: set[str] = set()

    def _issue(self, amount: int) -> list[Proof]:
        proofs: list[Proof] = []
        remaining = amount
        for denomination in DENOMINATIONS:
            count, remaining = divmod(remaining, denomination)
            proofs.extend(
                Proof(
                    keyset_id=self.keyset_id,
                    amount=denomination,
                    secret=secrets.token_hex(16),
                    C=secrets.token_hex(33),
                )
                for _ in range(count)
            )
        return proofs

    def _spend(self, proofs: list[Proof]) -> int:
        """Validate and mark proofs spent, returning their total."""
        for proof in proofs:
            if proof.keyset_id != self.keyset_id or proof.amount <= 0 or not proof.secret:
                raise IntegrationError("Invalid proofs provided")
            if proof.secret in self._spent:
                raise IntegrationError("Proof already spent")
        self._spent.update(proof.secret for proof in proofs)
        return sum(proof.amount for proof in proofs)

    async def mint_tokens(self, amount: int) -> list[Proof]:
        if amount <= 0:
            raise IntegrationError("Mint amount must be positive", {"amount": amount})
        self._maybe_fail("mint")
        proofs = self._issue(amount)
        logger.info(f"[cashu] minted {amount} sats in {len(proofs)} proofs")
        return proofs

    async def split_proofs(
        self, proofs: list[Proof], outputs: list[int]
    ) -> tuple[list[Proof], list[Proof]]:
        requested = sum(outputs)
        available = sum(proof.amount for proof in proofs)
        if requested > available:
            raise IntegrationError(
                "Insufficient input amount for requested outputs",
                {"available": available, "requested": requested},
            )
        self._maybe_fail("split")
        self._spend(proofs)

        split: list[Proof] = []
        for amount in outputs:
            split.extend(self._issue(amount))
        change = self._issue(available - requested)
        logger.info(f"[cashu] split {available} sats into {len(outputs)} outputs")
        return split, change

    async def redeem_tokens(self, proofs: list[Proof]) -> int:
        self._maybe_fail("redeem")
        total = self._spend(proofs)
        logger.info(f"[cashu] redeemed {len(proofs)} proofs for {total} sats")
        return total

    async def check_availability(self) -> bool:
        return True
