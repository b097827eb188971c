"""Starknet Lightning Mixer - Integration interfaces.

Abstract interfaces for the external payment/exchange services the mixer
drives: a Lightning node, a Cashu mint and a token swap provider. The bundled
implementations only simulate these services.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from mixer.core.exceptions import IntegrationError


@dataclass
class Invoice:
    """Lightning invoice issued by the node."""

    payment_request: str
    payment_hash: str
    value_sats: int
    memo: str
    expiry: int
    private: bool
    created_at: int  # Unix ms
    settled: bool = False


@dataclass
class Payment:
    """Result of paying a Lightning invoice."""

    payment_hash: str
    preimage: str
    value_sats: int
    fee_sats: int
    status: str


@dataclass
class Proof:
    """Cashu e-cash proof of one denomination."""

    keyset_id: str
    amount: int
    secret: str
    C: str


@dataclass
class SwapQuote:
    """Price quote for a token swap."""

    from_token: str
    to_token: str
    from_amount: Decimal
    to_amount: Decimal
    price: Decimal
    price_impact: Decimal  # percent
    slippage_tolerance: Decimal
    valid_until: int  # Unix ms


@dataclass
class SwapExecution:
    """Executed swap."""

    id: str
    quote: SwapQuote
    status: str
    tx_hash: str | None = None
    output_amount: Decimal | None = None
    fees: dict[str, Decimal] = field(default_factory=dict)


class SimulatedService:
    """Random failure injection shared by the simulated services."""

    SERVICE_NAME: str = ""

    def __init__(self, failure_rate: float = 0.0, rng: random.Random | None = None) -> None:
        self._failure_rate = failure_rate
        self._rng = rng or random.Random()

    def _maybe_fail(self, operation: str) -> None:
        if self._failure_rate and self._rng.random() < self._failure_rate:
            raise IntegrationError(f"{self.SERVICE_NAME} {operation} failed")


class LightningNode(ABC):
    """Lightning node operations used by the mixer."""

    @abstractmethod
    async def create_invoice(
        self,
        amount_sats: int,
        memo: str = "",
        expiry: int = 3600,
        private: bool = False,
    ) -> Invoice:
        """Issue an invoice for ``amount_sats``.

        Raises:
            IntegrationError: If the node rejects or cannot issue the invoice
        """
        pass

    @abstractmethod
    async def pay_invoice(self, payment_request: str) -> Payment:
        """Pay a BOLT11 payment request."""
        pass

    @abstractmethod
    async def check_connectivity(self) -> bool:
        pass


class CashuMint(ABC):
    """Cashu mint operations used by the mixer."""

    @abstractmethod
    async def mint_tokens(self, amount: int) -> list[Proof]:
        """Mint proofs worth ``amount`` sats."""
        pass

    @abstractmethod
    async def split_proofs(
        self, proofs: list[Proof], outputs: list[int]
    ) -> tuple[list[Proof], list[Proof]]:
        """Split proofs into the requested output amounts.

        Returns:
            Tuple of (output proofs, change proofs)
        """
        pass

    @abstractmethod
    async def redeem_tokens(self, proofs: list[Proof]) -> int:
        """Redeem proofs and return the amount paid out."""
        pass

    @abstractmethod
    async def check_availability(self) -> bool:
        pass


class SwapProvider(ABC):
    """Token swap/bridge operations used by the mixer."""

    @abstractmethod
    async def get_quote(self, from_token: str, to_token: str, amount: Decimal) -> SwapQuote:
        pass

    @abstractmethod
    async def execute_swap(self, from_token: str, to_token: str, amount: Decimal) -> SwapExecution:
        pass

    @abstractmethod
    async def check_availability(self) -> bool:
        pass
