"""Starknet Lightning Mixer - Simulated Lightning node."""

import logging
import re
import secrets

from mixer.core.exceptions import IntegrationError
from mixer.integrations.base import Invoice, LightningNode, Payment, SimulatedService
from mixer.utils.helpers import now_ms

logger = logging.getLogger(__name__)

_INVOICE_AMOUNT_RE = re.compile(r"^lnbc(\d+)n1")


class SimulatedLightningNode(SimulatedService, LightningNode):
    """Lightning node stand-in that issues mock BOLT11-looking invoices.

    Invoice format: lnbc + amount_msat + n1 + random_hex(20) + unix_seconds
    """

    SERVICE_NAME = "lightning"

    def __init__(
        self,
        rpc_url: str,
        macaroon_path: str = "",
        cert_path: str = "",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.rpc_url = rpc_url
        self.macaroon_path = macaroon_path
        self.cert_path = cert_path

    async def create_invoice(
        self,
        amount_sats: int,
        memo: str = "",
        expiry: int = 3600,
        private: bool = False,
    ) -> Invoice:
        if amount_sats <= 0:
            raise IntegrationError(
                "Invoice amount must be positive", {"amount_sats": amount_sats}
            )
        self._maybe_fail("create_invoice")

        created_at = now_ms()
        payment_request = f"lnbc{amount_sats * 1000}n1{secrets.token_hex(10)}{created_at // 1000}"
        invoice = Invoice(
            payment_request=payment_request,
            payment_hash=secrets.token_hex(32),
            value_sats=amount_sats,
            memo=memo,
            expiry=expiry,
            private=private,
            created_at=created_at,
        )
        logger.info(f"[lightning] invoice created {payment_request[:20]}... sats={amount_sats}")
        return invoice

    async def pay_invoice(self, payment_request: str) -> Payment:
        match = _INVOICE_AMOUNT_RE.match(payment_request)
        if not match:
            raise IntegrationError("Malformed payment request")
        self._maybe_fail("pay_invoice")

        payment = Payment(
            payment_hash=secrets.token_hex(32),
            preimage=secrets.token_hex(32),
            value_sats=int(match.group(1)) // 1000,
            fee_sats=self._rng.randint(10, 110),
            status="SUCCEEDED",
        )
        logger.info(f"[lightning] paid {payment_request[:20]}... fee={payment.fee_sats}")
        return payment

    async def check_connectivity(self) -> bool:
        return True
