"""Starknet Lightning Mixer - Simulated Atomiq swap provider."""

import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal

from mixer.core.exceptions import IntegrationError
from mixer.integrations.base import SimulatedService, SwapExecution, SwapProvider, SwapQuote
from mixer.utils.helpers import generate_id, now_ms

logger = logging.getLogger(__name__)

QUOTE_VALIDITY_MS = 30_000
DEFAULT_SLIPPAGE = Decimal("0.005")
PROTOCOL_FEE_RATE = Decimal("0.003")
MAX_PRICE_IMPACT = Decimal("0.05")


@dataclass(frozen=True)
class TokenInfo:
    """Swappable token with a fixed mock USD price."""

    symbol: str
    decimals: int
    price: Decimal
    liquidity: Decimal


SUPPORTED_TOKENS: dict[str, TokenInfo] = {
    "STRK": TokenInfo("STRK", 18, Decimal("0.75"), Decimal("50000000")),
    "ETH": TokenInfo("ETH", 18, Decimal("2000"), Decimal("100000000")),
    "USDC": TokenInfo("USDC", 6, Decimal("1"), Decimal("75000000")),
    "BTC": TokenInfo("BTC", 8, Decimal("45000"), Decimal("200000000")),
}


class SimulatedAtomiqSwap(SimulatedService, SwapProvider):
    """Swap provider stand-in pricing swaps from fixed token prices."""

    SERVICE_NAME = "atomiq"

    def __init__(self, api_url: str, api_key: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_url = api_url
        self.api_key = api_key

    def _token(self, symbol: str) -> TokenInfo:
        token = SUPPORTED_TOKENS.get(symbol.upper())
        if token is None:
            raise IntegrationError(f"Unsupported token: {symbol}")
        return token

    async def get_quote(self, from_token: str, to_token: str, amount: Decimal) -> SwapQuote:
        source = self._token(from_token)
        target = self._token(to_token)
        if amount <= 0:
            raise IntegrationError("Swap amount must be positive")
        self._maybe_fail("quote")

        # Price impact grows with trade size relative to the smaller pool
        liquidity = min(source.liquidity, target.liquidity)
        impact = min(amount * source.price / liquidity, MAX_PRICE_IMPACT)
        price = source.price / target.price * (1 - impact)
        return SwapQuote(
            from_token=source.symbol,
            to_token=target.symbol,
            from_amount=amount,
            to_amount=amount * price,
            price=price,
            price_impact=impact * 100,
            slippage_tolerance=DEFAULT_SLIPPAGE,
            valid_until=now_ms() + QUOTE_VALIDITY_MS,
        )

    async def execute_swap(self, from_token: str, to_token: str, amount: Decimal) -> SwapExecution:
        quote = await self.get_quote(from_token, to_token, amount)
        self._maybe_fail("swap")

        slippage = quote.slippage_tolerance * Decimal(str(self._rng.random()))
        output = quote.to_amount * (1 - slippage)
        execution = SwapExecution(
            id=generate_id("swap"),
            quote=quote,
            status="completed",
            tx_hash=f"0x{secrets.token_hex(32)}",
            output_amount=output,
            fees={
                "protocol": amount * PROTOCOL_FEE_RATE,
                "slippage": quote.to_amount - output,
            },
        )
        logger.info(
            f"[atomiq] swap {execution.id}: {amount} {quote.from_token} "
            f"-> {output:.8f} {quote.to_token}"
        )
        return execution

    async def check_availability(self) -> bool:
        return True
