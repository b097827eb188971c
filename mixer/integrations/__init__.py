"""Integrations module - payment and exchange collaborators."""

import random
from dataclasses import dataclass

from mixer.core.config import Settings
from mixer.integrations.atomiq import SimulatedAtomiqSwap
from mixer.integrations.base import (
    CashuMint,
    Invoice,
    LightningNode,
    Payment,
    Proof,
    SwapExecution,
    SwapProvider,
    SwapQuote,
)
from mixer.integrations.cashu import SimulatedCashuMint
from mixer.integrations.lightning import SimulatedLightningNode


@dataclass
class Integrations:
    """The collaborators the mixing pipeline drives."""

    lightning: LightningNode
    cashu: CashuMint
    swap: SwapProvider

    async def connectivity(self) -> dict[str, bool]:
        return {
            "lightning": await self.lightning.check_connectivity(),
            "cashu": await self.cashu.check_availability(),
            "atomiq": await self.swap.check_availability(),
        }


def build_integrations(settings: Settings, rng: random.Random | None = None) -> Integrations:
    """Factory function building the configured integrations.

    Args:
        settings: Application settings
        rng: Optional random source shared by the simulated services

    Returns:
        Integrations bundle
    """
    common = {"failure_rate": settings.simulated_failure_rate, "rng": rng}
    return Integrations(
        lightning=SimulatedLightningNode(
            settings.lnd_rpc_url,
            settings.lnd_macaroon_path,
            settings.lnd_cert_path,
            **common,
        ),
        cashu=SimulatedCashuMint(settings.cashu_mint_url, **common),
        swap=SimulatedAtomiqSwap(settings.atomiq_api_url, settings.atomiq_api_key, **common),
    )


__all__ = [
    # Interfaces
    "LightningNode",
    "CashuMint",
    "SwapProvider",
    "Invoice",
    "Payment",
    "Proof",
    "SwapQuote",
    "SwapExecution",
    # Factory
    "Integrations",
    "build_integrations",
]
