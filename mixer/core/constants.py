"""Starknet Lightning Mixer - Token constants."""

# Starknet contract addresses of the depositable tokens
TOKEN_ADDRESSES: dict[str, str] = {
    "STRK": "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d",
    "ETH": "0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7",
    "USDC": "0x053c91253bc9682c04929ca02ed00b3e423f6710d2ee7e0d5ebb06f3ecf368a8",
}


def get_token_address(symbol: str) -> str:
    """Get the Starknet contract address for a token symbol ('' if unknown)."""
    return TOKEN_ADDRESSES.get(symbol.upper(), "")
