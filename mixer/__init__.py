"""Starknet Lightning Mixer - privacy mixer prototype service."""

__version__ = "1.0.0"
