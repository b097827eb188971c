"""Core module - configuration and exceptions."""

from mixer.core.config import Settings, get_settings
from mixer.core.exceptions import (
    ConflictError,
    IntegrationError,
    MixerError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "MixerError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
    "IntegrationError",
]
