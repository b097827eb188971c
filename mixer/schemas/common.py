"""Starknet Lightning Mixer - Common response schemas.

All HTTP payloads use camelCase keys on the wire.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mixer.utils.helpers import format_utc_datetime, utc_now

T = TypeVar("T")


def response_timestamp() -> str:
    return format_utc_datetime(utc_now())


class CamelModel(BaseModel):
    """Base schema serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope."""

    success: bool = True
    data: T | None = None
    message: str | None = None
    timestamp: str = Field(default_factory=response_timestamp)


class ErrorResponse(CamelModel):
    """Error envelope."""

    success: bool = False
    error: str
    message: str
    details: dict[str, Any] | None = None
    timestamp: str = Field(default_factory=response_timestamp)
