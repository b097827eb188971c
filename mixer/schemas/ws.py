"""Starknet Lightning Mixer - Push channel message schemas."""

from typing import Literal

from mixer.schemas.common import CamelModel


class ClientMessage(CamelModel):
    """Message sent by a push-channel client."""

    type: str
    transaction_id: str | None = None


class ServerReply(CamelModel):
    """Direct reply to a client message."""

    type: Literal["connected", "subscribed", "unsubscribed", "pong", "error"]
    transaction_id: str | None = None
    message: str | None = None
    timestamp: int
