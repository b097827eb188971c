"""Starknet Lightning Mixer - Push channel.

Clients connect to ``/ws``, receive a welcome message and then every
lifecycle event. ``subscribe``/``unsubscribe`` are acknowledged and recorded
on the observer but do not filter delivery.
"""

import asyncio
import json
import logging
from typing import Any

import pydantic
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from mixer.schemas.ws import ClientMessage, ServerReply
from mixer.services.broadcaster import Observer, QueuedObserver
from mixer.utils.helpers import now_ms

logger = logging.getLogger(__name__)

router = APIRouter()

WELCOME_MESSAGE = "Connected to Starknet Lightning Mixer WebSocket"


def _reply(type_: str, **fields: Any) -> str:
    reply = ServerReply(type=type_, timestamp=now_ms(), **fields)
    return reply.model_dump_json(by_alias=True, exclude_none=True)


def handle_client_message(observer: Observer, raw: str) -> str:
    """Apply one client message to ``observer`` and build the reply."""
    try:
        message = ClientMessage.model_validate(json.loads(raw))
    except (ValueError, pydantic.ValidationError):
        return _reply("error", message="Invalid message format")

    if message.type in ("subscribe", "unsubscribe"):
        if not message.transaction_id:
            return _reply("error", message="transactionId is required")
        if message.type == "subscribe":
            observer.subscriptions.add(message.transaction_id)
            return _reply("subscribed", transaction_id=message.transaction_id)
        observer.subscriptions.discard(message.transaction_id)
        return _reply("unsubscribed", transaction_id=message.transaction_id)

    if message.type == "ping":
        return _reply("pong")

    return _reply("error", message=f"Unknown message type: {message.type}")


@router.websocket("/ws")
async def push_channel(websocket: WebSocket) -> None:
    await websocket.accept()
    broadcaster = websocket.app.state.broadcaster
    settings = websocket.app.state.settings

    observer = QueuedObserver(websocket.send_text, max_queue=settings.ws_queue_size)
    observer.deliver(_reply("connected", message=WELCOME_MESSAGE))
    broadcaster.register(observer)
    pump = asyncio.create_task(observer.pump(), name=f"ws:{observer.id}")
    try:
        while True:
            raw = await websocket.receive_text()
            observer.deliver(handle_client_message(observer, raw))
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unregister(observer)
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
