"""API module - HTTP routes and the push channel."""

from fastapi import FastAPI

from mixer.api.mixing import router as mixing_router
from mixer.api.transactions import router as transactions_router
from mixer.api.ws import router as ws_router


def register_routers(app: FastAPI) -> None:
    app.include_router(mixing_router, prefix="/api")
    app.include_router(transactions_router, prefix="/api")
    app.include_router(ws_router)
