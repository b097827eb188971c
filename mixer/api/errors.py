"""Exception handlers producing the error envelope."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mixer.core.config import Settings
from mixer.core.exceptions import MixerError
from mixer.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


def error_response(
    status_code: int, error: str, message: str, details: dict | None = None
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details or None)
    return JSONResponse(
        status_code=status_code, content=body.model_dump(mode="json", by_alias=True)
    )


def _field_path(loc: tuple) -> str:
    # Drop the leading "body"/"query"/"path" segment
    return ".".join(str(part) for part in loc[1:]) or str(loc[0])


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install handlers turning exceptions into error envelopes."""

    @app.exception_handler(MixerError)
    async def mixer_error_handler(request: Request, exc: MixerError) -> JSONResponse:
        log = logger.warning if exc.status_code >= 500 else logger.info
        log(f"[api] {request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        return error_response(exc.status_code, exc.error, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        missing = [_field_path(err["loc"]) for err in errors if err["type"] == "missing"]
        if missing:
            return error_response(
                400, "Bad Request", "Missing required fields", {"requiredFields": missing}
            )
        first = errors[0]
        return error_response(
            400,
            "Bad Request",
            f"Invalid value for {_field_path(first['loc'])}: {first['msg']}",
            {
                "errors": [
                    {"field": _field_path(err["loc"]), "message": err["msg"]} for err in errors
                ]
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"[api] unhandled error on {request.method} {request.url.path}")
        message = "Something went wrong" if settings.is_production else str(exc)
        return error_response(500, "Internal Server Error", message)
