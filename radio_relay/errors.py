"""
Relay error taxonomy and its JSON rendering.

Every error leaves the service as ``{"error": "<message>"}`` with a 4xx/5xx
status. Errors raised after the response headers went out cannot be rendered
and are only logged by the body pump.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from radio_relay.headers import CORS_HEADERS

logger = logging.getLogger("uvicorn.error")


class RelayError(Exception):
    """Base class for errors that are answered with a JSON error envelope."""

    status_code = 500
    outcome = "error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            {"error": self.message},
            status_code=self.status_code,
            headers=dict(CORS_HEADERS),
        )


class MissingStreamUrl(RelayError):
    status_code = 400
    outcome = "bad_request"

    def __init__(self):
        super().__init__("Missing stream URL")


class RedirectLimitExceeded(RelayError):
    outcome = "redirect_limit"

    def __init__(self, depth: int):
        super().__init__("Too many redirects")
        self.depth = depth


class SourceStationError(RelayError):
    """The station could not be reached before any response was received."""

    outcome = "source_unreachable"

    def __init__(self, cause: Exception):
        reason = str(cause) or type(cause).__name__
        super().__init__(f"Source station error: {reason}")
        self.cause = cause


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    logger.warning(
        f"[Relay] {request.method} {request.url.path} failed with {exc.status_code}: {exc.message}"
    )
    return exc.to_response()


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RelayError, relay_error_handler)
