"""Map pre-stream failures to HTTP error responses.

Once a 200 streaming response has started, none of this applies; the stream
relay reports failures inside the body.
"""

from __future__ import annotations

import logging
from typing import Any, Tuple

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import (
    ConfigurationError,
    GenerationError,
    InvalidRequestError,
    PromptError,
    RateLimitedError,
)
from ..domain.generation_models import ErrorResponse


LOG = logging.getLogger("relay.api")

RATE_LIMIT_DETAILS = (
    "Our AI service is currently receiving too many requests. Please try again in a few minutes."
)


def classify_exception(exc: BaseException) -> Tuple[int, ErrorResponse]:
    if isinstance(exc, InvalidRequestError):
        return status.HTTP_400_BAD_REQUEST, ErrorResponse(error=str(exc))
    if isinstance(exc, RateLimitedError):
        return status.HTTP_429_TOO_MANY_REQUESTS, ErrorResponse(
            error="API rate limit exceeded",
            details=RATE_LIMIT_DETAILS,
            code="RATE_LIMIT",
        )
    if isinstance(exc, ConfigurationError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(error="Server configuration error")
    if isinstance(exc, PromptError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(error=str(exc))
    return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(
        error="Failed to generate content with AI",
        details=str(exc) or "Unknown API error",
    )


def _missing_user_answers(err: Any) -> bool:
    loc = tuple(err.get("loc") or ())
    if loc == ("body",):
        return err.get("type") == "missing"
    if loc != ("body", "userAnswers"):
        return False
    # null, "" and other falsy scalars count as absent
    return err.get("type") == "missing" or err.get("input") in (None, "", 0)


def classify_validation_error(exc: RequestValidationError) -> ErrorResponse:
    errors: Any = exc.errors()
    if any(_missing_user_answers(err) for err in errors):
        return ErrorResponse(error="Missing userAnswers in request body")
    summary = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc') or ())}: {err.get('msg')}" for err in errors
    )
    return ErrorResponse(error="Invalid request body", details=summary or None)


def _json(status_code: int, payload: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


async def _generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    status_code, payload = classify_exception(exc)
    if isinstance(exc, InvalidRequestError):
        LOG.info("request_rejected", extra={"path": request.url.path, "err": str(exc)})
    elif isinstance(exc, RateLimitedError):
        LOG.warning("request_rate_limited", extra={"path": request.url.path})
    else:
        LOG.error("request_failed", extra={"path": request.url.path, "err": str(exc)})
    return _json(status_code, payload)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = classify_validation_error(exc)
    LOG.info("request_invalid", extra={"path": request.url.path, "err": payload.error})
    return _json(status.HTTP_400_BAD_REQUEST, payload)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GenerationError, _generation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
