"""Middleware for the FastAPI application.

This module contains middleware that process requests and responses, and the
exception handlers that turn TotalDash exceptions into HTTP errors.
"""

import time
import traceback
import uuid
from typing import Union

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from totaldash.core.config import settings
from totaldash.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DataValidationError,
    NotFoundException,
    ProviderError,
    TotalDashException,
    WebhookSignatureError,
    unpack_validation_error,
)
from totaldash.core.logging import logger

# Most specific class first; lookups walk the exception's MRO
STATUS_CODE_MAP: dict[type, int] = {
    WebhookSignatureError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundException: 404,
    ConflictError: 409,
    DataValidationError: 422,
    ProviderError: 502,
}


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    request.state.request_id = str(uuid.uuid4())
    return await call_next(request)


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests with their duration and status."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.with_context(request_id=getattr(request.state, "request_id", "")).info(
        f"Handled request {request.method} {request.url} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {"detail": "Internal Server Error"}

        # Include details only in development mode
        if settings.DEBUG:
            response_content["detail"] = f"Internal Server Error: {exc.__class__.__name__}: {exc}"
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


# Exception handlers
async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Exception handler for validation errors that occur during request processing.

    Returns:
    -------
        JSONResponse: A 422 response listing each invalid field, e.g.
            ``{"errors": [{"body.tenantId": "Field required"}]}``.

    """
    error_messages = unpack_validation_error(exc)
    logger.warning(f"Validation error on {request.method} {request.url.path}: {error_messages}")
    return JSONResponse(status_code=422, content=error_messages)


def status_code_for(exc: TotalDashException) -> int:
    """HTTP status for a TotalDash exception, 500 when unmapped."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODE_MAP:
            return STATUS_CODE_MAP[cls]
    return 500


async def totaldash_exception_handler(request: Request, exc: TotalDashException) -> JSONResponse:
    """Generic exception handler for all TotalDashException types.

    Maps exception types to HTTP status codes based on their semantic meaning.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (TotalDashException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: HTTP response with appropriate status code and error details.
    """
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc}")

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content={"detail": exc.message}, headers=headers)
