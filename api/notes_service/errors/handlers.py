"""Exception handlers for the Notes Service."""

import logging
from typing import Any, Dict, List, Union
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError

from .problem_details import (
    ProblemDetailException,
    InvalidPageTokenError,
    create_problem_response
)

logger = logging.getLogger(__name__)


# Titles for HTTP errors raised by the framework itself
STATUS_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def _request_context(request: Request) -> Dict[str, Any]:
    return {"path": str(request.url.path), "method": request.method}


def format_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """Join validation errors as ``loc -> path: message`` pairs."""
    messages = []
    for error in errors:
        loc = " -> ".join(str(x) for x in error["loc"])
        messages.append(f"{loc}: {error['msg']}")
    return "; ".join(messages)


async def problem_detail_exception_handler(
    request: Request,
    exc: ProblemDetailException
) -> JSONResponse:
    """Handle ProblemDetailException instances."""
    if isinstance(exc, InvalidPageTokenError):
        logger.info(f"Rejected page token on {request.url.path}: {exc.detail}")
    else:
        logger.info(
            f"Problem detail exception: {exc.status} - {exc.title}",
            extra={"status_code": exc.status, "detail": exc.detail, **_request_context(request)}
        )
    return exc.to_response(request)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """Handle FastAPI and Starlette HTTP exceptions, such as unknown routes."""
    logger.info(
        f"HTTP exception: {exc.status_code} - {exc.detail}",
        extra={"status_code": exc.status_code, **_request_context(request)}
    )

    response = create_problem_response(
        status=exc.status_code,
        title=STATUS_TITLES.get(exc.status_code, "HTTP Error"),
        detail=str(exc.detail) if exc.detail else None,
        request=request
    )

    for key, value in (getattr(exc, "headers", None) or {}).items():
        response.headers[key] = value

    return response


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Handle request body and query validation errors."""
    errors = exc.errors()
    logger.info(
        f"Validation error: {len(errors)} errors",
        extra={"errors": errors, **_request_context(request)}
    )

    return create_problem_response(
        status=422,
        title="Validation Error",
        detail="Validation failed: " + format_validation_errors(errors),
        request=request,
        validation_errors=errors
    )


async def pydantic_validation_exception_handler(
    request: Request,
    exc: ValidationError
) -> JSONResponse:
    """Handle Pydantic errors raised while building models from stored rows."""
    errors = exc.errors()
    logger.info(
        f"Pydantic validation error: {len(errors)} errors",
        extra={"errors": errors, **_request_context(request)}
    )

    return create_problem_response(
        status=400,
        title="Validation Error",
        detail="Data validation failed: " + format_validation_errors(errors),
        request=request,
        validation_errors=errors
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__} - {exc}",
        extra={"exception_type": type(exc).__name__, **_request_context(request)},
        exc_info=True
    )

    # Internal details stay in the log
    return create_problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred",
        request=request
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(ProblemDetailException, problem_detail_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)

    app.add_exception_handler(Exception, general_exception_handler)
