"""
Standardized response utilities
"""

import logging
from typing import Any, Optional
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from hooked.core.exceptions import HookedError, SessionRequiredError
from hooked.schemas.common import StandardResponse, ErrorResponse

logger = logging.getLogger(__name__)

def success_response(
    message: str,
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """Create standardized success response"""
    response = StandardResponse(
        success=True,
        message=message,
        data=data
    )
    return JSONResponse(
        content=jsonable_encoder(response),
        status_code=status_code
    )

def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Any = None,
    status_code: int = 400
) -> JSONResponse:
    """Create standardized error response"""
    response = ErrorResponse(
        message=message,
        error_code=error_code,
        details=details
    )
    return JSONResponse(
        content=jsonable_encoder(response),
        status_code=status_code
    )

async def hooked_error_handler(request: Request, exc: HookedError) -> JSONResponse:
    """Translate domain errors raised by services into error responses"""
    details = None
    if isinstance(exc, SessionRequiredError):
        details = {"redirect": exc.redirect}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        message = "Something went wrong. Please try again."
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        message = str(exc)
    return error_response(
        message=message,
        error_code=exc.error_code,
        details=details,
        status_code=exc.status_code
    )

async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Record validation failures raised inside services"""
    logger.warning(f"{request.method} {request.url.path} invalid record: {exc.error_count()} errors")
    return error_response(
        message="Invalid data",
        error_code="validation_error",
        details=jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        status_code=422
    )
