"""
Error Handlers

Every error leaves the API in the same envelope:
{"error": {"code", "message", "details"}} with the correlation id header.
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ...domain.errors import DomainError
from ...utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


def _error_response(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers={"X-Correlation-Id": get_correlation_id() or ""}
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """
    Handle domain-specific errors

    Expected failures such as validation, not found, illegal transitions and
    version conflicts.
    """
    logger.warning(
        f"Domain error on {request.method} {request.url.path}: {exc.error_code} - {exc.message}",
        extra={"error_code": exc.error_code}
    )
    return _error_response(exc.http_status, exc.to_dict())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routes raise HTTPException with a DomainError envelope as detail"""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {"error": {"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}}}
    return _error_response(exc.status_code, content)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body or query parameters do not match the expected schema"""
    logger.warning(
        f"Validation error: path={request.url.path}, method={request.method}, errors={exc.errors()}",
        extra={"error_code": "VALIDATION_ERROR"}
    )
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": exc.errors()}
            }
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected errors; the stack trace goes to the error log"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {"hint": "Check server logs for details"}
            }
        }
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
