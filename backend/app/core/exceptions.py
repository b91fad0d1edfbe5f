"""
Custom exceptions and error handlers for consistent error responses.

Every business-rule violation raised by the ledger engine derives from
AppException and is rendered to the caller verbatim.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger("plotledger.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for malformed amounts, unknown enum values or disallowed pairings."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidStateError(AppException):
    """Raised when a record is not in a status that allows the requested transition."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class AlreadyPaidError(AppException):
    """Raised when paying something that has already been paid."""

    def __init__(self, message: str = "Already paid", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_IDEMPOTENCY_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class AlreadyReconciledError(AppException):
    """Raised when reconciling a ledger entry or bank line a second time."""

    def __init__(self, message: str = "Already reconciled", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_IDEMPOTENCY_002",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class InsufficientCapitalError(AppException):
    """Raised when a partner withdrawal exceeds the partner's capital balance."""

    def __init__(self, available: Any, requested: Any):
        super().__init__(
            message=f"Insufficient capital balance: available {available}, requested {requested}",
            error_code="ERR_CAPITAL_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"available": str(available), "requested": str(requested)}
        )


class ShareOverflowError(AppException):
    """Raised when partner share percentages would sum to more than 100."""

    def __init__(self, current_total: Any, candidate: Any):
        super().__init__(
            message=(
                f"Total share percentage would exceed 100%. "
                f"Current total: {current_total}%, requested: {candidate}%"
            ),
            error_code="ERR_SHARE_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"current_total": str(current_total), "candidate": str(candidate)}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception_type": type(exc).__name__}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
