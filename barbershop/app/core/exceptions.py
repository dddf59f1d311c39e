"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("barbershop.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationFailedError(AppException):
    """Raised when input passes schema validation but violates a business rule."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="validation_failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="forbidden",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": str(resource_id) if resource_id else None}
        )


class SlotUnavailableError(AppException):
    """Raised when the requested interval overlaps an active appointment of the barber."""

    def __init__(self, barber_id: Any = None):
        super().__init__(
            message="Time slot is no longer available for this barber",
            error_code="slot_unavailable",
            status_code=status.HTTP_409_CONFLICT,
            details={"barber_id": str(barber_id) if barber_id else None}
        )


class InvalidTransitionError(AppException):
    """Raised when an appointment status transition is not allowed."""

    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            message=f"Cannot move appointment from {current_status} to {target_status}",
            error_code="invalid_transition",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current_status, "target_status": target_status}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="unauthorized",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class InvalidSignatureError(AuthenticationError):
    """Raised when a webhook body does not match its HMAC signature."""

    def __init__(self):
        super().__init__(message="Invalid signature")


class MalformedPayloadError(AppException):
    """Raised when a webhook body cannot be parsed into a provider envelope."""

    def __init__(self, reason: str = "Invalid webhook payload"):
        super().__init__(
            message="Invalid webhook payload",
            error_code="malformed_payload",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"reason": reason}
        )


class PaymentProviderError(AppException):
    """Raised when the billing provider cannot be reached or rejects a call."""

    def __init__(self, message: str = "Payment provider request failed"):
        super().__init__(
            message=message,
            error_code="payment_provider_error",
            status_code=status.HTTP_502_BAD_GATEWAY
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
    error_code_map = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        500: "internal_error"
    }

    error_code = error_code_map.get(exc.status_code, "unknown")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "validation_error",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "internal_error",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
