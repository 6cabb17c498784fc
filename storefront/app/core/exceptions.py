"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes, the carrier upstream error family and
global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, Optional

logger = logging.getLogger("storefront.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, error_code: str = "ERR_NOT_FOUND_001"):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class OrderNotFoundError(ResourceNotFoundError):
    def __init__(self, order_id: Any):
        super().__init__("Order", order_id, error_code="ERR_ORDER_404")
        self.order_id = order_id


class NoShipmentError(AppException):
    """Raised when an order has no carrier shipment yet."""

    def __init__(self, order_id: Any, message: str = "No shipment found for this order"):
        super().__init__(
            message=message,
            error_code="ERR_SHIP_404",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"order_id": order_id}
        )


class ShipmentAlreadyExistsError(AppException):
    def __init__(self, order_id: Any):
        super().__init__(
            message="Order already has a shipment. Cancel the existing shipment first.",
            error_code="ERR_SHIP_409",
            status_code=status.HTTP_409_CONFLICT,
            details={"order_id": order_id}
        )


class ShipmentNotAllowedError(AppException):
    """Raised when the order is past the stage where a shipment may be booked."""

    def __init__(self, order_id: Any, order_status: Any):
        super().__init__(
            message=f"Cannot create a shipment for an order in status {order_status}",
            error_code="ERR_SHIP_409_STATUS",
            status_code=status.HTTP_409_CONFLICT,
            details={"order_id": order_id, "status": str(order_status)}
        )


# Carrier upstream errors

class UpstreamCarrierError(AppException):
    """
    The carrier API returned a non-success response, an unreadable body, or
    could not be reached (provider_status is None for transport failures).
    """
    operation = "carrier request"
    error_code = "ERR_CARRIER"

    def __init__(self, provider_body: str = "", provider_status: Optional[int] = None, message: Optional[str] = None):
        self.provider_status = provider_status
        self.provider_body = provider_body
        super().__init__(
            message=message or f"Failed to {self.operation}: {provider_body}",
            error_code=type(self).error_code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"provider_status": provider_status, "provider_body": provider_body}
        )


class UpstreamRateError(UpstreamCarrierError):
    operation = "get shipping rates"
    error_code = "ERR_CARRIER_RATES"


class UpstreamShipmentError(UpstreamCarrierError):
    operation = "create shipment"
    error_code = "ERR_CARRIER_SHIPMENT"


class UpstreamTrackingError(UpstreamCarrierError):
    operation = "get tracking"
    error_code = "ERR_CARRIER_TRACKING"


class UpstreamLabelError(UpstreamCarrierError):
    operation = "get label"
    error_code = "ERR_CARRIER_LABEL"


class UpstreamCancelError(UpstreamCarrierError):
    operation = "cancel shipment"
    error_code = "ERR_CARRIER_CANCEL"


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
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
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
        },
        headers=getattr(exc, "headers", None),
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
        extra={"path": request.url.path, "exception_type": type(exc).__name__},
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
