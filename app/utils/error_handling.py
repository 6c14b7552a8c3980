"""
Centralized Error Handling for ISP Manager

This module provides:
- Custom exception hierarchy
- The uniform `{"success": false, "error": "<message>"}` error envelope
- Error logging
- Database and payment gateway error handling
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ispmanager.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"

    # Authentication Errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Payment Gateway Errors (400)
    GATEWAY_NOT_CONFIGURED = "GATEWAY_NOT_CONFIGURED"
    GATEWAY_UNSUPPORTED = "GATEWAY_UNSUPPORTED"
    GATEWAY_ERROR = "GATEWAY_ERROR"

    # Database / Internal Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the JSON error envelope"""
        result = {
            "success": False,
            "error": self.message,
            "code": self.code.value,
        }
        if self.field:
            result["field"] = self.field
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Missing or malformed request input"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
            field=field,
        )


class MissingFieldsException(ValidationException):
    """One or more required fields are absent"""

    def __init__(self, fields: list, message: Optional[str] = None):
        super().__init__(
            message=message or f"Missing required fields: {', '.join(fields)}",
            code=ErrorCode.MISSING_FIELD,
            details={"fields": fields},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", reason: str = "must be positive"):
        super().__init__(
            message=f"Invalid {field}: {reason}",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_value": str(amount)},
        )


# ============================================================================
# Authentication Exceptions
# ============================================================================

class AuthenticationException(AppException):
    """Authentication failed"""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class TokenExpiredException(AuthenticationException):
    """Token has expired"""

    def __init__(self):
        super().__init__(message="Token expired", code=ErrorCode.TOKEN_EXPIRED)


class TokenInvalidException(AuthenticationException):
    """Token is forged, malformed or of the wrong type"""

    def __init__(self):
        super().__init__(message="Invalid token", code=ErrorCode.TOKEN_INVALID)


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.RESOURCE_CONFLICT,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class InvalidTransitionException(BusinessRuleException):
    """A workflow record cannot move from its current state"""

    def __init__(self, resource_type: str, current: str, target: str):
        super().__init__(
            message=f"Cannot change {resource_type} from '{current}' to '{target}'",
            code=ErrorCode.INVALID_STATE_TRANSITION,
            details={"current_status": current, "requested_status": target},
        )


# ============================================================================
# Payment Gateway Exceptions
# ============================================================================

class PaymentGatewayException(AppException):
    """
    Payment gateway failure.

    Reported to the caller as a 400 with the provider's own message, the
    way the dashboard expects to show it.
    """

    def __init__(
        self,
        gateway: str,
        message: str,
        code: ErrorCode = ErrorCode.GATEWAY_ERROR,
        original_error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        _details["gateway"] = gateway
        self.gateway = gateway
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=_details,
            original_error=original_error,
        )


class GatewayNotConfiguredException(PaymentGatewayException):
    """No enabled tenant or platform configuration for a gateway"""

    def __init__(self, gateway: str):
        super().__init__(
            gateway=gateway,
            message=f"Payment gateway {gateway} is not configured or enabled",
            code=ErrorCode.GATEWAY_NOT_CONFIGURED,
        )


class UnsupportedGatewayException(PaymentGatewayException):
    """Gateway identifier is not registered"""

    def __init__(self, gateway: str):
        super().__init__(
            gateway=gateway,
            message=f"Unsupported payment gateway: {gateway}",
            code=ErrorCode.GATEWAY_UNSUPPORTED,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
) -> JSONResponse:
    """Create a standardized error response"""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": code.value},
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    logger.warning(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.UNAUTHORIZED,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.BUSINESS_RULE_VIOLATION,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    response = create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors as 400 with the first failing field"""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(loc) for loc in first["loc"] if loc != "body")
        message = f"{field}: {first['msg']}" if field else first["msg"]

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_400_BAD_REQUEST

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="Internal server error",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_amount(amount: Any, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """Parse a monetary amount, rejecting non-numeric and non-positive values"""
    if amount is None or amount == "":
        raise MissingFieldsException([field])
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountException(amount, field, "must be a number") from e

    if not value.is_finite():
        raise InvalidAmountException(amount, field, "must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmountException(amount, field)
    return value


__all__ = [
    "ErrorCode",
    "AppException",
    "ValidationException",
    "MissingFieldsException",
    "InvalidAmountException",
    "AuthenticationException",
    "TokenExpiredException",
    "TokenInvalidException",
    "NotFoundException",
    "ConflictException",
    "BusinessRuleException",
    "InvalidTransitionException",
    "PaymentGatewayException",
    "GatewayNotConfiguredException",
    "UnsupportedGatewayException",
    "setup_exception_handlers",
    "validate_amount",
]
