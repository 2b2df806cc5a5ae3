"""
Error Handling Module for Ledger Reports

This module provides centralized error handling with:
- Custom exception hierarchy for report jobs and ledger computation
- Standardized error responses
- Error logging
- Database error handling
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ledger.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_TENANT = "INVALID_TENANT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_ACCOUNT_RANGE = "INVALID_ACCOUNT_RANGE"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    ARTIFACT_MISSING = "ARTIFACT_MISSING"
    REPORT_NOT_READY = "REPORT_NOT_READY"
    REPORT_FAILED = "REPORT_FAILED"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    TICKET_STATE_ERROR = "TICKET_STATE_ERROR"

    # Report Computation Errors
    NO_ACCOUNTS_IN_RANGE = "NO_ACCOUNTS_IN_RANGE"
    TRANSACTION_SOURCE_ERROR = "TRANSACTION_SOURCE_ERROR"
    RENDER_ERROR = "RENDER_ERROR"

    # Infrastructure Errors (500/503)
    TICKET_STORE_ERROR = "TICKET_STORE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
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
        self.timestamp = datetime.utcnow()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat() + "Z",
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ReportValidationException(AppException):
    """A report request was rejected before a ticket was created"""

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
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidTenantException(ReportValidationException):
    """Tenant id missing or not positive"""

    def __init__(self, tenant_id: Any):
        super().__init__(
            message=f"Invalid tenant id: {tenant_id}. A positive company id is required.",
            field="tenant_id",
            code=ErrorCode.INVALID_TENANT,
            details={"provided_tenant_id": tenant_id},
        )


class InvalidDateRangeException(ReportValidationException):
    """Invalid date range"""

    def __init__(self, start_date: str, end_date: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid date range: {start_date} to {end_date}. Start date must not be after end date.",
            field="date_range",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": start_date, "end_date": end_date},
        )


class InvalidAccountRangeException(ReportValidationException):
    """Missing account range bound"""

    def __init__(self, message: str = "Both start and end account codes are required"):
        super().__init__(
            message=message,
            field="account_range",
            code=ErrorCode.INVALID_ACCOUNT_RANGE,
        )


# ============================================================================
# Ticket Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class TicketNotFoundException(NotFoundException):
    """Unknown ticket, or its state expired from the store"""

    def __init__(self, ticket: str):
        super().__init__(
            resource_type="Ticket",
            resource_id=ticket,
            message="Ticket not found",
            code=ErrorCode.TICKET_NOT_FOUND,
        )


class ArtifactMissingException(NotFoundException):
    """The rendered file was removed by the retention sweep"""

    def __init__(self, relative_path: str):
        super().__init__(
            resource_type="Report file",
            resource_id=relative_path,
            message="File missing",
            code=ErrorCode.ARTIFACT_MISSING,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class ReportNotReadyException(ConflictException):
    """Artifact requested while the job is still running"""

    def __init__(self, ticket: str, progress: int):
        super().__init__(
            message="File not ready",
            code=ErrorCode.REPORT_NOT_READY,
            details={"ticket": ticket, "progress": progress},
        )


class ReportFailedException(ConflictException):
    """Artifact requested for a job that ended in failure"""

    def __init__(self, ticket: str, job_message: str):
        super().__init__(
            message=f"Report failed: {job_message}",
            code=ErrorCode.REPORT_FAILED,
            details={"ticket": ticket, "job_message": job_message},
        )


class TicketStateException(ConflictException):
    """Status write attempted on a ticket that already finished"""

    def __init__(self, ticket: str, current_status: str):
        super().__init__(
            message=f"Ticket {ticket} is already {current_status}",
            code=ErrorCode.TICKET_STATE_ERROR,
            details={"ticket": ticket, "status": current_status},
        )


# ============================================================================
# Report Computation Exceptions
# ============================================================================

class ReportJobException(AppException):
    """Error that terminates a report job"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details,
            original_error=original_error,
        )


class NoAccountsInRangeException(ReportJobException):
    """No active accounts matched the requested range"""

    def __init__(self, start_code: str, end_code: str):
        super().__init__(
            message="No accounts in range",
            code=ErrorCode.NO_ACCOUNTS_IN_RANGE,
            details={"start": start_code, "end": end_code},
        )


class TransactionSourceException(ReportJobException):
    """A journal source query failed"""

    def __init__(self, category: str, original_error: Exception):
        super().__init__(
            message=f"Transaction source {category} failed: {original_error}",
            code=ErrorCode.TRANSACTION_SOURCE_ERROR,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"category": category},
            original_error=original_error,
        )


class RenderException(ReportJobException):
    """The document renderer could not produce the file"""

    def __init__(self, report_format: str, original_error: Exception):
        super().__init__(
            message=f"Could not render {report_format} report: {original_error}",
            code=ErrorCode.RENDER_ERROR,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"format": report_format},
            original_error=original_error,
        )


# ============================================================================
# Infrastructure Exceptions
# ============================================================================

class TicketStoreException(AppException):
    """Ticket key-value store unreachable"""

    def __init__(self, message: str = "Ticket store unavailable", original_error: Optional[Exception] = None):
        super().__init__(
            code=ErrorCode.TICKET_STORE_ERROR,
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

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
        message="An unexpected error occurred. Please try again later.",
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


__all__ = [
    # Base
    "AppException",
    "ErrorCode",

    # Validation
    "ReportValidationException",
    "InvalidTenantException",
    "InvalidDateRangeException",
    "InvalidAccountRangeException",

    # Tickets
    "NotFoundException",
    "TicketNotFoundException",
    "ArtifactMissingException",
    "ConflictException",
    "ReportNotReadyException",
    "ReportFailedException",
    "TicketStateException",

    # Report computation
    "ReportJobException",
    "NoAccountsInRangeException",
    "TransactionSourceException",
    "RenderException",

    # Infrastructure
    "TicketStoreException",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",
]
