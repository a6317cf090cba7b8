"""
Custom Exception Classes for the salon backend

Every service raises a subclass of SalonError; the handlers in
salon.exception_handlers turn them into the JSON error envelope.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned alongside error messages."""

    # Validation
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
    INVALID_OPERATION = "INVALID_OPERATION"

    # Authentication & authorization
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_MISSING_CREDENTIAL = "AUTH_MISSING_CREDENTIAL"
    FEATURE_NOT_AVAILABLE = "FEATURE_NOT_AVAILABLE"

    # Resources
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_TENANT_NOT_FOUND = "RESOURCE_TENANT_NOT_FOUND"
    RESOURCE_USER_NOT_FOUND = "RESOURCE_USER_NOT_FOUND"
    RESOURCE_BACKUP_NOT_FOUND = "RESOURCE_BACKUP_NOT_FOUND"
    RESOURCE_TWO_FACTOR_NOT_FOUND = "RESOURCE_TWO_FACTOR_NOT_FOUND"

    # Upstream & internal
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_ERROR = "SERVICE_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class SalonError(Exception):
    """Base exception class for all salon backend errors"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Validation & Business Logic Exceptions
# ============================================================================


class ValidationError(SalonError):
    """Raised when request input is missing or invalid"""

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


class InvalidOperationError(SalonError):
    """Raised when an operation is invalid in the current state"""

    error_code = ErrorCode.INVALID_OPERATION

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(SalonError):
    """Raised when the caller credential is missing or invalid"""

    error_code = ErrorCode.AUTH_FAILED

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class FeatureNotAvailableError(SalonError):
    """Raised when the tenant's plan does not include a feature"""

    error_code = ErrorCode.FEATURE_NOT_AVAILABLE

    def __init__(self, feature: str, plan_tier: str, required_tier: str | None = None):
        message = f"Feature '{feature}' is not available on the {plan_tier} plan"
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details={"feature": feature, "plan_tier": plan_tier, "required_tier": required_tier},
        )


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(SalonError):
    """Base class for resource not found errors"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class TenantNotFoundError(ResourceNotFoundError):
    error_code = ErrorCode.RESOURCE_TENANT_NOT_FOUND

    def __init__(self, tenant_id: Any | None = None):
        super().__init__(resource_type="Tenant", resource_id=tenant_id)


class UserNotFoundError(ResourceNotFoundError):
    error_code = ErrorCode.RESOURCE_USER_NOT_FOUND

    def __init__(self, user_id: Any | None = None):
        super().__init__(resource_type="User", resource_id=user_id)


class BackupNotFoundError(ResourceNotFoundError):
    error_code = ErrorCode.RESOURCE_BACKUP_NOT_FOUND

    def __init__(self, backup_id: Any | None = None):
        super().__init__(resource_type="Backup", resource_id=backup_id)


class TwoFactorMethodNotFoundError(ResourceNotFoundError):
    """Verification against a method that was never requested; reported as a bad request"""

    error_code = ErrorCode.RESOURCE_TWO_FACTOR_NOT_FOUND

    def __init__(self, user_id: Any | None = None, method_type: str | None = None):
        super().__init__(resource_type="2FA method", resource_id=None)
        self.message = "2FA method not found"
        self.status_code = status.HTTP_400_BAD_REQUEST
        self.details.update({"user_id": user_id, "method_type": method_type})


# ============================================================================
# Upstream, Database & Service Exceptions
# ============================================================================


class PaymentProviderError(SalonError):
    """Raised when the payment processor rejects or fails a call"""

    error_code = ErrorCode.PAYMENT_PROVIDER_ERROR

    def __init__(self, message: str, operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


class DatabaseError(SalonError):
    """Raised when a database operation fails"""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


class ServiceError(SalonError):
    """Raised when a service layer operation fails"""

    error_code = ErrorCode.SERVICE_ERROR

    def __init__(self, message: str, service: str | None = None):
        details = {"service": service} if service else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)
