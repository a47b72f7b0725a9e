"""
Application exceptions for centralized error handling
"""

from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Validation errors ===
class ValidationError(BaseAppException):
    """Malformed input (missing field, bad enum value, empty string)"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


# === Resource errors ===
class NotFoundError(BaseAppException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


# === Persistence errors ===
class PersistenceError(BaseAppException):
    """Storage layer failure during create/update/delete"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
        error_code: str = "PERSISTENCE_ERROR",
    ):
        super().__init__(message, status_code, error_code, details)


class DatabaseConnectionError(PersistenceError):
    """Database connection failure"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, status_code=503, error_code="DATABASE_CONNECTION_ERROR")


class DatabaseTimeoutError(PersistenceError):
    """Database operation timed out"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        details = {"operation": operation, "timeout": timeout}
        super().__init__(
            message, details, status_code=504, error_code="DATABASE_TIMEOUT"
        )


# === External services ===
class ExternalServiceError(BaseAppException):
    """External service error"""

    def __init__(self, service: str, message: str = None):
        message = message or f"External service '{service}' error"
        details = {"service": service}
        super().__init__(message, 502, "EXTERNAL_SERVICE_ERROR", details)


# === Configuration ===
class ConfigurationError(BaseAppException):
    """Configuration error"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
