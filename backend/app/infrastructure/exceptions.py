"""
Custom Exceptions for Nutrinea Billing

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class NutrineaError(Exception):
    """Base exception for all Nutrinea errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(NutrineaError):
    """Raised when input validation fails."""
    pass


class AuthorizationError(NutrineaError):
    """Raised when the caller may not act on a resource."""
    pass


class DatabaseError(NutrineaError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class PaymentGatewayError(NutrineaError):
    """Raised when a call to the payment gateway fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details, original_error)
        self.status_code = status_code


class ConfigurationError(NutrineaError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
