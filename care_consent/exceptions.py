"""
Custom Exceptions for the Care Consent engine

Expected policy outcomes (global sharing gate, required-consent
protection, missing records) are returned as ConsentResult objects.
These exceptions cover infrastructure failures and input validation.
"""

from typing import Optional, Dict, Any, List

from .constants import ErrorCodes


class ConsentEngineError(Exception):
    """
    Base exception for all consent engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        result: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# CONSENT ERRORS
# =============================================================================

class ConsentError(ConsentEngineError):
    """Base exception for consent-related errors"""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.CONSENT_ERROR,
        user_id: Optional[str] = None,
        category: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if user_id:
            details["user_id"] = user_id
        if category:
            details["category"] = category
        super().__init__(message, error_code, details)


class InvalidEnumValueError(ConsentError):
    """Raised when a category, grantee or access level string is not recognised"""

    def __init__(
        self,
        field: str,
        value: str,
        valid_values: Optional[List[str]] = None
    ):
        details: Dict[str, Any] = {"field": field, "invalid_value": value}
        if valid_values:
            details["valid_values"] = valid_values
        self.field = field
        self.value = value
        super().__init__(
            message=f"Invalid {field}: {value}",
            error_code=ErrorCodes.INVALID_ENUM_VALUE,
            details=details
        )


# =============================================================================
# INFRASTRUCTURE ERRORS
# =============================================================================

class PersistenceError(ConsentEngineError):
    """Raised by storage backends when the preferences blob cannot be read or written"""

    def __init__(
        self,
        message: str = "Failed to persist consent preferences",
        storage_key: Optional[str] = None,
        reason: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if storage_key:
            details["storage_key"] = storage_key
        if reason:
            details["reason"] = reason
        super().__init__(message, ErrorCodes.PERSISTENCE_ERROR, details)


class AuditLogError(ConsentEngineError):
    """Raised when an audit sink fails to record an event"""

    def __init__(
        self,
        message: str = "Failed to write audit log",
        action: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if action:
            details["action"] = action
        super().__init__(message, ErrorCodes.AUDIT_LOG_ERROR, details)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(ConsentEngineError):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, ErrorCodes.VALIDATION_ERROR, details)
