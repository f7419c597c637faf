"""
Constants for the Care Consent engine

Centralized policy parameters, error messages, audit identifiers
and persistence settings.
"""

from typing import Final

# =============================================================================
# SERVICE IDENTIFICATION
# =============================================================================

SERVICE_NAME: Final[str] = "care-consent"
SERVICE_VERSION: Final[str] = "0.1.0"

# =============================================================================
# PERSISTENCE
# =============================================================================

# Bumped whenever the persisted ConsentPreferences layout changes
PREFERENCES_SCHEMA_VERSION: Final[int] = 1

# =============================================================================
# POLICY DEFAULTS
# =============================================================================

class PolicyDefaults:
    """Default policy configuration"""
    REVIEW_INTERVAL_DAYS: Final[int] = 90


# =============================================================================
# AUDIT ACTIONS
# =============================================================================

class AuditActions:
    """Consent audit action identifiers"""
    GRANTED: Final[str] = "granted"
    REVOKED: Final[str] = "revoked"
    UPDATED: Final[str] = "updated"
    VIEWED: Final[str] = "viewed"


# =============================================================================
# ERROR MESSAGES
# =============================================================================

class ErrorMessages:
    """User-facing error strings returned in ConsentResult objects"""
    NOT_INITIALIZED: Final[str] = "Consent service not initialized"
    GLOBAL_SHARING_DISABLED: Final[str] = "Global data sharing is disabled"
    REQUIRED_FOR_APP: Final[str] = "This consent is required for app functionality"
    REQUIRED_CONSENT_DENIED: Final[str] = "This consent is required"
    NO_ACTIVE_CONSENT: Final[str] = "No active consent found"


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCodes:
    """Standardized error codes for the consent engine"""
    UNKNOWN_ERROR: Final[str] = "UNKNOWN_ERROR"
    VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"

    # Consent errors
    CONSENT_ERROR: Final[str] = "CONSENT_ERROR"
    INVALID_ENUM_VALUE: Final[str] = "INVALID_ENUM_VALUE"

    # Infrastructure errors
    PERSISTENCE_ERROR: Final[str] = "PERSISTENCE_ERROR"
    AUDIT_LOG_ERROR: Final[str] = "AUDIT_LOG_ERROR"
