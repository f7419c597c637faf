"""
Utility functions for Care Consent
ID generation and input validation helpers
"""

from .ids import generate_consent_id, generate_request_id, generate_audit_id
from .validators import (
    validate_user_id,
    validate_category,
    validate_grantee,
    validate_access_level,
)

__all__ = [
    # ID generation
    "generate_consent_id",
    "generate_request_id",
    "generate_audit_id",
    # Validators
    "validate_user_id",
    "validate_category",
    "validate_grantee",
    "validate_access_level",
]
