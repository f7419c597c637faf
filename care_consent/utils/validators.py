"""
Input validators for Care Consent

Turn raw strings from API payloads into the engine's closed
enumerations, and check user identifiers.
"""

import re
from enum import Enum
from typing import Optional, Any, Type, TypeVar

import structlog

from ..consent.models import AccessLevel, ConsentCategory, ConsentGrantee
from ..exceptions import ValidationError, InvalidEnumValueError

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Enum)

# =============================================================================
# REGEX PATTERNS
# =============================================================================

USER_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,128}$")

# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_user_id(
    user_id: Any,
    field_name: str = "user_id",
    required: bool = True
) -> Optional[str]:
    """
    Validate user ID format.

    Args:
        user_id: User ID to validate
        field_name: Field name for error messages
        required: Whether the field is required

    Returns:
        Validated user ID string or None

    Raises:
        ValidationError: If validation fails
    """
    if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
        if required:
            raise ValidationError(f"{field_name} is required", field=field_name)
        return None

    if not isinstance(user_id, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)

    user_id = user_id.strip()

    if len(user_id) > 128:
        raise ValidationError(
            f"{field_name} exceeds maximum length",
            field=field_name
        )

    if not USER_ID_PATTERN.match(user_id):
        raise ValidationError(
            f"{field_name} contains invalid characters",
            field=field_name
        )

    return user_id


def _validate_enum(value: Any, enum_cls: Type[E], field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value

    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)

    normalized = value.strip().lower()
    try:
        return enum_cls(normalized)
    except ValueError:
        logger.debug("Rejected enum value", field=field_name, value=value)
        raise InvalidEnumValueError(field_name, value, [m.value for m in enum_cls])


def validate_category(category: Any, field_name: str = "category") -> ConsentCategory:
    """Parse a consent category string; raises InvalidEnumValueError if unknown"""
    return _validate_enum(category, ConsentCategory, field_name)


def validate_grantee(grantee: Any, field_name: str = "grantee") -> ConsentGrantee:
    """Parse a grantee string; raises InvalidEnumValueError if unknown"""
    return _validate_enum(grantee, ConsentGrantee, field_name)


def validate_access_level(level: Any, field_name: str = "access_level") -> AccessLevel:
    """Parse an access level string; raises InvalidEnumValueError if unknown"""
    return _validate_enum(level, AccessLevel, field_name)
