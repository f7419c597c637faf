"""
Care Consent
Consent & access control engine: who may access which personal data, at
what level, and the audit history of those decisions
"""

__version__ = "0.1.0"

# Core exports
from .config import ConsentConfig, get_consent_config

# Consent management
from .consent import (
    AccessLevel, ConsentCategory, ConsentGrantee, ConsentScope,
    ConsentRecord, ConsentPreferences, ConsentRequest, ConsentResponse,
    ConsentResult, ConsentChangeEvent, ConsentSummary,
    ConsentEngine, ConsentStorage, SQLConsentStorage, InMemoryConsentStorage,
    build_consent_request,
)

# Audit
from .audit import AuditAction, AuditSink, InMemoryAuditSink, StructlogAuditSink

# Errors
from .exceptions import (
    ConsentEngineError, ConsentError, InvalidEnumValueError,
    PersistenceError, AuditLogError, ValidationError,
)

__all__ = [
    # Config
    "ConsentConfig",
    "get_consent_config",

    # Consent
    "AccessLevel",
    "ConsentCategory",
    "ConsentGrantee",
    "ConsentScope",
    "ConsentRecord",
    "ConsentPreferences",
    "ConsentRequest",
    "ConsentResponse",
    "ConsentResult",
    "ConsentChangeEvent",
    "ConsentSummary",
    "ConsentEngine",
    "ConsentStorage",
    "SQLConsentStorage",
    "InMemoryConsentStorage",
    "build_consent_request",

    # Audit
    "AuditAction",
    "AuditSink",
    "InMemoryAuditSink",
    "StructlogAuditSink",

    # Errors
    "ConsentEngineError",
    "ConsentError",
    "InvalidEnumValueError",
    "PersistenceError",
    "AuditLogError",
    "ValidationError",
]
