"""
Consent and access control module for Care Consent
Policy evaluation, consent record store and review projections
"""

from .models import (
    AccessLevel,
    ConsentCategory,
    ConsentGrantee,
    ConsentScope,
    ConsentRecord,
    ConsentPreferences,
    ConsentRequest,
    ConsentResponse,
    ConsentResult,
    ConsentChangeEvent,
    ConsentSummary,
    REQUIRED_CONSENTS,
)
from .engine import ConsentEngine
from .listeners import ConsentChangeChannel
from .protocol import build_consent_request, process_consent_request
from .storage import ConsentStorage, SQLConsentStorage, InMemoryConsentStorage

__all__ = [
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
    "REQUIRED_CONSENTS",
    "ConsentEngine",
    "ConsentChangeChannel",
    "build_consent_request",
    "process_consent_request",
    "ConsentStorage",
    "SQLConsentStorage",
    "InMemoryConsentStorage",
]
