"""
ID generation utilities for Care Consent
Unique identifiers for consent records, requests and audit events
"""

import uuid


def generate_consent_id() -> str:
    """Generate consent record ID"""
    return f"consent_{uuid.uuid4()}"


def generate_request_id() -> str:
    """Generate consent request ID"""
    return f"request_{uuid.uuid4().hex}"


def generate_audit_id() -> str:
    """Generate audit event ID"""
    return f"audit_{uuid.uuid4()}"
