"""
Consent request/response handling

Stateless translation of a structured access request plus the user's
decision into a call against the consent engine.
"""

from typing import Optional, TYPE_CHECKING

import structlog

from .evaluator import is_required
from .models import (
    AccessLevel,
    ConsentCategory,
    ConsentGrantee,
    ConsentRequest,
    ConsentResponse,
    ConsentResult,
    ConsentScope,
)
from ..constants import ErrorMessages
from ..utils.ids import generate_request_id

if TYPE_CHECKING:
    from .engine import ConsentEngine

logger = structlog.get_logger(__name__)


def build_consent_request(category: ConsentCategory,
                          grantee: ConsentGrantee,
                          requested_access_level: AccessLevel,
                          reason: str,
                          required_for_feature: Optional[str] = None,
                          suggested_scope: Optional[ConsentScope] = None) -> ConsentRequest:
    """Create a request; ``is_required`` follows the required-consent table"""
    return ConsentRequest(
        id=generate_request_id(),
        category=category,
        grantee=grantee,
        requested_access_level=requested_access_level,
        reason=reason,
        required_for_feature=required_for_feature,
        is_required=is_required(category, grantee),
        suggested_scope=suggested_scope,
    )


def process_consent_request(engine: "ConsentEngine",
                            request: ConsentRequest,
                            response: ConsentResponse) -> ConsentResult:
    """Apply the user's decision on ``request``"""
    if not response.granted:
        if request.is_required:
            logger.warning("Required consent declined",
                           request_id=request.id,
                           category=request.category.value,
                           grantee=request.grantee.value)
            return ConsentResult.fail(ErrorMessages.REQUIRED_CONSENT_DENIED)

        logger.info("Consent request declined",
                    request_id=request.id,
                    category=request.category.value,
                    grantee=request.grantee.value)
        return ConsentResult.ok()

    return engine.grant_consent(
        request.category,
        request.grantee,
        response.access_level or request.requested_access_level,
        scope=response.custom_scope or request.suggested_scope,
        expires_at=response.expires_at,
        reason=request.reason,
    )
