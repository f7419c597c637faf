"""
Consent manager for the Care Consent HTTP layer
Parses raw payloads and routes them to per-user consent engines
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel

from .engine import Clock, ConsentEngine
from .models import ConsentRequest, ConsentResponse, ConsentScope
from .storage import ConsentStorage, SQLConsentStorage
from ..audit import AuditSink, StructlogAuditSink
from ..config import ConsentConfig, get_consent_config
from ..exceptions import ValidationError
from ..utils.validators import (
    validate_access_level,
    validate_category,
    validate_grantee,
    validate_user_id,
)


logger = structlog.get_logger(__name__)


class ConsentGrant(BaseModel):
    category: str
    grantee: str
    access_level: str
    scope: Optional[ConsentScope] = None
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class ConsentRevoke(BaseModel):
    category: str
    grantee: str
    reason: Optional[str] = None


class ConsentScopeUpdate(BaseModel):
    category: str
    grantee: str
    scope: ConsentScope


class ConsentCheck(BaseModel):
    category: str
    grantee: str
    required_level: str = "read"


class ConsentDecision(BaseModel):
    request: ConsentRequest
    response: ConsentResponse


class ConsentManager:
    """Per-user engine registry behind the HTTP layer"""

    def __init__(self, storage: Optional[ConsentStorage] = None,
                 audit_sink: Optional[AuditSink] = None,
                 config: Optional[ConsentConfig] = None,
                 clock: Optional[Clock] = None):
        self.config = config or get_consent_config()
        self.storage = storage or SQLConsentStorage(self.config.database_url)
        self.audit_sink = audit_sink or StructlogAuditSink()
        self.clock = clock
        self._engines: Dict[str, ConsentEngine] = {}
        self._lock = threading.Lock()

    def get_engine(self, user_id: str) -> ConsentEngine:
        user_id = validate_user_id(user_id)
        with self._lock:
            engine = self._engines.get(user_id)
            if engine is None:
                engine = ConsentEngine.open(
                    user_id,
                    storage=self.storage,
                    audit_sink=self.audit_sink,
                    config=self.config,
                    clock=self.clock,
                )
                self._engines[user_id] = engine
                logger.info("Opened consent engine", user_id=user_id)
            elif engine.load_failed:
                engine.load()
            return engine

    async def grant_consent(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = ConsentGrant(**data)
        category = validate_category(payload.category)
        grantee = validate_grantee(payload.grantee)
        level = validate_access_level(payload.access_level)

        result = self.get_engine(user_id).grant_consent(
            category, grantee, level,
            scope=payload.scope,
            expires_at=payload.expires_at,
            reason=payload.reason,
        )
        return {"user_id": user_id, **result.model_dump()}

    async def revoke_consent(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = ConsentRevoke(**data)
        result = self.get_engine(user_id).revoke_consent(
            validate_category(payload.category),
            validate_grantee(payload.grantee),
            reason=payload.reason,
        )
        return {"user_id": user_id, **result.model_dump()}

    async def update_scope(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = ConsentScopeUpdate(**data)
        result = self.get_engine(user_id).update_consent_scope(
            validate_category(payload.category),
            validate_grantee(payload.grantee),
            payload.scope,
        )
        return {"user_id": user_id, **result.model_dump()}

    async def set_global_sharing(self, user_id: str, enabled: bool) -> Dict[str, Any]:
        result = self.get_engine(user_id).set_global_data_sharing(enabled)
        return {"user_id": user_id, "global_data_sharing": enabled, **result.model_dump()}

    async def reset(self, user_id: str) -> Dict[str, Any]:
        result = self.get_engine(user_id).reset_all_consents()
        return {"user_id": user_id, **result.model_dump()}

    async def mark_reviewed(self, user_id: str) -> Dict[str, Any]:
        engine = self.get_engine(user_id)
        result = engine.mark_as_reviewed()
        preferences = engine.get_preferences()
        return {
            "user_id": user_id,
            **result.model_dump(),
            "next_review_reminder": preferences.next_review_reminder if preferences else None,
        }

    async def process_request(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        decision = ConsentDecision(**data)
        if decision.response.request_id != decision.request.id:
            raise ValidationError("response does not answer this request", field="request_id")
        result = self.get_engine(user_id).process_consent_request(decision.request, decision.response)
        return {"user_id": user_id, "request_id": decision.request.id, **result.model_dump()}

    async def check_consent(self, user_id: str, data: Dict[str, Any]) -> bool:
        payload = ConsentCheck(**data)
        return self.get_engine(user_id).has_consent(
            validate_category(payload.category),
            validate_grantee(payload.grantee),
            validate_access_level(payload.required_level, field_name="required_level"),
        )

    async def get_consent(self, user_id: str) -> Dict[str, Any]:
        engine = self.get_engine(user_id)
        return {
            "user_id": user_id,
            "global_data_sharing": engine.is_global_sharing_enabled(),
            "has_all_required_consents": engine.has_all_required_consents(),
            "summaries": [s.model_dump(mode="json") for s in engine.get_consent_summaries()],
        }

    async def get_pending_required(self, user_id: str) -> List[Dict[str, Any]]:
        engine = self.get_engine(user_id)
        return [r.model_dump(mode="json") for r in engine.get_pending_required_consents()]

    async def get_history(self, user_id: str, category: Optional[str] = None,
                          grantee: Optional[str] = None) -> List[Dict[str, Any]]:
        engine = self.get_engine(user_id)
        records = engine.get_history(
            category=validate_category(category) if category else None,
            grantee=validate_grantee(grantee) if grantee else None,
        )
        return [r.model_dump(mode="json") for r in records]

    async def export(self, user_id: str) -> str:
        return self.get_engine(user_id).export_preferences()
