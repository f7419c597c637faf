"""
Consent record store for Care Consent

ConsentEngine owns one user's ConsentPreferences aggregate in memory,
applies grant/revoke/update mutations, persists the aggregate through a
storage collaborator, writes audit events and notifies change listeners.
Policy questions are answered by the evaluator module.
"""

import json
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set, Tuple

import structlog

from . import evaluator, projection
from .listeners import ConsentChangeChannel, ConsentChangeListener
from .models import (
    AccessLevel,
    CATEGORY_INFO,
    ConsentCategory,
    ConsentChangeAction,
    ConsentChangeEvent,
    ConsentGrantee,
    ConsentPreferences,
    ConsentRecord,
    ConsentRequest,
    ConsentResponse,
    ConsentResult,
    ConsentScope,
    ConsentSummary,
    GRANTEE_INFO,
    utc_now,
)
from .protocol import process_consent_request
from .storage import ConsentStorage, SQLConsentStorage
from ..audit import AuditAction, AuditSink, StructlogAuditSink, create_consent_event
from ..config import ConsentConfig, get_consent_config
from ..constants import ErrorMessages, PREFERENCES_SCHEMA_VERSION
from ..utils.ids import generate_consent_id

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _migrate(data: dict) -> dict:
    """Upgrade a decoded preferences blob to the current schema version"""
    version = data.get("schema_version", 0)
    if version > PREFERENCES_SCHEMA_VERSION:
        raise ValueError(f"Unsupported consent preferences schema version {version}")
    if version < 1:
        # Blobs written before the version field existed share the v1 layout
        data["schema_version"] = 1
    return data


class ConsentEngine:
    """Consent record store for a single user"""

    def __init__(self, user_id: str,
                 storage: Optional[ConsentStorage] = None,
                 audit_sink: Optional[AuditSink] = None,
                 preferences: Optional[ConsentPreferences] = None,
                 config: Optional[ConsentConfig] = None,
                 clock: Optional[Clock] = None):
        self.user_id = user_id
        self.storage = storage or SQLConsentStorage()
        self.audit_sink = audit_sink or StructlogAuditSink()
        self.config = config or get_consent_config()
        self.storage_key = self.config.storage_key_for(user_id)

        self._clock = clock or utc_now
        self._preferences = preferences
        self._lock = threading.RLock()
        self._changes = ConsentChangeChannel()
        self._persistence_pending = False
        self._load_failed = False

    @classmethod
    def open(cls, user_id: str,
             storage: ConsentStorage,
             audit_sink: Optional[AuditSink] = None,
             config: Optional[ConsentConfig] = None,
             clock: Optional[Clock] = None) -> "ConsentEngine":
        """Construct an engine and load the user's preferences from storage"""
        engine = cls(user_id, storage=storage, audit_sink=audit_sink,
                     config=config, clock=clock)
        engine.load()
        return engine

    # ------------------------------------------------------------------
    # Lifecycle and persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load preferences from storage, creating defaults when none exist

        An unreadable or corrupt blob leaves the engine uninitialized, so reads
        deny and mutations fail without touching storage. The load is retried
        before the next mutation.
        """
        with self._lock:
            now = self._now()
            try:
                blob = self.storage.load(self.storage_key)
            except Exception as e:
                logger.error("Failed to load consent preferences",
                             user_id=self.user_id, error=str(e))
                self._preferences = None
                self._load_failed = True
                return

            if blob is None:
                self._preferences = ConsentPreferences.create_default(self.user_id, now)
                self._load_failed = False
                self._persist(now)
                logger.info("Created default consent preferences", user_id=self.user_id)
                return

            try:
                self._preferences = ConsentPreferences.model_validate(_migrate(json.loads(blob)))
            except (ValueError, TypeError, AttributeError) as e:
                logger.error("Corrupt consent preferences, refusing to load",
                             user_id=self.user_id, error=str(e))
                self._preferences = None
                self._load_failed = True
                return

            self._load_failed = False
            logger.debug("Loaded consent preferences", user_id=self.user_id,
                         record_count=len(self._preferences.consents))

    @property
    def is_initialized(self) -> bool:
        return self._preferences is not None

    @property
    def load_failed(self) -> bool:
        """True when the last load could not read or parse the stored blob"""
        return self._load_failed

    def _reload_if_failed(self) -> None:
        if self._load_failed:
            self.load()

    @property
    def persistence_pending(self) -> bool:
        """True while the in-memory aggregate has changes storage has not accepted"""
        return self._persistence_pending

    def flush(self) -> bool:
        """Retry a pending save; returns True once storage is in sync"""
        with self._lock:
            if self._preferences is None:
                return False
            if self._persistence_pending:
                self._save()
            return not self._persistence_pending

    def _now(self) -> datetime:
        return self._clock()

    def _persist(self, now: datetime) -> None:
        self._preferences.updated_at = now
        self._save()

    def _save(self) -> None:
        # Always writes the whole aggregate, so a retry after failure is idempotent
        try:
            self.storage.save(self.storage_key, self._preferences.model_dump_json())
            self._persistence_pending = False
        except Exception as e:
            self._persistence_pending = True
            logger.warning("Consent preferences not persisted, will retry on next change",
                           user_id=self.user_id, storage_key=self.storage_key, error=str(e))

    def _audit(self, action: AuditAction, category: ConsentCategory,
               details: str, grantee: Optional[ConsentGrantee] = None) -> None:
        event = create_consent_event(
            action=action,
            category=category.value,
            details=details,
            granted_to=GRANTEE_INFO[grantee].display_name if grantee else None,
            user_id=self.user_id,
        )
        try:
            self.audit_sink.log_consent_change(event)
        except Exception as e:
            logger.error("Failed to write consent audit event",
                         user_id=self.user_id, action=action.value, error=str(e))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def grant_consent(self, category: ConsentCategory, grantee: ConsentGrantee,
                      access_level: AccessLevel,
                      scope: Optional[ConsentScope] = None,
                      expires_at: Optional[datetime] = None,
                      reason: Optional[str] = None) -> ConsentResult:
        """Grant ``access_level`` on ``category`` to ``grantee``

        An existing active record for the pair is replaced in place by a new
        record with a fresh id and the next version number.
        """
        with self._lock:
            self._reload_if_failed()
            preferences = self._preferences
            if preferences is None:
                return ConsentResult.fail(ErrorMessages.NOT_INITIALIZED)

            now = self._now()
            if not evaluator.is_grant_allowed(preferences, category, grantee, now):
                logger.info("Consent grant blocked by global sharing gate",
                            user_id=self.user_id, category=category.value, grantee=grantee.value)
                return ConsentResult.fail(ErrorMessages.GLOBAL_SHARING_DISABLED)

            index = evaluator.find_active_index(preferences, category, grantee, now)
            previous = preferences.consents[index] if index >= 0 else None

            record = ConsentRecord(
                id=generate_consent_id(),
                category=category,
                grantee=grantee,
                access_level=access_level,
                granted_at=now,
                expires_at=expires_at,
                scope=scope,
                reason=reason,
                version=self._next_version(preferences, category, grantee),
            )

            if previous is not None:
                preferences.consents[index] = record
            else:
                preferences.consents.append(record)

            self._persist(now)
            self._audit(
                AuditAction.GRANTED, category,
                f"Granted {access_level.value} access to {CATEGORY_INFO[category].display_name}",
                grantee=grantee,
            )
            event = ConsentChangeEvent(
                category=category,
                grantee=grantee,
                action=ConsentChangeAction.GRANTED,
                previous_access_level=previous.access_level if previous else None,
                new_access_level=access_level,
                timestamp=now,
            )

        logger.info("Granted consent", user_id=self.user_id, category=category.value,
                    grantee=grantee.value, access_level=access_level.value,
                    version=record.version)
        self._changes.publish(event)
        return ConsentResult.ok()

    @staticmethod
    def _next_version(preferences: ConsentPreferences, category: ConsentCategory,
                      grantee: ConsentGrantee) -> int:
        # The active record always carries the highest version for its pair
        versions = [
            r.version for r in preferences.consents
            if r.category == category and r.grantee == grantee
        ]
        return max(versions, default=0) + 1

    def revoke_consent(self, category: ConsentCategory, grantee: ConsentGrantee,
                       reason: Optional[str] = None) -> ConsentResult:
        """Soft-revoke the active record for the pair; history is kept"""
        with self._lock:
            self._reload_if_failed()
            preferences = self._preferences
            if preferences is None:
                return ConsentResult.fail(ErrorMessages.NOT_INITIALIZED)

            if evaluator.is_required(category, grantee):
                return ConsentResult.fail(ErrorMessages.REQUIRED_FOR_APP)

            now = self._now()
            record = evaluator.find_active_record(preferences, category, grantee, now)
            if record is None:
                return ConsentResult.fail(ErrorMessages.NO_ACTIVE_CONSENT)

            record.revoked_at = now

            self._persist(now)
            self._audit(
                AuditAction.REVOKED, category,
                reason or f"Revoked access to {CATEGORY_INFO[category].display_name}",
                grantee=grantee,
            )
            event = ConsentChangeEvent(
                category=category,
                grantee=grantee,
                action=ConsentChangeAction.REVOKED,
                previous_access_level=record.access_level,
                timestamp=now,
            )

        logger.info("Revoked consent", user_id=self.user_id, category=category.value,
                    grantee=grantee.value)
        self._changes.publish(event)
        return ConsentResult.ok()

    def update_consent_scope(self, category: ConsentCategory, grantee: ConsentGrantee,
                             new_scope: ConsentScope) -> ConsentResult:
        """Replace the scope of the active record in place and bump its version"""
        with self._lock:
            self._reload_if_failed()
            preferences = self._preferences
            if preferences is None:
                return ConsentResult.fail(ErrorMessages.NOT_INITIALIZED)

            now = self._now()
            record = evaluator.find_active_record(preferences, category, grantee, now)
            if record is None:
                return ConsentResult.fail(ErrorMessages.NO_ACTIVE_CONSENT)

            record.scope = new_scope
            record.version += 1

            self._persist(now)
            self._audit(
                AuditAction.UPDATED, category,
                f"Updated scope for {CATEGORY_INFO[category].display_name}",
                grantee=grantee,
            )

        logger.info("Updated consent scope", user_id=self.user_id, category=category.value,
                    grantee=grantee.value, version=record.version)
        return ConsentResult.ok()

    def set_global_data_sharing(self, enabled: bool) -> ConsentResult:
        """Flip the caregiver sharing master switch; records are left untouched"""
        with self._lock:
            self._reload_if_failed()
            preferences = self._preferences
            if preferences is None:
                return ConsentResult.fail(ErrorMessages.NOT_INITIALIZED)

            preferences.global_data_sharing = enabled

            self._persist(self._now())
            self._audit(
                AuditAction.GRANTED if enabled else AuditAction.REVOKED,
                ConsentCategory.CAREGIVER_SHARING,
                f"Global data sharing {'enabled' if enabled else 'disabled'}",
            )

        logger.info("Global data sharing changed", user_id=self.user_id, enabled=enabled)
        return ConsentResult.ok()

    def reset_all_consents(self) -> ConsentResult:
        """Soft-revoke every active record and disable global sharing

        This is an explicit user-initiated override: required consents are
        revoked as well, which leaves the app without its required consents
        until they are granted again.
        """
        with self._lock:
            self._reload_if_failed()
            preferences = self._preferences
            if preferences is None:
                return ConsentResult.fail(ErrorMessages.NOT_INITIALIZED)

            now = self._now()
            revoked: List[ConsentRecord] = []
            for record in preferences.consents:
                if record.is_active(now):
                    record.revoked_at = now
                    revoked.append(record)

            preferences.global_data_sharing = False

            self._persist(now)
            self._audit(AuditAction.REVOKED, ConsentCategory.CAREGIVER_SHARING,
                        "All consents reset")

            seen: Set[Tuple[ConsentCategory, ConsentGrantee]] = set()
            events: List[ConsentChangeEvent] = []
            for record in revoked:
                pair = (record.category, record.grantee)
                if pair in seen:
                    continue
                seen.add(pair)
                events.append(ConsentChangeEvent(
                    category=record.category,
                    grantee=record.grantee,
                    action=ConsentChangeAction.REVOKED,
                    previous_access_level=record.access_level,
                    timestamp=now,
                ))

        logger.warning("All consents reset", user_id=self.user_id, revoked_count=len(revoked))
        for event in events:
            self._changes.publish(event)
        return ConsentResult.ok()

    def mark_as_reviewed(self) -> ConsentResult:
        """Record a full review and schedule the next reminder"""
        with self._lock:
            self._reload_if_failed()
            preferences = self._preferences
            if preferences is None:
                return ConsentResult.fail(ErrorMessages.NOT_INITIALIZED)

            now = self._now()
            preferences.last_reviewed_at = now
            preferences.next_review_reminder = now + timedelta(days=self.config.review_interval_days)

            self._persist(now)
            self._audit(AuditAction.VIEWED, ConsentCategory.CAREGIVER_SHARING,
                        "All consents reviewed by user")

        return ConsentResult.ok()

    def process_consent_request(self, request: ConsentRequest,
                                response: ConsentResponse) -> ConsentResult:
        return process_consent_request(self, request, response)

    def add_change_listener(self, listener: ConsentChangeListener) -> Callable[[], None]:
        """Subscribe to grants and revocations; returns the unsubscribe callable"""
        return self._changes.subscribe(listener)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_consent(self, category: ConsentCategory, grantee: ConsentGrantee,
                    required_level: AccessLevel = AccessLevel.READ) -> bool:
        with self._lock:
            try:
                return evaluator.has_consent(self._preferences, category, grantee,
                                             required_level, self._now())
            except Exception as e:
                logger.error("Consent check failed, denying", user_id=self.user_id,
                             category=getattr(category, "value", category), error=str(e))
                return False

    def get_consent(self, category: ConsentCategory,
                    grantee: ConsentGrantee) -> Optional[ConsentRecord]:
        with self._lock:
            record = evaluator.find_active_record(self._preferences, category, grantee, self._now())
            return record.model_copy(deep=True) if record else None

    def get_consents_for_category(self, category: ConsentCategory) -> List[ConsentRecord]:
        with self._lock:
            return [r.model_copy(deep=True)
                    for r in projection.active_records(self._preferences, self._now(),
                                                       category=category)]

    def get_consents_for_grantee(self, grantee: ConsentGrantee) -> List[ConsentRecord]:
        with self._lock:
            return [r.model_copy(deep=True)
                    for r in projection.active_records(self._preferences, self._now(),
                                                       grantee=grantee)]

    def get_history(self, category: Optional[ConsentCategory] = None,
                    grantee: Optional[ConsentGrantee] = None) -> List[ConsentRecord]:
        """Every stored record, including revoked and expired ones"""
        with self._lock:
            if self._preferences is None:
                return []
            return [
                r.model_copy(deep=True) for r in self._preferences.consents
                if (category is None or r.category == category)
                and (grantee is None or r.grantee == grantee)
            ]

    def is_global_sharing_enabled(self) -> bool:
        with self._lock:
            return self._preferences is not None and self._preferences.global_data_sharing

    def has_all_required_consents(self) -> bool:
        with self._lock:
            return evaluator.has_all_required_consents(self._preferences, self._now())

    def get_consent_summaries(self) -> List[ConsentSummary]:
        with self._lock:
            return projection.get_consent_summaries(self._preferences, self._now(),
                                                    self.config.review_interval_days)

    def get_pending_required_consents(self) -> List[ConsentRequest]:
        with self._lock:
            return projection.get_pending_required_consents(self._preferences, self._now())

    def get_preferences(self) -> Optional[ConsentPreferences]:
        """Deep copy of the aggregate"""
        with self._lock:
            return self._preferences.model_copy(deep=True) if self._preferences else None

    def export_preferences(self) -> str:
        """Serialize the full aggregate as indented JSON"""
        with self._lock:
            if self._preferences is None:
                return "null"
            return self._preferences.model_dump_json(indent=2)
