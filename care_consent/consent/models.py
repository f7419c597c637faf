"""
Consent data models for Care Consent
Categories, grantees, access levels, records and the per-user aggregate
"""

from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional, Dict, Tuple
from pydantic import BaseModel, Field, field_validator

from ..constants import PREFERENCES_SCHEMA_VERSION


def utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ConsentCategory(str, Enum):
    """Data domains that require consent"""
    HEALTH_DATA = "health_data"                  # Medical records, medications, conditions
    FINANCIAL_DATA = "financial_data"            # Bank accounts, pension, insurance
    PERSONAL_DOCUMENTS = "personal_documents"    # ID cards, legal documents
    CONTACT_INFO = "contact_info"                # Phone numbers, addresses
    LOCATION_DATA = "location_data"              # Location history
    VOICE_DATA = "voice_data"                    # Voice recordings, transcripts
    USAGE_ANALYTICS = "usage_analytics"          # App usage patterns
    CAREGIVER_SHARING = "caregiver_sharing"      # Sharing with care circle members


class ConsentGrantee(str, Enum):
    """Declared actor classes that may be given access"""
    APP = "app"
    AI_ASSISTANT = "ai_assistant"
    CAREGIVER_OWNER = "caregiver_owner"
    CAREGIVER_MEMBER = "caregiver_member"
    CAREGIVER_VIEWER = "caregiver_viewer"
    ANALYTICS = "analytics"
    BACKUP_SERVICE = "backup_service"

    @property
    def is_caregiver(self) -> bool:
        """Caregiver-class grantees are subject to the global sharing gate"""
        return self in _CAREGIVER_GRANTEES


_CAREGIVER_GRANTEES = frozenset({
    ConsentGrantee.CAREGIVER_OWNER,
    ConsentGrantee.CAREGIVER_MEMBER,
    ConsentGrantee.CAREGIVER_VIEWER,
})


class AccessLevel(str, Enum):
    """Access level, totally ordered none < read < write < full"""
    NONE = "none"
    READ = "read"
    WRITE = "write"
    FULL = "full"

    @property
    def ordinal(self) -> int:
        return _ACCESS_LEVEL_ORDER.index(self)


_ACCESS_LEVEL_ORDER: Tuple[AccessLevel, ...] = (
    AccessLevel.NONE,
    AccessLevel.READ,
    AccessLevel.WRITE,
    AccessLevel.FULL,
)


class ConsentScope(BaseModel):
    """Category-specific restrictions carried with a consent record"""
    # Health data
    includes_medications: Optional[bool] = None
    includes_conditions: Optional[bool] = None
    includes_doctors: Optional[bool] = None
    includes_appointments: Optional[bool] = None

    # Financial data
    includes_accounts: Optional[bool] = None
    includes_balances: Optional[bool] = None
    includes_transactions: Optional[bool] = None

    # Documents
    includes_id_documents: Optional[bool] = None
    includes_legal_documents: Optional[bool] = None
    includes_medical_records: Optional[bool] = None

    # Contacts
    includes_emergency_contacts: Optional[bool] = None
    includes_family_contacts: Optional[bool] = None
    includes_all_contacts: Optional[bool] = None

    # Caregiver sharing
    allowed_caregiver_ids: Optional[List[str]] = None
    allowed_roles: Optional[List[str]] = None

    # Time restrictions, "HH:MM"
    active_hours_start: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    active_hours_end: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class ConsentRecord(BaseModel):
    """Individual consent decision for a (category, grantee) pair"""
    id: str
    category: ConsentCategory
    grantee: ConsentGrantee
    access_level: AccessLevel

    granted_at: datetime
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    scope: Optional[ConsentScope] = None
    reason: Optional[str] = None
    version: int = Field(default=1, ge=1)

    @field_validator("granted_at", "expires_at", "revoked_at")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Not revoked and not expired as of ``now``"""
        now = now or utc_now()
        if self.revoked_at is not None:
            return False
        if self.expires_at is not None and self.expires_at <= now:
            return False
        return True


# Fixed policy table: (category, grantee, minimum level) the app cannot run without
REQUIRED_CONSENTS: Tuple[Tuple[ConsentCategory, ConsentGrantee, AccessLevel], ...] = (
    (ConsentCategory.VOICE_DATA, ConsentGrantee.APP, AccessLevel.READ),
    (ConsentCategory.VOICE_DATA, ConsentGrantee.AI_ASSISTANT, AccessLevel.READ),
)

DEFAULT_ACCESS_LEVELS: Dict[ConsentCategory, AccessLevel] = {
    ConsentCategory.HEALTH_DATA: AccessLevel.NONE,
    ConsentCategory.FINANCIAL_DATA: AccessLevel.NONE,
    ConsentCategory.PERSONAL_DOCUMENTS: AccessLevel.NONE,
    ConsentCategory.CONTACT_INFO: AccessLevel.NONE,
    ConsentCategory.LOCATION_DATA: AccessLevel.NONE,
    ConsentCategory.VOICE_DATA: AccessLevel.READ,
    ConsentCategory.USAGE_ANALYTICS: AccessLevel.READ,
    ConsentCategory.CAREGIVER_SHARING: AccessLevel.NONE,
}


class ConsentPreferences(BaseModel):
    """Per-user aggregate of all consent records and preferences"""
    schema_version: int = Field(default=PREFERENCES_SCHEMA_VERSION)
    user_id: str
    consents: List[ConsentRecord] = Field(default_factory=list)
    default_access_levels: Dict[ConsentCategory, AccessLevel] = Field(
        default_factory=lambda: dict(DEFAULT_ACCESS_LEVELS)
    )
    last_reviewed_at: datetime = Field(default_factory=utc_now)
    next_review_reminder: Optional[datetime] = None
    global_data_sharing: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("last_reviewed_at", "next_review_reminder", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @classmethod
    def create_default(cls, user_id: str, now: Optional[datetime] = None) -> "ConsentPreferences":
        now = now or utc_now()
        return cls(
            user_id=user_id,
            last_reviewed_at=now,
            created_at=now,
            updated_at=now,
        )


class ConsentRequest(BaseModel):
    """A "may I access X" request shown to the user"""
    id: str
    category: ConsentCategory
    grantee: ConsentGrantee
    requested_access_level: AccessLevel
    reason: str
    required_for_feature: Optional[str] = None
    is_required: bool = False
    suggested_scope: Optional[ConsentScope] = None


class ConsentResponse(BaseModel):
    """The user's decision on a ConsentRequest"""
    request_id: str
    granted: bool
    access_level: Optional[AccessLevel] = None
    custom_scope: Optional[ConsentScope] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class ConsentResult(BaseModel):
    """Outcome of a mutating operation"""
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ConsentResult":
        return cls(success=True)

    @classmethod
    def fail(cls, error: str) -> "ConsentResult":
        return cls(success=False, error=error)


class ConsentChangeAction(str, Enum):
    GRANTED = "granted"
    REVOKED = "revoked"


class ConsentChangeEvent(BaseModel):
    """Payload delivered to change listeners"""
    category: ConsentCategory
    grantee: ConsentGrantee
    action: ConsentChangeAction
    previous_access_level: Optional[AccessLevel] = None
    new_access_level: Optional[AccessLevel] = None
    timestamp: datetime = Field(default_factory=utc_now)


class GranteeAccess(BaseModel):
    grantee: ConsentGrantee
    access_level: AccessLevel
    granted_at: datetime


class ConsentSummary(BaseModel):
    """Per-category view for consent screens"""
    category: ConsentCategory
    display_name: str
    description: str
    icon: str
    current_access: List[GranteeAccess] = Field(default_factory=list)
    requires_review: bool = False
    last_changed_at: Optional[datetime] = None


class CategoryInfo(BaseModel):
    display_name: str
    description: str
    icon: str
    sensitivity: str
    examples: List[str] = Field(default_factory=list)


class GranteeInfo(BaseModel):
    display_name: str
    description: str


CATEGORY_INFO: Dict[ConsentCategory, CategoryInfo] = {
    ConsentCategory.HEALTH_DATA: CategoryInfo(
        display_name="Health Information",
        description="Medical records, medications, health conditions, and doctor information",
        icon="💊",
        sensitivity="critical",
        examples=["Medication schedules", "Doctor appointments", "Health conditions"],
    ),
    ConsentCategory.FINANCIAL_DATA: CategoryInfo(
        display_name="Financial Information",
        description="Bank accounts, pension details, insurance policies",
        icon="🏦",
        sensitivity="critical",
        examples=["Bank account numbers", "Pension amounts", "Insurance policies"],
    ),
    ConsentCategory.PERSONAL_DOCUMENTS: CategoryInfo(
        display_name="Personal Documents",
        description="Identity documents, legal papers, certificates",
        icon="📄",
        sensitivity="high",
        examples=["Identity cards", "Tax documents", "Property documents"],
    ),
    ConsentCategory.CONTACT_INFO: CategoryInfo(
        display_name="Contact Information",
        description="Phone numbers, addresses, and contact details",
        icon="📞",
        sensitivity="medium",
        examples=["Family phone numbers", "Emergency contacts", "Home address"],
    ),
    ConsentCategory.LOCATION_DATA: CategoryInfo(
        display_name="Location Data",
        description="Current location and location history",
        icon="📍",
        sensitivity="high",
        examples=["Current location", "Frequent places", "Location sharing"],
    ),
    ConsentCategory.VOICE_DATA: CategoryInfo(
        display_name="Voice & Conversations",
        description="Voice recordings and conversation transcripts",
        icon="🎤",
        sensitivity="medium",
        examples=["Voice commands", "Conversation history", "Speech patterns"],
    ),
    ConsentCategory.USAGE_ANALYTICS: CategoryInfo(
        display_name="Usage Analytics",
        description="Anonymous app usage data to improve the experience",
        icon="📊",
        sensitivity="low",
        examples=["Feature usage", "App performance", "Error reports"],
    ),
    ConsentCategory.CAREGIVER_SHARING: CategoryInfo(
        display_name="Caregiver Sharing",
        description="Sharing your information with family caregivers",
        icon="👨‍👩‍👧",
        sensitivity="high",
        examples=["Share medications", "Share appointments", "Share emergency info"],
    ),
}

GRANTEE_INFO: Dict[ConsentGrantee, GranteeInfo] = {
    ConsentGrantee.APP: GranteeInfo(
        display_name="Care App",
        description="Basic app functionality and local storage",
    ),
    ConsentGrantee.AI_ASSISTANT: GranteeInfo(
        display_name="AI Assistant",
        description="AI processing to answer your questions",
    ),
    ConsentGrantee.CAREGIVER_OWNER: GranteeInfo(
        display_name="Family Owner",
        description="The primary family caregiver managing your care",
    ),
    ConsentGrantee.CAREGIVER_MEMBER: GranteeInfo(
        display_name="Family Caregivers",
        description="Family members helping with your care",
    ),
    ConsentGrantee.CAREGIVER_VIEWER: GranteeInfo(
        display_name="Family Viewers",
        description="Family members who can view your information",
    ),
    ConsentGrantee.ANALYTICS: GranteeInfo(
        display_name="Analytics Service",
        description="Anonymous usage data to improve the app",
    ),
    ConsentGrantee.BACKUP_SERVICE: GranteeInfo(
        display_name="Backup Service",
        description="Secure cloud backup of your data",
    ),
}
