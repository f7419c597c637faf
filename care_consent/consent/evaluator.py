"""
Access policy evaluation for Care Consent

Side-effect-free rules over a ConsentPreferences snapshot: access-level
ordering, the caregiver global-sharing gate, expiry and the
required-consent table. Every function answers False when handed no
preferences so callers fail closed on protected data.
"""

from datetime import datetime
from typing import Optional

from .models import (
    AccessLevel,
    ConsentCategory,
    ConsentGrantee,
    ConsentPreferences,
    ConsentRecord,
    REQUIRED_CONSENTS,
)


def is_active(record: ConsentRecord, now: datetime) -> bool:
    """True iff the record is neither revoked nor expired at ``now``"""
    return record.is_active(now)


def level_satisfies(have: AccessLevel, want: AccessLevel) -> bool:
    return have.ordinal >= want.ordinal


def is_grant_allowed(preferences: Optional[ConsentPreferences],
                     category: ConsentCategory,
                     grantee: ConsentGrantee,
                     now: datetime) -> bool:
    """Apply the global sharing gate to caregiver-class grantees"""
    if preferences is None:
        return False
    if grantee.is_caregiver and not preferences.global_data_sharing:
        return False
    return True


def find_active_index(preferences: Optional[ConsentPreferences],
                      category: ConsentCategory,
                      grantee: ConsentGrantee,
                      now: datetime) -> int:
    """Position of the active record for the pair, or -1"""
    if preferences is None:
        return -1
    for index, record in enumerate(preferences.consents):
        if record.category == category and record.grantee == grantee and record.is_active(now):
            return index
    return -1


def find_active_record(preferences: Optional[ConsentPreferences],
                       category: ConsentCategory,
                       grantee: ConsentGrantee,
                       now: datetime) -> Optional[ConsentRecord]:
    index = find_active_index(preferences, category, grantee, now)
    if index < 0:
        return None
    return preferences.consents[index]


def has_consent(preferences: Optional[ConsentPreferences],
                category: ConsentCategory,
                grantee: ConsentGrantee,
                required_level: AccessLevel,
                now: datetime) -> bool:
    """Whether ``grantee`` currently holds at least ``required_level`` on ``category``"""
    if not is_grant_allowed(preferences, category, grantee, now):
        return False

    record = find_active_record(preferences, category, grantee, now)
    if record is None:
        return False

    return level_satisfies(record.access_level, required_level)


def is_required(category: ConsentCategory, grantee: ConsentGrantee) -> bool:
    return any(
        required_category == category and required_grantee == grantee
        for required_category, required_grantee, _ in REQUIRED_CONSENTS
    )


def has_all_required_consents(preferences: Optional[ConsentPreferences],
                              now: datetime) -> bool:
    return all(
        has_consent(preferences, category, grantee, min_level, now)
        for category, grantee, min_level in REQUIRED_CONSENTS
    )
