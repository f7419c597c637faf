"""
Tests for the pure access policy evaluator
"""

import pytest
from datetime import datetime, timedelta, UTC

from care_consent.consent import evaluator
from care_consent.consent.models import (
    AccessLevel,
    ConsentCategory,
    ConsentGrantee,
    ConsentPreferences,
    ConsentRecord,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def make_record(category=ConsentCategory.HEALTH_DATA, grantee=ConsentGrantee.APP,
                level=AccessLevel.READ, **kwargs) -> ConsentRecord:
    return ConsentRecord(
        id=kwargs.pop("id", "consent_test"),
        category=category,
        grantee=grantee,
        access_level=level,
        granted_at=kwargs.pop("granted_at", NOW - timedelta(days=1)),
        **kwargs,
    )


class TestAccessLevels:
    """Test access level ordering"""

    def test_ordinals_follow_fixed_sequence(self):
        assert [level.ordinal for level in AccessLevel] == [0, 1, 2, 3]

    @pytest.mark.parametrize("have,want,expected", [
        (AccessLevel.FULL, AccessLevel.READ, True),
        (AccessLevel.WRITE, AccessLevel.WRITE, True),
        (AccessLevel.READ, AccessLevel.WRITE, False),
        (AccessLevel.NONE, AccessLevel.READ, False),
        (AccessLevel.NONE, AccessLevel.NONE, True),
    ])
    def test_level_satisfies(self, have, want, expected):
        assert evaluator.level_satisfies(have, want) is expected

    def test_caregiver_predicate(self):
        caregivers = {g for g in ConsentGrantee if g.is_caregiver}
        assert caregivers == {
            ConsentGrantee.CAREGIVER_OWNER,
            ConsentGrantee.CAREGIVER_MEMBER,
            ConsentGrantee.CAREGIVER_VIEWER,
        }


class TestActiveRecords:
    """Test revocation and expiry checks"""

    def test_plain_record_is_active(self):
        assert evaluator.is_active(make_record(), NOW)

    def test_revoked_record_is_inactive(self):
        assert not evaluator.is_active(make_record(revoked_at=NOW - timedelta(hours=1)), NOW)

    def test_expiry_boundary(self):
        assert evaluator.is_active(make_record(expires_at=NOW + timedelta(seconds=1)), NOW)
        assert not evaluator.is_active(make_record(expires_at=NOW), NOW)

    def test_naive_timestamps_are_treated_as_utc(self):
        record = make_record(expires_at=datetime(2026, 3, 2, 12, 0))
        assert record.expires_at.tzinfo is not None
        assert evaluator.is_active(record, NOW)


class TestHasConsent:
    """Test the has_consent decision"""

    def test_no_preferences_fails_closed(self):
        assert not evaluator.has_consent(None, ConsentCategory.VOICE_DATA,
                                         ConsentGrantee.APP, AccessLevel.NONE, NOW)
        assert not evaluator.has_all_required_consents(None, NOW)

    def test_active_record_with_sufficient_level(self):
        prefs = ConsentPreferences(user_id="user_123",
                                   consents=[make_record(level=AccessLevel.WRITE)])

        assert evaluator.has_consent(prefs, ConsentCategory.HEALTH_DATA,
                                     ConsentGrantee.APP, AccessLevel.READ, NOW)
        assert not evaluator.has_consent(prefs, ConsentCategory.HEALTH_DATA,
                                         ConsentGrantee.APP, AccessLevel.FULL, NOW)
        assert not evaluator.has_consent(prefs, ConsentCategory.HEALTH_DATA,
                                         ConsentGrantee.AI_ASSISTANT, AccessLevel.READ, NOW)

    def test_expired_record_denies(self):
        prefs = ConsentPreferences(user_id="user_123", consents=[
            make_record(expires_at=NOW - timedelta(minutes=1)),
        ])
        assert not evaluator.has_consent(prefs, ConsentCategory.HEALTH_DATA,
                                         ConsentGrantee.APP, AccessLevel.READ, NOW)

    def test_global_gate_overrides_caregiver_records(self):
        record = make_record(grantee=ConsentGrantee.CAREGIVER_MEMBER, level=AccessLevel.FULL)
        prefs = ConsentPreferences(user_id="user_123", consents=[record],
                                   global_data_sharing=False)

        assert not evaluator.is_grant_allowed(prefs, ConsentCategory.HEALTH_DATA,
                                              ConsentGrantee.CAREGIVER_MEMBER, NOW)
        assert not evaluator.has_consent(prefs, ConsentCategory.HEALTH_DATA,
                                         ConsentGrantee.CAREGIVER_MEMBER, AccessLevel.READ, NOW)

        prefs.global_data_sharing = True
        assert evaluator.has_consent(prefs, ConsentCategory.HEALTH_DATA,
                                     ConsentGrantee.CAREGIVER_MEMBER, AccessLevel.READ, NOW)

    def test_gate_does_not_apply_to_non_caregivers(self):
        prefs = ConsentPreferences(user_id="user_123", global_data_sharing=False)
        assert evaluator.is_grant_allowed(prefs, ConsentCategory.HEALTH_DATA,
                                          ConsentGrantee.BACKUP_SERVICE, NOW)


class TestRequiredConsents:
    """Test the required-consent table"""

    def test_membership(self):
        assert evaluator.is_required(ConsentCategory.VOICE_DATA, ConsentGrantee.APP)
        assert evaluator.is_required(ConsentCategory.VOICE_DATA, ConsentGrantee.AI_ASSISTANT)
        assert not evaluator.is_required(ConsentCategory.VOICE_DATA, ConsentGrantee.ANALYTICS)
        assert not evaluator.is_required(ConsentCategory.HEALTH_DATA, ConsentGrantee.APP)

    def test_all_required_needs_every_entry(self):
        prefs = ConsentPreferences(user_id="user_123", consents=[
            make_record(ConsentCategory.VOICE_DATA, ConsentGrantee.APP, id="consent_a"),
        ])
        assert not evaluator.has_all_required_consents(prefs, NOW)

        prefs.consents.append(
            make_record(ConsentCategory.VOICE_DATA, ConsentGrantee.AI_ASSISTANT, id="consent_b")
        )
        assert evaluator.has_all_required_consents(prefs, NOW)

    def test_required_level_is_enforced(self):
        prefs = ConsentPreferences(user_id="user_123", consents=[
            make_record(ConsentCategory.VOICE_DATA, ConsentGrantee.APP,
                        level=AccessLevel.NONE, id="consent_a"),
            make_record(ConsentCategory.VOICE_DATA, ConsentGrantee.AI_ASSISTANT,
                        level=AccessLevel.FULL, id="consent_b"),
        ])
        assert not evaluator.has_all_required_consents(prefs, NOW)
