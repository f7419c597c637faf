"""
Read-only consent views: per-category summaries and pending required consents
"""

from datetime import datetime, timedelta
from typing import List, Optional

from .evaluator import has_consent
from .models import (
    CATEGORY_INFO,
    ConsentCategory,
    ConsentGrantee,
    ConsentPreferences,
    ConsentRecord,
    ConsentRequest,
    ConsentSummary,
    GranteeAccess,
    REQUIRED_CONSENTS,
)
from ..constants import PolicyDefaults


def active_records(preferences: Optional[ConsentPreferences],
                   now: datetime,
                   category: Optional[ConsentCategory] = None,
                   grantee: Optional[ConsentGrantee] = None) -> List[ConsentRecord]:
    """Currently active records, optionally narrowed to a category and/or grantee"""
    if preferences is None:
        return []
    return [
        record for record in preferences.consents
        if (category is None or record.category == category)
        and (grantee is None or record.grantee == grantee)
        and record.is_active(now)
    ]


def is_stale(record: ConsentRecord, now: datetime,
             review_interval_days: int = PolicyDefaults.REVIEW_INTERVAL_DAYS) -> bool:
    return now - record.granted_at > timedelta(days=review_interval_days)


def get_consent_summaries(preferences: Optional[ConsentPreferences],
                          now: datetime,
                          review_interval_days: int = PolicyDefaults.REVIEW_INTERVAL_DAYS
                          ) -> List[ConsentSummary]:
    """One summary per category, in declaration order"""
    summaries: List[ConsentSummary] = []

    for category in ConsentCategory:
        info = CATEGORY_INFO[category]
        active = active_records(preferences, now, category=category)

        summaries.append(ConsentSummary(
            category=category,
            display_name=info.display_name,
            description=info.description,
            icon=info.icon,
            current_access=[
                GranteeAccess(
                    grantee=record.grantee,
                    access_level=record.access_level,
                    granted_at=record.granted_at,
                )
                for record in active
            ],
            requires_review=any(is_stale(r, now, review_interval_days) for r in active),
            last_changed_at=max((r.granted_at for r in active), default=None),
        ))

    return summaries


def get_pending_required_consents(preferences: Optional[ConsentPreferences],
                                  now: datetime) -> List[ConsentRequest]:
    """Required-consent entries that do not currently pass, as synthetic requests"""
    return [
        ConsentRequest(
            id=f"required_{category.value}_{grantee.value}",
            category=category,
            grantee=grantee,
            requested_access_level=min_level,
            reason=f"Required for {CATEGORY_INFO[category].display_name} functionality",
            is_required=True,
        )
        for category, grantee, min_level in REQUIRED_CONSENTS
        if not has_consent(preferences, category, grantee, min_level, now)
    ]
