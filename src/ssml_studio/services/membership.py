"""
Membership tiers and feature gating.

Three plans, each with a fixed feature table:

    feature                  free     pro       premium
    ssml_advanced            no       yes       yes
    voice_cloning            no       no        yes
    batch_processing         no       yes       yes
    priority_support         no       yes       yes
    custom_voices            no       no        yes
    api_access               no       yes       yes
    max_characters_per_month 10_000   100_000   1_000_000
    max_requests_per_day     10       100       1_000

A paid plan whose expiry date has passed counts as free.

Usage:
    info = get_membership_info("pro", expires_at=None)
    if not has_feature_access(info, "ssml_advanced"):
        raise FeatureLockedError("ssml_advanced", info.tier)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from ssml_studio.errors import FeatureLockedError, InvalidInputError

FREE = "free"
PRO = "pro"
PREMIUM = "premium"
TIERS = (FREE, PRO, PREMIUM)


@dataclass(frozen=True)
class MembershipFeatures:
    ssml_advanced: bool
    voice_cloning: bool
    batch_processing: bool
    priority_support: bool
    custom_voices: bool
    api_access: bool
    max_characters_per_month: int
    max_requests_per_day: int


MEMBERSHIP_FEATURES: Dict[str, MembershipFeatures] = {
    FREE: MembershipFeatures(
        ssml_advanced=False,
        voice_cloning=False,
        batch_processing=False,
        priority_support=False,
        custom_voices=False,
        api_access=False,
        max_characters_per_month=10_000,
        max_requests_per_day=10,
    ),
    PRO: MembershipFeatures(
        ssml_advanced=True,
        voice_cloning=False,
        batch_processing=True,
        priority_support=True,
        custom_voices=False,
        api_access=True,
        max_characters_per_month=100_000,
        max_requests_per_day=100,
    ),
    PREMIUM: MembershipFeatures(
        ssml_advanced=True,
        voice_cloning=True,
        batch_processing=True,
        priority_support=True,
        custom_voices=True,
        api_access=True,
        max_characters_per_month=1_000_000,
        max_requests_per_day=1_000,
    ),
}

UPGRADE_BENEFITS: Dict[str, List[str]] = {
    FREE: [
        "Advanced SSML editing with visual interface",
        "Batch processing for multiple texts",
        "Priority customer support",
        "API access for integrations",
        "100,000 characters per month",
        "100 requests per day",
    ],
    PRO: [
        "Voice cloning capabilities",
        "Custom voice training",
        "1,000,000 characters per month",
        "1,000 requests per day",
    ],
}


@dataclass(frozen=True)
class MembershipInfo:
    """
    Effective membership of a caller.

    Attributes:
        tier: Effective tier (free when a paid plan has expired).
        is_active: False when a paid plan has expired.
        expires_at: Plan expiry, None for no expiry.
    """
    tier: str
    is_active: bool
    features: MembershipFeatures
    expires_at: Optional[datetime] = None


def get_membership_info(
    tier: Optional[str],
    expires_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> MembershipInfo:
    """
    Resolve the effective membership for a stored tier and expiry.

    Args:
        tier: Stored tier name; None or empty means free.
        expires_at: Plan expiry. Naive datetimes are taken as UTC.
        now: Current time, for tests.

    Raises:
        InvalidInputError: If the tier name is unknown.
    """
    name = (tier or FREE).strip().lower()
    if name not in MEMBERSHIP_FEATURES:
        raise InvalidInputError(f"Unknown membership tier: {tier!r}", {"allowed": list(TIERS)})

    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    is_active = name == FREE or expires_at is None or expires_at > now
    effective = name if is_active else FREE
    return MembershipInfo(
        tier=effective,
        is_active=is_active,
        features=MEMBERSHIP_FEATURES[effective],
        expires_at=expires_at,
    )


def has_feature_access(membership: Union[MembershipInfo, str, None], feature: str) -> bool:
    """
    True if the membership (or tier name) includes a boolean feature.

    Raises:
        InvalidInputError: If ``feature`` is not a boolean feature.
    """
    info = membership if isinstance(membership, MembershipInfo) else get_membership_info(membership)
    value = getattr(info.features, feature, None)
    if not isinstance(value, bool):
        raise InvalidInputError(f"Unknown feature: {feature!r}")
    return value


def require_feature(membership: Union[MembershipInfo, str, None], feature: str) -> MembershipInfo:
    """
    Like has_feature_access(), but raises instead of returning False.

    Raises:
        FeatureLockedError: If the tier lacks the feature.
    """
    info = membership if isinstance(membership, MembershipInfo) else get_membership_info(membership)
    if not has_feature_access(info, feature):
        raise FeatureLockedError(feature, info.tier)
    return info


def is_pro_member(info: MembershipInfo) -> bool:
    return info.tier in (PRO, PREMIUM)


def upgrade_recommendation(tier: str) -> Optional[Dict[str, object]]:
    """Next tier up and what it adds, or None at the top tier."""
    if tier == FREE:
        return {"target_tier": PRO, "benefits": UPGRADE_BENEFITS[FREE]}
    if tier == PRO:
        return {"target_tier": PREMIUM, "benefits": UPGRADE_BENEFITS[PRO]}
    return None
