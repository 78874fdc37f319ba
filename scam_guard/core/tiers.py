"""
Subscription tiers and tier resolution.

Maps a user identity to the tier that decides whether their scans are metered.
"""

import logging
import sqlite3
from enum import Enum

from scam_guard.storage.repository import get_profile

logger = logging.getLogger(__name__)


class SubscriptionTier(Enum):
    """Subscription levels. Only FREE is metered."""
    FREE = "free"
    MONTHLY = "monthly"
    ANNUAL = "annual"


def is_metered(tier: SubscriptionTier) -> bool:
    """Whether scans on this tier count against the daily quota."""
    return {
        SubscriptionTier.FREE: True,
        SubscriptionTier.MONTHLY: False,
        SubscriptionTier.ANNUAL: False,
    }[tier]


def parse_tier(value: str) -> SubscriptionTier:
    """Parse a stored tier string.
    
    Raises:
        ValueError: If value is not a known tier
    """
    try:
        return SubscriptionTier(value.strip().lower())
    except (AttributeError, ValueError):
        valid = [tier.value for tier in SubscriptionTier]
        raise ValueError(f"Unknown subscription tier {value!r}, must be one of: {valid}")


def resolve_tier(user_id: str, db_path: str = "scam_guard.db") -> SubscriptionTier:
    """Resolve a user's subscription tier.
    
    A user without a profile, or with an unrecognised tier value, is
    treated as FREE. This never raises for missing data.
    
    Args:
        user_id: User to resolve
        db_path: Path to SQLite database file
        
    Returns:
        The user's tier
    """
    try:
        profile = get_profile(user_id, db_path)
    except sqlite3.OperationalError as e:
        # No profiles table yet means nobody has subscribed
        if "no such table" in str(e).lower():
            return SubscriptionTier.FREE
        raise

    if profile is None or not profile.subscription_tier:
        return SubscriptionTier.FREE
    try:
        return parse_tier(profile.subscription_tier)
    except ValueError:
        logger.warning(
            "Unrecognised tier %r for user %s, treating as free",
            profile.subscription_tier, user_id
        )
        return SubscriptionTier.FREE
