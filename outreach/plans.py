"""
Entitlement tiers and the free-tier draft allowance.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import config
from .models import User


class Tier(str, enum.Enum):
    FREE = "FREE"
    PRO = "PRO"


def get_tier(user: User, now: Optional[datetime] = None) -> Tier:
    """PRO while the subscription is active and its period hasn't ended"""
    now = now or datetime.utcnow()
    if (
        (user.subscription_status or "").lower() == "active"
        and user.current_period_end is not None
        and user.current_period_end > now
    ):
        return Tier.PRO
    return Tier.FREE


def remaining_free_emails(user: User) -> int:
    return max(0, config.FREE_EMAIL_LIMIT - (user.free_emails_used or 0))


def can_generate_email(user: User) -> tuple:
    """
    Check if user can generate another draft.
    Returns (allowed, error_message).
    """
    if get_tier(user) == Tier.PRO:
        return (True, None)

    if remaining_free_emails(user) > 0:
        return (True, None)

    return (False, "Free limit reached. Please upgrade to Pro for unlimited emails.")


def increment_email_usage(user: User, db: Session) -> None:
    """Count a generated draft against the free allowance; PRO is unmetered"""
    if get_tier(user) == Tier.PRO:
        return
    user.free_emails_used = (user.free_emails_used or 0) + 1
    db.commit()


def get_usage_stats(user: User) -> dict:
    tier = get_tier(user)
    return {
        "tier": tier.value,
        "limit": None if tier == Tier.PRO else config.FREE_EMAIL_LIMIT,
        "used": user.free_emails_used or 0,
        "remaining": None if tier == Tier.PRO else remaining_free_emails(user),
    }
