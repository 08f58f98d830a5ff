"""
Analytics aggregation
Folds raw open/click events into per-draft rollups, gated by tier
"""

import logging
from collections import Counter
from typing import Any, Iterable

from sqlalchemy.orm import Session
from user_agents import parse as parse_user_agent

from ...errors import NotFound
from ...models import EmailOpen, LinkClick
from ...plans import Tier
from ..emails.repository import EmailRepository

logger = logging.getLogger(__name__)

RECENT_EVENTS = 10


def classify_user_agent(user_agent: str) -> dict[str, str]:
    """Device class, browser family and OS family for one user-agent string"""
    ua = parse_user_agent(user_agent or "")
    if ua.is_bot:
        device = "bot"
    elif ua.is_tablet:
        device = "tablet"
    elif ua.is_mobile:
        device = "mobile"
    elif ua.is_pc:
        device = "desktop"
    else:
        device = "other"
    return {
        "device": device,
        "browser": ua.browser.family or "Other",
        "os": ua.os.family or "Other",
    }


def unique_by_ip(events: Iterable) -> int:
    """Distinct source IPs; the only client identity a pixel or redirect sees"""
    return len({event.ip_address for event in events})


def hourly_timeline(timestamps: Iterable) -> list[dict[str, Any]]:
    buckets = Counter(ts.replace(minute=0, second=0, microsecond=0) for ts in timestamps if ts is not None)
    return [{"hour": hour.isoformat(), "count": count} for hour, count in sorted(buckets.items())]


def summarize_events(opens: list[EmailOpen], clicks: list[LinkClick], tier: Tier) -> dict[str, Any]:
    """
    Totals and unique counts for every tier. PRO additionally gets
    device/browser/OS rollups over opens, an hourly open timeline,
    clicks per destination URL and the most recent events.
    """
    summary: dict[str, Any] = {
        "opens": {"total": len(opens), "unique": unique_by_ip(opens)},
        "clicks": {"total": len(clicks), "unique": unique_by_ip(clicks)},
    }
    if tier != Tier.PRO:
        return summary

    classified = [classify_user_agent(o.user_agent) for o in opens]
    summary["deviceStats"] = dict(Counter(c["device"] for c in classified))
    summary["browserStats"] = dict(Counter(c["browser"] for c in classified))
    summary["osStats"] = dict(Counter(c["os"] for c in classified))

    latest_opens = sorted(opens, key=lambda o: o.opened_at, reverse=True)[:RECENT_EVENTS]
    latest_clicks = sorted(clicks, key=lambda c: c.clicked_at, reverse=True)[:RECENT_EVENTS]

    summary["opens"]["timeline"] = hourly_timeline(o.opened_at for o in opens)
    summary["opens"]["recent"] = [
        {
            "openedAt": o.opened_at.isoformat(),
            "ipAddress": o.ip_address,
            "userAgent": o.user_agent,
            **classify_user_agent(o.user_agent),
        }
        for o in latest_opens
    ]
    summary["clicks"]["byUrl"] = dict(Counter(c.original_url for c in clicks))
    summary["clicks"]["recent"] = [
        {"clickedAt": c.clicked_at.isoformat(), "url": c.original_url, "ipAddress": c.ip_address}
        for c in latest_clicks
    ]
    return summary


class AnalyticsAggregator:
    def __init__(self, db: Session):
        self.db = db
        self.repo = EmailRepository()

    def summarize(self, email_id: int, user_id: int, tier: Tier) -> dict[str, Any]:
        """The tier is the caller's entitlement, never a client-supplied flag"""
        email = self.repo.get_email(self.db, email_id, user_id)
        if not email:
            raise NotFound("Email", email_id)

        opens = self.repo.get_opens(self.db, email.id)
        clicks = self.repo.get_clicks(self.db, email.id)
        logger.debug(f"📊 Summarizing {len(opens)} opens / {len(clicks)} clicks for email {email.id} ({tier.value})")
        return summarize_events(opens, clicks, tier)
