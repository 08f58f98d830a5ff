"""Tests for open/click rollups and tier gating."""

from datetime import datetime, timedelta

import pytest

from outreach.domain.analytics.aggregator import (
    AnalyticsAggregator,
    classify_user_agent,
    hourly_timeline,
    summarize_events,
)
from outreach.errors import NotFound
from outreach.models import EmailOpen, LinkClick
from outreach.plans import Tier

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPAD_UA = (
    "Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)
BOT_UA = "Googlebot/2.1 (+http://www.google.com/bot.html)"

BASE_TIME = datetime(2025, 1, 6, 9, 15)


@pytest.fixture
def sent_email(make_draft):
    return make_draft(status="SENT", tracking_id="a" * 32)


@pytest.fixture
def events(db, sent_email):
    opens = [
        EmailOpen(email_id=sent_email.id, ip_address="1.1.1.1", user_agent=IPHONE_UA, opened_at=BASE_TIME),
        EmailOpen(email_id=sent_email.id, ip_address="1.1.1.1", user_agent=IPHONE_UA, opened_at=BASE_TIME + timedelta(minutes=20)),
        EmailOpen(email_id=sent_email.id, ip_address="2.2.2.2", user_agent=DESKTOP_UA, opened_at=BASE_TIME + timedelta(hours=2)),
    ]
    clicks = [
        LinkClick(email_id=sent_email.id, original_url="https://ada.dev", ip_address="1.1.1.1", user_agent=IPHONE_UA, clicked_at=BASE_TIME),
        LinkClick(email_id=sent_email.id, original_url="https://ada.dev", ip_address="1.1.1.1", user_agent=IPHONE_UA, clicked_at=BASE_TIME + timedelta(minutes=1)),
        LinkClick(email_id=sent_email.id, original_url="https://github.com/ada", ip_address="3.3.3.3", user_agent=DESKTOP_UA, clicked_at=BASE_TIME + timedelta(minutes=5)),
    ]
    db.add_all(opens + clicks)
    db.commit()
    return opens, clicks


class TestUserAgents:
    @pytest.mark.parametrize(
        "user_agent, device",
        [(IPHONE_UA, "mobile"), (DESKTOP_UA, "desktop"), (IPAD_UA, "tablet"), (BOT_UA, "bot")],
    )
    def test_device_class(self, user_agent: str, device: str) -> None:
        assert classify_user_agent(user_agent)["device"] == device

    def test_families(self) -> None:
        result = classify_user_agent(DESKTOP_UA)
        assert result["browser"] == "Chrome"
        assert result["os"] == "Windows"

    def test_empty_user_agent(self) -> None:
        result = classify_user_agent("")
        assert result["browser"] == "Other"


class TestTierGating:
    def test_free_tier_gets_totals_only(self, events) -> None:
        opens, clicks = events
        summary = summarize_events(opens, clicks, Tier.FREE)
        assert summary == {
            "opens": {"total": 3, "unique": 2},
            "clicks": {"total": 3, "unique": 2},
        }

    def test_pro_tier_gets_breakdowns(self, events) -> None:
        opens, clicks = events
        summary = summarize_events(opens, clicks, Tier.PRO)

        assert summary["deviceStats"] == {"mobile": 2, "desktop": 1}
        assert summary["osStats"]["iOS"] == 2
        assert summary["clicks"]["byUrl"] == {"https://ada.dev": 2, "https://github.com/ada": 1}
        assert summary["opens"]["timeline"] == [
            {"hour": "2025-01-06T09:00:00", "count": 2},
            {"hour": "2025-01-06T11:00:00", "count": 1},
        ]
        assert summary["opens"]["recent"][0]["ipAddress"] == "2.2.2.2"
        assert summary["clicks"]["recent"][0]["url"] == "https://github.com/ada"

    def test_no_events(self) -> None:
        summary = summarize_events([], [], Tier.PRO)
        assert summary["opens"]["total"] == 0
        assert summary["deviceStats"] == {}
        assert summary["opens"]["timeline"] == []

    def test_same_ip_counts_once_as_unique(self, db, sent_email) -> None:
        opens = [
            EmailOpen(email_id=sent_email.id, ip_address="9.9.9.9", user_agent=IPHONE_UA, opened_at=BASE_TIME),
            EmailOpen(email_id=sent_email.id, ip_address="9.9.9.9", user_agent=DESKTOP_UA, opened_at=BASE_TIME),
        ]
        summary = summarize_events(opens, [], Tier.FREE)
        assert summary["opens"] == {"total": 2, "unique": 1}


class TestAggregator:
    def test_summarize_from_database(self, db, user, sent_email, events) -> None:
        summary = AnalyticsAggregator(db).summarize(sent_email.id, user.id, Tier.FREE)
        assert summary["opens"]["total"] == 3
        assert "deviceStats" not in summary

    def test_other_users_email_is_not_found(self, db, pro_user, sent_email) -> None:
        with pytest.raises(NotFound):
            AnalyticsAggregator(db).summarize(sent_email.id, pro_user.id, Tier.PRO)

    def test_hourly_timeline_skips_missing_timestamps(self) -> None:
        assert hourly_timeline([None, BASE_TIME]) == [{"hour": "2025-01-06T09:00:00", "count": 1}]
