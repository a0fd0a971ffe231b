"""Pytest configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytest

from claims.models import Campaign
from claims.services.claim_service import issue_claim


NOON = datetime(2026, 10, 18, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now_ts():
    """Fixed 'now' (UTC noon) so day / hour boundaries are predictable."""
    return NOON


@pytest.fixture
def campaign(db):
    return Campaign.objects.create(
        id=1,
        name="Student Night",
        free_item="Free Shot",
        start_time=NOON - timedelta(hours=1),
        end_time=NOON + timedelta(hours=6),
    )


@pytest.fixture
def other_campaign(db):
    return Campaign.objects.create(
        id=2,
        name="Ladies Night",
        free_item="Free Cocktail",
        start_time=NOON - timedelta(hours=1),
        end_time=NOON + timedelta(hours=6),
    )


@pytest.fixture
def make_claim(campaign, now_ts):
    """Issue a claim through the real service; phone defaults are unique per call."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        kwargs = {
            "campaign_id": campaign.id,
            "name": f"Guest {counter['n']}",
            "phone": f"+4477009000{counter['n']:02d}",
            "dob": date(1999, 5, 17),
            "source": "poster",
            "now_ts": now_ts,
        }
        kwargs.update(overrides)
        return issue_claim(**kwargs)

    return _make
