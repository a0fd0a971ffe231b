# claims/services/stats_service.py for the admin dashboard

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List

from django.conf import settings
from django.db.models import Count
from django.db.models.functions import ExtractHour
from django.utils import timezone

from claims.exceptions import ValidationError
from claims.models import Claim, Redemption, ScanEvent
from claims.services.claim_service import campaign_label, campaign_pk

RANGES = ("today", "7d", "30d")


@dataclass
class StatsReport:
    totals: Dict[str, int]
    series: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"totals": self.totals, "series": self.series}


def window_start(range_key: str, now_ts=None):
    """
    today -> start of the current LOCAL day
    7d    -> now - 7 days
    30d   -> now - 30 days
    """
    now_ts = now_ts or timezone.now()
    if range_key == "today":
        local = timezone.localtime(now_ts)
        return local.replace(hour=0, minute=0, second=0, microsecond=0)
    if range_key == "7d":
        return now_ts - timedelta(days=7)
    if range_key == "30d":
        return now_ts - timedelta(days=30)
    raise ValidationError(f"Unknown range '{range_key}'. Use one of: {', '.join(RANGES)}.")


def _per_hour(qs, ts_field: str) -> Dict[int, int]:
    # hour-of-day in the current timezone; days are NOT separated
    rows = (
        qs.annotate(hour=ExtractHour(ts_field))
        .values("hour")
        .annotate(n=Count("id"))
        .order_by()
    )
    return {row["hour"]: row["n"] for row in rows}


def _windowed(campaign_id, range_key, now_ts):
    campaign_id = campaign_pk(campaign_id)
    now_ts = now_ts or timezone.now()
    start = window_start(range_key, now_ts)

    scans = ScanEvent.objects.filter(
        campaign_id=campaign_id,
        created_at__gte=start,
        created_at__lte=now_ts,
    )
    claims = Claim.objects.filter(
        campaign_id=campaign_id,
        created_at__gte=start,
        created_at__lte=now_ts,
    )
    redemptions = Redemption.objects.filter(
        claim__campaign_id=campaign_id,
        redeemed_at__gte=start,
        redeemed_at__lte=now_ts,
    )
    return scans, claims, redemptions


def get_stats(campaign_id, range_key: str = "today", now_ts=None) -> StatsReport:
    """
    Totals + hour-of-day series for one campaign.

    Buckets are "H:00" for H in 0..23. For 7d / 30d, the same hour on
    different days lands in the same bucket (no date resolution).
    Only hours with at least one event are returned, sorted by hour.
    """
    scans, claims, redemptions = _windowed(campaign_id, range_key, now_ts)

    by_scan = _per_hour(scans, "created_at")
    by_claim = _per_hour(claims, "created_at")
    by_red = _per_hour(redemptions, "redeemed_at")

    n_scans = sum(by_scan.values())
    n_claims = sum(by_claim.values())
    n_reds = sum(by_red.values())

    series = []
    for hour in sorted(set(by_scan) | set(by_claim) | set(by_red)):
        series.append({
            "hourBucket": f"{hour}:00",
            "scans": by_scan.get(hour, 0),
            "signups": by_claim.get(hour, 0),
            "redemptions": by_red.get(hour, 0),
        })

    totals = {
        "scans": n_scans,
        "signups": n_claims,
        "redemptions": n_reds,
        "conversion": math.floor(n_reds / n_claims * 100 + 0.5) if n_claims else 0,
    }
    return StatsReport(totals=totals, series=series)


def get_recent(campaign_id, range_key: str = "today", now_ts=None, limit=None) -> List[Dict[str, Any]]:
    """Latest claims in the window, newest first, with derived status."""
    if limit is None:
        limit = int(getattr(settings, "CLAIM_RECENT_LIMIT", 50))

    _, claims, _ = _windowed(campaign_id, range_key, now_ts)
    rows = claims.select_related("campaign").order_by("-created_at", "-id")[:limit]

    return [
        {
            "time": timezone.localtime(c.created_at).strftime("%Y-%m-%d %H:%M"),
            "name": c.name,
            "phone": c.phone,
            "status": c.status,
            "campaign_name": campaign_label(c),
        }
        for c in rows
    ]
