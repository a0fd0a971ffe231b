"""Admin CSV export and the seed_campaign management command."""

import csv
import io

import pytest
from django.contrib import admin
from django.core.management import call_command

from claims.admin import ClaimAdmin
from claims.models import Campaign, Claim
from claims.services.redemption_service import redeem_claim

pytestmark = pytest.mark.django_db


def test_seed_campaign_creates_default_once(db):
    out = io.StringIO()
    call_command("seed_campaign", stdout=out)

    campaign = Campaign.objects.get()
    assert campaign.name == "Student Night"
    assert campaign.free_item == "Free Shot"
    assert campaign.start_time < campaign.end_time

    call_command("seed_campaign", stdout=out)
    assert Campaign.objects.count() == 1
    assert "already present" in out.getvalue()


def test_seed_campaign_options(db):
    call_command("seed_campaign", "--name", "Quiz Night", "--free-item", "Free Pint", "--hours", "3", stdout=io.StringIO())
    campaign = Campaign.objects.get()
    assert (campaign.name, campaign.free_item) == ("Quiz Night", "Free Pint")


def test_claim_csv_export(make_claim, now_ts):
    first = make_claim(name="Ada, Countess", phone="+447700900111")
    make_claim(name="Grace", phone="+447700900222")
    redeem_claim(first.token, staff_id="bar-1", now_ts=now_ts)

    model_admin = ClaimAdmin(Claim, admin.site)
    resp = model_admin.export_as_csv(None, Claim.objects.all())

    assert resp["Content-Type"] == "text/csv"
    rows = list(csv.reader(io.StringIO(resp.content.decode("utf-8"))))
    assert rows[0] == ["time", "phone", "name", "status", "campaign"]
    by_phone = {r[1]: r for r in rows[1:]}
    assert by_phone["+447700900111"][2:] == ["Ada, Countess", "Redeemed", "Student Night"]
    assert by_phone["+447700900222"][2:] == ["Grace", "Unredeemed", "Student Night"]


def test_claims_are_read_only_in_admin():
    model_admin = ClaimAdmin(Claim, admin.site)
    assert not model_admin.has_add_permission(None)
    assert not model_admin.has_delete_permission(None)
