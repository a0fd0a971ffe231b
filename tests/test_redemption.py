"""Tests for the issued -> redeemed transition."""

import threading
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.db import DatabaseError, connection

from claims.exceptions import (
    AlreadyRedeemedError,
    ExpiredError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from claims.models import Claim, Redemption
from claims.services.claim_service import issue_claim
from claims.services.redemption_service import (
    _commit_redemption,
    clean_coords,
    redeem_claim,
)


@pytest.mark.django_db
def test_redeem_by_token(make_claim, now_ts):
    issued = make_claim(name="Ada")
    at = now_ts + timedelta(minutes=30)

    result = redeem_claim(issued.token, staff_id="bar-1", now_ts=at)

    assert result.name == "Ada"
    assert result.redeemed_at == at
    claim = Claim.objects.get(pk=issued.claim.pk)
    assert claim.redeemed_at == at
    assert claim.redeemed_by == "bar-1"
    red = Redemption.objects.get(claim=claim)
    assert red.staff_id == "bar-1"
    assert red.redeemed_at == at
    assert red.coords is None


@pytest.mark.django_db
def test_redeem_by_lowercase_short_code(make_claim, now_ts):
    issued = make_claim()
    redeem_claim(issued.short_code.lower(), staff_id="bar-1", now_ts=now_ts)
    assert Claim.objects.get(pk=issued.claim.pk).redeemed_at == now_ts


@pytest.mark.django_db
def test_redeem_stores_rounded_coords(make_claim, now_ts):
    issued = make_claim()
    redeem_claim(issued.token, staff_id="bar-1", lat=51.50735091, lng="-0.1277583", now_ts=now_ts)

    red = Redemption.objects.get(claim_id=issued.claim.pk)
    assert red.device_lat == Decimal("51.507351")
    assert red.device_lng == Decimal("-0.127758")


@pytest.mark.django_db
def test_blank_staff_falls_back_to_default(make_claim, now_ts):
    issued = make_claim()
    redeem_claim(issued.token, staff_id="  ", now_ts=now_ts)
    assert Claim.objects.get(pk=issued.claim.pk).redeemed_by == "staff"


@pytest.mark.django_db
def test_second_redeem_is_refused_and_changes_nothing(make_claim, now_ts):
    issued = make_claim()
    redeem_claim(issued.token, staff_id="bar-1", now_ts=now_ts)

    with pytest.raises(AlreadyRedeemedError):
        redeem_claim(issued.short_code, staff_id="bar-2", now_ts=now_ts + timedelta(minutes=1))

    claim = Claim.objects.get(pk=issued.claim.pk)
    assert claim.redeemed_at == now_ts
    assert claim.redeemed_by == "bar-1"
    assert Redemption.objects.filter(claim=claim).count() == 1


@pytest.mark.django_db
def test_expired_claim(make_claim, now_ts):
    issued = make_claim(now_ts=now_ts - timedelta(hours=7))

    for _ in range(3):
        with pytest.raises(ExpiredError):
            redeem_claim(issued.token, staff_id="bar-1", now_ts=now_ts)

    assert Claim.objects.get(pk=issued.claim.pk).redeemed_at is None
    assert Redemption.objects.count() == 0


@pytest.mark.django_db
def test_expiry_boundary_is_inclusive(make_claim, now_ts):
    issued = make_claim()
    expires = issued.claim.token_expires

    redeem_claim(issued.token, staff_id="bar-1", now_ts=expires)
    assert Claim.objects.get(pk=issued.claim.pk).redeemed_at == expires


@pytest.mark.django_db
def test_already_redeemed_wins_over_expired(make_claim, now_ts):
    issued = make_claim()
    redeem_claim(issued.token, staff_id="bar-1", now_ts=now_ts)

    with pytest.raises(AlreadyRedeemedError):
        redeem_claim(issued.token, staff_id="bar-1", now_ts=now_ts + timedelta(days=1))


@pytest.mark.django_db
def test_unknown_token(make_claim):
    make_claim()
    with pytest.raises(NotFoundError):
        redeem_claim("f" * 48, staff_id="bar-1")


@pytest.mark.django_db
def test_blank_token():
    with pytest.raises(ValidationError):
        redeem_claim("", staff_id="bar-1")


@pytest.mark.django_db
def test_stale_snapshots_only_one_commit_wins(make_claim, now_ts):
    """Two requests both read Issued; the conditional update lets one through."""
    issued = make_claim()
    snap_a = Claim.objects.get(pk=issued.claim.pk)
    snap_b = Claim.objects.get(pk=issued.claim.pk)
    assert snap_a.redeemed_at is None and snap_b.redeemed_at is None

    _commit_redemption(snap_a, staff_id="bar-1", now_ts=now_ts)
    with pytest.raises(AlreadyRedeemedError):
        _commit_redemption(snap_b, staff_id="bar-2", now_ts=now_ts)

    claim = Claim.objects.get(pk=issued.claim.pk)
    assert claim.redeemed_by == "bar-1"
    assert Redemption.objects.filter(claim=claim).count() == 1


@pytest.mark.django_db
def test_store_failure_leaves_no_partial_redemption(make_claim, now_ts, monkeypatch):
    issued = make_claim()

    def boom(**kwargs):
        raise DatabaseError("disk full")

    monkeypatch.setattr(Redemption.objects, "create", boom)

    with pytest.raises(PersistenceError):
        redeem_claim(issued.token, staff_id="bar-1", now_ts=now_ts)

    claim = Claim.objects.get(pk=issued.claim.pk)
    assert claim.redeemed_at is None
    assert claim.redeemed_by is None


@pytest.mark.django_db(transaction=True)
def test_concurrent_redeems_exactly_one_success(campaign):
    issued = issue_claim(
        campaign_id=campaign.id,
        name="Race",
        phone="+447700900999",
        dob=date(1995, 3, 3),
    )
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt(i):
        try:
            barrier.wait()
            try:
                redeem_claim(issued.token, staff_id=f"bar-{i}")
                outcome = "ok"
            except AlreadyRedeemedError:
                outcome = "already"
            except Exception as exc:  # surfaced in the assertion below
                outcome = repr(exc)
            with lock:
                outcomes.append(outcome)
        finally:
            connection.close()

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["already"] * (workers - 1) + ["ok"]
    assert Redemption.objects.filter(claim_id=issued.claim.pk).count() == 1
    assert Claim.objects.get(pk=issued.claim.pk).redeemed_at is not None


def test_clean_coords_both_or_none():
    assert clean_coords(None, None) == (None, None)
    assert clean_coords("", "") == (None, None)
    with pytest.raises(ValidationError):
        clean_coords(51.5, None)
    with pytest.raises(ValidationError):
        clean_coords(None, -0.12)


@pytest.mark.parametrize("lat, lng", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181), ("north", 0), ("nan", 0)])
def test_clean_coords_rejects_bad_values(lat, lng):
    with pytest.raises(ValidationError):
        clean_coords(lat, lng)


@pytest.mark.django_db
def test_claim_is_expired_only_after_expiry(make_claim):
    claim = make_claim().claim
    expires = claim.token_expires

    assert not claim.is_expired(expires - timedelta(seconds=1))
    assert not claim.is_expired(expires)
    assert claim.is_expired(expires + timedelta(seconds=1))
