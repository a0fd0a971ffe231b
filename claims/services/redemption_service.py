# claims/services/redemption_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from claims.exceptions import (
    AlreadyRedeemedError,
    ExpiredError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from claims.models import Claim, Redemption
from claims.services.claim_service import lookup_claims
from claims.token_utils import extract_token_or_code

logger = logging.getLogger(__name__)


@dataclass
class RedeemResult:
    name: str
    redeemed_at: object
    claim_id: Optional[int] = None

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "redeemed_at": self.redeemed_at.isoformat(),
        }


def default_staff_id() -> str:
    return getattr(settings, "CLAIM_DEFAULT_STAFF_ID", "staff")


def _r6(v: Decimal) -> Decimal:
    return v.quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP)


def clean_coords(lat, lng):
    """
    (lat, lng) -> (Decimal, Decimal) rounded to 6 dp, or (None, None).
    Both or none; lat in -90..90, lng in -180..180.
    """
    if lat in (None, "") and lng in (None, ""):
        return None, None
    if lat in (None, "") or lng in (None, ""):
        raise ValidationError("Provide both latitude and longitude, or leave both empty.")
    try:
        dlat = Decimal(str(lat))
        dlng = Decimal(str(lng))
    except (InvalidOperation, ValueError):
        raise ValidationError("Bad coordinates.")
    if not dlat.is_finite() or not dlng.is_finite():
        raise ValidationError("Bad coordinates.")
    if not (-90 <= dlat <= 90) or not (-180 <= dlng <= 180):
        raise ValidationError("Coordinates out of range.")
    return _r6(dlat), _r6(dlng)


def _commit_redemption(claim: Claim, *, staff_id: str, now_ts, lat=None, lng=None) -> Redemption:
    """
    Compare-and-swap on redeemed_at. Must run inside transaction.atomic().

    The UPDATE only matches while redeemed_at IS NULL, so of any number of
    callers holding the same (possibly stale) snapshot exactly one gets
    rowcount == 1; everyone else is AlreadyRedeemedError.
    """
    updated = (
        Claim.objects
        .filter(pk=claim.pk, redeemed_at__isnull=True)
        .update(redeemed_at=now_ts, redeemed_by=staff_id)
    )
    if updated != 1:
        raise AlreadyRedeemedError()

    claim.redeemed_at = now_ts
    claim.redeemed_by = staff_id

    return Redemption.objects.create(
        claim=claim,
        staff_id=staff_id,
        redeemed_at=now_ts,
        device_lat=lat,
        device_lng=lng,
    )


def redeem_claim(
    token_or_code: str,
    *,
    staff_id: str = "",
    lat=None,
    lng=None,
    now_ts=None,
) -> RedeemResult:
    """
    Issued -> Redeemed, at most once per claim.

    Atomic:
      - resolve claim by token / short code (row lock where supported)
      - already redeemed?  -> AlreadyRedeemedError
      - past token_expires? -> ExpiredError
      - conditional update redeemed_at + append Redemption
    Any store failure rolls the whole thing back -> PersistenceError.
    """
    value = extract_token_or_code(token_or_code)
    if not value:
        raise ValidationError("Missing token.")

    staff_id = (str(staff_id or "").strip() or default_staff_id())[:100]
    lat, lng = clean_coords(lat, lng)
    now_ts = now_ts or timezone.now()

    try:
        with transaction.atomic():
            claim = lookup_claims(value).select_for_update().first()
            if claim is None:
                raise NotFoundError()

            if claim.redeemed_at is not None:
                logger.warning(
                    "Redeem refused: claim %s already redeemed at %s (by %s, attempt by %s)",
                    claim.pk, claim.redeemed_at, claim.redeemed_by, staff_id,
                )
                raise AlreadyRedeemedError()

            if claim.is_expired(now_ts):
                logger.warning("Redeem refused: claim %s expired at %s", claim.pk, claim.token_expires)
                raise ExpiredError()

            _commit_redemption(claim, staff_id=staff_id, now_ts=now_ts, lat=lat, lng=lng)
    except DatabaseError as exc:
        logger.exception("Redeem failed in store (value=%s...)", value[:8])
        raise PersistenceError() from exc

    logger.info("Claim %s redeemed by %s", claim.pk, staff_id)
    return RedeemResult(name=claim.name, redeemed_at=claim.redeemed_at, claim_id=claim.pk)
