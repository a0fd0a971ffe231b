# claims/services/claim_service.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from claims.exceptions import (
    DuplicateTodayError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from claims.models import Campaign, Claim, ScanEvent
from claims.services.eligibility_service import check_eligibility, parse_dob
from claims.token_utils import (
    ShortCodeSet,
    extract_token_or_code,
    is_short_code,
    issue_long_token,
    issue_short_code,
    normalize_short_code,
)

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")

DEFAULT_CAMPAIGN_ID = 1


@dataclass
class IssuedClaim:
    token: str
    short_code: str
    redeem_reference: str
    claim: Claim


@dataclass
class ClaimPreview:
    name: str
    phone: str
    campaign_name: str
    token_expires: object
    redeemed_at: object
    created_at: object

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "phone": self.phone,
            "campaign_name": self.campaign_name,
            "token_expires": _iso(self.token_expires),
            "redeemed_at": _iso(self.redeemed_at),
            "created_at": _iso(self.created_at),
        }


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def token_ttl() -> timedelta:
    return timedelta(hours=int(getattr(settings, "CLAIM_TOKEN_TTL_HOURS", 6)))


def default_source() -> str:
    return getattr(settings, "CLAIM_DEFAULT_SOURCE", "poster")


def normalize_phone(phone: str) -> str:
    return _PHONE_SEPARATORS.sub("", (phone or "").strip())


def _clean_source(source) -> str:
    return (str(source or "").strip() or default_source())[: Claim.SOURCE_MAX]


def campaign_pk(raw) -> int:
    """Request value -> campaign pk. Blank means the default campaign."""
    if raw in (None, ""):
        return DEFAULT_CAMPAIGN_ID
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Bad campaign id.")


def _get_campaign(campaign_id) -> Campaign:
    campaign = Campaign.objects.filter(pk=campaign_pk(campaign_id)).first()
    if campaign is None:
        raise ValidationError("Unknown campaign.")
    return campaign


def campaign_label(claim: Claim) -> str:
    campaign = getattr(claim, "campaign", None)
    return campaign.name if campaign else str(claim.campaign_id)


# ---------------------------------------------------------
# Scans
# ---------------------------------------------------------
def record_scan(*, source: str = "", campaign_id=DEFAULT_CAMPAIGN_ID, now_ts=None) -> ScanEvent:
    """Poster scan telemetry; append-only."""
    campaign = _get_campaign(campaign_id)
    try:
        scan = ScanEvent.objects.create(
            campaign=campaign,
            source=_clean_source(source),
            created_at=now_ts or timezone.now(),
        )
    except DatabaseError as exc:
        logger.exception("Scan insert failed (campaign=%s)", campaign.pk)
        raise PersistenceError() from exc
    logger.debug("Scan recorded campaign=%s source=%s", campaign.pk, scan.source)
    return scan


# ---------------------------------------------------------
# Issue
# ---------------------------------------------------------
def issue_claim(
    *,
    campaign_id,
    name: str,
    phone: str,
    dob,
    handle: str = "",
    source: str = "",
    now_ts=None,
    reference_builder: Optional[Callable[[Claim], str]] = None,
) -> IssuedClaim:
    """
    Guest signup -> persisted Claim.

    Order: required fields -> campaign -> eligibility (age, 1/phone/day)
    -> long token -> short code -> expiry -> insert.

    The dedup check and the insert share one transaction, and the
    (phone, claim_date) unique constraint backs it up: whichever concurrent
    submission loses the insert gets DuplicateTodayError.
    """
    name = (name or "").strip()
    phone = normalize_phone(phone)
    raw_dob = dob.strip() if isinstance(dob, str) else dob
    if not (name and phone and raw_dob):
        raise ValidationError("Missing fields.")

    campaign = _get_campaign(campaign_id)
    now_ts = now_ts or timezone.now()
    claim_date = timezone.localdate(now_ts)

    try:
        with transaction.atomic():
            same_day = Claim.objects.filter(phone=phone, claim_date=claim_date)
            check_eligibility(
                dob=raw_dob,
                phone=phone,
                existing_claims_for_phone=same_day,
                now_ts=now_ts,
            )

            claim = Claim.objects.create(
                campaign=campaign,
                name=name,
                phone=phone,
                dob=parse_dob(raw_dob),
                instagram_handle=(handle or "").strip().lstrip("@"),
                token=issue_long_token(),
                short_code=issue_short_code(ShortCodeSet()),
                token_expires=now_ts + token_ttl(),
                created_at=now_ts,
                claim_date=claim_date,
                source=_clean_source(source),
            )
    except IntegrityError as exc:
        if Claim.objects.filter(phone=phone, claim_date=claim_date).exists():
            logger.warning("Concurrent duplicate claim for phone %s on %s", phone, claim_date)
            raise DuplicateTodayError() from exc
        logger.exception("Claim insert failed (campaign=%s)", campaign.pk)
        raise PersistenceError() from exc
    except DatabaseError as exc:
        logger.exception("Claim insert failed (campaign=%s)", campaign.pk)
        raise PersistenceError() from exc

    reference = reference_builder(claim) if reference_builder else claim.short_code
    logger.info(
        "Claim issued id=%s campaign=%s code=%s token=%s...",
        claim.pk, campaign.pk, claim.short_code, claim.token[:8],
    )
    return IssuedClaim(
        token=claim.token,
        short_code=claim.short_code,
        redeem_reference=reference,
        claim=claim,
    )


# ---------------------------------------------------------
# Lookup / preview
# ---------------------------------------------------------
def lookup_claims(value: str):
    """
    Exact long-token match OR case-insensitive short-code match.
    Returns a queryset (callers add select_for_update etc.).
    """
    if is_short_code(value):
        return Claim.objects.filter(short_code=normalize_short_code(value))
    return Claim.objects.filter(Q(token=value) | Q(short_code=normalize_short_code(value)))


def preview_claim(token_or_code: str) -> ClaimPreview:
    value = extract_token_or_code(token_or_code)
    if not value:
        raise ValidationError("Missing token.")

    claim = lookup_claims(value).select_related("campaign").first()
    if claim is None:
        raise NotFoundError()

    return ClaimPreview(
        name=claim.name,
        phone=claim.phone,
        campaign_name=campaign_label(claim),
        token_expires=claim.token_expires,
        redeemed_at=claim.redeemed_at,
        created_at=claim.created_at,
    )
