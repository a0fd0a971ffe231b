# claims/services/eligibility_service.py

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import Iterable, Optional

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date

from claims.exceptions import DuplicateTodayError, UnderageError

logger = logging.getLogger(__name__)

YEAR = timedelta(days=365.25)


def legal_age() -> int:
    return int(getattr(settings, "CLAIM_LEGAL_AGE", 18))


def parse_dob(value) -> Optional[date]:
    """
    date / datetime / "YYYY-MM-DD" -> date. Anything else -> None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date(str(value or "").strip())
    except ValueError:
        # well-formed but impossible, e.g. 2001-02-30
        return None


def compute_age(dob: date, now_ts=None) -> int:
    """
    Whole years = floor((now - dob) / 365.25 days).
    dob is taken as UTC midnight, whatever TIME_ZONE is.
    """
    now_ts = now_ts or timezone.now()
    born = datetime.combine(dob, time.min, tzinfo=dt_timezone.utc)
    return int((now_ts - born) // YEAR)


def check_eligibility(
    *,
    dob,
    phone: str,
    existing_claims_for_phone: Iterable,
    now_ts=None,
    min_age: Optional[int] = None,
) -> None:
    """
    Raises UnderageError / DuplicateTodayError, else returns None.

    - unparseable dob => underage (fail closed)
    - duplicate = any claim for this phone created on the same LOCAL
      calendar day as now (not a rolling 24h window)
    """
    now_ts = now_ts or timezone.now()
    min_age = legal_age() if min_age is None else min_age

    born = parse_dob(dob)
    if born is None or compute_age(born, now_ts) < min_age:
        logger.warning("Eligibility refused: underage or bad dob (phone=%s)", phone)
        raise UnderageError()

    today = timezone.localdate(now_ts)
    for claim in existing_claims_for_phone:
        if timezone.localdate(claim.created_at) == today:
            logger.warning("Eligibility refused: phone %s already claimed on %s", phone, today)
            raise DuplicateTodayError()
