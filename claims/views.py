# claims/views.py  JSON endpoints for guest page, staff scanner and admin dashboard

import json
import logging

from django.http import JsonResponse
from django.urls import reverse
from django.views.decorators.cache import never_cache, cache_control
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import ClaimError
from .services.claim_service import issue_claim, preview_claim, record_scan
from .services.redemption_service import redeem_claim
from .services.stats_service import get_recent, get_stats

logger = logging.getLogger(__name__)


# ---- helpers -------------------------------------------------

def _json_body(request) -> dict:
    try:
        data = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def _error(exc: ClaimError) -> JsonResponse:
    logger.info("Refused: %s (%s)", exc.code, exc.message)
    return JsonResponse(
        {"ok": False, "error": exc.code, "message": exc.message},
        status=exc.status,
    )


def _redeem_url_builder(request):
    def build(claim):
        return request.build_absolute_uri(
            reverse("claims:redeem_land", args=[claim.short_code])
        )
    return build


# ---- guest ---------------------------------------------------

# Guest page and staff scanner post plain JSON with no session and no CSRF token.

@csrf_exempt
@require_POST
@never_cache
def track_scan(request):
    data = _json_body(request)
    try:
        record_scan(
            source=data.get("source") or "",
            campaign_id=data.get("campaign_id"),
        )
    except ClaimError as exc:
        return _error(exc)
    return JsonResponse({"ok": True})


@csrf_exempt
@require_POST
@never_cache
@cache_control(no_cache=True, no_store=True, must_revalidate=True)
def create_claim(request):
    data = _json_body(request)
    try:
        issued = issue_claim(
            campaign_id=data.get("campaign_id"),
            name=str(data.get("name") or ""),
            phone=str(data.get("phone") or ""),
            dob=str(data.get("dob") or ""),
            handle=str(data.get("instagram_handle") or ""),
            source=data.get("source") or "",
            reference_builder=_redeem_url_builder(request),
        )
    except ClaimError as exc:
        return _error(exc)

    return JsonResponse({
        "ok": True,
        "token": issued.token,
        "short_code": issued.short_code,
        "redeem_reference": issued.redeem_reference,
    })


# ---- staff ---------------------------------------------------

@require_GET
@never_cache
@cache_control(no_cache=True, no_store=True, must_revalidate=True)
def preview(request):
    try:
        result = preview_claim(request.GET.get("token") or "")
    except ClaimError as exc:
        return _error(exc)
    return JsonResponse({"ok": True, **result.as_dict()})


@require_GET
@never_cache
@cache_control(no_cache=True, no_store=True, must_revalidate=True)
def redeem_land(request, code: str):
    """Scanned /t/<code> link -> same payload as preview."""
    try:
        result = preview_claim(code)
    except ClaimError as exc:
        return _error(exc)
    return JsonResponse({"ok": True, **result.as_dict()})


@csrf_exempt
@require_POST
@never_cache
@cache_control(no_cache=True, no_store=True, must_revalidate=True)
def redeem(request):
    data = _json_body(request)
    try:
        result = redeem_claim(
            str(data.get("token") or ""),
            staff_id=str(data.get("staff_id") or ""),
            lat=data.get("device_lat"),
            lng=data.get("device_lng"),
        )
    except ClaimError as exc:
        return _error(exc)
    return JsonResponse({"ok": True, **result.as_dict()})


# ---- admin dashboard -----------------------------------------

@require_GET
@never_cache
def stats(request):
    try:
        report = get_stats(
            request.GET.get("campaign_id"),
            request.GET.get("range") or "today",
        )
    except ClaimError as exc:
        return _error(exc)
    return JsonResponse({"ok": True, **report.as_dict()})


@require_GET
@never_cache
def recent(request):
    try:
        items = get_recent(
            request.GET.get("campaign_id"),
            request.GET.get("range") or "today",
        )
    except ClaimError as exc:
        return _error(exc)
    return JsonResponse({"ok": True, "items": items})
