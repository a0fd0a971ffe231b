# claims/token_utils.py

import re
import secrets
from urllib.parse import parse_qs, unquote, urlsplit

from .exceptions import PersistenceError
from .models import Claim


# ------------------------------
# Shapes
# ------------------------------
LONG_TOKEN_BYTES = 24                 # 48 lowercase hex chars
SHORT_CODE_PREFIX = "FD-"
SHORT_CODE_LENGTH = 7
SHORT_CODE_BITS = 40                  # >= 40 bits of CSPRNG per code
SHORT_CODE_MAX_TRIES = 20

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

SHORT_CODE_RE = re.compile(r"^FD-[A-Z0-9]{7}$", re.IGNORECASE)
_T_PATH_RE = re.compile(r"/t/([^/?#]+)", re.IGNORECASE)


# ------------------------------
# Long token
# ------------------------------
def issue_long_token() -> str:
    """
    24 bytes from the OS CSPRNG rendered as lowercase hex.
    Collision odds at 192 bits are negligible, so no uniqueness lookup.
    """
    return secrets.token_hex(LONG_TOKEN_BYTES)


# ------------------------------
# Short code
# ------------------------------
def _to_base36(n: int, width: int) -> str:
    out = []
    for _ in range(width):
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def _random_short_code() -> str:
    # 40 random bits folded into 7 base36 digits (36**7 ~ 2**36.2 codes)
    n = secrets.randbits(SHORT_CODE_BITS) % (36 ** SHORT_CODE_LENGTH)
    return SHORT_CODE_PREFIX + _to_base36(n, SHORT_CODE_LENGTH)


def issue_short_code(existing_codes) -> str:
    """
    "FD-" + 7 uppercase base36 chars, retried until it is not in
    ``existing_codes`` (anything supporting ``in``: a set, or ShortCodeSet).
    """
    for _ in range(SHORT_CODE_MAX_TRIES):
        code = _random_short_code()
        if code not in existing_codes:
            return code
    raise PersistenceError("Could not find a free short code.")


def normalize_short_code(value: str) -> str:
    return (value or "").strip().upper()


def is_short_code(value: str) -> bool:
    return bool(SHORT_CODE_RE.match((value or "").strip()))


class ShortCodeSet:
    """
    Lazy ``in`` view over every short code already stored.
    Avoids loading all codes just to test a handful of candidates.
    """

    def __contains__(self, code) -> bool:
        return Claim.objects.filter(short_code=normalize_short_code(code)).exists()


# ------------------------------
# Scanned text -> lookup value
# ------------------------------
def extract_token_or_code(text: str) -> str:
    """
    Staff scanner may hand us:
      1) a URL with ?token=<value>
      2) a URL with /t/<code> in the path
      3) a bare short code (FD-XXXXXXX, any case)  -> upper-cased
      4) anything else (probably a long token)      -> stripped as-is
    """
    raw = (text or "").strip()
    if not raw:
        return ""

    parts = urlsplit(raw)
    if parts.scheme in ("http", "https") and parts.netloc:
        tok = (parse_qs(parts.query).get("token") or [""])[0].strip()
        if tok:
            return normalize_short_code(tok) if is_short_code(tok) else tok
        m = _T_PATH_RE.search(parts.path)
        if m:
            found = unquote(m.group(1)).strip()
            return normalize_short_code(found) if is_short_code(found) else found

    if is_short_code(raw):
        return normalize_short_code(raw)

    return raw
