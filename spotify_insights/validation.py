import re
import urllib.parse
from typing import Any, Optional

TIME_RANGES = ("short_term", "medium_term", "long_term")

MIN_LIMIT = 1
MAX_LIMIT = 50

# RFC 3986 unreserved characters; Spotify codes are drawn from this set.
_AUTH_CODE_RE = re.compile(r"[A-Za-z0-9\-._~]+")
# Exclusive bounds; real codes run to a few hundred characters.
MIN_AUTH_CODE_LENGTH = 50
MAX_AUTH_CODE_LENGTH = 1000

_ALLOWED_URL_HOST_SUFFIXES = ("spotify.com", "scdn.co")


def validate_time_range(time_range: Any) -> bool:
    return isinstance(time_range, str) and time_range in TIME_RANGES


def validate_limit(limit: Any) -> bool:
    return isinstance(limit, int) and not isinstance(limit, bool) and MIN_LIMIT <= limit <= MAX_LIMIT


def validate_offset(offset: Any) -> bool:
    return isinstance(offset, int) and not isinstance(offset, bool) and offset >= 0


def is_valid_authorization_code(code: Any) -> bool:
    """Check an authorization code as received, without trimming or repairing it."""

    if not isinstance(code, str) or not code:
        return False
    if not MIN_AUTH_CODE_LENGTH < len(code) < MAX_AUTH_CODE_LENGTH:
        return False
    return _AUTH_CODE_RE.fullmatch(code) is not None


def sanitize_spotify_url(url: Any) -> Optional[str]:
    """Return the URL if it is https on a Spotify-owned host, else None."""

    try:
        parsed = urllib.parse.urlparse(str(url or "").strip())
    except ValueError:
        return None

    if parsed.scheme != "https" or not parsed.hostname:
        return None
    host = parsed.hostname
    if not any(host == s or host.endswith("." + s) for s in _ALLOWED_URL_HOST_SUFFIXES):
        return None
    return parsed.geturl()


def require_setting(value: Any, name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError(f"{name} is required")
    return text
