"""Error taxonomy for the session, handshake and gateway layers.

SpotifyInsightsError (base)
    ConfigurationError - missing or invalid client settings
    ChallengeError - no secure entropy available for PKCE
    SessionStateError - operation not valid in the current session state
    HandshakeError - authorization callback / code exchange failures
        AuthorizationDenied
        InvalidCode
        NoPendingHandshake
        ExchangeFailed
    UpstreamError - classified Spotify Web API failure

Messages and details never carry token values.
"""

from enum import Enum
from typing import Any, Dict, Optional


class SpotifyInsightsError(Exception):
    """Base exception for all spotify-insights errors.

    Attributes:
        message: Human-readable error description.
        details: Extra context for logging (endpoint, status, ...).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(SpotifyInsightsError):
    """Raised when required Spotify client settings are missing or malformed."""


class ChallengeError(SpotifyInsightsError):
    """Raised when a PKCE verifier cannot be generated from a secure source."""


class SessionStateError(SpotifyInsightsError):
    """Raised when a session operation is invalid for the current state."""


class HandshakeError(SpotifyInsightsError):
    """Base class for failures between initiate() and a completed exchange."""


class AuthorizationDenied(HandshakeError):
    """The authorization server redirected back with an error (e.g. access_denied)."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Spotify authorization was denied: {reason}", {"error": reason})
        self.reason = reason


class InvalidCode(HandshakeError):
    """The callback carried an empty or malformed authorization code."""


class NoPendingHandshake(HandshakeError):
    """A callback arrived without a live handshake (stale, replayed or cancelled)."""


class ExchangeFailed(HandshakeError):
    """The token endpoint rejected the authorization code exchange."""

    def __init__(self, message: str, *, status: Optional[int] = None, transient: bool = False) -> None:
        super().__init__(message, {"status": status, "transient": transient})
        self.status = status
        self.transient = transient


class UpstreamErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    MALFORMED = "malformed"


_STATUS_KINDS = {
    401: UpstreamErrorKind.UNAUTHORIZED,
    403: UpstreamErrorKind.FORBIDDEN,
    429: UpstreamErrorKind.RATE_LIMITED,
}


def kind_for_status(status: int) -> UpstreamErrorKind:
    """Map a non-2xx HTTP status to its error kind."""
    return _STATUS_KINDS.get(int(status), UpstreamErrorKind.TRANSIENT)


class UpstreamError(SpotifyInsightsError):
    """Classified failure of a Spotify Web API call.

    ``status`` is None when no response was received (no credential,
    transport error, timeout). ``retry_after`` is only set for RATE_LIMITED.
    """

    def __init__(
        self,
        kind: UpstreamErrorKind,
        *,
        endpoint: str,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
        message: Optional[str] = None,
    ) -> None:
        text = message or f"Spotify API request to {endpoint} failed ({kind.value}"
        if message is None:
            text += f", HTTP {status})" if status is not None else ")"
        super().__init__(
            text,
            {"kind": kind.value, "endpoint": endpoint, "status": status, "retry_after": retry_after},
        )
        self.kind = kind
        self.endpoint = endpoint
        self.status = status
        self.retry_after = retry_after

    @property
    def requires_logout(self) -> bool:
        return self.kind is UpstreamErrorKind.UNAUTHORIZED
