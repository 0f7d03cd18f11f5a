import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .storage import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "spotify_credential"
EXPIRES_KEY = "spotify_token_expires"
VERIFIER_KEY = "code_verifier"


@dataclass(frozen=True)
class Credential:
    """Access/refresh token pair plus absolute expiry (epoch seconds)."""

    access_token: str
    expires_at: float
    refresh_token: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.access_token, str) or not self.access_token:
            raise ValueError("Credential requires a non-empty access_token")

    def __repr__(self) -> str:
        return (
            f"Credential(access_token=<redacted>, expires_at={self.expires_at!r}, "
            f"refresh_token={'<redacted>' if self.refresh_token else None})"
        )

    @staticmethod
    def from_token_response(
        payload: Dict[str, Any],
        *,
        issued_at: Optional[float] = None,
        fallback_refresh_token: Optional[str] = None,
    ) -> "Credential":
        """Convert a Spotify token response into a Credential.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (optional; usually omitted on refresh)
        - scope (space-delimited string)

        Raises ValueError when access_token or a numeric expires_in is missing.
        """

        now_ts = float(time.time() if issued_at is None else issued_at)

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token response has no access_token")

        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise ValueError("token response has no numeric expires_in")

        refresh_token = payload.get("refresh_token")
        if not isinstance(refresh_token, str) or not refresh_token:
            refresh_token = fallback_refresh_token

        return Credential(
            access_token=access_token,
            expires_at=now_ts + float(expires_in),
            refresh_token=refresh_token,
        )

    def is_expired(self, *, now: Optional[float] = None, skew_seconds: float = 0.0) -> bool:
        now_ts = time.time() if now is None else now
        return now_ts >= float(self.expires_at) - float(skew_seconds)


@dataclass(frozen=True)
class HandshakeState:
    verifier: str
    created_at: float

    def __repr__(self) -> str:
        return f"HandshakeState(verifier=<redacted>, created_at={self.created_at!r})"


class TokenStore:
    """Persists the credential and pending handshake into a key-value store.

    Each piece lives under its own key and can be read or removed on its own.
    A missing key means "logged out", never an error.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else MemoryStore()

    def load_credential(self) -> Optional[Credential]:
        blob = self.store.get(CREDENTIAL_KEY)
        expires = self.store.get(EXPIRES_KEY)
        if blob is None or expires is None:
            return None

        try:
            data = json.loads(blob)
            return Credential(
                access_token=data.get("access_token"),
                expires_at=float(expires),
                refresh_token=data.get("refresh_token") or None,
            )
        except (ValueError, TypeError, AttributeError):
            logger.warning("Discarding unreadable stored credential")
            return None

    def save_credential(self, credential: Credential) -> None:
        self.store.set(
            CREDENTIAL_KEY,
            json.dumps({"access_token": credential.access_token, "refresh_token": credential.refresh_token}),
        )
        self.store.set(EXPIRES_KEY, repr(float(credential.expires_at)))

    def clear_credential(self) -> None:
        self.store.remove(CREDENTIAL_KEY)
        self.store.remove(EXPIRES_KEY)

    def load_handshake(self) -> Optional[HandshakeState]:
        raw = self.store.get(VERIFIER_KEY)
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            verifier = data["verifier"]
            created_at = float(data["created_at"])
        except (ValueError, TypeError, KeyError):
            logger.warning("Discarding unreadable stored handshake")
            return None

        if not isinstance(verifier, str) or not verifier:
            return None
        return HandshakeState(verifier=verifier, created_at=created_at)

    def save_handshake(self, handshake: HandshakeState) -> None:
        self.store.set(VERIFIER_KEY, json.dumps({"verifier": handshake.verifier, "created_at": handshake.created_at}))

    def clear_handshake(self) -> None:
        self.store.remove(VERIFIER_KEY)

    def clear(self) -> None:
        self.clear_credential()
        self.clear_handshake()
