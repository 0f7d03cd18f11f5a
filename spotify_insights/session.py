import json
import logging
import re
import threading
import time
import urllib.parse
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .errors import (
    AuthorizationDenied,
    ConfigurationError,
    ExchangeFailed,
    InvalidCode,
    NoPendingHandshake,
    SessionStateError,
)
from .pkce import ChallengeGenerator
from .storage import KeyValueStore
from .token_store import Credential, HandshakeState, TokenStore
from .validation import is_valid_authorization_code, require_setting

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_AUTHORIZE_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_SCOPES = (
    "user-top-read",
    "user-read-private",
    "user-read-email",
    "user-library-read",
    "playlist-read-private",
    "playlist-read-collaborative",
)
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_EXPIRY_SKEW = 60.0
DEFAULT_HANDSHAKE_TTL = 600.0

_REDIRECT_URI_RE = re.compile(r"^https?://.+")


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    HANDSHAKE_PENDING = "handshake_pending"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


StateListener = Callable[[SessionState, SessionState], None]


@dataclass(frozen=True)
class ClientSettings:
    client_id: str
    redirect_uri: str
    scopes: Tuple[str, ...]
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    expiry_skew: float = DEFAULT_EXPIRY_SKEW
    handshake_ttl: float = DEFAULT_HANDSHAKE_TTL


def resolve_client_settings(config: Dict[str, Any]) -> ClientSettings:
    """Validate the Spotify OAuth fields of ``config``.

    Raises ConfigurationError when the client id is missing or the redirect
    URI is not an http(s) URL.
    """

    config = config or {}

    try:
        client_id = require_setting(config.get("spotify_client_id"), "spotify_client_id")
    except ValueError as e:
        raise ConfigurationError(
            f"{e} (set it in config.json or the SPOTIFY_CLIENT_ID environment variable)"
        ) from e

    redirect_uri = str(config.get("spotify_redirect_uri") or DEFAULT_REDIRECT_URI).strip()
    if not _REDIRECT_URI_RE.match(redirect_uri):
        raise ConfigurationError("spotify_redirect_uri must be a valid http(s) URL")

    raw_scopes = config.get("spotify_scopes")
    if raw_scopes is None:
        scopes = DEFAULT_SCOPES
    else:
        scopes = tuple(str(s).strip() for s in raw_scopes if str(s).strip())

    try:
        return ClientSettings(
            client_id=client_id,
            redirect_uri=redirect_uri,
            scopes=scopes,
            request_timeout=float(config.get("spotify_request_timeout", DEFAULT_REQUEST_TIMEOUT)),
            expiry_skew=float(config.get("spotify_expiry_skew", DEFAULT_EXPIRY_SKEW)),
            handshake_ttl=float(config.get("spotify_handshake_ttl", DEFAULT_HANDSHAKE_TTL)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid Spotify timing settings: {e}") from e


@dataclass(frozen=True)
class AuthorizationRequest:
    """Where to send the user, and the state the session moved to."""

    url: str
    params: Dict[str, str]
    state: SessionState


class TokenRequestError(Exception):
    """A call to the token endpoint did not produce a usable JSON object."""

    def __init__(self, message: str, *, status: Optional[int] = None, transient: bool = False):
        super().__init__(message)
        self.status = status
        self.transient = transient


class SpotifySession:
    """Owns the PKCE handshake and the credential lifecycle.

    States: UNAUTHENTICATED -> HANDSHAKE_PENDING -> AUTHENTICATED ->
    REFRESHING -> AUTHENTICATED | UNAUTHENTICATED.

    ``current_credential`` and ``complete_handshake`` are serialized by one
    lock so overlapping refreshes cannot clobber each other. ``logout`` only
    takes the short state lock and bumps ``_epoch``; token-endpoint results
    are written only if the epoch they started under is still current.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        store: Optional[KeyValueStore] = None,
        http_client: Optional[httpx.Client] = None,
        challenge_generator: Optional[ChallengeGenerator] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or {}
        self.settings = resolve_client_settings(self.config)
        self.tokens = TokenStore(store)
        self.challenges = challenge_generator or ChallengeGenerator()
        self.clock = clock

        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self.settings.request_timeout, follow_redirects=False)

        self._lock = threading.RLock()
        self._state_lock = threading.RLock()
        self._epoch = 0
        self._closed = False
        self._listeners: List[StateListener] = []

        if self.tokens.load_credential() is not None:
            self._state = SessionState.AUTHENTICATED
        elif self.tokens.load_handshake() is not None:
            self._state = SessionState.HANDSHAKE_PENDING
        else:
            self._state = SessionState.UNAUTHENTICATED

    # -----------------
    # State
    # -----------------

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener(previous, current)``; returns an unsubscribe callable."""

        with self._state_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._state_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, new_state: SessionState) -> None:
        # Caller holds _state_lock.
        previous = self._state
        if previous is new_state:
            return

        self._state = new_state
        logger.debug("Session state %s -> %s", previous.value, new_state.value)
        for listener in list(self._listeners):
            try:
                listener(previous, new_state)
            except Exception:
                logger.exception("Session state listener failed")

    def _reset(self) -> None:
        # Caller holds _state_lock.
        self.tokens.clear()
        self._transition(SessionState.UNAUTHENTICATED)

    # -----------------
    # Handshake
    # -----------------

    def authorize_url(self, code_challenge: str) -> Tuple[str, Dict[str, str]]:
        params: Dict[str, str] = {
            "client_id": self.settings.client_id,
            "response_type": "code",
            "redirect_uri": self.settings.redirect_uri,
            "scope": " ".join(self.settings.scopes),
            "code_challenge_method": "S256",
            "code_challenge": str(code_challenge),
            "show_dialog": "true",
        }
        return f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(params)}", params

    def initiate(self) -> AuthorizationRequest:
        """Start a PKCE login; any earlier pending handshake is replaced."""

        with self._state_lock:
            if self._closed:
                raise SessionStateError("Session is closed")
            if self._state is SessionState.REFRESHING or (
                self._state is SessionState.AUTHENTICATED and self.tokens.load_credential() is not None
            ):
                raise SessionStateError("Already logged in; log out before starting a new login")

            pkce = self.challenges.create_challenge()
            self.tokens.clear_credential()
            self.tokens.save_handshake(HandshakeState(verifier=pkce.code_verifier, created_at=self.clock()))
            self._epoch += 1
            self._transition(SessionState.HANDSHAKE_PENDING)

        url, params = self.authorize_url(pkce.code_challenge)
        logger.info("Initiating Spotify OAuth flow")
        return AuthorizationRequest(url=url, params=params, state=SessionState.HANDSHAKE_PENDING)

    def _live_handshake(self) -> Optional[HandshakeState]:
        # Caller holds _state_lock.
        handshake = self.tokens.load_handshake()
        if handshake is None:
            return None

        ttl = self.settings.handshake_ttl
        if ttl > 0 and self.clock() - handshake.created_at > ttl:
            logger.warning("Discarding stale authorization handshake")
            self.tokens.clear_handshake()
            if self._state is SessionState.HANDSHAKE_PENDING:
                self._transition(SessionState.UNAUTHENTICATED)
            return None
        return handshake

    def _abandon_handshake(self) -> None:
        # Caller holds _state_lock.
        self.tokens.clear_handshake()
        self._transition(SessionState.UNAUTHENTICATED)

    def complete_handshake(self, code: Optional[str], error: Optional[str] = None) -> Credential:
        """Redeem the authorization code from the redirect callback.

        Raises NoPendingHandshake, AuthorizationDenied, InvalidCode or
        ExchangeFailed. Every failure except NoPendingHandshake discards the
        handshake; a fresh initiate() is then required.
        """

        with self._lock:
            with self._state_lock:
                if self._closed:
                    raise SessionStateError("Session is closed")

                handshake = self._live_handshake()
                if handshake is None:
                    raise NoPendingHandshake("No login is in progress; start a new login")

                if error:
                    logger.warning("Spotify authorization was denied: %s", error)
                    self._abandon_handshake()
                    raise AuthorizationDenied(str(error))

                if not is_valid_authorization_code(code):
                    logger.warning("Rejected malformed authorization code")
                    self._abandon_handshake()
                    raise InvalidCode("Authorization code is empty or malformed")

                epoch = self._epoch

            logger.info("Exchanging authorization code for access token")
            failure: Optional[ExchangeFailed] = None
            credential: Optional[Credential] = None
            try:
                payload = self._post_form(
                    {
                        "client_id": self.settings.client_id,
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": self.settings.redirect_uri,
                        "code_verifier": handshake.verifier,
                    }
                )
                credential = Credential.from_token_response(payload, issued_at=self.clock())
            except TokenRequestError as e:
                logger.error("Token exchange failed: %s", e)
                failure = ExchangeFailed(
                    "Failed to exchange authorization code for a token", status=e.status, transient=e.transient
                )
            except ValueError as e:
                logger.error("Token exchange response was malformed: %s", e)
                failure = ExchangeFailed("Token exchange response was malformed")

            with self._state_lock:
                if epoch != self._epoch or self._closed:
                    logger.info("Discarding token exchange result: login was cancelled")
                    raise NoPendingHandshake("Login was cancelled before the code exchange finished")

                if failure is not None:
                    self._abandon_handshake()
                    raise failure

                self.tokens.clear_handshake()
                self.tokens.save_credential(credential)
                self._transition(SessionState.AUTHENTICATED)

            logger.info("Successfully obtained access token")
            return credential

    # -----------------
    # Credential access
    # -----------------

    def current_credential(self) -> Optional[Credential]:
        """Return an unexpired credential, refreshing it if needed.

        Returns None when logged out, when the credential expired without a
        refresh token, or when the refresh fails. The latter two clear all
        stored credential material.
        """

        with self._lock:
            with self._state_lock:
                if self._closed:
                    return None

                credential = self.tokens.load_credential()
                if credential is None:
                    if self._state in (SessionState.AUTHENTICATED, SessionState.REFRESHING):
                        self._transition(SessionState.UNAUTHENTICATED)
                    return None

                if not credential.is_expired(now=self.clock(), skew_seconds=self.settings.expiry_skew):
                    return credential

                if not credential.refresh_token:
                    logger.warning("Access token expired and no refresh token is available")
                    self._reset()
                    return None

                logger.info("Token expired, attempting refresh")
                epoch = self._epoch
                self._transition(SessionState.REFRESHING)

            refreshed = self._refresh(credential.refresh_token)

            with self._state_lock:
                if epoch != self._epoch or self._closed:
                    logger.info("Discarding refreshed token: session was reset while refreshing")
                    return None

                if refreshed is None or refreshed.is_expired(now=self.clock(), skew_seconds=self.settings.expiry_skew):
                    self._reset()
                    return None

                self.tokens.save_credential(refreshed)
                self._transition(SessionState.AUTHENTICATED)
                return refreshed

    def cached_credential(self) -> Optional[Credential]:
        """Non-blocking variant: the stored credential if unexpired, never refreshes."""

        with self._state_lock:
            if self._closed:
                return None
            credential = self.tokens.load_credential()

        if credential is None or credential.is_expired(now=self.clock(), skew_seconds=self.settings.expiry_skew):
            return None
        return credential

    @property
    def is_authenticated(self) -> bool:
        return self.cached_credential() is not None

    def _refresh(self, refresh_token: str) -> Optional[Credential]:
        logger.info("Refreshing access token")
        try:
            payload = self._post_form(
                {
                    "client_id": self.settings.client_id,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                }
            )
            credential = Credential.from_token_response(
                payload, issued_at=self.clock(), fallback_refresh_token=refresh_token
            )
        except TokenRequestError as e:
            logger.error("Token refresh failed: %s", e)
            return None
        except ValueError as e:
            logger.error("Token refresh response was malformed: %s", e)
            return None

        logger.info("Successfully refreshed access token")
        return credential

    # -----------------
    # Teardown
    # -----------------

    def logout(self) -> None:
        """Clear the credential and any pending handshake from any state."""

        with self._state_lock:
            self._epoch += 1
            self._reset()
        logger.info("Cleared stored tokens")

    def close(self) -> None:
        """Tear the session down; in-flight token calls will not write results."""

        with self._state_lock:
            self._epoch += 1
            self._closed = True
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "SpotifySession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -----------------
    # HTTP
    # -----------------

    def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        try:
            resp = self._http.post(
                SPOTIFY_TOKEN_URL,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.settings.request_timeout,
            )
        except httpx.TimeoutException as e:
            raise TokenRequestError(f"token request timed out: {type(e).__name__}", transient=True) from e
        except httpx.HTTPError as e:
            raise TokenRequestError(f"token request failed: {type(e).__name__}", transient=True) from e

        if not 200 <= resp.status_code < 300:
            raise TokenRequestError(
                f"HTTP {resp.status_code}",
                status=resp.status_code,
                transient=resp.status_code >= 500 or resp.status_code == 429,
            )

        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise TokenRequestError(f"response was not JSON (HTTP {resp.status_code})", status=resp.status_code) from e

        if not isinstance(payload, dict):
            raise TokenRequestError(f"response was not an object (HTTP {resp.status_code})", status=resp.status_code)

        return payload
