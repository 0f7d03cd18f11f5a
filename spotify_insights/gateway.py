import json
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import UpstreamError, UpstreamErrorKind, kind_for_status
from .session import SpotifySession

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After as seconds; HTTP-date and garbage values give None."""

    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if seconds != seconds or seconds < 0:
        return None
    return seconds


class SpotifyGateway:
    """Authenticated access to the Spotify Web API.

    Every call borrows the session's current credential, attaches it as a
    bearer token and classifies failures as UpstreamError. The gateway never
    retries, sleeps or changes session state: on UNAUTHORIZED the caller is
    expected to log out, on RATE_LIMITED to back off using ``retry_after``.
    """

    def __init__(
        self,
        session: SpotifySession,
        *,
        http_client: Optional[httpx.Client] = None,
        base_url: str = SPOTIFY_API_BASE_URL,
        timeout: Optional[float] = None,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout if timeout is not None else session.settings.request_timeout)
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self.timeout, follow_redirects=False)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "SpotifyGateway":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``endpoint`` (a path such as ``/me/top/artists``) and return the JSON object.

        Raises UpstreamError:
        - 401 / no credential: UNAUTHORIZED
        - 403: FORBIDDEN
        - 429: RATE_LIMITED (retry_after from the Retry-After header)
        - other non-2xx, transport errors, timeouts: TRANSIENT
        - body that is not a JSON object: MALFORMED
        """

        if not isinstance(endpoint, str) or not endpoint.startswith("/") or endpoint.startswith("//"):
            raise ValueError(f"endpoint must be an API path starting with '/': {endpoint!r}")

        credential = self.session.current_credential()
        if credential is None:
            logger.warning("No access token available for %s", endpoint)
            raise UpstreamError(
                UpstreamErrorKind.UNAUTHORIZED,
                endpoint=endpoint,
                message=f"No access token available for {endpoint}; log in again",
            )

        query = {k: str(v) for k, v in (params or {}).items() if v is not None}

        logger.debug("Making Spotify API request to %s", endpoint)
        try:
            resp = self._http.get(
                f"{self.base_url}{endpoint}",
                params=query,
                headers={
                    "Authorization": f"Bearer {credential.access_token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error("Spotify API request to %s timed out", endpoint)
            raise UpstreamError(UpstreamErrorKind.TRANSIENT, endpoint=endpoint) from e
        except httpx.HTTPError as e:
            logger.error("Spotify API request to %s failed: %s", endpoint, type(e).__name__)
            raise UpstreamError(UpstreamErrorKind.TRANSIENT, endpoint=endpoint) from e

        status = resp.status_code
        if not 200 <= status < 300:
            raise self._classify_failure(endpoint, resp)

        if not resp.content:
            return {}

        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Spotify API response from %s was not JSON (HTTP %s)", endpoint, status)
            raise UpstreamError(UpstreamErrorKind.MALFORMED, endpoint=endpoint, status=status) from e

        if not isinstance(payload, dict):
            logger.error("Spotify API response from %s was not an object (HTTP %s)", endpoint, status)
            raise UpstreamError(UpstreamErrorKind.MALFORMED, endpoint=endpoint, status=status)

        logger.debug("Spotify API request to %s successful", endpoint)
        return payload

    @staticmethod
    def _classify_failure(endpoint: str, resp: httpx.Response) -> UpstreamError:
        status = resp.status_code
        kind = kind_for_status(status)

        if kind is UpstreamErrorKind.RATE_LIMITED:
            retry_after = parse_retry_after(resp.headers.get("Retry-After"))
            logger.warning("Spotify API rate limit exceeded on %s (retry after %s s)", endpoint, retry_after)
            return UpstreamError(kind, endpoint=endpoint, status=status, retry_after=retry_after)

        if kind is UpstreamErrorKind.UNAUTHORIZED:
            logger.warning("Spotify API authentication failed on %s", endpoint)
        elif kind is UpstreamErrorKind.FORBIDDEN:
            logger.warning("Spotify API access forbidden on %s", endpoint)
        else:
            logger.error("Spotify API request to %s failed (HTTP %s %s)", endpoint, status, resp.reason_phrase)
        return UpstreamError(kind, endpoint=endpoint, status=status)
