"""Shared fakes for the test modules: a settable clock and a scripted Spotify."""

import sys
import urllib.parse
from pathlib import Path

import httpx

# Ensure imports like `config` and `utils.*` work even when executed from repo root.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_insights.session import SPOTIFY_TOKEN_URL, SpotifySession  # noqa: E402
from spotify_insights.storage import MemoryStore  # noqa: E402

CONFIG = {
    "spotify_client_id": "client-123",
    "spotify_redirect_uri": "http://127.0.0.1:8888/callback",
    "spotify_scopes": ["user-top-read", "user-read-private"],
    "spotify_expiry_skew": 0,
    "spotify_handshake_ttl": 600,
    "spotify_request_timeout": 5,
}

VALID_CODE = "AQDx-valid_code.from~spotify" + "Zk3q" * 20


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


class FakeSpotify:
    """Scripted token endpoint + Web API behind an httpx.MockTransport.

    ``token_responses`` / ``api_responses`` are queues of httpx.Response
    objects, exceptions to raise, or callables taking the request.
    """

    def __init__(self):
        self.token_responses = []
        self.api_responses = []
        self.token_requests = []
        self.api_requests = []

    @staticmethod
    def form(request: httpx.Request) -> dict:
        return {k: v[0] for k, v in urllib.parse.parse_qs(request.content.decode("utf-8")).items()}

    def _next(self, queue, request):
        if not queue:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        item = queue.pop(0)
        if callable(item) and not isinstance(item, httpx.Response):
            item = item(request)
        if isinstance(item, Exception):
            raise item
        return item

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == SPOTIFY_TOKEN_URL:
            self.token_requests.append(request)
            return self._next(self.token_responses, request)
        self.api_requests.append(request)
        return self._next(self.api_responses, request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


def token_response(access_token="access-1", expires_in=3600, refresh_token="refresh-1", status=200):
    payload = {"access_token": access_token, "token_type": "Bearer", "expires_in": expires_in}
    if refresh_token is not None:
        payload["refresh_token"] = refresh_token
    return httpx.Response(status, json=payload)


def make_session(fake=None, *, store=None, clock=None, config=None):
    fake = fake or FakeSpotify()
    session = SpotifySession(
        dict(config or CONFIG),
        store=store if store is not None else MemoryStore(),
        http_client=fake.client(),
        clock=clock or FakeClock(),
    )
    return session, fake


def login(session, fake, **token_kwargs):
    """Drive initiate + a successful exchange; returns the credential."""
    session.initiate()
    fake.token_responses.append(token_response(**token_kwargs))
    return session.complete_handshake(VALID_CODE)

