import unittest

import httpx

from support import FakeClock, FakeSpotify, login, make_session, token_response

from spotify_insights.errors import UpstreamError, UpstreamErrorKind
from spotify_insights.gateway import SPOTIFY_API_BASE_URL, SpotifyGateway, parse_retry_after
from spotify_insights.session import SessionState
from spotify_insights.storage import MemoryStore


class GatewayTestCase(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.fake = FakeSpotify()
        self.session, _ = make_session(self.fake, store=MemoryStore(), clock=self.clock)
        self.gateway = SpotifyGateway(self.session, http_client=self.fake.client())

    def login(self, **kwargs):
        return login(self.session, self.fake, **kwargs)


class TestGatewayRequests(GatewayTestCase):
    def test_no_credential_fails_without_network(self):
        with self.assertRaises(UpstreamError) as ctx:
            self.gateway.request("/me")

        self.assertEqual(ctx.exception.kind, UpstreamErrorKind.UNAUTHORIZED)
        self.assertIsNone(ctx.exception.status)
        self.assertEqual(ctx.exception.endpoint, "/me")
        self.assertEqual(self.fake.api_requests, [])

    def test_attaches_bearer_token_and_params(self):
        self.login(access_token="at-1")
        self.fake.api_responses.append(httpx.Response(200, json={"items": [], "total": 0}))

        payload = self.gateway.request("/me/top/artists", {"time_range": "short_term", "limit": 10, "offset": None})

        self.assertEqual(payload, {"items": [], "total": 0})
        request = self.fake.api_requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.headers["Authorization"], "Bearer at-1")
        self.assertEqual(request.url.path, "/v1/me/top/artists")
        self.assertEqual(dict(request.url.params), {"time_range": "short_term", "limit": "10"})
        self.assertTrue(str(request.url).startswith(SPOTIFY_API_BASE_URL))

    def test_empty_success_body_is_empty_payload(self):
        self.login()
        self.fake.api_responses.append(httpx.Response(204))
        self.assertEqual(self.gateway.request("/me/player"), {})

    def test_expired_credential_is_refreshed_before_the_call(self):
        self.login(access_token="at-1")
        self.clock.advance(3600)
        self.fake.token_responses.append(token_response("at-2"))
        self.fake.api_responses.append(httpx.Response(200, json={"id": "me"}))

        self.gateway.request("/me")

        self.assertEqual(self.fake.api_requests[0].headers["Authorization"], "Bearer at-2")

    def test_rejects_absolute_urls(self):
        self.login()
        for endpoint in ["https://evil.example/steal", "//evil.example/x", "me", ""]:
            with self.subTest(endpoint=endpoint):
                with self.assertRaises(ValueError):
                    self.gateway.request(endpoint)
        self.assertEqual(self.fake.api_requests, [])


class TestGatewayErrorClassification(GatewayTestCase):
    def test_status_mapping(self):
        self.login()
        expected = {
            401: UpstreamErrorKind.UNAUTHORIZED,
            403: UpstreamErrorKind.FORBIDDEN,
            429: UpstreamErrorKind.RATE_LIMITED,
            400: UpstreamErrorKind.TRANSIENT,
            404: UpstreamErrorKind.TRANSIENT,
            418: UpstreamErrorKind.TRANSIENT,
            500: UpstreamErrorKind.TRANSIENT,
            502: UpstreamErrorKind.TRANSIENT,
            503: UpstreamErrorKind.TRANSIENT,
            302: UpstreamErrorKind.TRANSIENT,
        }
        for status, kind in expected.items():
            with self.subTest(status=status):
                self.fake.api_responses.append(httpx.Response(status, json={"error": {"status": status}}))
                with self.assertRaises(UpstreamError) as ctx:
                    self.gateway.request("/me")
                self.assertEqual(ctx.exception.kind, kind)
                self.assertEqual(ctx.exception.status, status)
                self.assertEqual(ctx.exception.endpoint, "/me")

    def test_rate_limit_carries_retry_after(self):
        self.login()
        self.fake.api_responses.append(httpx.Response(429, headers={"Retry-After": "7"}))
        with self.assertRaises(UpstreamError) as ctx:
            self.gateway.request("/me/top/tracks")
        self.assertEqual(ctx.exception.kind, UpstreamErrorKind.RATE_LIMITED)
        self.assertEqual(ctx.exception.retry_after, 7.0)

        self.fake.api_responses.append(httpx.Response(429))
        with self.assertRaises(UpstreamError) as ctx:
            self.gateway.request("/me/top/tracks")
        self.assertIsNone(ctx.exception.retry_after)

    def test_unparseable_body_is_malformed(self):
        self.login()
        for response in [httpx.Response(200, text="<html>oops</html>"), httpx.Response(200, json=[1, 2, 3])]:
            with self.subTest(body=response.content):
                self.fake.api_responses.append(response)
                with self.assertRaises(UpstreamError) as ctx:
                    self.gateway.request("/me")
                self.assertEqual(ctx.exception.kind, UpstreamErrorKind.MALFORMED)
                self.assertEqual(ctx.exception.status, 200)

    def test_transport_failures_are_transient(self):
        self.login()
        for exc in [httpx.ReadTimeout, httpx.ConnectError]:
            with self.subTest(exc=exc.__name__):
                self.fake.api_responses.append(lambda request, exc=exc: exc("boom", request=request))
                with self.assertRaises(UpstreamError) as ctx:
                    self.gateway.request("/me")
                self.assertEqual(ctx.exception.kind, UpstreamErrorKind.TRANSIENT)
                self.assertIsNone(ctx.exception.status)

    def test_unauthorized_leaves_session_untouched(self):
        credential = self.login()
        self.fake.api_responses.append(httpx.Response(401))

        with self.assertRaises(UpstreamError) as ctx:
            self.gateway.request("/me")

        self.assertTrue(ctx.exception.requires_logout)
        self.assertEqual(self.session.state, SessionState.AUTHENTICATED)
        self.assertEqual(self.session.tokens.load_credential(), credential)
        self.assertEqual(len(self.fake.api_requests), 1)

    def test_errors_never_mention_the_token(self):
        self.login(access_token="super-secret-token")
        self.fake.api_responses.append(httpx.Response(500))
        with self.assertLogs("spotify_insights.gateway", level="DEBUG") as logs:
            with self.assertRaises(UpstreamError) as ctx:
                self.gateway.request("/me")
        self.assertNotIn("super-secret-token", str(ctx.exception))
        self.assertNotIn("super-secret-token", repr(ctx.exception.details))
        self.assertFalse(any("super-secret-token" in line for line in logs.output))


class TestRetryAfterParsing(unittest.TestCase):
    def test_values(self):
        self.assertEqual(parse_retry_after("3"), 3.0)
        self.assertEqual(parse_retry_after(" 1.5 "), 1.5)
        self.assertIsNone(parse_retry_after(None))
        self.assertIsNone(parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT"))
        self.assertIsNone(parse_retry_after("-4"))
        self.assertIsNone(parse_retry_after("nan"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
