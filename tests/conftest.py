"""
Shared test fixtures for the tool service test suite.

Key fixtures:
- make_token / make_auth_header: factories for host JWTs (the caller identity
  travels in the "sub" claim)
- provider_api: a fake provider backed by httpx.MockTransport; tests register
  canned responses and inspect the requests the code under test sent
- store / delegate: a fresh Token Store and OAuth2 Delegate wired to the fake
  provider

No test talks to Google or GitHub: every outbound call goes through
provider_api.
"""

import datetime
import json
from dataclasses import dataclass, field

import httpx
import jwt
import pytest

from oauth_tools.config import settings
from oauth_tools.oauth2 import OAuth2Delegate
from oauth_tools.token_store import InMemoryTokenStore

TEST_SECRET = settings.jwt_secret_key
TEST_ALGORITHM = settings.jwt_algorithm
TEST_BASE_URL = "https://tools.example.test"


# ---------------------------------------------------------------------------
# Host token factories
# ---------------------------------------------------------------------------
@pytest.fixture
def make_token():
    """
    Factory fixture to generate host JWTs for testing.

    Usage in tests:
        def test_something(make_token):
            token = make_token(sub="agent-1")
    """

    def _make_token(
        sub: str = "test-agent",
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_hours: float = 1.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {"iat": now}

        if include_sub:
            payload["sub"] = sub

        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)

        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


@pytest.fixture
def make_auth_header(make_token):
    """Returns a full "Bearer <token>" string."""

    def _make_auth_header(**kwargs) -> str:
        return f"Bearer {make_token(**kwargs)}"

    return _make_auth_header


# ---------------------------------------------------------------------------
# Fake provider API
# ---------------------------------------------------------------------------
@dataclass
class FakeProviderAPI:
    """
    Canned responses keyed by (method, url without query string).

    A route registered with `exc` raises that exception instead of
    answering, which is how transport failures are simulated.
    """

    routes: dict = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        json_body=None,
        text: str | None = None,
        exc: type[httpx.HTTPError] | None = None,
    ) -> None:
        self.routes[(method.upper(), url)] = (status_code, json_body, text, exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url.copy_with(query=None)))
        if key not in self.routes:
            return httpx.Response(404, json={"message": "Not Found"})

        status_code, json_body, text, exc = self.routes[key]
        if exc is not None:
            raise exc("simulated failure", request=request)
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=json_body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def request_json(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def provider_api():
    return FakeProviderAPI()


@pytest.fixture
def store():
    return InMemoryTokenStore()


@pytest.fixture
def delegate(provider_api):
    return OAuth2Delegate(
        base_url=TEST_BASE_URL,
        secret=TEST_SECRET,
        algorithm=TEST_ALGORITHM,
        state_ttl_seconds=600,
        http_client_factory=provider_api.client,
    )
