"""
Tests for require_credential(), the branch every action tool goes through.

The action used here is a real provider call (the GitHub profile fetch)
against the fake provider, so "was an outbound call made?" is answered by
provider_api.requests.
"""

import asyncio
import datetime

import httpx
import pytest

from oauth_tools.actions import ProviderError, parse_json_response, require_credential
from oauth_tools.github import USER_URL, get_profile
from oauth_tools.providers import GITHUB
from oauth_tools.token_store import Credential, InMemoryTokenStore

PROFILE = {"login": "bob", "name": "Bob", "email": "b@x.com", "bio": "hi", "public_repos": 3}


@pytest.fixture
def github_delegate(delegate, store):
    delegate.register(GITHUB, "gh-client", "gh-secret", on_success=store.put)
    return delegate


@pytest.fixture
def profile_action(provider_api):
    async def action(credential: Credential):
        async with provider_api.client() as client:
            return await get_profile(client, credential)

    return action


async def run(caller_id, store, delegate, action):
    return await require_credential(
        provider=GITHUB,
        caller_id=caller_id,
        store=store,
        delegate=delegate,
        action=action,
    )


class TestAuthenticateBranch:
    async def test_no_credential_returns_authenticate_card(
        self, store, github_delegate, profile_action, provider_api
    ):
        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.data is None
        assert result.ui.type == "oauth2"
        assert result.ui.ui_data["provider"] == "github"
        assert result.ui.ui_data["url"].startswith(GITHUB.authorization_url)
        assert "authenticate with GitHub" in result.text
        assert result.needs_authentication

    async def test_no_credential_makes_no_outbound_call(
        self, store, github_delegate, profile_action, provider_api
    ):
        await run("agent-1", store, github_delegate, profile_action)

        assert provider_api.requests == []

    async def test_expired_credential_counts_as_absent(
        self, store, github_delegate, profile_action, provider_api
    ):
        past = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(seconds=1)
        await store.put("agent-1", Credential(access_token="old", expires_at=past))

        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.needs_authentication
        assert provider_api.requests == []

    async def test_other_callers_credential_is_not_used(
        self, store, github_delegate, profile_action, provider_api
    ):
        await store.put("agent-2", Credential(access_token="theirs"))

        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.needs_authentication
        assert provider_api.requests == []


class TestActBranch:
    async def test_after_oauth_completion_exactly_one_bearer_call(
        self, store, github_delegate, profile_action, provider_api
    ):
        """The completion callback is the only way a credential gets in."""
        provider_api.add("POST", GITHUB.token_url, json_body={"access_token": "gho_stored"})
        provider_api.add("GET", USER_URL, json_body=PROFILE)
        await github_delegate.complete(
            "github", "code", github_delegate._encode_state("github", "agent-1")
        )
        provider_api.requests.clear()

        result = await run("agent-1", store, github_delegate, profile_action)

        assert len(provider_api.requests) == 1
        assert provider_api.requests[0].headers["authorization"] == "Bearer gho_stored"
        assert result.ui.type == "card"
        assert not result.needs_authentication

    async def test_reauthentication_uses_latest_token(
        self, store, github_delegate, profile_action, provider_api
    ):
        provider_api.add("GET", USER_URL, json_body=PROFILE)
        await store.put("agent-1", Credential(access_token="first"))
        await store.put("agent-1", Credential(access_token="second"))

        await run("agent-1", store, github_delegate, profile_action)

        assert provider_api.requests[0].headers["authorization"] == "Bearer second"


class SlowReadStore(InMemoryTokenStore):
    """Yields to the event loop between reading an entry and returning it."""

    async def get(self, caller_id: str) -> Credential | None:
        credential = await super().get(caller_id)
        await asyncio.sleep(0)
        return credential


class TestCompletionDuringToolCall:
    """A callback that lands while a tool call is between read and act."""

    async def test_absent_read_prompts_then_next_call_acts(self, delegate, profile_action, provider_api):
        store = SlowReadStore()
        delegate.register(GITHUB, "gh-client", "gh-secret", on_success=store.put)
        provider_api.add("GET", USER_URL, json_body=PROFILE)

        result, _ = await asyncio.gather(
            run("agent-1", store, delegate, profile_action),
            store.put("agent-1", Credential(access_token="gho_late")),
        )

        assert result.needs_authentication
        assert provider_api.requests == []
        assert (await store.get("agent-1")).access_token == "gho_late"

        again = await run("agent-1", store, delegate, profile_action)

        assert not again.needs_authentication
        assert len(provider_api.requests) == 1
        assert provider_api.requests[0].headers["authorization"] == "Bearer gho_late"


class TestFailureBranch:
    async def test_non_success_status_becomes_error_result(
        self, store, github_delegate, profile_action, provider_api
    ):
        provider_api.add("GET", USER_URL, status_code=500, json_body={"message": "Server Error"})
        await store.put("agent-1", Credential(access_token="tok"))

        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.is_error
        assert result.data is None
        assert result.ui.ui_data["status_code"] == 500
        assert "Server Error" in result.text
        assert await store.get("agent-1") is not None

    async def test_unauthorized_forgets_credential(
        self, store, github_delegate, profile_action, provider_api
    ):
        provider_api.add("GET", USER_URL, status_code=401, json_body={"message": "Bad credentials"})
        await store.put("agent-1", Credential(access_token="revoked"))

        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.is_error
        assert await store.get("agent-1") is None

        # The next invocation prompts for authentication again.
        again = await run("agent-1", store, github_delegate, profile_action)
        assert again.needs_authentication

    async def test_network_failure_becomes_error_result(
        self, store, github_delegate, profile_action, provider_api
    ):
        provider_api.add("GET", USER_URL, exc=httpx.ConnectTimeout)
        await store.put("agent-1", Credential(access_token="tok"))

        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.is_error
        assert "could not reach GitHub" in result.text

    async def test_malformed_body_becomes_error_result(
        self, store, github_delegate, profile_action, provider_api
    ):
        provider_api.add("GET", USER_URL, text="<html>oops</html>")
        await store.put("agent-1", Credential(access_token="tok"))

        result = await run("agent-1", store, github_delegate, profile_action)

        assert result.is_error
        assert "not valid JSON" in result.text


class TestParseJsonResponse:
    def _response(self, status_code=200, **kwargs):
        return httpx.Response(status_code, request=httpx.Request("GET", USER_URL), **kwargs)

    def test_returns_object_body(self):
        assert parse_json_response(GITHUB, self._response(json={"id": 1}), ("id",)) == {"id": 1}

    def test_missing_field_raises(self):
        with pytest.raises(ProviderError, match="missing field"):
            parse_json_response(GITHUB, self._response(json={"other": 1}), ("id",))

    def test_non_object_body_raises(self):
        with pytest.raises(ProviderError, match="not a JSON object"):
            parse_json_response(GITHUB, self._response(json=[1, 2]))

    def test_google_style_error_message_is_extracted(self):
        response = self._response(403, json={"error": {"code": 403, "message": "Insufficient Permission"}})

        with pytest.raises(ProviderError, match="Insufficient Permission") as exc_info:
            parse_json_response(GITHUB, response)

        assert exc_info.value.status_code == 403
