"""
Require-credential-or-prompt: the branch every action tool goes through.

An action tool supplies only its provider call (an `Action`: a coroutine
taking the caller's Credential and returning a ToolResponse).
require_credential() decides whether that call happens:

    credential = store.get(caller_id)
    absent or expired  -> authenticate card, no outbound call
    present            -> action(credential)
    action fails       -> error card (and a provider 401 forgets the credential)
"""

import logging
from typing import Any, Awaitable, Callable, Sequence

import httpx

from oauth_tools.oauth2 import OAuth2Delegate
from oauth_tools.providers import ProviderConfig
from oauth_tools.results import ToolResponse, authenticate_response, error_response
from oauth_tools.token_store import Credential, TokenStore

logger = logging.getLogger("oauth-tools.actions")

Action = Callable[[Credential], Awaitable[ToolResponse]]


class ProviderError(Exception):
    """
    Raised by an action when the provider answered, but not usefully:
    a non-2xx status, a non-JSON body, or a body missing expected fields.

    Attributes:
        provider: The provider that was called
        message: Human-readable description
        status_code: HTTP status of the provider response, if any
    """

    def __init__(self, provider: ProviderConfig, message: str, status_code: int | None = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def bearer_headers(credential: Credential) -> dict[str, str]:
    return {"Authorization": f"Bearer {credential.access_token}"}


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from a provider error body."""
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        # GitHub: {"message": ...}; Google: {"error": {"message": ...}}
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if payload.get("message"):
            return payload["message"]
    return response.reason_phrase or f"HTTP {response.status_code}"


def parse_json_response(
    provider: ProviderConfig,
    response: httpx.Response,
    required: Sequence[str] = (),
) -> dict[str, Any]:
    """
    Return the JSON object body of a provider response.

    Raises:
        ProviderError: On a non-2xx status, non-JSON or non-object body,
                       or when a required field is missing
    """
    if response.is_error:
        raise ProviderError(provider, _error_detail(response), response.status_code)

    try:
        payload = response.json()
    except ValueError:
        raise ProviderError(provider, "response body is not valid JSON", response.status_code)

    if not isinstance(payload, dict):
        raise ProviderError(provider, "response body is not a JSON object", response.status_code)

    missing = [name for name in required if name not in payload]
    if missing:
        raise ProviderError(
            provider,
            f"response is missing field(s): {', '.join(missing)}",
            response.status_code,
        )
    return payload


async def require_credential(
    *,
    provider: ProviderConfig,
    caller_id: str,
    store: TokenStore,
    delegate: OAuth2Delegate,
    action: Action,
    purpose: str = "continue",
) -> ToolResponse:
    """
    Run `action` with the caller's credential, or ask the caller to
    authenticate with `provider` first.

    Args:
        provider: Provider whose credential the action needs
        caller_id: Caller identity (Token Store key)
        store: Token Store holding provider credentials
        delegate: OAuth2 Delegate used to build the authorization URL
        action: The provider call, run only when a credential exists
        purpose: Completes "Please authenticate with <provider> to ..."
                 on the authenticate card
    """
    credential = await store.get(caller_id)

    if credential is not None and credential.is_expired():
        logger.info(
            "Stored credential has expired",
            extra={"log_data": {"caller": caller_id, "provider": provider.name}},
        )
        credential = None

    if credential is None:
        auth_url = await delegate.generate_auth_url(provider.name, caller_id)
        logger.info(
            "Authentication required",
            extra={
                "log_data": {
                    "caller": caller_id,
                    "provider": provider.name,
                    "decision": "authenticate",
                }
            },
        )
        return authenticate_response(provider, auth_url, purpose)

    try:
        return await action(credential)
    except ProviderError as e:
        logger.warning(
            "Provider call failed",
            extra={
                "log_data": {
                    "caller": caller_id,
                    "provider": provider.name,
                    "status_code": e.status_code,
                    "reason": e.message,
                }
            },
        )
        if e.status_code == 401:
            # Revoked or otherwise invalid: the next call starts a new flow.
            await store.delete(caller_id)
        return error_response(provider, e.message, e.status_code)
    except httpx.HTTPError as e:
        logger.warning(
            "Provider call failed",
            extra={
                "log_data": {
                    "caller": caller_id,
                    "provider": provider.name,
                    "reason": f"{type(e).__name__}: {e}",
                }
            },
        )
        return error_response(provider, f"could not reach {provider.display_name}: {e}")
