"""
OAuth2 authorization-code flow for the tool services.

This module is the "OAuth2 Delegate" the tools rely on. It does three things:

1. generate_auth_url(): builds the provider's authorization URL for a caller.
   The `state` parameter is a short-lived JWT carrying the caller identity
   and provider name, so the callback can tell whose credential it just
   obtained without any server-side session.
2. complete(): verifies `state`, exchanges the authorization code at the
   provider's token endpoint, and hands the resulting Credential to the
   provider's registered on_success callback (which writes the Token Store).
3. install_routes(): mounts GET /oauth2/callback/{provider}, the redirect
   target the provider sends the user's browser to.

Flow:

    tool (no credential) --generate_auth_url--> user opens URL, approves
    provider --302--> /oauth2/callback/github?code=...&state=...
    complete() --POST token_url--> Credential --on_success--> Token Store
"""

import datetime
import logging
import secrets
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx
import jwt
from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response

from oauth_tools.config import settings
from oauth_tools.providers import ProviderConfig
from oauth_tools.token_store import Credential

logger = logging.getLogger("oauth-tools.oauth2")

OnSuccess = Callable[[str, Credential], Awaitable[None]]
HttpClientFactory = Callable[[], httpx.AsyncClient]

CALLBACK_PATH = "/oauth2/callback/{provider}"

# Audience of the `state` JWT. Host tokens carry no audience, so a state
# value can never be replayed as a host token and vice versa.
STATE_AUDIENCE = "oauth2-state"

SUCCESS_PAGE = """<!doctype html>
<html>
  <head><title>{title}</title></head>
  <body>
    <h1>{title}</h1>
    <p>You can close this window and return to your agent.</p>
  </body>
</html>
"""


class OAuth2Error(Exception):
    """
    Raised when any step of the authorization-code flow fails.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status the callback route answers with
    """

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def default_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout_seconds)


@dataclass(frozen=True)
class RegisteredProvider:
    config: ProviderConfig
    client_id: str
    client_secret: str
    on_success: OnSuccess


class OAuth2Delegate:
    """
    Runs the authorization-code flow for the providers registered on it.

    Args:
        base_url: Public URL of this service, used to build redirect URIs
        secret: Key used to sign and verify the `state` JWT
        algorithm: JWT algorithm for `state`
        state_ttl_seconds: Lifetime of a generated authorization URL
        http_client_factory: Returns a fresh httpx.AsyncClient for the token
                             exchange (tests pass one backed by MockTransport)
    """

    def __init__(
        self,
        base_url: str | None = None,
        secret: str | None = None,
        algorithm: str | None = None,
        state_ttl_seconds: int | None = None,
        http_client_factory: HttpClientFactory | None = None,
    ):
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self._secret = secret or settings.jwt_secret_key
        self._algorithm = algorithm or settings.jwt_algorithm
        self._state_ttl = (
            state_ttl_seconds if state_ttl_seconds is not None else settings.oauth_state_ttl_seconds
        )
        self._http_client_factory = http_client_factory or default_http_client
        self._providers: dict[str, RegisteredProvider] = {}

    def register(
        self,
        provider: ProviderConfig,
        client_id: str,
        client_secret: str,
        on_success: OnSuccess,
    ) -> None:
        """Register a provider. on_success runs after every completed flow."""
        self._providers[provider.name] = RegisteredProvider(
            config=provider,
            client_id=client_id,
            client_secret=client_secret,
            on_success=on_success,
        )

    def is_configured(self, provider_name: str) -> bool:
        registered = self._providers.get(provider_name)
        return bool(registered and registered.client_id and registered.client_secret)

    def redirect_uri(self, provider_name: str) -> str:
        return self.base_url + CALLBACK_PATH.format(provider=provider_name)

    def _get(self, provider_name: str) -> RegisteredProvider:
        try:
            return self._providers[provider_name]
        except KeyError:
            raise OAuth2Error(f"Unknown OAuth2 provider '{provider_name}'", status_code=404)

    async def generate_auth_url(self, provider_name: str, caller_id: str) -> str:
        """
        Build the authorization URL the user must open to grant access.

        Raises:
            OAuth2Error: If the provider is not registered
        """
        registered = self._get(provider_name)
        config = registered.config

        params = {
            "client_id": registered.client_id,
            "redirect_uri": self.redirect_uri(provider_name),
            "response_type": "code",
            "scope": " ".join(config.scopes),
            "state": self._encode_state(provider_name, caller_id),
            **config.extra_authorize_params,
        }
        return str(httpx.URL(config.authorization_url, params=params))

    def _encode_state(self, provider_name: str, caller_id: str) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload = {
            "sub": caller_id,
            "aud": STATE_AUDIENCE,
            "provider": provider_name,
            "nonce": secrets.token_urlsafe(8),
            "iat": now,
            "exp": now + datetime.timedelta(seconds=self._state_ttl),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def _decode_state(self, provider_name: str, state: str) -> str:
        """Verify `state` and return the caller identity it carries."""
        try:
            payload = jwt.decode(
                state,
                self._secret,
                algorithms=[self._algorithm],
                audience=STATE_AUDIENCE,
                options={"require": ["exp", "sub", "aud", "provider"]},
            )
        except jwt.ExpiredSignatureError:
            raise OAuth2Error("Authorization request has expired, please start again")
        except jwt.InvalidTokenError as e:
            raise OAuth2Error(f"Invalid state parameter: {e}")

        if payload["provider"] != provider_name:
            raise OAuth2Error("State parameter was issued for a different provider")
        return payload["sub"]

    async def complete(self, provider_name: str, code: str, state: str) -> tuple[str, Credential]:
        """
        Finish the flow: verify state, exchange the code, run on_success.

        Returns:
            (caller_id, credential)

        Raises:
            OAuth2Error: If any step fails
        """
        registered = self._get(provider_name)
        caller_id = self._decode_state(provider_name, state)
        credential = await self._exchange_code(registered, code)

        logger.info(
            "Completed OAuth flow",
            extra={
                "log_data": {
                    "caller": caller_id,
                    "provider": provider_name,
                    "scope": credential.scope,
                }
            },
        )
        await registered.on_success(caller_id, credential)
        return caller_id, credential

    async def _exchange_code(self, registered: RegisteredProvider, code: str) -> Credential:
        config = registered.config
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri(config.name),
            "client_id": registered.client_id,
            "client_secret": registered.client_secret,
        }

        # GitHub answers form-encoded unless JSON is asked for explicitly.
        async with self._http_client_factory() as client:
            try:
                response = await client.post(
                    config.token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                raise OAuth2Error(f"Token request to {config.display_name} failed: {e}", status_code=502)

        try:
            payload = response.json()
        except ValueError:
            raise OAuth2Error(
                f"{config.display_name} token endpoint returned a non-JSON response",
                status_code=502,
            )

        if not isinstance(payload, dict):
            raise OAuth2Error(
                f"{config.display_name} token endpoint returned an unexpected body",
                status_code=502,
            )

        # GitHub reports a bad code with 200 and an "error" field.
        if response.is_error or "error" in payload:
            reason = payload.get("error_description") or payload.get("error") or response.status_code
            raise OAuth2Error(f"{config.display_name} rejected the authorization code: {reason}")

        access_token = payload.get("access_token")
        if not access_token:
            raise OAuth2Error(f"{config.display_name} token response has no access_token")

        expires_at = None
        expires_in = payload.get("expires_in")
        if expires_in is not None:
            try:
                lifetime = datetime.timedelta(seconds=int(expires_in))
            except (TypeError, ValueError):
                raise OAuth2Error(f"{config.display_name} token response has an invalid expires_in")
            expires_at = datetime.datetime.now(datetime.timezone.utc) + lifetime

        return Credential(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            token_type=payload.get("token_type", "bearer"),
            scope=payload.get("scope", ""),
        )

    def install_routes(self, mcp: FastMCP) -> None:
        """Mount the provider redirect target on the server."""

        @mcp.custom_route(CALLBACK_PATH, methods=["GET"])
        async def oauth_callback(request: Request) -> Response:
            provider_name = request.path_params["provider"]
            if provider_name not in self._providers:
                return JSONResponse({"error": "unknown_provider"}, status_code=404)

            # The user denied access, or the provider refused the request.
            error = request.query_params.get("error")
            if error:
                logger.warning(
                    "Provider returned an authorization error",
                    extra={"log_data": {"provider": provider_name, "error": error}},
                )
                return JSONResponse(
                    {
                        "error": error,
                        "error_description": request.query_params.get("error_description", ""),
                    },
                    status_code=400,
                )

            code = request.query_params.get("code")
            state = request.query_params.get("state")
            if not code or not state:
                return JSONResponse(
                    {"error": "invalid_request", "error_description": "Missing code or state"},
                    status_code=400,
                )

            try:
                await self.complete(provider_name, code, state)
            except OAuth2Error as e:
                logger.warning(
                    "OAuth flow failed",
                    extra={"log_data": {"provider": provider_name, "reason": e.message}},
                )
                return JSONResponse(
                    {"error": "oauth2_failed", "error_description": e.message},
                    status_code=e.status_code,
                )

            title = f"{self._providers[provider_name].config.display_name} connected"
            return HTMLResponse(SUCCESS_PAGE.format(title=title))
