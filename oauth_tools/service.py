"""
Service assembly shared by the Gmail and GitHub servers.

build_service() creates a FastMCP server wired the same way for every
provider:

- CallerIdentityMiddleware on every MCP request
- the provider registered on the OAuth2 Delegate, with an on_success
  callback that writes the new credential into this service's Token Store
- the OAuth2 callback route
- an "oauth2-<provider>" tool that always returns the authenticate card
- /health and /ready endpoints

The provider-specific action tools are added by the caller on the
returned server.
"""

import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from oauth_tools.config import settings
from oauth_tools.log import configure_logging
from oauth_tools.middleware import CallerIdentityMiddleware, get_caller_id
from oauth_tools.oauth2 import OAuth2Delegate
from oauth_tools.providers import ProviderConfig
from oauth_tools.results import ToolResponse, authenticate_response
from oauth_tools.token_store import Credential, TokenStore

logger = logging.getLogger("oauth-tools.service")


def build_service(
    *,
    name: str,
    instructions: str,
    provider: ProviderConfig,
    client_id: str,
    client_secret: str,
    store: TokenStore,
    delegate: OAuth2Delegate,
) -> FastMCP:
    mcp = FastMCP(
        name=name,
        instructions=instructions,
        middleware=[CallerIdentityMiddleware()],
    )

    async def store_credential(caller_id: str, credential: Credential) -> None:
        await store.put(caller_id, credential)

    delegate.register(provider, client_id, client_secret, on_success=store_credential)
    delegate.install_routes(mcp)

    @mcp.tool(
        name=f"oauth2-{provider.name}",
        description=f"Starts {provider.display_name} authentication and returns the authorization URL.",
    )
    async def connect_provider() -> ToolResponse:
        caller_id = get_caller_id()
        auth_url = await delegate.generate_auth_url(provider.name, caller_id)
        return authenticate_response(provider, auth_url)

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness probe."""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness probe: the OAuth2 client credentials must be configured."""
        if not delegate.is_configured(provider.name):
            return JSONResponse(
                {
                    "status": "not_ready",
                    "reason": f"{provider.display_name} OAuth2 client credentials missing",
                },
                status_code=503,
            )
        return JSONResponse({"status": "ready"})

    return mcp


def run(mcp: FastMCP) -> None:
    """Serve `mcp` over Streamable HTTP with JSON logging."""
    configure_logging(settings.log_level)
    logger.info(
        "Starting %s on %s:%d (transport=streamable-http, oauth2 callback base=%s)",
        mcp.name,
        settings.host,
        settings.port,
        settings.base_url,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
