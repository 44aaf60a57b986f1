"""
GitHub service: read the caller's profile and create gists.

Tools:
- get-github-profile: fetches the authenticated user's profile
- create-github-gist: creates a gist with a single file
- oauth2-github:      starts GitHub authentication (see service.build_service)

Running the server:
    python -m oauth_tools.github
"""

from typing import Annotated

import httpx
from fastmcp import FastMCP
from pydantic import Field

from oauth_tools.actions import bearer_headers, parse_json_response, require_credential
from oauth_tools.config import settings
from oauth_tools.middleware import get_caller_id
from oauth_tools.oauth2 import HttpClientFactory, OAuth2Delegate, default_http_client
from oauth_tools.providers import GITHUB
from oauth_tools.results import ToolResponse, card_response
from oauth_tools.service import build_service, run
from oauth_tools.token_store import Credential, InMemoryTokenStore, TokenStore

API_URL = "https://api.github.com"
USER_URL = f"{API_URL}/user"
GISTS_URL = f"{API_URL}/gists"

PROFILE_FIELDS = ("login", "name", "email", "bio", "public_repos")


async def get_profile(client: httpx.AsyncClient, credential: Credential) -> ToolResponse:
    response = await client.get(
        USER_URL,
        headers={**bearer_headers(credential), "Accept": "application/json"},
    )
    profile = parse_json_response(GITHUB, response, required=("login",))

    # name, email and bio are null for many accounts; passed through as-is.
    data = {field: profile.get(field) for field in PROFILE_FIELDS}

    return card_response(
        text=f"Retrieved GitHub profile for {data['login']}",
        data=data,
        title="GitHub Profile",
        content=(
            f"Login: {data['login']}\n"
            f"Name: {data['name']}\n"
            f"Email: {data['email']}\n"
            f"Bio: {data['bio']}\n"
            f"Public Repos: {data['public_repos']}"
        ),
    )


def gist_payload(description: str, public: bool, filename: str, content: str) -> dict:
    return {
        "description": description,
        "public": public,
        "files": {filename: {"content": content}},
    }


async def create_gist(
    client: httpx.AsyncClient,
    credential: Credential,
    description: str,
    public: bool,
    filename: str,
    content: str,
) -> ToolResponse:
    response = await client.post(
        GISTS_URL,
        headers={
            **bearer_headers(credential),
            "Accept": "application/json",
            "Content-Type": "application/json",
        },
        json=gist_payload(description, public, filename, content),
    )
    gist = parse_json_response(GITHUB, response, required=("html_url", "id"))

    return card_response(
        text=f"Created Gist: {gist['html_url']}",
        data={"html_url": gist["html_url"], "id": gist["id"]},
        title="GitHub Gist",
        content=f"URL: {gist['html_url']}\nID: {gist['id']}",
        buttonText="View Gist",
        buttonUrl=gist["html_url"],
    )


def create_server(
    store: TokenStore | None = None,
    delegate: OAuth2Delegate | None = None,
    http_client_factory: HttpClientFactory | None = None,
) -> FastMCP:
    store = store if store is not None else InMemoryTokenStore()
    http_client_factory = http_client_factory or default_http_client
    delegate = delegate or OAuth2Delegate(http_client_factory=http_client_factory)

    mcp = build_service(
        name="github-oauth-tools",
        instructions=(
            "Reads the caller's GitHub profile and creates gists on their "
            "behalf. The caller authenticates with GitHub the first time a "
            "tool is used."
        ),
        provider=GITHUB,
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        store=store,
        delegate=delegate,
    )

    @mcp.tool(name="get-github-profile", description="Fetches the authenticated user's GitHub profile.")
    async def get_github_profile() -> ToolResponse:
        async def action(credential: Credential) -> ToolResponse:
            async with http_client_factory() as client:
                return await get_profile(client, credential)

        return await require_credential(
            provider=GITHUB,
            caller_id=get_caller_id(),
            store=store,
            delegate=delegate,
            action=action,
        )

    @mcp.tool(name="create-github-gist", description="Creates a new GitHub Gist with the provided content.")
    async def create_github_gist(
        description: Annotated[str, Field(description="Gist description")],
        filename: Annotated[str, Field(description="Name of the single file in the gist")],
        content: Annotated[str, Field(description="File content")],
        public: Annotated[bool, Field(description="Whether the gist is public")] = True,
    ) -> ToolResponse:
        async def action(credential: Credential) -> ToolResponse:
            async with http_client_factory() as client:
                return await create_gist(client, credential, description, public, filename, content)

        return await require_credential(
            provider=GITHUB,
            caller_id=get_caller_id(),
            store=store,
            delegate=delegate,
            action=action,
        )

    return mcp


mcp = create_server()


if __name__ == "__main__":
    run(mcp)
