"""
Gmail service: send an email on the caller's behalf.

Tools:
- send-gmail:   sends a plain-text email from the authenticated account
- oauth2-google: starts Google authentication (see service.build_service)

Running the server:
    python -m oauth_tools.gmail
"""

import base64
from typing import Annotated

import httpx
from fastmcp import FastMCP
from pydantic import Field

from oauth_tools.actions import bearer_headers, parse_json_response, require_credential
from oauth_tools.config import settings
from oauth_tools.middleware import get_caller_id
from oauth_tools.oauth2 import HttpClientFactory, OAuth2Delegate, default_http_client
from oauth_tools.providers import GOOGLE
from oauth_tools.results import ToolResponse, card_response
from oauth_tools.service import build_service, run
from oauth_tools.token_store import Credential, InMemoryTokenStore, TokenStore

SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

# Header values are written verbatim into the message.
SINGLE_LINE = r"^[^\r\n]*$"


def compose_message(to: str, subject: str, body: str) -> str:
    """
    Build the plain-text message Gmail expects in the `raw` field.

    Raises:
        ValueError: If `to` or `subject` contains a line break, which would
                    let the value inject extra headers
    """
    for name, value in (("to", to), ("subject", subject)):
        if "\r" in value or "\n" in value:
            raise ValueError(f"{name} must not contain line breaks")
    return "".join(
        [
            'Content-Type: text/plain; charset="UTF-8"\n',
            "MIME-Version: 1.0\n",
            f"To: {to}\n",
            f"Subject: {subject}\n\n",
            body,
        ]
    )


def encode_message(message: str) -> str:
    """
    base64url-encode a message for the Gmail API.

    Standard base64 of the UTF-8 bytes with '+' -> '-', '/' -> '_' and all
    trailing '=' padding removed.
    """
    return base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii").rstrip("=")


async def send_email(
    client: httpx.AsyncClient,
    credential: Credential,
    to: str,
    subject: str,
    body: str,
) -> ToolResponse:
    raw = encode_message(compose_message(to, subject, body))
    response = await client.post(
        SEND_URL,
        headers={**bearer_headers(credential), "Content-Type": "application/json"},
        json={"raw": raw},
    )
    result = parse_json_response(GOOGLE, response, required=("id",))

    return card_response(
        text="Email sent successfully",
        data={"message_id": result["id"]},
        title="Email Sent",
        content=f"To: {to}\nSubject: {subject}\nMessage ID: {result['id']}",
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
        name="gmail-oauth-tools",
        instructions=(
            "Sends emails through the caller's Gmail account. The caller "
            "authenticates with Google the first time a tool is used."
        ),
        provider=GOOGLE,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        store=store,
        delegate=delegate,
    )

    @mcp.tool(name="send-gmail", description="Sends an email using the authenticated Gmail account.")
    async def send_gmail(
        to: Annotated[str, Field(description="Recipient email address", pattern=SINGLE_LINE)],
        subject: Annotated[str, Field(description="Subject line", pattern=SINGLE_LINE)],
        body: Annotated[str, Field(description="Plain-text message body")],
    ) -> ToolResponse:
        async def action(credential: Credential) -> ToolResponse:
            async with http_client_factory() as client:
                return await send_email(client, credential, to, subject, body)

        return await require_credential(
            provider=GOOGLE,
            caller_id=get_caller_id(),
            store=store,
            delegate=delegate,
            action=action,
            purpose="send emails",
        )

    return mcp


mcp = create_server()


if __name__ == "__main__":
    run(mcp)
