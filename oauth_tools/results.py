"""
Tool result shape shared by every action tool.

A ToolResponse is always exactly one of three variants, told apart by
`ui.type`:

- "oauth2": the caller has no credential yet; `ui_data` carries the
  authorization URL and provider. `data` is None.
- "card":   the action succeeded; `data` holds the action's fields and
  `ui_data` a human-readable rendering of them.
- "error":  the provider call failed; `data` is None.
"""

from typing import Any, Literal

from pydantic import BaseModel

from oauth_tools.providers import ProviderConfig


class UIHint(BaseModel):
    """Rendering hint for the host's UI."""

    type: Literal["oauth2", "card", "error"]
    ui_data: dict[str, Any]


class ToolResponse(BaseModel):
    text: str
    data: dict[str, Any] | None = None
    ui: UIHint | None = None

    @property
    def needs_authentication(self) -> bool:
        return self.ui is not None and self.ui.type == "oauth2"

    @property
    def is_error(self) -> bool:
        return self.ui is not None and self.ui.type == "error"


def authenticate_response(provider: ProviderConfig, auth_url: str, purpose: str = "continue") -> ToolResponse:
    return ToolResponse(
        text=(
            f"Please authenticate with {provider.display_name} first, "
            f"a component to authenticate with {provider.display_name} is displayed"
        ),
        data=None,
        ui=UIHint(
            type="oauth2",
            ui_data={
                "title": f"{provider.display_name} Authentication",
                "logo": provider.logo,
                "content": f"Please authenticate with {provider.display_name} to {purpose}",
                "url": auth_url,
                "provider": provider.name,
            },
        ),
    )


def card_response(text: str, data: dict[str, Any], title: str, content: str, **extra: Any) -> ToolResponse:
    """Successful action result. Extra keyword arguments go into ui_data."""
    return ToolResponse(
        text=text,
        data=data,
        ui=UIHint(type="card", ui_data={"title": title, "content": content, **extra}),
    )


def error_response(provider: ProviderConfig, message: str, status_code: int | None = None) -> ToolResponse:
    return ToolResponse(
        text=f"{provider.display_name} request failed: {message}",
        data=None,
        ui=UIHint(
            type="error",
            ui_data={
                "title": f"{provider.display_name} Error",
                "content": message,
                "provider": provider.name,
                "status_code": status_code,
            },
        ),
    )
