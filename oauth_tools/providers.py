"""
OAuth2 provider definitions.

Each provider entry holds the static part of its OAuth2 configuration
(endpoints, scopes) plus the display metadata used on the "authenticate"
card. Client ids and secrets are not static: they come from settings when a
service registers the provider with the OAuth2 Delegate.

    PROVIDERS = {
        "provider_name": ProviderConfig(...),
    }
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProviderConfig:
    """
    Static OAuth2 configuration for one provider.

    Attributes:
        name: Registry key and callback path segment ("google", "github")
        display_name: Human-readable name for summary text and cards
        authorization_url: Where the user approves access
        token_url: Where the authorization code is exchanged for a token
        scopes: Scopes requested in the authorization URL
        logo: Logo URL shown on the authenticate card
        extra_authorize_params: Provider-specific query parameters
    """

    name: str
    display_name: str
    authorization_url: str
    token_url: str
    scopes: tuple[str, ...]
    logo: str
    extra_authorize_params: dict[str, str] = field(default_factory=dict)


GOOGLE = ProviderConfig(
    name="google",
    display_name="Google",
    authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
    token_url="https://oauth2.googleapis.com/token",
    scopes=("https://www.googleapis.com/auth/gmail.send",),
    logo="https://www.google.com/gmail/about/static-2.0/images/logo-gmail.png",
    # Google only issues a refresh token with offline access and a fresh consent.
    extra_authorize_params={"access_type": "offline", "prompt": "consent"},
)

GITHUB = ProviderConfig(
    name="github",
    display_name="GitHub",
    authorization_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    scopes=("user", "user:email", "gist"),
    logo="https://github.githubassets.com/assets/GitHub-Mark-ea2971cee799.png",
)

PROVIDERS: dict[str, ProviderConfig] = {
    GOOGLE.name: GOOGLE,
    GITHUB.name: GITHUB,
}
