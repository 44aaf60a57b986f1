"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables. Both services (Gmail and GitHub) share this
settings object; each one only reads the provider credentials it needs.

Locally, you can set them via environment variables or a .env file:

    MCP_BASE_URL=https://my-tunnel.example.com
    MCP_GITHUB_CLIENT_ID=...
    MCP_GITHUB_CLIENT_SECRET=...
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Service configuration with environment variable bindings.

    Each field maps to an environment variable with the MCP_ prefix.
    For example, `base_url` reads from MCP_BASE_URL, `google_client_id`
    reads from MCP_GOOGLE_CLIENT_ID.
    """

    # --- Server settings ---

    host: str = "0.0.0.0"
    port: int = 2022
    log_level: str = "info"

    # --- Host authentication ---

    # Secret used to verify the JWT the orchestrating host sends with every
    # MCP request. The same secret signs the OAuth2 `state` parameter.
    # Default is for local development only.
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    # --- OAuth2 ---

    # Public URL the provider redirects back to after the user approves
    # access. Usually a tunnel URL in development. The callback path
    # /oauth2/callback/<provider> is appended to it.
    base_url: str = "http://localhost:2022"

    google_client_id: str = ""
    google_client_secret: str = ""
    github_client_id: str = ""
    github_client_secret: str = ""

    # How long a generated authorization URL stays usable.
    oauth_state_ttl_seconds: int = 600

    # --- Outbound HTTP ---

    http_timeout_seconds: float = 10.0

    model_config = {
        "env_prefix": "MCP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Singleton instance: import this from other modules.
settings = Settings()
