"""
Token Store: caller identity -> provider credential.

The store is the only shared mutable state of a service. It is created once
per service and handed to the tools and to the OAuth2 completion callback
when the server is built, rather than living as a module global.

InMemoryTokenStore keeps credentials in a dict for the process lifetime: no
expiry, no capacity bound, no persistence. A persistent or expiring store
only needs to implement the same three coroutines.
"""

import asyncio
import datetime
import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger("oauth-tools.token_store")


@dataclass(frozen=True)
class Credential:
    """
    Bearer token material issued by a provider.

    Attributes:
        access_token: Sent as "Authorization: Bearer <access_token>"
        refresh_token: Kept for completeness, never used (no refresh logic)
        expires_at: UTC expiry, None when the provider did not say
        token_type: Usually "bearer"
        scope: Scopes the user actually granted, as reported by the provider
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime.datetime | None = None
    token_type: str = "bearer"
    scope: str = ""

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return now >= self.expires_at

    def __repr__(self) -> str:
        # Keep token material out of logs and tracebacks.
        return (
            f"Credential(token_type={self.token_type!r}, scope={self.scope!r}, "
            f"expires_at={self.expires_at!r})"
        )


class TokenStore(Protocol):
    async def get(self, caller_id: str) -> Credential | None: ...

    async def put(self, caller_id: str, credential: Credential) -> None: ...

    async def delete(self, caller_id: str) -> bool: ...


class InMemoryTokenStore:
    """
    Lock-guarded dict implementation of TokenStore.

    Each operation is atomic. There is no check-and-act across operations:
    a tool that reads "absent" while a completion callback is writing will
    simply prompt for authentication again.
    """

    def __init__(self) -> None:
        self._credentials: dict[str, Credential] = {}
        self._lock = asyncio.Lock()

    async def get(self, caller_id: str) -> Credential | None:
        async with self._lock:
            return self._credentials.get(caller_id)

    async def put(self, caller_id: str, credential: Credential) -> None:
        """Store a credential, replacing any previous one (last write wins)."""
        async with self._lock:
            replaced = caller_id in self._credentials
            self._credentials[caller_id] = credential
        logger.info(
            "Stored credential",
            extra={"log_data": {"caller": caller_id, "replaced": replaced}},
        )

    async def delete(self, caller_id: str) -> bool:
        async with self._lock:
            removed = self._credentials.pop(caller_id, None) is not None
        if removed:
            logger.info("Deleted credential", extra={"log_data": {"caller": caller_id}})
        return removed

    def __len__(self) -> int:
        return len(self._credentials)
