"""Credential variants.

A client holds exactly one credential: an OAuth token pair or a
service-account key. Both are immutable; CredentialManager replaces the
whole object when tokens change, so a reader never sees a half-updated
pair.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

TOKEN_EXPIRY_BUFFER_SECONDS = 60


class AuthType(str, enum.Enum):
    OAUTH = "oauth"
    SERVICE_ACCOUNT = "service_account"


@dataclass(frozen=True)
class OAuthCredential:
    """User credential obtained through the OAuth2 consent flow."""

    client_id: str
    client_secret: str
    access_token: str = ""
    refresh_token: str = ""

    def __repr__(self) -> str:
        return f"OAuthCredential(client_id={self.client_id!r})"


@dataclass(frozen=True)
class ServiceAccountCredential:
    """Service-account key with the bearer token currently cached for it.

    Attributes:
        key_material: Parsed service-account JSON key.
        scopes: OAuth scopes requested for the token.
        cached_token: Last fetched access token, if any.
        expires_at: Epoch seconds at which cached_token expires.
    """

    key_material: dict[str, Any]
    scopes: frozenset[str] = field(default_factory=frozenset)
    cached_token: str | None = None
    expires_at: float | None = None

    def is_fresh(
        self, now: float, buffer: float = TOKEN_EXPIRY_BUFFER_SECONDS
    ) -> bool:
        """True if the cached token stays valid for at least `buffer` seconds."""
        if self.cached_token is None or self.expires_at is None:
            return False
        return now < self.expires_at - buffer

    def __repr__(self) -> str:
        email = self.key_material.get("client_email", "")
        return f"ServiceAccountCredential(client_email={email!r})"


Credential = OAuthCredential | ServiceAccountCredential


def auth_type_of(credential: Credential) -> AuthType:
    if isinstance(credential, ServiceAccountCredential):
        return AuthType.SERVICE_ACCOUNT
    return AuthType.OAUTH
