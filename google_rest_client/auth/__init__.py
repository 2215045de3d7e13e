"""OAuth and service-account credentials."""

from google_rest_client.auth.credentials import (
    AuthType,
    OAuthCredential,
    ServiceAccountCredential,
)
from google_rest_client.auth.manager import CredentialManager
from google_rest_client.auth.oauth import OAuthTokenEndpoint, build_authorization_url
from google_rest_client.auth.service_account import FetchedToken, TokenFetcher

__all__ = [
    "AuthType",
    "CredentialManager",
    "FetchedToken",
    "OAuthCredential",
    "OAuthTokenEndpoint",
    "ServiceAccountCredential",
    "TokenFetcher",
    "build_authorization_url",
]
