"""Authenticated REST API client with retry and credential refresh."""

from google_rest_client.auth.credentials import AuthType
from google_rest_client.client import RestApi
from google_rest_client.config import ClientSettings
from google_rest_client.retry.policy import RetryPolicy
from google_rest_client.utils.errors import (
    AuthRefreshError,
    ClientRequestError,
    ConfigurationError,
    ForbiddenError,
    RestApiError,
    TransientNetworkError,
    TransientServerError,
    UnauthorizedError,
)

__all__ = [
    "AuthRefreshError",
    "AuthType",
    "ClientRequestError",
    "ClientSettings",
    "ConfigurationError",
    "ForbiddenError",
    "RestApi",
    "RestApiError",
    "RetryPolicy",
    "TransientNetworkError",
    "TransientServerError",
    "UnauthorizedError",
]
