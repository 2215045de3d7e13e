"""Client configuration from the environment.

Reads configuration from environment variables:
    CLIENT_ID, CLIENT_SECRET, ACCESS_TOKEN, REFRESH_TOKEN,
    SERVICE_ACCOUNT_JSON, SERVICE_ACCOUNT_SCOPES,
    REST_API_BASE_URL, REST_API_MAX_ATTEMPTS

SERVICE_ACCOUNT_JSON holds either the key JSON itself or a path to the
key file. When it is set the client authenticates as a service account;
otherwise OAuth is used.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from google_rest_client.auth.credentials import AuthType
from google_rest_client.auth.oauth import API_URI
from google_rest_client.retry.policy import DEFAULT_MAX_ATTEMPTS
from google_rest_client.utils.errors import ConfigurationError


@dataclass
class ClientSettings:
    """Settings needed to build a RestApi client."""

    client_id: str = ""
    client_secret: str = ""
    access_token: str = ""
    refresh_token: str = ""
    service_account_config: dict[str, Any] | None = None
    scopes: tuple[str, ...] = field(default_factory=tuple)
    base_url: str = API_URI
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @property
    def auth_type(self) -> AuthType:
        if self.service_account_config is not None:
            return AuthType.SERVICE_ACCOUNT
        return AuthType.OAUTH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientSettings:
        """Load settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ).

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ

        service_account_config = None
        raw_key = env.get("SERVICE_ACCOUNT_JSON", "").strip()
        if raw_key:
            service_account_config = _load_service_account_json(raw_key)

        max_attempts_str = env.get("REST_API_MAX_ATTEMPTS", "")
        try:
            max_attempts = (
                int(max_attempts_str) if max_attempts_str else DEFAULT_MAX_ATTEMPTS
            )
        except ValueError as exc:
            raise ConfigurationError(
                f"REST_API_MAX_ATTEMPTS must be an integer, got '{max_attempts_str}'"
            ) from exc

        return cls(
            client_id=env.get("CLIENT_ID", ""),
            client_secret=env.get("CLIENT_SECRET", ""),
            access_token=env.get("ACCESS_TOKEN", ""),
            refresh_token=env.get("REFRESH_TOKEN", ""),
            service_account_config=service_account_config,
            scopes=parse_scopes(env.get("SERVICE_ACCOUNT_SCOPES", "")),
            base_url=env.get("REST_API_BASE_URL", "") or API_URI,
            max_attempts=max_attempts,
        )


def parse_scopes(value: str) -> tuple[str, ...]:
    """Split a comma- or whitespace-separated scope list."""
    return tuple(scope for scope in re.split(r"[,\s]+", value) if scope)


def _load_service_account_json(raw: str) -> dict[str, Any]:
    if raw.startswith("{"):
        text = raw
    else:
        try:
            text = Path(raw).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read service account key file '{raw}': {exc}"
            ) from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"SERVICE_ACCOUNT_JSON is not valid JSON: {exc}"
        ) from exc
    if not isinstance(data, dict):
        raise ConfigurationError("SERVICE_ACCOUNT_JSON must be a JSON object")
    return data
