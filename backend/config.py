"""
Application configuration.

Responsibilities:
- Read environment variables once at process startup
- Provide a typed, immutable config object
- Fail fast when the upstream API key is missing

Non-responsibilities:
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from errors import ConfigError
from spec import (
    FLOW_APP_ID_DEFAULT,
    FLOW_TEMPLATE_ID_DEFAULT,
    FLOW_URL_DEFAULT,
    JWT_TTL_S_DEFAULT,
    LISTEN_HOST_DEFAULT,
    LISTEN_PORT_DEFAULT,
    MP_URL_DEFAULT,
    REGION_DEFAULT,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and shared read-only by every
    connection (the only state that crosses sessions).
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    log_level: str

    # ------------------------------------------------------------------
    # Listener
    # ------------------------------------------------------------------

    host: str
    port: int

    # ------------------------------------------------------------------
    # Speechmatics
    # ------------------------------------------------------------------

    speechmatics_api_key: str
    speechmatics_region: str
    jwt_ttl_s: int
    mp_url: str

    flow_url: str
    flow_app_id: str
    flow_template_id: str

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ConfigError if SPEECHMATICS_API_KEY is missing or a numeric
            variable does not parse.
        """
        api_key = os.environ.get("SPEECHMATICS_API_KEY")
        if not api_key:
            raise ConfigError("SPEECHMATICS_API_KEY is not set")

        return AppConfig(
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            host=os.environ.get("HOST", LISTEN_HOST_DEFAULT),
            port=_int_env("PORT", LISTEN_PORT_DEFAULT),

            speechmatics_api_key=api_key,
            speechmatics_region=os.environ.get("SPEECHMATICS_REGION") or REGION_DEFAULT,
            jwt_ttl_s=_int_env("SPEECHMATICS_JWT_TTL_S", JWT_TTL_S_DEFAULT),
            mp_url=os.environ.get("SPEECHMATICS_MP_URL", MP_URL_DEFAULT),

            flow_url=os.environ.get("SPEECHMATICS_FLOW_URL", FLOW_URL_DEFAULT),
            flow_app_id=os.environ.get("SPEECHMATICS_APP_ID", FLOW_APP_ID_DEFAULT),
            flow_template_id=os.environ.get(
                "SPEECHMATICS_TEMPLATE_ID", FLOW_TEMPLATE_ID_DEFAULT
            ),
        )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
