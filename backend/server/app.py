"""
FastAPI app factory.

Responsibilities:
- Create and configure the FastAPI app
- Build the process-wide, read-only collaborators (credential provider,
  upstream adapter, conversation config) ONCE
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI

from adapters.auth.base import CredentialProvider
from adapters.auth.speechmatics_jwt import SpeechmaticsJWTProvider
from adapters.flow.base import SessionConfig, UpstreamSessionAdapter
from adapters.flow.speechmatics_flow import SpeechmaticsFlowAdapter
from config import AppConfig
from observability.logger import set_log_level
from server.routes import register_routes
from spec import UPSTREAM_AUDIO_FORMAT


def create_app(
    config: AppConfig,
    *,
    credential_provider: CredentialProvider | None = None,
    upstream_adapter: UpstreamSessionAdapter | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    credential_provider / upstream_adapter default to the Speechmatics
    implementations; tests inject fakes.
    """
    set_log_level(config.log_level)

    app = FastAPI(title="Speechmatics Speech-to-Speech Relay")

    app.state.config = config
    app.state.credential_provider = credential_provider or build_credential_provider(config)
    app.state.upstream_adapter = upstream_adapter or build_upstream_adapter(config)
    app.state.session_config = SessionConfig(
        template_id=config.flow_template_id,
        audio_format=dict(UPSTREAM_AUDIO_FORMAT),
    )

    register_routes(app)

    return app


def build_credential_provider(config: AppConfig) -> CredentialProvider:
    """Speechmatics JWT provider from configuration."""
    return SpeechmaticsJWTProvider(
        api_key=config.speechmatics_api_key,
        region=config.speechmatics_region,
        ttl_s=config.jwt_ttl_s,
        mp_url=config.mp_url,
    )


def build_upstream_adapter(config: AppConfig) -> SpeechmaticsFlowAdapter:
    """Speechmatics Flow adapter from configuration."""
    return SpeechmaticsFlowAdapter(
        flow_url=config.flow_url,
        app_id=config.flow_app_id,
    )
