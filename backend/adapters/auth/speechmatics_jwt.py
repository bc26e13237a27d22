"""
Speechmatics temporary-key (JWT) provider.

Exchanges the long-lived API key for a short-lived JWT scoped to Flow:

    POST {mp_url}/v1/api_keys?type=flow
    Authorization: Bearer <api key>
    {"ttl": 60, "region": "eu"}

    -> {"key_value": "<jwt>", ...}

Architectural constraints:
- No retries, no caching: every session initialization gets a new token.
- Every failure surfaces as AuthFailure; the API key never appears in
  error messages or logs.
"""

from __future__ import annotations

import httpx

from adapters.auth.base import Credential, CredentialProvider
from errors import AuthFailure
from observability.logger import log_event
from spec import JWT_REQUEST_TIMEOUT_S, JWT_TTL_S_DEFAULT, JWT_TYPE, MP_URL_DEFAULT


class SpeechmaticsJWTProvider(CredentialProvider):
    """Issues Flow JWTs from the Speechmatics management platform."""

    def __init__(
        self,
        *,
        api_key: str,
        region: str,
        ttl_s: int = JWT_TTL_S_DEFAULT,
        mp_url: str = MP_URL_DEFAULT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._region = region
        self._ttl_s = ttl_s
        self._mp_url = mp_url.rstrip("/")
        # Injectable for tests (httpx.MockTransport)
        self._transport = transport

    async def issue(self) -> Credential:
        if not self._api_key:
            raise AuthFailure("Speechmatics API key is not configured")

        log_event({
            "event_type": "JWT_REQUESTED",
            "region": self._region,
            "ttl_s": self._ttl_s,
        })

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=JWT_REQUEST_TIMEOUT_S,
            ) as client:
                response = await client.post(
                    f"{self._mp_url}/v1/api_keys",
                    params={"type": JWT_TYPE},
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={"ttl": self._ttl_s, "region": self._region},
                )
        except httpx.HTTPError as exc:
            raise AuthFailure(f"JWT request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise AuthFailure(f"JWT request rejected with HTTP {response.status_code}")

        try:
            token = response.json()["key_value"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthFailure("JWT response did not contain key_value") from exc

        if not isinstance(token, str) or not token:
            raise AuthFailure("JWT response contained an empty key_value")

        return Credential(token=token, ttl_s=self._ttl_s)
