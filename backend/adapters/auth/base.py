"""
Credential provider contract.

This module defines the *interface only*. The bridge calls issue() once per
session initialization attempt and treats the returned credential as opaque.

Key invariants:
- issue() either returns a bearer credential or raises AuthFailure.
- A failure is fatal to the current initialization attempt only, never to
  the process.
- Providers MUST NOT retry internally.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Credential:
    """
    Short-lived bearer credential for the upstream session.

    token:
        Opaque bearer token (a JWT for Speechmatics).
    ttl_s:
        Requested lifetime in seconds. Informational only.
    """
    token: str
    ttl_s: int

    def __repr__(self) -> str:
        # Keep tokens out of logs and tracebacks
        return f"Credential(token=<redacted>, ttl_s={self.ttl_s})"


class CredentialProvider(ABC):
    """Obtains a short-lived upstream credential."""

    @abstractmethod
    async def issue(self) -> Credential:
        """
        Issue a fresh credential.

        Raises:
            AuthFailure if the identity provider rejects the request,
            the request cannot be completed, or configuration is missing.
        """
        raise NotImplementedError
