"""
Error taxonomy for the relay.

Propagation policy:
- ConfigError is process-fatal (raised before the listener starts).
- AuthFailure and UpstreamUnavailable are session-scoped and client-actionable:
  the bridge surfaces exactly one error message downstream, then closes.
- MalformedInboundMessage is logged and the message dropped; the session
  continues.
- DownstreamTransportError closes the session; nothing can be sent back.

Unknown inbound message types are NOT errors. They parse to UnknownMessage
(see protocol.messages) and are only logged.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class ConfigError(RelayError):
    """Required configuration is missing or invalid."""


class AuthFailure(RelayError):
    """
    Credential issuance failed.

    Raised when the identity provider rejects the request, the request
    cannot be completed, or credential configuration is missing.
    """


class UpstreamUnavailable(RelayError):
    """
    The upstream conversation could not be opened.

    Covers connection failure, handshake failure, handshake timeout and
    an explicit upstream Error during the handshake.
    """


class MalformedInboundMessage(RelayError):
    """
    A downstream message could not be parsed.

    Invalid JSON, a non-object payload, missing required fields or an
    undecodable base64 audio field.
    """


class DownstreamTransportError(RelayError):
    """The client connection failed while sending or receiving."""
