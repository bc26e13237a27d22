# backend/protocol/messages.py
"""
JSON message protocol for the downstream (client-facing) connection.

Client → Server:
    {"type": "init",  "uuid": "<session id>"}
    {"type": "audio", "audio": "<base64 PCM16LE mono 8kHz>"}

Server → Client:
    {"type": "audio", "audio": "<base64 PCM16LE, one 20ms frame>"}
    {"type": "error", "message": "<text>"}   (terminal, precedes close)

Inbound messages parse into a tagged union. Any well-formed object whose
type is not recognised becomes UnknownMessage so newer clients never
break an older server.

Usage example:

    try:
        msg = parse_inbound(raw_text)
    except MalformedInboundMessage:
        ...  # log and drop

    if isinstance(msg, InitMessage):
        ...
    elif isinstance(msg, AudioMessage):
        ...
    else:
        ...  # UnknownMessage: log only
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Union

from errors import MalformedInboundMessage
from spec import MSG_TYPE_AUDIO, MSG_TYPE_ERROR, MSG_TYPE_INIT


# -------------------------
# Inbound
# -------------------------

@dataclass(frozen=True)
class InitMessage:
    """Begin session initialization. The id is opaque and may be absent."""
    session_id: str | None


@dataclass(frozen=True)
class AudioMessage:
    """Raw PCM16LE bytes (already base64-decoded)."""
    payload: bytes


@dataclass(frozen=True)
class UnknownMessage:
    """Well-formed message with an unrecognised (or missing) type."""
    msg_type: Any


InboundMessage = Union[InitMessage, AudioMessage, UnknownMessage]


def parse_inbound(raw: str | bytes) -> InboundMessage:
    """
    Parse one downstream message.

    Raises:
        MalformedInboundMessage on invalid JSON, a non-object payload,
        or an audio message with a missing/invalid payload.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedInboundMessage(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedInboundMessage(
            f"expected JSON object, got {type(data).__name__}"
        )

    msg_type = data.get("type")

    if msg_type == MSG_TYPE_INIT:
        uuid = data.get("uuid")
        return InitMessage(session_id=None if uuid is None else str(uuid))

    if msg_type == MSG_TYPE_AUDIO:
        return AudioMessage(payload=_decode_audio_field(data.get("audio")))

    return UnknownMessage(msg_type=msg_type)


def _decode_audio_field(value: Any) -> bytes:
    if not isinstance(value, str) or not value:
        raise MalformedInboundMessage("audio message requires a non-empty 'audio'")

    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInboundMessage(f"audio field is not valid base64: {e}") from e


# -------------------------
# Outbound
# -------------------------

def audio_message(pcm_bytes: bytes) -> dict[str, str]:
    """Encode one PCM frame for the client."""
    return {
        "type": MSG_TYPE_AUDIO,
        "audio": base64.b64encode(pcm_bytes).decode("ascii"),
    }


def error_message(message: str) -> dict[str, str]:
    """Encode a terminal error notification."""
    return {"type": MSG_TYPE_ERROR, "message": message}
