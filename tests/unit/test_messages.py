# pylint: disable=missing-module-docstring,missing-function-docstring

import base64
import json

import pytest

from errors import MalformedInboundMessage
from protocol.messages import (
    AudioMessage,
    InitMessage,
    UnknownMessage,
    audio_message,
    error_message,
    parse_inbound,
)


# ---------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------

def test_parse_init():
    msg = parse_inbound(json.dumps({"type": "init", "uuid": "abc-123"}))

    assert msg == InitMessage(session_id="abc-123")


def test_parse_audio_decodes_base64():
    pcm = b"\x01\x00\xff\x7f"
    raw = json.dumps({"type": "audio", "audio": base64.b64encode(pcm).decode()})

    assert parse_inbound(raw) == AudioMessage(payload=pcm)


def test_parse_accepts_bytes_payload():
    msg = parse_inbound(b'{"type": "init", "uuid": "u1"}')

    assert msg == InitMessage(session_id="u1")


@pytest.mark.parametrize("payload, expected", [
    ({"type": "init"}, None),
    ({"type": "init", "uuid": None}, None),
    ({"type": "init", "uuid": 12345}, "12345"),
    ({"type": "init", "uuid": ""}, ""),
])
def test_init_session_id_is_opaque(payload, expected):
    assert parse_inbound(json.dumps(payload)) == InitMessage(session_id=expected)


@pytest.mark.parametrize("payload", [
    {"type": "dtmf", "digit": "5"},
    {"type": None},
    {"uuid": "no-type"},
])
def test_unrecognised_type_is_unknown_not_error(payload):
    msg = parse_inbound(json.dumps(payload))

    assert isinstance(msg, UnknownMessage)
    assert msg.msg_type == payload.get("type")


@pytest.mark.parametrize("raw", [
    "not json",
    "",
    "[1, 2, 3]",
    '"init"',
    json.dumps({"type": "audio"}),
    json.dumps({"type": "audio", "audio": ""}),
    json.dumps({"type": "audio", "audio": "***not-base64***"}),
    b"\xff\xfe\x00garbage",
])
def test_malformed_messages_raise(raw):
    with pytest.raises(MalformedInboundMessage):
        parse_inbound(raw)


# ---------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------

def test_audio_message_shape():
    pcm = b"\x00\x01" * 160

    msg = audio_message(pcm)

    assert msg["type"] == "audio"
    assert base64.b64decode(msg["audio"]) == pcm


def test_error_message_shape():
    assert error_message("boom") == {"type": "error", "message": "boom"}
