# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

import asyncio
import base64

import numpy as np
import pytest
from fastapi.testclient import TestClient
from fastapi import WebSocketDisconnect
from fastapi.websockets import WebSocketState

from adapters.auth.base import Credential
from config import AppConfig
from errors import AuthFailure
from server.app import create_app


def make_config() -> AppConfig:
    return AppConfig(
        log_level="WARNING",
        host="127.0.0.1",
        port=6040,
        speechmatics_api_key="key",
        speechmatics_region="eu",
        jwt_ttl_s=60,
        mp_url="https://mp.example.test",
        flow_url="wss://flow.example.test",
        flow_app_id="test-app",
        flow_template_id="tmpl:latest",
    )


class FailingProvider:
    async def issue(self) -> Credential:
        raise AuthFailure("rejected")


class OkProvider:
    async def issue(self) -> Credential:
        return Credential(token="jwt", ttl_s=60)


class EchoUpstream:
    """
    Greets with one frame of silence once started, then plays every
    audio chunk sent upstream straight back as agent audio.
    """

    def __init__(self) -> None:
        self.listeners = {}
        self.stopped = []
        self._tasks = []

    async def start(self, credential, session_config, *, on_audio, on_closed):
        handle = object()
        self.listeners[handle] = on_audio
        # Runs after the bridge has stored the handle and gone ACTIVE
        self._tasks.append(asyncio.create_task(on_audio(np.zeros(160, dtype=np.int16))))
        return handle

    async def send_audio(self, handle, pcm_bytes):
        if handle is None:
            return
        await self.listeners[handle](np.frombuffer(pcm_bytes, dtype="<i2").copy())

    async def stop(self, handle):
        self.stopped.append(handle)


@pytest.fixture
def echo_upstream() -> EchoUpstream:
    return EchoUpstream()


def test_health():
    app = create_app(make_config(), credential_provider=OkProvider(), upstream_adapter=EchoUpstream())

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_auth_failure_sends_error_then_closes():
    app = create_app(
        make_config(),
        credential_provider=FailingProvider(),
        upstream_adapter=EchoUpstream(),
    )

    with TestClient(app) as client:
        with client.websocket_connect("/") as ws:
            ws.send_text("garbage that is not json")
            ws.send_json({"type": "something_new"})
            ws.send_json({"type": "init", "uuid": "u-1"})

            assert ws.receive_json() == {
                "type": "error",
                "message": "Failed to initialize Speechmatics connection",
            }
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()


def test_audio_round_trip_is_reframed(echo_upstream: EchoUpstream):
    app = create_app(
        make_config(),
        credential_provider=OkProvider(),
        upstream_adapter=echo_upstream,
    )
    samples = np.arange(400, dtype=np.int16)

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "init", "uuid": "u-1"})

            greeting = ws.receive_json()
            assert base64.b64decode(greeting["audio"]) == b"\x00\x00" * 160

            ws.send_json({
                "type": "audio",
                "audio": base64.b64encode(samples.astype("<i2").tobytes()).decode(),
            })

            frames = [ws.receive_json(), ws.receive_json()]

    out = np.frombuffer(
        b"".join(base64.b64decode(f["audio"]) for f in frames), dtype="<i2"
    )
    np.testing.assert_array_equal(out, samples[:320])
    assert len(echo_upstream.stopped) == 1


class FlakyUpstream(EchoUpstream):
    """EchoUpstream whose first conversation rejects every audio chunk."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = None

    async def start(self, credential, session_config, *, on_audio, on_closed):
        handle = await super().start(
            credential, session_config, on_audio=on_audio, on_closed=on_closed
        )
        if self.failing is None:
            self.failing = handle
        return handle

    async def send_audio(self, handle, pcm_bytes):
        if handle is self.failing:
            raise RuntimeError("provider rejected audio")
        await super().send_audio(handle, pcm_bytes)


def test_failure_on_one_connection_leaves_others_running():
    upstream = FlakyUpstream()
    app = create_app(make_config(), credential_provider=OkProvider(), upstream_adapter=upstream)
    samples = np.arange(160, dtype=np.int16)
    audio = {
        "type": "audio",
        "audio": base64.b64encode(samples.astype("<i2").tobytes()).decode(),
    }

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            first.send_json({"type": "init", "uuid": "a"})
            first.receive_json()
            second.send_json({"type": "init", "uuid": "b"})
            second.receive_json()

            first.send_json(audio)
            with pytest.raises(WebSocketDisconnect):
                first.receive_json()
            assert upstream.stopped == [upstream.failing]

            second.send_json(audio)
            frame = second.receive_json()
            np.testing.assert_array_equal(
                np.frombuffer(base64.b64decode(frame["audio"]), dtype="<i2"), samples
            )

    assert len(upstream.stopped) == 2


class ScriptedWebSocket:
    """
    Minimal stand-in for the endpoint's WebSocket: delivers init, waits for
    the upstream conversation to start, then has the handler cancelled.
    """

    client = None
    application_state = WebSocketState.CONNECTED

    def __init__(self, upstream: EchoUpstream) -> None:
        self._upstream = upstream
        self._receives = 0
        self.sent = []
        self.closed = 0

    async def accept(self) -> None:
        return None

    async def receive(self):
        self._receives += 1
        if self._receives == 1:
            return {"type": "websocket.receive", "text": '{"type": "init", "uuid": "c"}'}
        while not self._upstream.listeners:
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        raise asyncio.CancelledError()

    async def send_json(self, message) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.closed += 1


@pytest.mark.asyncio
async def test_cancelled_handler_still_stops_upstream(echo_upstream: EchoUpstream):
    app = create_app(make_config(), credential_provider=OkProvider(), upstream_adapter=echo_upstream)
    endpoint = next(r.endpoint for r in app.router.routes if getattr(r, "path", None) == "/ws")
    ws = ScriptedWebSocket(echo_upstream)

    with pytest.raises(asyncio.CancelledError):
        await endpoint(ws)

    assert len(echo_upstream.listeners) == 1
    assert echo_upstream.stopped == list(echo_upstream.listeners)
    assert ws.closed == 1
