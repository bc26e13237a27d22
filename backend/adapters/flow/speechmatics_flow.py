"""
Speechmatics Flow conversation adapter.

Speaks the Flow WebSocket protocol directly:

    connect   {flow_url}/v1/flow?jwt=<jwt>&sm-app=<app id>
    send      {"message": "StartConversation", "audio_format": {...},
               "conversation_config": {"template_id": ..., ...}}
    recv      {"message": "ConversationStarted", "id": ...}
    send      <binary PCM16LE>                    (user audio, repeated)
    recv      <binary PCM16LE>                    (agent audio, repeated)
    send      {"message": "AudioEnded", "last_seq_no": N}
    recv      {"message": "ConversationEnded"}

Role in the system:
- One WebSocket per conversation, owned by a FlowHandle.
- One receive task per handle; agent audio is delivered to the on_audio
  listener in arrival order (awaited, so a slow consumer back-pressures
  only this conversation).
- Upstream Error / ConversationEnded / socket failure are reported once via
  on_closed unless the handle was stopped first.

Architectural constraints:
- No session state machine, no downstream framing (the bridge owns both).
- No retries; handshake failures raise UpstreamUnavailable.
"""
from __future__ import annotations

import asyncio
import json
import urllib.parse
from dataclasses import dataclass, field
from typing import Any

from websockets.asyncio.client import (
    connect as ws_connect,
    ClientConnection,
)

from adapters.auth.base import Credential
from adapters.flow.base import (
    AudioListener,
    ClosedListener,
    SessionConfig,
    UpstreamSessionAdapter,
)
from audio.pcm import ByteAligner, pcm16le_to_samples
from errors import UpstreamUnavailable
from observability.logger import log_event
from spec import (
    FLOW_APP_ID_DEFAULT,
    FLOW_HANDSHAKE_TIMEOUT_S,
    FLOW_MAX_MESSAGE_BYTES,
    FLOW_PATH,
    FLOW_URL_DEFAULT,
)


@dataclass
class FlowHandle:
    """
    One live Flow conversation.

    Mutated only by SpeechmaticsFlowAdapter.
    """
    ws: ClientConnection
    conversation_id: str | None = None
    last_seq_no: int = 0
    stopped: bool = False
    recv_task: asyncio.Task[None] | None = None
    aligner: ByteAligner = field(default_factory=ByteAligner)


class SpeechmaticsFlowAdapter(UpstreamSessionAdapter[FlowHandle]):
    """
    Flow client over a raw WebSocket.

    Stateless apart from configuration; all per-conversation state lives in
    the FlowHandle, so one adapter can serve every connection.
    """

    def __init__(
        self,
        *,
        flow_url: str = FLOW_URL_DEFAULT,
        app_id: str = FLOW_APP_ID_DEFAULT,
        handshake_timeout_s: float = FLOW_HANDSHAKE_TIMEOUT_S,
    ) -> None:
        self._flow_url = flow_url.rstrip("/")
        self._app_id = app_id
        self._handshake_timeout_s = handshake_timeout_s

    # ------------------------------------------------------------------
    # Public API (UpstreamSessionAdapter contract)
    # ------------------------------------------------------------------

    async def start(
        self,
        credential: Credential,
        session_config: SessionConfig,
        *,
        on_audio: AudioListener,
        on_closed: ClosedListener,
    ) -> FlowHandle:
        try:
            ws = await ws_connect(
                self._build_url(credential),
                max_size=FLOW_MAX_MESSAGE_BYTES,
                ping_interval=None,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise UpstreamUnavailable(f"flow_connect_failed: {e!r}") from e

        early_audio: list[bytes] = []

        try:
            await ws.send(json.dumps(self._start_message(session_config)))
            started = await asyncio.wait_for(
                self._await_started(ws, early_audio),
                timeout=self._handshake_timeout_s,
            )
        except UpstreamUnavailable:
            await self._close_quietly(ws)
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            await self._close_quietly(ws)
            raise UpstreamUnavailable(f"flow_handshake_failed: {e!r}") from e

        handle = FlowHandle(ws=ws, conversation_id=started.get("id"))

        log_event({
            "event_type": "FLOW_CONVERSATION_STARTED",
            "conversation_id": handle.conversation_id,
            "template_id": session_config.template_id,
        })

        handle.recv_task = asyncio.create_task(
            self._recv_loop(handle, early_audio, on_audio, on_closed)
        )
        return handle

    async def send_audio(self, handle: FlowHandle | None, pcm_bytes: bytes) -> None:
        if handle is None or handle.stopped:
            return

        try:
            await handle.ws.send(pcm_bytes)
            handle.last_seq_no += 1
        except Exception as e:  # pylint: disable=broad-exception-caught
            # The receive task observes the dead socket and reports on_closed.
            log_event({
                "level": "warning",
                "event_type": "FLOW_SEND_FAILED",
                "conversation_id": handle.conversation_id,
                "error": repr(e),
            })

    async def stop(self, handle: FlowHandle | None) -> None:
        if handle is None or handle.stopped:
            return

        handle.stopped = True

        try:
            await handle.ws.send(json.dumps({
                "message": "AudioEnded",
                "last_seq_no": handle.last_seq_no,
            }))
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "debug",
                "event_type": "FLOW_AUDIO_ENDED_NOT_SENT",
                "conversation_id": handle.conversation_id,
                "error": repr(e),
            })

        await self._close_quietly(handle.ws)

        task = handle.recv_task
        handle.recv_task = None
        # stop() may run inside the receive task itself (via on_closed)
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        log_event({
            "event_type": "FLOW_CONVERSATION_STOPPED",
            "conversation_id": handle.conversation_id,
            "last_seq_no": handle.last_seq_no,
        })

    # ------------------------------------------------------------------
    # Protocol helpers
    # ------------------------------------------------------------------

    def _build_url(self, credential: Credential) -> str:
        qs = urllib.parse.urlencode({"jwt": credential.token, "sm-app": self._app_id})
        return f"{self._flow_url}{FLOW_PATH}?{qs}"

    @staticmethod
    def _start_message(session_config: SessionConfig) -> dict[str, Any]:
        conversation_config: dict[str, Any] = {"template_id": session_config.template_id}
        if session_config.template_variables:
            conversation_config["template_variables"] = dict(
                session_config.template_variables
            )

        return {
            "message": "StartConversation",
            "audio_format": dict(session_config.audio_format),
            "conversation_config": conversation_config,
        }

    @staticmethod
    async def _await_started(
        ws: ClientConnection,
        early_audio: list[bytes],
    ) -> dict[str, Any]:
        """Read until ConversationStarted; keep any audio that races ahead."""
        while True:
            raw = await ws.recv()

            if isinstance(raw, bytes):
                early_audio.append(raw)
                continue

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue

            msg = data.get("message")
            if msg == "ConversationStarted":
                return data
            if msg == "Error":
                raise UpstreamUnavailable(
                    f"flow_error: {data.get('type')} {data.get('reason')}"
                )

    async def _recv_loop(
        self,
        handle: FlowHandle,
        early_audio: list[bytes],
        on_audio: AudioListener,
        on_closed: ClosedListener,
    ) -> None:
        """
        Deliver agent audio until the conversation ends.

        Reports exactly one on_closed(reason) unless stop() got there first.
        """
        reason = "flow_closed"

        try:
            for chunk in early_audio:
                await self._deliver(handle, chunk, on_audio)

            async for raw in handle.ws:
                if isinstance(raw, bytes):
                    await self._deliver(handle, raw, on_audio)
                    continue

                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    log_event({
                        "level": "warning",
                        "event_type": "FLOW_UNPARSEABLE_MESSAGE",
                        "conversation_id": handle.conversation_id,
                    })
                    continue

                msg = data.get("message")

                if msg == "ConversationEnded":
                    reason = "flow_conversation_ended"
                    break

                if msg == "Error":
                    reason = f"flow_error: {data.get('type')} {data.get('reason')}"
                    break

                if msg in ("Warning", "Info"):
                    log_event({
                        "level": "warning" if msg == "Warning" else "info",
                        "event_type": f"FLOW_{msg.upper()}",
                        "conversation_id": handle.conversation_id,
                        "type": data.get("type"),
                        "reason": data.get("reason"),
                    })

        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            reason = f"flow_recv_failed: {e!r}"

        if not handle.stopped:
            log_event({
                "level": "warning",
                "event_type": "FLOW_UPSTREAM_CLOSED",
                "conversation_id": handle.conversation_id,
                "reason": reason,
            })
            await on_closed(reason)

    @staticmethod
    async def _deliver(handle: FlowHandle, chunk: bytes, on_audio: AudioListener) -> None:
        if handle.stopped:
            return

        aligned = handle.aligner.feed(chunk)
        if aligned:
            await on_audio(pcm16le_to_samples(aligned))

    @staticmethod
    async def _close_quietly(ws: ClientConnection) -> None:
        try:
            await ws.close()
        except Exception:  # pylint: disable=broad-exception-caught
            pass
