"""
Session bridge: one downstream connection <-> one upstream conversation.

Responsibilities:
- Owns the session lifecycle (IDLE -> INITIALIZING -> ACTIVE -> CLOSED)
- Parses inbound client messages and routes them by type
- Drives credential issuance and the upstream conversation start
- Forwards client audio upstream while ACTIVE (dropped otherwise, never queued)
- Re-frames agent audio through this session's FrameRingBuffer and sends
  fixed 20ms frames downstream in arrival order
- Runs cleanup exactly once, whatever mix of close/error/failure triggers it

NOT responsible for:
- Accepting connections (server.routes)
- Upstream wire protocol (adapters.flow)
- Credential exchange details (adapters.auth)

Ownership:
- Every piece of mutable state here belongs to exactly one bridge. The only
  shared inputs are the read-only adapters and config passed at construction.
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

from adapters.auth.base import CredentialProvider
from adapters.flow.base import SessionConfig, UpstreamSessionAdapter
from audio.frames import FrameRingBuffer
from audio.pcm import Samples, samples_to_pcm16le
from errors import DownstreamTransportError, MalformedInboundMessage
from observability.logger import log_event
from observability.metrics import timed
from protocol.messages import (
    AudioMessage,
    InitMessage,
    audio_message,
    error_message,
    parse_inbound,
)
from session.channel import DownstreamChannel
from session.session_state import SessionState
from spec import INIT_FAILED_MESSAGE, LOG_PAYLOAD_PREVIEW_CHARS


def _new_connection_id() -> str:
    return f"conn_{uuid4().hex[:12]}"


class SessionBridge:
    """
    One bridge == one client connection.

    All entry points are coroutines called from the connection's receive
    loop (on_message, close) or from the upstream receive task
    (on_upstream_audio, on_upstream_closed).
    """

    def __init__(
        self,
        *,
        channel: DownstreamChannel,
        credential_provider: CredentialProvider,
        upstream: UpstreamSessionAdapter[Any],
        session_config: SessionConfig | None = None,
        frame_buffer: FrameRingBuffer | None = None,
    ) -> None:
        self._channel = channel
        self._credentials = credential_provider
        self._upstream = upstream
        self._session_config = session_config or SessionConfig()

        # Per-session accumulator; never shared between bridges
        self._frames = frame_buffer if frame_buffer is not None else FrameRingBuffer()

        self.connection_id = _new_connection_id()
        self.session_id: str | None = None
        self.state = SessionState.IDLE

        self._handle: Any = None
        self._init_task: asyncio.Task[None] | None = None
        self._cleanup_started = False

        self.audio_chunks_forwarded = 0
        self.audio_chunks_dropped = 0
        self.frames_sent = 0

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def log_context(self) -> dict[str, Any]:
        """Standard logging fields for this session."""
        return {
            "connection_id": self.connection_id,
            "session_id": self.session_id,
            "state": self.state.value,
        }

    # ------------------------------------------------------------------
    # Downstream entry points
    # ------------------------------------------------------------------

    async def on_message(self, raw: str | bytes) -> None:
        """Route one inbound client message."""
        if self.closed:
            return

        try:
            msg = parse_inbound(raw)
        except MalformedInboundMessage as e:
            log_event({
                **self.log_context(),
                "level": "warning",
                "event_type": "MALFORMED_INBOUND_MESSAGE",
                "error": str(e),
                "payload_preview": _preview(raw),
            })
            return

        if isinstance(msg, InitMessage):
            self._on_init(msg)
        elif isinstance(msg, AudioMessage):
            await self._on_audio(msg)
        else:
            log_event({
                **self.log_context(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": repr(msg.msg_type),
            })

    async def on_transport_error(self, exc: BaseException) -> None:
        """Client socket failed; nothing can be sent back."""
        log_event({
            **self.log_context(),
            "level": "error",
            "event_type": "DOWNSTREAM_TRANSPORT_ERROR",
            "exception": type(exc).__name__,
            "message": str(exc),
        })
        await self.close("downstream_error")

    async def close(self, reason: str) -> None:
        """
        Tear down both sides. Idempotent.

        Safe to call concurrently from the receive loop, the init task and
        the upstream receive task: only the first call does any work.
        """
        if self._cleanup_started:
            return
        self._cleanup_started = True

        self._transition(SessionState.CLOSED, reason=reason)

        handle, self._handle = self._handle, None
        if handle is not None:
            await self._stop_upstream(handle)

        try:
            await self._channel.close()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                **self.log_context(),
                "level": "warning",
                "event_type": "DOWNSTREAM_CLOSE_FAILED",
                "error": repr(exc),
            })

        log_event({
            **self.log_context(),
            "event_type": "SESSION_CLOSED",
            "reason": reason,
            "audio_chunks_forwarded": self.audio_chunks_forwarded,
            "audio_chunks_dropped": self.audio_chunks_dropped,
            "frames_sent": self.frames_sent,
            "undrained_samples": len(self._frames),
        })
        self._frames.clear()

    # ------------------------------------------------------------------
    # Upstream entry points (called from the adapter's receive task)
    # ------------------------------------------------------------------

    async def on_upstream_audio(self, samples: Samples) -> None:
        """Re-frame agent audio and send every completed frame downstream."""
        if self.state is not SessionState.ACTIVE:
            return

        for frame in self._frames.append(samples):
            if self.closed:
                return
            try:
                await self._channel.send_json(audio_message(samples_to_pcm16le(frame)))
            except DownstreamTransportError as exc:
                await self.on_transport_error(exc)
                return
            self.frames_sent += 1

    async def on_upstream_closed(self, reason: str) -> None:
        """Upstream ended or failed on its own."""
        log_event({
            **self.log_context(),
            "level": "warning",
            "event_type": "UPSTREAM_FAILURE",
            "reason": reason,
        })
        await self.close("upstream_failure")

    # ------------------------------------------------------------------
    # Message handlers
    # ------------------------------------------------------------------

    def _on_init(self, msg: InitMessage) -> None:
        if self.state is not SessionState.IDLE:
            log_event({
                **self.log_context(),
                "event_type": "DUPLICATE_INIT_IGNORED",
                "requested_session_id": msg.session_id,
            })
            return

        if msg.session_id is None:
            log_event({
                **self.log_context(),
                "level": "warning",
                "event_type": "INIT_WITHOUT_SESSION_ID",
            })

        self.session_id = msg.session_id
        self._transition(SessionState.INITIALIZING)

        # Runs beside the receive loop so the connection keeps draining
        self._init_task = asyncio.create_task(self._initialize())

    async def _on_audio(self, msg: AudioMessage) -> None:
        if self.state is not SessionState.ACTIVE:
            self.audio_chunks_dropped += 1
            log_event({
                **self.log_context(),
                "level": "debug",
                "event_type": "AUDIO_DROPPED_NOT_ACTIVE",
                "bytes": len(msg.payload),
            })
            return

        await self._upstream.send_audio(self._handle, msg.payload)
        self.audio_chunks_forwarded += 1

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def _initialize(self) -> None:
        """
        Issue a credential, then start the upstream conversation.

        Cleanup may run while either await is suspended. After each one
        the state is re-checked: a credential obtained after close is
        discarded, and a handle obtained after close is stopped at once.
        """
        try:
            with timed("credential_issue", session_id=self.session_id):
                credential = await self._credentials.issue()

            if self.closed:
                log_event({
                    **self.log_context(),
                    "event_type": "INIT_ABANDONED_AFTER_CLOSE",
                    "stage": "credential",
                })
                return

            with timed("upstream_start", session_id=self.session_id):
                handle = await self._upstream.start(
                    credential,
                    self._session_config,
                    on_audio=self.on_upstream_audio,
                    on_closed=self.on_upstream_closed,
                )

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                **self.log_context(),
                "level": "error",
                "event_type": "SESSION_INIT_FAILED",
                "error_kind": type(exc).__name__,
                "message": str(exc),
            })
            await self._fail(INIT_FAILED_MESSAGE)
            return

        if self.closed:
            log_event({
                **self.log_context(),
                "event_type": "LATE_UPSTREAM_HANDLE_STOPPED",
            })
            await self._stop_upstream(handle)
            return

        self._handle = handle
        self._transition(SessionState.ACTIVE)

    async def _fail(self, message: str) -> None:
        """Send exactly one error downstream, then clean up."""
        if self.closed:
            return

        try:
            await self._channel.send_json(error_message(message))
        except DownstreamTransportError as exc:
            log_event({
                **self.log_context(),
                "level": "warning",
                "event_type": "ERROR_MESSAGE_NOT_DELIVERED",
                "error": str(exc),
            })

        await self.close("init_failed")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _stop_upstream(self, handle: Any) -> None:
        try:
            await self._upstream.stop(handle)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                **self.log_context(),
                "level": "warning",
                "event_type": "UPSTREAM_STOP_FAILED",
                "error": repr(exc),
            })

    def _transition(self, new_state: SessionState, **details: Any) -> None:
        old_state = self.state
        self.state = new_state
        log_event({
            **self.log_context(),
            "event_type": "SESSION_STATE_CHANGED",
            "from_state": old_state.value,
            "to_state": new_state.value,
            **details,
        })


def _preview(raw: str | bytes) -> str:
    text = raw if isinstance(raw, str) else raw[:LOG_PAYLOAD_PREVIEW_CHARS].decode("utf-8", "replace")
    return text[:LOG_PAYLOAD_PREVIEW_CHARS]
