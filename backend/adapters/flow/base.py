"""
Upstream conversation adapter contract.

This module defines the *interface only*. The upstream provider is a black-box
bidirectional stream: audio goes up via send_audio(), agent audio comes back
via the on_audio callback registered at start().

Key invariants:
- Listeners are registered BEFORE the conversation starts, so no agent audio
  can be missed.
- send_audio() never buffers. Audio for a missing or stopped handle is
  dropped; callers gate on session state.
- stop() is idempotent and safe on None / never-started / stopped handles.
- on_closed() fires at most once per handle, and never after stop().
- Adapters MUST NOT retry internally.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from adapters.auth.base import Credential
from audio.pcm import Samples
from spec import FLOW_TEMPLATE_ID_DEFAULT, UPSTREAM_AUDIO_FORMAT

# Awaited once per inbound agent-audio chunk, in arrival order
AudioListener = Callable[[Samples], Awaitable[None]]

# Awaited when the upstream side ends on its own (reason string)
ClosedListener = Callable[[str], Awaitable[None]]

HandleT = TypeVar("HandleT")


@dataclass(frozen=True)
class SessionConfig:
    """
    Per-conversation upstream configuration.

    template_id:
        Conversation template identity (agent persona / flow).
    audio_format:
        Format descriptor for audio in both directions.
    template_variables:
        Optional template substitutions.
    """
    template_id: str = FLOW_TEMPLATE_ID_DEFAULT
    audio_format: dict[str, Any] = field(
        default_factory=lambda: dict(UPSTREAM_AUDIO_FORMAT)
    )
    template_variables: dict[str, str] = field(default_factory=dict)


class UpstreamSessionAdapter(ABC, Generic[HandleT]):
    """Wraps a streaming upstream conversation client."""

    @abstractmethod
    async def start(
        self,
        credential: Credential,
        session_config: SessionConfig,
        *,
        on_audio: AudioListener,
        on_closed: ClosedListener,
    ) -> HandleT:
        """
        Open an upstream conversation.

        Raises:
            UpstreamUnavailable on connection or handshake failure.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_audio(self, handle: HandleT | None, pcm_bytes: bytes) -> None:
        """Forward raw PCM upstream. No-op if handle is None or stopped."""
        raise NotImplementedError

    @abstractmethod
    async def stop(self, handle: HandleT | None) -> None:
        """End the conversation and release provider resources. Idempotent."""
        raise NotImplementedError
