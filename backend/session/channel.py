"""
Downstream channel abstraction.

The bridge only needs two operations from the client transport: send one JSON
message and close. WebSocketChannel adapts a FastAPI/Starlette WebSocket;
tests substitute an in-memory fake.
"""

from __future__ import annotations

from typing import Any, Protocol

from fastapi.websockets import WebSocket, WebSocketState

from errors import DownstreamTransportError


class DownstreamChannel(Protocol):
    """Message-based duplex channel to the client (send side only)."""

    async def send_json(self, message: dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        ...


class WebSocketChannel:
    """
    DownstreamChannel over a Starlette WebSocket.

    close() is a no-op once either side has closed the socket.
    """

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def mark_closed(self) -> None:
        """Record that the client side has gone away."""
        self._closed = True

    async def send_json(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise DownstreamTransportError("send on closed channel")
        try:
            await self._ws.send_json(message)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._closed = True
            raise DownstreamTransportError(f"{type(exc).__name__}: {exc}") from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self._ws.close()
        except RuntimeError:
            # Client disconnected between the state check and close()
            pass
