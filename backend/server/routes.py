"""
Route registration for the relay.

Responsibilities:
- Define the health and WebSocket endpoints
- Build one SessionBridge (with its own FrameRingBuffer) per connection
- Pump client messages into the bridge until either side closes
- Pull shared, read-only dependencies from app.state
"""

from __future__ import annotations

from fastapi import WebSocket, WebSocketDisconnect, FastAPI

from audio.frames import FrameRingBuffer
from observability.logger import log_event
from session.bridge import SessionBridge
from session.channel import WebSocketChannel


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/")
    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        channel = WebSocketChannel(ws)
        bridge = SessionBridge(
            channel=channel,
            credential_provider=app.state.credential_provider,
            upstream=app.state.upstream_adapter,
            session_config=app.state.session_config,
            frame_buffer=FrameRingBuffer(),
        )

        log_event({
            **bridge.log_context(),
            "event_type": "CONNECTION_ACCEPTED",
            "client": f"{ws.client.host}:{ws.client.port}" if ws.client else None,
        })

        try:
            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=msg.get("code", 1000))

                if msg.get("text") is not None:
                    await bridge.on_message(msg["text"])
                elif msg.get("bytes") is not None:
                    await bridge.on_message(msg["bytes"])

        except WebSocketDisconnect:
            channel.mark_closed()
            await bridge.close("client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            # One connection failing must never take down the listener
            log_event({
                **bridge.log_context(),
                "level": "error",
                "event_type": "WS_FATAL_ERROR",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await bridge.close("handler_error")

        finally:
            # Also reached on cancellation (server shutdown); close() runs once
            await bridge.close("handler_exit")
