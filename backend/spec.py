"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for the relay's behavioral constants.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (keys, ports, URLs) live in config.py instead;
  the defaults for those are declared here.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Audio Format (PCM16LE mono @ 8kHz, 20ms frames)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 8_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_FRAME_MS: Final[int] = 20

AUDIO_SAMPLES_PER_FRAME: Final[int] = (AUDIO_SAMPLE_RATE_HZ * AUDIO_FRAME_MS) // 1000
AUDIO_BYTES_PER_FRAME_PCM: Final[int] = AUDIO_SAMPLES_PER_FRAME * AUDIO_SAMPLE_WIDTH_BYTES

# Upstream audio format descriptor (sent verbatim in StartConversation)
UPSTREAM_AUDIO_FORMAT: Final[dict[str, str | int]] = {
    "type": "raw",
    "encoding": "pcm_s16le",
    "sample_rate": AUDIO_SAMPLE_RATE_HZ,
}

# =============================================================================
# Downstream JSON protocol
# =============================================================================

MSG_TYPE_INIT: Final[str] = "init"
MSG_TYPE_AUDIO: Final[str] = "audio"
MSG_TYPE_ERROR: Final[str] = "error"

INIT_FAILED_MESSAGE: Final[str] = "Failed to initialize Speechmatics connection"

# Truncation for payload previews in logs
LOG_PAYLOAD_PREVIEW_CHARS: Final[int] = 100

# =============================================================================
# Upstream (Speechmatics Flow)
# =============================================================================

FLOW_URL_DEFAULT: Final[str] = "wss://flow.api.speechmatics.com"
FLOW_PATH: Final[str] = "/v1/flow"
FLOW_APP_ID_DEFAULT: Final[str] = "avr-sts-speechmatics"
FLOW_TEMPLATE_ID_DEFAULT: Final[str] = "094671aa-4b53-496d-a4d1-ceea2b9736b9:latest"

# Seconds to wait for ConversationStarted after StartConversation
FLOW_HANDSHAKE_TIMEOUT_S: Final[float] = 10.0
FLOW_MAX_MESSAGE_BYTES: Final[int] = 2**22

# =============================================================================
# Credentials
# =============================================================================

MP_URL_DEFAULT: Final[str] = "https://mp.speechmatics.com"
JWT_TYPE: Final[str] = "flow"
JWT_TTL_S_DEFAULT: Final[int] = 60
JWT_REQUEST_TIMEOUT_S: Final[float] = 10.0
REGION_DEFAULT: Final[str] = "eu"

# =============================================================================
# Listener
# =============================================================================

LISTEN_HOST_DEFAULT: Final[str] = "0.0.0.0"
LISTEN_PORT_DEFAULT: Final[int] = 6040
