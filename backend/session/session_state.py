"""
Session lifecycle states.

    IDLE --init--> INITIALIZING --upstream started--> ACTIVE
      |                 |                               |
      +-----------------+------- close / failure -------+--> CLOSED

CLOSED is terminal. This is pure data owned by SessionBridge.
"""
from enum import Enum

class SessionState(Enum):
    """
    Bridge lifecycle state.

    Audio is forwarded upstream only in ACTIVE. Nothing is sent on either
    side once CLOSED.
    """
    IDLE = "IDLE"                  # Connected, waiting for init
    INITIALIZING = "INITIALIZING"  # Credential / upstream start in flight
    ACTIVE = "ACTIVE"              # Upstream conversation running
    CLOSED = "CLOSED"              # Cleaned up (terminal)
