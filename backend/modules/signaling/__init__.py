"""Room signaling module.

Per-connection signaling state machine and the JSON wire messages.
"""

from .coordinator import SignalingCoordinator, ConnectionContext, PeerState
from .messages import (
    DEFAULT_ROOM_ID,
    JoinMessage,
    StartTranscriptionMessage,
    StopTranscriptionMessage,
    parse_message,
)

__all__ = [
    "SignalingCoordinator",
    "ConnectionContext",
    "PeerState",
    "DEFAULT_ROOM_ID",
    "JoinMessage",
    "StartTranscriptionMessage",
    "StopTranscriptionMessage",
    "parse_message",
]
