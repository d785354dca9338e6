"""Room and peer management module."""

from .registry import Peer, Room, RoomRegistry, TranscriptionState

__all__ = [
    "Peer",
    "Room",
    "RoomRegistry",
    "TranscriptionState",
]
