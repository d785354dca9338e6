"""Signaling wire messages.

Inbound messages are validated with pydantic; anything that fails to parse
is dropped by the coordinator. Outbound messages are plain dicts built by
the helpers below so every event has exactly one definition.

Inbound:
    join                {sessionId?, tracks[], roomId?, name?}
    start-transcription {roomId?}
    stop-transcription  {roomId?}

Outbound:
    welcome, existing-peers, peer-joined, peer-left,
    transcription-started, transcription-stopped, transcription
"""
import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

DEFAULT_ROOM_ID = "default"


class JoinMessage(BaseModel):
    """Peer announces its SFU session and tracks and enters a room."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["join"]
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    tracks: List[str] = Field(default_factory=list)
    room_id: Optional[str] = Field(default=None, alias="roomId")
    name: Optional[str] = None

    @field_validator("tracks", mode="before")
    @classmethod
    def _null_tracks(cls, value):
        return [] if value is None else value


class StartTranscriptionMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["start-transcription"]
    room_id: Optional[str] = Field(default=None, alias="roomId")


class StopTranscriptionMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["stop-transcription"]
    room_id: Optional[str] = Field(default=None, alias="roomId")


InboundMessage = Annotated[
    Union[JoinMessage, StartTranscriptionMessage, StopTranscriptionMessage],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_message(raw: Union[str, bytes, Dict[str, Any]]) -> InboundMessage:
    """Decodes and validates one inbound message.

    Args:
        raw: JSON text or an already decoded dict

    Returns:
        InboundMessage: the typed message

    Raises:
        ValueError: invalid JSON, unknown type or failed validation
            (pydantic.ValidationError is a ValueError subclass)
    """
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    if not isinstance(data, dict):
        raise ValueError("message must be a JSON object")
    return _inbound_adapter.validate_python(data)


# ============================================================
# Outbound events
# ============================================================

def welcome(peer_id: str) -> dict:
    return {"type": "welcome", "id": peer_id}


def existing_peers(peers: List[dict]) -> dict:
    return {"type": "existing-peers", "peers": peers}


def peer_joined(peer_info: dict) -> dict:
    return {"type": "peer-joined", **peer_info}


def peer_left(peer_id: str) -> dict:
    return {"type": "peer-left", "id": peer_id}


def transcription_started(meeting_id: int) -> dict:
    return {"type": "transcription-started", "meetingId": meeting_id}


def transcription_stopped(summary: Optional[str] = None) -> dict:
    message: Dict[str, Any] = {"type": "transcription-stopped"}
    if summary:
        message["summary"] = summary
    return message
