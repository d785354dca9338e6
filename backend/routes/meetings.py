"""Meeting API router.

HTTP endpoints around the transcription pipeline: room transcription status,
transcript listing and manual entries, uploaded clip transcription, stored
meetings and the meeting assistant.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from modules import get_session_repository, get_summary_repository
from modules.assistant import AssistantService
from modules.signaling import SignalingCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["meetings"])

# Set from app.py
_coordinator: Optional[SignalingCoordinator] = None
_assistant: Optional[AssistantService] = None


def init_meeting_services(coordinator: SignalingCoordinator, assistant: AssistantService):
    """Sets the services used by the meeting endpoints.

    Args:
        coordinator: SignalingCoordinator (room state and broadcasts)
        assistant: AssistantService for /api/assistant/query
    """
    global _coordinator, _assistant
    _coordinator = coordinator
    _assistant = assistant


def _require_coordinator() -> SignalingCoordinator:
    if _coordinator is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return _coordinator


class TranscriptCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: Optional[str] = Field(default=None, alias="roomId")
    speaker_name: Optional[str] = Field(default=None, alias="speakerName")
    content: Optional[str] = None


class TranscribeRequest(BaseModel):
    """Client-encoded audio clip (e.g. a MediaRecorder webm blob) as base64."""
    model_config = ConfigDict(populate_by_name=True)

    audio_base64: Optional[str] = Field(default=None, alias="audioBase64")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    room_id: Optional[str] = Field(default=None, alias="roomId")
    speaker_name: Optional[str] = Field(default=None, alias="speakerName")


class AssistantQueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: Optional[str] = Field(default=None, alias="roomId")
    query: Optional[str] = None


@router.get("/transcription/status/{room_id}")
async def transcription_status(room_id: str):
    """Whether transcription is active for a room.

    Returns:
        dict: {"active": bool, "meetingId": Optional[int]}
    """
    manager = _require_coordinator().transcription
    return {"active": manager.is_active(room_id), "meetingId": manager.active_session_id(room_id)}


@router.get("/transcripts/{room_id}")
async def list_transcripts(room_id: str, limit: int = Query(100, ge=1, le=1000)):
    """Most recent transcript entries of a room, newest first."""
    manager = _require_coordinator().transcription
    entries = await manager.transcripts.get_room_entries(room_id, limit)
    return {"transcripts": entries}


@router.post("/transcripts")
async def add_transcript(request: TranscriptCreateRequest):
    """Adds a typed transcript line to the room's active session and broadcasts it.

    Returns:
        dict: {"success": True, "entry": {...}}

    Raises:
        HTTPException: 400 on missing fields, 409 when transcription is not active
    """
    if not request.room_id or not request.speaker_name or not request.content:
        raise HTTPException(status_code=400, detail="roomId, speakerName, and content are required")

    coordinator = _require_coordinator()
    event = await coordinator.transcription.add_text(request.room_id, request.content, request.speaker_name)
    if event is None:
        raise HTTPException(status_code=409, detail="Transcription is not active for this room")

    await coordinator.publish_transcript(event)
    return {
        "success": True,
        "entry": {"speakerName": event.speaker, "content": event.text, "timestamp": event.timestamp},
    }


@router.post("/transcribe")
async def transcribe_clip(request: TranscribeRequest):
    """Transcribes an uploaded audio clip.

    With roomId and speakerName the text is also appended to the room's
    active session and broadcast like a streamed utterance.

    Returns:
        dict: {"text": str}, or {"text": "", "skipped": True} when the room
            is not transcribing

    Raises:
        HTTPException: 400 when audioBase64 or mimeType is missing
    """
    if not request.audio_base64 or not request.mime_type:
        raise HTTPException(status_code=400, detail="audioBase64 and mimeType are required")

    coordinator = _require_coordinator()
    manager = coordinator.transcription
    if request.room_id and not manager.is_active(request.room_id):
        return {"text": "", "skipped": True}

    try:
        text = await manager.gateway.transcribe_encoded(request.audio_base64, request.mime_type)
    except Exception as e:
        logger.error(f"[Transcription] clip transcription failed: {type(e).__name__}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to transcribe audio"})

    if text and request.room_id and request.speaker_name:
        event = await manager.add_text(request.room_id, text, request.speaker_name)
        if event is not None:
            await coordinator.publish_transcript(event)

    return {"text": text}


@router.get("/meetings/{session_id}")
async def get_meeting(session_id: int):
    """Stored recording session with its summary."""
    session = await get_session_repository().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    summary = await get_summary_repository().get_summary(session_id)
    return {"meeting": session, "summary": summary}


@router.post("/assistant/query")
async def assistant_query(request: AssistantQueryRequest):
    """Answers a question about the room's meeting.

    Returns:
        dict: {"response": str}

    Raises:
        HTTPException: 400 on missing fields, 403 when transcription is not active
    """
    if not request.room_id or not request.query:
        raise HTTPException(status_code=400, detail="roomId and query are required")

    coordinator = _require_coordinator()
    if not coordinator.transcription.is_active(request.room_id):
        raise HTTPException(status_code=403, detail="Transcription is not active for this room")
    if _assistant is None:
        raise HTTPException(status_code=503, detail="Server not ready")

    try:
        response = await _assistant.answer(request.room_id, request.query)
    except Exception as e:
        logger.error(f"[Assistant] query failed: {type(e).__name__}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to process query"})
    return {"response": response}
