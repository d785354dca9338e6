"""Backend modules package.

Core modules of the realtime meeting backend.

Modules:
    audio: energy-based speech segmentation
    rooms: room and peer registry
    gateways: SFU session API and Gemini API clients
    database: PostgreSQL persistence (sessions, transcripts, summaries)
    transcription: per-room transcription lifecycle
    signaling: per-connection signaling state machine
    assistant: transcript-grounded meeting assistant
"""

from .audio import SpeechSegmenter, Utterance
from .rooms import RoomRegistry, Peer, Room, TranscriptionState
from .gateways import SFUGateway, SFUError, GeminiGateway
from .database import (
    DatabaseManager,
    get_db_manager,
    get_session_repository,
    get_transcript_repository,
    get_summary_repository,
)
from .transcription import TranscriptionSessionManager
from .signaling import SignalingCoordinator, ConnectionContext, PeerState
from .assistant import AssistantService

__all__ = [
    # Audio
    "SpeechSegmenter",
    "Utterance",
    # Rooms
    "RoomRegistry",
    "Peer",
    "Room",
    "TranscriptionState",
    # Gateways
    "SFUGateway",
    "SFUError",
    "GeminiGateway",
    # Database
    "DatabaseManager",
    "get_db_manager",
    "get_session_repository",
    "get_transcript_repository",
    "get_summary_repository",
    # Transcription
    "TranscriptionSessionManager",
    # Signaling
    "SignalingCoordinator",
    "ConnectionContext",
    "PeerState",
    # Assistant
    "AssistantService",
]
