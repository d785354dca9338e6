"""Transcription session module.

Room transcription lifecycle, utterance transcription and meeting summaries.
"""

from .manager import (
    TranscriptionSessionManager,
    StartResult,
    StopResult,
    TranscriptEvent,
    ROOM_EMPTY_PARTICIPANT_COUNT,
)

__all__ = [
    "TranscriptionSessionManager",
    "StartResult",
    "StopResult",
    "TranscriptEvent",
    "ROOM_EMPTY_PARTICIPANT_COUNT",
]
