"""Shared test fixtures.

In-memory stand-ins for the PostgreSQL repositories and the Gemini gateway,
plus a recording message channel, so the signaling and transcription logic
can be exercised without external services.
"""

import itertools
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from modules.audio import SpeechSegmenter, SegmenterConfig
from modules.rooms import RoomRegistry
from modules.signaling import SignalingCoordinator
from modules.transcription import TranscriptionSessionManager


def speech_chunk(samples: int = 1600, amplitude: int = 8000) -> bytes:
    """100 ms of loud 16 kHz PCM (about -12 dBFS)."""
    return np.full(samples, amplitude, dtype="<i2").tobytes()


def silence_chunk(samples: int = 1600) -> bytes:
    return np.zeros(samples, dtype="<i2").tobytes()


class RecordingChannel:
    """Message channel that records everything sent to it."""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.fail = fail

    async def send_json(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("channel closed")
        self.sent.append(message)

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, message_type: str) -> List[dict]:
        return [m for m in self.sent if m["type"] == message_type]


class InMemorySessionRepository:
    def __init__(self, fail: bool = False):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.fail = fail

    async def create_session(self, room_id: str, participant_count: int = 0) -> Optional[int]:
        if self.fail:
            return None
        session_id = next(self._ids)
        self.rows[session_id] = {
            "session_id": session_id,
            "room_id": room_id,
            "started_at": 1_000,
            "ended_at": None,
            "duration_seconds": None,
            "participant_count": participant_count,
        }
        return session_id

    async def end_session(self, session_id: int, participant_count: int) -> bool:
        row = self.rows.get(session_id)
        if row is None or row["ended_at"] is not None:
            return False
        row["ended_at"] = 61_000
        row["duration_seconds"] = (row["ended_at"] - row["started_at"]) // 1000
        row["participant_count"] = participant_count
        return True

    async def get_session(self, session_id: int) -> Optional[Dict[str, Any]]:
        return self.rows.get(session_id)


class InMemoryTranscriptRepository:
    def __init__(self):
        self.entries: List[Dict[str, Any]] = []
        self._ids = itertools.count(1)
        self._clock = itertools.count(1_000_000, 1_000)

    async def add_entry(self, session_id, room_id, text, speaker_name=None):
        entry = {
            "entry_id": next(self._ids),
            "session_id": session_id,
            "room_id": room_id,
            "speaker_name": speaker_name,
            "text": text,
            "created_at": next(self._clock),
        }
        self.entries.append(entry)
        return entry

    async def get_session_entries(self, session_id):
        return sorted((e for e in self.entries if e["session_id"] == session_id),
                      key=lambda e: (e["created_at"], e["entry_id"]))

    async def get_all_room_entries(self, room_id):
        return [e for e in self.entries if e["room_id"] == room_id]

    async def get_room_entries(self, room_id, limit=100):
        return list(reversed(await self.get_all_room_entries(room_id)))[:limit]

    async def get_entries_since(self, room_id, since_ms):
        return [e for e in self.entries if e["room_id"] == room_id and e["created_at"] >= since_ms]

    async def get_entries_by_speaker(self, room_id, speaker_name):
        needle = speaker_name.lower()
        return [e for e in self.entries
                if e["room_id"] == room_id and needle in (e["speaker_name"] or "").lower()]


class InMemorySummaryRepository:
    def __init__(self):
        self.summaries: Dict[int, str] = {}

    async def save_summary(self, session_id: int, summary_text: str) -> bool:
        self.summaries[session_id] = summary_text
        return True

    async def get_summary(self, session_id: int) -> Optional[str]:
        return self.summaries.get(session_id)


class FakeGeminiGateway:
    """Scripted transcription/summary backend."""

    def __init__(self, transcripts: Optional[List[str]] = None, summary: str = "- summary"):
        self.transcripts = list(transcripts or [])
        self.summary = summary
        self.transcribe_calls: List[bytes] = []
        self.encoded_calls: List[tuple] = []
        self.summarize_calls: List[str] = []
        self.query_calls: List[tuple] = []
        self.answer = "answer"
        self.is_configured = True

    async def transcribe(self, audio: bytes, sample_rate: int = 16000, channels: int = 1) -> str:
        self.transcribe_calls.append(audio)
        return self.transcripts.pop(0) if self.transcripts else ""

    async def transcribe_encoded(self, data_b64: str, mime_type: str) -> str:
        self.encoded_calls.append((data_b64, mime_type))
        return self.transcripts.pop(0) if self.transcripts else ""

    async def summarize(self, transcript: str) -> str:
        self.summarize_calls.append(transcript)
        return self.summary

    async def answer_query(self, system_prompt: str, query: str, context: str) -> str:
        self.query_calls.append((system_prompt, query, context))
        return self.answer

    async def close(self) -> None:
        pass


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def gateway():
    return FakeGeminiGateway()


@pytest.fixture
def session_store():
    return InMemorySessionRepository()


@pytest.fixture
def transcript_store():
    return InMemoryTranscriptRepository()


@pytest.fixture
def summary_store():
    return InMemorySummaryRepository()


@pytest.fixture
def segmenter():
    return SpeechSegmenter(SegmenterConfig(
        SPEECH_THRESHOLD_DB=-40.0,
        PAUSE_THRESHOLD_MS=500.0,
        MIN_SPEECH_CHUNKS=3,
    ))


@pytest.fixture
def manager(registry, gateway, segmenter, session_store, transcript_store, summary_store):
    return TranscriptionSessionManager(
        registry,
        gateway,
        segmenter=segmenter,
        sessions=session_store,
        transcripts=transcript_store,
        summaries=summary_store,
    )


@pytest.fixture
def coordinator(registry, manager):
    return SignalingCoordinator(registry, manager)
