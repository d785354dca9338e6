"""Transcription session management module.

Drives the per-room transcription lifecycle (INACTIVE -> ACTIVE -> INACTIVE)
and the pipeline behind it:

    audio chunk -> SpeechSegmenter -> utterance -> GeminiGateway.transcribe
        -> transcript entry (persisted) -> returned for broadcast

Stopping a session ends the recording row and summarizes the transcript in
the same call, so the caller can broadcast the summary right away.

Concurrency:
    Everything runs on one asyncio loop. State is only read or written
    between awaits, and every handler re-checks the room state after an
    external call before mutating anything.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Set

from modules.audio import SpeechSegmenter, Utterance, pcm_format
from modules.database import (
    RecordingSessionRepository,
    TranscriptRepository,
    SummaryRepository,
    get_session_repository,
    get_transcript_repository,
    get_summary_repository,
    now_ms,
)
from modules.gateways import GeminiGateway
from modules.rooms import RoomRegistry, TranscriptionState

logger = logging.getLogger(__name__)

# Participant count recorded when a session ends because the room emptied
ROOM_EMPTY_PARTICIPANT_COUNT = 1


@dataclass
class StartResult:
    """Outcome of start(). session_id is set only when started."""
    started: bool
    session_id: Optional[int] = None


@dataclass
class StopResult:
    """Outcome of stop(). summary is None when nothing was summarized."""
    stopped: bool
    session_id: Optional[int] = None
    summary: Optional[str] = None


@dataclass
class TranscriptEvent:
    """A transcribed utterance ready to broadcast.

    Attributes:
        room_id (str): room the utterance belongs to
        session_id (int): recording session it was appended to
        text (str): transcribed text
        timestamp (int): creation time (epoch ms)
        speaker (Optional[str]): speaker display name
    """
    room_id: str
    session_id: int
    text: str
    timestamp: int
    speaker: Optional[str] = None

    def to_message(self) -> dict:
        message = {"type": "transcription", "text": self.text, "timestamp": self.timestamp}
        if self.speaker:
            message["name"] = self.speaker
        return message


class TranscriptionSessionManager:
    """Per-room transcription lifecycle and utterance pipeline.

    Attributes:
        registry (RoomRegistry): room state owner
        gateway (GeminiGateway): transcription and summary backend
        segmenter (SpeechSegmenter): per-room utterance segmentation
        sessions / transcripts / summaries: persistence repositories

    Examples:
        >>> manager = TranscriptionSessionManager(registry, GeminiGateway())
        >>> result = await manager.start("standup")
        >>> event = await manager.on_utterance_finalized("standup", pcm, "Alice")
        >>> stopped = await manager.stop("standup", participant_count=3)
        >>> print(stopped.summary)
    """

    def __init__(
        self,
        registry: RoomRegistry,
        gateway: GeminiGateway,
        segmenter: Optional[SpeechSegmenter] = None,
        sessions: Optional[RecordingSessionRepository] = None,
        transcripts: Optional[TranscriptRepository] = None,
        summaries: Optional[SummaryRepository] = None,
    ):
        self.registry = registry
        self.gateway = gateway
        self.segmenter = segmenter or SpeechSegmenter()
        self.sessions = sessions or get_session_repository()
        self.transcripts = transcripts or get_transcript_repository()
        self.summaries = summaries or get_summary_repository()

        # rooms with a start() waiting on persistence
        self._starting: Set[str] = set()

    def is_active(self, room_id: str) -> bool:
        room = self.registry.get_room(room_id)
        return bool(room and room.is_active)

    def active_session_id(self, room_id: str) -> Optional[int]:
        room = self.registry.get_room(room_id)
        return room.session_id if room and room.is_active else None

    async def start(self, room_id: str) -> StartResult:
        """Starts transcription for a room.

        Args:
            room_id: room to record (created if missing)

        Returns:
            StartResult: started=False if the room is already active, a start
                is already in flight, or the session row could not be created
        """
        room = self.registry.ensure_room(room_id)
        if room.is_active or room_id in self._starting:
            logger.info(f"[Transcription] room '{room_id}' already active, start ignored")
            return StartResult(started=False, session_id=room.session_id)

        self._starting.add(room_id)
        try:
            session_id = await self.sessions.create_session(room_id, len(room.members))
        finally:
            self._starting.discard(room_id)

        if session_id is None:
            logger.error(f"[Transcription] room '{room_id}': could not create recording session")
            return StartResult(started=False)

        room = self.registry.ensure_room(room_id)
        room.transcription_state = TranscriptionState.ACTIVE
        room.session_id = session_id
        self.segmenter.reset(room_id)

        logger.info(f"[Transcription] room '{room_id}' started (session {session_id})")
        return StartResult(started=True, session_id=session_id)

    async def ingest_audio(
        self,
        room_id: str,
        chunk: bytes,
        speaker: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Optional[TranscriptEvent]:
        """Feeds one PCM chunk and transcribes any utterance it completes.

        Chunks for inactive rooms are dropped without buffering.

        Returns:
            Optional[TranscriptEvent]: the new transcript line, if any
        """
        utterance = self.segment_audio(room_id, chunk, speaker=speaker, now=now)
        if utterance is None:
            return None
        return await self.on_utterance_finalized(room_id, utterance.audio, utterance.speaker)

    def segment_audio(
        self,
        room_id: str,
        chunk: bytes,
        speaker: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Optional[Utterance]:
        """Feeds one PCM chunk to the segmenter without transcribing.

        Chunks for inactive rooms are dropped without buffering. Callers
        that must not block on transcription stamp `now` at receive time and
        hand the utterance to on_utterance_finalized() elsewhere.
        """
        if not self.is_active(room_id):
            return None
        return self.segmenter.process_chunk(room_id, chunk, now_ms=now, speaker=speaker)

    async def on_utterance_finalized(
        self,
        room_id: str,
        audio: bytes,
        speaker: Optional[str] = None,
    ) -> Optional[TranscriptEvent]:
        """Transcribes an utterance and appends it to the active session.

        Args:
            room_id: room the audio came from
            audio: 16 kHz mono 16-bit PCM
            speaker: speaker display name

        Returns:
            Optional[TranscriptEvent]: None when the room is inactive, the
                transcription is blank or failed, or the session ended while
                transcribing
        """
        session_id = self.active_session_id(room_id)
        if session_id is None:
            logger.debug(f"[Transcription] room '{room_id}' inactive, utterance dropped")
            return None

        try:
            text = await self.gateway.transcribe(audio, pcm_format.SAMPLE_RATE, pcm_format.CHANNELS)
        except Exception as e:
            logger.error(f"[Transcription] room '{room_id}': transcription error: {e}")
            return None

        text = (text or "").strip()
        if not text:
            return None

        if self.active_session_id(room_id) != session_id:
            logger.warning(f"[Transcription] room '{room_id}': session {session_id} ended "
                           f"during transcription, discarding \"{text[:50]}\"")
            return None

        entry = await self.transcripts.add_entry(session_id, room_id, text, speaker)
        if entry is None:
            logger.warning(f"[Transcription] room '{room_id}': transcript not persisted")
        timestamp = entry["created_at"] if entry else now_ms()

        return TranscriptEvent(
            room_id=room_id,
            session_id=session_id,
            text=text,
            timestamp=timestamp,
            speaker=speaker,
        )

    async def add_text(self, room_id: str, text: str, speaker: Optional[str] = None) -> Optional[TranscriptEvent]:
        """Appends an already transcribed line (e.g. typed notes) to the active session.

        Returns:
            Optional[TranscriptEvent]: None if the room is inactive or the text is blank
        """
        session_id = self.active_session_id(room_id)
        text = (text or "").strip()
        if session_id is None or not text:
            return None

        entry = await self.transcripts.add_entry(session_id, room_id, text, speaker)
        return TranscriptEvent(
            room_id=room_id,
            session_id=session_id,
            text=text,
            timestamp=entry["created_at"] if entry else now_ms(),
            speaker=speaker,
        )

    async def stop(self, room_id: str, participant_count: int) -> StopResult:
        """Stops transcription, ends the session and summarizes it.

        The room is switched to INACTIVE before any await, so a concurrent
        second stop() is a no-op.

        Args:
            room_id: room to stop
            participant_count: members present at the end

        Returns:
            StopResult: stopped=False if the room was not active
        """
        room = self.registry.get_room(room_id)
        if room is None or not room.is_active or room.session_id is None:
            logger.info(f"[Transcription] room '{room_id}' not active, stop ignored")
            return StopResult(stopped=False)

        session_id = room.session_id
        room.transcription_state = TranscriptionState.INACTIVE
        room.session_id = None
        self.segmenter.reset(room_id)

        await self.sessions.end_session(session_id, participant_count)
        logger.info(f"[Transcription] room '{room_id}' stopped (session {session_id})")

        summary = await self.summarize_session(session_id)
        return StopResult(stopped=True, session_id=session_id, summary=summary)

    async def on_room_empty(self, room_id: str) -> StopResult:
        """Ends an active session when the last member leaves."""
        if not self.is_active(room_id):
            return StopResult(stopped=False)
        logger.info(f"[Transcription] room '{room_id}' empty, ending session")
        return await self.stop(room_id, ROOM_EMPTY_PARTICIPANT_COUNT)

    async def summarize_session(self, session_id: int) -> Optional[str]:
        """Summarizes a session's transcript and stores the summary.

        Returns:
            Optional[str]: the summary, or None when there is no transcript
                or the model returned nothing
        """
        entries = await self.transcripts.get_session_entries(session_id)
        if not entries:
            logger.info(f"[Transcription] session {session_id} has no transcript, no summary")
            return None

        full_transcript = "\n\n".join(entry["text"] for entry in entries)
        logger.info(f"[Transcription] summarizing session {session_id}: "
                    f"{len(entries)} entries ({len(full_transcript)} chars)")

        try:
            summary = await self.gateway.summarize(full_transcript)
        except Exception as e:
            logger.error(f"[Transcription] session {session_id}: summary error: {e}")
            return None

        if not summary or not summary.strip():
            return None

        await self.summaries.save_summary(session_id, summary)
        return summary
