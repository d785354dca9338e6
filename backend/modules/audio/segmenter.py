"""Energy-based speech segmentation module.

Splits a continuous stream of PCM chunks into utterances using a simple
turn-taking rule: speech chunks are buffered, and once a long enough pause
follows enough buffered speech, the buffer is emitted as one utterance.

Main features:
    - Per-chunk loudness in dBFS (RMS of normalized int16 samples)
    - Speech / non-speech classification against a threshold
    - Independent buffering state per room

Architecture:
    - _SegmentState: buffer, last speech timestamp and accumulating flag
    - SpeechSegmenter.states: Dict[str, _SegmentState] (room_id -> state)

Examples:
    >>> segmenter = SpeechSegmenter()
    >>> utterance = segmenter.process_chunk("room-1", chunk, now_ms=1200.0)
    >>> if utterance:
    ...     print(len(utterance.audio))
"""
import math
import time
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .config import segmenter_config, SegmenterConfig

logger = logging.getLogger(__name__)

# int16 full scale
_INT16_SCALE = 32768.0


def chunk_decibels(chunk: bytes) -> float:
    """Returns the loudness of a 16-bit little-endian PCM chunk in dBFS.

    Samples are normalized to [-1, 1] before the RMS is taken.

    Args:
        chunk: raw PCM bytes (a trailing odd byte is ignored)

    Returns:
        float: 20*log10(rms), or -inf for empty or all-zero input
    """
    usable = len(chunk) - (len(chunk) % 2)
    if usable <= 0:
        return -math.inf

    samples = np.frombuffer(chunk[:usable], dtype="<i2").astype(np.float64) / _INT16_SCALE
    rms = float(np.sqrt(np.mean(np.square(samples))))
    if rms <= 0.0:
        return -math.inf
    return 20.0 * math.log10(rms)


def is_speech(chunk: bytes, threshold_db: float = segmenter_config.SPEECH_THRESHOLD_DB) -> bool:
    """Whether the chunk is louder than the speech threshold."""
    return chunk_decibels(chunk) > threshold_db


@dataclass
class Utterance:
    """A finalized span of speech audio.

    Attributes:
        room_id (str): room the audio belongs to
        audio (bytes): concatenated PCM of the buffered speech chunks
        chunk_count (int): number of speech chunks in the utterance
        speaker (Optional[str]): speaker of the last speech chunk, if known
    """
    room_id: str
    audio: bytes
    chunk_count: int
    speaker: Optional[str] = None


@dataclass
class _SegmentState:
    buffer: List[bytes] = field(default_factory=list)
    last_speech_ms: float = 0.0
    accumulating: bool = False
    speaker: Optional[str] = None

    def clear(self) -> None:
        self.buffer = []
        self.last_speech_ms = 0.0
        self.accumulating = False
        self.speaker = None


class SpeechSegmenter:
    """Turn-taking segmenter holding independent buffers per room.

    Emission is synchronous: process_chunk() returns the utterance at the
    moment a boundary is detected, so the caller decides what to await.

    Attributes:
        config (SegmenterConfig): thresholds in use
        states (Dict[str, _SegmentState]): room_id -> buffering state

    Examples:
        >>> segmenter = SpeechSegmenter()
        >>> for t, chunk in enumerate(chunks):
        ...     utterance = segmenter.process_chunk("room-1", chunk, now_ms=t * 100.0)
    """

    def __init__(self, config: Optional[SegmenterConfig] = None):
        self.config = config or segmenter_config
        self.states: Dict[str, _SegmentState] = {}

    def process_chunk(
        self,
        room_id: str,
        chunk: bytes,
        now_ms: Optional[float] = None,
        speaker: Optional[str] = None,
    ) -> Optional[Utterance]:
        """Feeds one chunk and returns an utterance when a boundary is found.

        Args:
            room_id: room the chunk belongs to
            chunk: raw 16-bit PCM bytes
            now_ms: current time in milliseconds (monotonic clock if omitted)
            speaker: display name of the sender, attached to the utterance

        Returns:
            Optional[Utterance]: the finalized utterance, or None

        Note:
            - Empty chunks are ignored
            - Silence before any speech is a no-op
            - A short pause or a too-small buffer keeps accumulating
        """
        if not chunk:
            return None

        if now_ms is None:
            now_ms = time.monotonic() * 1000.0

        state = self.states.setdefault(room_id, _SegmentState())

        if is_speech(chunk, self.config.SPEECH_THRESHOLD_DB):
            state.buffer.append(chunk)
            state.last_speech_ms = now_ms
            state.accumulating = True
            if speaker:
                state.speaker = speaker
            return None

        if not state.accumulating:
            return None

        elapsed = now_ms - state.last_speech_ms
        if elapsed > self.config.PAUSE_THRESHOLD_MS and len(state.buffer) >= self.config.MIN_SPEECH_CHUNKS:
            utterance = Utterance(
                room_id=room_id,
                audio=b"".join(state.buffer),
                chunk_count=len(state.buffer),
                speaker=state.speaker,
            )
            state.clear()
            logger.debug(
                f"[Segmenter] room '{room_id}': utterance finalized "
                f"({utterance.chunk_count} chunks, {len(utterance.audio)} bytes)"
            )
            return utterance

        return None

    def buffered_chunks(self, room_id: str) -> int:
        """Number of speech chunks currently buffered for the room."""
        state = self.states.get(room_id)
        return len(state.buffer) if state else 0

    def reset(self, room_id: str) -> None:
        """Drops any buffered audio for the room."""
        state = self.states.pop(room_id, None)
        if state and state.buffer:
            logger.info(f"[Segmenter] room '{room_id}': discarded {len(state.buffer)} buffered chunks")
