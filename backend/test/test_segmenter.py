"""Speech segmenter tests."""

import math

import numpy as np
import pytest

from modules.audio import chunk_decibels, is_speech

from conftest import speech_chunk, silence_chunk


class TestChunkDecibels:
    def test_empty_chunk_is_negative_infinity(self):
        assert chunk_decibels(b"") == -math.inf

    def test_all_zero_chunk_is_negative_infinity(self):
        assert chunk_decibels(silence_chunk()) == -math.inf

    def test_single_odd_byte_is_ignored(self):
        assert chunk_decibels(b"\x01") == -math.inf

    def test_full_scale_is_about_zero_db(self):
        chunk = np.full(160, 32767, dtype="<i2").tobytes()
        assert chunk_decibels(chunk) == pytest.approx(0.0, abs=0.01)

    def test_half_scale_is_about_minus_six_db(self):
        chunk = np.full(160, 16384, dtype="<i2").tobytes()
        assert chunk_decibels(chunk) == pytest.approx(-6.02, abs=0.01)

    def test_speech_threshold(self):
        assert is_speech(speech_chunk())
        # 100 / 32768 is about -50 dBFS
        assert not is_speech(speech_chunk(amplitude=100))
        assert not is_speech(silence_chunk())


class TestSpeechSegmenter:
    def test_emits_one_utterance_after_long_pause(self, segmenter):
        chunks = [speech_chunk(amplitude=a) for a in (6000, 7000, 8000)]
        for t, chunk in enumerate(chunks):
            assert segmenter.process_chunk("room", chunk, now_ms=t * 100.0) is None

        # 100 ms after the last speech: too short
        assert segmenter.process_chunk("room", silence_chunk(), now_ms=300.0) is None
        utterance = segmenter.process_chunk("room", silence_chunk(), now_ms=800.0)

        assert utterance is not None
        assert utterance.room_id == "room"
        assert utterance.chunk_count == 3
        assert utterance.audio == b"".join(chunks)
        assert segmenter.buffered_chunks("room") == 0

        # buffer was cleared, further silence emits nothing
        assert segmenter.process_chunk("room", silence_chunk(), now_ms=1500.0) is None

    def test_pause_must_exceed_threshold(self, segmenter):
        for t in range(3):
            segmenter.process_chunk("room", speech_chunk(), now_ms=t * 100.0)
        assert segmenter.process_chunk("room", silence_chunk(), now_ms=700.0) is None
        assert segmenter.process_chunk("room", silence_chunk(), now_ms=700.5) is not None

    def test_too_few_chunks_keeps_accumulating(self, segmenter):
        segmenter.process_chunk("room", speech_chunk(), now_ms=0.0)
        segmenter.process_chunk("room", speech_chunk(), now_ms=100.0)

        assert segmenter.process_chunk("room", silence_chunk(), now_ms=5000.0) is None
        assert segmenter.buffered_chunks("room") == 2

        segmenter.process_chunk("room", speech_chunk(), now_ms=5100.0)
        utterance = segmenter.process_chunk("room", silence_chunk(), now_ms=5700.0)
        assert utterance is not None
        assert utterance.chunk_count == 3

    def test_silence_before_speech_is_noop(self, segmenter):
        for t in range(5):
            assert segmenter.process_chunk("room", silence_chunk(), now_ms=t * 1000.0) is None
        assert segmenter.buffered_chunks("room") == 0

    def test_empty_chunks_are_ignored(self, segmenter):
        assert segmenter.process_chunk("room", b"", now_ms=0.0) is None
        assert "room" not in segmenter.states

    def test_rooms_are_independent(self, segmenter):
        for t in range(3):
            segmenter.process_chunk("a", speech_chunk(), now_ms=t * 100.0)
        segmenter.process_chunk("b", speech_chunk(), now_ms=0.0)

        assert segmenter.process_chunk("b", silence_chunk(), now_ms=1000.0) is None
        assert segmenter.process_chunk("a", silence_chunk(), now_ms=1000.0) is not None
        assert segmenter.buffered_chunks("b") == 1

    def test_reset_discards_buffer(self, segmenter):
        for t in range(3):
            segmenter.process_chunk("room", speech_chunk(), now_ms=t * 100.0)
        segmenter.reset("room")

        assert segmenter.buffered_chunks("room") == 0
        assert segmenter.process_chunk("room", silence_chunk(), now_ms=2000.0) is None

    def test_utterance_carries_last_speaker(self, segmenter):
        segmenter.process_chunk("room", speech_chunk(), now_ms=0.0, speaker="Alice")
        segmenter.process_chunk("room", speech_chunk(), now_ms=100.0, speaker="Alice")
        segmenter.process_chunk("room", speech_chunk(), now_ms=200.0)

        utterance = segmenter.process_chunk("room", silence_chunk(), now_ms=900.0)
        assert utterance.speaker == "Alice"
