"""Signaling coordinator tests."""

import asyncio
import json

import pytest

from modules.signaling import PeerState

from conftest import RecordingChannel, speech_chunk, silence_chunk


async def _join(coordinator, channel, room_id="standup", name=None, session_id=None, tracks=None):
    ctx = await coordinator.connect(channel)
    message = {"type": "join", "roomId": room_id, "sessionId": session_id or f"sfu-{ctx.peer_id[:4]}",
               "tracks": tracks or ["audio"]}
    if name:
        message["name"] = name
    await coordinator.handle_message(ctx, json.dumps(message))
    return ctx


@pytest.mark.asyncio
async def test_connect_sends_welcome(coordinator, registry):
    channel = RecordingChannel()
    ctx = await coordinator.connect(channel)

    assert channel.sent == [{"type": "welcome", "id": ctx.peer_id}]
    assert ctx.state == PeerState.CONNECTED
    assert registry.peer_count == 1


@pytest.mark.asyncio
async def test_first_join_gets_no_existing_peers(coordinator):
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel)

    assert channel.types() == ["welcome"]
    assert ctx.state == PeerState.JOINED
    assert ctx.room_id == "standup"


@pytest.mark.asyncio
async def test_join_exchanges_peer_announcements(coordinator):
    a, b = RecordingChannel(), RecordingChannel()
    ctx_a = await _join(coordinator, a, name="Alice", session_id="sfu-a")
    ctx_b = await _join(coordinator, b, name="Bob", session_id="sfu-b", tracks=["audio", "video"])

    assert b.of_type("existing-peers") == [{
        "type": "existing-peers",
        "peers": [{"id": ctx_a.peer_id, "sessionId": "sfu-a", "tracks": ["audio"], "name": "Alice"}],
    }]
    assert a.of_type("peer-joined") == [{
        "type": "peer-joined", "id": ctx_b.peer_id, "sessionId": "sfu-b",
        "tracks": ["audio", "video"], "name": "Bob",
    }]
    assert b.of_type("peer-joined") == []


@pytest.mark.asyncio
async def test_join_without_room_uses_default(coordinator, registry):
    channel = RecordingChannel()
    ctx = await coordinator.connect(channel)
    await coordinator.handle_message(ctx, '{"type": "join", "tracks": []}')

    assert ctx.room_id == "default"
    assert registry.get_room_count("default") == 1


@pytest.mark.asyncio
async def test_join_to_other_room_while_joined_is_dropped(coordinator, registry):
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel, room_id="one")
    await coordinator.handle_message(ctx, '{"type": "join", "roomId": "two"}')

    assert ctx.room_id == "one"
    assert registry.get_room_count("one") == 1
    assert registry.get_room("two") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2, 3]",
    '{"type": "dance"}',
    '{"type": "join", "tracks": "audio"}',
    '{"no": "type"}',
])
async def test_malformed_messages_are_dropped(coordinator, registry, raw):
    channel = RecordingChannel()
    ctx = await coordinator.connect(channel)

    await coordinator.handle_message(ctx, raw)
    assert ctx.state == PeerState.CONNECTED

    # the connection keeps working
    await coordinator.handle_message(ctx, '{"type": "join", "roomId": "standup"}')
    assert ctx.state == PeerState.JOINED


@pytest.mark.asyncio
async def test_start_transcription_broadcasts_to_room(coordinator, session_store):
    a, b = RecordingChannel(), RecordingChannel()
    ctx_a = await _join(coordinator, a)
    await _join(coordinator, b)

    await coordinator.handle_message(ctx_a, '{"type": "start-transcription"}')

    [session_id] = session_store.rows
    expected = {"type": "transcription-started", "meetingId": session_id}
    assert a.of_type("transcription-started") == [expected]
    assert b.of_type("transcription-started") == [expected]

    # already active: nothing new is broadcast
    await coordinator.handle_message(ctx_a, '{"type": "start-transcription", "roomId": "standup"}')
    assert len(a.of_type("transcription-started")) == 1


@pytest.mark.asyncio
async def test_late_joiner_learns_active_transcription(coordinator, session_store):
    a, b = RecordingChannel(), RecordingChannel()
    ctx_a = await _join(coordinator, a)
    await coordinator.handle_message(ctx_a, '{"type": "start-transcription"}')

    await _join(coordinator, b)

    [session_id] = session_store.rows
    assert b.of_type("transcription-started") == [{"type": "transcription-started", "meetingId": session_id}]


@pytest.mark.asyncio
async def test_transcription_control_without_room_is_dropped(coordinator, session_store):
    channel = RecordingChannel()
    ctx = await coordinator.connect(channel)
    await coordinator.handle_message(ctx, '{"type": "start-transcription"}')

    assert session_store.rows == {}


@pytest.mark.asyncio
async def test_stop_transcription_broadcasts_summary(coordinator, gateway, session_store):
    a, b = RecordingChannel(), RecordingChannel()
    ctx_a = await _join(coordinator, a)
    await _join(coordinator, b)
    await coordinator.handle_message(ctx_a, '{"type": "start-transcription"}')
    await coordinator.transcription.add_text("standup", "we ship friday", "Alice")

    await coordinator.handle_message(ctx_a, '{"type": "stop-transcription"}')

    expected = {"type": "transcription-stopped", "summary": "- summary"}
    assert a.of_type("transcription-stopped") == [expected]
    assert b.of_type("transcription-stopped") == [expected]
    [row] = session_store.rows.values()
    assert row["participant_count"] == 2


@pytest.mark.asyncio
async def test_stop_without_transcript_omits_summary(coordinator):
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel)
    await coordinator.handle_message(ctx, '{"type": "start-transcription"}')
    await coordinator.handle_message(ctx, '{"type": "stop-transcription"}')

    assert channel.of_type("transcription-stopped") == [{"type": "transcription-stopped"}]


@pytest.mark.asyncio
async def test_disconnect_notifies_remaining_peers(coordinator, registry):
    a, b = RecordingChannel(), RecordingChannel()
    ctx_a = await _join(coordinator, a)
    ctx_b = await _join(coordinator, b)

    await coordinator.disconnect(ctx_b)

    assert a.of_type("peer-left") == [{"type": "peer-left", "id": ctx_b.peer_id}]
    assert ctx_b.state == PeerState.CLOSED
    assert registry.peer_count == 1

    # closing twice is harmless
    await coordinator.disconnect(ctx_b)
    assert len(a.of_type("peer-left")) == 1
    assert ctx_a.state == PeerState.JOINED


@pytest.mark.asyncio
async def test_last_peer_leaving_ends_active_session(coordinator, session_store):
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel)
    await coordinator.handle_message(ctx, '{"type": "start-transcription"}')

    await coordinator.disconnect(ctx)

    [row] = session_store.rows.values()
    assert row["ended_at"] is not None
    assert row["participant_count"] == 1
    assert not coordinator.transcription.is_active("standup")


@pytest.mark.asyncio
async def test_unjoined_disconnect(coordinator, registry):
    ctx = await coordinator.connect(RecordingChannel())
    await coordinator.disconnect(ctx)

    assert registry.peer_count == 0
    assert ctx.state == PeerState.CLOSED


@pytest.mark.asyncio
async def test_failing_recipient_does_not_block_others(coordinator):
    broken, healthy, joiner = RecordingChannel(), RecordingChannel(), RecordingChannel()
    await _join(coordinator, broken)
    await _join(coordinator, healthy)
    broken.fail = True

    ctx = await _join(coordinator, joiner)

    assert [m["id"] for m in healthy.of_type("peer-joined")] == [ctx.peer_id]


@pytest.mark.asyncio
async def test_messages_after_close_are_ignored(coordinator, registry):
    ctx = await coordinator.connect(RecordingChannel())
    await coordinator.disconnect(ctx)
    await coordinator.handle_message(ctx, '{"type": "join", "roomId": "standup"}')

    assert registry.get_room("standup") is None


@pytest.mark.asyncio
async def test_two_peer_meeting_scenario(coordinator, gateway):
    gateway.transcripts = ["hello"]
    a, b = RecordingChannel(), RecordingChannel()
    ctx_a = await _join(coordinator, a, name="Alice")
    await _join(coordinator, b, name="Bob")
    await coordinator.handle_message(ctx_a, '{"type": "start-transcription"}')

    for t in range(3):
        await coordinator.transcription.ingest_audio("standup", speech_chunk(), speaker="Alice", now=t * 100.0)
    event = await coordinator.transcription.ingest_audio("standup", silence_chunk(), now=900.0)
    await coordinator.publish_transcript(event)

    for channel in (a, b):
        [line] = channel.of_type("transcription")
        assert line["text"] == "hello"
        assert line["name"] == "Alice"

    await coordinator.handle_message(ctx_a, '{"type": "stop-transcription"}')

    assert gateway.summarize_calls == ["hello"]
    for channel in (a, b):
        assert channel.of_type("transcription-stopped") == [{"type": "transcription-stopped", "summary": "- summary"}]


@pytest.mark.asyncio
async def test_streamed_audio_attributes_speaker(coordinator, gateway):
    gateway.transcripts = ["status update"]
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel, name="Carol")
    await coordinator.handle_message(ctx, '{"type": "start-transcription"}')

    for t in range(3):
        assert coordinator.accept_audio("standup", ctx.peer_id, speech_chunk(), now=t * 100.0) is None
    utterance = coordinator.accept_audio("standup", ctx.peer_id, silence_chunk(), now=1000.0)
    assert utterance.speaker == "Carol"

    await coordinator.drain_audio("standup")

    [line] = channel.of_type("transcription")
    assert line["text"] == "status update"
    assert line["name"] == "Carol"


@pytest.mark.asyncio
async def test_streamed_audio_ignored_when_inactive(coordinator, gateway):
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel)

    for t in range(5):
        assert coordinator.accept_audio("standup", ctx.peer_id, speech_chunk(), now=t * 100.0) is None
    assert coordinator.accept_audio("standup", ctx.peer_id, silence_chunk(), now=2000.0) is None
    await coordinator.drain_audio("standup")
    assert gateway.transcribe_calls == []


@pytest.mark.asyncio
async def test_slow_transcription_does_not_delay_segmentation(coordinator, gateway):
    release = asyncio.Event()
    texts = iter(["first", "second"])

    async def slow_transcribe(audio, sample_rate=16000, channels=1):
        gateway.transcribe_calls.append(audio)
        await release.wait()
        return next(texts)

    gateway.transcribe = slow_transcribe
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel, name="Dana")
    await coordinator.handle_message(ctx, '{"type": "start-transcription"}')

    for t in (0.0, 100.0, 200.0):
        coordinator.accept_audio("standup", ctx.peer_id, speech_chunk(), now=t)
    first = coordinator.accept_audio("standup", ctx.peer_id, silence_chunk(), now=800.0)
    await asyncio.sleep(0)

    # the first utterance is still being transcribed while the second one is cut
    assert len(gateway.transcribe_calls) == 1
    for t in (1000.0, 1100.0, 1200.0):
        coordinator.accept_audio("standup", ctx.peer_id, speech_chunk(), now=t)
    second = coordinator.accept_audio("standup", ctx.peer_id, silence_chunk(), now=1800.0)

    assert first is not None and second is not None
    assert coordinator.transcription.segmenter.buffered_chunks("standup") == 0

    release.set()
    await coordinator.drain_audio("standup")

    assert [m["text"] for m in channel.of_type("transcription")] == ["first", "second"]
    assert len(gateway.transcribe_calls) == 2


@pytest.mark.asyncio
async def test_close_audio_cancels_pending_transcription(coordinator, gateway):
    async def hung_transcribe(audio, sample_rate=16000, channels=1):
        await asyncio.Event().wait()

    gateway.transcribe = hung_transcribe
    channel = RecordingChannel()
    ctx = await _join(coordinator, channel)
    await coordinator.handle_message(ctx, '{"type": "start-transcription"}')

    for t in (0.0, 100.0, 200.0):
        coordinator.accept_audio("standup", ctx.peer_id, speech_chunk(), now=t)
    assert coordinator.accept_audio("standup", ctx.peer_id, silence_chunk(), now=900.0) is not None
    await asyncio.sleep(0)

    await coordinator.close_audio()

    assert channel.of_type("transcription") == []
    await coordinator.drain_audio("standup")
