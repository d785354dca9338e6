"""Signaling coordination module.

Transport-agnostic per-connection state machine for the room signaling
protocol. The WebSocket routes only accept connections and pump frames into
this class; all protocol decisions live here.

Connection lifecycle:
    CONNECTED --join--> JOINED --close--> CLOSED
    CONNECTED --close--> CLOSED

Main features:
    - welcome / existing-peers / peer-joined / peer-left notifications
    - start-transcription / stop-transcription control
    - Audio segmentation at receive time, with a per-room transcription queue
    - Room-empty handling (ends any active recording session)

Note:
    - Malformed inbound messages are logged and dropped; the connection stays open
    - Each send is fire-and-forget: a failing recipient is logged and skipped
"""
import uuid
import asyncio
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from modules.audio import Utterance
from modules.rooms import RoomRegistry
from modules.transcription import TranscriptionSessionManager, TranscriptEvent
from . import messages
from .messages import (
    DEFAULT_ROOM_ID,
    JoinMessage,
    StartTranscriptionMessage,
    StopTranscriptionMessage,
)

logger = logging.getLogger(__name__)


class PeerState(str, Enum):
    """Signaling state of one connection."""
    CONNECTED = "connected"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass
class ConnectionContext:
    """Per-connection state threaded through every handler.

    Attributes:
        peer_id (str): id assigned at connect time
        channel (Any): the peer's message channel (async send_json)
        state (PeerState): current signaling state
        room_id (Optional[str]): joined room
    """
    peer_id: str
    channel: Any
    state: PeerState = PeerState.CONNECTED
    room_id: Optional[str] = None


class SignalingCoordinator:
    """Room signaling protocol handler.

    Attributes:
        registry (RoomRegistry): peer and room bookkeeping
        transcription (TranscriptionSessionManager): transcription lifecycle

    Examples:
        >>> coordinator = SignalingCoordinator(registry, manager)
        >>> ctx = await coordinator.connect(websocket)
        >>> await coordinator.handle_message(ctx, '{"type": "join", "roomId": "standup"}')
        >>> await coordinator.disconnect(ctx)
    """

    def __init__(self, registry: RoomRegistry, transcription: TranscriptionSessionManager):
        self.registry = registry
        self.transcription = transcription

        # room_id -> utterances waiting for transcription, and the task draining them
        self._utterances: Dict[str, asyncio.Queue] = {}
        self._workers: Dict[str, asyncio.Task] = {}

    # ============================================================
    # Delivery
    # ============================================================

    async def send(self, channel: Any, message: dict) -> bool:
        """Sends one message. Failures are logged, never raised."""
        try:
            await channel.send_json(message)
            return True
        except Exception as e:
            logger.error(f"[Signaling] send failed ({message.get('type')}): {type(e).__name__}: {e}")
            return False

    async def broadcast(self, room_id: str, message: dict, exclude: Optional[Iterable[str]] = None) -> int:
        """Sends a message to every current member of a room.

        Recipients are snapshotted before the first send, in join order.

        Args:
            room_id: target room
            message: message to send
            exclude: peer ids to skip

        Returns:
            int: number of successful deliveries
        """
        excluded = set(exclude or ())
        recipients = [p for p in self.registry.get_room_peers(room_id) if p.peer_id not in excluded]

        delivered = 0
        for peer in recipients:
            if await self.send(peer.channel, message):
                delivered += 1
            else:
                logger.warning(f"[Signaling] could not deliver {message.get('type')} to {peer.peer_id}")
        return delivered

    # ============================================================
    # Connection lifecycle
    # ============================================================

    async def connect(self, channel: Any) -> ConnectionContext:
        """Registers a new connection and greets it with its peer id."""
        peer_id = str(uuid.uuid4())
        self.registry.register_peer(peer_id, channel)
        ctx = ConnectionContext(peer_id=peer_id, channel=channel)

        logger.info(f"[Signaling] peer {peer_id} connected ({self.registry.peer_count} total)")
        await self.send(channel, messages.welcome(peer_id))
        return ctx

    async def disconnect(self, ctx: ConnectionContext) -> None:
        """Removes the peer, notifies its room and handles an emptied room."""
        if ctx.state == PeerState.CLOSED:
            return
        ctx.state = PeerState.CLOSED

        room_id, is_empty = self.registry.leave_room(ctx.peer_id)
        logger.info(f"[Signaling] peer {ctx.peer_id} disconnected ({self.registry.peer_count} remaining)")
        if room_id is None:
            return

        await self.broadcast(room_id, messages.peer_left(ctx.peer_id))

        if is_empty:
            await self.transcription.on_room_empty(room_id)

    async def handle_message(self, ctx: ConnectionContext, raw: Union[str, bytes, dict]) -> None:
        """Parses and dispatches one inbound message."""
        if ctx.state == PeerState.CLOSED:
            return

        try:
            message = messages.parse_message(raw)
        except ValueError as e:
            logger.warning(f"[Signaling] dropped malformed message from {ctx.peer_id}: {e}")
            return

        if isinstance(message, JoinMessage):
            await self.handle_join(ctx, message)
        elif isinstance(message, StartTranscriptionMessage):
            await self.handle_start_transcription(ctx, message)
        elif isinstance(message, StopTranscriptionMessage):
            await self.handle_stop_transcription(ctx, message)

    # ============================================================
    # Handlers
    # ============================================================

    async def handle_join(self, ctx: ConnectionContext, message: JoinMessage) -> None:
        """Joins the peer to a room and exchanges peer announcements.

        Note:
            - A repeated join to the same room refreshes the peer's metadata
            - A join to a different room is dropped (reconnect to switch rooms)
        """
        room_id = message.room_id or DEFAULT_ROOM_ID

        if ctx.state == PeerState.JOINED and ctx.room_id != room_id:
            logger.warning(f"[Signaling] peer {ctx.peer_id} already in room '{ctx.room_id}', "
                           f"join to '{room_id}' dropped")
            return

        if not message.session_id:
            logger.warning(f"[Signaling] peer {ctx.peer_id} joined without a sessionId")

        peer = self.registry.join_room(
            ctx.peer_id,
            room_id,
            session_id=message.session_id,
            track_names=message.tracks,
            name=message.name,
        )
        ctx.state = PeerState.JOINED
        ctx.room_id = room_id

        others = self.registry.list_room_peers(room_id, exclude=ctx.peer_id)
        if others:
            await self.send(ctx.channel, messages.existing_peers(others))

        await self.broadcast(room_id, messages.peer_joined(peer.to_public()), exclude=[ctx.peer_id])

        meeting_id = self.transcription.active_session_id(room_id)
        if meeting_id is not None:
            await self.send(ctx.channel, messages.transcription_started(meeting_id))

    def _control_room(self, ctx: ConnectionContext, room_id: Optional[str]) -> Optional[str]:
        target = room_id or ctx.room_id
        if not target:
            logger.warning(f"[Signaling] peer {ctx.peer_id} sent transcription control without a room")
        return target

    async def handle_start_transcription(self, ctx: ConnectionContext, message: StartTranscriptionMessage) -> None:
        room_id = self._control_room(ctx, message.room_id)
        if not room_id:
            return

        result = await self.transcription.start(room_id)
        if result.started:
            await self.broadcast(room_id, messages.transcription_started(result.session_id))

    async def handle_stop_transcription(self, ctx: ConnectionContext, message: StopTranscriptionMessage) -> None:
        room_id = self._control_room(ctx, message.room_id)
        if not room_id:
            return

        participant_count = self.registry.get_room_count(room_id)
        result = await self.transcription.stop(room_id, participant_count)
        if result.stopped:
            await self.broadcast(room_id, messages.transcription_stopped(result.summary))

    async def publish_transcript(self, event: TranscriptEvent) -> None:
        """Broadcasts a transcript line produced outside the audio channel."""
        await self.broadcast(event.room_id, event.to_message())

    # ============================================================
    # Streaming audio
    # ============================================================

    def accept_audio(
        self,
        room_id: str,
        peer_id: Optional[str],
        chunk: bytes,
        now: Optional[float] = None,
    ) -> Optional[Utterance]:
        """Segments one PCM chunk and queues any finished utterance.

        Runs without suspending, so a stream reader can call it for every
        frame as it arrives. Transcription happens in the room's worker
        task, one utterance at a time in segmentation order.

        Args:
            room_id: room the audio belongs to
            peer_id: sending peer (used for speaker attribution)
            chunk: raw 16-bit PCM
            now: receive time in milliseconds (monotonic clock if omitted)

        Returns:
            Optional[Utterance]: the utterance queued for transcription, if any
        """
        peer = self.registry.get_peer(peer_id) if peer_id else None
        speaker = peer.name if peer else None

        utterance = self.transcription.segment_audio(room_id, chunk, speaker=speaker, now=now)
        if utterance is None:
            return None

        queue = self._utterances.setdefault(room_id, asyncio.Queue())
        queue.put_nowait(utterance)
        worker = self._workers.get(room_id)
        if worker is None or worker.done():
            self._workers[room_id] = asyncio.create_task(self._transcribe_queued(room_id, queue))
        return utterance

    async def _transcribe_queued(self, room_id: str, queue: asyncio.Queue) -> None:
        while True:
            try:
                utterance = queue.get_nowait()
            except asyncio.QueueEmpty:
                # nothing awaits between the empty check and the removal
                self._workers.pop(room_id, None)
                return

            try:
                event = await self.transcription.on_utterance_finalized(
                    room_id, utterance.audio, utterance.speaker
                )
                if event is not None:
                    await self.broadcast(room_id, event.to_message())
            except Exception as e:
                logger.error(f"[Signaling] room '{room_id}': queued transcription failed: "
                             f"{type(e).__name__}: {e}", exc_info=True)
            finally:
                queue.task_done()

    async def drain_audio(self, room_id: str) -> None:
        """Waits until every queued utterance of the room has been handled."""
        worker = self._workers.get(room_id)
        if worker is not None:
            await worker

    async def close_audio(self) -> None:
        """Cancels all transcription workers (server shutdown)."""
        workers = list(self._workers.values())
        self._workers.clear()
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
