"""Signaling WebSocket router.

WebSocket endpoints for room signaling and for raw audio capture. The
endpoints only move frames; protocol handling lives in SignalingCoordinator.

Endpoints:
    /ws        JSON signaling (join, transcription control)
    /ws/audio  binary 16 kHz mono 16-bit PCM for a room (?roomId=&peerId=)
"""

import time
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query

from modules.signaling import SignalingCoordinator
from .deps import verify_ws_token

logger = logging.getLogger(__name__)

router = APIRouter()

# Set from app.py
_coordinator: Optional[SignalingCoordinator] = None


def init_coordinator(coordinator: SignalingCoordinator):
    """Sets the coordinator used by the WebSocket endpoints.

    Args:
        coordinator: SignalingCoordinator instance
    """
    global _coordinator
    _coordinator = coordinator
    logger.info("Signaling router coordinator initialized")


def get_coordinator() -> Optional[SignalingCoordinator]:
    return _coordinator


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Room signaling endpoint.

    Flow:
        1. accept, assign a peer id and send welcome
        2. dispatch every text frame to the coordinator
        3. on disconnect, leave the room and notify the remaining peers

    Args:
        websocket: FastAPI WebSocket connection
        token: access token (query parameter)
    """
    if _coordinator is None:
        logger.error("Coordinator not initialized")
        await websocket.close(code=1011, reason="Server not ready")
        return

    if not verify_ws_token(token):
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()
    coordinator = _coordinator
    ctx = await coordinator.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                logger.warning(f"Peer {ctx.peer_id} sent a binary frame on /ws, ignored")
                continue
            await coordinator.handle_message(ctx, text)
    except WebSocketDisconnect:
        logger.info(f"Peer {ctx.peer_id} WebSocket disconnected")
    except Exception as e:
        logger.error(f"Peer {ctx.peer_id} WebSocket error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        await coordinator.disconnect(ctx)


@router.websocket("/ws/audio")
async def audio_endpoint(
    websocket: WebSocket,
    room_id: str = Query(..., alias="roomId"),
    peer_id: Optional[str] = Query(None, alias="peerId"),
    token: Optional[str] = Query(None),
):
    """Audio capture endpoint.

    Each binary frame is one PCM chunk, segmented as soon as it is read.
    Chunks are only segmented while transcription is active for the room;
    finished utterances are transcribed by the room's queue worker and
    broadcast to the room as "transcription" events.

    Args:
        websocket: FastAPI WebSocket connection
        room_id: room the audio belongs to
        peer_id: sending peer (speaker attribution)
        token: access token (query parameter)
    """
    if _coordinator is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    if not verify_ws_token(token):
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()
    coordinator = _coordinator
    logger.info(f"Audio stream opened: room '{room_id}', peer {peer_id}")

    chunks = 0
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("bytes")
            if not data:
                continue
            chunks += 1
            coordinator.accept_audio(room_id, peer_id, data, now=time.monotonic() * 1000.0)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Audio stream error (room '{room_id}'): {type(e).__name__}: {e}", exc_info=True)
    finally:
        # utterances cut from this stream are transcribed before the handler returns
        await coordinator.drain_audio(room_id)
        logger.info(f"Audio stream closed: room '{room_id}', peer {peer_id}, {chunks} chunks")
