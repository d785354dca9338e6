"""SFU session API router.

Proxies WebRTC session negotiation to the SFU so the app token never reaches
the browser. Any SFU failure is answered with 500 {"error": ...}.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from modules.gateways import SFUGateway, SFUError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# Set from app.py
_sfu_gateway: Optional[SFUGateway] = None


def init_sfu_gateway(gateway: SFUGateway):
    global _sfu_gateway
    _sfu_gateway = gateway


def _gateway() -> SFUGateway:
    if _sfu_gateway is None:
        raise SFUError("SFU gateway not initialized")
    return _sfu_gateway


class SessionDescription(BaseModel):
    type: str = "offer"
    sdp: str


class PushTracksRequest(BaseModel):
    """Local tracks to publish with the SDP offer that carries them."""
    offer: SessionDescription
    tracks: List[dict] = Field(default_factory=list)


class PullTrackRequest(BaseModel):
    """Remote track to subscribe to."""
    model_config = ConfigDict(populate_by_name=True)

    remote_session_id: str = Field(alias="remoteSessionId")
    track_name: str = Field(alias="trackName")


class RenegotiateRequest(BaseModel):
    sdp: str


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message})


@router.post("/new")
async def create_session():
    """Creates an SFU session for the caller.

    Returns:
        dict: {"sessionId": str}
    """
    try:
        session_id = await _gateway().create_session()
        return {"sessionId": session_id}
    except SFUError as e:
        logger.error(f"[SFU] create session failed: {e}")
        return _error("Failed to create session")


@router.post("/{session_id}/push")
async def push_tracks(session_id: str, request: PushTracksRequest):
    """Publishes local tracks and returns the SFU's SDP answer."""
    logger.info(f"[SFU] push request: session={session_id}, tracks={request.tracks}, "
                f"offer_sdp_length={len(request.offer.sdp)}")
    try:
        return await _gateway().push_tracks(session_id, request.offer.sdp, request.tracks)
    except SFUError as e:
        logger.error(f"[SFU] push tracks failed: {e}")
        return _error("Failed to push tracks")


@router.post("/{session_id}/pull")
async def pull_tracks(session_id: str, request: PullTrackRequest):
    """Subscribes to a track of another session.

    The response may ask for immediate renegotiation, in which case the client
    answers the included offer through the renegotiate endpoint.
    """
    tracks = [{
        "location": "remote",
        "sessionId": request.remote_session_id,
        "trackName": request.track_name,
    }]
    logger.info(f"[SFU] pull request: session={session_id}, remote={request.remote_session_id}, "
                f"track={request.track_name}")
    try:
        return await _gateway().pull_tracks(session_id, tracks)
    except SFUError as e:
        logger.error(f"[SFU] pull tracks failed: {e}")
        return _error("Failed to pull tracks")


@router.put("/{session_id}/renegotiate")
async def renegotiate(session_id: str, request: RenegotiateRequest):
    """Sends the client's SDP answer for an SFU-initiated offer."""
    try:
        return await _gateway().renegotiate(session_id, request.sdp)
    except SFUError as e:
        logger.error(f"[SFU] renegotiate failed: {e}")
        return _error("Failed to renegotiate")
