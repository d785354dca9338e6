"""SFU session negotiation gateway.

Thin async client for the Cloudflare Calls session API. Media never touches
this service: clients exchange SDP with the SFU through these calls and the
SFU forwards the tracks.

Endpoints:
    POST /sessions/new                  - create a session
    POST /sessions/{id}/tracks/new      - push local tracks / pull remote ones
    PUT  /sessions/{id}/renegotiate     - answer an SFU-initiated offer

Examples:
    >>> gateway = SFUGateway()
    >>> session_id = await gateway.create_session()
    >>> answer = await gateway.push_tracks(session_id, offer_sdp, tracks)
    >>> await gateway.close()
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import sfu_config, SFUConfig

logger = logging.getLogger(__name__)


class SFUError(Exception):
    """Non-2xx answer (or transport failure) from the SFU API.

    Attributes:
        status_code (Optional[int]): HTTP status, None for transport errors
        detail (Any): decoded error body, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class SFUGateway:
    """Async client for the SFU session API.

    Attributes:
        config (SFUConfig): app id, token and base URL

    Note:
        - Every call uses bearer-token authentication
        - No retries; the HTTP layer maps SFUError to a 500 response
    """

    def __init__(self, config: Optional[SFUConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or sfu_config
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.TIMEOUT))
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Dict[str, Any]:
        """Sends one request and returns the decoded JSON body.

        Raises:
            SFUError: on transport failure or non-2xx status
        """
        client = await self._get_client()
        url = f"{self.config.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.config.APP_TOKEN}",
            "Content-Type": "application/json",
        }

        try:
            response = await client.request(method, url, headers=headers, json=body)
        except httpx.HTTPError as e:
            logger.error(f"[SFU] {method} {path} failed: {type(e).__name__}: {e}")
            raise SFUError(f"SFU request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        if not response.is_success:
            logger.error(f"[SFU] {method} {path} -> {response.status_code}: {data}")
            raise SFUError(f"SFU API error: {response.status_code}", response.status_code, data)
        if not isinstance(data, dict):
            logger.error(f"[SFU] {method} {path} -> unexpected body: {data}")
            raise SFUError("SFU response is not a JSON object", response.status_code, data)

        return data

    async def create_session(self) -> str:
        """Creates a new SFU session and returns its id."""
        data = await self._request("POST", "/sessions/new")
        session_id = data.get("sessionId")
        if not session_id:
            raise SFUError("SFU response missing sessionId", detail=data)
        logger.info(f"[SFU] session created: {session_id}")
        return session_id

    async def push_tracks(self, session_id: str, offer_sdp: str, tracks: List[dict]) -> Dict[str, Any]:
        """Publishes local tracks.

        Args:
            session_id: caller's SFU session
            offer_sdp: SDP offer describing the tracks
            tracks: [{location: "local", trackName, mid}, ...]

        Returns:
            Dict[str, Any]: SFU answer (sessionDescription, tracks)
        """
        data = await self._request("POST", f"/sessions/{session_id}/tracks/new", {
            "sessionDescription": {"type": "offer", "sdp": offer_sdp},
            "tracks": tracks,
        })
        logger.info(f"[SFU] push {session_id}: {len(tracks)} tracks, "
                    f"answer={'sessionDescription' in data}")
        return data

    async def pull_tracks(self, session_id: str, remote_tracks: List[dict]) -> Dict[str, Any]:
        """Subscribes to tracks published by other sessions.

        Args:
            session_id: caller's SFU session
            remote_tracks: [{location: "remote", sessionId, trackName}, ...]

        Returns:
            Dict[str, Any]: SFU answer, possibly with requiresImmediateRenegotiation
                and an offer to answer via renegotiate()
        """
        data = await self._request("POST", f"/sessions/{session_id}/tracks/new", {
            "tracks": remote_tracks,
        })
        logger.info(f"[SFU] pull {session_id}: {len(remote_tracks)} tracks, "
                    f"renegotiate={data.get('requiresImmediateRenegotiation', False)}")
        return data

    async def renegotiate(self, session_id: str, answer_sdp: str) -> Dict[str, Any]:
        """Sends the client's SDP answer to an SFU-initiated offer."""
        data = await self._request("PUT", f"/sessions/{session_id}/renegotiate", {
            "sessionDescription": {"type": "answer", "sdp": answer_sdp},
        })
        logger.info(f"[SFU] renegotiated {session_id}")
        return data
