"""Room-based peer registry.

Tracks every connected peer and the room it joined. Rooms are created lazily
on the first join (or the first transcription start) and are never deleted,
so their transcription state survives the room becoming empty.

Main features:
    - Peer registration at connect time (unjoined peers are counted too)
    - Room join/leave with last-write-wins metadata updates
    - Public peer projections in join order

Architecture:
    - peers: Dict[str, Peer] - peer_id -> Peer (joined or not)
    - rooms: Dict[str, Room] - room_id -> Room (members kept in join order)

Classes:
    Peer: a connected participant
    Room: a named group of peers plus its transcription state
    RoomRegistry: peer and room bookkeeping

Examples:
    >>> registry = RoomRegistry()
    >>> registry.register_peer("peer-123", websocket)
    >>> registry.join_room("peer-123", "standup", session_id="sfu-1", track_names=["audio"])
    >>> registry.list_room_peers("standup")
    [{'id': 'peer-123', 'sessionId': 'sfu-1', 'tracks': ['audio']}]
"""
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TranscriptionState(str, Enum):
    """Transcription state of a room."""
    INACTIVE = "inactive"
    ACTIVE = "active"


@dataclass
class Peer:
    """A connected participant.

    Attributes:
        peer_id (str): unique identifier (UUID) assigned at connect time
        channel (Any): bidirectional message channel (needs async send_json)
        session_id (Optional[str]): SFU session id announced on join
        track_names (List[str]): published media track names
        name (Optional[str]): display name
        room_id (Optional[str]): joined room, None until joined
    """
    peer_id: str
    channel: Any
    session_id: Optional[str] = None
    track_names: List[str] = field(default_factory=list)
    name: Optional[str] = None
    room_id: Optional[str] = None

    def to_public(self) -> Dict[str, Any]:
        """Projection shared with other room members."""
        info: Dict[str, Any] = {
            "id": self.peer_id,
            "sessionId": self.session_id,
            "tracks": list(self.track_names),
        }
        if self.name:
            info["name"] = self.name
        return info


@dataclass
class Room:
    """A named group of peers.

    Attributes:
        room_id (str): unique room name
        members (Dict[str, None]): member peer ids in join order
        transcription_state (TranscriptionState): current transcription state
        session_id (Optional[int]): active recording session id
    """
    room_id: str
    members: Dict[str, None] = field(default_factory=dict)
    transcription_state: TranscriptionState = TranscriptionState.INACTIVE
    session_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.transcription_state == TranscriptionState.ACTIVE


class RoomRegistry:
    """Process-wide registry of peers and rooms.

    All mutations are synchronous, so a single asyncio event loop sees each
    join/leave as atomic.

    Attributes:
        peers (Dict[str, Peer]): every connected peer, joined or not
        rooms (Dict[str, Room]): every room created so far

    Invariants:
        - A joined peer appears in exactly one room's members
        - len(peers) equals opened minus closed connections

    Examples:
        >>> registry = RoomRegistry()
        >>> registry.register_peer("a", ws_a)
        >>> registry.register_peer("b", ws_b)
        >>> registry.join_room("a", "standup")
        >>> registry.join_room("b", "standup")
        >>> registry.leave_room("a")
        ('standup', False)
    """

    def __init__(self):
        self.peers: Dict[str, Peer] = {}
        self.rooms: Dict[str, Room] = {}

    @property
    def peer_count(self) -> int:
        """Number of connected peers, joined or not."""
        return len(self.peers)

    def register_peer(self, peer_id: str, channel: Any) -> Peer:
        """Registers a freshly connected, unjoined peer.

        Args:
            peer_id: unique identifier of the peer
            channel: the peer's message channel

        Returns:
            Peer: the new peer record

        Raises:
            ValueError: if the id is already registered
        """
        if peer_id in self.peers:
            raise ValueError(f"Peer id already registered: {peer_id}")
        peer = Peer(peer_id=peer_id, channel=channel)
        self.peers[peer_id] = peer
        logger.info(f"Peer {peer_id} registered. {len(self.peers)} peers connected")
        return peer

    def ensure_room(self, room_id: str) -> Room:
        """Returns the room, creating it (transcription inactive) if missing."""
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self.rooms[room_id] = room
            logger.info(f"Room '{room_id}' created")
        return room

    def join_room(
        self,
        peer_id: str,
        room_id: str,
        session_id: Optional[str] = None,
        track_names: Optional[List[str]] = None,
        name: Optional[str] = None,
    ) -> Peer:
        """Attaches a registered peer to a room.

        Args:
            peer_id: id of a registered peer
            room_id: room to join (created if missing)
            session_id: SFU session id
            track_names: published track names
            name: display name

        Returns:
            Peer: the updated peer record

        Raises:
            KeyError: if the peer is not registered

        Note:
            - Joining again overwrites the metadata (last write wins)
            - A peer moving to another room is detached from the old one first
        """
        peer = self.peers[peer_id]

        if peer.room_id and peer.room_id != room_id:
            old_room = self.rooms.get(peer.room_id)
            if old_room:
                old_room.members.pop(peer_id, None)

        room = self.ensure_room(room_id)
        peer.room_id = room_id
        peer.session_id = session_id
        peer.track_names = list(track_names or [])
        peer.name = name
        room.members[peer_id] = None

        logger.info(f"Peer '{name or peer_id}' ({peer_id}) joined room '{room_id}'. "
                    f"Room has {len(room.members)} peers")
        return peer

    def leave_room(self, peer_id: str) -> Tuple[Optional[str], bool]:
        """Removes a peer from its room and from the registry.

        Args:
            peer_id: id of the departing peer

        Returns:
            Tuple[Optional[str], bool]: (room the peer was in, whether that
                room is now empty). (None, False) for unjoined or unknown peers.
        """
        peer = self.peers.pop(peer_id, None)
        if peer is None or not peer.room_id:
            return None, False

        room = self.rooms.get(peer.room_id)
        if room is None:
            return peer.room_id, True

        room.members.pop(peer_id, None)
        is_empty = not room.members
        if is_empty:
            logger.info(f"Room '{room.room_id}' is now empty")
        else:
            logger.info(f"Peer '{peer.name or peer_id}' ({peer_id}) left room '{room.room_id}'. "
                        f"Room has {len(room.members)} peers")
        return room.room_id, is_empty

    def list_room_peers(self, room_id: str, exclude: Optional[str] = None) -> List[Dict[str, Any]]:
        """Public projections of a room's members in join order.

        Args:
            room_id: room to list
            exclude: peer id to leave out (usually the caller)

        Returns:
            List[Dict[str, Any]]: {id, sessionId, tracks, name?} per member
        """
        return [peer.to_public() for peer in self.get_room_peers(room_id)
                if peer.peer_id != exclude]

    def get_room_peers(self, room_id: str) -> List[Peer]:
        """Peer records of a room's members in join order."""
        room = self.rooms.get(room_id)
        if room is None:
            return []
        return [self.peers[pid] for pid in room.members if pid in self.peers]

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_peer(self, peer_id: str) -> Optional[Peer]:
        return self.peers.get(peer_id)

    def get_room_count(self, room_id: str) -> int:
        """Current member count of a room (0 if it does not exist)."""
        room = self.rooms.get(room_id)
        return len(room.members) if room else 0

    def get_room_list(self) -> List[dict]:
        """Summary of every room for monitoring.

        Returns:
            List[dict]: room_id, peer_count, transcription state and members
        """
        return [
            {
                "room_id": room.room_id,
                "peer_count": len(room.members),
                "transcription": room.transcription_state.value,
                "meeting_id": room.session_id,
                "peers": self.list_room_peers(room.room_id),
            }
            for room in self.rooms.values()
        ]
