"""Meeting data repositories.

CRUD for recording sessions, transcript entries and session summaries.
All timestamps are Unix epoch milliseconds.

Classes:
    RecordingSessionRepository: recording session lifecycle
    TranscriptRepository: append-only transcript log
    SummaryRepository: end-of-session summaries

Note:
    Repositories never raise. When the database is unavailable or a query
    fails they log and return None / False / [].
"""

import time
import logging
from typing import Optional, List, Dict, Any

from .connection import get_db_manager

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


class RecordingSessionRepository:
    """Recording session data store."""

    def __init__(self):
        self.db = get_db_manager()

    async def create_session(self, room_id: str, participant_count: int = 0) -> Optional[int]:
        """Creates a new recording session.

        Args:
            room_id: room being recorded
            participant_count: members present at start

        Returns:
            id of the new session, or None
        """
        if not self.db.is_initialized:
            logger.warning("[DB] create_session skipped: database not initialized")
            return None

        try:
            session_id = await self.db.fetchval(
                """
                INSERT INTO recording_sessions (room_id, started_at, participant_count)
                VALUES ($1, $2, $3)
                RETURNING session_id
                """,
                room_id, now_ms(), participant_count
            )
            logger.info(f"[DB] created session {session_id} for room '{room_id}'")
            return session_id
        except Exception as e:
            logger.error(f"[DB] failed to create session for room '{room_id}': {type(e).__name__}: {e}",
                         exc_info=True)
            return None

    async def end_session(self, session_id: int, participant_count: int) -> bool:
        """Stamps end time, duration and final participant count.

        Args:
            session_id: session to end
            participant_count: members present at the end

        Returns:
            whether a still-open session was updated
        """
        if not self.db.is_initialized:
            return False

        try:
            ended_at = now_ms()
            result = await self.db.execute(
                """
                UPDATE recording_sessions
                SET ended_at = $2,
                    participant_count = $3,
                    duration_seconds = ($2 - started_at) / 1000
                WHERE session_id = $1 AND ended_at IS NULL
                """,
                session_id, ended_at, participant_count
            )
            updated = result.endswith(" 1")
            if updated:
                logger.info(f"[DB] ended session {session_id} ({participant_count} participants)")
            else:
                logger.warning(f"[DB] session {session_id} not found or already ended")
            return updated
        except Exception as e:
            logger.error(f"[DB] failed to end session {session_id}: {e}", exc_info=True)
            return False

    async def get_session(self, session_id: int) -> Optional[Dict[str, Any]]:
        """Session row, or None."""
        if not self.db.is_initialized:
            return None

        try:
            row = await self.db.fetchrow(
                "SELECT * FROM recording_sessions WHERE session_id = $1",
                session_id
            )
            return dict(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get session {session_id}: {e}")
            return None

    async def get_room_sessions(self, room_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent sessions of a room, newest first."""
        if not self.db.is_initialized:
            return []

        try:
            rows = await self.db.fetch(
                """
                SELECT * FROM recording_sessions
                WHERE room_id = $1
                ORDER BY started_at DESC
                LIMIT $2
                """,
                room_id, limit
            )
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get sessions for room {room_id}: {e}")
            return []


class TranscriptRepository:
    """Transcript entry data store."""

    _COLUMNS = "entry_id, session_id, room_id, speaker_name, text, created_at"

    def __init__(self):
        self.db = get_db_manager()

    async def add_entry(
        self,
        session_id: Optional[int],
        room_id: str,
        text: str,
        speaker_name: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Appends a transcript entry.

        Args:
            session_id: recording session (None for out-of-session notes)
            room_id: room the speech happened in
            text: transcribed text
            speaker_name: speaker display name

        Returns:
            the stored entry, or None
        """
        if not self.db.is_initialized:
            return None

        try:
            row = await self.db.fetchrow(
                f"""
                INSERT INTO transcript_entries (session_id, room_id, speaker_name, text, created_at)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {self._COLUMNS}
                """,
                session_id, room_id, speaker_name, text, now_ms()
            )
            logger.debug(f"Saved transcript: {speaker_name}: {text[:50]}...")
            return dict(row) if row else None
        except Exception as e:
            logger.error(f"Failed to save transcript: {e}")
            return None

    async def get_session_entries(self, session_id: int) -> List[Dict[str, Any]]:
        """All entries of a session in chronological order."""
        if not self.db.is_initialized:
            return []

        try:
            rows = await self.db.fetch(
                f"""
                SELECT {self._COLUMNS}
                FROM transcript_entries
                WHERE session_id = $1
                ORDER BY created_at ASC, entry_id ASC
                """,
                session_id
            )
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get transcripts for session {session_id}: {e}")
            return []

    async def get_room_entries(self, room_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent entries of a room, newest first.

        Args:
            room_id: room to read
            limit: maximum number of entries

        Returns:
            entry list
        """
        if not self.db.is_initialized:
            return []

        try:
            rows = await self.db.fetch(
                f"""
                SELECT {self._COLUMNS}
                FROM transcript_entries
                WHERE room_id = $1
                ORDER BY created_at DESC, entry_id DESC
                LIMIT $2
                """,
                room_id, limit
            )
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get transcripts for room {room_id}: {e}")
            return []

    async def get_all_room_entries(self, room_id: str) -> List[Dict[str, Any]]:
        """Every entry of a room in chronological order."""
        if not self.db.is_initialized:
            return []

        try:
            rows = await self.db.fetch(
                f"""
                SELECT {self._COLUMNS}
                FROM transcript_entries
                WHERE room_id = $1
                ORDER BY created_at ASC, entry_id ASC
                """,
                room_id
            )
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get transcripts for room {room_id}: {e}")
            return []

    async def get_entries_since(self, room_id: str, since_ms: int) -> List[Dict[str, Any]]:
        """Entries of a room created at or after since_ms, chronological."""
        if not self.db.is_initialized:
            return []

        try:
            rows = await self.db.fetch(
                f"""
                SELECT {self._COLUMNS}
                FROM transcript_entries
                WHERE room_id = $1 AND created_at >= $2
                ORDER BY created_at ASC, entry_id ASC
                """,
                room_id, since_ms
            )
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get transcripts since {since_ms} for room {room_id}: {e}")
            return []

    async def get_entries_by_speaker(self, room_id: str, speaker_name: str) -> List[Dict[str, Any]]:
        """Entries of a room whose speaker name contains the given text (case-insensitive)."""
        if not self.db.is_initialized:
            return []

        try:
            rows = await self.db.fetch(
                f"""
                SELECT {self._COLUMNS}
                FROM transcript_entries
                WHERE room_id = $1 AND speaker_name ILIKE '%' || $2 || '%'
                ORDER BY created_at ASC, entry_id ASC
                """,
                room_id, speaker_name
            )
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get transcripts of '{speaker_name}' in room {room_id}: {e}")
            return []


class SummaryRepository:
    """Session summary data store."""

    def __init__(self):
        self.db = get_db_manager()

    async def save_summary(self, session_id: int, summary_text: str) -> bool:
        """Stores the summary of a session.

        Returns:
            success
        """
        if not self.db.is_initialized:
            return False

        try:
            await self.db.execute(
                """
                INSERT INTO session_summaries (session_id, summary_text, created_at)
                VALUES ($1, $2, $3)
                """,
                session_id, summary_text, now_ms()
            )
            logger.info(f"[DB] saved summary for session {session_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to save summary for session {session_id}: {e}")
            return False

    async def get_summary(self, session_id: int) -> Optional[str]:
        """Latest summary text of a session, or None."""
        if not self.db.is_initialized:
            return None

        try:
            return await self.db.fetchval(
                """
                SELECT summary_text FROM session_summaries
                WHERE session_id = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                session_id
            )
        except Exception as e:
            logger.error(f"Failed to get summary for session {session_id}: {e}")
            return None


_session_repository: Optional[RecordingSessionRepository] = None
_transcript_repository: Optional[TranscriptRepository] = None
_summary_repository: Optional[SummaryRepository] = None


def get_session_repository() -> RecordingSessionRepository:
    """RecordingSessionRepository singleton."""
    global _session_repository
    if _session_repository is None:
        _session_repository = RecordingSessionRepository()
    return _session_repository


def get_transcript_repository() -> TranscriptRepository:
    """TranscriptRepository singleton."""
    global _transcript_repository
    if _transcript_repository is None:
        _transcript_repository = TranscriptRepository()
    return _transcript_repository


def get_summary_repository() -> SummaryRepository:
    """SummaryRepository singleton."""
    global _summary_repository
    if _summary_repository is None:
        _summary_repository = SummaryRepository()
    return _summary_repository
