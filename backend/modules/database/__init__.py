"""Database module.

Async PostgreSQL persistence for recording sessions, transcripts and
summaries, built on asyncpg.

Main features:
    - PostgreSQL connection pool management
    - Recording session lifecycle (start / end with duration)
    - Append-only transcript log with room, time and speaker queries
    - Session summary storage
"""

from .config import DatabaseConfig, database_config
from .connection import DatabaseManager, get_db_manager
from .repository import (
    RecordingSessionRepository,
    TranscriptRepository,
    SummaryRepository,
    get_session_repository,
    get_transcript_repository,
    get_summary_repository,
    now_ms,
)

__all__ = [
    "DatabaseConfig",
    "database_config",
    "DatabaseManager",
    "get_db_manager",
    "RecordingSessionRepository",
    "TranscriptRepository",
    "SummaryRepository",
    "get_session_repository",
    "get_transcript_repository",
    "get_summary_repository",
    "now_ms",
]
