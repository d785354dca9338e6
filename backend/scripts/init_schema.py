"""Database schema initialization script.

Creates the recording session, transcript and summary tables.

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --drop  # drop existing tables first
"""

import asyncio
import argparse
import logging
import sys

from modules.database import get_db_manager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ==============================================================================
# DDL Statements
# ==============================================================================

DROP_STATEMENTS = """
DROP TABLE IF EXISTS session_summaries CASCADE;
DROP TABLE IF EXISTS transcript_entries CASCADE;
DROP TABLE IF EXISTS recording_sessions CASCADE;
"""

CREATE_RECORDING_SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS recording_sessions (
    session_id SERIAL PRIMARY KEY,
    room_id VARCHAR(255) NOT NULL,
    started_at BIGINT NOT NULL,
    ended_at BIGINT,
    duration_seconds BIGINT,
    participant_count INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_recording_sessions_room ON recording_sessions(room_id, started_at DESC);

COMMENT ON TABLE recording_sessions IS 'One row per transcription start/stop cycle of a room';
COMMENT ON COLUMN recording_sessions.started_at IS 'Unix epoch milliseconds';
COMMENT ON COLUMN recording_sessions.ended_at IS 'Unix epoch milliseconds, NULL while recording';
"""

CREATE_TRANSCRIPT_ENTRIES_TABLE = """
CREATE TABLE IF NOT EXISTS transcript_entries (
    entry_id BIGSERIAL PRIMARY KEY,
    session_id INTEGER REFERENCES recording_sessions(session_id) ON DELETE CASCADE,
    room_id VARCHAR(255) NOT NULL,
    speaker_name VARCHAR(255),
    text TEXT NOT NULL,
    created_at BIGINT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transcript_entries_session ON transcript_entries(session_id, created_at, entry_id);
CREATE INDEX IF NOT EXISTS idx_transcript_entries_room ON transcript_entries(room_id, created_at);

COMMENT ON TABLE transcript_entries IS 'Append-only transcript log';
"""

CREATE_SESSION_SUMMARIES_TABLE = """
CREATE TABLE IF NOT EXISTS session_summaries (
    summary_id SERIAL PRIMARY KEY,
    session_id INTEGER NOT NULL REFERENCES recording_sessions(session_id) ON DELETE CASCADE,
    summary_text TEXT NOT NULL,
    created_at BIGINT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_session_summaries_session ON session_summaries(session_id);
"""


async def init_schema(drop_existing: bool = False):
    """Creates the schema.

    Args:
        drop_existing: drop the tables before creating them
    """
    db = get_db_manager()
    if not await db.initialize():
        sys.exit(1)

    try:
        async with db.transaction() as conn:
            await _create_tables(conn, drop_existing)

        tables = await db.fetch("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public'
            AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """)
        logger.info(f"Schema ready. Tables: {[t['table_name'] for t in tables]}")
    finally:
        await db.close()


async def _create_tables(conn, drop_existing: bool):
    if drop_existing:
        logger.warning("Dropping existing tables...")
        await conn.execute(DROP_STATEMENTS)

    logger.info("Creating recording_sessions table...")
    await conn.execute(CREATE_RECORDING_SESSIONS_TABLE)

    logger.info("Creating transcript_entries table...")
    await conn.execute(CREATE_TRANSCRIPT_ENTRIES_TABLE)

    logger.info("Creating session_summaries table...")
    await conn.execute(CREATE_SESSION_SUMMARIES_TABLE)


def main():
    parser = argparse.ArgumentParser(description="Initialize database schema")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables before creating"
    )
    args = parser.parse_args()

    asyncio.run(init_schema(drop_existing=args.drop))


if __name__ == "__main__":
    main()
