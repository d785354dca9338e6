"""FastAPI Realtime Meeting Server.

Signaling and transcription server for multi-party voice/video rooms.
Media flows through an external SFU; this server brokers SFU sessions,
tracks who is in which room, and turns room audio into a live transcript
with an end-of-meeting summary.

Main features:
    - Room-based peer signaling over WebSocket
    - SFU session negotiation proxy (push/pull tracks, renegotiation)
    - Turn-taking speech segmentation and Gemini transcription
    - Meeting summaries and a transcript-grounded assistant

Architecture:
    - RoomRegistry: room and peer state
    - SignalingCoordinator: per-connection signaling state machine
    - TranscriptionSessionManager: per-room recording lifecycle
    - SFUGateway / GeminiGateway: external HTTP APIs
    - PostgreSQL (asyncpg): sessions, transcripts, summaries
"""
import logging
import glob
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load variables from config/.env
load_dotenv(Path(__file__).parent / "config" / ".env")

from modules import (  # noqa: E402
    RoomRegistry, SFUGateway, GeminiGateway, TranscriptionSessionManager,
    SignalingCoordinator, AssistantService, get_db_manager,
)
from routes import (  # noqa: E402
    health_router, session_router, meetings_router, signaling_router,
    init_sfu_gateway, init_meeting_services, init_coordinator,
    verify_auth_header,
)


# Logging
os.makedirs("logs", exist_ok=True)
log_filename = f"logs/server_{datetime.now().strftime('%Y%m%d')}.log"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENV = os.getenv("ENV", "development")

# Log retention (days)
LOG_RETENTION_DAYS = int(os.getenv("LOG_RETENTION_DAYS", "60"))

CORS_ORIGIN_REGEX = os.getenv(
    "CORS_ORIGIN_REGEX",
    r"^http://(localhost|127\.0\.0\.1|192\.168\.\d{1,3}\.\d{1,3}):\d+$|^https://.*\.trycloudflare\.com$",
)


def cleanup_old_logs(log_dir: str = "logs", retention_days: int = LOG_RETENTION_DAYS) -> int:
    """Deletes server_YYYYMMDD.log files older than the retention period.

    Args:
        log_dir: log directory
        retention_days: days to keep

    Returns:
        number of deleted files
    """
    if not os.path.exists(log_dir):
        return 0

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0

    for log_file in glob.glob(os.path.join(log_dir, "server_*.log")):
        try:
            date_str = os.path.basename(log_file)[len("server_"):-len(".log")]
            if datetime.strptime(date_str, "%Y%m%d") < cutoff_date:
                os.remove(log_file)
                deleted_count += 1
        except (ValueError, OSError):
            continue

    return deleted_count


logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(log_filename, encoding="utf-8"),
    ]
)
logger = logging.getLogger(__name__)
logger.info(f"Logging initialized: level={LOG_LEVEL}, env={ENV}")


# Global service instances
room_registry = RoomRegistry()
sfu_gateway = SFUGateway()
gemini_gateway = GeminiGateway()
transcription_manager = TranscriptionSessionManager(room_registry, gemini_gateway)
coordinator = SignalingCoordinator(room_registry, transcription_manager)
assistant_service = AssistantService(gemini_gateway)

db_manager = get_db_manager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle.

    Note:
        - startup: prune old logs, open the database pool
        - shutdown: end active recordings, close HTTP clients and the pool
    """
    logger.info("Realtime meeting server starting...")

    deleted_logs = cleanup_old_logs()
    if deleted_logs > 0:
        logger.info(f"Removed {deleted_logs} old log files (older than {LOG_RETENTION_DAYS} days)")

    if await db_manager.initialize():
        logger.info("Database connected")
    else:
        logger.warning("Database unavailable, running without persistence")

    yield

    logger.info("Server shutting down...")

    await coordinator.close_audio()

    for room in list(room_registry.rooms.values()):
        if room.is_active:
            await transcription_manager.stop(room.room_id, len(room.members))

    await sfu_gateway.close()
    await gemini_gateway.close()

    if db_manager.is_initialized:
        await db_manager.close()
        logger.info("Database connection closed")


app = FastAPI(title="Realtime Meeting Server", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(session_router)
app.include_router(meetings_router)
app.include_router(signaling_router)

init_coordinator(coordinator)
init_sfu_gateway(sfu_gateway)
init_meeting_services(coordinator, assistant_service)


@app.get("/")
async def root():
    """Liveness check.

    Returns:
        dict: {"status": "ok", "service": ...}
    """
    return {"status": "ok", "service": "Realtime Meeting Server"}


@app.get("/api/rooms")
async def get_rooms_api(_: bool = Depends(verify_auth_header)):
    """All rooms with their members and transcription state."""
    return {"rooms": room_registry.get_room_list(), "peer_count": room_registry.peer_count}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")), log_level="info")
