"""Health check API router.

Endpoints for checking service status.
"""

from fastapi import APIRouter

from modules import get_db_manager
from modules.gateways import sfu_config, gemini_config

router = APIRouter(prefix="/api/health", tags=["health"])


async def _database_status() -> str:
    db = get_db_manager()
    if not db.is_initialized:
        return "not_initialized"
    try:
        await db.fetchval("SELECT 1")
        return "ok"
    except Exception:
        return "error"


@router.get("")
async def health_check():
    """Overall service status.

    Returns:
        dict: database status plus whether the external gateways are configured
    """
    db_status = await _database_status()

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "services": {
            "database": db_status,
            "sfu": "configured" if sfu_config.is_configured else "not_configured",
            "gemini": "configured" if gemini_config.is_configured else "not_configured",
        }
    }


@router.get("/db")
async def db_health_check():
    """PostgreSQL status."""
    db = get_db_manager()
    if not db.is_initialized:
        return {"status": "error", "message": "Database not initialized"}
    try:
        result = await db.fetchval("SELECT 1")
        return {"status": "ok", "connected": result == 1}
    except Exception as e:
        return {"status": "error", "message": str(e)}
