"""FastAPI router module.

API and WebSocket endpoints mounted by app.py.
"""

from .health import router as health_router
from .session import router as session_router, init_sfu_gateway
from .meetings import router as meetings_router, init_meeting_services
from .signaling import router as signaling_router, init_coordinator
from .deps import verify_auth_header, verify_ws_token

__all__ = [
    "health_router",
    "session_router",
    "meetings_router",
    "signaling_router",
    "init_sfu_gateway",
    "init_meeting_services",
    "init_coordinator",
    "verify_auth_header",
    "verify_ws_token",
]
