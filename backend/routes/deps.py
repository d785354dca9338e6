"""Shared dependencies.

Meeting access checks for the HTTP and WebSocket routers. Every room shares
one ACCESS_PASSWORD; leaving it empty opens the server to anyone.
"""

import hmac
import os
from typing import Optional

from fastapi import Header, HTTPException

ACCESS_PASSWORD = os.getenv("ACCESS_PASSWORD", "")


def _password_matches(candidate: Optional[str]) -> bool:
    if not ACCESS_PASSWORD:
        return True
    return bool(candidate) and hmac.compare_digest(candidate.encode(), ACCESS_PASSWORD.encode())


async def verify_auth_header(authorization: Optional[str] = Header(None)) -> bool:
    """Accepts "Authorization: Bearer <meeting password>".

    Raises:
        HTTPException: 401 when the header is missing, not a bearer token,
            or carries the wrong password
    """
    if not ACCESS_PASSWORD:
        return True

    scheme, _, credential = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Bearer meeting password required")
    if not _password_matches(credential.strip()):
        raise HTTPException(status_code=401, detail="Wrong meeting password")
    return True


def verify_ws_token(token: Optional[str]) -> bool:
    """Checks the ?token= query parameter of /ws and /ws/audio."""
    return _password_matches(token)
