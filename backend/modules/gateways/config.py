"""External gateway configuration.

Settings for the SFU session API (Cloudflare Calls) and the Gemini
generateContent API used for transcription, summaries and the assistant.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


def _parse_timeout(value: Optional[str]) -> Optional[float]:
    """Empty or non-positive values disable the timeout."""
    if not value:
        return None
    seconds = float(value)
    return seconds if seconds > 0 else None


# ============================================================
# SFU (Cloudflare Calls) settings
# ============================================================

@dataclass
class SFUConfig:
    """SFU session API settings."""

    APP_ID: str = field(default_factory=lambda: os.getenv("CF_APP_ID", ""))

    APP_TOKEN: str = field(default_factory=lambda: os.getenv("CF_APP_TOKEN", ""))

    API_BASE: str = field(
        default_factory=lambda: os.getenv("CF_API_BASE", "https://rtc.live.cloudflare.com/v1")
    )

    # Request timeout (seconds), None = no timeout
    TIMEOUT: Optional[float] = field(
        default_factory=lambda: _parse_timeout(os.getenv("CF_TIMEOUT"))
    )

    @property
    def base_url(self) -> str:
        return f"{self.API_BASE.rstrip('/')}/apps/{self.APP_ID}"

    @property
    def is_configured(self) -> bool:
        return bool(self.APP_ID and self.APP_TOKEN)


# ============================================================
# Gemini settings
# ============================================================

@dataclass
class GeminiConfig:
    """Gemini generateContent API settings."""

    API_KEY: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))

    # Model used for audio transcription and meeting summaries
    MODEL: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", "gemini-2.5-flash"))

    # Model used for assistant questions
    ASSISTANT_MODEL: str = field(
        default_factory=lambda: os.getenv("GEMINI_ASSISTANT_MODEL", "gemini-2.0-flash")
    )

    API_URL: str = field(
        default_factory=lambda: os.getenv(
            "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models"
        )
    )

    ASSISTANT_TEMPERATURE: float = 0.7
    ASSISTANT_MAX_OUTPUT_TOKENS: int = 1024

    # Request timeout (seconds), None = no timeout
    TIMEOUT: Optional[float] = field(
        default_factory=lambda: _parse_timeout(os.getenv("GEMINI_TIMEOUT"))
    )

    def endpoint(self, model: str) -> str:
        return f"{self.API_URL.rstrip('/')}/{model}:generateContent"

    @property
    def is_configured(self) -> bool:
        return bool(self.API_KEY)


# ============================================================
# Singleton instances
# ============================================================

sfu_config = SFUConfig()
gemini_config = GeminiConfig()

logger.info(f"[Gateway] config loaded: .env={_env_path} (exists: {_env_path.exists()})")
logger.info(f"[SFU] configured: {sfu_config.is_configured}, base={sfu_config.API_BASE}")
logger.info(f"[Gemini] configured: {gemini_config.is_configured}, model={gemini_config.MODEL}")
