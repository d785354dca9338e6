"""Audio module configuration.

Settings for energy-based speech segmentation of PCM audio streams.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


# ============================================================
# PCM format
# ============================================================

@dataclass(frozen=True)
class PCMFormat:
    """Format of the raw audio frames sent by clients."""

    # Sample rate (Hz)
    SAMPLE_RATE: int = 16000

    # Mono
    CHANNELS: int = 1

    # 16-bit signed little-endian
    SAMPLE_WIDTH: int = 2


# ============================================================
# Segmentation settings
# ============================================================

@dataclass
class SegmenterConfig:
    """Turn-taking segmentation thresholds."""

    # Chunks louder than this (dBFS) count as speech
    SPEECH_THRESHOLD_DB: float = field(
        default_factory=lambda: float(os.getenv("SEGMENTER_SPEECH_THRESHOLD_DB", "-40"))
    )

    # Silence longer than this (ms) after speech closes an utterance
    PAUSE_THRESHOLD_MS: float = field(
        default_factory=lambda: float(os.getenv("SEGMENTER_PAUSE_THRESHOLD_MS", "500"))
    )

    # Minimum buffered speech chunks before an utterance is emitted
    MIN_SPEECH_CHUNKS: int = field(
        default_factory=lambda: int(os.getenv("SEGMENTER_MIN_SPEECH_CHUNKS", "3"))
    )


# ============================================================
# Singleton instances
# ============================================================

pcm_format = PCMFormat()
segmenter_config = SegmenterConfig()

logger.info(f"[Segmenter] config loaded: .env={_env_path} (exists: {_env_path.exists()})")
logger.info(
    f"[Segmenter] threshold={segmenter_config.SPEECH_THRESHOLD_DB}dB, "
    f"pause={segmenter_config.PAUSE_THRESHOLD_MS}ms, "
    f"min_chunks={segmenter_config.MIN_SPEECH_CHUNKS}"
)
