"""External service gateways.

HTTP clients for the SFU session API and the Gemini model API.
"""

from .config import SFUConfig, GeminiConfig, sfu_config, gemini_config
from .sfu import SFUGateway, SFUError
from .gemini import GeminiGateway, GeminiError, build_wav, extract_text

__all__ = [
    "SFUConfig",
    "GeminiConfig",
    "sfu_config",
    "gemini_config",
    "SFUGateway",
    "SFUError",
    "GeminiGateway",
    "GeminiError",
    "build_wav",
    "extract_text",
]
