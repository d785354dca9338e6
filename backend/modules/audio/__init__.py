"""Audio processing module.

Energy-based turn-taking segmentation of 16 kHz mono PCM streams.
"""

from .config import PCMFormat, SegmenterConfig, pcm_format, segmenter_config
from .segmenter import SpeechSegmenter, Utterance, chunk_decibels, is_speech

__all__ = [
    "PCMFormat",
    "SegmenterConfig",
    "pcm_format",
    "segmenter_config",
    "SpeechSegmenter",
    "Utterance",
    "chunk_decibels",
    "is_speech",
]
