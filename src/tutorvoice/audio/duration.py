"""Audio duration measurement and estimates."""

import io
import logging
import math

import soundfile as sf

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 150
ASSUMED_BITRATE_KBPS = 128


def measure_duration(audio: bytes) -> float | None:
    """Measure the duration of an encoded audio clip.

    Args:
        audio: Encoded audio bytes (WAV, FLAC, OGG; MP3 with recent libsndfile)

    Returns:
        Duration in seconds, or None if the format could not be decoded
    """
    if not audio:
        return None

    try:
        info = sf.info(io.BytesIO(audio))
    except (RuntimeError, TypeError, ValueError) as e:
        # soundfile raises LibsndfileError (a RuntimeError) for unknown formats
        logger.debug(f"Could not measure audio duration: {e}")
        return None

    if not info.samplerate or info.frames < 0:
        return None
    return info.frames / info.samplerate


def estimate_duration_from_text(text: str) -> float:
    """Rough spoken duration of ``text`` at an average speaking rate."""
    words = len(text.split())
    if words == 0:
        return 0.0
    return float(math.ceil(words / WORDS_PER_MINUTE * 60))


def estimate_duration_from_size(size_bytes: int) -> float:
    """Rough duration of a compressed upload assuming a 128 kbps stream."""
    return (size_bytes * 8) / (ASSUMED_BITRATE_KBPS * 1000)
