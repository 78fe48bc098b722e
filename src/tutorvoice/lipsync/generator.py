"""Lip-sync generation with degrade-not-fail semantics."""

import asyncio
import logging
import time
from pathlib import Path

from ..audio import measure_duration, scoped_temp_file
from .analyzer import LipSyncAnalyzer, LipSyncToolError, RhubarbAnalyzer
from .models import LipSyncCueSequence
from .parser import MalformedLipSyncOutput, parse_rhubarb_output

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("wav", "ogg", "mp3", "webm", "flac")


class LipSyncGenerator:
    """Turns an audio buffer into mouth cues using a LipSyncAnalyzer.

    Lip-sync is an enhancement: ``generate`` never raises because the tool
    failed. Any failure yields an empty, degraded sequence carrying the
    audio's duration so the caller can still play the clip.

    Example:
        generator = LipSyncGenerator(RhubarbAnalyzer(), timeout=20.0)
        cues = await generator.generate(wav_bytes, "wav")
        if cues.degraded:
            ...  # keep the avatar idle
    """

    def __init__(
        self,
        analyzer: LipSyncAnalyzer | None = None,
        timeout: float = 20.0,
        temp_dir: Path | None = None,
    ) -> None:
        """Initialize generator.

        Args:
            analyzer: Analysis tool (defaults to RhubarbAnalyzer on PATH)
            timeout: Seconds allowed for the analysis process
            temp_dir: Directory for per-call audio files
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.analyzer = analyzer or RhubarbAnalyzer()
        self.timeout = timeout
        self.temp_dir = temp_dir

    async def generate(
        self,
        audio: bytes,
        audio_format: str = "wav",
        duration: float | None = None,
    ) -> LipSyncCueSequence:
        """Analyze ``audio`` and return its cue sequence.

        Args:
            audio: Encoded audio bytes
            audio_format: File extension the tool should see
            duration: Known duration in seconds (measured if omitted)

        Returns:
            Parsed cue sequence, or an empty degraded one on failure
        """
        if duration is None:
            duration = measure_duration(audio)

        fmt = audio_format.lower().lstrip(".")
        if fmt not in SUPPORTED_FORMATS:
            logger.warning(f"Unsupported audio format for lip-sync: {audio_format}")
            return self._degraded(duration)

        start = time.monotonic()
        try:
            with scoped_temp_file(audio, f".{fmt}", self.temp_dir) as path:
                document = await asyncio.wait_for(
                    self.analyzer.analyze(path, self.timeout), self.timeout
                )
            sequence = parse_rhubarb_output(document, duration)
        except TimeoutError:
            logger.warning(
                f"Lip-sync degraded to idle animation: no result after {self.timeout}s"
            )
            return self._degraded(duration)
        except (LipSyncToolError, MalformedLipSyncOutput, OSError) as e:
            logger.warning(f"Lip-sync degraded to idle animation: {e}")
            return self._degraded(duration)
        except Exception as e:
            logger.error(f"Unexpected lip-sync failure, degrading: {e!r}")
            return self._degraded(duration)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Lip-sync generated: {len(sequence.cues)} mouth cues ({elapsed_ms}ms)"
        )
        return sequence

    async def available(self) -> bool:
        """Return True if the analysis tool can run."""
        try:
            return await self.analyzer.check()
        except Exception as e:
            logger.debug(f"Lip-sync tool check failed: {e}")
            return False

    @staticmethod
    def _degraded(duration: float | None) -> LipSyncCueSequence:
        return LipSyncCueSequence.empty(duration or 0.0, degraded=True)
