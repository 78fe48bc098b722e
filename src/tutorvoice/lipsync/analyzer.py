"""External viseme-analysis tools.

The analyzer is a capability behind an interface so the generator can be
driven by a test double that simulates success, timeout and bad output.
"""

import asyncio
import contextlib
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .parser import load_document

logger = logging.getLogger(__name__)

CHECK_TIMEOUT = 5.0


class LipSyncToolError(RuntimeError):
    """Raised when the analysis tool is missing, fails or times out."""

    pass


def _kill(proc: asyncio.subprocess.Process) -> None:
    # The process may exit on its own between the timeout and the kill
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


class LipSyncAnalyzer(ABC):
    """Abstract base class for lip-sync analysis tools."""

    @abstractmethod
    async def analyze(self, audio_path: Path, timeout: float) -> dict[str, Any]:
        """Analyze an audio file and return the tool's timed-event document.

        Args:
            audio_path: Audio file to analyze
            timeout: Seconds before the analysis is abandoned

        Returns:
            Decoded JSON document

        Raises:
            LipSyncToolError: If the tool is missing, fails or times out
            MalformedLipSyncOutput: If the output is not a JSON object
        """
        pass

    @abstractmethod
    async def check(self) -> bool:
        """Return True if the tool is installed and runnable."""
        pass


class RhubarbAnalyzer(LipSyncAnalyzer):
    """Rhubarb Lip Sync command line tool.

    Runs ``rhubarb -f json`` and reads the JSON document from stdout.
    """

    def __init__(
        self,
        executable: str = "rhubarb",
        recognizer: str = "phonetic",
        extended_shapes: str = "GHX",
    ) -> None:
        """Initialize analyzer.

        Args:
            executable: Binary name on PATH or absolute path
            recognizer: "phonetic" (language independent) or "pocketSphinx"
            extended_shapes: Extended mouth shapes to emit (subset of "GHX")
        """
        self.executable = executable
        self.recognizer = recognizer
        self.extended_shapes = extended_shapes

    def _resolve(self) -> str | None:
        return shutil.which(self.executable)

    def build_command(self, binary: str, audio_path: Path) -> list[str]:
        cmd = [binary, "-f", "json", "-q", "-r", self.recognizer]
        cmd.extend(["--extendedShapes", self.extended_shapes])
        cmd.append(str(audio_path))
        return cmd

    async def analyze(self, audio_path: Path, timeout: float) -> dict[str, Any]:
        binary = self._resolve()
        if binary is None:
            raise LipSyncToolError(f"Rhubarb executable not found: {self.executable}")

        cmd = self.build_command(binary, audio_path)
        logger.debug(f"Executing: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise LipSyncToolError(f"Failed to start Rhubarb: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
        except TimeoutError as e:
            _kill(proc)
            await proc.wait()
            raise LipSyncToolError(f"Rhubarb timed out after {timeout}s") from e
        except asyncio.CancelledError:
            _kill(proc)
            await proc.wait()
            raise

        if proc.returncode != 0:
            raise LipSyncToolError(
                f"Rhubarb failed with code {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

        return load_document(stdout)

    async def check(self) -> bool:
        binary = self._resolve()
        if binary is None:
            logger.debug(f"Rhubarb executable not found: {self.executable}")
            return False

        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"Rhubarb check failed: {e}")
            return False

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), CHECK_TIMEOUT)
        except TimeoutError:
            _kill(proc)
            await proc.wait()
            logger.debug("Rhubarb check timed out")
            return False

        if proc.returncode != 0:
            return False

        logger.debug(f"Rhubarb installed: {stdout.decode(errors='replace').strip()}")
        return True
