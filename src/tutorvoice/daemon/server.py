"""Unix socket daemon server for tutorvoice."""

import asyncio
import base64
import binascii
import fcntl
import json
import logging
import os
import socket
import time
from pathlib import Path
from typing import Any

from ..audio.tempfiles import cleanup_stale_temp_files
from ..speech.errors import DependencyUnavailable, ValidationError, VoiceError
from ..speech.models import ListenRequest, SpeakRequest
from ..speech.pipeline import VoicePipeline
from .paths import get_socket_path

logger = logging.getLogger(__name__)


def error_result(e: Exception) -> dict[str, Any]:
    """Serialize an exception into a result payload without leaking detail."""
    if isinstance(e, ValidationError):
        return {"error": e.user_message, "error_type": "validation", "retryable": False}
    if isinstance(e, DependencyUnavailable):
        return {
            "error": e.user_message,
            "error_type": "dependency",
            "dependency": e.dependency,
            "retryable": e.retryable,
        }
    if isinstance(e, VoiceError):
        return {"error": e.user_message, "error_type": "voice", "retryable": False}
    return {"error": "Internal error", "error_type": "internal", "retryable": False}


class TutorVoiceDaemon:
    """Unix socket daemon serving the voice pipeline.

    One request per connection: the client writes a JSON object and closes
    its write side; the daemon replies with one JSON object. Connections are
    handled concurrently on one event loop and share one pipeline, so
    identical concurrent speak requests from different clients coalesce.
    """

    def __init__(
        self,
        pipeline: VoicePipeline | None = None,
        socket_path: Path | None = None,
    ) -> None:
        """Initialize daemon.

        Args:
            pipeline: Pre-built pipeline (built from the config file on
                start if None)
            socket_path: Socket location (defaults to the XDG runtime dir)
        """
        self.pipeline = pipeline
        self.socket_path = socket_path or get_socket_path()
        self.lock_path = self.socket_path.with_suffix(".lock")
        self.lock_fd: int | None = None
        self.started_at = time.monotonic()
        self.requests_served = 0
        self._health_probe = None

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle incoming client connection and JSON request."""
        request: dict[str, Any] = {}
        try:
            # Read JSON request until the client closes its write side
            data = await reader.read()
            if not data:
                writer.close()
                await writer.wait_closed()
                return

            try:
                request = json.loads(data.decode())
                if not isinstance(request, dict):
                    raise ValueError("Request must be a JSON object")
            except ValueError as e:
                # Also covers JSONDecodeError and UnicodeDecodeError
                request = {}
                result = {
                    "error": f"Invalid request: {e}",
                    "error_type": "validation",
                    "retryable": False,
                }
            else:
                method = request.get("method", "unknown")
                logger.debug(f"Received request: {method}")
                result = await self.dispatch(method, request.get("params") or {})

            response = {
                "id": request.get("id"),
                "status": "success" if "error" not in result else "error",
                "result": result,
            }

        except Exception as e:
            logger.error(f"Error handling client: {e}")
            response = {"id": request.get("id"), "status": "error", "result": error_result(e)}

        try:
            writer.write(json.dumps(response).encode())
            await writer.drain()
        except ConnectionError as e:
            logger.debug(f"Client went away before the response was sent: {e}")
        finally:
            writer.close()
            await writer.wait_closed()

    async def dispatch(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Run one RPC method; domain errors become error results."""
        try:
            if method == "speak":
                result = await self.handle_speak(params)
            elif method == "listen":
                result = await self.handle_listen(params)
            elif method == "health":
                result = await self.handle_health()
            elif method == "status":
                result = self.handle_status()
            else:
                return {"error": f"Unknown method: {method}", "error_type": "validation"}
        except VoiceError as e:
            return error_result(e)

        self.requests_served += 1
        return result

    async def handle_speak(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            request = SpeakRequest.from_dict(params)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        response = await self.pipeline.speak(request)
        return response.to_dict()

    async def handle_listen(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            audio = base64.b64decode(params.get("audio") or "", validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("Audio must be base64 encoded") from e
        response = await self.pipeline.listen(
            ListenRequest(audio=audio, language=params.get("language"))
        )
        return response.to_dict()

    async def handle_health(self) -> dict[str, Any]:
        if self._health_probe is None:
            from ..api import build_health_probe

            self._health_probe = build_health_probe(self.pipeline)
        report = await self._health_probe.check()
        return report.to_dict()

    def handle_status(self) -> dict[str, Any]:
        return {
            "pid": os.getpid(),
            "uptime_seconds": round(time.monotonic() - self.started_at, 1),
            "requests_served": self.requests_served,
            "in_flight": len(self.pipeline.coordinator),
        }

    def _acquire_lock(self) -> None:
        """Take an exclusive lock so only one daemon serves this socket."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        self.lock_fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR, 0o600)
        try:
            fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(self.lock_fd)
            self.lock_fd = None
            logger.error("Another daemon is already running (lock held)")
            raise RuntimeError("Another daemon process is already running") from None
        logger.info("Acquired exclusive daemon lock")

    def _release_lock(self) -> None:
        if self.lock_fd is not None:
            os.close(self.lock_fd)
            self.lock_fd = None
            logger.debug("Released daemon lock")

    def _remove_stale_socket(self) -> None:
        if not self.socket_path.exists():
            return

        # Try to connect to see if another daemon is using it
        probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        probe.settimeout(0.5)
        try:
            probe.connect(str(self.socket_path))
        except OSError:
            # Socket exists but nobody listening, safe to remove
            self.socket_path.unlink(missing_ok=True)
            logger.debug(f"Removed stale socket: {self.socket_path}")
            return
        finally:
            probe.close()

        logger.error(f"Another daemon is already running on {self.socket_path}")
        raise RuntimeError(f"Socket {self.socket_path} is already in use by another daemon")

    async def start(self) -> None:
        """Start the daemon server and serve until cancelled."""
        logger.info("Starting tutorvoice daemon...")
        self._acquire_lock()
        bound = False

        try:
            if self.pipeline is None:
                from ..api import build_pipeline
                from ..config import load_config

                self.pipeline = build_pipeline(load_config())

            removed = cleanup_stale_temp_files()
            if removed:
                logger.info(f"Removed {removed} leftover temp files")

            self._remove_stale_socket()
            server = await asyncio.start_unix_server(
                self.handle_client, str(self.socket_path)
            )
            bound = True
            os.chmod(self.socket_path, 0o600)

            logger.info(f"Daemon listening on {self.socket_path} (PID {os.getpid()})")
            self.started_at = time.monotonic()

            async with server:
                await server.serve_forever()
        finally:
            if bound:
                self.socket_path.unlink(missing_ok=True)
            self._release_lock()
