"""Unix socket client for communicating with the tutorvoice daemon."""

import asyncio
import base64
import json
import uuid
from pathlib import Path
from typing import Any

from .paths import get_socket_path


class DaemonClient:
    """Client for communicating with the tutorvoice daemon via Unix socket."""

    def __init__(self, socket_path: Path | None = None, timeout: float = 90.0) -> None:
        """Initialize client.

        Args:
            socket_path: Socket location (defaults to the daemon's default)
            timeout: Seconds to wait for a full response
        """
        self.socket_path = socket_path or get_socket_path()
        self.timeout = timeout

    async def _exchange(self, payload: bytes) -> bytes:
        reader, writer = await asyncio.open_unix_connection(str(self.socket_path))
        try:
            writer.write(payload)
            await writer.drain()
            # Signal end of request; the daemon reads until EOF
            writer.write_eof()
            return await reader.read()
        finally:
            writer.close()
            await writer.wait_closed()

    async def send_request(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Send JSON request to daemon and return parsed response.

        Args:
            method: RPC method name ("speak", "listen", "health", "status")
            params: Parameters for the method

        Returns:
            Parsed JSON response, or ``{"status": "error", "error": ...}``
            when the daemon cannot be reached
        """
        request = {"id": str(uuid.uuid4()), "method": method, "params": params}

        try:
            data = await asyncio.wait_for(
                self._exchange(json.dumps(request).encode()), timeout=self.timeout
            )
            return json.loads(data.decode())
        except FileNotFoundError:
            return {"status": "error", "error": "Daemon not running"}
        except ConnectionRefusedError:
            return {"status": "error", "error": "Daemon not responding"}
        except TimeoutError:
            return {"status": "error", "error": "Daemon did not respond in time"}
        except json.JSONDecodeError as e:
            return {"status": "error", "error": f"Invalid response from daemon: {e}"}
        except OSError as e:
            return {"status": "error", "error": f"Communication error: {e}"}

    async def speak(self, text: str, **params: Any) -> dict[str, Any]:
        """Ask the daemon to voice ``text``.

        Args:
            text: Text to speak
            **params: Other SpeakRequest fields (voice, model, language,
                use_cache, subject_id, session_id, activity_id,
                interaction_type)
        """
        return await self.send_request("speak", {"text": text, **params})

    async def listen(self, audio: bytes, language: str | None = None) -> dict[str, Any]:
        params = {"audio": base64.b64encode(audio).decode("ascii"), "language": language}
        return await self.send_request("listen", params)

    async def health(self) -> dict[str, Any]:
        return await self.send_request("health", {})

    async def status(self) -> dict[str, Any]:
        return await self.send_request("status", {})
