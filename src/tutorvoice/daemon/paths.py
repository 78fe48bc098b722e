"""XDG-compliant directory paths for daemon operations."""

import os
from pathlib import Path


def get_runtime_dir() -> Path:
    """Get XDG-compliant runtime directory for sockets.

    Priority:
    1. $XDG_RUNTIME_DIR/tutorvoice/ (best - auto-cleaned on logout)
    2. $XDG_CACHE_HOME/tutorvoice/ (fallback)
    3. ~/.cache/tutorvoice/ (fallback)
    4. /tmp/tutorvoice-{uid}/ (last resort with proper permissions)

    Returns:
        Path to runtime directory for daemon operations
    """
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        path = Path(runtime_dir) / "tutorvoice"
    elif os.environ.get("XDG_CACHE_HOME"):
        path = Path(os.environ["XDG_CACHE_HOME"]) / "tutorvoice"
    elif Path.home().exists():
        path = Path.home() / ".cache" / "tutorvoice"
    else:
        path = Path(f"/tmp/tutorvoice-{os.getuid()}")

    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


def get_socket_path() -> Path:
    """Get the daemon socket path.

    $TUTORVOICE_SOCKET overrides the XDG location.
    """
    override = os.environ.get("TUTORVOICE_SOCKET")
    if override:
        return Path(override)
    return get_runtime_dir() / "daemon.sock"
