"""Unix socket daemon package sharing one pipeline across clients."""

from .client import DaemonClient
from .server import TutorVoiceDaemon

__all__ = ["DaemonClient", "TutorVoiceDaemon"]
