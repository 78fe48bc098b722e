"""Foreground runner for the tutorvoice daemon.

Used by the ``tutorvoice-daemon`` console script and ``tutorvoice serve``.
SIGTERM and SIGINT both cancel the server task, which removes the socket
and releases the lock on the way out.
"""

import asyncio
import logging
import signal
import sys

from .server import TutorVoiceDaemon

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


async def main(daemon: TutorVoiceDaemon | None = None) -> None:
    """Serve until a shutdown signal arrives.

    Args:
        daemon: Daemon to run (one built from the config file if None)
    """
    daemon = daemon or TutorVoiceDaemon()
    server_task = asyncio.create_task(daemon.start())

    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, _request_shutdown, server_task, sig)

    try:
        await server_task
    except asyncio.CancelledError:
        logger.info(
            f"Daemon shut down after serving {daemon.requests_served} requests"
        )
    except Exception as e:
        logger.error(f"Daemon error: {e}")
        sys.exit(1)
    finally:
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)


def _request_shutdown(task: asyncio.Task, sig: signal.Signals) -> None:
    logger.info(f"Received {sig.name}, shutting down")
    task.cancel()


def run() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
