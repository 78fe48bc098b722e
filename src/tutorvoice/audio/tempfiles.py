"""Per-call temporary files for external tools and uploads."""

import logging
import os
import tempfile
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

TEMP_PREFIX = "tutorvoice-"


def get_temp_dir() -> Path:
    """Get or create the tutorvoice scratch directory under the system temp dir."""
    path = Path(tempfile.gettempdir()) / "tutorvoice"
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


@contextmanager
def scoped_temp_file(
    data: bytes, suffix: str, directory: Path | None = None
) -> Generator[Path, None, None]:
    """Write ``data`` to a uniquely named file and delete it on exit.

    The file is removed on every exit path, including exceptions raised
    while writing or inside the ``with`` block.

    Args:
        data: Bytes to write
        suffix: File extension including the dot (e.g. ".wav")
        directory: Parent directory (defaults to get_temp_dir())

    Yields:
        Path to the written file
    """
    parent = directory or get_temp_dir()
    fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=suffix, dir=parent)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield path
    finally:
        path.unlink(missing_ok=True)


def cleanup_stale_temp_files(
    max_age_seconds: float = 3600.0, directory: Path | None = None
) -> int:
    """Delete scratch files left behind by crashed processes.

    Args:
        max_age_seconds: Files older than this are removed
        directory: Directory to sweep (defaults to get_temp_dir())

    Returns:
        Number of files removed
    """
    parent = directory or get_temp_dir()
    cutoff = time.time() - max_age_seconds
    removed = 0

    for path in parent.glob(f"{TEMP_PREFIX}*"):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
                logger.debug(f"Removed stale temp file: {path.name}")
        except FileNotFoundError:
            # Another process finished with it first
            continue

    if removed:
        logger.info(f"Cleaned up {removed} stale temp files in {parent}")
    return removed
