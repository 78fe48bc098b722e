"""Artifact cache for the tutorvoice speech pipeline."""

import os
from pathlib import Path


def get_cache_dir() -> Path:
    """Get or create the tutorvoice cache directory.

    Uses $TUTORVOICE_CACHE_DIR when set, otherwise ~/.cache/tutorvoice/.

    Returns:
        Path to the cache directory
    """
    override = os.environ.get("TUTORVOICE_CACHE_DIR")
    cache_dir = Path(override) if override else Path.home() / ".cache" / "tutorvoice"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir
