"""Audio helpers: duration measurement and scoped temp files."""

from .duration import (
    estimate_duration_from_size,
    estimate_duration_from_text,
    measure_duration,
)
from .tempfiles import cleanup_stale_temp_files, get_temp_dir, scoped_temp_file

__all__ = [
    "cleanup_stale_temp_files",
    "estimate_duration_from_size",
    "estimate_duration_from_text",
    "get_temp_dir",
    "measure_duration",
    "scoped_temp_file",
]
