"""Parsing of Rhubarb Lip Sync JSON output into cue sequences."""

import json
import logging
from typing import Any

from .models import VISEMES, LipSyncCueSequence, MouthCue

logger = logging.getLogger(__name__)


class MalformedLipSyncOutput(ValueError):
    """Raised when the analysis tool output cannot be turned into cues."""

    pass


def load_document(raw: str | bytes) -> dict[str, Any]:
    """Decode the tool's stdout into a JSON object.

    Raises:
        MalformedLipSyncOutput: If the output is not a JSON object
    """
    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedLipSyncOutput(f"Lip-sync output is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedLipSyncOutput("Lip-sync output must be a JSON object")
    return document


def parse_rhubarb_output(
    document: dict[str, Any], duration: float | None = None
) -> LipSyncCueSequence:
    """Convert a Rhubarb JSON document into a LipSyncCueSequence.

    Expected shape::

        {"metadata": {"soundFile": "...", "duration": 1.47},
         "mouthCues": [{"start": 0.0, "end": 0.05, "value": "X"}, ...]}

    Args:
        document: Decoded JSON document
        duration: Measured audio duration, used when the document has none

    Returns:
        Validated cue sequence sorted by start time

    Raises:
        MalformedLipSyncOutput: If structure, times or visemes are invalid
    """
    metadata = document.get("metadata", {})
    if not isinstance(metadata, dict):
        raise MalformedLipSyncOutput("'metadata' must be an object")

    raw_cues = document.get("mouthCues")
    if not isinstance(raw_cues, list):
        raise MalformedLipSyncOutput("'mouthCues' must be a list")

    cues: list[MouthCue] = []
    for index, raw in enumerate(raw_cues):
        if not isinstance(raw, dict):
            raise MalformedLipSyncOutput(f"cue {index} is not an object")

        start, end, value = raw.get("start"), raw.get("end"), raw.get("value")
        if not _is_number(start) or not _is_number(end):
            raise MalformedLipSyncOutput(f"cue {index} has non-numeric times")
        if value not in VISEMES:
            raise MalformedLipSyncOutput(f"cue {index} has unknown viseme {value!r}")
        if start < 0 or end < start:
            raise MalformedLipSyncOutput(
                f"cue {index} has invalid times ({start}, {end})"
            )
        if end == start:
            logger.debug(f"Dropping zero-length cue {index} at {start}")
            continue

        cues.append(MouthCue(start=float(start), end=float(end), value=value))

    cues.sort(key=lambda c: c.start)

    reported = metadata.get("duration")
    if _is_number(reported) and reported >= 0:
        total = float(reported)
    elif duration is not None:
        total = duration
    else:
        total = cues[-1].end if cues else 0.0

    try:
        return LipSyncCueSequence(duration=total, cues=tuple(cues))
    except ValueError as e:
        raise MalformedLipSyncOutput(str(e)) from e


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
