"""Viseme lookups and conversions for avatar animation."""

from .models import IDLE_VISEME, LipSyncCueSequence

# Rhubarb shape -> avatar morph target
MORPH_TARGETS: dict[str, str] = {
    "A": "viseme_PP",  # p, b, m - closed lips
    "B": "viseme_kk",  # k, g - slightly open
    "C": "viseme_I",  # i, ee
    "D": "viseme_AA",  # a, ah - wide open
    "E": "viseme_O",  # o - rounded
    "F": "viseme_U",  # u, oo - pursed
    "G": "viseme_FF",  # f, v - teeth on lip
    "H": "viseme_TH",  # th - tongue between teeth
    "X": "viseme_PP",  # idle
}

# Rhubarb shape -> Azure Speech viseme id (0-21)
AZURE_VISEME_IDS: dict[str, int] = {
    "A": 1,
    "B": 5,
    "C": 12,
    "D": 15,
    "E": 13,
    "F": 14,
    "G": 2,
    "H": 3,
    "X": 0,
}


def morph_target_for(viseme: str) -> str:
    return MORPH_TARGETS[viseme]


def viseme_at(sequence: LipSyncCueSequence, time: float) -> str:
    """Return the viseme active at ``time`` seconds, idle outside any cue."""
    for cue in sequence.cues:
        if cue.start <= time <= cue.end:
            return cue.value
        if cue.start > time:
            break
    return IDLE_VISEME


def to_azure_visemes(sequence: LipSyncCueSequence) -> list[tuple[float, int]]:
    """Convert cues to (offset_ms, azure_viseme_id) pairs."""
    return [(cue.start * 1000, AZURE_VISEME_IDS[cue.value]) for cue in sequence.cues]


def to_keyframes(sequence: LipSyncCueSequence, fps: int = 30) -> list[dict]:
    """Sample the sequence at a fixed frame rate.

    Args:
        sequence: Cue sequence to sample
        fps: Frames per second (must be positive)

    Returns:
        List of {"time", "viseme", "morphTarget"} dictionaries
    """
    if fps <= 0:
        raise ValueError("fps must be positive")

    keyframes = []
    frame = 0
    while True:
        # Multiply instead of accumulating to avoid float drift
        time = frame / fps
        if time > sequence.duration:
            break
        viseme = viseme_at(sequence, time)
        keyframes.append(
            {"time": time, "viseme": viseme, "morphTarget": morph_target_for(viseme)}
        )
        frame += 1
    return keyframes


def simplify(sequence: LipSyncCueSequence, min_duration: float = 0.05) -> LipSyncCueSequence:
    """Drop cues shorter than ``min_duration`` seconds."""
    kept = tuple(c for c in sequence.cues if c.end - c.start >= min_duration)
    return LipSyncCueSequence(
        duration=sequence.duration, cues=kept, degraded=sequence.degraded
    )
