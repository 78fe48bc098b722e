"""Lip-sync package: viseme analysis of synthesized speech."""

from .analyzer import LipSyncAnalyzer, LipSyncToolError, RhubarbAnalyzer
from .generator import LipSyncGenerator
from .models import VISEMES, LipSyncCueSequence, MouthCue
from .parser import MalformedLipSyncOutput, parse_rhubarb_output

__all__ = [
    "VISEMES",
    "LipSyncAnalyzer",
    "LipSyncCueSequence",
    "LipSyncGenerator",
    "LipSyncToolError",
    "MalformedLipSyncOutput",
    "MouthCue",
    "RhubarbAnalyzer",
    "parse_rhubarb_output",
]
