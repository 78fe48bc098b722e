"""Configuration management for tutorvoice.

Loads configuration from ~/.config/tutorvoice/config.toml.
Priority chain: CLI flags > env vars > config file > defaults.
"""

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_DIR = Path.home() / ".config" / "tutorvoice"
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
# tutorvoice configuration

[synthesis]
# Provider: "openai" (default) or "elevenlabs"
provider = "openai"

# OpenAI voices: alloy, ash, ballad, coral, echo, fable, nova, onyx, sage,
#                shimmer, verse
# ElevenLabs: use `tutorvoice voices --provider elevenlabs`
voice = "nova"

# OpenAI: tts-1 (fast), tts-1-hd (higher quality)
model = "tts-1"

# Language tag passed through to the cache key and transcription
language = "es"

# Seconds to wait for one synthesis call
timeout = 30.0

[lipsync]
# Path or name of the Rhubarb Lip Sync executable
rhubarb_path = "rhubarb"

# "phonetic" works for any language; "pocketSphinx" is English-only
recognizer = "phonetic"

# Seconds allowed for one analysis run
timeout = 20.0

[transcription]
model = "whisper-1"
timeout = 60.0

[cache]
enabled = true

# Days a synthesized phrase stays cached
ttl_days = 30

[pipeline]
# Total seconds one speak request may take
timeout = 60.0

# API keys are read from environment variables, not this file:
#   OPENAI_API_KEY      - OpenAI synthesis and transcription
#   ELEVENLABS_API_KEY  - ElevenLabs provider
"""


@dataclass(frozen=True)
class SynthesisConfig:
    """Speech synthesis configuration."""

    provider: str = "openai"
    voice: str = "nova"
    model: str = "tts-1"
    language: str = "es"
    timeout: float = 30.0
    max_text_length: int = 4096


@dataclass(frozen=True)
class LipSyncConfig:
    """Lip-sync tool configuration."""

    rhubarb_path: str = "rhubarb"
    recognizer: str = "phonetic"
    timeout: float = 20.0


@dataclass(frozen=True)
class TranscriptionConfig:
    """Speech-to-text configuration."""

    model: str = "whisper-1"
    timeout: float = 60.0
    min_audio_bytes: int = 1024
    max_audio_bytes: int = 25 * 1024 * 1024


@dataclass(frozen=True)
class CacheConfig:
    """Artifact cache configuration."""

    enabled: bool = True
    ttl_days: int = 30
    directory: Path | None = None


@dataclass(frozen=True)
class PipelineConfig:
    """Whole-request limits."""

    timeout: float = 60.0


@dataclass(frozen=True)
class TutorVoiceConfig:
    """Top-level tutorvoice configuration."""

    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    lipsync: LipSyncConfig = field(default_factory=LipSyncConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)


_cached_config: TutorVoiceConfig | None = None


def generate_config(path: Path = CONFIG_PATH) -> Path:
    """Generate default config file at ~/.config/tutorvoice/config.toml."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def parse_config(data: dict[str, Any]) -> TutorVoiceConfig:
    """Build a config from parsed TOML with env var overrides applied.

    Missing sections and keys fall back to defaults.

    Raises:
        ValueError: If a value has the wrong type or is out of range
    """
    synthesis = data.get("synthesis", {})
    lipsync = data.get("lipsync", {})
    transcription = data.get("transcription", {})
    cache = data.get("cache", {})
    pipeline = data.get("pipeline", {})

    defaults = TutorVoiceConfig()
    cache_dir = os.getenv("TUTORVOICE_CACHE_DIR", cache.get("directory"))

    try:
        config = TutorVoiceConfig(
            synthesis=SynthesisConfig(
                provider=os.getenv(
                    "TUTORVOICE_PROVIDER",
                    synthesis.get("provider", defaults.synthesis.provider),
                ),
                voice=os.getenv(
                    "TUTORVOICE_VOICE", synthesis.get("voice", defaults.synthesis.voice)
                ),
                model=os.getenv(
                    "TUTORVOICE_MODEL", synthesis.get("model", defaults.synthesis.model)
                ),
                language=os.getenv(
                    "TUTORVOICE_LANGUAGE",
                    synthesis.get("language", defaults.synthesis.language),
                ),
                timeout=float(synthesis.get("timeout", defaults.synthesis.timeout)),
                max_text_length=int(
                    synthesis.get("max_text_length", defaults.synthesis.max_text_length)
                ),
            ),
            lipsync=LipSyncConfig(
                rhubarb_path=os.getenv(
                    "TUTORVOICE_RHUBARB_PATH",
                    lipsync.get("rhubarb_path", defaults.lipsync.rhubarb_path),
                ),
                recognizer=lipsync.get("recognizer", defaults.lipsync.recognizer),
                timeout=float(lipsync.get("timeout", defaults.lipsync.timeout)),
            ),
            transcription=TranscriptionConfig(
                model=transcription.get("model", defaults.transcription.model),
                timeout=float(
                    transcription.get("timeout", defaults.transcription.timeout)
                ),
                min_audio_bytes=int(
                    transcription.get(
                        "min_audio_bytes", defaults.transcription.min_audio_bytes
                    )
                ),
                max_audio_bytes=int(
                    transcription.get(
                        "max_audio_bytes", defaults.transcription.max_audio_bytes
                    )
                ),
            ),
            cache=CacheConfig(
                enabled=bool(cache.get("enabled", defaults.cache.enabled)),
                ttl_days=int(cache.get("ttl_days", defaults.cache.ttl_days)),
                directory=Path(cache_dir).expanduser() if cache_dir else None,
            ),
            pipeline=PipelineConfig(
                timeout=float(pipeline.get("timeout", defaults.pipeline.timeout)),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config value: {e}") from e

    timeouts = {
        "synthesis.timeout": config.synthesis.timeout,
        "lipsync.timeout": config.lipsync.timeout,
        "transcription.timeout": config.transcription.timeout,
        "pipeline.timeout": config.pipeline.timeout,
    }
    invalid = [name for name, value in timeouts.items() if value <= 0]
    if invalid:
        raise ValueError(f"Timeouts must be positive: {', '.join(invalid)}")
    if config.cache.ttl_days < 0:
        raise ValueError("cache.ttl_days must be non-negative")

    return config


def load_config(path: Path = CONFIG_PATH) -> TutorVoiceConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding.

    Returns:
        Loaded and validated TutorVoiceConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if not path.exists():
        generated = generate_config(path)
        print(
            f"No config found. Generated {generated}. Review it and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        config = parse_config(data)
    except (tomllib.TOMLDecodeError, ValueError) as e:
        print(f"Invalid config: {e}", file=sys.stderr)
        print(f"Edit {path} or delete it to regenerate.", file=sys.stderr)
        raise SystemExit(1) from None

    _cached_config = config
    return config


def reset_config_cache() -> None:
    global _cached_config
    _cached_config = None
