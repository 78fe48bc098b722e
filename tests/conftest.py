"""Pytest configuration and fixtures for tutorvoice tests."""

import asyncio
import io
import os
import sys
import tempfile
import wave
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tutorvoice.cache.manager import ArtifactCache
from tutorvoice.interactions import InteractionRecorder
from tutorvoice.lipsync.analyzer import LipSyncAnalyzer
from tutorvoice.lipsync.generator import LipSyncGenerator
from tutorvoice.providers import ProviderRegistry
from tutorvoice.providers.base import SpeechProvider
from tutorvoice.speech import clients
from tutorvoice.speech.models import SynthesisResult
from tutorvoice.speech.pipeline import VoicePipeline
from tutorvoice.speech.synthesis import SpeechSynthesizer

RHUBARB_DOCUMENT: dict[str, Any] = {
    "metadata": {"soundFile": "speech.wav", "duration": 1.0},
    "mouthCues": [
        {"start": 0.0, "end": 0.1, "value": "X"},
        {"start": 0.1, "end": 0.35, "value": "B"},
        {"start": 0.35, "end": 0.6, "value": "D"},
        {"start": 0.6, "end": 0.8, "value": "F"},
        {"start": 0.8, "end": 1.0, "value": "X"},
    ],
}


def make_wav(duration: float = 1.0, sample_rate: int = 16000) -> bytes:
    """Silent mono 16-bit WAV of the given length."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * int(duration * sample_rate))
    return buffer.getvalue()


class FakeProvider(SpeechProvider):
    """Synthesis provider that records calls and returns canned WAV audio."""

    name = "fake"
    default_voice = "nova"
    default_model = "tts-1"

    def __init__(self) -> None:
        self.audio = make_wav(1.0)
        self.delay = 0.0
        self.error: Exception | None = None
        self.calls: list[tuple[str, str, str]] = []

    async def synthesize(self, text: str, voice: str, model: str) -> SynthesisResult:
        self.calls.append((text, voice, model))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SynthesisResult(audio=self.audio, voice=voice, model=model)

    async def list_voices(self) -> list[dict]:
        return [{"id": "nova", "name": "Nova", "provider": self.name}]


class FakeAnalyzer(LipSyncAnalyzer):
    """Lip-sync analyzer double: success, failure or delay on demand."""

    def __init__(self) -> None:
        self.document: dict[str, Any] = RHUBARB_DOCUMENT
        self.error: Exception | None = None
        self.delay = 0.0
        self.available = True
        self.paths: list[Path] = []

    @property
    def calls(self) -> int:
        return len(self.paths)

    async def analyze(self, audio_path: Path, timeout: float) -> dict[str, Any]:
        self.paths.append(audio_path)
        assert audio_path.exists(), "audio must be on disk while analyzing"
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.document

    async def check(self) -> bool:
        return self.available


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path) -> None:
    """Keep every test away from real caches, sockets and credentials."""
    monkeypatch.setenv("TUTORVOICE_CACHE_DIR", str(tmp_path / "cache"))

    # Unix socket paths are length limited, so stay out of tmp_path
    socket_dir = Path(tempfile.gettempdir()) / f"tutorvoice-test-{os.getpid()}"
    socket_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
    monkeypatch.setenv("TUTORVOICE_SOCKET", str(socket_dir / "daemon.sock"))

    for name in (
        "OPENAI_API_KEY",
        "ELEVENLABS_API_KEY",
        "TUTORVOICE_PROVIDER",
        "TUTORVOICE_VOICE",
        "TUTORVOICE_MODEL",
        "TUTORVOICE_LANGUAGE",
        "TUTORVOICE_RHUBARB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)

    yield

    clients.openai_client.reset()
    clients.elevenlabs_client.reset()
    ProviderRegistry.clear_instances()


@pytest.fixture
def wav_factory() -> Callable[..., bytes]:
    return make_wav


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def lip_sync(fake_analyzer, scratch_dir) -> LipSyncGenerator:
    return LipSyncGenerator(analyzer=fake_analyzer, timeout=5.0, temp_dir=scratch_dir)


@pytest.fixture
def artifact_cache(tmp_path) -> ArtifactCache:
    return ArtifactCache(cache_dir=tmp_path / "artifacts")


@pytest.fixture
def recorder(tmp_path) -> InteractionRecorder:
    return InteractionRecorder(tmp_path / "artifacts")


@pytest.fixture
def pipeline(fake_provider, lip_sync, artifact_cache, recorder) -> VoicePipeline:
    return VoicePipeline(
        synthesizer=SpeechSynthesizer(provider=fake_provider, timeout=5.0),
        lip_sync=lip_sync,
        cache=artifact_cache,
        recorder=recorder,
        pipeline_timeout=10.0,
    )
