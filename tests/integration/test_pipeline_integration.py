"""End-to-end pipeline tests with a real cache and a stand-in Rhubarb tool."""

import json
import stat
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from conftest import RHUBARB_DOCUMENT
from tutorvoice.cache.manager import ArtifactCache
from tutorvoice.interactions import InteractionRecorder
from tutorvoice.lipsync.analyzer import RhubarbAnalyzer
from tutorvoice.lipsync.generator import LipSyncGenerator
from tutorvoice.speech.models import SpeakRequest
from tutorvoice.speech.pipeline import VoicePipeline
from tutorvoice.speech.synthesis import SpeechSynthesizer


@pytest.fixture
def rhubarb(tmp_path) -> Path:
    """Executable that prints a fixed Rhubarb document."""
    path = tmp_path / "bin" / "rhubarb"
    path.parent.mkdir()
    path.write_text(
        "#!/bin/sh\n"
        f"cat <<'EOF'\n{json.dumps(RHUBARB_DOCUMENT)}\nEOF\n"
    )
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


def build(data_dir: Path, provider, rhubarb: Path, scratch_dir: Path) -> VoicePipeline:
    return VoicePipeline(
        synthesizer=SpeechSynthesizer(provider=provider, timeout=5.0),
        lip_sync=LipSyncGenerator(
            RhubarbAnalyzer(executable=str(rhubarb)), timeout=5.0, temp_dir=scratch_dir
        ),
        cache=ArtifactCache(cache_dir=data_dir),
        recorder=InteractionRecorder(data_dir),
        pipeline_timeout=10.0,
    )


class TestPipelineIntegration:
    """Test the full speak path across restarts."""

    @pytest.mark.asyncio
    async def test_artifacts_survive_restart(
        self, tmp_path, fake_provider, rhubarb, scratch_dir
    ) -> None:
        """Test a new pipeline on the same store serves earlier renders."""
        data_dir = tmp_path / "data"

        first = build(data_dir, fake_provider, rhubarb, scratch_dir)
        rendered = await first.speak(SpeakRequest(text="¿Cómo estás?", subject_id="s1"))

        second = build(data_dir, fake_provider, rhubarb, scratch_dir)
        replayed = await second.speak(SpeakRequest(text="  ¿cómo   ESTÁS? ", subject_id="s1"))

        assert rendered.cache_hit is False
        assert rendered.lip_sync_degraded is False
        assert len(rendered.lip_sync.cues) == 5
        assert replayed.cache_hit is True
        assert replayed.audio == rendered.audio
        assert replayed.lip_sync == rendered.lip_sync
        assert len(fake_provider.calls) == 1
        assert list(scratch_dir.iterdir()) == []

        stats = await second.cache.stats()
        assert stats.total_entries == 1
        assert stats.total_uses == 2

        history = await second.recorder.for_subject("s1")
        assert [r.cache_hit for r in history] == [True, False]
        assert all(r.lip_sync_generated for r in history)

    @pytest.mark.asyncio
    async def test_missing_tool_degrades_but_serves(
        self, tmp_path, fake_provider, scratch_dir
    ) -> None:
        """Test a missing Rhubarb still returns audio with empty cues."""
        pipeline = build(
            tmp_path / "data", fake_provider, Path("/nonexistent/rhubarb"), scratch_dir
        )

        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.audio == fake_provider.audio
        assert response.lip_sync_degraded is True
        assert response.lip_sync.is_empty
        assert response.duration_seconds == pytest.approx(1.0)

        history = await pipeline.recorder.summary()
        assert history["total_interactions"] == 1
        assert history["failures"] == 0
