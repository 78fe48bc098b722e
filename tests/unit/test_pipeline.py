"""Unit tests for VoicePipeline orchestration."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from tutorvoice.lipsync.analyzer import LipSyncToolError
from tutorvoice.speech.errors import DependencyUnavailable, ValidationError, VoiceError
from tutorvoice.speech.models import ListenRequest, SpeakRequest
from tutorvoice.speech.pipeline import VoicePipeline
from tutorvoice.speech.synthesis import SpeechSynthesizer


class TestSpeakCaching:
    """Test cache hit and miss paths."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, pipeline, fake_provider, fake_analyzer) -> None:
        """Test the second identical request is served from the cache."""
        first = await pipeline.speak(SpeakRequest(text="¡Muy bien!"))
        second = await pipeline.speak(SpeakRequest(text="¡Muy bien!"))

        assert first.cache_hit is False
        assert second.cache_hit is True
        assert second.audio == first.audio
        assert second.lip_sync == first.lip_sync
        assert second.duration_seconds == pytest.approx(1.0)
        assert len(fake_provider.calls) == 1
        assert fake_analyzer.calls == 1

    @pytest.mark.asyncio
    async def test_equivalent_text_hits(self, pipeline, fake_provider) -> None:
        """Test formatting differences still hit the cached artifact."""
        await pipeline.speak(SpeakRequest(text="¡Muy bien!"))
        response = await pipeline.speak(SpeakRequest(text="  muy   BIEN! "))

        assert response.cache_hit is True
        assert len(fake_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_voice_is_part_of_identity(self, pipeline, fake_provider) -> None:
        """Test a different voice is a cache miss."""
        await pipeline.speak(SpeakRequest(text="Hola", voice="nova"))
        response = await pipeline.speak(SpeakRequest(text="Hola", voice="alloy"))

        assert response.cache_hit is False
        assert response.voice == "alloy"
        assert len(fake_provider.calls) == 2

    @pytest.mark.asyncio
    async def test_use_cache_false_bypasses_lookup_and_storage(
        self, pipeline, fake_provider, artifact_cache
    ) -> None:
        """Test use_cache=False neither reads nor writes the cache."""
        await pipeline.speak(SpeakRequest(text="Hola", use_cache=False))
        response = await pipeline.speak(SpeakRequest(text="Hola", use_cache=False))

        assert response.cache_hit is False
        assert len(fake_provider.calls) == 2
        stats = await artifact_cache.stats()
        assert stats.total_entries == 0
        assert stats.lookups == 0

    @pytest.mark.asyncio
    async def test_pipeline_without_cache(self, fake_provider, lip_sync) -> None:
        """Test a pipeline built without a cache always synthesizes."""
        pipeline = VoicePipeline(
            synthesizer=SpeechSynthesizer(provider=fake_provider), lip_sync=lip_sync
        )

        await pipeline.speak(SpeakRequest(text="Hola"))
        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.cache_hit is False
        assert len(fake_provider.calls) == 2

    @pytest.mark.asyncio
    async def test_cache_failures_do_not_fail_the_request(
        self, pipeline, fake_provider, artifact_cache
    ) -> None:
        """Test lookup and store errors degrade to an uncached response."""
        artifact_cache.get_and_touch = AsyncMock(side_effect=RuntimeError("db locked"))
        artifact_cache.put = AsyncMock(side_effect=RuntimeError("disk full"))

        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.cache_hit is False
        assert response.audio == fake_provider.audio
        artifact_cache.put.assert_awaited_once()


class TestSpeakResponse:
    """Test response contents."""

    @pytest.mark.asyncio
    async def test_response_fields(self, pipeline) -> None:
        """Test defaults for voice, model and language are filled in."""
        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.voice == "nova"
        assert response.model == "tts-1"
        assert response.language == "es"
        assert response.audio_format == "wav"
        assert len(response.cache_key) == 64
        assert response.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_to_dict_is_json_safe(self, pipeline) -> None:
        """Test to_dict() carries base64 audio and Rhubarb-shaped cues."""
        data = (await pipeline.speak(SpeakRequest(text="Hola"))).to_dict()

        assert set(data) == {
            "audio",
            "audio_format",
            "lipsync",
            "lipsync_degraded",
            "duration",
            "cache_hit",
            "voice",
            "model",
            "language",
            "response_time_ms",
        }
        assert isinstance(data["audio"], str)
        assert len(data["lipsync"]["mouthCues"]) == 5

    @pytest.mark.asyncio
    async def test_duration_falls_back_to_lip_sync(
        self, pipeline, fake_provider
    ) -> None:
        """Test undecodable audio takes its duration from the cue document."""
        fake_provider.audio = b"not a real audio container"

        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.duration_seconds == pytest.approx(1.0)
        assert response.lip_sync_degraded is False


class TestSpeakLipSyncDegradation:
    """Test that lip-sync failures never fail the request."""

    @pytest.mark.asyncio
    async def test_tool_failure_returns_audio_with_empty_cues(
        self, pipeline, fake_analyzer
    ) -> None:
        """Test a failing tool yields audio, empty cues and the real duration."""
        fake_analyzer.error = LipSyncToolError("Rhubarb executable not found: rhubarb")

        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.audio
        assert response.lip_sync.is_empty
        assert response.lip_sync_degraded is True
        assert response.duration_seconds == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_degraded_artifact_is_cached(self, pipeline, fake_analyzer) -> None:
        """Test the degraded result is stored and served on the next request."""
        fake_analyzer.error = LipSyncToolError("timed out")

        await pipeline.speak(SpeakRequest(text="Hola"))
        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.cache_hit is True
        assert response.lip_sync_degraded is True


class TestSpeakFailures:
    """Test failure reporting."""

    @pytest.mark.asyncio
    async def test_empty_text_is_rejected_without_synthesis(
        self, pipeline, fake_provider
    ) -> None:
        """Test validation fails before any external call."""
        with pytest.raises(ValidationError, match="Text is required"):
            await pipeline.speak(SpeakRequest(text="   "))
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_text_over_limit_is_rejected(self, pipeline, fake_provider) -> None:
        """Test text longer than the limit fails validation."""
        with pytest.raises(ValidationError, match="Text too long"):
            await pipeline.speak(SpeakRequest(text="a" * 4097))
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_synthesis_failure_is_not_cached(
        self, pipeline, fake_provider, artifact_cache
    ) -> None:
        """Test a synthesis failure propagates and stores nothing."""
        fake_provider.error = DependencyUnavailable("Server error (500)", dependency="synthesis")

        with pytest.raises(DependencyUnavailable) as exc_info:
            await pipeline.speak(SpeakRequest(text="Hola"))

        assert exc_info.value.key is not None
        assert (await artifact_cache.stats()).total_entries == 0

        fake_provider.error = None
        response = await pipeline.speak(SpeakRequest(text="Hola"))
        assert response.cache_hit is False
        assert len(fake_provider.calls) == 2

    @pytest.mark.asyncio
    async def test_pipeline_timeout(
        self, fake_provider, lip_sync, artifact_cache
    ) -> None:
        """Test the caller gets a timeout while shared work still completes."""
        fake_provider.delay = 0.3
        pipeline = VoicePipeline(
            synthesizer=SpeechSynthesizer(provider=fake_provider, timeout=5.0),
            lip_sync=lip_sync,
            cache=artifact_cache,
            pipeline_timeout=0.05,
        )

        with pytest.raises(DependencyUnavailable, match="timed out") as exc_info:
            await pipeline.speak(SpeakRequest(text="Hola"))

        assert exc_info.value.dependency == "pipeline"
        key = exc_info.value.key

        # The abandoned computation finishes and populates the cache
        for _ in range(50):
            if not pipeline.coordinator.in_flight(key):
                break
            await asyncio.sleep(0.05)
        assert await artifact_cache.get(key) is not None

    def test_rejects_non_positive_timeout(self, fake_provider, lip_sync) -> None:
        """Test a zero pipeline timeout is rejected."""
        with pytest.raises(ValueError):
            VoicePipeline(
                synthesizer=SpeechSynthesizer(provider=fake_provider),
                lip_sync=lip_sync,
                pipeline_timeout=0,
            )


class TestSpeakCoalescing:
    """Test identical concurrent requests share one synthesis."""

    @pytest.mark.asyncio
    async def test_concurrent_identical_requests_synthesize_once(
        self, pipeline, fake_provider, fake_analyzer
    ) -> None:
        """Test 50 concurrent misses for one key make one provider call."""
        fake_provider.delay = 0.1

        responses = await asyncio.gather(
            *(pipeline.speak(SpeakRequest(text="Hola")) for _ in range(50))
        )

        assert len(responses) == 50
        assert len(fake_provider.calls) == 1
        assert fake_analyzer.calls == 1
        assert all(r.audio == responses[0].audio for r in responses)
        assert all(r.cache_hit is False for r in responses)

    @pytest.mark.asyncio
    async def test_late_miss_reuses_finished_render(
        self, pipeline, artifact_cache, fake_provider, fake_analyzer
    ) -> None:
        """Test a miss observed before another render finished does not re-synthesize."""
        fake_provider.delay = 0.05
        lookup = artifact_cache.get_and_touch
        lookups = 0

        async def slow_second_lookup(key, count_lookup=True):
            nonlocal lookups
            artifact = await lookup(key, count_lookup=count_lookup)
            if count_lookup:
                lookups += 1
                if lookups == 2:
                    # Report the miss only after the first render is stored
                    await asyncio.sleep(0.3)
            return artifact

        artifact_cache.get_and_touch = slow_second_lookup

        first, second = await asyncio.gather(
            pipeline.speak(SpeakRequest(text="Hola")),
            pipeline.speak(SpeakRequest(text="Hola")),
        )

        assert len(fake_provider.calls) == 1
        assert fake_analyzer.calls == 1
        assert second.audio == first.audio
        assert second.lip_sync == first.lip_sync
        assert (await artifact_cache.get(first.cache_key)).times_used == 2

    @pytest.mark.asyncio
    async def test_concurrent_failure_reaches_every_caller(
        self, pipeline, fake_provider
    ) -> None:
        """Test a shared failure is raised to all coalesced callers."""
        fake_provider.delay = 0.05
        fake_provider.error = DependencyUnavailable("Rate limit exceeded", dependency="synthesis")

        results = await asyncio.gather(
            *(pipeline.speak(SpeakRequest(text="Hola")) for _ in range(3)),
            return_exceptions=True,
        )

        assert all(isinstance(r, DependencyUnavailable) for r in results)
        assert len(fake_provider.calls) == 1


class TestSpeakRecording:
    """Test interaction records written for every call."""

    @pytest.mark.asyncio
    async def test_success_and_hit_are_recorded(self, pipeline, recorder) -> None:
        """Test each call appends a record with its cache outcome."""
        request = SpeakRequest(
            text="Hola", subject_id="learner-1", session_id="s-1", interaction_type="hint"
        )
        await pipeline.speak(request)
        await pipeline.speak(request)

        records = await recorder.for_subject("learner-1")

        assert [r.cache_hit for r in records] == [True, False]
        assert all(r.outcome == "completed" for r in records)
        assert all(r.lip_sync_generated for r in records)
        assert records[0].interaction_type == "hint"
        assert records[0].session_id == "s-1"
        assert records[0].audio_duration == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_failures_are_recorded(self, pipeline, recorder, fake_provider) -> None:
        """Test failed calls are recorded with the error class."""
        fake_provider.error = DependencyUnavailable("down", dependency="synthesis")

        with pytest.raises(DependencyUnavailable):
            await pipeline.speak(SpeakRequest(text="Hola", subject_id="learner-2"))
        with pytest.raises(ValidationError):
            await pipeline.speak(SpeakRequest(text="", subject_id="learner-2"))

        records = await recorder.for_subject("learner-2")

        assert [r.outcome for r in records] == ["failed", "failed"]
        assert [r.error for r in records] == ["ValidationError", "DependencyUnavailable"]
        assert all(r.audio_duration is None for r in records)

    @pytest.mark.asyncio
    async def test_recorder_failure_does_not_fail_request(self, pipeline, recorder) -> None:
        """Test a broken recorder is logged and ignored."""
        recorder.record = AsyncMock(side_effect=RuntimeError("readonly database"))

        response = await pipeline.speak(SpeakRequest(text="Hola"))

        assert response.audio
        recorder.record.assert_awaited_once()


class TestListen:
    """Test the speech-to-text path."""

    @pytest.mark.asyncio
    async def test_without_transcriber_raises(self, pipeline) -> None:
        """Test listen() needs a transcriber."""
        with pytest.raises(VoiceError, match="No transcriber"):
            await pipeline.listen(ListenRequest(audio=b"\x00" * 2048))

    @pytest.mark.asyncio
    async def test_transcript_and_estimate(self, pipeline) -> None:
        """Test the transcript is returned with a size-based duration estimate."""
        transcriber = MagicMock()
        transcriber.language = "es"
        transcriber.transcribe = AsyncMock(return_value="Tengo un perro")
        pipeline.transcriber = transcriber

        response = await pipeline.listen(ListenRequest(audio=b"\x00" * 16000))

        assert response.text == "Tengo un perro"
        assert response.no_speech is False
        assert response.language == "es"
        assert response.duration_estimate_seconds == pytest.approx(1.0)
        transcriber.transcribe.assert_awaited_once_with(b"\x00" * 16000, language="es")

    @pytest.mark.asyncio
    async def test_no_speech_is_not_an_error(self, pipeline) -> None:
        """Test silence comes back as an empty transcript."""
        transcriber = MagicMock()
        transcriber.language = "es"
        transcriber.transcribe = AsyncMock(return_value="")
        pipeline.transcriber = transcriber

        response = await pipeline.listen(ListenRequest(audio=b"\x00" * 2048, language="en"))

        assert response.no_speech is True
        assert response.to_dict()["transcription"] == ""
        assert response.language == "en"
