"""Voice pipeline orchestrator for tutorvoice.

Coordinates the artifact cache, request coalescing, speech synthesis,
lip-sync generation and interaction recording behind two calls: ``speak``
for tutor output and ``listen`` for learner input.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum

from ..audio.duration import (
    estimate_duration_from_size,
    estimate_duration_from_text,
    measure_duration,
)
from ..cache.keys import derive_cache_key, normalize_text
from ..cache.manager import ArtifactCache
from ..cache.models import CachedArtifact
from ..interactions import InteractionRecord, InteractionRecorder
from ..lipsync.generator import LipSyncGenerator
from ..lipsync.models import LipSyncCueSequence
from .coordinator import InFlightCoordinator
from .errors import DependencyUnavailable, VoiceError
from .models import ListenRequest, ListenResponse, SpeakRequest, SpeakResponse
from .synthesis import SpeechSynthesizer, validate_text
from .transcription import Transcriber

logger = logging.getLogger(__name__)

DEFAULT_PIPELINE_TIMEOUT = 60.0


class PipelineState(Enum):
    REQUESTED = "requested"
    KEY_DERIVED = "key_derived"
    CACHE_PROBED = "cache_probed"
    CACHE_HIT = "cache_hit"
    SYNTHESIZING = "cache_miss_synthesizing"
    LIP_SYNCING = "lip_syncing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RenderedSpeech:
    """Output of one synthesis + lip-sync pass, shared by coalesced callers."""

    audio: bytes
    audio_format: str
    voice: str
    model: str
    duration: float
    lip_sync: LipSyncCueSequence

    @classmethod
    def from_artifact(cls, artifact: CachedArtifact) -> "RenderedSpeech":
        return cls(
            audio=artifact.audio,
            audio_format=artifact.audio_format,
            voice=artifact.voice,
            model=artifact.model,
            duration=artifact.duration,
            lip_sync=artifact.lip_sync,
        )


@dataclass
class _Trace:
    """Per-request bookkeeping for logging and the interaction record."""

    state: PipelineState = PipelineState.REQUESTED
    key: str | None = None
    cache_hit: bool = False

    def advance(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline {self.state.value} -> {state.value}")
        self.state = state


class VoicePipeline:
    """Turns tutor text into audio with mouth cues, and learner audio into text.

    Example:
        pipeline = VoicePipeline(
            synthesizer=SpeechSynthesizer("openai"),
            lip_sync=LipSyncGenerator(),
            cache=ArtifactCache(),
        )
        response = await pipeline.speak(SpeakRequest(text="¡Muy bien!"))
    """

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        lip_sync: LipSyncGenerator,
        cache: ArtifactCache | None = None,
        recorder: InteractionRecorder | None = None,
        transcriber: Transcriber | None = None,
        coordinator: InFlightCoordinator | None = None,
        language: str | None = "es",
        pipeline_timeout: float = DEFAULT_PIPELINE_TIMEOUT,
    ) -> None:
        """Initialize the pipeline.

        Args:
            synthesizer: Text-to-speech adapter
            lip_sync: Lip-sync generator (degrades instead of failing)
            cache: Artifact cache; None disables caching entirely
            recorder: Interaction sink; None disables recording
            transcriber: Speech-to-text adapter used by ``listen``
            coordinator: Coalescer for identical in-flight requests
            language: Language tag used when a request does not give one
            pipeline_timeout: Seconds a single ``speak`` caller will wait

        Raises:
            ValueError: If pipeline_timeout is not positive
        """
        if pipeline_timeout <= 0:
            raise ValueError("pipeline_timeout must be positive")
        self.synthesizer = synthesizer
        self.lip_sync = lip_sync
        self.cache = cache
        self.recorder = recorder
        self.transcriber = transcriber
        self.coordinator = coordinator or InFlightCoordinator()
        self.language = language
        self.pipeline_timeout = pipeline_timeout

        logger.debug(
            f"VoicePipeline initialized with "
            f"cache={'enabled' if cache else 'disabled'}, "
            f"recorder={'enabled' if recorder else 'disabled'}"
        )

    async def speak(self, request: SpeakRequest) -> SpeakResponse:
        """Produce a complete spoken response for ``request.text``.

        Args:
            request: What to say and how

        Returns:
            SpeakResponse with audio, mouth cues and duration

        Raises:
            ValidationError: If the text is empty or too long
            DependencyUnavailable: If synthesis fails or the request runs
                past the pipeline timeout
        """
        start = time.monotonic()
        trace = _Trace()
        voice, model = self.synthesizer.resolve(request.voice, request.model)
        language = request.language or self.language
        response: SpeakResponse | None = None
        error: BaseException | None = None

        try:
            response = await asyncio.wait_for(
                self._speak(request, voice, model, language, trace, start),
                timeout=self.pipeline_timeout,
            )
            trace.advance(PipelineState.COMPLETED)
            return response
        except TimeoutError as e:
            error = DependencyUnavailable(
                f"Voice pipeline timed out after {self.pipeline_timeout}s",
                dependency="pipeline",
                key=trace.key,
                original_error=e,
            )
            trace.advance(PipelineState.FAILED)
            logger.error(str(error))
            raise error from e
        except BaseException as e:
            error = e
            trace.advance(PipelineState.FAILED)
            raise
        finally:
            await self._record(request, voice, model, language, trace, start, response, error)

    async def _speak(
        self,
        request: SpeakRequest,
        voice: str,
        model: str,
        language: str | None,
        trace: _Trace,
        start: float,
    ) -> SpeakResponse:
        text = validate_text(request.text, self.synthesizer.max_text_length)
        normalized = normalize_text(text)
        key = derive_cache_key(normalized, voice, model, language)
        trace.key = key
        trace.advance(PipelineState.KEY_DERIVED)

        use_cache = request.use_cache and self.cache is not None
        if not use_cache:
            rendered = await self._render(text, voice, model, key)
            return self._response(rendered, False, language, key, start)

        artifact = None
        try:
            artifact = await self.cache.get_and_touch(key)
        except Exception as e:
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
        trace.advance(PipelineState.CACHE_PROBED)

        if artifact is not None:
            trace.cache_hit = True
            trace.advance(PipelineState.CACHE_HIT)
            return self._response(
                RenderedSpeech.from_artifact(artifact), True, language, key, start
            )

        trace.advance(PipelineState.SYNTHESIZING)
        rendered = await self.coordinator.run_exclusive(
            key,
            lambda: self._render_and_store(text, normalized, voice, model, language, key),
        )
        return self._response(rendered, False, language, key, start)

    async def _render(
        self, text: str, voice: str, model: str, key: str
    ) -> RenderedSpeech:
        """Synthesize ``text`` and generate its mouth cues."""
        result = await self.synthesizer.synthesize(text, voice, model, key=key)

        logger.debug(
            f"Pipeline {PipelineState.SYNTHESIZING.value} -> "
            f"{PipelineState.LIP_SYNCING.value} for {key[:12]}"
        )
        measured = measure_duration(result.audio)
        lip_sync = await self.lip_sync.generate(
            result.audio, audio_format=result.audio_format, duration=measured
        )

        if measured is not None:
            duration = measured
        elif lip_sync.duration > 0:
            duration = lip_sync.duration
        else:
            duration = estimate_duration_from_text(text)

        return RenderedSpeech(
            audio=result.audio,
            audio_format=result.audio_format,
            voice=result.voice,
            model=result.model,
            duration=duration,
            lip_sync=lip_sync,
        )

    async def _render_and_store(
        self,
        text: str,
        normalized: str,
        voice: str,
        model: str,
        language: str | None,
        key: str,
    ) -> RenderedSpeech:
        # A render for this key may have finished between our miss and now
        try:
            stored = await self.cache.get_and_touch(key, count_lookup=False)
        except Exception as e:
            logger.warning(f"Cache re-check failed, rendering anyway: {e}")
            stored = None
        if stored is not None:
            logger.debug(f"Artifact {key[:12]} stored by an earlier render, reusing it")
            return RenderedSpeech.from_artifact(stored)

        rendered = await self._render(text, voice, model, key)

        try:
            artifact = self.cache.create_artifact(
                key=key,
                text=text,
                normalized_text=normalized,
                voice=rendered.voice,
                model=rendered.model,
                language=language,
                audio=rendered.audio,
                audio_format=rendered.audio_format,
                duration=rendered.duration,
                lip_sync=rendered.lip_sync,
            )
            await self.cache.put(artifact)
        except Exception as e:
            # The fresh result is still returned
            logger.warning(f"Failed to cache artifact {key[:12]}: {e}")

        return rendered

    @staticmethod
    def _response(
        rendered: RenderedSpeech,
        cache_hit: bool,
        language: str | None,
        key: str,
        start: float,
    ) -> SpeakResponse:
        return SpeakResponse(
            audio=rendered.audio,
            lip_sync=rendered.lip_sync,
            duration_seconds=rendered.duration,
            cache_hit=cache_hit,
            voice=rendered.voice,
            model=rendered.model,
            language=language,
            audio_format=rendered.audio_format,
            cache_key=key,
            response_time_ms=int((time.monotonic() - start) * 1000),
        )

    async def _record(
        self,
        request: SpeakRequest,
        voice: str,
        model: str,
        language: str | None,
        trace: _Trace,
        start: float,
        response: SpeakResponse | None,
        error: BaseException | None,
    ) -> None:
        if self.recorder is None:
            return

        record = InteractionRecord(
            interaction_type=request.interaction_type,
            response_text=request.text or "",
            voice=response.voice if response else voice,
            model=response.model if response else model,
            language=language,
            cache_hit=trace.cache_hit,
            lip_sync_generated=bool(response and not response.lip_sync_degraded),
            response_time_ms=int((time.monotonic() - start) * 1000),
            audio_duration=response.duration_seconds if response else None,
            outcome="completed" if response is not None else "failed",
            error=type(error).__name__ if error is not None else None,
            subject_id=request.subject_id,
            session_id=request.session_id,
            activity_id=request.activity_id,
        )
        try:
            await self.recorder.record(record)
        except Exception as e:
            logger.warning(f"Failed to record interaction: {e}")

    async def listen(self, request: ListenRequest) -> ListenResponse:
        """Transcribe learner audio.

        Args:
            request: Raw audio upload and optional language

        Returns:
            ListenResponse; ``text`` is empty when no speech was detected

        Raises:
            EmptyAudioError: If audio is empty or too short
            PayloadTooLargeError: If audio is over the size limit
            DependencyUnavailable: If transcription fails
        """
        if self.transcriber is None:
            raise VoiceError("No transcriber configured")

        start = time.monotonic()
        language = request.language or self.transcriber.language
        text = await self.transcriber.transcribe(request.audio, language=language)
        response_time_ms = int((time.monotonic() - start) * 1000)

        if not text:
            logger.info("No speech detected in learner audio")

        return ListenResponse(
            text=text,
            duration_estimate_seconds=estimate_duration_from_size(len(request.audio)),
            language=language,
            response_time_ms=response_time_ms,
        )
