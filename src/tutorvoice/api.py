"""High-level API for tutorvoice library usage."""

from datetime import timedelta

from .cache.manager import ArtifactCache
from .config import TutorVoiceConfig
from .health import HealthProbe
from .interactions import InteractionRecorder
from .lipsync.analyzer import RhubarbAnalyzer
from .lipsync.generator import LipSyncGenerator
from .providers import ProviderRegistry
from .speech.models import ListenRequest, ListenResponse, SpeakRequest, SpeakResponse
from .speech.pipeline import VoicePipeline
from .speech.synthesis import SpeechSynthesizer
from .speech.transcription import Transcriber


def build_pipeline(
    config: TutorVoiceConfig | None = None, provider: str | None = None
) -> VoicePipeline:
    """Wire a VoicePipeline from configuration.

    Args:
        config: Configuration (defaults to built-in defaults, no file read)
        provider: Provider name overriding ``config.synthesis.provider``

    Returns:
        Pipeline with cache and recorder enabled per ``config.cache``

    Raises:
        KeyError: If the provider is not registered
        RuntimeError: If the cache cannot be initialized
    """
    config = config or TutorVoiceConfig()
    synthesis = config.synthesis

    name = provider or synthesis.provider
    # Configured voice/model only make sense for the configured provider
    configured = name == synthesis.provider
    synthesizer = SpeechSynthesizer(
        provider=ProviderRegistry.get_instance(name),
        timeout=synthesis.timeout,
        max_text_length=synthesis.max_text_length,
        voice=synthesis.voice if configured else None,
        model=synthesis.model if configured else None,
    )
    lip_sync = LipSyncGenerator(
        analyzer=RhubarbAnalyzer(
            executable=config.lipsync.rhubarb_path,
            recognizer=config.lipsync.recognizer,
        ),
        timeout=config.lipsync.timeout,
    )
    transcriber = Transcriber(
        model=config.transcription.model,
        language=synthesis.language,
        timeout=config.transcription.timeout,
        min_bytes=config.transcription.min_audio_bytes,
        max_bytes=config.transcription.max_audio_bytes,
    )

    cache = None
    recorder = None
    if config.cache.enabled:
        cache = ArtifactCache(
            cache_dir=config.cache.directory,
            ttl=timedelta(days=config.cache.ttl_days),
        )
        recorder = InteractionRecorder(cache.cache_dir)

    return VoicePipeline(
        synthesizer=synthesizer,
        lip_sync=lip_sync,
        cache=cache,
        recorder=recorder,
        transcriber=transcriber,
        language=synthesis.language,
        pipeline_timeout=config.pipeline.timeout,
    )


def build_health_probe(pipeline: VoicePipeline) -> HealthProbe:
    """HealthProbe over the same components a pipeline uses."""
    return HealthProbe(
        provider=pipeline.synthesizer.provider,
        lip_sync=pipeline.lip_sync,
        cache=pipeline.cache,
    )


async def speak(
    text: str,
    voice: str | None = None,
    model: str | None = None,
    language: str | None = None,
    use_cache: bool = True,
    config: TutorVoiceConfig | None = None,
) -> SpeakResponse:
    """Synthesize ``text`` with lip-sync using a one-off pipeline.

    Long-running callers should build one pipeline with ``build_pipeline``
    and reuse it so identical concurrent requests are coalesced.

    Raises:
        ValidationError: If text is empty or too long
        DependencyUnavailable: If synthesis fails
    """
    pipeline = build_pipeline(config)
    return await pipeline.speak(
        SpeakRequest(
            text=text,
            voice=voice,
            model=model,
            language=language,
            use_cache=use_cache,
        )
    )


async def listen(
    audio: bytes,
    language: str | None = None,
    config: TutorVoiceConfig | None = None,
) -> ListenResponse:
    """Transcribe learner audio.

    Raises:
        EmptyAudioError: If audio is empty or too short
        PayloadTooLargeError: If audio is over the size limit
        DependencyUnavailable: If transcription fails
    """
    pipeline = build_pipeline(config)
    return await pipeline.listen(ListenRequest(audio=audio, language=language))
