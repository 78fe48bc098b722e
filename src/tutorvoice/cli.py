"""Typer CLI definition for tutorvoice."""

import asyncio
import base64
import json
import logging
import sys
from pathlib import Path

import typer

from .config import load_config
from .speech.errors import DependencyUnavailable, ValidationError, VoiceError

app = typer.Typer(help="Voice pipeline for an AI tutor: speech, lip-sync and transcription")


def configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


def fail(message: str, error: Exception, debug: bool) -> None:
    """Print an error the way every command does and exit 1."""
    if debug:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    elif isinstance(error, VoiceError):
        typer.echo(f"Error: {error.user_message}", err=True)
    else:
        typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1) from None


def read_text(text: str | None, file: Path | None) -> str:
    """Get text from argument, file, or stdin (in priority order).

    Raises:
        ValueError: If no text is provided
        OSError: If the file cannot be read
    """
    if text is None:
        if file:
            text = file.read_text()
        elif not sys.stdin.isatty():
            text = sys.stdin.read().strip()
    if text is None:
        raise ValueError("No text provided")
    return text


@app.command()
def speak(
    text: str | None = typer.Argument(None, help="Text to speak"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Save audio to this file"
    ),
    lipsync_output: Path | None = typer.Option(
        None, "--lipsync-output", help="Save mouth cues as JSON to this file"
    ),
    voice: str | None = typer.Option(
        None, "-v", "--voice", help="Voice ID (from config if omitted)"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Synthesis model (from config if omitted)"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Synthesis provider (from config if omitted)"
    ),
    language: str | None = typer.Option(
        None, "-l", "--language", help="Language tag (from config if omitted)"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the artifact cache"),
    use_daemon: bool = typer.Option(
        False, "--daemon", help="Send the request to a running daemon"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and logs"),
) -> None:
    """Synthesize speech with lip-sync cues."""
    configure_logging(debug)

    try:
        content = read_text(text, file)
    except (ValueError, OSError, UnicodeDecodeError) as e:
        fail(str(e), e, debug)

    if use_daemon:
        from .daemon.client import DaemonClient

        response = asyncio.run(
            DaemonClient().speak(
                content,
                voice=voice,
                model=model,
                language=language,
                use_cache=not no_cache,
            )
        )
        if response.get("status") != "success":
            error = response.get("error") or response.get("result", {}).get("error")
            typer.echo(f"Error: {error}", err=True)
            raise typer.Exit(1)
        result = response["result"]
        if output:
            output.write_bytes(base64.b64decode(result["audio"]))
            typer.echo(f"Audio saved to {output}")
        if lipsync_output:
            lipsync_output.write_text(json.dumps(result["lipsync"], indent=2))
            typer.echo(f"Lip-sync saved to {lipsync_output}")
        typer.echo(
            f"{result['duration']:.2f}s audio, "
            f"{len(result['lipsync']['mouthCues'])} cues, "
            f"cache {'hit' if result['cache_hit'] else 'miss'}"
        )
        return

    from .api import build_pipeline
    from .speech.models import SpeakRequest

    config = load_config()
    try:
        pipeline = build_pipeline(config, provider=provider)
        result = asyncio.run(
            pipeline.speak(
                SpeakRequest(
                    text=content,
                    voice=voice,
                    model=model,
                    language=language,
                    use_cache=not no_cache,
                )
            )
        )
    except ValidationError as e:
        fail("Invalid input", e, debug)
    except DependencyUnavailable as e:
        fail("Speech synthesis failed", e, debug)
    except KeyError as e:
        fail(f"Unknown provider: {provider}", e, debug)
    except Exception as e:
        fail("An unexpected error occurred", e, debug)

    try:
        if output:
            output.write_bytes(result.audio)
            typer.echo(f"Audio saved to {output}")
        if lipsync_output:
            lipsync_output.write_text(json.dumps(result.lip_sync.to_dict(), indent=2))
            typer.echo(f"Lip-sync saved to {lipsync_output}")
    except OSError as e:
        fail("Failed to save output file", e, debug)

    typer.echo(
        f"{result.duration_seconds:.2f}s audio, {len(result.lip_sync.cues)} cues, "
        f"cache {'hit' if result.cache_hit else 'miss'}, "
        f"{result.response_time_ms}ms"
    )
    if result.lip_sync_degraded:
        typer.echo("Warning: lip-sync unavailable, mouth cues are empty", err=True)


@app.command()
def listen(
    audio_file: Path = typer.Argument(..., help="Recorded audio to transcribe"),
    language: str | None = typer.Option(None, "-l", "--language", help="Language code"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and logs"),
) -> None:
    """Transcribe a recording of learner speech."""
    configure_logging(debug)

    from .api import build_pipeline
    from .speech.models import ListenRequest

    try:
        audio = audio_file.read_bytes()
    except OSError as e:
        fail(f"Cannot read {audio_file}", e, debug)

    config = load_config()
    try:
        pipeline = build_pipeline(config)
        result = asyncio.run(
            pipeline.listen(ListenRequest(audio=audio, language=language))
        )
    except VoiceError as e:
        fail("Transcription failed", e, debug)
    except Exception as e:
        fail("An unexpected error occurred", e, debug)

    if result.no_speech:
        typer.echo("(no speech detected)")
    else:
        typer.echo(result.text)


@app.command()
def health(
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and logs"),
) -> None:
    """Check synthesis credentials, the lip-sync tool and the cache store."""
    configure_logging(debug)

    from .api import build_health_probe, build_pipeline

    config = load_config()
    try:
        probe = build_health_probe(build_pipeline(config))
        report = asyncio.run(probe.check())
    except Exception as e:
        fail("Health check failed", e, debug)

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        mark = {True: "✓", False: "✗"}
        typer.echo(f"Status: {report.status}")
        typer.echo(f"  {mark[report.synthesis_available]} synthesis")
        typer.echo(f"  {mark[report.lip_sync_tool_available]} lip-sync tool")
        typer.echo(f"  {mark[report.cache_store_reachable]} cache store")
        typer.echo(f"  cache entries: {report.cache_entry_count}")
        typer.echo(f"  hit rate: {report.approximate_hit_rate:.1%}")

    if report.status != "ok":
        raise typer.Exit(1)


def _open_cache(debug: bool):
    from datetime import timedelta

    from .cache.manager import ArtifactCache

    config = load_config()
    try:
        return ArtifactCache(
            cache_dir=config.cache.directory,
            ttl=timedelta(days=config.cache.ttl_days),
        )
    except RuntimeError as e:
        fail("Cannot open cache", e, debug)


@app.command("cache-stats")
def cache_stats(
    top: int = typer.Option(10, "--top", help="Number of most reused phrases to show"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and logs"),
) -> None:
    """Show artifact cache statistics."""
    configure_logging(debug)
    cache = _open_cache(debug)

    async def collect():
        return await cache.stats(), await cache.top_phrases(top)

    stats, phrases = asyncio.run(collect())
    typer.echo("=== Cache Statistics ===")
    typer.echo(f"Entries: {stats.total_entries}")
    typer.echo(f"Audio stored: {stats.total_bytes / (1024 * 1024):.1f} MB")
    typer.echo(f"Total uses: {stats.total_uses}")
    typer.echo(f"Hit rate: {stats.hit_rate:.1%}")
    if phrases:
        typer.echo("\nMost reused phrases:")
        for i, (phrase, uses) in enumerate(phrases, 1):
            typer.echo(f"  {i}. {phrase[:60]} ({uses} uses)")


@app.command("purge-cache")
def purge_cache(
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and logs"),
) -> None:
    """Delete expired cache entries and stale temp files."""
    configure_logging(debug)

    from .audio.tempfiles import cleanup_stale_temp_files

    cache = _open_cache(debug)
    deleted = asyncio.run(cache.purge_expired())
    removed = cleanup_stale_temp_files()
    typer.echo(f"Purged {deleted} expired entries, {removed} stale temp files")


@app.command()
def voices(
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Synthesis provider (from config if omitted)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and logs"),
) -> None:
    """List voices offered by a provider."""
    configure_logging(debug)

    from .speech.synthesis import list_available_voices

    name = provider or load_config().synthesis.provider
    try:
        available = asyncio.run(list_available_voices(name))
    except KeyError as e:
        fail(f"Unknown provider: {name}", e, debug)
    except Exception as e:
        fail("Failed to list voices", e, debug)

    if not available:
        typer.echo("No voices available")
        return

    typer.echo(f"{'ID':<30} {'Name':<30}")
    typer.echo("-" * 60)
    for voice in available:
        typer.echo(f"{voice['id']:<30} {voice['name']:<30}")


@app.command()
def serve(
    debug: bool = typer.Option(False, "--debug", help="Log at DEBUG level"),
) -> None:
    """Run the Unix-socket daemon in the foreground."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    from .daemon.__main__ import main as daemon_main

    asyncio.run(daemon_main())
    typer.echo("Daemon stopped")
