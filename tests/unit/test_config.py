"""Unit tests for configuration parsing and loading."""

import sys
import tomllib
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from tutorvoice.config import (
    DEFAULT_CONFIG,
    TutorVoiceConfig,
    generate_config,
    load_config,
    parse_config,
    reset_config_cache,
)


@pytest.fixture(autouse=True)
def fresh_config_cache():
    reset_config_cache()
    yield
    reset_config_cache()


class TestParseConfig:
    """Test building a config from parsed TOML."""

    def test_empty_data_gives_defaults(self, monkeypatch) -> None:
        """Test missing sections fall back to defaults."""
        monkeypatch.delenv("TUTORVOICE_CACHE_DIR", raising=False)
        config = parse_config({})

        assert config == TutorVoiceConfig()
        assert config.synthesis.voice == "nova"
        assert config.cache.directory is None

    def test_default_file_parses_to_defaults(self, monkeypatch) -> None:
        """Test the generated config file matches the built-in defaults."""
        monkeypatch.delenv("TUTORVOICE_CACHE_DIR", raising=False)
        assert parse_config(tomllib.loads(DEFAULT_CONFIG)) == TutorVoiceConfig()

    def test_file_values_are_used(self, monkeypatch) -> None:
        """Test values from each section are applied."""
        monkeypatch.delenv("TUTORVOICE_CACHE_DIR", raising=False)
        config = parse_config(
            {
                "synthesis": {"provider": "elevenlabs", "voice": "v1", "timeout": 10},
                "lipsync": {"rhubarb_path": "/opt/rhubarb/rhubarb", "timeout": 5},
                "transcription": {"model": "whisper-1", "max_audio_bytes": 1000000},
                "cache": {"enabled": False, "ttl_days": 7, "directory": "~/voice"},
                "pipeline": {"timeout": 45},
            }
        )

        assert config.synthesis.provider == "elevenlabs"
        assert config.synthesis.timeout == 10.0
        assert config.lipsync.rhubarb_path == "/opt/rhubarb/rhubarb"
        assert config.transcription.max_audio_bytes == 1000000
        assert config.cache.enabled is False
        assert config.cache.ttl_days == 7
        assert config.cache.directory == Path("~/voice").expanduser()
        assert config.pipeline.timeout == 45.0

    def test_env_overrides_file(self, monkeypatch, tmp_path) -> None:
        """Test environment variables win over file values."""
        monkeypatch.setenv("TUTORVOICE_VOICE", "shimmer")
        monkeypatch.setenv("TUTORVOICE_LANGUAGE", "en")
        monkeypatch.setenv("TUTORVOICE_RHUBARB_PATH", "/usr/local/bin/rhubarb")
        monkeypatch.setenv("TUTORVOICE_CACHE_DIR", str(tmp_path))

        config = parse_config({"synthesis": {"voice": "nova", "language": "es"}})

        assert config.synthesis.voice == "shimmer"
        assert config.synthesis.language == "en"
        assert config.lipsync.rhubarb_path == "/usr/local/bin/rhubarb"
        assert config.cache.directory == tmp_path

    def test_bad_types_raise(self) -> None:
        """Test values that cannot be converted raise ValueError."""
        with pytest.raises(ValueError, match="Invalid config value"):
            parse_config({"synthesis": {"timeout": "soon"}})

    def test_non_positive_timeouts_raise(self) -> None:
        """Test zero and negative timeouts are rejected by name."""
        with pytest.raises(ValueError, match="lipsync.timeout"):
            parse_config({"lipsync": {"timeout": 0}})
        with pytest.raises(ValueError, match="pipeline.timeout"):
            parse_config({"pipeline": {"timeout": -1}})

    def test_negative_ttl_raises(self) -> None:
        """Test a negative cache lifetime is rejected."""
        with pytest.raises(ValueError, match="ttl_days"):
            parse_config({"cache": {"ttl_days": -1}})


class TestLoadConfig:
    """Test loading from disk."""

    def test_missing_file_is_generated_then_exits(self, capsys) -> None:
        """Test first run writes the default file and exits 1."""
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "tutorvoice" / "config.toml"

            with pytest.raises(SystemExit) as exc_info:
                load_config(path)

            assert exc_info.value.code == 1
            assert path.read_text() == DEFAULT_CONFIG
            assert "Generated" in capsys.readouterr().err

    def test_loads_and_caches(self) -> None:
        """Test a valid file is parsed once and cached."""
        with TemporaryDirectory() as temp_dir:
            path = generate_config(Path(temp_dir) / "config.toml")

            first = load_config(path)
            path.write_text("[synthesis]\nvoice = 'alloy'\n")
            second = load_config(path)

            assert first is second
            assert second.synthesis.voice == "nova"

    def test_invalid_toml_exits(self, capsys) -> None:
        """Test unparseable TOML exits with a message."""
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "config.toml"
            path.write_text("[synthesis\nvoice = ")

            with pytest.raises(SystemExit):
                load_config(path)

            assert "Invalid config" in capsys.readouterr().err

    def test_invalid_value_exits(self, capsys) -> None:
        """Test out-of-range values exit with a message."""
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "config.toml"
            path.write_text("[pipeline]\ntimeout = 0\n")

            with pytest.raises(SystemExit):
                load_config(path)

            assert "pipeline.timeout" in capsys.readouterr().err
