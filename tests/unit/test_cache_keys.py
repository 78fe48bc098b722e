"""Unit tests for text normalization and cache key derivation."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from tutorvoice.cache.keys import derive_cache_key, normalize_text


class TestNormalizeText:
    """Test canonicalization of request text."""

    def test_whitespace_and_case_are_canonicalized(self) -> None:
        """Test surrounding whitespace, runs of spaces and case collapse."""
        assert normalize_text("  Muy   BIEN\n\tamigo  ") == "muy bien amigo"

    def test_inverted_punctuation_is_dropped(self) -> None:
        """Test Spanish inverted marks do not change the normalized form."""
        assert normalize_text("¡Hola! ¿Qué tal?") == normalize_text("Hola! Qué tal?")

    def test_prosody_punctuation_is_kept(self) -> None:
        """Test sentence punctuation survives normalization."""
        assert normalize_text("Hola.") != normalize_text("Hola?")

    def test_composed_and_decomposed_accents_match(self) -> None:
        """Test NFC normalization unifies accented characters."""
        composed = "canci\u00f3n"
        decomposed = "cancio\u0301n"
        assert composed != decomposed
        assert normalize_text(composed) == normalize_text(decomposed)

    def test_empty_input_gives_empty_string(self) -> None:
        """Test empty and blank input normalize to an empty string."""
        assert normalize_text("") == ""
        assert normalize_text("   ") == ""


class TestDeriveCacheKey:
    """Test deterministic SHA-256 key derivation."""

    def test_key_is_deterministic_hex_digest(self) -> None:
        """Test the same inputs always give the same 64-char hex key."""
        first = derive_cache_key("hola", "nova", "tts-1", "es")
        second = derive_cache_key("hola", "nova", "tts-1", "es")

        assert first == second
        assert len(first) == 64
        int(first, 16)

    def test_each_field_changes_the_key(self) -> None:
        """Test text, voice, model and language all contribute to the key."""
        base = derive_cache_key("hola", "nova", "tts-1", "es")

        assert derive_cache_key("adios", "nova", "tts-1", "es") != base
        assert derive_cache_key("hola", "alloy", "tts-1", "es") != base
        assert derive_cache_key("hola", "nova", "tts-1-hd", "es") != base
        assert derive_cache_key("hola", "nova", "tts-1", "en") != base

    def test_field_boundaries_cannot_be_shifted(self) -> None:
        """Test content moved between adjacent fields gives a different key."""
        assert derive_cache_key("ab|c", "d", "m") != derive_cache_key("ab", "c|d", "m")
        assert derive_cache_key("a", "bc", "m") != derive_cache_key("ab", "c", "m")

    def test_missing_language_differs_from_empty_language(self) -> None:
        """Test None and "" language produce different keys."""
        assert derive_cache_key("hola", "nova", "tts-1", None) != derive_cache_key(
            "hola", "nova", "tts-1", ""
        )

    def test_equivalent_texts_share_a_key_after_normalization(self) -> None:
        """Test requests differing only in formatting hit the same entry."""
        first = derive_cache_key(normalize_text("¡Muy bien!"), "nova", "tts-1", "es")
        second = derive_cache_key(normalize_text("  muy BIEN!"), "nova", "tts-1", "es")
        assert first == second

    def test_none_fields_are_rejected(self) -> None:
        """Test None text, voice or model raises ValueError."""
        with pytest.raises(ValueError, match="must be non-None"):
            derive_cache_key(None, "nova", "tts-1")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            derive_cache_key("hola", None, "tts-1")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            derive_cache_key("hola", "nova", None)  # type: ignore[arg-type]
