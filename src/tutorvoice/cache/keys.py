"""Text normalization and content-addressed cache keys."""

import hashlib
import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")

# Inverted marks do not change pronunciation: "¡Hola!" and "Hola!" sound alike
_INVERTED_MARKS = str.maketrans("", "", "¡¿")


def normalize_text(text: str) -> str:
    """Canonicalize text so equivalent requests hash identically.

    Applies NFC normalization, trims, collapses whitespace runs, lower-cases
    and drops Spanish inverted punctuation. Sentence punctuation that
    affects prosody (``. , ! ? ; :``) is kept.

    Args:
        text: Raw input text

    Returns:
        Normalized text (empty input gives an empty string)
    """
    text = unicodedata.normalize("NFC", text)
    text = text.translate(_INVERTED_MARKS)
    text = _WHITESPACE.sub(" ", text).strip()
    return text.lower()


def derive_cache_key(
    normalized_text: str, voice: str, model: str, language: str | None = None
) -> str:
    """Derive a deterministic SHA-256 cache key.

    Each field is length-prefixed, so no field value can imitate a
    separator and shift content into a neighbouring field. A missing
    language is encoded differently from an empty one.

    Args:
        normalized_text: Output of normalize_text()
        voice: Voice identifier
        model: Synthesis model identifier
        language: Optional language tag (e.g. "es")

    Returns:
        64-character hex digest

    Raises:
        ValueError: If text, voice or model is None
    """
    if normalized_text is None or voice is None or model is None:
        raise ValueError("All parameters (text, voice, model) must be non-None")

    fields = [normalized_text, voice, model]
    parts = [f"{len(value)}:{value}" for value in fields]
    parts.append("-" if language is None else f"{len(language)}:{language}")

    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
