"""tutorvoice - voice pipeline for an AI tutor avatar."""

__version__ = "0.1.0"
__all__ = ["build_pipeline", "listen", "speak"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name in __all__:
        from . import api

        return getattr(api, name)
    raise AttributeError(f"module 'tutorvoice' has no attribute {name!r}")
