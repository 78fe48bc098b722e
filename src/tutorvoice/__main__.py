"""Entry point for running tutorvoice as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the tutorvoice CLI application."""
    app()


if __name__ == "__main__":
    main()
