"""Application name and version."""

__version__ = "0.3.0"

APP_NAME = "MIDI Autoplay"
