"""Viewer-count scrobbler for live-streamed video sources."""

__version__ = "1.0.0"
