"""Multipart upload toolkit served through FastAPI."""

__version__ = "1.0.0"
