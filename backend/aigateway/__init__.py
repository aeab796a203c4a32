"""AI Gateway - session, cache and context layer in front of an AI inference service."""

__version__ = "1.0.0"
