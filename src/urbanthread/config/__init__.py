"""Configuration package."""

from urbanthread.config.settings import Settings

__all__ = ["Settings"]
