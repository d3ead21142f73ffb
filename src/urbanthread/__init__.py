"""Location-aware incident reporting: scoring, reputation, feed and routes."""

__version__ = "0.1.0"
