"""Feed package."""

from urbanthread.feed.geo_filter import filter_feed, is_visible

__all__ = ["filter_feed", "is_visible"]
