"""Client cache projection package."""

from expense_tracker.projection.projector import CacheProjector, build_snapshot

__all__ = ["CacheProjector", "build_snapshot"]
