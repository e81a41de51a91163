"""Episode catalog synchronization for a podcast-tracking application."""

__version__ = "0.1.0"
