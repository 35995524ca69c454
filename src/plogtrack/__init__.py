"""Track litter-collection walks: live distance, durable sessions, summaries."""

__version__ = "0.1.0"
