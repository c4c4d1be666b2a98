"""Plugin-based video monitoring pipelines: frame fan-out, motion detection and events."""

__version__ = "0.1.0"