"""backdate - generate and undo timestamped git commit histories."""

__version__ = "0.1.0"
