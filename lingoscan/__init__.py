"""Dictionary-driven translation and string extraction for live documents."""

__version__ = "0.1.0"
