"""Guided back-care exercise session player."""

__version__ = "0.1.0"
