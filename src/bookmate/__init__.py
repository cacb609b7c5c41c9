"""Bookmate: persistence layer and reciprocal relationship engine."""

__version__ = "1.0.0"
