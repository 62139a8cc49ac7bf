"""Greyscale pipeline: event-driven greyscale conversion of uploaded images."""

__version__ = "0.1.0"
