"""Axis-Archive: mirror a web page into a self-contained project archive."""

__version__ = "1.0.0"
