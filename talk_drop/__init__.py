"""Live index of conference talks and their uploaded files."""

__version__ = "0.1.0"
