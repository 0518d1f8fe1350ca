"""Text normalisation helpers."""

from talk_drop.normalizers.text import redact_filename, slugify, sort_title

__all__ = ["sort_title", "slugify", "redact_filename"]
