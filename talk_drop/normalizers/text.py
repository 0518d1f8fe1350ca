"""Title, slug and filename normalisation."""

import re
import unicodedata
from pathlib import PurePath

# Leading articles dropped from sort keys (English and German)
LEADING_ARTICLE = re.compile(r"^(a|an|the|der|die|das) ")

# Anything that is not a letter or a number in any script
NON_ALPHANUMERIC = re.compile(r"[\W_]+")

GERMAN_TRANSLITERATION = {
    "ä": "ae", "ö": "oe", "ü": "ue",
    "Ä": "Ae", "Ö": "Oe", "Ü": "Ue",
    "ß": "ss",
}

REDACTION_CHAR = "*"


def sort_title(title: str) -> str:
    """Comparison key for ordering talks by title.

    "The Widget" sorts under "widget"; punctuation and emoji are dropped.
    """
    key = LEADING_ARTICLE.sub("", title.lower())
    key = NON_ALPHANUMERIC.sub(" ", key)
    return " ".join(key.split())


def _strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    # Remove combining diacritical marks (category 'Mn')
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


def slugify(title: str, language: str | None = None) -> str:
    """Convert a talk title to a URL-friendly slug.

    German titles get umlauts transliterated ("Zugänge" -> "zugaenge").
    Titles without any ASCII letters keep their own script.
    """
    text = title.strip()
    if language and language.lower().startswith("de"):
        for char, replacement in GERMAN_TRANSLITERATION.items():
            text = text.replace(char, replacement)

    slug = _strip_accents(text).lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug).strip("-")
    if slug:
        return slug

    # e.g. titles written entirely in CJK
    return NON_ALPHANUMERIC.sub("-", text.lower()).strip("-")


def redact_filename(name: str) -> str:
    """Mask a filename for unauthorised viewers, keeping its extension.

    >>> redact_filename("slides-final.pdf")
    's**********l.pdf'
    """
    path = PurePath(name)
    stem, suffix = path.stem, path.suffix
    if len(stem) <= 2:
        return REDACTION_CHAR * len(stem) + suffix
    return stem[0] + REDACTION_CHAR * (len(stem) - 2) + stem[-1] + suffix
