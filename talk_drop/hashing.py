"""Streaming content hashes for uploaded files."""

import hashlib
from pathlib import Path

CHUNK_SIZE = 64 * 1024


def hash_file(path: str | Path) -> str:
    """Return the SHA-256 hex digest of a file, read in chunks.

    Raises OSError if the file vanishes or cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
