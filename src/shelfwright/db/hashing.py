# ABOUTME: Content digests used to tell whether an incoming book file matches the placed copy.
# ABOUTME: Digests are compared in memory only and never written to either store.

import hashlib
from collections.abc import Callable
from pathlib import Path

_CHUNK_SIZE = 64 * 1024

# Signature of a hash provider: path -> hex digest.
Hasher = Callable[[Path], str]


def compute_file_hash(path: Path) -> str:
    """Compute the SHA-256 digest of a file, reading it in 64KB chunks.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
