"""Content fingerprints used to detect files that were already imported."""
import hashlib
import uuid
from os import PathLike

from run_tracker.core.constants import FINGERPRINT_CHUNK_BYTES


def _digest_to_uuid(digest: bytes) -> str:
    # First 128 bits of the SHA-256 digest, formatted as a UUID string
    return str(uuid.UUID(bytes=digest[:16]))


def fingerprint(data: bytes) -> str:
    """Return the fingerprint of `data`. Every byte contributes."""
    return _digest_to_uuid(hashlib.sha256(data).digest())


def fingerprint_file(path: str | PathLike, chunk_size: int = FINGERPRINT_CHUNK_BYTES) -> str:
    """Fingerprint a file on disk without holding it in memory.

    Produces the same value as ``fingerprint(path.read_bytes())``.
    """
    sha = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha.update(chunk)
    return _digest_to_uuid(sha.digest())
