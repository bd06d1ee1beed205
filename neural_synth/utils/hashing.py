"""Neural Synth - Hashing utilities.

All hash functions return HEX DIGEST ONLY (no prefix).
"""

import hashlib


def sha256_bytes(data: bytes) -> str:
    """Compute SHA256 hash of bytes.

    Used to fingerprint stored payloads without returning them.

    Args:
        data: Bytes to hash.

    Returns:
        SHA256 hex digest (64 lowercase hex characters, no prefix).
    """
    return hashlib.sha256(data).hexdigest()
