"""Neural Synth - Utility modules."""

from neural_synth.utils.hashing import sha256_bytes

__all__ = [
    # hashing
    "sha256_bytes",
]
