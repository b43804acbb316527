"""Payload integrity checking for shard files.

Each shard footer names a hash algorithm by a one-byte id and carries a
32-byte digest of the shard payload. The digest is a corruption detector:
with the default empty key it offers no protection against deliberate
tampering.
"""

from __future__ import annotations

import hashlib
import hmac
from enum import IntEnum

from .models import DIGEST_SIZE, ShardFooter


class HashAlgorithm(IntEnum):
    """Hash algorithm ids stored in the shard footer."""

    BLAKE2B_256 = 0

    @classmethod
    def is_supported(cls, value: int) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True


def compute_digest(data: bytes, algorithm: int = HashAlgorithm.BLAKE2B_256, key: bytes = b"") -> bytes:
    """Compute the 32-byte digest of shard payload.

    Args:
        data: Bytes to hash
        algorithm: Footer algorithm id (default: BLAKE2b-256)
        key: Optional hash key, at most 64 bytes

    Returns:
        Raw 32-byte digest

    Raises:
        ValueError: If the algorithm id is unknown
    """
    if algorithm == HashAlgorithm.BLAKE2B_256:
        return hashlib.blake2b(data, digest_size=DIGEST_SIZE, key=key).digest()
    raise ValueError(f"Unsupported hash algorithm: {algorithm}")


def make_footer(payload: bytes, key: bytes = b"", algorithm: int = HashAlgorithm.BLAKE2B_256) -> ShardFooter:
    """Build the footer for a payload."""
    return ShardFooter(hash_algorithm=int(algorithm), digest=compute_digest(payload, algorithm, key))


def verify_digest(payload: bytes, footer: ShardFooter, key: bytes = b"") -> bool:
    """Check a payload against its footer.

    An unknown algorithm id counts as a failed verification rather than
    an error, so the shard is simply treated as unavailable.
    """
    if not HashAlgorithm.is_supported(footer.hash_algorithm):
        return False
    expected = compute_digest(payload, footer.hash_algorithm, key)
    return hmac.compare_digest(expected, footer.digest)
