"""Shard file serialization and verification.

A shard file is a 12-byte header, a fixed-size payload and a 33-byte
footer, all integers big-endian::

    header   >III   valid_length, stripe_index, shard_index
    payload         shard_size bytes
    footer   >B32s  hash_algorithm, digest(payload)

The digest covers the payload only. Any problem reading or verifying a
shard makes it unavailable to the restore, never fatal by itself.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import BinaryIO

from .errors import ShardCorruptionError, ShardTruncatedError
from .integrity import HashAlgorithm, make_footer, verify_digest
from .models import ShardFile, ShardFooter, ShardHeader, StripeLayout

logger = logging.getLogger(__name__)

HEADER_FORMAT = ">III"
FOOTER_FORMAT = ">B32s"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 12
FOOTER_SIZE = struct.calcsize(FOOTER_FORMAT)  # 33


def _read_exact(
    source: BinaryIO, size: int, what: str, stripe_index: int | None = None, shard_index: int | None = None
) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = source.read(remaining)
        if not chunk:
            raise ShardTruncatedError(
                f"Shard file ended inside the {what}: got {size - remaining} of {size} bytes",
                stripe_index,
                shard_index,
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class ShardCodec:
    """Reads, writes and verifies shard files for one stripe layout."""

    def __init__(self, layout: StripeLayout | None = None, algorithm: int = HashAlgorithm.BLAKE2B_256):
        self.layout = layout or StripeLayout.default()
        self.shard_size = self.layout.shard_size
        self.algorithm = algorithm
        self._key = self.layout.hash_key

    @property
    def file_size(self) -> int:
        return HEADER_SIZE + self.shard_size + FOOTER_SIZE

    def encode_shard(self, header: ShardHeader, payload: bytes) -> bytes:
        """Serialize a complete shard file."""
        if len(payload) != self.shard_size:
            raise ValueError(f"Payload has {len(payload)} bytes, expected {self.shard_size}")
        footer = make_footer(payload, self._key, self.algorithm)
        return b"".join(
            (
                struct.pack(HEADER_FORMAT, header.valid_length, header.stripe_index, header.shard_index),
                payload,
                struct.pack(FOOTER_FORMAT, footer.hash_algorithm, footer.digest),
            )
        )

    def write_shard(self, destination: str | Path | BinaryIO, header: ShardHeader, payload: bytes) -> None:
        """Write header, payload and footer.

        Args:
            destination: Path to create (replaced if present) or a writable binary stream
            header: Shard header
            payload: Exactly shard_size bytes

        Raises:
            ValueError: If the payload length is wrong
            OSError: If the file cannot be created or written
        """
        data = self.encode_shard(header, payload)
        if isinstance(destination, (str, Path)):
            with open(destination, "wb") as f:
                f.write(data)
        else:
            destination.write(data)

    def read_shard(
        self,
        source: str | Path | BinaryIO,
        stripe_index: int | None = None,
        shard_index: int | None = None,
    ) -> ShardFile:
        """Read a shard file without verifying it.

        The optional indices only label a ShardTruncatedError.

        Raises:
            ShardTruncatedError: If the file is shorter than a complete shard
            OSError: If the file cannot be opened or read
        """
        if isinstance(source, (str, Path)):
            with open(source, "rb") as f:
                return self.read_shard(f, stripe_index, shard_index)

        where = (stripe_index, shard_index)
        header = ShardHeader(*struct.unpack(HEADER_FORMAT, _read_exact(source, HEADER_SIZE, "header", *where)))
        payload = _read_exact(source, self.shard_size, "payload", *where)
        algorithm, digest = struct.unpack(FOOTER_FORMAT, _read_exact(source, FOOTER_SIZE, "footer", *where))
        return ShardFile(header=header, payload=payload, footer=ShardFooter(algorithm, digest))

    def verify_shard(self, payload: bytes, footer: ShardFooter) -> bool:
        """Recompute the payload digest and compare it with the footer."""
        return verify_digest(payload, footer, self._key)

    def check_shard(self, shard: ShardFile, stripe_index: int, shard_index: int, valid_length: int) -> None:
        """Check a shard's header against where it was found and its footer against its payload.

        Raises:
            ShardCorruptionError: On any mismatch
        """
        header = shard.header
        if header.stripe_index != stripe_index or header.shard_index != shard_index:
            raise ShardCorruptionError(
                f"Header names stripe {header.stripe_index} shard {header.shard_index}",
                stripe_index,
                shard_index,
            )
        if header.valid_length != valid_length:
            raise ShardCorruptionError(
                f"Header valid length {header.valid_length} disagrees with expected {valid_length}",
                stripe_index,
                shard_index,
            )
        if not HashAlgorithm.is_supported(shard.footer.hash_algorithm):
            raise ShardCorruptionError(
                f"Unsupported hash algorithm {shard.footer.hash_algorithm}", stripe_index, shard_index
            )
        if not self.verify_shard(shard.payload, shard.footer):
            raise ShardCorruptionError("Payload hash mismatch", stripe_index, shard_index)

    def load_verified(self, path: str | Path, stripe_index: int, shard_index: int, valid_length: int) -> bytes | None:
        """Load a shard payload, or None if the shard is unavailable.

        Missing files, unreadable files, truncated files and files that fail
        verification are all reported as None and logged.
        """
        try:
            shard = self.read_shard(path, stripe_index, shard_index)
            self.check_shard(shard, stripe_index, shard_index, valid_length)
        except FileNotFoundError:
            logger.warning(f"Shard file missing: {path}")
            return None
        except ShardCorruptionError as e:
            logger.warning(f"Rejecting shard file {path}: {e}")
            return None
        except OSError as e:
            logger.warning(f"Cannot read shard file {path}: {e}")
            return None
        return shard.payload
