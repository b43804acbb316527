"""Exception taxonomy for oro-shards.

Fatal conditions carry the stripe (and where known, shard) index so an
operator can regenerate the specific shard file and re-run the restore.
Corruption of a single shard is never fatal on its own: restore treats the
shard as unavailable and reconstructs from the rest.
"""

from __future__ import annotations

from collections.abc import Sequence


class ShardStoreError(Exception):
    """Base exception for all oro-shards errors."""


def _locate(stripe_index: int | None, shard_index: int | None) -> str:
    parts = []
    if stripe_index is not None:
        parts.append(f"stripe {stripe_index}")
    if shard_index is not None:
        parts.append(f"shard {shard_index}")
    return ", ".join(parts)


class StorageIOError(ShardStoreError, OSError):
    """Open, read or write failure. Fatal at the pipeline level, never retried."""

    def __init__(
        self,
        message: str,
        stripe_index: int | None = None,
        shard_index: int | None = None,
    ):
        self.stripe_index = stripe_index
        self.shard_index = shard_index
        where = _locate(stripe_index, shard_index)
        super().__init__(f"{message} ({where})" if where else message)


class StripeReadError(StorageIOError):
    """The split input could not supply the bytes of a stripe."""


class ShardWriteError(StorageIOError):
    """A shard file could not be created or written."""


class OutputWriteError(StorageIOError):
    """The restore sink rejected a reconstructed stripe."""


class MetadataWriteError(StorageIOError):
    """The object metadata record could not be written."""


class ShardCorruptionError(ShardStoreError):
    """A shard failed verification: hash mismatch, bad algorithm or bad header."""

    def __init__(
        self,
        message: str,
        stripe_index: int | None = None,
        shard_index: int | None = None,
    ):
        self.stripe_index = stripe_index
        self.shard_index = shard_index
        where = _locate(stripe_index, shard_index)
        super().__init__(f"{message} ({where})" if where else message)


class ShardTruncatedError(ShardCorruptionError):
    """A shard file ended before its header, payload or footer was complete."""


class ErasureCodingError(ShardStoreError):
    """Invalid input to the erasure codec."""


class InsufficientShardsError(ErasureCodingError):
    """Fewer than k shards are available to reconstruct a stripe."""

    def __init__(self, available: int, required: int, message: str | None = None):
        self.available = available
        self.required = required
        super().__init__(message or f"Need {required} shards, have {available}")


class UnrecoverableStripeError(InsufficientShardsError):
    """Restore found too few verified shards for one stripe."""

    def __init__(self, stripe_index: int, available: int, required: int, rejected: Sequence[int] = ()):
        self.stripe_index = stripe_index
        self.rejected = list(rejected)
        super().__init__(
            available,
            required,
            f"Stripe {stripe_index} is unrecoverable: need {required} shards, "
            f"have {available} (unavailable shards: {self.rejected})",
        )


class IncompleteRestoreError(ShardStoreError):
    """Shard data ran out before the recorded object size was reached."""

    def __init__(self, stripe_index: int, remaining_bytes: int):
        self.stripe_index = stripe_index
        self.remaining_bytes = remaining_bytes
        super().__init__(
            f"No shard files found for stripe {stripe_index} with {remaining_bytes} bytes still to restore"
        )


class CorruptMetadataError(ShardStoreError):
    """The object metadata record is short or malformed."""


class LayoutMismatchError(ShardStoreError):
    """The metadata was written with different (k, m, shard_size) than the reader uses."""
