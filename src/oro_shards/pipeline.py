"""Split and restore pipelines.

Split reads the input one stripe at a time, encodes it and writes k + m
shard files, then records the object metadata. Restore reads the metadata,
then for each stripe loads whatever shard files verify, reconstructs the
stripe and writes its valid bytes to the output.

Both pipelines are strictly sequential: a stripe is finished before the
next one starts. Progress is reported through an optional callback that
receives the cumulative number of bytes processed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from .erasure import ErasureCodec
from .errors import (
    IncompleteRestoreError,
    LayoutMismatchError,
    MetadataWriteError,
    OutputWriteError,
    ShardStoreError,
    ShardWriteError,
    StorageIOError,
    UnrecoverableStripeError,
)
from .metadata import read_metadata, write_metadata
from .models import (
    ObjectMetadata,
    RestoreResult,
    ShardHeader,
    SplitResult,
    Stripe,
    StripeLayout,
    StripeRecovery,
)
from .shard import ShardCodec
from .store import FragmentStore
from .stripes import StripePlanner, measure, stripe_count, valid_length

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# Shard headers store the stripe index as uint32
MAX_STRIPES = 0x100000000


class SplitState(Enum):
    READ_STRIPE = "read_stripe"
    ENCODE = "encode"
    WRITE_SHARDS = "write_shards"
    DONE = "done"
    FAILED = "failed"


class RestoreState(Enum):
    READ_METADATA = "read_metadata"
    READ_STRIPE_SHARDS = "read_stripe_shards"
    VERIFY_SHARDS = "verify_shards"
    RECONSTRUCT = "reconstruct"
    WRITE_OUTPUT = "write_output"
    DONE = "done"
    FAILED = "failed"


class SplitPipeline:
    """Splits a byte stream into erasure-coded shard files plus one metadata file.

    A failure aborts the split. Shard files already written for earlier
    stripes are left in place.

    Example:
        pipeline = SplitPipeline("fragments", "fragments/meta")
        with open("video.mp4", "rb") as f:
            result = pipeline.split(f, name="video.mp4")
    """

    def __init__(
        self,
        fragments_dir: str | Path,
        metadata_path: str | Path,
        layout: StripeLayout | None = None,
    ):
        self.layout = layout or StripeLayout.default()
        self.store = FragmentStore(fragments_dir)
        self.metadata_path = Path(metadata_path)
        self.codec = ErasureCodec(self.layout)
        self.shards = ShardCodec(self.layout)
        self.state = SplitState.READ_STRIPE

    def _transition(self, state: SplitState) -> None:
        logger.debug(f"split: {self.state.value} -> {state.value}")
        self.state = state

    def _write_stripe(self, stripe: Stripe, shards: list[bytes]) -> None:
        for shard_index, payload in enumerate(shards):
            header = ShardHeader(
                valid_length=stripe.valid_length,
                stripe_index=stripe.index,
                shard_index=shard_index,
            )
            path = self.store.shard_path(stripe.index, shard_index)
            try:
                self.shards.write_shard(path, header, payload)
            except OSError as e:
                raise ShardWriteError(f"Failed to write {path}: {e}", stripe.index, shard_index) from e

    def split(
        self,
        source: BinaryIO,
        name: str,
        total_length: int | None = None,
        progress: ProgressCallback | None = None,
        created_at: datetime | None = None,
    ) -> SplitResult:
        """Split ``source`` into shard files.

        Args:
            source: Readable binary stream positioned at the start of the content
            name: Object name recorded in the metadata
            total_length: Bytes to read; measured by seeking when omitted
            progress: Called with cumulative bytes after each stripe
            created_at: Creation timestamp (default: now)

        Returns:
            SplitResult describing the shard files written

        Raises:
            ValueError: If total_length needs more stripes than a shard header can number
            StripeReadError: If the source cannot supply total_length bytes
            ShardWriteError: If a shard file cannot be written
            MetadataWriteError: If the metadata record cannot be written
        """
        created_at = created_at or datetime.now(timezone.utc)
        self._transition(SplitState.READ_STRIPE)

        try:
            if total_length is None:
                try:
                    total_length = measure(source)
                except OSError as e:
                    raise StorageIOError(f"Cannot determine input size: {e}") from e

            if stripe_count(total_length, self.layout.stripe_capacity) > MAX_STRIPES:
                raise ValueError(
                    f"{total_length} bytes need more than {MAX_STRIPES} stripes of {self.layout.stripe_capacity} bytes"
                )

            try:
                self.store.ensure()
            except OSError as e:
                raise ShardWriteError(f"Cannot create fragments directory {self.store.root}: {e}") from e

            planner = StripePlanner(source, total_length, self.layout)
            done = 0
            for stripe in planner.stripes():
                self._transition(SplitState.ENCODE)
                data_shards = stripe.data_shards(self.layout)
                parity = self.codec.encode(data_shards)

                self._transition(SplitState.WRITE_SHARDS)
                self._write_stripe(stripe, data_shards + parity)

                done += stripe.valid_length
                if progress:
                    progress(done)
                self._transition(SplitState.READ_STRIPE)

            try:
                write_metadata(self.metadata_path, name, total_length, created_at, self.layout)
            except OSError as e:
                raise MetadataWriteError(f"Failed to write metadata {self.metadata_path}: {e}") from e
        except ShardStoreError as e:
            self._transition(SplitState.FAILED)
            logger.error(f"Split of {name!r} failed: {e}")
            raise

        self._transition(SplitState.DONE)
        result = SplitResult(
            name=name,
            total_size=total_length,
            stripe_count=planner.stripe_count,
            shard_files=planner.stripe_count * self.layout.total_shards,
            created_at=created_at,
        )
        logger.info(
            f"Split {name!r}: {total_length} bytes into {result.stripe_count} stripes, "
            f"{result.shard_files} shard files"
        )
        return result


class RestorePipeline:
    """Rebuilds an object from its shard files and metadata record.

    Up to ``parity_shards`` shards per stripe may be missing or corrupt.
    Shards are never repaired on disk; reconstruction only produces output.

    Example:
        pipeline = RestorePipeline("fragments", "fragments/meta")
        with open("restored.mp4", "wb") as out:
            result = pipeline.restore(out)
    """

    def __init__(
        self,
        fragments_dir: str | Path,
        metadata_path: str | Path,
        layout: StripeLayout | None = None,
    ):
        self.layout = layout or StripeLayout.default()
        self.store = FragmentStore(fragments_dir)
        self.metadata_path = Path(metadata_path)
        self.codec = ErasureCodec(self.layout)
        self.shards = ShardCodec(self.layout)
        self.state = RestoreState.READ_METADATA

    def _transition(self, state: RestoreState) -> None:
        logger.debug(f"restore: {self.state.value} -> {state.value}")
        self.state = state

    def read_metadata(self) -> ObjectMetadata:
        """Read the metadata record and check it matches this pipeline's layout.

        Raises:
            CorruptMetadataError: If the record is short or malformed
            LayoutMismatchError: If the shards were written with another layout
            StorageIOError: If the metadata file cannot be opened
        """
        try:
            metadata = read_metadata(self.metadata_path)
        except OSError as e:
            raise StorageIOError(f"Cannot read metadata {self.metadata_path}: {e}") from e

        if metadata.layout is not None and not metadata.layout.same_geometry(self.layout):
            raise LayoutMismatchError(
                f"Shards were written with layout {metadata.layout.to_dict()}, "
                f"restore is configured for {self.layout.to_dict()}"
            )
        return metadata

    def _load_stripe(self, stripe_index: int, length: int, remaining: int) -> list[bytes | None]:
        self._transition(RestoreState.READ_STRIPE_SHARDS)
        indices = range(self.layout.total_shards)
        if not any(self.store.exists(stripe_index, j) for j in indices):
            raise IncompleteRestoreError(stripe_index, remaining)
        paths = [self.store.shard_path(stripe_index, j) for j in indices]

        self._transition(RestoreState.VERIFY_SHARDS)
        return [self.shards.load_verified(p, stripe_index, j, length) for j, p in enumerate(paths)]

    def restore(self, sink: BinaryIO, progress: ProgressCallback | None = None) -> RestoreResult:
        """Write the reconstructed object to ``sink``.

        Args:
            sink: Writable binary stream
            progress: Called with cumulative bytes after each stripe

        Returns:
            RestoreResult with the metadata and per-stripe shard availability

        Raises:
            CorruptMetadataError: Before any stripe is read
            LayoutMismatchError: Before any stripe is read
            UnrecoverableStripeError: If a stripe has fewer than k valid shards
            IncompleteRestoreError: If every shard file of a needed stripe is absent
            OutputWriteError: If the sink rejects a write
        """
        self._transition(RestoreState.READ_METADATA)
        try:
            metadata = self.read_metadata()
            result = RestoreResult(metadata=metadata)
            capacity = self.layout.stripe_capacity
            remaining = metadata.total_size

            for stripe_index in range(stripe_count(metadata.total_size, capacity)):
                length = valid_length(stripe_index, metadata.total_size, capacity)
                slots = self._load_stripe(stripe_index, length, remaining)

                available = [j for j, s in enumerate(slots) if s is not None]
                unavailable = [j for j, s in enumerate(slots) if s is None]
                if len(available) < self.layout.data_shards:
                    raise UnrecoverableStripeError(
                        stripe_index, len(available), self.layout.data_shards, unavailable
                    )

                self._transition(RestoreState.RECONSTRUCT)
                if unavailable:
                    logger.info(f"Stripe {stripe_index}: reconstructing without shards {unavailable}")
                shards = self.codec.reconstruct(slots)
                data = b"".join(shards[: self.layout.data_shards])[:length]

                self._transition(RestoreState.WRITE_OUTPUT)
                try:
                    sink.write(data)
                except OSError as e:
                    raise OutputWriteError(f"Failed to write output: {e}", stripe_index) from e

                remaining -= length
                result.bytes_written += length
                result.stripes.append(
                    StripeRecovery(
                        stripe_index=stripe_index,
                        valid_length=length,
                        available=available,
                        unavailable=unavailable,
                    )
                )
                if progress:
                    progress(metadata.total_size - remaining)
        except ShardStoreError as e:
            self._transition(RestoreState.FAILED)
            logger.error(f"Restore from {self.store.root} failed: {e}")
            raise

        self._transition(RestoreState.DONE)
        logger.info(
            f"Restored {metadata.name!r}: {result.bytes_written} bytes from {len(result.stripes)} stripes"
            + (f", degraded stripes {result.degraded_stripes}" if result.degraded_stripes else "")
        )
        return result
