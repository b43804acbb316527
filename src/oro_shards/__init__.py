"""oro-shards -- Erasure-coded, integrity-checked shard files for a byte stream.

This module implements single-object durable storage providing:
- Striping of a byte stream into fixed-capacity, zero-padded stripes
- Reed-Solomon erasure coding (6 data + 2 parity shards per stripe)
- Per-shard payload digests that turn corruption into erasure
- Reconstruction from any k of k + m shards per stripe
- An object metadata record with the stripe layout persisted alongside

Example usage:
    from oro_shards import RestorePipeline, SplitPipeline

    with open("video.mp4", "rb") as f:
        SplitPipeline("fragments", "fragments/meta").split(f, name="video.mp4")

    # Any two shard files per stripe may now be lost or damaged
    with open("restored.mp4", "wb") as out:
        RestorePipeline("fragments", "fragments/meta").restore(out)
"""

__version__ = "0.1.0"

from .erasure import ErasureCodec
from .errors import (
    CorruptMetadataError,
    ErasureCodingError,
    IncompleteRestoreError,
    InsufficientShardsError,
    LayoutMismatchError,
    MetadataWriteError,
    OutputWriteError,
    ShardCorruptionError,
    ShardStoreError,
    ShardTruncatedError,
    ShardWriteError,
    StorageIOError,
    StripeReadError,
    UnrecoverableStripeError,
)
from .integrity import HashAlgorithm, compute_digest, verify_digest
from .metadata import read_metadata, write_metadata
from .models import (
    ObjectMetadata,
    RestoreResult,
    ShardFile,
    ShardFooter,
    ShardHeader,
    SplitResult,
    Stripe,
    StripeLayout,
    StripeRecovery,
)
from .pipeline import RestorePipeline, RestoreState, SplitPipeline, SplitState
from .shard import ShardCodec
from .store import FragmentStore
from .stripes import StripePlanner, stripe_count, valid_length

__all__ = [
    # Version
    "__version__",
    # Models
    "StripeLayout",
    "Stripe",
    "ShardHeader",
    "ShardFooter",
    "ShardFile",
    "ObjectMetadata",
    "SplitResult",
    "RestoreResult",
    "StripeRecovery",
    # Erasure coding
    "ErasureCodec",
    # Shard files
    "ShardCodec",
    "HashAlgorithm",
    "compute_digest",
    "verify_digest",
    "FragmentStore",
    # Metadata
    "read_metadata",
    "write_metadata",
    # Striping
    "StripePlanner",
    "stripe_count",
    "valid_length",
    # Pipelines
    "SplitPipeline",
    "SplitState",
    "RestorePipeline",
    "RestoreState",
    # Exceptions
    "ShardStoreError",
    "StorageIOError",
    "StripeReadError",
    "ShardWriteError",
    "OutputWriteError",
    "MetadataWriteError",
    "ShardCorruptionError",
    "ShardTruncatedError",
    "ErasureCodingError",
    "InsufficientShardsError",
    "UnrecoverableStripeError",
    "IncompleteRestoreError",
    "CorruptMetadataError",
    "LayoutMismatchError",
]
