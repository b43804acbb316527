"""Public interface for oro-shards.

Re-exports the primary public API for the oro-shards brick.
Consumers should import from here or from the top-level ``oro_shards`` package.

The key abstractions:

- **SplitPipeline** / **RestorePipeline**: Object-level split and restore.
- **ErasureCodec**: Reed-Solomon encode/reconstruct over shard buffers.
- **ShardCodec**: Shard file read/write/verify.
- **read_metadata** / **write_metadata**: Object metadata record.
- **StripeLayout**: Immutable (k, m, shard_size, hash_key) configuration.
"""

from .erasure import ErasureCodec
from .errors import (
    CorruptMetadataError,
    IncompleteRestoreError,
    InsufficientShardsError,
    LayoutMismatchError,
    ShardCorruptionError,
    ShardStoreError,
    StorageIOError,
    UnrecoverableStripeError,
)
from .metadata import read_metadata, write_metadata
from .models import ObjectMetadata, RestoreResult, SplitResult, StripeLayout
from .pipeline import RestorePipeline, SplitPipeline
from .shard import ShardCodec

__all__ = [
    # Pipelines
    "SplitPipeline",
    "RestorePipeline",
    # Codecs
    "ErasureCodec",
    "ShardCodec",
    # Metadata
    "read_metadata",
    "write_metadata",
    # Models
    "StripeLayout",
    "ObjectMetadata",
    "SplitResult",
    "RestoreResult",
    # Exceptions
    "ShardStoreError",
    "StorageIOError",
    "ShardCorruptionError",
    "InsufficientShardsError",
    "UnrecoverableStripeError",
    "IncompleteRestoreError",
    "CorruptMetadataError",
    "LayoutMismatchError",
]
