"""Data models for erasure-coded shard storage.

Defines the stripe layout (k data shards, m parity shards, shard size),
the on-disk shard header/footer records, the object metadata record and
the results reported by the split and restore pipelines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

DEFAULT_DATA_SHARDS = 6
DEFAULT_PARITY_SHARDS = 2
DEFAULT_SHARD_SIZE = 1024 * 1024
MAX_TOTAL_SHARDS = 256
MAX_HASH_KEY_SIZE = 64
# Shard headers store valid lengths as uint32
MAX_STRIPE_CAPACITY = 0xFFFFFFFF
DIGEST_SIZE = 32


@dataclass(frozen=True)
class StripeLayout:
    """Immutable erasure-coding parameters shared by split and restore.

    A stripe of ``data_shards * shard_size`` bytes is encoded into
    ``data_shards + parity_shards`` shards of ``shard_size`` bytes each.
    Any ``data_shards`` of them suffice to rebuild the stripe.

    Example:
        layout = StripeLayout()                      # 6 + 2, 1 MiB shards
        small = StripeLayout(data_shards=3, parity_shards=2, shard_size=64)
    """

    data_shards: int = DEFAULT_DATA_SHARDS
    parity_shards: int = DEFAULT_PARITY_SHARDS
    shard_size: int = DEFAULT_SHARD_SIZE
    hash_key: bytes = field(default=b"", repr=False)

    def __post_init__(self) -> None:
        if self.data_shards < 1:
            raise ValueError(f"data_shards must be >= 1, got {self.data_shards}")
        if self.parity_shards < 1:
            raise ValueError(f"parity_shards must be >= 1, got {self.parity_shards}")
        if self.total_shards > MAX_TOTAL_SHARDS:
            raise ValueError(f"data_shards + parity_shards must be <= {MAX_TOTAL_SHARDS}, got {self.total_shards}")
        if self.shard_size < 1:
            raise ValueError(f"shard_size must be >= 1, got {self.shard_size}")
        if self.stripe_capacity > MAX_STRIPE_CAPACITY:
            raise ValueError(
                f"data_shards * shard_size must be <= {MAX_STRIPE_CAPACITY}, got {self.stripe_capacity}"
            )
        if len(self.hash_key) > MAX_HASH_KEY_SIZE:
            raise ValueError(f"hash_key must be at most {MAX_HASH_KEY_SIZE} bytes")

    @classmethod
    def default(cls) -> StripeLayout:
        """The 6 + 2 layout with 1 MiB shards."""
        return cls()

    @property
    def total_shards(self) -> int:
        return self.data_shards + self.parity_shards

    @property
    def stripe_capacity(self) -> int:
        """Bytes of original content carried by one stripe."""
        return self.data_shards * self.shard_size

    @property
    def max_failures(self) -> int:
        """Shards per stripe that can be lost without losing data."""
        return self.parity_shards

    @property
    def overhead_percent(self) -> float:
        return (self.parity_shards / self.data_shards) * 100

    def same_geometry(self, other: StripeLayout) -> bool:
        """True if both layouts produce interchangeable shard files (keys aside)."""
        return (self.data_shards, self.parity_shards, self.shard_size) == (
            other.data_shards,
            other.parity_shards,
            other.shard_size,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "data_shards": self.data_shards,
            "parity_shards": self.parity_shards,
            "shard_size": self.shard_size,
        }


@dataclass(frozen=True)
class Stripe:
    """A zero-padded slice of the original content."""

    index: int
    data: bytes
    valid_length: int

    def data_shards(self, layout: StripeLayout) -> list[bytes]:
        """Split the padded stripe into ``k`` verbatim data shards."""
        size = layout.shard_size
        return [self.data[i * size : (i + 1) * size] for i in range(layout.data_shards)]


@dataclass(frozen=True)
class ShardHeader:
    """Leading record of a shard file."""

    valid_length: int
    stripe_index: int
    shard_index: int


@dataclass(frozen=True)
class ShardFooter:
    """Trailing record of a shard file: hash algorithm id and payload digest."""

    hash_algorithm: int
    digest: bytes


@dataclass(frozen=True)
class ShardFile:
    """A shard file as read from disk, not yet verified."""

    header: ShardHeader
    payload: bytes
    footer: ShardFooter


@dataclass(frozen=True)
class ObjectMetadata:
    """Description of the object reconstructed by a restore."""

    name: str
    total_size: int
    created_at: datetime
    updated_at: datetime
    version_tag: bytes = b""
    layout: StripeLayout | None = None  # None for records that predate layout persistence

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "total_size": self.total_size,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version_tag": self.version_tag.decode("ascii", errors="replace"),
            "layout": self.layout.to_dict() if self.layout else None,
        }


@dataclass
class SplitResult:
    """Outcome of splitting one object into shard files."""

    name: str
    total_size: int
    stripe_count: int
    shard_files: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "total_size": self.total_size,
            "stripe_count": self.stripe_count,
            "shard_files": self.shard_files,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class StripeRecovery:
    """Which shards of one stripe were usable during a restore."""

    stripe_index: int
    valid_length: int
    available: list[int] = field(default_factory=list)
    unavailable: list[int] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.unavailable)


@dataclass
class RestoreResult:
    """Outcome of restoring one object from shard files."""

    metadata: ObjectMetadata
    bytes_written: int = 0
    stripes: list[StripeRecovery] = field(default_factory=list)

    @property
    def degraded_stripes(self) -> list[int]:
        """Indices of stripes that needed reconstruction from parity."""
        return [s.stripe_index for s in self.stripes if s.degraded]

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "bytes_written": self.bytes_written,
            "stripe_count": len(self.stripes),
            "degraded_stripes": self.degraded_stripes,
        }
