"""Object metadata record.

One record per object, written once at the end of a split and read once
at the start of a restore. Big-endian layout::

    >6sIQqq   version_tag, name_length, total_size, created_at, updated_at
    name      name_length bytes, UTF-8
    >BBI      data_shards, parity_shards, shard_size   (v0.1.0 only)

Records tagged ``v0.0.0`` carry no layout; the reader must already know it.
"""

from __future__ import annotations

import logging
import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from .errors import CorruptMetadataError
from .models import ObjectMetadata, StripeLayout

logger = logging.getLogger(__name__)

RECORD_FORMAT = ">6sIQqq"
LAYOUT_FORMAT = ">BBI"
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)  # 34
LAYOUT_SIZE = struct.calcsize(LAYOUT_FORMAT)  # 6

VERSION_LEGACY = b"v0.0.0"
VERSION_LAYOUT = b"v0.1.0"
SUPPORTED_VERSIONS = (VERSION_LEGACY, VERSION_LAYOUT)


def _to_timestamp(value: datetime) -> int:
    return int(value.timestamp())


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def encode_metadata(
    name: str,
    total_size: int,
    created_at: datetime,
    layout: StripeLayout | None = None,
    updated_at: datetime | None = None,
) -> bytes:
    """Serialize a metadata record.

    With a layout the record is tagged v0.1.0 and the layout trailer is
    appended; without one a legacy v0.0.0 record is produced.
    """
    raw_name = name.encode("utf-8")
    version = VERSION_LAYOUT if layout is not None else VERSION_LEGACY
    record = struct.pack(
        RECORD_FORMAT,
        version,
        len(raw_name),
        total_size,
        _to_timestamp(created_at),
        _to_timestamp(updated_at or created_at),
    )
    parts = [record, raw_name]
    if layout is not None:
        # k, m >= 1 and k + m <= 256 keep both within uint8
        parts.append(struct.pack(LAYOUT_FORMAT, layout.data_shards, layout.parity_shards, layout.shard_size))
    return b"".join(parts)


def write_metadata(
    destination: str | Path | BinaryIO,
    name: str,
    total_size: int,
    created_at: datetime,
    layout: StripeLayout | None = None,
) -> None:
    """Write the metadata record in a single write.

    There is no partial-write recovery; a failed write leaves whatever the
    filesystem kept.
    """
    data = encode_metadata(name, total_size, created_at, layout)
    if isinstance(destination, (str, Path)):
        with open(destination, "wb") as f:
            f.write(data)
    else:
        destination.write(data)
    logger.debug(f"Wrote metadata for {name!r}: {total_size} bytes")


def _read_exact(source: BinaryIO, size: int, what: str) -> bytes:
    data = source.read(size)
    while data is not None and len(data) < size:
        more = source.read(size - len(data))
        if not more:
            break
        data += more
    if data is None or len(data) < size:
        got = 0 if data is None else len(data)
        raise CorruptMetadataError(f"Metadata ended inside the {what}: got {got} of {size} bytes")
    return data


def read_metadata(source: str | Path | BinaryIO) -> ObjectMetadata:
    """Read a metadata record.

    Raises:
        CorruptMetadataError: On a short read, unknown version tag or undecodable name
        OSError: If the file cannot be opened
    """
    if isinstance(source, (str, Path)):
        with open(source, "rb") as f:
            return read_metadata(f)

    version, name_length, total_size, created, updated = struct.unpack(
        RECORD_FORMAT, _read_exact(source, RECORD_SIZE, "record")
    )
    if version not in SUPPORTED_VERSIONS:
        raise CorruptMetadataError(f"Unknown metadata version tag {version!r}")

    raw_name = _read_exact(source, name_length, "name")
    try:
        name = raw_name.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptMetadataError(f"Object name is not valid UTF-8: {e}") from e

    layout = None
    if version == VERSION_LAYOUT:
        data_shards, parity_shards, shard_size = struct.unpack(LAYOUT_FORMAT, _read_exact(source, LAYOUT_SIZE, "layout"))
        try:
            layout = StripeLayout(data_shards=data_shards, parity_shards=parity_shards, shard_size=shard_size)
        except ValueError as e:
            raise CorruptMetadataError(f"Invalid stripe layout in metadata: {e}") from e

    try:
        created_at = _from_timestamp(created)
        updated_at = _from_timestamp(updated)
    except (OverflowError, OSError, ValueError) as e:
        raise CorruptMetadataError(f"Invalid timestamp in metadata: {e}") from e

    return ObjectMetadata(
        name=name,
        total_size=total_size,
        created_at=created_at,
        updated_at=updated_at,
        version_tag=version,
        layout=layout,
    )
