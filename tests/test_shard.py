"""Tests for shard file serialization and verification.

Tests for:
- Header/payload/footer wire layout
- Truncation detection
- Verification of payload digests and headers
- Loading shards as available/unavailable
"""

import io
import struct

import pytest

from oro_shards.errors import ShardCorruptionError, ShardTruncatedError
from oro_shards.integrity import compute_digest
from oro_shards.models import ShardFooter, ShardHeader, StripeLayout
from oro_shards.shard import FOOTER_SIZE, HEADER_SIZE, ShardCodec

SHARD_SIZE = 64


@pytest.fixture
def layout():
    return StripeLayout(shard_size=SHARD_SIZE)


@pytest.fixture
def codec(layout):
    return ShardCodec(layout)


@pytest.fixture
def payload():
    return bytes(range(SHARD_SIZE))


@pytest.fixture
def header():
    return ShardHeader(valid_length=300, stripe_index=2, shard_index=5)


class TestShardWireFormat:
    """Tests for the on-disk layout."""

    def test_record_sizes(self):
        """Header is 12 bytes, footer 33."""
        assert HEADER_SIZE == 12
        assert FOOTER_SIZE == 33

    def test_default_file_size(self):
        """A default shard file is header + 1 MiB + footer."""
        assert ShardCodec().file_size == 12 + 1024 * 1024 + 33

    def test_layout(self, codec, header, payload):
        """Fields are big-endian in header, payload, footer order."""
        data = codec.encode_shard(header, payload)

        assert len(data) == codec.file_size
        assert data[:12] == struct.pack(">III", 300, 2, 5)
        assert data[12 : 12 + SHARD_SIZE] == payload
        assert data[12 + SHARD_SIZE] == 0
        assert data[13 + SHARD_SIZE :] == compute_digest(payload)

    def test_digest_independent_of_header(self, codec, payload):
        """The footer covers the payload only."""
        a = codec.encode_shard(ShardHeader(1, 0, 0), payload)
        b = codec.encode_shard(ShardHeader(999, 4, 7), payload)
        assert a[-32:] == b[-32:]

    def test_wrong_payload_size(self, codec, header):
        """Payload must be exactly shard_size bytes."""
        with pytest.raises(ValueError):
            codec.encode_shard(header, b"short")


class TestShardReadWrite:
    """Tests for reading and writing shard files."""

    def test_write_and_read_path(self, tmp_path, codec, header, payload):
        """A written shard reads back unchanged."""
        path = tmp_path / "2_5"
        codec.write_shard(path, header, payload)

        shard = codec.read_shard(path)
        assert shard.header == header
        assert shard.payload == payload
        assert shard.footer.hash_algorithm == 0
        assert codec.verify_shard(shard.payload, shard.footer)

    def test_write_and_read_stream(self, codec, header, payload):
        """Streams work as well as paths."""
        buf = io.BytesIO()
        codec.write_shard(buf, header, payload)
        buf.seek(0)

        assert codec.read_shard(buf).payload == payload

    @pytest.mark.parametrize("cut", [0, 5, HEADER_SIZE + 10, HEADER_SIZE + SHARD_SIZE + 32])
    def test_truncated_file(self, codec, header, payload, cut):
        """Short reads anywhere raise ShardTruncatedError."""
        data = codec.encode_shard(header, payload)[:cut]
        with pytest.raises(ShardTruncatedError):
            codec.read_shard(io.BytesIO(data))

    def test_truncated_file_names_its_shard(self, codec, header, payload):
        """The error carries the stripe and shard being read."""
        data = codec.encode_shard(header, payload)[: HEADER_SIZE + 10]
        with pytest.raises(ShardTruncatedError) as exc_info:
            codec.read_shard(io.BytesIO(data), 2, 5)

        assert exc_info.value.stripe_index == 2
        assert exc_info.value.shard_index == 5
        assert "stripe 2, shard 5" in str(exc_info.value)

    def test_missing_file(self, tmp_path, codec):
        """A missing file is an OSError."""
        with pytest.raises(FileNotFoundError):
            codec.read_shard(tmp_path / "0_0")


class TestVerifyShard:
    """Tests for shard verification."""

    def test_bit_flip_detected(self, codec, payload):
        """Flipping one payload bit fails verification."""
        footer = ShardFooter(0, compute_digest(payload))
        flipped = bytearray(payload)
        flipped[10] ^= 0x80
        assert codec.verify_shard(payload, footer)
        assert not codec.verify_shard(bytes(flipped), footer)

    def test_unknown_algorithm(self, codec, payload):
        """Unknown hash algorithm ids fail verification."""
        assert not codec.verify_shard(payload, ShardFooter(1, compute_digest(payload)))

    def test_keyed_codec(self, payload, header):
        """Codecs with different keys reject each other's shards."""
        keyed = ShardCodec(StripeLayout(shard_size=SHARD_SIZE, hash_key=b"k" * 16))
        plain = ShardCodec(StripeLayout(shard_size=SHARD_SIZE))
        shard_bytes = keyed.encode_shard(header, payload)

        shard = plain.read_shard(io.BytesIO(shard_bytes))
        assert keyed.verify_shard(shard.payload, shard.footer)
        assert not plain.verify_shard(shard.payload, shard.footer)

    def test_check_shard_accepts_matching(self, codec, header, payload):
        shard = codec.read_shard(io.BytesIO(codec.encode_shard(header, payload)))
        codec.check_shard(shard, 2, 5, 300)

    @pytest.mark.parametrize(
        "stripe_index,shard_index,valid_length",
        [(3, 5, 300), (2, 4, 300), (2, 5, 299)],
    )
    def test_check_shard_header_mismatch(self, codec, header, payload, stripe_index, shard_index, valid_length):
        """Headers that disagree with their location or stripe are corruption."""
        shard = codec.read_shard(io.BytesIO(codec.encode_shard(header, payload)))
        with pytest.raises(ShardCorruptionError) as exc_info:
            codec.check_shard(shard, stripe_index, shard_index, valid_length)
        assert exc_info.value.stripe_index == stripe_index
        assert exc_info.value.shard_index == shard_index


class TestLoadVerified:
    """Tests for loading shards as available or unavailable."""

    def test_valid_shard(self, tmp_path, codec, header, payload):
        path = tmp_path / "2_5"
        codec.write_shard(path, header, payload)
        assert codec.load_verified(path, 2, 5, 300) == payload

    def test_missing_shard(self, tmp_path, codec):
        assert codec.load_verified(tmp_path / "2_5", 2, 5, 300) is None

    def test_truncated_shard(self, tmp_path, codec, header, payload, caplog):
        path = tmp_path / "2_5"
        codec.write_shard(path, header, payload)
        path.write_bytes(path.read_bytes()[:-1])
        with caplog.at_level("WARNING", logger="oro_shards.shard"):
            assert codec.load_verified(path, 2, 5, 300) is None
        assert "stripe 2, shard 5" in caplog.text

    def test_corrupted_shard(self, tmp_path, codec, header, payload):
        path = tmp_path / "2_5"
        codec.write_shard(path, header, payload)
        data = bytearray(path.read_bytes())
        data[HEADER_SIZE + 1] ^= 0x01
        path.write_bytes(bytes(data))
        assert codec.load_verified(path, 2, 5, 300) is None

    def test_unreadable_path(self, tmp_path, codec):
        """A directory in place of a shard file is unavailable, not fatal."""
        path = tmp_path / "2_5"
        path.mkdir()
        assert codec.load_verified(path, 2, 5, 300) is None

    def test_rejection_logged(self, tmp_path, codec, caplog):
        with caplog.at_level("WARNING", logger="oro_shards.shard"):
            codec.load_verified(tmp_path / "2_5", 2, 5, 300)
        assert "missing" in caplog.text
