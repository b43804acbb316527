"""Division of a byte stream into fixed-capacity stripes."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from typing import BinaryIO

from .errors import StripeReadError
from .models import Stripe, StripeLayout

logger = logging.getLogger(__name__)


def stripe_count(total_length: int, capacity: int) -> int:
    """Number of stripes needed for ``total_length`` bytes (ceil division)."""
    if total_length < 0:
        raise ValueError(f"total_length must be >= 0, got {total_length}")
    return -(-total_length // capacity)


def valid_length(index: int, total_length: int, capacity: int) -> int:
    """Real bytes carried by stripe ``index``; the rest is padding."""
    return min(total_length - index * capacity, capacity)


def measure(source: BinaryIO) -> int:
    """Bytes left in a seekable source from its current position."""
    start = source.tell()
    end = source.seek(0, io.SEEK_END)
    source.seek(start)
    return end - start


class StripePlanner:
    """Reads stripes of ``layout.stripe_capacity`` bytes from a source.

    The final stripe is zero-padded to full capacity; its ``valid_length``
    records how much of it is real.
    """

    def __init__(self, source: BinaryIO, total_length: int, layout: StripeLayout | None = None):
        self.source = source
        self.total_length = total_length
        self.layout = layout or StripeLayout.default()
        self.capacity = self.layout.stripe_capacity

    @property
    def stripe_count(self) -> int:
        return stripe_count(self.total_length, self.capacity)

    def valid_length(self, index: int) -> int:
        return valid_length(index, self.total_length, self.capacity)

    def _read(self, size: int, index: int) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            try:
                chunk = self.source.read(size - len(buf))
            except OSError as e:
                raise StripeReadError(f"Failed to read input: {e}", stripe_index=index) from e
            if not chunk:
                raise StripeReadError(
                    f"Input ended after {len(buf)} of {size} bytes expected", stripe_index=index
                )
            buf += chunk
        return bytes(buf)

    def read_stripe(self, index: int) -> Stripe:
        """Read the next stripe; the source must be positioned at its start."""
        length = self.valid_length(index)
        data = self._read(length, index)
        if length < self.capacity:
            data += bytes(self.capacity - length)
        return Stripe(index=index, data=data, valid_length=length)

    def stripes(self) -> Iterator[Stripe]:
        """Yield every stripe in order."""
        for index in range(self.stripe_count):
            stripe = self.read_stripe(index)
            logger.debug(f"Read stripe {index}: {stripe.valid_length} valid bytes")
            yield stripe
