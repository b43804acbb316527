"""Reed-Solomon erasure coding over fixed-width shard buffers.

Implements a systematic (k, m) code over GF(2^8): the first k shards of a
stripe are the data itself and the m parity shards are linear combinations
of them. The encoding matrix stacks an identity block on top of a Cauchy
block, which keeps every k x k submatrix invertible, so any k surviving
shards rebuild the stripe.

Buffer arithmetic stays in C: multiplying a buffer by a field constant is a
``bytes.translate`` through a 256-entry table, and adding buffers is an XOR
of their big-integer views.

The codec trusts its inputs. Corrupted shards must be filtered out by the
caller (see ``oro_shards.shard``) before reconstruction.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache
from typing import Any

from .errors import ErasureCodingError, InsufficientShardsError
from .models import StripeLayout

# GF(2^8) with primitive polynomial x^8 + x^4 + x^3 + x^2 + 1
_GF_PRIMITIVE = 0x11D
_GF_EXP = [0] * 512
_GF_LOG = [0] * 256
_tables_initialized = False


def _init_galois_tables() -> None:
    """Build the exp/log tables for GF(256). Safe to call repeatedly."""
    global _tables_initialized
    if _tables_initialized:
        return

    x = 1
    for i in range(255):
        _GF_EXP[i] = x
        _GF_LOG[x] = i
        x <<= 1
        if x & 0x100:
            x ^= _GF_PRIMITIVE
    # Doubled so _gf_mul can skip the modulo
    for i in range(255, 512):
        _GF_EXP[i] = _GF_EXP[i - 255]

    _tables_initialized = True


def _gf_mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return _GF_EXP[_GF_LOG[a] + _GF_LOG[b]]


def _gf_div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("Division by zero in GF(256)")
    if a == 0:
        return 0
    return _GF_EXP[(_GF_LOG[a] - _GF_LOG[b]) % 255]


def _gf_pow(x: int, power: int) -> int:
    if power == 0:
        return 1
    if x == 0:
        return 0
    return _GF_EXP[(_GF_LOG[x] * power) % 255]


def _gf_inverse(x: int) -> int:
    if x == 0:
        raise ZeroDivisionError("Zero has no inverse in GF(256)")
    return _GF_EXP[255 - _GF_LOG[x]]


@lru_cache(maxsize=256)
def _mul_table(c: int) -> bytes:
    """Translation table mapping every byte x to c * x."""
    return bytes(_gf_mul(c, x) for x in range(256))


def _linear_combination(coefficients: Sequence[int], buffers: Sequence[bytes], size: int) -> bytes:
    """Sum of coefficients[i] * buffers[i] over GF(256), byte-wise."""
    acc = 0
    for c, buf in zip(coefficients, buffers, strict=True):
        if c == 0:
            continue
        term = buf if c == 1 else buf.translate(_mul_table(c))
        acc ^= int.from_bytes(term, "little")
    return acc.to_bytes(size, "little")


def _build_encoding_matrix(k: int, m: int) -> list[list[int]]:
    """Identity rows for the data shards, Cauchy rows for parity."""
    matrix = [[1 if i == j else 0 for j in range(k)] for i in range(k)]
    for i in range(m):
        # x_i = k + i and y_j = j never collide, so x_i ^ y_j is never zero
        matrix.append([_gf_inverse((k + i) ^ j) for j in range(k)])
    return matrix


def _invert_matrix(matrix: list[list[int]]) -> list[list[int]]:
    """Gauss-Jordan inversion over GF(256)."""
    n = len(matrix)
    aug = [list(row) + [1 if i == j else 0 for j in range(n)] for i, row in enumerate(matrix)]

    for col in range(n):
        pivot = next((r for r in range(col, n) if aug[r][col]), None)
        if pivot is None:
            raise ErasureCodingError("Decoding matrix is singular")
        aug[col], aug[pivot] = aug[pivot], aug[col]

        inv = _gf_inverse(aug[col][col])
        aug[col] = [_gf_mul(v, inv) for v in aug[col]]

        for r in range(n):
            factor = aug[r][col]
            if r != col and factor:
                aug[r] = [v ^ _gf_mul(factor, p) for v, p in zip(aug[r], aug[col], strict=True)]

    return [row[n:] for row in aug]


_init_galois_tables()


class ErasureCodec:
    """Systematic Reed-Solomon codec for one stripe layout.

    Example:
        codec = ErasureCodec(StripeLayout())
        parity = codec.encode(data_shards)            # m buffers
        shards = data_shards + parity
        shards[0] = shards[7] = None                  # lose any m
        rebuilt = codec.reconstruct(shards)           # k + m buffers
    """

    def __init__(self, layout: StripeLayout | None = None):
        self.layout = layout or StripeLayout.default()
        self.data_shards = self.layout.data_shards
        self.parity_shards = self.layout.parity_shards
        self.total_shards = self.layout.total_shards
        self.shard_size = self.layout.shard_size
        self._matrix = _build_encoding_matrix(self.data_shards, self.parity_shards)

    def _check_buffer(self, index: int, buf: bytes) -> bytes:
        if len(buf) != self.shard_size:
            raise ErasureCodingError(f"Shard {index} has {len(buf)} bytes, expected {self.shard_size}")
        return bytes(buf)

    def encode(self, data_shards: Sequence[bytes]) -> list[bytes]:
        """Compute the parity shards for k data shards.

        Args:
            data_shards: Exactly k buffers of shard_size bytes

        Returns:
            m parity buffers of shard_size bytes

        Raises:
            ErasureCodingError: If the shard count or any shard length is wrong
        """
        if len(data_shards) != self.data_shards:
            raise ErasureCodingError(f"Expected {self.data_shards} data shards, got {len(data_shards)}")
        data = [self._check_buffer(i, buf) for i, buf in enumerate(data_shards)]

        return [
            _linear_combination(self._matrix[self.data_shards + i], data, self.shard_size)
            for i in range(self.parity_shards)
        ]

    def reconstruct(self, shards: Sequence[bytes | None]) -> list[bytes]:
        """Fill in missing shards of a stripe.

        Args:
            shards: k + m slots; None marks a missing or rejected shard

        Returns:
            All k + m shards, data and parity

        Raises:
            InsufficientShardsError: If fewer than k slots are present
            ErasureCodingError: If the slot count or a shard length is wrong
        """
        if len(shards) != self.total_shards:
            raise ErasureCodingError(f"Expected {self.total_shards} shard slots, got {len(shards)}")

        slots: list[bytes | None] = [
            None if buf is None else self._check_buffer(i, buf) for i, buf in enumerate(shards)
        ]
        present = [i for i, buf in enumerate(slots) if buf is not None]
        if len(present) < self.data_shards:
            raise InsufficientShardsError(len(present), self.data_shards)

        k = self.data_shards
        if any(slots[j] is None for j in range(k)):
            # present is ascending, so surviving data shards are used first
            rows = present[:k]
            decode = _invert_matrix([self._matrix[r] for r in rows])
            inputs = [slots[r] for r in rows]
            for j in range(k):
                if slots[j] is None:
                    slots[j] = _linear_combination(decode[j], inputs, self.shard_size)

        data = slots[:k]
        for i in range(k, self.total_shards):
            if slots[i] is None:
                slots[i] = _linear_combination(self._matrix[i], data, self.shard_size)

        return slots  # type: ignore[return-value]

    def can_reconstruct(self, shards: Sequence[bytes | None]) -> bool:
        """True if enough slots are present to rebuild the stripe."""
        return sum(1 for s in shards if s is not None) >= self.data_shards

    def get_stats(self) -> dict[str, Any]:
        """Get codec statistics."""
        return {
            "data_shards": self.data_shards,
            "parity_shards": self.parity_shards,
            "total_shards": self.total_shards,
            "max_failures": self.layout.max_failures,
            "shard_size": self.shard_size,
            "stripe_capacity": self.layout.stripe_capacity,
            "overhead_percent": self.layout.overhead_percent,
        }
