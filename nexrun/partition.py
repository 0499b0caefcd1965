"""Partitioning of test runs across several machines.

Two strategies are supported: count-based, which assigns tests to shards in
turn, and hash-based, which assigns each test by a hash of its name.
"""

from __future__ import annotations

import enum
import re
import struct
from dataclasses import dataclass

from nexrun.errors import PartitionerBuilderParseError

_MASK = (1 << 64) - 1
_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261

_U64_MAX = _MASK
_DIGITS = re.compile(r"\+?[0-9]+")


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


def xxhash64(data: bytes, seed: int = 0) -> int:
    """Return the 64-bit xxHash of ``data``."""
    data = bytes(data)
    length = len(data)
    seed &= _MASK
    stripe_end = length - length % 32

    if length >= 32:
        v1 = (seed + _P1 + _P2) & _MASK
        v2 = (seed + _P2) & _MASK
        v3 = seed
        v4 = (seed - _P1) & _MASK
        for a, b, c, d in struct.iter_unpack("<4Q", data[:stripe_end]):
            v1, v2, v3, v4 = _round(v1, a), _round(v2, b), _round(v3, c), _round(v4, d)
        h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
        for v in (v1, v2, v3, v4):
            h = _merge(h, v)
    else:
        h = (seed + _P5) & _MASK

    h = (h + length) & _MASK

    tail = data[stripe_end:]
    lanes_end = len(tail) - len(tail) % 8
    for (lane,) in struct.iter_unpack("<Q", tail[:lanes_end]):
        h ^= _round(0, lane)
        h = (_rotl(h, 27) * _P1 + _P4) & _MASK

    rest = tail[lanes_end:]
    if len(rest) >= 4:
        (word,) = struct.unpack("<I", rest[:4])
        h ^= (word * _P1) & _MASK
        h = (_rotl(h, 23) * _P2 + _P3) & _MASK
        rest = rest[4:]

    for byte in rest:
        h ^= (byte * _P5) & _MASK
        h = (_rotl(h, 11) * _P1) & _MASK

    h ^= h >> 33
    h = (h * _P2) & _MASK
    h ^= h >> 29
    h = (h * _P3) & _MASK
    h ^= h >> 32
    return h


def _parse_u64(text: str) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not _DIGITS.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    if value > _U64_MAX:
        raise ValueError("number too large to fit in target type")
    return value


def parse_shards(text: str, expected_format: str) -> tuple[int, int]:
    """Parse ``M/N`` into ``(shard, total_shards)`` with ``1 <= M <= N``."""
    shard_str, sep, total_shards_str = text.partition("/")
    if not sep:
        raise PartitionerBuilderParseError(
            expected_format, f"expected input '{text}' to be in the format M/N"
        )

    try:
        shard = _parse_u64(shard_str)
    except ValueError as err:
        raise PartitionerBuilderParseError(
            expected_format, f"failed to parse shard '{shard_str}' as u64: {err}"
        ) from None

    try:
        total_shards = _parse_u64(total_shards_str)
    except ValueError as err:
        raise PartitionerBuilderParseError(
            expected_format,
            f"failed to parse total_shards '{total_shards_str}' as u64: {err}",
        ) from None

    if not 1 <= shard <= total_shards:
        raise PartitionerBuilderParseError(
            expected_format,
            f"shard {shard} must be a number between 1 and total shards "
            f"{total_shards}, inclusive",
        )
    return shard, total_shards


class PartitionKind(enum.Enum):
    """The partitioning strategy."""

    COUNT = "count"
    HASH = "hash"


class CountPartitioner:
    """Assigns tests to shards in turn, in the order they are seen."""

    def __init__(self, shard: int, total_shards: int) -> None:
        self.shard_minus_one = shard - 1
        self.total_shards = total_shards
        self.curr = 0

    def test_matches(self, test_name: str) -> bool:
        """Return True if the next test belongs to this shard."""
        matches = self.curr == self.shard_minus_one
        self.curr = (self.curr + 1) % self.total_shards
        return matches

    def __repr__(self) -> str:
        return (
            f"CountPartitioner(shard={self.shard_minus_one + 1}, "
            f"total_shards={self.total_shards}, curr={self.curr})"
        )


class HashPartitioner:
    """Assigns each test to a shard by hashing its name; stateless."""

    def __init__(self, shard: int, total_shards: int) -> None:
        self.shard_minus_one = shard - 1
        self.total_shards = total_shards

    def test_matches(self, test_name: str) -> bool:
        """Return True if ``test_name`` hashes into this shard."""
        # Strings are hashed as their bytes followed by a 0xff terminator.
        digest = xxhash64(test_name.encode("utf-8") + b"\xff")
        return digest % self.total_shards == self.shard_minus_one

    def __repr__(self) -> str:
        return (
            f"HashPartitioner(shard={self.shard_minus_one + 1}, "
            f"total_shards={self.total_shards})"
        )


@dataclass(frozen=True)
class PartitionerBuilder:
    """A partition specification; :meth:`build` makes a fresh partitioner."""

    kind: PartitionKind
    shard: int
    total_shards: int

    @classmethod
    def parse(cls, text: str) -> PartitionerBuilder:
        """Parse ``hash:M/N`` or ``count:M/N``."""
        for kind in PartitionKind:
            prefix = f"{kind.value}:"
            if text.startswith(prefix):
                shard, total_shards = parse_shards(
                    text[len(prefix):], f"{kind.value}:M/N"
                )
                return cls(kind, shard, total_shards)
        raise PartitionerBuilderParseError(
            None, f"partition input '{text}' must begin with \"hash:\" or \"count:\""
        )

    def build(self) -> CountPartitioner | HashPartitioner:
        if self.kind is PartitionKind.COUNT:
            return CountPartitioner(self.shard, self.total_shards)
        return HashPartitioner(self.shard, self.total_shards)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.shard}/{self.total_shards}"