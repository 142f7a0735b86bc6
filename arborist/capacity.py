"""Account sizing for concurrent Merkle trees.

Only a fixed set of (max depth, max buffer size) shapes are accepted by the
account compression program. Their structure sizes are precomputed below and
the table is frozen at import time, so lookups are read-only and safe to share
between threads.
"""

from __future__ import annotations

import bisect
from types import MappingProxyType
from typing import Mapping

from .errors import CapacityError

NODE_SIZE = 32
CONCURRENT_MERKLE_TREE_HEADER_SIZE_V1 = 2 + 54
U64_MAX = 2**64 - 1

# size_of::<ConcurrentMerkleTree<DEPTH, BUFFER>>() for every supported shape:
# 24 + BUFFER * (40 + 32 * DEPTH) + (40 + 32 * DEPTH)
_STRUCTURE_SIZES: dict[tuple[int, int], int] = {
    (3, 8): 1248,
    (5, 8): 1824,
    (14, 64): 31744,
    (14, 256): 125440,
    (14, 1024): 500224,
    (14, 2048): 999936,
    (15, 64): 33824,
    (16, 64): 35904,
    (17, 64): 37984,
    (18, 64): 40064,
    (19, 64): 42144,
    (20, 64): 44224,
    (20, 256): 174784,
    (20, 1024): 697024,
    (20, 2048): 1393344,
    (24, 64): 52544,
    (24, 256): 207680,
    (24, 512): 414528,
    (24, 1024): 828224,
    (24, 2048): 1655616,
    (26, 512): 447360,
    (26, 1024): 893824,
    (26, 2048): 1786752,
    (30, 512): 513024,
    (30, 1024): 1025024,
    (30, 2048): 2049024,
}


def _build_table() -> Mapping[int, Mapping[int, int]]:
    by_depth: dict[int, dict[int, int]] = {}
    for (depth, buffer_size), size in _STRUCTURE_SIZES.items():
        by_depth.setdefault(depth, {})[buffer_size] = size
    return MappingProxyType(
        {depth: MappingProxyType(dict(sorted(sizes.items()))) for depth, sizes in sorted(by_depth.items())}
    )


CAPACITY_TABLE: Mapping[int, Mapping[int, int]] = _build_table()
_SORTED_DEPTHS: tuple[int, ...] = tuple(CAPACITY_TABLE)


def valid_depths() -> tuple[int, ...]:
    return _SORTED_DEPTHS


def valid_buffer_sizes(depth: int) -> tuple[int, ...]:
    return tuple(CAPACITY_TABLE.get(depth, {}))


def nearest_depths(depth: int) -> tuple[int, ...]:
    """Return the closest supported depths below and above ``depth``."""

    below = bisect.bisect_left(_SORTED_DEPTHS, depth)
    above = bisect.bisect_right(_SORTED_DEPTHS, depth)
    neighbours: list[int] = []
    if below > 0:
        neighbours.append(_SORTED_DEPTHS[below - 1])
    if above < len(_SORTED_DEPTHS):
        neighbours.append(_SORTED_DEPTHS[above])
    return tuple(neighbours)


def _check_range(name: str, value: int, upper: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= upper:
        raise CapacityError(f"{name} must be an integer between 0 and {upper}, got {value!r}")


def merkle_tree_get_size(depth: int, buffer_size: int) -> int:
    """Return the structure size in bytes for a supported tree shape.

    Unsupported shapes raise :class:`CapacityError` carrying suggestions: the
    neighbouring depths when ``depth`` is unknown, or every buffer size valid
    for ``depth`` when only ``buffer_size`` is wrong.
    """

    _check_range("max depth", depth, 0xFF)
    _check_range("max buffer size", buffer_size, 0xFFFF)

    sizes = CAPACITY_TABLE.get(depth)
    if sizes is None:
        suggestions = nearest_depths(depth)
        hint = " or ".join(str(value) for value in suggestions)
        raise CapacityError(
            f"Invalid combination of max depth {depth} and max buffer size {buffer_size}: "
            f"unsupported max depth {depth} (nearest supported: {hint})",
            suggested_depths=suggestions,
        )

    size = sizes.get(buffer_size)
    if size is None:
        allowed = tuple(sizes)
        raise CapacityError(
            f"Invalid combination of max depth {depth} and max buffer size {buffer_size}: "
            f"max depth {depth} supports buffer sizes {', '.join(str(value) for value in allowed)}",
            suggested_buffer_sizes=allowed,
        )
    return size


def canopy_size(canopy_depth: int) -> int:
    """Bytes needed to cache the top ``canopy_depth`` levels of the tree."""

    if canopy_depth < 0:
        raise CapacityError(f"canopy depth must not be negative, got {canopy_depth}")
    return ((2 << canopy_depth) - 2) * NODE_SIZE


def account_size(depth: int, buffer_size: int, canopy_depth: int = 0) -> int:
    """Total account size: header, tree structure, and canopy."""

    _check_range("canopy depth", canopy_depth, 0xFF)
    total = CONCURRENT_MERKLE_TREE_HEADER_SIZE_V1 + merkle_tree_get_size(depth, buffer_size)
    total += canopy_size(canopy_depth)
    if total > U64_MAX:
        raise CapacityError(
            f"Error converting Merkle tree size to 64-bit: depth {depth}, buffer {buffer_size}, "
            f"canopy {canopy_depth} needs {total} bytes"
        )
    return total
