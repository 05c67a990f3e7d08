"""Nearest-neighbour matching of binary feature descriptors.

Descriptors are bytes-like bit strings compared with the Hamming distance.
A match is accepted only when the best candidate is clearly better than the
runner-up, and symmetric matching further requires both directions to agree.
"""

from __future__ import annotations

import heapq
from typing import Sequence

__all__ = ["MATCH_MARGIN", "hamming_distance", "matching", "symmetric_matching"]

# The best neighbour must beat the second best by more than this many bits.
MATCH_MARGIN = 24


def _as_int(descriptor) -> tuple[int, int]:
    data = bytes(descriptor)
    return int.from_bytes(data, "little"), len(data)


def hamming_distance(a, b) -> int:
    """Number of differing bits between two descriptors of equal length."""
    a_bits, a_len = _as_int(a)
    b_bits, b_len = _as_int(b)
    if a_len != b_len:
        raise ValueError(
            f"descriptors differ in length: {a_len} and {b_len} bytes"
        )
    return bin(a_bits ^ b_bits).count("1")


def matching(a_descriptors: Sequence, b_descriptors: Sequence) -> list[int | None]:
    """Best match in ``b_descriptors`` for every descriptor in ``a_descriptors``.

    Each entry is the index of the nearest descriptor in ``b_descriptors``, or
    None when it is not nearer than the second nearest by more than
    :data:`MATCH_MARGIN` bits. Ties keep the lower index first. Raises
    ValueError if there are descriptors to match but fewer than two candidates.
    """
    candidates = list(b_descriptors)
    queries = list(a_descriptors)
    if queries and len(candidates) < 2:
        raise ValueError("at least two candidate descriptors are needed to match")

    result: list[int | None] = []
    for query in queries:
        best, second = heapq.nsmallest(
            2,
            ((hamming_distance(query, cand), ix) for ix, cand in enumerate(candidates)),
        )
        result.append(best[1] if best[0] + MATCH_MARGIN < second[0] else None)
    return result


def symmetric_matching(a: Sequence, b: Sequence) -> list[tuple[int, int]]:
    """Pairs ``(a_index, b_index)`` that are each other's accepted best match."""
    forward = matching(a, b)
    reverse = matching(b, a)
    return [
        (aix, bix)
        for aix, bix in enumerate(forward)
        if bix is not None and reverse[bix] == aix
    ]