import pytest

from cvsolvers.matching import (
    MATCH_MARGIN,
    hamming_distance,
    matching,
    symmetric_matching,
)


def bits(n: int) -> bytes:
    """A 64-bit descriptor with its lowest ``n`` bits set."""
    return ((1 << n) - 1).to_bytes(8, "little")


def test_hamming_identical_is_zero():
    assert hamming_distance(bits(17), bits(17)) == 0


def test_hamming_counts_differing_bits():
    assert hamming_distance(bits(0), bits(64)) == 64
    assert hamming_distance(bits(10), bits(40)) == 30


def test_hamming_is_symmetric():
    a = bytes([0x12, 0x34, 0x56, 0x78])
    b = bytes([0xF0, 0x0F, 0xAA, 0x55])
    assert hamming_distance(a, b) == hamming_distance(b, a)


def test_hamming_length_mismatch_raises():
    with pytest.raises(ValueError):
        hamming_distance(bytes(8), bytes(4))


def test_matching_accepts_clear_best():
    assert matching([bits(0)], [bits(0), bits(64)]) == [0]


def test_matching_margin_boundary():
    # Exactly the margin apart is rejected; one more bit is accepted.
    assert matching([bits(0)], [bits(0), bits(MATCH_MARGIN)]) == [None]
    assert matching([bits(0)], [bits(0), bits(MATCH_MARGIN + 1)]) == [0]


def test_matching_picks_nearest_index():
    assert matching([bits(64)], [bits(0), bits(64)]) == [1]


def test_matching_needs_two_candidates():
    with pytest.raises(ValueError):
        matching([bits(0)], [bits(0)])


def test_matching_empty_queries():
    assert matching([], [bits(0)]) == []


def test_symmetric_matching_mutual_pairs():
    a = [bits(0), bits(64)]
    b = [bits(0), bits(64)]
    assert symmetric_matching(a, b) == [(0, 0), (1, 1)]


def test_symmetric_matching_drops_unreciprocated():
    a = [bits(0), bits(40)]
    b = [bits(30), bits(64)]
    assert matching(a, b) == [0, None]
    assert matching(b, a) == [None, 1]
    assert symmetric_matching(a, b) == []


def test_symmetric_matching_is_consistent_with_both_directions():
    a = [bits(0), bits(64), bits(32)]
    b = [bits(64), bits(33), bits(1)]
    forward = matching(a, b)
    reverse = matching(b, a)
    pairs = symmetric_matching(a, b)
    assert pairs
    for aix, bix in pairs:
        assert forward[aix] == bix
        assert reverse[bix] == aix