"""Eight-point estimation of the essential matrix from bearing correspondences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

__all__ = ["EightPoint", "encode_epipolar_equation"]

_ROWS = 8


def encode_epipolar_equation(matches: Iterable) -> np.ndarray:
    """Build the 8x9 epipolar constraint matrix from ``(a, b)`` bearing pairs.

    Only the first eight matches are used; missing rows stay zero. Both
    bearings of a match are scaled by the depth (z) of ``a``.
    """
    out = np.zeros((_ROWS, 9))
    with np.errstate(all="ignore"):
        for row, (a, b) in zip(out, matches):
            a = np.asarray(a, dtype=np.float64)
            b = np.asarray(b, dtype=np.float64)
            depth = a[2]
            row[:] = np.outer(a / depth, b / depth).ravel()
    return out


@dataclass(frozen=True)
class EightPoint:
    """The eight-point algorithm for estimating an essential matrix.

    ``epsilon`` and ``iterations`` configure the iterative solvers used when
    poses are later recovered from the essential matrix.
    """

    epsilon: float = 1e-12
    iterations: int = 1000

    min_samples = 8

    def from_matches(self, matches: Iterable) -> np.ndarray | None:
        """Estimate the essential matrix ``E`` with ``b.T @ E @ a == 0``.

        Returns a 3x3 matrix of unit Frobenius norm, or None if the
        eigen-decomposition fails.
        """
        constraint = encode_epipolar_equation(matches)
        eet = constraint.T @ constraint
        try:
            eigenvalues, eigenvectors = np.linalg.eigh(eet)
        except np.linalg.LinAlgError:
            return None
        if eigenvalues.size == 0:
            return None
        ix = int(np.argmin(eigenvalues))
        return eigenvectors[:, ix].reshape((3, 3), order="F")