"""Five-point relative pose solver after Nister and Stewenius.

Polynomials in the unknowns ``x, y, z`` (with homogeneous ``w``) are held as
length-20 coefficient vectors indexed by the ``BASIS_*`` constants.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Iterator, Sequence

import numpy as np

__all__ = [
    "o1",
    "o2",
    "five_points_nullspace_basis",
    "five_points_polynomial_constraints",
    "five_points_relative_pose",
    "NisterStewenius",
]

BASIS_XXX = 0
BASIS_XXY = 1
BASIS_XYY = 2
BASIS_YYY = 3
BASIS_XXZ = 4
BASIS_XYZ = 5
BASIS_YYZ = 6
BASIS_XZZ = 7
BASIS_YZZ = 8
BASIS_ZZZ = 9
BASIS_XX = 10
BASIS_XY = 11
BASIS_YY = 12
BASIS_XZ = 13
BASIS_YZ = 14
BASIS_ZZ = 15
BASIS_X = 16
BASIS_Y = 17
BASIS_Z = 18
BASIS_1 = 19

_EIGEN_THRESHOLD = 1e-12
# A singular value below this marks the null space.
_SVD_NULL_THRESHOLD = 1e-12


def o1(a, b) -> np.ndarray:
    """Product of two linear polynomials ``(x, y, z, w)`` as a quadratic."""
    ax, ay, az, aw = (float(v) for v in a)
    bx, by, bz, bw = (float(v) for v in b)
    res = np.zeros(20)
    res[BASIS_XX] = ax * bx
    res[BASIS_XY] = ax * by + ay * bx
    res[BASIS_XZ] = ax * bz + az * bx
    res[BASIS_YY] = ay * by
    res[BASIS_YZ] = ay * bz + az * by
    res[BASIS_ZZ] = az * bz
    res[BASIS_X] = ax * bw + aw * bx
    res[BASIS_Y] = ay * bw + aw * by
    res[BASIS_Z] = az * bw + aw * bz
    res[BASIS_1] = aw * bw
    return res


def o2(a, b) -> np.ndarray:
    """Product of a quadratic polynomial and a linear one as a cubic."""
    a = np.asarray(a, dtype=np.float64)
    bx, by, bz, bw = (float(v) for v in b)
    res = np.zeros(20)
    res[BASIS_XXX] = a[BASIS_XX] * bx
    res[BASIS_XXY] = a[BASIS_XX] * by + a[BASIS_XY] * bx
    res[BASIS_XXZ] = a[BASIS_XX] * bz + a[BASIS_XZ] * bx
    res[BASIS_XYY] = a[BASIS_XY] * by + a[BASIS_YY] * bx
    res[BASIS_XYZ] = a[BASIS_XY] * bz + a[BASIS_YZ] * bx + a[BASIS_XZ] * by
    res[BASIS_XZZ] = a[BASIS_XZ] * bz + a[BASIS_ZZ] * bx
    res[BASIS_YYY] = a[BASIS_YY] * by
    res[BASIS_YYZ] = a[BASIS_YY] * bz + a[BASIS_YZ] * by
    res[BASIS_YZZ] = a[BASIS_YZ] * bz + a[BASIS_ZZ] * by
    res[BASIS_ZZZ] = a[BASIS_ZZ] * bz
    res[BASIS_XX] = a[BASIS_XX] * bw + a[BASIS_X] * bx
    res[BASIS_XY] = a[BASIS_XY] * bw + a[BASIS_X] * by + a[BASIS_Y] * bx
    res[BASIS_XZ] = a[BASIS_XZ] * bw + a[BASIS_X] * bz + a[BASIS_Z] * bx
    res[BASIS_YY] = a[BASIS_YY] * bw + a[BASIS_Y] * by
    res[BASIS_YZ] = a[BASIS_YZ] * bw + a[BASIS_Y] * bz + a[BASIS_Z] * by
    res[BASIS_ZZ] = a[BASIS_ZZ] * bw + a[BASIS_Z] * bz
    res[BASIS_X] = a[BASIS_X] * bw + a[BASIS_1] * bx
    res[BASIS_Y] = a[BASIS_Y] * bw + a[BASIS_1] * by
    res[BASIS_Z] = a[BASIS_Z] * bw + a[BASIS_1] * bz
    res[BASIS_1] = a[BASIS_1] * bw
    return res


def _encode_epipolar_equation(a: Sequence, b: Sequence) -> np.ndarray:
    if len(a) != 5 or len(b) != 5:
        raise ValueError("exactly five bearings are required on each side")
    return np.array(
        [
            np.outer(np.asarray(ai, dtype=np.float64), np.asarray(bi, dtype=np.float64)).ravel()
            for ai, bi in zip(a, b)
        ]
    )


def five_points_nullspace_basis(a, b) -> np.ndarray | None:
    """A 9x4 basis of the null space of the five epipolar constraints.

    Returns None unless the constraints have a nullity of exactly four.
    """
    constraint = _encode_epipolar_equation(a, b)
    ee = constraint.T @ constraint
    try:
        eigenvalues, eigenvectors = np.linalg.eigh(ee)
    except np.linalg.LinAlgError:
        return None
    order = np.argsort(eigenvalues, kind="stable")
    above = np.flatnonzero(eigenvalues[order] > _EIGEN_THRESHOLD)
    if above.size == 0 or above[0] != 4:
        return None
    return eigenvectors[:, order[:4]]


def five_points_polynomial_constraints(nullspace) -> np.ndarray:
    """The 10x20 matrix of cubic constraints on the null-space coefficients.

    Row 0 is the determinant constraint; rows 1..9 are the trace constraint
    ``2 E E^T E - tr(E E^T) E = 0`` entry by entry.
    """
    e = np.asarray(nullspace, dtype=np.float64).reshape(3, 3, 4)
    m = np.zeros((10, 20))

    m[0] = (
        o2(o1(e[0, 1], e[1, 2]) - o1(e[0, 2], e[1, 1]), e[2, 0])
        + o2(o1(e[0, 2], e[1, 0]) - o1(e[0, 0], e[1, 2]), e[2, 1])
        + o2(o1(e[0, 0], e[1, 1]) - o1(e[0, 1], e[1, 0]), e[2, 2])
    )

    eet = [
        [sum(o1(e[i, k], e[j, k]) for k in range(3)) for j in range(3)]
        for i in range(3)
    ]
    trace = 0.5 * (eet[0][0] + eet[1][1] + eet[2][2])
    lmat = [
        [eet[i][j] - trace if i == j else eet[i][j] for j in range(3)]
        for i in range(3)
    ]

    for i in range(3):
        for j in range(3):
            m[1 + i * 3 + j] = sum(o2(lmat[i][k], e[k, j]) for k in range(3))
    return m


def _compute_eigenvector(m: np.ndarray, eigenvalue: float) -> np.ndarray | None:
    try:
        _, singular_values, v_t = np.linalg.svd(m - eigenvalue * np.eye(10))
    except np.linalg.LinAlgError:
        return None
    ix = int(np.argmin(singular_values))
    if singular_values[ix] < _SVD_NULL_THRESHOLD:
        return v_t[ix]
    return None


def _essentials_from_action(at: np.ndarray, basis: np.ndarray) -> Iterator[np.ndarray]:
    try:
        eigenvalues = np.linalg.eigvals(at)
    except np.linalg.LinAlgError:
        return
    for eigenvalue in eigenvalues:
        if eigenvalue.imag != 0.0:
            continue
        vector = _compute_eigenvector(at, float(eigenvalue.real))
        if vector is not None:
            yield (basis @ vector[5:9]).reshape((3, 3), order="F")


def five_points_relative_pose(a, b) -> list[np.ndarray]:
    """All essential-matrix solutions for five bearing correspondences.

    ``a`` and ``b`` each hold five unit bearings. An empty list is returned
    when the constraints are degenerate.
    """
    basis = five_points_nullspace_basis(a, b)
    if basis is None:
        return []

    constraints = five_points_polynomial_constraints(basis)
    try:
        m = np.linalg.solve(constraints[:, :10], constraints[:, 10:])
    except np.linalg.LinAlgError:
        return []

    at = np.zeros((10, 10))
    at[:3] = m[:3]
    at[3] = m[4]
    at[4] = m[5]
    at[5] = m[7]
    at[6, 0] = -1.0
    at[7, 1] = -1.0
    at[8, 3] = -1.0
    at[9, 6] = -1.0

    return list(_essentials_from_action(at, basis))


@dataclass(frozen=True)
class NisterStewenius:
    """The five-point relative pose estimator.

    ``epsilon`` and ``iterations`` configure the iterative solvers used when
    poses are later recovered from the essential matrices.
    """

    epsilon: float = 1e-12
    iterations: int = 1000

    min_samples = 5

    def essentials(self, matches: Iterable) -> list[np.ndarray]:
        """Essential matrices from the first five ``(a, b)`` bearing pairs.

        Raises ValueError if fewer than five matches are given.
        """
        pairs = list(islice(iter(matches), 5))
        if len(pairs) != 5:
            raise ValueError("must provide 5 samples to NisterStewenius")
        a = [pair[0] for pair in pairs]
        b = [pair[1] for pair in pairs]
        return five_points_relative_pose(a, b)