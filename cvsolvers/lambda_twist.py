"""Lambda Twist solver for the perspective-three-point (P3P) problem.

Given three world points and the bearing vectors under which a camera sees
them, the solver returns up to four camera poses ``(R, t)`` such that
``lambda_i * y_i = R @ x_i + t`` for positive depths ``lambda_i``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from itertools import islice
from typing import Iterable, Sequence

import numpy as np

__all__ = [
    "WorldToCamera",
    "LambdaTwist",
    "root2real",
    "cube_root",
    "gauss_newton_refine_lambda",
    "eigen_decomposition_singular",
    "rotation_from_matrix",
]

_F64_EPSILON = float(np.finfo(np.float64).eps)


@dataclass(frozen=True)
class WorldToCamera:
    """A rigid transform taking world coordinates into camera coordinates."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def transform(self, point) -> np.ndarray:
        """Map a world point into the camera frame."""
        return self.rotation @ np.asarray(point, dtype=np.float64) + self.translation


def root2real(b, c):
    """Real roots of ``r**2 + b*r + c = 0`` as ``(roots_are_real, r1, r2)``."""
    b = np.float64(b)
    c = np.float64(c)
    with np.errstate(all="ignore"):
        discriminant = b * b - 4.0 * c
        if discriminant < 0.0:
            root = 0.5 * b
            return False, root, root
        y = np.sqrt(discriminant)
        if b < 0.0:
            return True, 0.5 * (-b + y), 0.5 * (-b - y)
        return True, 2.0 * c / (-b + y), 2.0 * c / (-b - y)


def cube_root(b, c, d):
    """The most stable real root of ``r**3 + b*r**2 + c*r + d = 0``.

    The initial guess is chosen where the cubic has the steepest slope and is
    then polished with Newton-Raphson: seven unconditional steps followed by
    up to 43 more until the residual drops to 1e-13.
    """
    b = np.float64(b)
    c = np.float64(c)
    d = np.float64(d)
    with np.errstate(all="ignore"):
        if b * b >= 3.0 * c:
            v = np.sqrt(b * b - 3.0 * c)
            t1 = (-b - v) / 3.0
            k = ((t1 + b) * t1 + c) * t1 + d
            if k > 0.0:
                r0 = t1 - np.sqrt(-k / (3.0 * t1 + b))
            else:
                t2 = (-b + v) / 3.0
                k = ((t2 + b) * t2 + c) * t2 + d
                r0 = t2 + np.sqrt(-k / (3.0 * t2 + b))
        else:
            r0 = -b / 3.0
            if abs((3.0 * r0 + 2.0 * b) * r0 + c) < 1e-4:
                r0 += 1.0

        for _ in range(7):
            fx = ((r0 + b) * r0 + c) * r0 + d
            fpx = (3.0 * r0 + 2.0 * b) * r0 + c
            r0 -= fx / fpx
        for _ in range(43):
            fx = ((r0 + b) * r0 + c) * r0 + d
            if not abs(fx) > 1e-13:
                break
            fpx = (3.0 * r0 + 2.0 * b) * r0 + c
            r0 -= fx / fpx
    return r0


def _l1_norm(v: np.ndarray) -> float:
    return float(np.abs(v).sum())


def gauss_newton_refine_lambda(lam, iterations, a12, a13, a23, b12, b13, b23):
    """Refine a depth triple with Gauss-Newton, stopping when it stops improving."""

    def residual(l: np.ndarray) -> np.ndarray:
        l1, l2, l3 = l
        return np.array(
            [
                l1 * l1 + l2 * l2 + b12 * l1 * l2 - a12,
                l1 * l1 + l3 * l3 + b13 * l1 * l3 - a13,
                l2 * l2 + l3 * l3 + b23 * l2 * l3 - a23,
            ]
        )

    current = np.asarray(lam, dtype=np.float64).copy()
    with np.errstate(all="ignore"):
        res = residual(current)
        for _ in range(iterations):
            if _l1_norm(res) < 1e-10:
                break
            l1, l2, l3 = current
            dr1dl1 = 2.0 * l1 + b12 * l2
            dr1dl2 = 2.0 * l2 + b12 * l1
            dr2dl1 = 2.0 * l1 + b13 * l3
            dr2dl3 = 2.0 * l3 + b13 * l1
            dr3dl2 = 2.0 * l2 + b23 * l3
            dr3dl3 = 2.0 * l3 + b23 * l2
            det = np.float64(1.0) / (
                -dr1dl1 * dr2dl3 * dr3dl2 - dr1dl2 * dr2dl1 * dr3dl3
            )
            jacobian = np.array(
                [
                    [-dr2dl3 * dr3dl2, -dr1dl2 * dr3dl3, dr1dl2 * dr2dl3],
                    [-dr2dl1 * dr3dl3, dr1dl1 * dr3dl3, -dr1dl1 * dr2dl3],
                    [dr2dl1 * dr3dl2, -dr1dl1 * dr3dl2, -dr1dl2 * dr2dl1],
                ]
            )
            candidate = current - det * (jacobian @ res)
            res_new = residual(candidate)
            if _l1_norm(res_new) > _l1_norm(res):
                break
            current, res = candidate, res_new
    return current


def eigen_decomposition_singular(x):
    """Eigen-decomposition of a symmetric 3x3 matrix with a zero eigenvalue.

    Returns ``(eigenvectors, eigenvalues)``; eigenvectors are the columns of
    the matrix, the first two ordered by decreasing eigenvalue magnitude and
    the third spanning the null space (its eigenvalue is zero).
    """
    x = np.asarray(x, dtype=np.float64)
    flat = x.flatten(order="F")
    m11, m12, m13 = x[0, 0], x[0, 1], x[0, 2]
    m22, m23, m33 = x[1, 1], x[1, 2], x[2, 2]

    with np.errstate(all="ignore"):
        v3 = np.array(
            [
                flat[1] * flat[5] - flat[2] * flat[4],
                flat[2] * flat[3] - flat[5] * flat[0],
                flat[4] * flat[0] - flat[1] * flat[3],
            ]
        )
        v3 = v3 / np.linalg.norm(v3)

        x12_sqr = m12 * m12
        b = -m11 - m22 - m33
        c = -x12_sqr - m13 * m13 - m23 * m23 + m11 * (m22 + m33) + m22 * m33
        _, e1, e2 = root2real(b, c)
        if abs(e1) < abs(e2):
            e1, e2 = e2, e1
        eigenvalues = np.array([e1, e2, 0.0])

        mx0011 = -m11 * m22
        prec_0 = m12 * m23 - m13 * m22
        prec_1 = m12 * m13 - m11 * m23

        def eigenvector(e: np.float64) -> np.ndarray:
            tmp = np.float64(1.0) / (e * (m11 + m22) + mx0011 - e * e + x12_sqr)
            a1 = -(e * m13 + prec_0) * tmp
            a2 = -(e * m23 + prec_1) * tmp
            rnorm = np.float64(1.0) / np.sqrt(a1 * a1 + a2 * a2 + 1.0)
            return np.array([a1 * rnorm, a2 * rnorm, rnorm])

        eigenvectors = np.column_stack([eigenvector(e1), eigenvector(e2), v3])
    return eigenvectors, eigenvalues


def _axis_angle_matrix(axis: np.ndarray, angle: float) -> np.ndarray:
    kx, ky, kz = axis
    k = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]])
    return np.eye(3) + np.sin(angle) * k + (1.0 - np.cos(angle)) * (k @ k)


def rotation_from_matrix(matrix, epsilon, max_iterations):
    """Closest rotation to ``matrix``, found iteratively starting from identity.

    Each step rotates the estimate about the axis that best aligns its columns
    with those of ``matrix``; iteration stops once that correction is no larger
    than ``epsilon`` or after ``max_iterations`` steps.
    """
    m = np.asarray(matrix, dtype=np.float64)
    rot = np.eye(3)
    with np.errstate(all="ignore"):
        for _ in range(max_iterations):
            axis = sum(np.cross(rot[:, i], m[:, i]) for i in range(3))
            denom = sum(float(rot[:, i] @ m[:, i]) for i in range(3))
            axis_angle = axis / (abs(denom) + _F64_EPSILON)
            angle = float(np.linalg.norm(axis_angle))
            if not angle > epsilon:
                break
            rot = _axis_angle_matrix(axis_angle / angle, angle) @ rot
    return rot


def _determinant_is_zero(m: np.ndarray) -> bool:
    minor_12_23 = m[1, 1] * m[2, 2] - m[2, 1] * m[1, 2]
    minor_11_23 = m[1, 0] * m[2, 2] - m[2, 0] * m[1, 2]
    minor_11_22 = m[1, 0] * m[2, 1] - m[2, 0] * m[1, 1]
    det = m[0, 0] * minor_12_23 - m[0, 1] * minor_11_23 + m[0, 2] * minor_11_22
    return det == 0.0


def _world_point(point) -> np.ndarray | None:
    """Euclidean coordinates of a world point; None for a point at infinity."""
    p = np.asarray(point, dtype=np.float64)
    if p.shape == (3,):
        return p
    if p.shape == (4,):
        if p[3] == 0.0:
            return None
        return p[:3] / p[3]
    raise ValueError("world points must have 3 or 4 (homogeneous) coordinates")


@dataclass(frozen=True)
class LambdaTwist:
    """P3P estimator returning up to four :class:`WorldToCamera` poses."""

    gauss_newton_iterations: int = 5
    rotation_convergence_iterations: int = 100
    rotation_convergence_epsilon: float = 1e-12

    min_samples = 3

    def with_gauss_newton_iterations(self, gauss_newton_iterations):
        return replace(self, gauss_newton_iterations=gauss_newton_iterations)

    def with_rotation_convergence_iterations(self, rotation_convergence_iterations):
        return replace(
            self, rotation_convergence_iterations=rotation_convergence_iterations
        )

    def with_rotation_convergence_epsilon(self, rotation_convergence_epsilon):
        return replace(self, rotation_convergence_epsilon=rotation_convergence_epsilon)

    def estimate(self, samples: Iterable) -> list[WorldToCamera]:
        """Estimate poses from the first three ``(bearing, world_point)`` pairs.

        Raises ValueError if fewer than three samples are given.
        """
        first = list(islice(iter(samples), 3))
        if len(first) < 3:
            raise ValueError("must provide 3 samples at minimum to LambdaTwist")
        with np.errstate(all="ignore"):
            return self._compute_poses(first)

    def _compute_poses(self, samples: Sequence) -> list[WorldToCamera]:
        wps = [_world_point(point) for _, point in samples]
        if any(p is None for p in wps):
            return []
        bearings = []
        for bearing, _ in samples:
            v = np.asarray(bearing, dtype=np.float64)
            bearings.append(v / np.linalg.norm(v))

        d12 = wps[0] - wps[1]
        d13 = wps[0] - wps[2]
        d23 = wps[1] - wps[2]
        d12xd13 = np.cross(d12, d13)

        a12 = np.float64(d12 @ d12)
        a13 = np.float64(d13 @ d13)
        a23 = np.float64(d23 @ d23)

        c12 = np.float64(bearings[0] @ bearings[1])
        c23 = np.float64(bearings[1] @ bearings[2])
        c31 = np.float64(bearings[2] @ bearings[0])
        blob = c12 * c23 * c31 - 1.0

        s12_sqr = 1.0 - c12 * c12
        s23_sqr = 1.0 - c23 * c23
        s31_sqr = 1.0 - c31 * c31

        b12 = -2.0 * c12
        b13 = -2.0 * c31
        b23 = -2.0 * c23

        p3 = a13 * (a23 * s31_sqr - a13 * s23_sqr)
        p2 = (
            2.0 * blob * a23 * a13
            + a13 * (2.0 * a12 + a13) * s23_sqr
            + a23 * (a23 - a12) * s31_sqr
        )
        p1 = (
            a23 * (a13 - a23) * s12_sqr
            - a12 * a12 * s23_sqr
            - 2.0 * a12 * (blob * a23 + a13 * s23_sqr)
        )
        p0 = a12 * (a12 * s23_sqr - a23 * s12_sqr)

        g = cube_root(p2 / p3, p1 / p3, p0 / p3)

        d0_00 = a23 * (1.0 - g)
        d0_01 = -(a23 * c12)
        d0_02 = a23 * c31 * g
        d0_11 = a23 - a12 + a13 * g
        d0_12 = -c23 * (a13 * g - a12)
        d0_22 = g * (a13 - a23) - a12
        d0 = np.array(
            [
                [d0_00, d0_01, d0_02],
                [d0_01, d0_11, d0_12],
                [d0_02, d0_12, d0_22],
            ]
        )

        eig_vectors, eig_values = eigen_decomposition_singular(d0)
        eigen_ratio = np.sqrt(np.fmax(0.0, -eig_values[1] / eig_values[0]))

        lambdas: list[np.ndarray] = []

        def push_solution(tau, w0, w1):
            if not tau > 0.0:
                return
            depth = a23 / (tau * (b23 + tau) + 1.0)
            if depth > 0.0:
                l2 = np.sqrt(depth)
                l3 = tau * l2
                l1 = w0 * l2 + w1 * l3
                if l1 >= 0.0:
                    lambdas.append(np.array([l1, l2, l3]))

        for ratio in (eigen_ratio, -eigen_ratio):
            w2 = np.float64(1.0) / (ratio * eig_vectors[0, 1] - eig_vectors[0, 0])
            w0 = w2 * (eig_vectors[1, 0] - ratio * eig_vectors[1, 1])
            w1 = w2 * (eig_vectors[2, 0] - ratio * eig_vectors[2, 1])
            a = np.float64(1.0) / ((a13 - a12) * w1 * w1 - a12 * b13 * w1 - a12)
            b = a * (a13 * b12 * w1 - a12 * b13 * w0 - 2.0 * w0 * w1 * (a12 - a13))
            c = a * ((a13 - a12) * w0 * w0 + a13 * b12 * w0 + a13)
            if b * b - 4.0 * c >= 0.0:
                _, tau1, tau2 = root2real(b, c)
                push_solution(tau1, w0, w1)
                push_solution(tau2, w0, w1)

        x_mat = np.column_stack([d12, d13, d12xd13])
        if _determinant_is_zero(x_mat):
            return []
        x_inv = np.linalg.inv(x_mat)

        poses = []
        for lam in lambdas:
            refined = gauss_newton_refine_lambda(
                lam, self.gauss_newton_iterations, a12, a13, a23, b12, b13, b23
            )
            ry1 = refined[0] * bearings[0]
            ry2 = refined[1] * bearings[1]
            ry3 = refined[2] * bearings[2]
            yd1 = ry1 - ry2
            yd2 = ry1 - ry3
            y_mat = np.column_stack([yd1, yd2, np.cross(yd1, yd2)])
            rot = y_mat @ x_inv
            trans = ry1 - rot @ wps[0]
            rotation = rotation_from_matrix(
                rot,
                self.rotation_convergence_epsilon,
                self.rotation_convergence_iterations,
            )
            poses.append(WorldToCamera(rotation=rotation, translation=trans))
        return poses