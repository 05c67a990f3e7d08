import numpy as np
import pytest

from cvsolvers.eight_point import EightPoint, encode_epipolar_equation

SAMPLE_POINTS = 16
RESIDUAL_THRESHOLD = 1e-4
ROT_MAGNITUDE = 0.2
POINT_BOX_SIZE = 2.0
POINT_DISTANCE = 3.0


def _rotation(axis_angle):
    angle = np.linalg.norm(axis_angle)
    if angle == 0.0:
        return np.eye(3)
    kx, ky, kz = axis_angle / angle
    k = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]])
    return np.eye(3) + np.sin(angle) * k + (1.0 - np.cos(angle)) * (k @ k)


def _skew(t):
    return np.array([[0.0, -t[2], t[1]], [t[2], 0.0, -t[0]], [-t[1], t[0], 0.0]])


def _some_test_data(rng):
    translation = rng.random(3)
    rotation = _rotation(rng.random(3) * np.pi * 2.0 * ROT_MAGNITUDE)
    cams_a = rng.random((SAMPLE_POINTS, 3)) * POINT_BOX_SIZE
    cams_a[:, 0] -= 0.5 * POINT_BOX_SIZE
    cams_a[:, 1] -= 0.5 * POINT_BOX_SIZE
    cams_a[:, 2] += POINT_DISTANCE
    cams_b = cams_a @ rotation.T + translation
    kps_a = cams_a / np.linalg.norm(cams_a, axis=1, keepdims=True)
    kps_b = cams_b / np.linalg.norm(cams_b, axis=1, keepdims=True)
    return rotation, translation, kps_a, kps_b


def _run_round(rng):
    _, _, aps, bps = _some_test_data(rng)
    matches = list(zip(aps, bps))
    essential = EightPoint().from_matches(iter(matches))
    assert essential is not None
    return all(abs(b @ essential @ a) <= RESIDUAL_THRESHOLD for a, b in matches)


def test_randomized():
    rng = np.random.default_rng(0)
    successes = sum(_run_round(rng) for _ in range(1000))
    assert successes > 950


def test_matches_true_essential_up_to_sign():
    rng = np.random.default_rng(42)
    rotation, translation, aps, bps = _some_test_data(rng)
    expected = _skew(translation) @ rotation
    expected /= np.linalg.norm(expected)
    essential = EightPoint().from_matches(zip(aps, bps))
    assert np.linalg.norm(essential) == pytest.approx(1.0)
    error = min(
        np.linalg.norm(essential - expected), np.linalg.norm(essential + expected)
    )
    assert error < 1e-6


def test_encode_row_values():
    a = [1.0, 2.0, 4.0]
    b = [3.0, 5.0, 7.0]
    out = encode_epipolar_equation([(a, b)])
    assert out.shape == (8, 9)
    expected = [0.1875, 0.3125, 0.4375, 0.375, 0.625, 0.875, 0.75, 1.25, 1.75]
    np.testing.assert_allclose(out[0], expected)
    np.testing.assert_array_equal(out[1:], np.zeros((7, 9)))


def test_encode_uses_first_eight_matches():
    rng = np.random.default_rng(3)
    pairs = [(rng.random(3) + 0.1, rng.random(3)) for _ in range(10)]
    np.testing.assert_array_equal(
        encode_epipolar_equation(pairs), encode_epipolar_equation(pairs[:8])
    )