# cvsolvers

Small geometric solvers for computer vision, built on NumPy.

## Modules

### `cvsolvers.lambda_twist`

The Lambda Twist solver for the perspective-three-point (P3P) problem.

- `LambdaTwist` — a frozen dataclass with `gauss_newton_iterations` (default 5),
  `rotation_convergence_iterations` (default 100) and `rotation_convergence_epsilon`
  (default 1e-12). Variants are made with `with_gauss_newton_iterations`,
  `with_rotation_convergence_iterations` and `with_rotation_convergence_epsilon`,
  each of which returns a new instance.
- `LambdaTwist.estimate(samples)` takes the first three `(bearing, world_point)` pairs
  and returns a list of up to four `WorldToCamera` poses. Bearings are normalised
  before use; world points may be 3-vectors or homogeneous 4-vectors (a point at
  infinity yields no poses). Fewer than three samples raise `ValueError`.
- `WorldToCamera` holds `rotation` (3x3) and `translation` (3,);
  `transform(point)` returns `rotation @ point + translation`.
- Helpers: `root2real(b, c)`, `cube_root(b, c, d)`,
  `gauss_newton_refine_lambda(lam, iterations, a12, a13, a23, b12, b13, b23)`,
  `eigen_decomposition_singular(x)` and `rotation_from_matrix(matrix, epsilon, max_iterations)`.

### `cvsolvers.eight_point`

- `EightPoint.from_matches(matches)` builds the epipolar constraint from the first
  eight `(a, b)` bearing pairs and returns a 3x3 essential matrix `E` of unit
  Frobenius norm with `b.T @ E @ a ≈ 0`, or `None` if the eigen-decomposition fails.
- `encode_epipolar_equation(matches)` returns the 8x9 constraint matrix itself.

### `cvsolvers.nister_stewenius`

The five-point relative pose algorithm.

- `NisterStewenius.essentials(matches)` returns every real essential matrix solution
  for the first five `(a, b)` bearing pairs (fewer than five raise `ValueError`);
  the list is empty when the constraints are degenerate.
- Building blocks: `o1`, `o2` (polynomial products), `five_points_nullspace_basis`,
  `five_points_polynomial_constraints` and `five_points_relative_pose`.

### `cvsolvers.matching`

Brute-force matching of bytes-like binary descriptors.

- `hamming_distance(a, b)` counts differing bits; lengths must agree.
- `matching(a_descriptors, b_descriptors)` gives, for each descriptor in `a`, the index
  of its nearest descriptor in `b`, or `None` unless it beats the second nearest by more
  than `MATCH_MARGIN` (24) bits.
- `symmetric_matching(a, b)` returns `(a_index, b_index)` pairs that are each other's
  accepted best match.

## Installation

```
pip install .
```

Run the tests with:

```
pip install .[test]
pytest
```

## Example

```python
import numpy as np
from cvsolvers.lambda_twist import LambdaTwist

camera_points = np.array([[-0.2, -0.1, 1.0], [0.4, -0.6, 2.0], [1.1, 0.9, 3.0]])
world_points = camera_points - np.array([0.1, 0.2, 0.3])  # identity rotation
samples = [(p / np.linalg.norm(p), w) for p, w in zip(camera_points, world_points)]

for pose in LambdaTwist().estimate(samples):
    print(pose.rotation, pose.translation)
```

```python
from cvsolvers.matching import symmetric_matching

pairs = symmetric_matching([b"\x00" * 8, b"\xff" * 8], [b"\xff" * 8, b"\x00" * 8])
# [(0, 1), (1, 0)]
```

## What this package does not do

It contains the solvers only. It does not detect or describe features in images,
read or write images, draw matches, run a robust consensus loop (such as RANSAC)
over many correspondences, or decompose essential matrices into camera poses.
The `epsilon` and `iterations` fields of `EightPoint` and `NisterStewenius` are
carried as settings but are not used by the methods provided here.