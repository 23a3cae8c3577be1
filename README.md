# directodom

Building blocks for sparse, direct (photometric) stereo visual odometry,
built on NumPy and SciPy. Images are NumPy arrays indexed `[row, col]`;
pixels are `(x, y)` and rectangles `(x, y, width, height)`.

## Modules

- `directodom.image` – image helpers: `make_image_pyramid` (Gaussian
  pyramid, bottom level first), `is_image_pyramid`, `is_stereo_pair`,
  `copy_image_pyramid`, `make_grad_image` and `make_grad_pyramid` (Sobel
  gradient magnitude), `crop_image_factor`, `threshold_depth`,
  `get_total_bytes`, `make_rand_mat8u`, `mat_set_roi` and `mat_set_win`.
- `directodom.point` – `DepthPoint` (pixel, inverse depth and information
  value with clamped updates), `FramePoint` (adds a Hessian id and normalized
  coordinate) and `Patch` (intensities and gradients of a centre pixel and its
  four neighbours).
- `directodom.solve` – `solve_cholesky`, which solves `a x = b` from the lower
  triangle of a symmetric positive-definite matrix, and
  `solve_cholesky_scaled`, which solves the diagonally scaled system and
  returns `(x, xs)`.
- `directodom.select` – `PixelSelector` with `SelectCfg`: picks one
  high-gradient pixel per grid cell, adapts its gradient threshold after each
  selection and keeps an occupancy mask built from projected points
  (`set_occ_mask`, `proj_to_mask`). Also `find_max_grad` and
  `calc_pixel_grads`.
- `directodom.stereo` – `StereoMatcher` with `StereoCfg`: coarse exhaustive
  ZNCC matching (`match_coarse`) followed by refinement at finer levels
  (`match_refine`), plus `extract_roi_array` and `zero_mean_normalize`.
- `directodom.odom` – configuration and status records: `OdomCfg` (with
  `check`), `TrackStatus`, `MapStatus` and `OdomStatus`.

Invalid arguments and inconsistent configurations raise `ValueError`.

## Example

```python
import numpy as np

from directodom.image import make_image_pyramid, make_rand_mat8u
from directodom.select import PixelSelector, SelectCfg
from directodom.solve import solve_cholesky

grays = make_image_pyramid(make_rand_mat8u(128), 3)
selector = PixelSelector(SelectCfg(max_grad=256))
n = selector.select(grays)          # number of selected pixels
print(n, selector.pixels.shape)     # pixels: (rows, cols, 2) grid of (x, y)

a = np.array([[4.0, 0.0], [1.0, 3.0]])   # only the lower triangle is read
x = solve_cholesky(a, np.array([1.0, 2.0]))
```

## What it does not do

The package has no Hessian accumulation, marginalization or bundle
adjustment, no frame alignment, keyframe window or running odometry
estimator: `directodom.odom` holds only configuration and status records.
There is no command-line program and no visualization.

## Installation

```
pip install .
```

## Running the tests

```
pip install .[test]
pytest
```