"""Image pyramids, gradients and small region helpers for gray images.

Images are numpy arrays indexed ``[row, col]``. Rectangles are
``(x, y, width, height)`` and points are ``(x, y)``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from scipy.ndimage import correlate1d

__all__ = [
    "copy_image_pyramid",
    "crop_image_factor",
    "get_total_bytes",
    "is_image_pyramid",
    "is_stereo_pair",
    "make_grad_image",
    "make_grad_pyramid",
    "make_image_pyramid",
    "make_rand_mat8u",
    "mat_set_roi",
    "mat_set_win",
    "threshold_depth",
]

_PYR_KERNEL = np.array([1.0, 4.0, 6.0, 4.0, 1.0]) / 16.0
_BLUR3_KERNEL = np.array([0.25, 0.5, 0.25])
_DERIV_KERNEL = np.array([-1.0, 0.0, 1.0])
_SMOOTH_KERNEL = np.array([1.0, 2.0, 1.0])
_GRAD_SCALE = 1.0 / 4.0 / 255.0


def _cast_like(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Convert float values to ``dtype``, rounding and saturating integers."""
    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.floor(values + 0.5), info.min, info.max).astype(dtype)
    return values.astype(dtype)


def _separable(image: np.ndarray, kernel_rows, kernel_cols) -> np.ndarray:
    """Correlate along rows then columns with mirrored (reflect-101) borders."""
    out = correlate1d(image.astype(np.float64), kernel_rows, axis=0, mode="mirror")
    return correlate1d(out, kernel_cols, axis=1, mode="mirror")


def _pyr_down(image: np.ndarray) -> np.ndarray:
    """Gaussian smooth with a 5x5 kernel and drop every other row and column."""
    smoothed = _separable(image, _PYR_KERNEL, _PYR_KERNEL)
    return _cast_like(smoothed[::2, ::2], image.dtype)


def _gaussian_blur3(image: np.ndarray) -> np.ndarray:
    return _cast_like(_separable(image, _BLUR3_KERNEL, _BLUR3_KERNEL), image.dtype)


def mat_set_roi(mat: np.ndarray, roi, val) -> bool:
    """Set the part of ``roi`` that lies inside ``mat`` to ``val``.

    Returns False if the region does not overlap the image.
    """
    x, y, width, height = (int(v) for v in roi)
    rows, cols = mat.shape[:2]
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + width, cols), min(y + height, rows)
    if x1 <= x0 or y1 <= y0:
        return False
    mat[y0:y1, x0:x1] = val
    return True


def mat_set_win(mat: np.ndarray, px, half_size, val) -> bool:
    """Set a window centred at ``px`` with ``half_size`` ``(hx, hy)`` to ``val``."""
    px_x, px_y = (int(v) for v in px)
    half_x, half_y = (int(v) for v in half_size)
    roi = (px_x - half_x, px_y - half_y, 2 * half_x + 1, 2 * half_y + 1)
    return mat_set_roi(mat, roi, val)


def threshold_depth(depth: np.ndarray, max_depth: float) -> np.ndarray:
    """Return a copy of ``depth`` with values above ``max_depth`` set to zero."""
    depth = np.asarray(depth)
    return np.where(depth > max_depth, 0, depth).astype(depth.dtype)


def crop_image_factor(image: np.ndarray, factor: int) -> np.ndarray:
    """Crop the top-left part of ``image`` whose size is divisible by ``factor``.

    The input itself is returned when no cropping is needed.
    """
    if factor <= 0:
        raise ValueError(f"factor must be positive, got {factor}")
    rows, cols = image.shape[:2]
    new_rows = (rows // factor) * factor
    new_cols = (cols // factor) * factor
    if new_rows == rows and new_cols == cols:
        return image
    return image[:new_rows, :new_cols].copy()


def make_rand_mat8u(rows: int, cols: int = 0) -> np.ndarray:
    """Random 8-bit gray image with values in ``[0, 255)``; square if ``cols`` is 0."""
    cols = rows if cols == 0 else cols
    rng = np.random.default_rng()
    return rng.integers(0, 255, size=(rows, cols), dtype=np.uint8)


def is_image_pyramid(images: Sequence[np.ndarray]) -> bool:
    """Whether each level is half (rounded up) the size of the one below."""
    if len(images) == 0:
        return False
    for below, above in zip(images, images[1:]):
        rows_b, cols_b = below.shape[:2]
        rows_a, cols_a = above.shape[:2]
        if rows_a != math.ceil(rows_b / 2.0) or cols_a != math.ceil(cols_b / 2.0):
            return False
    return True


def get_total_bytes(images: Sequence[np.ndarray]) -> int:
    """Total number of bytes held by all images."""
    return sum(int(image.nbytes) for image in images)


def is_stereo_pair(
    images0: Sequence[np.ndarray], images1: Sequence[np.ndarray]
) -> bool:
    """Whether two pyramids have the same number of levels and level sizes."""
    if len(images0) != len(images1):
        return False
    return all(
        im0.shape[:2] == im1.shape[:2] for im0, im1 in zip(images0, images1)
    )


def make_image_pyramid(image: np.ndarray, levels: int) -> list[np.ndarray]:
    """Build a pyramid of ``levels`` images, bottom (full size) first.

    The bottom level is blurred with a 3x3 Gaussian after the upper levels are
    built, so that it is not blurred twice.
    """
    image = np.asarray(image)
    if image.size == 0:
        raise ValueError("image is empty")
    if levels < 1:
        raise ValueError(f"levels must be positive, got {levels}")
    pyramid = [image.copy()]
    for _ in range(1, levels):
        pyramid.append(_pyr_down(pyramid[-1]))
    pyramid[0] = _gaussian_blur3(pyramid[0])
    return pyramid


def make_grad_image(image: np.ndarray) -> np.ndarray:
    """Gradient magnitude of a 3x3 Sobel, scaled by ``1 / 4 / 255``, as float32."""
    image = np.asarray(image)
    gx = _separable(image, _SMOOTH_KERNEL, _DERIV_KERNEL) * _GRAD_SCALE
    gy = _separable(image, _DERIV_KERNEL, _SMOOTH_KERNEL) * _GRAD_SCALE
    return np.hypot(gx, gy).astype(np.float32)


def copy_image_pyramid(source: Sequence[np.ndarray]) -> list[np.ndarray]:
    """Deep copy of every level."""
    return [image.copy() for image in source]


def make_grad_pyramid(
    images: Sequence[np.ndarray], to_uint8: bool = False
) -> list[np.ndarray]:
    """Gradient magnitude of each level, optionally scaled by 255 into uint8."""
    grads = []
    for image in images:
        grad = make_grad_image(image)
        if to_uint8:
            grad = _cast_like(grad.astype(np.float64) * 255.0, np.uint8)
        grads.append(grad)
    return grads