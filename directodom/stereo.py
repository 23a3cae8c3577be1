"""Sparse coarse-to-fine stereo matching with zero-mean normalized correlation.

Images are numpy arrays indexed ``[row, col]``. Pixels are ``(x, y)``,
rectangles ``(x, y, width, height)`` and grid sizes ``(width, height)``.
Point grids are sequences of rows of :class:`~directodom.point.DepthPoint`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

__all__ = [
    "DispZncc",
    "StereoCfg",
    "StereoMatcher",
    "extract_roi_array",
    "zero_mean_normalize",
]

_FLOAT_EPS = float(np.finfo(np.float32).eps)


@dataclass
class StereoCfg:
    """Stereo matching settings."""

    half_rows: int = 2  # half rows of the matching patch
    half_cols: int = 3  # half cols of the matching patch
    match_level: int = 3  # pyramid level of the coarse match
    refine_size: int = 1  # disparity search radius during refinement
    min_zncc: float = 0.5  # minimum zncc during refinement
    min_depth: float = 4.0  # minimum depth, gives the maximum disparity
    best_ratio: float = 0.8  # filter score > best * best_ratio

    def check(self) -> None:
        """Raise ``ValueError`` for inconsistent settings."""
        if self.half_rows <= 0:
            raise ValueError(f"half_rows must be positive, got {self.half_rows}")
        if self.half_cols <= 0:
            raise ValueError(f"half_cols must be positive, got {self.half_cols}")
        if self.min_depth <= 0:
            raise ValueError(f"min_depth must be positive, got {self.min_depth}")
        if self.refine_size <= 0:
            raise ValueError(f"refine_size must be positive, got {self.refine_size}")
        if not 0 < self.best_ratio < 1:
            raise ValueError(f"best_ratio must be in (0, 1), got {self.best_ratio}")
        if self.min_zncc >= 1:
            raise ValueError(f"min_zncc must be below 1, got {self.min_zncc}")

    def half_patch_size(self) -> tuple[int, int]:
        """Half patch size as ``(x, y)``."""
        return (self.half_cols, self.half_rows)

    def full_patch_size(self) -> tuple[int, int]:
        """Full patch size as ``(width, height)``."""
        return (2 * self.half_cols + 1, 2 * self.half_rows + 1)

    def refine_range(self, disp: int) -> tuple[int, int]:
        """Inclusive disparity range ``(start, end)`` searched around ``disp``."""
        return (disp - self.refine_size, disp + self.refine_size)


@dataclass
class DispZncc:
    """Disparity (``>= 0`` when valid) and its zncc score in ``[-1, 1]``."""

    disp: int = -1
    zncc: float = -1.0


def extract_roi_array(mat: np.ndarray, roi) -> np.ndarray:
    """Values of ``mat`` inside ``roi`` in row-major order as float32."""
    x, y, width, height = (int(v) for v in roi)
    rows, cols = mat.shape[:2]
    if width < 0 or height < 0:
        raise ValueError(f"roi has negative size: {roi}")
    if x < 0 or y < 0 or x + width > cols or y + height > rows:
        raise ValueError(f"roi {roi} is outside image of shape {mat.shape[:2]}")
    return np.asarray(mat[y : y + height, x : x + width], dtype=np.float32).ravel()


def zero_mean_normalize(p, eps: float = _FLOAT_EPS) -> np.ndarray:
    """Subtract the mean and scale to unit norm unless the norm is about zero."""
    p = np.asarray(p)
    if not np.issubdtype(p.dtype, np.floating):
        p = p.astype(np.float64)
    out = p - p.mean()
    norm2 = float(np.sum(out * out))
    if norm2 > eps * 0.01:
        out = out / math.sqrt(norm2)
    return out.astype(p.dtype, copy=False)


def _scale_pix(px, scale: float) -> tuple[float, float]:
    return (scale * (px[0] + 0.5) - 0.5, scale * (px[1] + 0.5) - 0.5)


def _round_pix(px) -> tuple[int, int]:
    return (math.floor(px[0] + 0.5), math.floor(px[1] + 0.5))


def _grid_shape(points) -> tuple[int, int]:
    rows = len(points)
    cols = len(points[0]) if rows else 0
    return rows, cols


class StereoMatcher:
    """Sparse stereo matcher: coarse exhaustive search, then refinement.

    ``disps`` is an int16 grid with one disparity per cell, ``-1`` if invalid.
    """

    def __init__(self, cfg: StereoCfg | None = None) -> None:
        cfg = StereoCfg() if cfg is None else cfg
        cfg.check()
        self._cfg = cfg
        self._disps = np.zeros((0, 0), dtype=np.int16)

    def __repr__(self) -> str:
        return f"StereoMatcher(cfg={self._cfg!r})"

    @property
    def cfg(self) -> StereoCfg:
        return self._cfg

    @property
    def disps(self) -> np.ndarray:
        return self._disps

    def allocate(self, grid_size) -> int:
        """Allocate the disparity grid for ``(width, height)``; return bytes."""
        width, height = (int(v) for v in grid_size)
        if self._disps.size == 0:
            self._disps = np.full((height, width), -1, dtype=np.int16)
        elif self._disps.shape != (height, width):
            raise ValueError(
                f"disparity grid shape {self._disps.shape} does not match "
                f"({height}, {width})"
            )
        return int(self._disps.nbytes)

    @staticmethod
    def _check_pair(gray0: np.ndarray, gray1: np.ndarray) -> None:
        if gray0.shape[:2] != gray1.shape[:2]:
            raise ValueError(
                f"stereo images differ in size: {gray0.shape} vs {gray1.shape}"
            )

    def match_coarse(
        self, gray0, gray1, points0, scale: float, max_disp: int
    ) -> int:
        """Exhaustive match of uninitialized points at a coarse level.

        Returns the number of matches with non-negative zncc.
        """
        if not scale < 1:
            raise ValueError(f"scale must be below 1, got {scale}")
        gray0 = np.asarray(gray0)
        gray1 = np.asarray(gray1)
        self._check_pair(gray0, gray1)
        rows, cols = _grid_shape(points0)
        self.allocate((cols, rows))

        border = self._cfg.half_cols
        n_matched = 0
        for gr, row in enumerate(points0):
            for gc, point in enumerate(row):
                if point.skip_init():
                    continue
                pxi = _round_pix(_scale_pix(point.px, scale))
                left = max(border, pxi[0] - max_disp)
                search_disp = pxi[0] - left
                if search_disp <= 2:
                    continue
                best = self.best_match(pxi, 0, search_disp, gray0, gray1)
                if best.zncc >= 0:
                    self._disps[gr, gc] = best.disp
                    n_matched += 1
        return n_matched

    def match_refine(self, gray0, gray1, points0, scale: float) -> int:
        """Refine matched disparities at a finer level (twice the previous one).

        Matches that fail are invalidated. Returns the number removed.
        """
        if not scale <= 1:
            raise ValueError(f"scale must not exceed 1, got {scale}")
        gray0 = np.asarray(gray0)
        gray1 = np.asarray(gray1)
        self._check_pair(gray0, gray1)
        rows, cols = _grid_shape(points0)
        self.allocate((cols, rows))

        cfg = self._cfg
        border_x, border_y = cfg.half_patch_size()
        img_rows, img_cols = gray0.shape[:2]
        n_removed = 0
        for gr, row in enumerate(points0):
            for gc, point in enumerate(row):
                prev_disp = int(self._disps[gr, gc])
                if prev_disp < 0:
                    continue
                if not point.pixel_ok():
                    raise ValueError(f"matched point at ({gr}, {gc}) has no pixel")
                pxi = _round_pix(_scale_pix(point.px, scale))
                x = pxi[0] + cfg.refine_size
                y = pxi[1]
                if (
                    x < border_x
                    or y < border_y
                    or x >= img_cols - border_x
                    or y >= img_rows - border_y
                ):
                    raise ValueError(f"pixel {pxi} too close to the image border")
                start, end = cfg.refine_range(prev_disp * 2)
                best = self.best_match(pxi, start, end, gray0, gray1)
                if best.disp >= 0 and best.zncc >= cfg.min_zncc:
                    self._disps[gr, gc] = best.disp
                else:
                    self._disps[gr, gc] = -1
                    n_removed += 1
        return n_removed

    def _patch_zncc(self, gray: np.ndarray, px) -> np.ndarray | None:
        half_x, half_y = self._cfg.half_patch_size()
        width, height = self._cfg.full_patch_size()
        roi = (px[0] - half_x, px[1] - half_y, width, height)
        try:
            patch = extract_roi_array(gray, roi)
        except ValueError:
            return None
        return zero_mean_normalize(patch)

    def best_match(self, pxi, start: int, end: int, gray0, gray1) -> DispZncc:
        """Best zncc match of ``pxi`` over disparities ``start..end`` inclusive.

        Negative disparities and candidates whose patch leaves the image are skipped.
        """
        gray0 = np.asarray(gray0)
        gray1 = np.asarray(gray1)
        best = DispZncc()
        patch0 = self._patch_zncc(gray0, pxi)
        if patch0 is None:
            raise ValueError(f"patch around {tuple(pxi)} is outside the image")
        for disp in range(max(start, 0), end + 1):
            patch1 = self._patch_zncc(gray1, (pxi[0] - disp, pxi[1]))
            if patch1 is None:
                continue
            zncc = float(np.sum(patch0 * patch1, dtype=np.float32))
            if zncc > best.zncc:
                best = DispZncc(disp=disp, zncc=zncc)
        return best