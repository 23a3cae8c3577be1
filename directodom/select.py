"""Selection of high-gradient pixels on a coarse grid of image cells.

Images are numpy arrays indexed ``[row, col]``; pixels and rectangles use
``(x, y)`` and ``(x, y, width, height)``. Sizes passed to ``allocate`` are
``(width, height)``.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

import numpy as np

from directodom.image import mat_set_win
from directodom.point import DepthPoint

__all__ = [
    "PixelGrad",
    "PixelSelector",
    "SelectCfg",
    "calc_pixel_grads",
    "find_max_grad",
    "proj_to_mask",
]

_log = logging.getLogger(__name__)

# Bytes per grid cell of the selected pixel grid and of the gradient grid.
_PIXEL_BYTES = 16
_PIXEL_GRAD_BYTES = 16


@dataclass
class PixelGrad:
    """A pixel ``(x, y)`` and its squared gradient norm."""

    px: tuple[int, int] = (-1, -1)
    grad2: float = -1.0


def _image_grads(image: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Central-difference gradients of a gray image, replicating the border."""
    padded = np.pad(np.asarray(image, dtype=np.float64), 1, mode="edge")
    gx = (padded[1:-1, 2:] - padded[1:-1, :-2]) / 2.0
    gy = (padded[2:, 1:-1] - padded[:-2, 1:-1]) / 2.0
    return gx, gy


def _max_grad_in(
    gx: np.ndarray,
    gy: np.ndarray,
    win,
    mask: np.ndarray | None,
    max_grad: float,
) -> PixelGrad:
    x, y, width, height = (int(v) for v in win)
    rows, cols = gx.shape
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + width, cols), min(y + height, rows)
    if x1 <= x0 or y1 <= y0:
        return PixelGrad()

    wgx = gx[y0:y1, x0:x1].ravel()
    wgy = gy[y0:y1, x0:x1].ravel()
    if mask is not None and mask.size:
        valid = (mask[y0:y1, x0:x1] == 0).ravel()
    else:
        valid = np.ones(wgx.size, dtype=bool)
    if not valid.any():
        return PixelGrad()

    g2 = wgx * wgx + wgy * wgy
    g2_valid = np.where(valid, g2, -np.inf)
    running = np.maximum.accumulate(g2_valid)
    prev_max = np.maximum(np.concatenate(([-np.inf], running[:-1])), -1.0)
    record = valid & (g2 >= prev_max)
    big = (np.abs(wgx) >= max_grad) | (np.abs(wgy) >= max_grad)
    stop = record & big

    if stop.any():
        k = int(np.argmax(stop))
    else:
        best = g2_valid.max()
        k = int(np.flatnonzero(valid & (g2 == best))[-1])

    win_cols = x1 - x0
    return PixelGrad(px=(x0 + k % win_cols, y0 + k // win_cols), grad2=float(g2[k]))


def find_max_grad(
    image: np.ndarray, win, mask: np.ndarray | None = None, max_grad: int = 128
) -> PixelGrad:
    """Find the pixel with the largest gradient inside ``win``.

    Pixels where ``mask`` is non-zero are skipped. The scan stops early at a
    pixel whose gradient reaches ``max_grad`` in either direction.
    """
    gx, gy = _image_grads(image)
    return _max_grad_in(gx, gy, win, mask, max_grad)


def _check_image(image: np.ndarray, mask: np.ndarray | None) -> None:
    if image.size == 0:
        raise ValueError("image is empty")
    if image.dtype != np.uint8:
        raise ValueError(f"image must be uint8, got {image.dtype}")
    if mask is not None and mask.size:
        if mask.dtype != np.uint8:
            raise ValueError(f"mask must be uint8, got {mask.dtype}")
        if mask.shape[:2] != image.shape[:2]:
            raise ValueError(f"mask shape {mask.shape} does not match {image.shape}")


def _calc_pixel_grads_from(
    gx: np.ndarray,
    gy: np.ndarray,
    mask: np.ndarray | None,
    grid_shape,
    max_grad: int,
    border: int,
) -> list[list[PixelGrad]]:
    grid_rows, grid_cols = (int(v) for v in grid_shape)
    cell_rows = gx.shape[0] // grid_rows
    cell_cols = gx.shape[1] // grid_cols
    grid = [[PixelGrad() for _ in range(grid_cols)] for _ in range(grid_rows)]
    for gr in range(border, grid_rows - border):
        for gc in range(border, grid_cols - border):
            # The window leaves out the first row and column of each cell.
            win = (gc * cell_cols + 1, gr * cell_rows + 1, cell_cols - 1, cell_rows - 1)
            grid[gr][gc] = _max_grad_in(gx, gy, win, mask, max_grad)
    return grid


def calc_pixel_grads(
    image: np.ndarray,
    mask: np.ndarray | None,
    grid_shape,
    max_grad: int,
    border: int = 1,
) -> list[list[PixelGrad]]:
    """Largest-gradient pixel of every grid cell, as a ``rows x cols`` grid.

    Cells within ``border`` of the grid edge are left at the default value.
    """
    image = np.asarray(image)
    _check_image(image, mask)
    if border < 0:
        raise ValueError(f"border must be non-negative, got {border}")
    grid_rows, grid_cols = (int(v) for v in grid_shape)
    if grid_rows <= 0 or grid_cols <= 0:
        raise ValueError(f"grid shape must be positive, got {grid_shape}")
    gx, gy = _image_grads(image)
    return _calc_pixel_grads_from(gx, gy, mask, (grid_rows, grid_cols), max_grad, border)


def _scale_pix(px, scale: float) -> tuple[float, float]:
    return (scale * (px[0] + 0.5) - 0.5, scale * (px[1] + 0.5) - 0.5)


def _iter_points(points: Iterable) -> Iterator[DepthPoint]:
    for item in points:
        if isinstance(item, DepthPoint):
            yield item
        else:
            yield from _iter_points(item)


def proj_to_mask(points1, mask: np.ndarray, scale: float = 1.0, dilate: int = 0) -> int:
    """Mark a window around each well-informed point in ``mask``.

    Points are given at full resolution and scaled by ``scale`` to the mask.
    Returns the number of windows written.
    """
    if not 0 < scale <= 1:
        raise ValueError(f"scale must be in (0, 1], got {scale}")
    if dilate < 0:
        raise ValueError(f"dilate must be non-negative, got {dilate}")

    rows, cols = mask.shape[:2]
    n_pixels = 0
    for point in _iter_points(points1):
        if not point.info_ok():
            continue
        sx, sy = _scale_pix(point.px, scale)
        x, y = round(sx), round(sy)
        if x < dilate or y < dilate or x >= cols - dilate or y >= rows - dilate:
            continue
        n_pixels += int(mat_set_win(mask, (x, y), (dilate, dilate), 255))
    return n_pixels


@dataclass
class SelectCfg:
    """Pixel selection settings."""

    sel_level: int = 1  # pyramid level for initial selection
    cell_size: int = 16  # cell size in top level
    min_grad: int = 8  # minimum gradient to be selected
    max_grad: int = 64  # stop searching a cell once a gradient exceeds this
    nms_size: int = 1  # window half size when creating the mask
    min_ratio: float = 0.0  # decrease min_grad when ratio < min_ratio
    max_ratio: float = 1.0  # increase min_grad when ratio > max_ratio
    reselect: bool = False  # reselect if the first round selects too few

    def check(self) -> None:
        """Raise ``ValueError`` for inconsistent settings."""
        if not 0 <= self.sel_level < 2:
            raise ValueError(f"sel_level must be 0 or 1, got {self.sel_level}")
        if self.min_grad <= 0:
            raise ValueError(f"min_grad must be positive, got {self.min_grad}")
        if self.min_grad >= self.max_grad:
            raise ValueError(
                f"min_grad {self.min_grad} must be below max_grad {self.max_grad}"
            )
        if not 0 <= self.nms_size <= 2:
            raise ValueError(f"nms_size must be in [0, 2], got {self.nms_size}")
        if self.min_ratio >= self.max_ratio:
            raise ValueError(
                f"min_ratio {self.min_ratio} must be below max_ratio {self.max_ratio}"
            )


class PixelSelector:
    """Select one high-gradient pixel per grid cell.

    ``pixels`` is an int array of shape ``(rows, cols, 2)`` holding ``(x, y)``;
    unselected cells hold ``(-1, -1)``.
    """

    def __init__(self, cfg: SelectCfg | None = None) -> None:
        cfg = SelectCfg() if cfg is None else dataclasses.replace(cfg)
        cfg.check()
        self._cfg = cfg
        self._occ_mask = np.zeros((0, 0), dtype=np.uint8)
        self._pixels = np.full((0, 0, 2), -1, dtype=np.int64)
        self._pxgrads: list[list[PixelGrad]] = []
        self._grid_border = 1

    def __repr__(self) -> str:
        return f"PixelSelector(cfg={self._cfg!r}, grid_border={self._grid_border})"

    @property
    def cfg(self) -> SelectCfg:
        return self._cfg

    @property
    def mask(self) -> np.ndarray:
        return self._occ_mask

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def pixel_grads(self) -> list[list[PixelGrad]]:
        return self._pxgrads

    def select(self, grays: Sequence[np.ndarray], gsize: int = 0) -> int:
        """Select pixels from an image pyramid and adapt ``min_grad``.

        ``gsize`` is a scheduling grain size and does not affect the result.
        Returns the number of selected pixels.
        """
        cfg = self._cfg
        if len(grays) <= cfg.sel_level:
            raise ValueError(
                f"pyramid has {len(grays)} levels, needs more than {cfg.sel_level}"
            )
        if cfg.cell_size < 2 ** (len(grays) - 1):
            _log.debug(
                "Cell size %d is too small compared to pyramid levels %d",
                cfg.cell_size,
                len(grays),
            )

        self.allocate_pyramid(grays)
        self._pixels[...] = -1

        sel_image = np.asarray(grays[cfg.sel_level])
        _check_image(sel_image, self._occ_mask)
        gx, gy = _image_grads(sel_image)
        self._pxgrads = _calc_pixel_grads_from(
            gx,
            gy,
            self._occ_mask,
            self._pixels.shape[:2],
            cfg.max_grad,
            self._grid_border,
        )

        gray_top = np.asarray(grays[0])
        upscale = 2**cfg.sel_level
        top_grads = _image_grads(gray_top) if upscale != 1 else None
        area = self._pixels.shape[0] * self._pixels.shape[1]

        n1 = self._select_pixels(top_grads, upscale, cfg.min_grad)
        n_pixels = n1
        ratio1 = n_pixels / area
        if cfg.reselect and ratio1 < cfg.min_ratio:
            n_pixels += self._select_pixels(top_grads, upscale, cfg.min_grad // 2)
        ratio2 = n_pixels / area
        new_min_grad = min(max(self._adapt_min_grad(ratio1, ratio2), 2), 32)

        _log.info(
            "select: 1st=%3d, ratio=%.2f%%, min_grad=%d | 2nd=%d, min_grad=%d, "
            "ratio2=%.2f%% | min_grad change:%d->%d",
            n1,
            ratio1 * 100,
            cfg.min_grad,
            n_pixels - n1,
            cfg.min_grad // 2,
            ratio2 * 100,
            cfg.min_grad,
            new_min_grad,
        )
        cfg.min_grad = new_min_grad
        return n_pixels

    def _adapt_min_grad(self, ratio1: float, ratio2: float) -> int:
        cfg = self._cfg
        if ratio1 > cfg.max_ratio:
            return cfg.min_grad + 2
        if ratio1 < cfg.min_ratio:
            if ratio2 < cfg.max_ratio:
                return cfg.min_grad // 2
            return cfg.min_grad - 2
        return cfg.min_grad

    def _select_pixels(self, top_grads, upscale: int, min_grad: int) -> int:
        min_grad2 = min_grad * min_grad
        n_pixels = 0
        rows, cols = self._pixels.shape[:2]
        for gr in range(rows):
            for gc in range(cols):
                px = self._pixels[gr, gc]
                if px[0] >= 0 and px[1] >= 0:
                    continue
                pxg = self._pxgrads[gr][gc]
                if pxg.grad2 < min_grad2:
                    continue
                if upscale == 1:
                    px[:] = pxg.px
                else:
                    win = (pxg.px[0] * upscale, pxg.px[1] * upscale, upscale, upscale)
                    px[:] = _max_grad_in(top_grads[0], top_grads[1], win, None, 128).px
                n_pixels += 1
        return n_pixels

    def set_occ_mask(self, points1s: Iterable) -> int:
        """Rebuild the occupancy mask from projected points of several grids."""
        if self._occ_mask.size == 0:
            raise RuntimeError("occupancy mask is not allocated")
        self._occ_mask[...] = 0
        scale = 2.0 ** (-self._cfg.sel_level)
        return sum(
            proj_to_mask(points1, self._occ_mask, scale, self._cfg.nms_size)
            for points1 in points1s
        )

    def allocate(self, top_size, sel_size) -> int:
        """Allocate the grids and mask for ``(width, height)`` sizes; return bytes."""
        top_w, top_h = (int(v) for v in top_size)
        sel_w, sel_h = (int(v) for v in sel_size)
        grid_rows = top_h // self._cfg.cell_size
        grid_cols = top_w // self._cfg.cell_size

        if self._pixels.size == 0:
            self._pixels = np.full((grid_rows, grid_cols, 2), -1, dtype=np.int64)
            self._pxgrads = [
                [PixelGrad() for _ in range(grid_cols)] for _ in range(grid_rows)
            ]
        elif self._pixels.shape[:2] != (grid_rows, grid_cols):
            raise ValueError(
                f"grid shape {self._pixels.shape[:2]} does not match "
                f"({grid_rows}, {grid_cols})"
            )

        if self._occ_mask.size == 0:
            self._occ_mask = np.zeros((sel_h, sel_w), dtype=np.uint8)
        elif self._occ_mask.shape != (sel_h, sel_w):
            raise ValueError(
                f"mask shape {self._occ_mask.shape} does not match ({sel_h}, {sel_w})"
            )

        n_cells = grid_rows * grid_cols
        return (
            int(self._occ_mask.nbytes)
            + n_cells * _PIXEL_BYTES
            + n_cells * _PIXEL_GRAD_BYTES
        )

    def allocate_pyramid(self, grays: Sequence[np.ndarray]) -> int:
        """Allocate storage sized from the bottom and selection levels."""
        top = np.asarray(grays[0])
        sel = np.asarray(grays[self._cfg.sel_level])
        return self.allocate(
            (top.shape[1], top.shape[0]), (sel.shape[1], sel.shape[0])
        )