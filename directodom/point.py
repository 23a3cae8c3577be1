"""Depth points, frame points and intensity patches."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

__all__ = ["DepthPoint", "FramePoint", "Patch"]

_NAN = math.nan


def _fmt_num(x: float) -> str:
    if math.isfinite(x) and float(x).is_integer():
        return str(int(x))
    return repr(float(x))


@dataclass(eq=False)
class DepthPoint:
    """Pixel and inverse depth with an information value."""

    BAD_INFO: ClassVar[float] = -1.0
    MIN_INFO: ClassVar[float] = 0.0
    OK_INFO: ClassVar[float] = 5.0
    MAX_INFO: ClassVar[float] = 10.0
    BAD_IDEPTH: ClassVar[float] = -1.0
    BAD_PIX: ClassVar[tuple[float, float]] = (_NAN, _NAN)

    px: tuple[float, float] = BAD_PIX
    idepth: float = BAD_IDEPTH
    info: float = BAD_INFO

    def uv(self) -> np.ndarray:
        return np.array([self.px[0], self.px[1]], dtype=float)

    def pixel_bad(self) -> bool:
        """Point was not selected."""
        return math.isnan(self.px[0]) or math.isnan(self.px[1])

    def pixel_ok(self) -> bool:
        return not self.pixel_bad()

    def depth_bad(self) -> bool:
        return self.idepth < 0

    def depth_ok(self) -> bool:
        return self.idepth >= 0

    def info_bad(self) -> bool:
        return self.info < self.MIN_INFO

    def info_ok(self) -> bool:
        return self.info >= self.OK_INFO

    def info_max(self) -> bool:
        return self.info == self.MAX_INFO

    def skip_init(self) -> bool:
        """Point needs no depth initialization."""
        return self.depth_ok() or self.pixel_bad()

    def skip_align(self) -> bool:
        """Point is not used in alignment."""
        return not self.info_ok() or self.depth_bad() or self.pixel_bad()

    def set_idepth_info(self, idepth: float, info: float) -> None:
        if not self.pixel_ok():
            raise ValueError("point has no valid pixel")
        if idepth < 0:
            raise ValueError(f"idepth must be non-negative, got {idepth}")
        if info > self.MAX_INFO:
            raise ValueError(f"info must not exceed {self.MAX_INFO}, got {info}")
        self.idepth = float(idepth)
        self.info = float(info)

    def update_idepth(self, d_idepth: float) -> None:
        """Add to idepth, clamped at zero."""
        self.idepth = max(0.0, self.idepth + d_idepth)

    def update_info(self, d_info: float) -> None:
        """Add to info, clamped at the maximum."""
        self.info = min(self.MAX_INFO, self.info + d_info)

    def __repr__(self) -> str:
        return (
            f"DepthPoint(uv=({_fmt_num(self.px[0])},{_fmt_num(self.px[1])}), "
            f"idepth={self.idepth:0.4f}, info={_fmt_num(self.info)})"
        )


def _zeros2() -> np.ndarray:
    return np.zeros(2)


@dataclass(eq=False, repr=False)
class FramePoint(DepthPoint):
    """Depth point in a keyframe with a Hessian id and normalized coordinate."""

    BAD_HID: ClassVar[int] = -1

    hid: int = BAD_HID
    nc: np.ndarray = field(default_factory=_zeros2)

    def pt(self) -> np.ndarray:
        """3D point; idepth must be non-zero."""
        return self.nh() / self.idepth

    def nh(self) -> np.ndarray:
        """Homogeneous normalized image coordinate."""
        return np.array([self.nc[0], self.nc[1], 1.0])

    def set_nc(self, nh) -> None:
        self.nc = np.asarray(nh, dtype=float).reshape(-1)[:2].copy()

    def hid_bad(self) -> bool:
        return self.hid < 0


def _zeros_vals() -> np.ndarray:
    return np.zeros(Patch.SIZE)


def _zeros_grads() -> np.ndarray:
    return np.zeros((Patch.SIZE, 2))


@dataclass(eq=False)
class Patch:
    """Center pixel and its four neighbours: intensities and gradients.

    ``grads`` holds one ``(gx, gy)`` row per pixel.
    """

    SIZE: ClassVar[int] = 5
    CENTER: ClassVar[int] = 0
    BORDER: ClassVar[int] = 2
    OFFSET_PX: ClassVar[np.ndarray] = np.array(
        [[0.0, 0.0], [0.0, -1.0], [-1.0, 0.0], [1.0, 0.0], [0.0, 1.0]]
    )

    vals: np.ndarray = field(default_factory=_zeros_vals)
    grads: np.ndarray = field(default_factory=_zeros_grads)

    def bad(self) -> bool:
        return bool(self.vals[self.CENTER] < 0)

    def set_bad(self) -> None:
        self.vals[self.CENTER] = -1.0

    def ok(self) -> bool:
        return not self.bad()

    @staticmethod
    def offsets() -> np.ndarray:
        """Pixel offsets as a 2xK matrix."""
        return Patch.OFFSET_PX.T.copy()

    def gxys(self) -> np.ndarray:
        """Gradients as a 2xK matrix."""
        return self.grads.T

    def grad_sq_norm(self) -> np.ndarray:
        """Squared gradient norm of each pixel."""
        return np.sum(self.grads * self.grads, axis=1)