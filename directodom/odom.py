"""Configuration and status records of the direct odometry pipeline.

Poses are 4x4 homogeneous transforms stored as numpy arrays.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

__all__ = ["MapStatus", "OdomCfg", "OdomStatus", "TrackStatus"]


def _fmt(value) -> str:
    """Format a value the way the status strings expect (lower-case booleans)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class OdomCfg:
    """Odometry settings."""

    tbb: int = 0  # parallel grain size
    log: int = 0  # log interval
    vis: int = 0  # show visualization
    num_kfs: int = 4  # number of keyframes in the window
    num_levels: int = 4  # number of pyramid levels
    min_track_ratio: float = 0.3  # add a keyframe below this track ratio
    vis_min_depth: float = 4.0  # minimum depth in visualization
    marg: bool = False  # enable marginalization
    reinit: bool = False  # reinitialize upon tracking failure
    init_depth: bool = True  # initialize depths from a depth image
    init_stereo: bool = False  # initialize depths from stereo matching
    init_align: bool = False  # initialize depths from alignment

    def check(self) -> None:
        """Raise ``ValueError`` for inconsistent settings."""
        if self.num_kfs <= 1:
            raise ValueError(f"num_kfs must be above 1, got {self.num_kfs}")
        if self.num_levels <= 1:
            raise ValueError(f"num_levels must be above 1, got {self.num_levels}")
        if not 0 < self.min_track_ratio < 1:
            raise ValueError(
                f"min_track_ratio must be in (0, 1), got {self.min_track_ratio}"
            )
        if self.vis_min_depth <= 0:
            raise ValueError(
                f"vis_min_depth must be positive, got {self.vis_min_depth}"
            )
        if not (self.init_depth or self.init_stereo):
            raise ValueError("at least one of init_depth and init_stereo must be set")

    def __repr__(self) -> str:
        names = (
            "tbb",
            "log",
            "vis",
            "marg",
            "num_kfs",
            "num_levels",
            "min_track_ratio",
            "vis_min_depth",
            "reinit",
            "init_depth",
            "init_stereo",
            "init_align",
        )
        body = ", ".join(f"{name}={_fmt(getattr(self, name))}" for name in names)
        return f"OdomCfg({body})"


def _identity() -> np.ndarray:
    return np.eye(4)


@dataclass
class TrackStatus:
    """Result of tracking one frame."""

    twc: np.ndarray = field(default_factory=_identity)  # current pose estimate
    add_kf: bool = False  # a new keyframe is needed
    ok: bool = False  # tracking succeeded


@dataclass
class MapStatus:
    """Result of the mapping step."""

    remove_kf: bool = False  # a keyframe was removed from the window
    total_kfs: int = 0  # total number of keyframes added
    window_size: int = 0  # current window size


@dataclass
class OdomStatus:
    """Combined tracking and mapping status."""

    track: TrackStatus = field(default_factory=TrackStatus)
    map: MapStatus = field(default_factory=MapStatus)

    def twc(self) -> np.ndarray:
        """Pose of the current frame in the world."""
        return self.track.twc

    def __repr__(self) -> str:
        return (
            f"OdomStatus(add_kf={_fmt(self.track.add_kf)}, "
            f"remove_kf={_fmt(self.map.remove_kf)}, "
            f"total_kfs={self.map.total_kfs})"
        )