"""Image pyramids, pixel selection, stereo matching, Cholesky solvers and odometry records."""

__version__ = "0.1.0"

__all__ = ["image", "odom", "point", "select", "solve", "stereo"]