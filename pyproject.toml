[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "directodom"
version = "0.1.0"
description = "Building blocks for sparse direct visual odometry: image pyramids, pixel selection, stereo matching and Cholesky solvers"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
]
keywords = ["visual odometry", "direct method", "stereo matching", "image pyramid", "pixel selection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["directodom"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
