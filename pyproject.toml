[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orbslam_geometry"
version = "0.1.0"
description = "Geometry building blocks for feature-based visual SLAM: frames with keypoint grids, two-view initialisation, dataset sequence loading and plane fitting for AR overlays."
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = [
    "slam",
    "computer-vision",
    "epipolar-geometry",
    "homography",
    "fundamental-matrix",
    "triangulation",
    "rgbd",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["orbslam_geometry"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
