"""Geometry building blocks for feature-based visual SLAM: pose conversions, frames, two-view initialisation, sequence loading, tracking status and plane fitting."""

__version__ = "0.1.0"

__all__ = [
    "converter",
    "sequences",
    "paired_sequences",
    "frame",
    "epipolar",
    "status",
    "initializer",
    "plane",
]