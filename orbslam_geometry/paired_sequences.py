"""Loading of RGB-D and stereo image sequences."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from orbslam_geometry.sequences import _leading_float, _nonempty_lines


@dataclass
class RGBDSequence:
    """Colour and depth image names with the colour timestamps, in order."""

    rgb_filenames: list[str] = field(default_factory=list)
    depth_filenames: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.rgb_filenames) != len(self.depth_filenames):
            raise ValueError("different number of images for rgb and depth")
        if len(self.rgb_filenames) != len(self.timestamps):
            raise ValueError("filenames and timestamps differ in length")

    def __len__(self) -> int:
        return len(self.rgb_filenames)

    def __iter__(self) -> Iterator[tuple[str, str, float]]:
        return iter(zip(self.rgb_filenames, self.depth_filenames, self.timestamps))


@dataclass
class StereoSequence:
    """Left and right image names with their timestamps, in order."""

    left_filenames: list[str] = field(default_factory=list)
    right_filenames: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.left_filenames) != len(self.right_filenames):
            raise ValueError("different number of left and right images")
        if len(self.left_filenames) != len(self.timestamps):
            raise ValueError("filenames and timestamps differ in length")

    def __len__(self) -> int:
        return len(self.left_filenames)

    def __iter__(self) -> Iterator[tuple[str, str, float]]:
        return iter(zip(self.left_filenames, self.right_filenames, self.timestamps))


def load_tum_rgbd(association_path: str | Path) -> RGBDSequence:
    """Read a TUM association file: 'time rgb_file time depth_file' per line.

    File names are returned as written, relative to the sequence folder.
    """
    rgb: list[str] = []
    depth: list[str] = []
    timestamps: list[float] = []
    for line in _nonempty_lines(association_path):
        tokens = line.split()
        if len(tokens) < 4:
            raise ValueError(f"malformed association line {line!r}")
        timestamps.append(float(tokens[0]))
        rgb.append(tokens[1])
        depth.append(tokens[3])
    return RGBDSequence(rgb, depth, timestamps)


def load_euroc_stereo(
    left_path: str, right_path: str, times_path: str | Path
) -> StereoSequence:
    """Read a EuRoC times file naming left and right images; times are in nanoseconds."""
    sequence = StereoSequence()
    for line in _nonempty_lines(times_path):
        sequence.left_filenames.append(f"{left_path}/{line}.png")
        sequence.right_filenames.append(f"{right_path}/{line}.png")
        sequence.timestamps.append(_leading_float(line) / 1e9)
    return sequence


def load_kitti_stereo(sequence_path: str) -> StereoSequence:
    """Read a KITTI sequence's times.txt and name its left and right images."""
    timestamps = [
        _leading_float(line) for line in _nonempty_lines(f"{sequence_path}/times.txt")
    ]
    names = [f"{i:06d}.png" for i in range(len(timestamps))]
    left = [f"{sequence_path}/image_0/{name}" for name in names]
    right = [f"{sequence_path}/image_1/{name}" for name in names]
    return StereoSequence(left, right, timestamps)