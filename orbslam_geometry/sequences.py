"""Loading of monocular image sequences and tracking-time statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence


@dataclass
class ImageSequence:
    """Image file names with their timestamps, in order."""

    filenames: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.filenames) != len(self.timestamps):
            raise ValueError("filenames and timestamps differ in length")

    def __len__(self) -> int:
        return len(self.filenames)

    def __iter__(self) -> Iterator[tuple[str, float]]:
        return iter(zip(self.filenames, self.timestamps))


def _nonempty_lines(path: str | Path, skip: int = 0) -> Iterator[str]:
    with open(path, encoding="utf-8") as handle:
        for number, line in enumerate(handle):
            if number < skip:
                continue
            line = line.rstrip("\r\n")
            if line:
                yield line


def _leading_float(line: str) -> float:
    tokens = line.split()
    if not tokens:
        raise ValueError(f"no timestamp in line {line!r}")
    return float(tokens[0])


def load_euroc_mono(image_path: str, times_path: str) -> ImageSequence:
    """Read a EuRoC times file; each line names an image and a time in nanoseconds."""
    sequence = ImageSequence()
    for line in _nonempty_lines(times_path):
        sequence.filenames.append(f"{image_path}/{line}.png")
        sequence.timestamps.append(_leading_float(line) / 1e9)
    return sequence


def load_kitti_mono(sequence_path: str) -> ImageSequence:
    """Read a KITTI sequence's times.txt and name its left images."""
    timestamps = [_leading_float(line) for line in _nonempty_lines(f"{sequence_path}/times.txt")]
    filenames = [f"{sequence_path}/image_0/{i:06d}.png" for i in range(len(timestamps))]
    return ImageSequence(filenames, timestamps)


def load_tum_mono(sequence_path: str) -> ImageSequence:
    """Read a TUM sequence's rgb.txt, skipping its three header lines."""
    sequence = ImageSequence()
    for line in _nonempty_lines(f"{sequence_path}/rgb.txt", skip=3):
        tokens = line.split()
        if len(tokens) < 2:
            raise ValueError(f"malformed line {line!r}")
        sequence.timestamps.append(float(tokens[0]))
        sequence.filenames.append(f"{sequence_path}/{tokens[1]}")
    return sequence


def tracking_time_stats(times: Sequence[float]) -> tuple[float, float]:
    """Return (median, mean) of per-frame tracking times."""
    if not times:
        raise ValueError("no tracking times")
    ordered = sorted(times)
    return ordered[len(ordered) // 2], sum(ordered) / len(ordered)


def frame_wait(timestamps: Sequence[float], index: int, elapsed: float) -> float:
    """Seconds to wait before the next frame so playback keeps the recorded rate."""
    if not 0 <= index < len(timestamps):
        raise IndexError("frame index out of range")
    gap = 0.0
    if index < len(timestamps) - 1:
        gap = timestamps[index + 1] - timestamps[index]
    elif index > 0:
        gap = timestamps[index] - timestamps[index - 1]
    return gap - elapsed if elapsed < gap else 0.0