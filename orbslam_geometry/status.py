"""Tracking status shared between the tracker and whatever draws it."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Sequence


class TrackingState(IntEnum):
    SYSTEM_NOT_READY = -1
    NO_IMAGES_YET = 0
    NOT_INITIALIZED = 1
    OK = 2
    LOST = 3


def tracking_info_text(
    state: int,
    only_tracking: bool,
    keyframes: int,
    map_points: int,
    tracked: int,
    tracked_vo: int,
) -> str:
    """Status line shown under the current image."""
    state = TrackingState(state)
    if state is TrackingState.NO_IMAGES_YET:
        return " WAITING FOR IMAGES"
    if state is TrackingState.NOT_INITIALIZED:
        return " TRYING TO INITIALIZE "
    if state is TrackingState.OK:
        text = "LOCALIZATION | " if only_tracking else "SLAM MODE |  "
        text += f"KFs: {keyframes}, MPs: {map_points}, Matches: {tracked}"
        if tracked_vo > 0:
            text += f", + VO matches: {tracked_vo}"
        return text
    if state is TrackingState.LOST:
        return " TRACK LOST. TRYING TO RELOCALIZE "
    return " LOADING ORB VOCABULARY. PLEASE WAIT..."


@dataclass
class TrackedMatches:
    """Per-keypoint flags: matched to a map point, or to a visual-odometry point."""

    in_map: list[bool] = field(default_factory=list)
    visual_odometry: list[bool] = field(default_factory=list)

    @property
    def tracked(self) -> int:
        return sum(self.in_map)

    @property
    def tracked_vo(self) -> int:
        return sum(self.visual_odometry)


def classify_tracked(
    observations: Sequence[int | None], outliers: Sequence[bool]
) -> TrackedMatches:
    """Classify each keypoint's match.

    ``observations`` holds the observation count of the matched map point, or
    None where the keypoint has no match. Inlier matches to observed points are
    map matches; inlier matches to unobserved points are visual odometry.
    """
    if len(observations) != len(outliers):
        raise ValueError("observations and outlier flags differ in length")
    in_map: list[bool] = []
    vo: list[bool] = []
    for count, is_outlier in zip(observations, outliers):
        matched = count is not None and not is_outlier
        in_map.append(matched and count > 0)
        vo.append(matched and count <= 0)
    return TrackedMatches(in_map, vo)


@dataclass
class DrawSnapshot:
    """What a drawer needs for one image, copied out under the lock."""

    state: TrackingState
    keys: list[Any]
    initial_keys: list[Any]
    initial_matches: list[int]
    matches: TrackedMatches | None
    only_tracking: bool

    def initialization_lines(self) -> list[tuple[tuple[float, float], tuple[float, float]]]:
        """Segments from reference keypoints to their current matches while initializing."""
        if self.state is not TrackingState.NOT_INITIALIZED:
            return []
        lines = []
        for ini_key, match in zip(self.initial_keys, self.initial_matches):
            if match >= 0:
                current = self.keys[match]
                lines.append(((ini_key.x, ini_key.y), (current.x, current.y)))
        return lines

    def info_text(self, keyframes: int, map_points: int) -> str:
        tracked = self.matches.tracked if self.matches else 0
        tracked_vo = self.matches.tracked_vo if self.matches else 0
        return tracking_info_text(
            self.state, self.only_tracking, keyframes, map_points, tracked, tracked_vo
        )


class FrameDrawerState:
    """Thread-safe holder of the last processed frame's tracking results."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = TrackingState.SYSTEM_NOT_READY
        self._keys: list[Any] = []
        self._initial_keys: list[Any] = []
        self._initial_matches: list[int] = []
        self._matches = TrackedMatches()
        self._only_tracking = False

    def update(
        self,
        state: int,
        keys: Sequence[Any],
        only_tracking: bool = False,
        observations: Sequence[int | None] | None = None,
        outliers: Sequence[bool] | None = None,
        initial_keys: Sequence[Any] | None = None,
        initial_matches: Sequence[int] | None = None,
    ) -> None:
        """Record the tracker's results for the frame just processed."""
        state = TrackingState(state)
        keys = list(keys)
        n = len(keys)
        matches = TrackedMatches([False] * n, [False] * n)
        new_initial: tuple[list[Any], list[int]] | None = None

        if state is TrackingState.NOT_INITIALIZED:
            new_initial = (list(initial_keys or []), list(initial_matches or []))
        elif state is TrackingState.OK:
            obs = list(observations) if observations is not None else [None] * n
            flags = list(outliers) if outliers is not None else [False] * n
            if len(obs) != n:
                raise ValueError("one observation entry per keypoint is required")
            matches = classify_tracked(obs, flags)

        with self._lock:
            self._keys = keys
            self._matches = matches
            self._only_tracking = bool(only_tracking)
            if new_initial is not None:
                self._initial_keys, self._initial_matches = new_initial
            self._state = state

    def snapshot(self) -> DrawSnapshot:
        """Copy out the data for drawing; the first call moves past SYSTEM_NOT_READY."""
        keys: list[Any] = []
        initial_keys: list[Any] = []
        initial_matches: list[int] = []
        matches: TrackedMatches | None = None
        with self._lock:
            state = self._state
            if self._state is TrackingState.SYSTEM_NOT_READY:
                self._state = TrackingState.NO_IMAGES_YET
            current = self._state
            if current is TrackingState.NOT_INITIALIZED:
                keys = list(self._keys)
                initial_keys = list(self._initial_keys)
                initial_matches = list(self._initial_matches)
            elif current is TrackingState.OK:
                keys = list(self._keys)
                matches = TrackedMatches(
                    list(self._matches.in_map), list(self._matches.visual_odometry)
                )
            elif current is TrackingState.LOST:
                keys = list(self._keys)
            only_tracking = self._only_tracking
        return DrawSnapshot(state, keys, initial_keys, initial_matches, matches, only_tracking)