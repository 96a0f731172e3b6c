# orbslam_geometry

Geometry and data-handling pieces for a feature-based visual SLAM pipeline,
written with NumPy. Matrices are NumPy arrays; camera poses are 4x4
world-to-camera transforms.

## Install

    pip install .

To run the tests:

    pip install .[test]
    pytest

## Modules

### `orbslam_geometry.converter`

Conversions between pose representations.

- `SE3Quat(rotation, translation)`: rigid transform; `rotation` may be a 3x3
  matrix or an `(x, y, z, w)` quaternion. `to_homogeneous_matrix()` gives the
  4x4 double matrix.
- `Sim3(rotation, translation, scale)`: similarity transform; `to_matrix()`
  gives the 4x4 float32 matrix `[s*R | t]`.
- `to_se3_quat(transform)`, `to_matrix(value)`, `to_se3(rotation, translation)`,
  `to_vector3d(value)`, `to_matrix3d(matrix)`, `to_quaternion(matrix)`
  (returns `[x, y, z, w]`) and `to_descriptor_vector(descriptors)` (rows of a
  descriptor matrix as a list).

### `orbslam_geometry.sequences`

- `load_euroc_mono(image_path, times_path)`: EuRoC times file, nanosecond
  timestamps converted to seconds.
- `load_kitti_mono(sequence_path)`: `times.txt` and `image_0/NNNNNN.png`.
- `load_tum_mono(sequence_path)`: `rgb.txt`, skipping its three header lines.
- All return an `ImageSequence` (`filenames`, `timestamps`; iterable as
  `(filename, timestamp)` pairs).
- `tracking_time_stats(times)` returns `(median, mean)`;
  `frame_wait(timestamps, index, elapsed)` returns how long to wait before the
  next frame to keep the recorded rate.

### `orbslam_geometry.paired_sequences`

- `load_tum_rgbd(association_path)` returns an `RGBDSequence`
  (`rgb_filenames`, `depth_filenames`, `timestamps`); names are relative to
  the sequence folder.
- `load_euroc_stereo(left_path, right_path, times_path)` and
  `load_kitti_stereo(sequence_path)` return a `StereoSequence`
  (`left_filenames`, `right_filenames`, `timestamps`).

### `orbslam_geometry.frame`

- `KeyPoint(x, y, octave, size, angle, response)` and `ImageBounds`.
- `undistort_points(points, camera_matrix, dist_coef)` removes
  radial-tangential distortion; `compute_image_bounds(width, height,
  camera_matrix, dist_coef)` gives the extent of the undistorted image.
- `Frame(keys, camera_matrix, dist_coef, width, height, bf=0.0, th_depth=0.0,
  timestamp=0.0, descriptors=None, depth=None)` undistorts its keypoints,
  sorts them into a 64x48 grid and, when a depth image is given, fills
  per-keypoint depths. Methods: `set_pose`, `pos_in_grid`,
  `get_features_in_area(x, y, r, min_level=-1, max_level=-1)`,
  `compute_stereo_from_rgbd`, `unproject_stereo` and `copy`.

### `orbslam_geometry.epipolar`

`normalize`, `compute_h21`, `compute_f21`, `check_homography`,
`check_fundamental` (each check returns `(score, inliers)`), `triangulate`,
`decompose_e` and `check_rt`, which returns an `RTCheck` (`n_good`,
`points`, `good`, `parallax` in degrees).

### `orbslam_geometry.initializer`

`Initializer(reference_keys, camera_matrix, sigma=1.0, iterations=200,
seed=0)` (or `Initializer.from_frame(frame)`). `initialize(current_keys,
matches12)` runs RANSAC for a homography and a fundamental matrix, picks one
by score ratio and returns a `Reconstruction` (`rotation`, `translation`,
`points`, `triangulated`, `model`) or `None`. `find_homography`,
`find_fundamental`, `reconstruct_h` and `reconstruct_f` are also public.

### `orbslam_geometry.status`

`TrackingState`, `tracking_info_text(...)` (the status line for a tracked
image), `classify_tracked(observations, outliers)` returning
`TrackedMatches`, and `FrameDrawerState`, a thread-safe holder with
`update(...)` and `snapshot()`; the snapshot offers `initialization_lines()`
and `info_text(keyframes, map_points)`.

### `orbslam_geometry.plane`

`exp_so3(x, y, z)`, `ar_status(status, localization_mode)` (overlay text and
colour), `detect_plane(tcw, map_points, iterations=50)` and `Plane`
(`recompute()`, `Plane.from_normal(normal, origin, rang)`, `gl_matrix()` for
a column-major 4x4). Map points are any objects with `world_pos`,
`observations` and `is_bad`.

## Example

```python
import numpy as np
from orbslam_geometry.converter import to_se3, to_quaternion
from orbslam_geometry.frame import Frame, KeyPoint
from orbslam_geometry.sequences import tracking_time_stats

pose = to_se3(np.eye(3), np.array([1.0, 2.0, 3.0]))
print(to_quaternion(pose[:3, :3]))  # [0.0, 0.0, 0.0, 1.0]

k = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])
frame = Frame([KeyPoint(100.0, 120.0), KeyPoint(300.0, 200.0)], k, [0, 0, 0, 0], 640, 480)
print(frame.get_features_in_area(100.0, 120.0, 5.0))  # [0]

median, mean = tracking_time_stats([0.03, 0.02, 0.05])
```

## What it does not do

This is a library of building blocks, not a running SLAM system. It does not
read, decode or display images, extract or match features, match keypoints
between left and right stereo images, build or optimise a map, or save
trajectories, and it installs no command-line programs. Keypoints,
descriptors, depth images and map points are supplied by the caller.