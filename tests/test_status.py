import pytest

from orbslam_geometry.frame import KeyPoint
from orbslam_geometry.status import (
    FrameDrawerState,
    TrackedMatches,
    TrackingState,
    classify_tracked,
    tracking_info_text,
)


def test_info_text_fixed_messages():
    assert tracking_info_text(TrackingState.NO_IMAGES_YET, False, 0, 0, 0, 0) == " WAITING FOR IMAGES"
    assert tracking_info_text(TrackingState.NOT_INITIALIZED, False, 0, 0, 0, 0) == " TRYING TO INITIALIZE "
    assert tracking_info_text(TrackingState.LOST, False, 0, 0, 0, 0) == " TRACK LOST. TRYING TO RELOCALIZE "
    assert (
        tracking_info_text(TrackingState.SYSTEM_NOT_READY, False, 0, 0, 0, 0)
        == " LOADING ORB VOCABULARY. PLEASE WAIT..."
    )


def test_info_text_tracking_modes():
    assert tracking_info_text(2, False, 3, 10, 5, 0) == "SLAM MODE |  KFs: 3, MPs: 10, Matches: 5"
    assert (
        tracking_info_text(2, True, 3, 10, 5, 2)
        == "LOCALIZATION | KFs: 3, MPs: 10, Matches: 5, + VO matches: 2"
    )


def test_info_text_unknown_state():
    with pytest.raises(ValueError):
        tracking_info_text(7, False, 0, 0, 0, 0)


def test_classify_tracked():
    result = classify_tracked([None, 0, 2, 4], [False, False, False, True])
    assert result.in_map == [False, False, True, False]
    assert result.visual_odometry == [False, True, False, False]
    assert result.tracked == 1
    assert result.tracked_vo == 1


def test_classify_tracked_length_mismatch():
    with pytest.raises(ValueError):
        classify_tracked([1, 2], [False])


def test_initial_snapshot_moves_to_no_images():
    drawer = FrameDrawerState()
    first = drawer.snapshot()
    assert first.state is TrackingState.SYSTEM_NOT_READY
    assert first.keys == []
    second = drawer.snapshot()
    assert second.state is TrackingState.NO_IMAGES_YET


def test_update_ok_reports_matches():
    drawer = FrameDrawerState()
    keys = [KeyPoint(1.0, 2.0), KeyPoint(3.0, 4.0), KeyPoint(5.0, 6.0)]
    drawer.update(TrackingState.OK, keys, False, [3, 0, None], [False, False, False])
    snap = drawer.snapshot()
    assert snap.state is TrackingState.OK
    assert snap.keys == keys
    assert snap.matches == TrackedMatches([True, False, False], [False, True, False])
    assert snap.info_text(4, 20) == "SLAM MODE |  KFs: 4, MPs: 20, Matches: 1, + VO matches: 1"


def test_update_ok_requires_one_observation_per_key():
    drawer = FrameDrawerState()
    with pytest.raises(ValueError):
        drawer.update(TrackingState.OK, [KeyPoint(0.0, 0.0)], False, [1, 2], [False, False])


def test_update_initializing_gives_lines():
    drawer = FrameDrawerState()
    current = [KeyPoint(10.0, 11.0), KeyPoint(20.0, 21.0)]
    reference = [KeyPoint(1.0, 2.0), KeyPoint(3.0, 4.0)]
    drawer.update(
        TrackingState.NOT_INITIALIZED, current,
        initial_keys=reference, initial_matches=[1, -1],
    )
    snap = drawer.snapshot()
    assert snap.matches is None
    assert snap.initialization_lines() == [((1.0, 2.0), (20.0, 21.0))]


def test_update_lost_keeps_keys_only():
    drawer = FrameDrawerState()
    keys = [KeyPoint(1.0, 1.0)]
    drawer.update(TrackingState.LOST, keys)
    snap = drawer.snapshot()
    assert snap.state is TrackingState.LOST
    assert snap.keys == keys
    assert snap.matches is None
    assert snap.initialization_lines() == []


def test_update_rejects_unknown_state():
    drawer = FrameDrawerState()
    with pytest.raises(ValueError):
        drawer.update(9, [])