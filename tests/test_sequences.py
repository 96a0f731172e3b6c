import pytest

from orbslam_geometry.sequences import (
    ImageSequence,
    frame_wait,
    load_euroc_mono,
    load_kitti_mono,
    load_tum_mono,
    tracking_time_stats,
)


def test_euroc_mono(tmp_path):
    times = tmp_path / "times.txt"
    times.write_text("1403636579763555584\n\n1403636579813555456\n")
    seq = load_euroc_mono("cam0/data", str(times))
    assert seq.filenames == [
        "cam0/data/1403636579763555584.png",
        "cam0/data/1403636579813555456.png",
    ]
    assert seq.timestamps[0] * 1e9 == pytest.approx(1403636579763555584)
    assert seq.timestamps[0] < seq.timestamps[1]


def test_euroc_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_euroc_mono("images", str(tmp_path / "absent.txt"))


def test_kitti_mono(tmp_path):
    (tmp_path / "times.txt").write_text("0.0\n0.1\n0.2\n")
    seq = load_kitti_mono(str(tmp_path))
    assert len(seq) == 3
    assert seq.timestamps == [0.0, 0.1, 0.2]
    assert seq.filenames[0] == f"{tmp_path}/image_0/000000.png"
    assert seq.filenames[2] == f"{tmp_path}/image_0/000002.png"


def test_tum_mono_skips_header(tmp_path):
    (tmp_path / "rgb.txt").write_text(
        "# color images\n# file: 'x.bag'\n# timestamp filename\n"
        "1305031102.175304 rgb/1305031102.175304.png\n"
        "1305031102.211214 rgb/1305031102.211214.png\n"
    )
    seq = load_tum_mono(str(tmp_path))
    assert seq.timestamps == [1305031102.175304, 1305031102.211214]
    assert seq.filenames == [
        f"{tmp_path}/rgb/1305031102.175304.png",
        f"{tmp_path}/rgb/1305031102.211214.png",
    ]


def test_tum_malformed_line(tmp_path):
    (tmp_path / "rgb.txt").write_text("#\n#\n#\n1305031102.175304\n")
    with pytest.raises(ValueError):
        load_tum_mono(str(tmp_path))


def test_sequence_iteration_and_mismatch():
    seq = ImageSequence(["a.png", "b.png"], [1.0, 2.0])
    assert list(seq) == [("a.png", 1.0), ("b.png", 2.0)]
    with pytest.raises(ValueError):
        ImageSequence(["a.png"], [])


def test_tracking_time_stats():
    median, mean = tracking_time_stats([0.3, 0.1, 0.2, 0.4])
    assert median == 0.3
    assert mean == pytest.approx((0.3 + 0.1 + 0.2 + 0.4) / 4)


def test_tracking_time_stats_empty():
    with pytest.raises(ValueError):
        tracking_time_stats([])


def test_frame_wait_uses_next_gap():
    stamps = [0.0, 0.5, 0.75]
    assert frame_wait(stamps, 0, 0.0) == stamps[1] - stamps[0]
    assert frame_wait(stamps, 0, 0.6) == 0.0


def test_frame_wait_last_uses_previous_gap():
    stamps = [0.0, 0.5, 0.75]
    assert frame_wait(stamps, 2, 0.0) == stamps[2] - stamps[1]
    assert frame_wait([1.0], 0, 0.0) == 0.0
    with pytest.raises(IndexError):
        frame_wait(stamps, 3, 0.0)