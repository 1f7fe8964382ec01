from __future__ import annotations

from camstream.encoder import EncoderProgress, parse_progress


def test_parse_full_progress_line():
    line = "frame=  120 fps= 29.97 q=28.0 size=N/A time=00:00:04.00 bitrate=N/A speed=1.00x"

    progress = parse_progress(line)

    assert progress == EncoderProgress(
        frame=120,
        fps=29.97,
        time="00:00:04.00",
        bitrate="N/A",
        speed="1.00x",
    )


def test_missing_optional_fields_default_to_na():
    progress = parse_progress("frame=5 fps=10 time=00:00:00.50")

    assert progress is not None
    assert progress.bitrate == "N/A"
    assert progress.speed == "N/A"


def test_lines_without_required_fields_are_ignored():
    assert parse_progress("Input #0, video4linux2,v4l2, from '/dev/video0':") is None
    assert parse_progress("frame=5 fps=10") is None
    assert parse_progress("") is None


def test_progress_to_dict():
    progress = parse_progress("frame=1 fps=2.5 time=00:00:01.00 bitrate=1200.0kbits/s speed=0.9x")

    assert progress.to_dict() == {
        "frame": 1,
        "fps": 2.5,
        "time": "00:00:01.00",
        "bitrate": "1200.0kbits/s",
        "speed": "0.9x",
    }
