from __future__ import annotations

import threading

import pytest

from camstream.utils import (
    check_disk_space,
    coerce_float,
    coerce_int,
    format_bytes,
    is_valid_bitrate,
    is_valid_framerate,
    is_valid_resolution,
    parse_resolution,
    to_bool,
    to_optional_str,
    wait_for,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (100 * 1024 * 1024, "100 MB"),
        (1536 * 1024 * 1024, "1.5 GB"),
    ],
)
def test_format_bytes(value, expected):
    assert format_bytes(value) == expected


def test_resolution_helpers():
    assert parse_resolution("1920x1080") == (1920, 1080)
    assert parse_resolution("1920*1080") is None
    assert is_valid_resolution("640x480")
    assert not is_valid_resolution("100x100")


def test_rate_validators():
    assert is_valid_framerate(30)
    assert not is_valid_framerate(0)
    assert is_valid_bitrate("128k")
    assert is_valid_bitrate("2M")
    assert not is_valid_bitrate("fast")


def test_coercion():
    assert to_bool("yes") is True
    assert to_bool("off") is False
    assert to_bool("maybe", default=True) is True
    assert coerce_int("12", 3) == 12
    assert coerce_int(None, 3) == 3
    assert coerce_float("x", 1.5) == 1.5
    assert to_optional_str("  ") is None


def test_wait_for_predicate():
    flag = threading.Event()
    threading.Timer(0.05, flag.set).start()

    assert wait_for(flag.is_set, timeout=5, interval=0.01) is True


def test_wait_for_timeout_and_stop():
    assert wait_for(lambda: False, timeout=0.05, interval=0.01) is False

    stop = threading.Event()
    stop.set()
    assert wait_for(lambda: True, timeout=5, interval=0.01, stop_event=stop) is False


def test_check_disk_space(tmp_path):
    space = check_disk_space(tmp_path, 0)

    assert space.total >= space.available >= 0
    assert space.sufficient
