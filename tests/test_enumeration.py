from __future__ import annotations

import subprocess

import pytest

from camstream.devices import DeviceCategory, FFmpegDeviceEnumerator, device_input
from camstream.devices.enumeration import (
    parse_avfoundation_listing,
    parse_directshow_listing,
    scan_video_nodes,
)
from camstream.exceptions import DeviceEnumerationError

DSHOW_TAGGED = """\
[dshow @ 000001] "Integrated Camera" (video)
[dshow @ 000001]   Alternative name "@device_pnp_\\\\?\\usb#vid_0001"
[dshow @ 000001] "OBS Virtual Camera" (none)
[dshow @ 000001] "Microphone Array" (audio)
"""

DSHOW_LEGACY = """\
[dshow @ 000001] DirectShow video devices (some may be both video and audio devices)
[dshow @ 000001]  "Logitech HD Webcam C270"
[dshow @ 000001]     Alternative name "@device_pnp_\\\\?\\usb#vid_046d"
[dshow @ 000001] DirectShow audio devices
[dshow @ 000001]  "Microphone (HD Webcam C270)"
"""

AVFOUNDATION = """\
[AVFoundation indev @ 0x7f9] AVFoundation video devices:
[AVFoundation indev @ 0x7f9] [0] FaceTime HD Camera
[AVFoundation indev @ 0x7f9] [1] Capture screen 0
[AVFoundation indev @ 0x7f9] AVFoundation audio devices:
[AVFoundation indev @ 0x7f9] [0] MacBook Pro Microphone
"""


def test_parse_tagged_directshow_listing():
    devices = parse_directshow_listing(DSHOW_TAGGED)

    assert [(device.id, device.category) for device in devices] == [
        ("Integrated Camera", DeviceCategory.BUILTIN),
        ("OBS Virtual Camera", DeviceCategory.VIRTUAL),
    ]


def test_parse_legacy_directshow_listing():
    devices = parse_directshow_listing(DSHOW_LEGACY)

    assert [device.name for device in devices] == ["Logitech HD Webcam C270"]
    assert devices[0].category is DeviceCategory.USB


def test_parse_avfoundation_listing():
    devices = parse_avfoundation_listing(AVFOUNDATION)

    assert [(device.id, device.name) for device in devices] == [
        ("0", "FaceTime HD Camera"),
        ("1", "Capture screen 0"),
    ]
    assert devices[0].category is DeviceCategory.BUILTIN
    assert devices[1].category is DeviceCategory.VIRTUAL


def test_scan_video_nodes(tmp_path):
    (tmp_path / "video0").touch()
    (tmp_path / "video2").touch()

    devices = scan_video_nodes(tmp_path, limit=4)

    assert [device.id for device in devices] == [str(tmp_path / "video0"), str(tmp_path / "video2")]
    assert devices[1].name == "Video Device 2"


def test_linux_enumerator_uses_scanner():
    enumerator = FFmpegDeviceEnumerator(platform="linux", linux_scanner=lambda: [])

    assert enumerator.enumerate() == []


def test_windows_enumerator_reads_stderr(monkeypatch):
    captured = {}

    def fake_run(command, **kwargs):
        captured["command"] = command
        return subprocess.CompletedProcess(command, 1, stdout="", stderr=DSHOW_TAGGED)

    monkeypatch.setattr(subprocess, "run", fake_run)
    enumerator = FFmpegDeviceEnumerator("ffmpeg.exe", platform="win32")

    devices = enumerator.enumerate()

    assert captured["command"][0] == "ffmpeg.exe"
    assert "-list_devices" in captured["command"]
    assert len(devices) == 2


def test_missing_binary_raises(monkeypatch):
    def fake_run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(subprocess, "run", fake_run)
    enumerator = FFmpegDeviceEnumerator("missing-ffmpeg", platform="darwin")

    with pytest.raises(DeviceEnumerationError):
        enumerator.enumerate()


def test_timeout_keeps_partial_listing(monkeypatch):
    def fake_run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, 5, stderr=AVFOUNDATION.encode())

    monkeypatch.setattr(subprocess, "run", fake_run)
    enumerator = FFmpegDeviceEnumerator(platform="darwin")

    assert [device.id for device in enumerator.enumerate()] == ["0", "1"]


def test_device_input_per_platform():
    assert device_input("win32", "Cam") == "video=Cam"
    assert device_input("darwin", "0") == "0"
    assert device_input("linux", "video1") == "/dev/video1"
    assert device_input("linux", "/dev/video1") == "/dev/video1"
