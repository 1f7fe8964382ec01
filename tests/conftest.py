from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest

from camstream.devices import Device, DeviceCategory, DeviceRegistry
from camstream.encoder import EncoderProcessOptions, Invocation, TranscodeOptions
from camstream.engine import EngineSettings, StreamCoordinator

# Stand-in for FFmpeg: prints the same kind of diagnostics, writes the playlist
# and quits on "q". argv: <mode> <output_dir>
FAKE_ENCODER = r"""
import os
import sys
import time

mode = sys.argv[1]
out = sys.argv[2] if len(sys.argv) > 2 else "."


def say(text):
    sys.stderr.write(text + "\n")
    sys.stderr.flush()


def write_playlist():
    os.makedirs(out, exist_ok=True)
    with open(os.path.join(out, "stream.m3u8"), "w") as handle:
        handle.write("#EXTM3U\n#EXT-X-TARGETDURATION:4\n")
    with open(os.path.join(out, "segment_000.ts"), "wb") as handle:
        handle.write(b"\x47" * 188)


def wait_for_quit():
    for line in sys.stdin:
        if line.strip() == "q":
            break
    sys.exit(0)


if mode == "crash":
    say("Unrecognized option 'bogus'")
    sys.exit(1)
if mode == "clean-exit":
    sys.exit(0)
if mode == "silent":
    wait_for_quit()
if mode in ("stubborn", "hung"):
    say("Opening " + mode + " output")
    if mode == "stubborn":
        write_playlist()
    while True:
        time.sleep(0.1)

say("Input #0, video4linux2,v4l2, from '/dev/video0':")
say("Opening '" + out + "/stream.m3u8' for writing")
if mode in ("stream", "crash-later"):
    write_playlist()
say("frame=   12 fps= 30 q=28.0 size=N/A time=00:00:00.40 bitrate=N/A speed=1.01x")
if mode == "crash-later":
    time.sleep(0.5)
    say("Device disconnected")
    sys.exit(1)
wait_for_quit()
"""


class FakeEncoder:
    """Invocation builder that launches the fake encoder script."""

    def __init__(self, mode: str = "stream") -> None:
        self.mode = mode
        self.invocations: list[Invocation] = []

    def __call__(self, options: TranscodeOptions) -> Invocation:
        invocation = Invocation(
            executable=sys.executable,
            args=("-u", "-c", FAKE_ENCODER, self.mode, str(options.output_dir)),
        )
        self.invocations.append(invocation)
        return invocation


class FakeEnumerator:
    def __init__(self, devices: Optional[list[Device]] = None) -> None:
        self.devices = list(devices or [])
        self.error: Optional[Exception] = None
        self.calls = 0

    def enumerate(self) -> list[Device]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.devices)


def default_devices() -> list[Device]:
    return [
        Device(id="cam0", name="Integrated Webcam", category=DeviceCategory.BUILTIN),
        Device(id="cam1", name="Logitech USB Camera", category=DeviceCategory.USB),
    ]


def fast_settings(output_dir: Path, **overrides) -> EngineSettings:
    values = dict(
        output_dir=output_dir,
        start_timeout=5.0,
        readiness_interval=0.05,
        process_start_grace=5.0,
        stop_grace=2.0,
        kill_grace=2.0,
        cleanup_delay=0.0,
        housekeeping_interval=0.1,
        min_free_bytes=0,
    )
    values.update(overrides)
    return EngineSettings(**values)


def process_options(output_dir: Path, **overrides) -> EncoderProcessOptions:
    values = dict(
        transcode=TranscodeOptions(device_id="cam0", output_dir=output_dir),
        start_grace=5.0,
        stop_grace=2.0,
        kill_grace=2.0,
    )
    values.update(overrides)
    return EncoderProcessOptions(**values)


@pytest.fixture()
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture()
def enumerator() -> FakeEnumerator:
    return FakeEnumerator(default_devices())


@pytest.fixture()
def coordinator_factory(
    tmp_path: Path,
    fake_encoder: FakeEncoder,
    enumerator: FakeEnumerator,
) -> Iterator[Callable[..., StreamCoordinator]]:
    created: list[StreamCoordinator] = []

    def _factory(**kwargs) -> StreamCoordinator:
        disk_probe = kwargs.pop("disk_probe", None)
        settings = fast_settings(tmp_path / "hls", **kwargs)
        registry = DeviceRegistry(enumerator)
        registry.refresh()
        coordinator = StreamCoordinator(
            settings,
            registry=registry,
            invocation_builder=fake_encoder,
            disk_probe=disk_probe,
        )
        created.append(coordinator)
        return coordinator

    yield _factory

    for coordinator in created:
        coordinator.shutdown()


@pytest.fixture()
def coordinator(coordinator_factory) -> StreamCoordinator:
    return coordinator_factory()
