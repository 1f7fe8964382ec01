from __future__ import annotations

import pytest

from camstream.encoder import EncoderProcess, EventKind, ProcessState
from camstream.encoder.events import TERMINAL_KINDS
from camstream.exceptions import (
    InvalidStateError,
    ProcessCrashError,
    ProcessSpawnError,
    StartTimeoutError,
)
from camstream.encoder.options import Invocation
from camstream.utils import wait_for

from conftest import FakeEncoder, process_options


def _process(tmp_path, mode: str = "stream", **overrides) -> EncoderProcess:
    options = process_options(tmp_path / "out", **overrides)
    invocation = FakeEncoder(mode)(options.transcode)
    return EncoderProcess("session-1", options, invocation)


def test_start_marker_moves_to_running(tmp_path):
    process = _process(tmp_path)
    try:
        process.start()

        assert process.state is ProcessState.RUNNING
        assert process.is_running
        assert process.pid is not None
        assert process.started_at is not None
    finally:
        process.stop()

    assert process.state is ProcessState.STOPPED
    assert process.exited
    assert process.returncode == 0


def test_stop_publishes_single_stopped_event(tmp_path):
    process = _process(tmp_path)
    process.start()
    subscription = process.subscribe(TERMINAL_KINDS)

    process.stop()
    process.stop()

    events = []
    event = subscription.get(timeout=2)
    while event is not None:
        events.append(event)
        event = subscription.get(timeout=0.2)
    assert [event.kind for event in events] == [EventKind.STOPPED]


def test_progress_is_tracked(tmp_path):
    process = _process(tmp_path)
    try:
        process.start()
        assert wait_for(lambda: process.progress is not None, timeout=5, interval=0.05)

        assert process.progress.frame == 12
        assert process.progress.fps == 30.0
        assert process.to_dict()["progress"]["time"] == "00:00:00.40"
    finally:
        process.stop()


def test_crash_before_start_raises(tmp_path):
    process = _process(tmp_path, "crash")

    with pytest.raises(ProcessCrashError) as excinfo:
        process.start()

    assert excinfo.value.returncode == 1
    assert "Unrecognized option 'bogus'" in str(excinfo.value)
    assert process.state is ProcessState.ERROR
    assert process.events.terminal_event.kind is EventKind.ERROR


def test_clean_exit_before_start_raises(tmp_path):
    process = _process(tmp_path, "clean-exit")

    with pytest.raises(ProcessCrashError) as excinfo:
        process.start()

    assert excinfo.value.returncode == 0
    assert process.state is ProcessState.STOPPED


def test_spawn_failure(tmp_path):
    options = process_options(tmp_path)
    process = EncoderProcess(
        "session-1",
        options,
        Invocation(executable=str(tmp_path / "no-such-ffmpeg")),
    )

    with pytest.raises(ProcessSpawnError):
        process.start()

    assert process.state is ProcessState.ERROR
    assert process.exited
    assert process.error.startswith("Failed to launch encoder")
    assert process.events.terminal_event.kind is EventKind.ERROR


def test_silent_encoder_assumed_running(tmp_path):
    process = _process(tmp_path, "silent", start_grace=0.3)
    try:
        process.start()
        assert process.state is ProcessState.RUNNING
    finally:
        process.stop()
    assert process.state is ProcessState.STOPPED


def test_silent_encoder_times_out_without_assumption(tmp_path):
    process = _process(tmp_path, "silent", start_grace=0.3, assume_started_on_timeout=False)

    with pytest.raises(StartTimeoutError):
        process.start()

    assert process.state is ProcessState.STOPPED
    assert process.exited


def test_stubborn_encoder_is_killed(tmp_path):
    process = _process(tmp_path, "stubborn", stop_grace=0.3, kill_grace=2.0)
    process.start()

    process.stop()

    assert process.state is ProcessState.STOPPED
    assert process.exited
    assert process.returncode != 0


def test_crash_after_start_publishes_error(tmp_path):
    process = _process(tmp_path, "crash-later")
    process.start()
    subscription = process.subscribe(TERMINAL_KINDS)

    event = subscription.get(timeout=5)

    assert event is not None
    assert event.kind is EventKind.ERROR
    assert event.returncode == 1
    assert "Device disconnected" in event.message
    assert process.state is ProcessState.ERROR
    assert process.error == event.message


def test_start_twice_is_rejected(tmp_path):
    process = _process(tmp_path)
    process.start()
    try:
        with pytest.raises(InvalidStateError):
            process.start()
    finally:
        process.stop()


def test_restart_after_stop(tmp_path):
    process = _process(tmp_path)
    process.start()
    process.stop()

    process.start()
    try:
        assert process.state is ProcessState.RUNNING
        assert process.events.terminal_event is None
    finally:
        process.stop()


def test_stop_before_start_is_noop(tmp_path):
    process = _process(tmp_path)

    process.stop()

    assert process.state is ProcessState.IDLE


def test_kill(tmp_path):
    process = _process(tmp_path)
    process.start()

    process.kill()

    assert process.state is ProcessState.STOPPED
    assert process.wait(5)


def test_kill_reports_stopped_not_error(tmp_path):
    process = _process(tmp_path, "stubborn")
    process.start()
    subscription = process.subscribe(TERMINAL_KINDS)

    process.kill()

    event = subscription.get(timeout=5)
    assert process.exited
    assert event is not None
    assert event.kind is EventKind.STOPPED
    assert process.error is None
    assert process.state is ProcessState.STOPPED


def test_recent_output_is_bounded(tmp_path):
    process = _process(tmp_path, diagnostic_lines=2)
    try:
        process.start()
        assert wait_for(lambda: process.progress is not None, timeout=5, interval=0.05)

        lines = process.recent_output()
        assert len(lines) == 2
        assert lines[-1].startswith("frame=")
        assert process.recent_output(limit=1) == lines[-1:]
        assert process.recent_output(limit=0) == []
    finally:
        process.stop()
