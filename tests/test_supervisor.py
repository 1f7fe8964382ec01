from __future__ import annotations

import pytest

from camstream.encoder import EncoderSupervisor, ProcessState
from camstream.exceptions import InvalidStateError, ProcessCrashError

from conftest import FakeEncoder, process_options


def test_create_starts_and_tracks_handle(tmp_path):
    builder = FakeEncoder()
    supervisor = EncoderSupervisor(builder)
    try:
        handle = supervisor.create("s1", process_options(tmp_path / "s1"))

        assert handle.state is ProcessState.RUNNING
        assert supervisor.get("s1") is handle
        assert supervisor.active_session_ids() == ["s1"]
        assert len(supervisor) == 1
        assert len(builder.invocations) == 1
    finally:
        supervisor.kill_all()


def test_duplicate_session_rejected(tmp_path):
    supervisor = EncoderSupervisor(FakeEncoder())
    try:
        supervisor.create("s1", process_options(tmp_path / "s1"))
        with pytest.raises(InvalidStateError):
            supervisor.create("s1", process_options(tmp_path / "s1"))
    finally:
        supervisor.kill_all()


def test_failed_start_leaves_no_handle(tmp_path):
    supervisor = EncoderSupervisor(FakeEncoder("crash"))

    with pytest.raises(ProcessCrashError):
        supervisor.create("s1", process_options(tmp_path / "s1"))

    assert supervisor.get("s1") is None
    assert len(supervisor) == 0


def test_remove_and_stop(tmp_path):
    supervisor = EncoderSupervisor(FakeEncoder())
    handle = supervisor.create("s1", process_options(tmp_path / "s1"))

    assert supervisor.remove_and_stop("s1") is True
    assert handle.state is ProcessState.STOPPED
    assert supervisor.get("s1") is None
    assert supervisor.remove_and_stop("s1") is False


def test_discard_checks_identity(tmp_path):
    supervisor = EncoderSupervisor(FakeEncoder())
    first = supervisor.create("s1", process_options(tmp_path / "s1"))
    supervisor.remove_and_stop("s1")
    second = supervisor.create("s1", process_options(tmp_path / "s1"))
    try:
        assert supervisor.discard("s1", first) is False
        assert supervisor.get("s1") is second
        assert supervisor.discard("s1", second) is True
        assert supervisor.get("s1") is None
    finally:
        second.stop()


def test_kill_all(tmp_path):
    supervisor = EncoderSupervisor(FakeEncoder())
    handles = [
        supervisor.create(session_id, process_options(tmp_path / session_id))
        for session_id in ("s1", "s2")
    ]

    assert supervisor.kill_all() == 2
    assert len(supervisor) == 0
    for handle in handles:
        assert handle.wait(5)
        assert handle.state is ProcessState.STOPPED
