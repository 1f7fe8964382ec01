from __future__ import annotations

from camstream.engine import CleanupScheduler, OutputLayout


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FlakyLayout(OutputLayout):
    """Layout whose removals fail a fixed number of times."""

    def __init__(self, base_dir, failures: int) -> None:
        super().__init__(base_dir)
        self.failures = failures
        self.attempts = 0

    def remove_stream_dir(self, session_id: str) -> bool:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise PermissionError("directory busy")
        return super().remove_stream_dir(session_id)


def test_removal_waits_for_delay(tmp_path):
    clock = FakeClock()
    layout = OutputLayout(tmp_path)
    layout.ensure_stream_dir("s1")
    scheduler = CleanupScheduler(layout, delay=30, clock=clock)

    assert scheduler.schedule("s1") == 130.0
    assert scheduler.run_due() == []
    assert layout.stream_dir("s1").exists()

    clock.now = 130.0
    assert scheduler.run_due() == ["s1"]
    assert not layout.stream_dir("s1").exists()
    assert scheduler.pending() == []


def test_cancel(tmp_path):
    clock = FakeClock()
    layout = OutputLayout(tmp_path)
    layout.ensure_stream_dir("s1")
    scheduler = CleanupScheduler(layout, delay=0, clock=clock)
    scheduler.schedule("s1")

    assert scheduler.cancel("s1") is True
    assert scheduler.cancel("s1") is False
    assert scheduler.run_due() == []
    assert layout.stream_dir("s1").exists()


def test_failed_removal_is_retried(tmp_path):
    clock = FakeClock()
    layout = FlakyLayout(tmp_path, failures=1)
    layout.ensure_stream_dir("s1")
    scheduler = CleanupScheduler(layout, delay=0, retry_delay=5, max_attempts=3, clock=clock)
    scheduler.schedule("s1")

    assert scheduler.run_due() == []
    assert scheduler.is_pending("s1")
    assert scheduler.run_due() == []

    clock.now += 5
    assert scheduler.run_due() == ["s1"]
    assert layout.attempts == 2
    assert not layout.stream_dir("s1").exists()


def test_gives_up_after_max_attempts(tmp_path):
    clock = FakeClock()
    layout = FlakyLayout(tmp_path, failures=10)
    layout.ensure_stream_dir("s1")
    scheduler = CleanupScheduler(layout, delay=0, retry_delay=1, max_attempts=2, clock=clock)
    scheduler.schedule("s1")

    scheduler.run_due()
    clock.now += 1
    scheduler.run_due()

    assert layout.attempts == 2
    assert not scheduler.is_pending("s1")
    assert layout.stream_dir("s1").exists()


def test_sweep_orphans_skips_known_and_pending(tmp_path):
    layout = OutputLayout(tmp_path)
    for name in ("live", "pending", "orphan"):
        layout.ensure_stream_dir(name)
    (tmp_path / "notes.txt").write_text("not a stream")
    scheduler = CleanupScheduler(layout, delay=60, clock=FakeClock())
    scheduler.schedule("pending")

    removed = scheduler.sweep_orphans({"live"})

    assert removed == ["orphan"]
    assert layout.session_dirs() == ["live", "pending"]
    assert (tmp_path / "notes.txt").exists()
