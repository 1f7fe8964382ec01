from __future__ import annotations

import threading

from camstream.engine import HousekeepingLoop


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_tasks_run_on_their_schedule():
    clock = FakeClock()
    loop = HousekeepingLoop(1.0, clock=clock)
    calls: list[str] = []
    loop.add_task("every-tick", lambda: calls.append("tick"))
    loop.add_task("slow", lambda: calls.append("slow"), every=10)

    assert loop.run_once() == ["every-tick", "slow"]
    clock.now = 5
    assert loop.run_once() == ["every-tick"]
    clock.now = 10
    assert loop.run_once() == ["every-tick", "slow"]
    assert loop.run_once(force=True) == ["every-tick", "slow"]
    assert loop.task_names() == ["every-tick", "slow"]


def test_failing_task_does_not_block_others():
    loop = HousekeepingLoop(1.0, clock=FakeClock())

    def _boom() -> None:
        raise RuntimeError("boom")

    ran: list[str] = []
    loop.add_task("broken", _boom)
    loop.add_task("healthy", lambda: ran.append("healthy"))

    assert loop.run_once() == ["healthy"]
    assert ran == ["healthy"]


def test_background_thread_runs_tasks():
    loop = HousekeepingLoop(0.05)
    fired = threading.Event()
    loop.add_task("signal", fired.set)

    loop.start()
    try:
        assert loop.running()
        assert fired.wait(5)
    finally:
        loop.stop()

    assert not loop.running()
