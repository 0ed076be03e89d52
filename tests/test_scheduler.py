# tests/test_scheduler.py
import threading

from xovis.services.scheduler import TaskScheduler


def test_same_key_is_not_started_twice():
    sched = TaskScheduler()
    release = threading.Event()
    calls = []

    def fn():
        calls.append(1)
        release.wait(2)

    try:
        assert sched.ensure("collect 1", fn, 60) is True
        assert sched.ensure("collect 1", fn, 60) is False
        assert [s["key"] for s in sched.status()] == ["collect 1"]
    finally:
        release.set()
        sched.stop_all()
    assert sched.status() == []


def test_task_ends_when_fn_returns_false():
    sched = TaskScheduler()
    done = threading.Event()

    def fn():
        done.set()
        return False

    sched.ensure("discovery 1", fn, 0.01)
    assert done.wait(2)
    t = sched._tasks["discovery 1"]
    t.join(2)
    assert not t.is_alive()
    assert sched.is_running("discovery 1") is False


def test_errors_do_not_kill_task():
    sched = TaskScheduler()
    second = threading.Event()
    runs = []

    def fn():
        runs.append(1)
        if len(runs) == 1:
            raise RuntimeError("boom")
        second.set()
        return False

    sched.ensure("collect 2", fn, 0.01)
    assert second.wait(2)
    sched.stop_all()


def test_stop_matching_by_prefix():
    sched = TaskScheduler()
    gate = threading.Event()
    try:
        for key in ("collect 1", "collect 2", "discovery 1"):
            sched.ensure(key, lambda: gate.wait(2), 60)
        assert sorted(sched.stop_matching("collect ")) == ["collect 1", "collect 2"]
        assert [s["key"] for s in sched.status()] == ["discovery 1"]
    finally:
        gate.set()
        sched.stop_all()


def test_ensure_updates_interval_of_live_task():
    sched = TaskScheduler()
    gate = threading.Event()
    try:
        assert sched.ensure("collect 3", lambda: gate.wait(2), 60) is True
        assert sched.ensure("collect 3", lambda: gate.wait(2), 5) is False
        assert sched.status()[0]["interval_s"] == 5.0
    finally:
        gate.set()
        sched.stop_all()


def test_shorter_interval_applies_during_sleep():
    sched = TaskScheduler()
    second = threading.Event()
    runs = []

    def fn():
        runs.append(1)
        if len(runs) == 2:
            second.set()
            return False

    try:
        sched.ensure("collect 4", fn, 3600)
        sched.ensure("collect 4", fn, 0.05)
        # задача спала на старом периоде, но должна проснуться по новому
        assert second.wait(5)
    finally:
        sched.stop_all()
