import logging
from concurrent.futures import ThreadPoolExecutor

from app.services.cart_mirror import CartMirror


def _recorder(log, label, fail_times=0):
    state = {"left": fail_times}

    def write():
        log.append(label)
        if state["left"] > 0:
            state["left"] -= 1
            raise RuntimeError(f"{label} failed")

    return write


def test_queued_writes_collapse_to_the_latest(manual_executor):
    mirror = CartMirror(manual_executor)
    log = []

    first = mirror.submit("user-1", _recorder(log, "v1"))
    assert mirror.submit("user-1", _recorder(log, "v2")) is None
    assert mirror.submit("user-1", _recorder(log, "v3")) is None
    assert first is not None
    assert len(manual_executor.queue) == 1

    manual_executor.run_all()

    assert log == ["v3"]
    assert mirror.is_idle("user-1")


def test_keys_drain_independently(manual_executor):
    mirror = CartMirror(manual_executor)
    log = []

    mirror.submit("user-1", _recorder(log, "a"))
    mirror.submit("user-2", _recorder(log, "b"))
    assert len(manual_executor.queue) == 2

    manual_executor.run_all()
    assert sorted(log) == ["a", "b"]


def test_write_submitted_while_running_is_picked_up_by_same_drain(manual_executor):
    mirror = CartMirror(manual_executor)
    log = []

    def first():
        log.append("first")
        mirror.submit("user-1", _recorder(log, "second"))

    mirror.submit("user-1", first)
    manual_executor.run_all()

    assert log == ["first", "second"]
    assert mirror.is_idle("user-1")


def test_failed_write_is_retried(manual_executor):
    mirror = CartMirror(manual_executor, max_attempts=3)
    log = []

    mirror.submit("user-1", _recorder(log, "v1", fail_times=2))
    manual_executor.run_all()

    assert log == ["v1", "v1", "v1"]
    assert mirror.is_idle("user-1")


def test_write_is_dropped_after_max_attempts(manual_executor, caplog):
    mirror = CartMirror(manual_executor, max_attempts=2)
    log = []

    with caplog.at_level(logging.WARNING):
        future = mirror.submit("user-1", _recorder(log, "v1", fail_times=10))
        manual_executor.run_all()

    assert log == ["v1", "v1"]
    assert future.exception() is None
    assert any(r.levelno == logging.ERROR for r in caplog.records)
    assert mirror.is_idle("user-1")


def test_failed_write_is_not_retried_once_superseded(manual_executor):
    mirror = CartMirror(manual_executor, max_attempts=3)
    log = []

    def stale():
        log.append("stale")
        mirror.submit("user-1", _recorder(log, "fresh"))
        raise RuntimeError("network down")

    mirror.submit("user-1", stale)
    manual_executor.run_all()

    assert log == ["stale", "fresh"]


def test_submit_after_shutdown_is_dropped_quietly():
    mirror = CartMirror(ThreadPoolExecutor(max_workers=1))
    mirror.shutdown()
    log = []

    assert mirror.submit("user-1", _recorder(log, "late")) is None
    assert log == []
    assert mirror.is_idle("user-1")


def test_thread_pool_writes_are_serialised_per_key():
    mirror = CartMirror(ThreadPoolExecutor(max_workers=4))
    log = []

    for i in range(20):
        mirror.submit("user-1", _recorder(log, i))
    mirror.shutdown(wait=True)

    # latest snapshot always lands last
    assert log[-1] == 19
    assert log == sorted(log)
