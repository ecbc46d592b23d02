import threading
import time

import pytest

from upi_ledger.pmap import p_map_settled


def test_preserves_input_order():
    def slow_inverse(n: int) -> int:
        time.sleep(0.01 * (5 - n))
        return n * 10

    settled = p_map_settled(range(5), slow_inverse, concurrency=5)
    assert [s.value for s in settled] == [0, 10, 20, 30, 40]


def test_bounded_concurrency():
    lock = threading.Lock()
    active = 0
    peak = 0

    def work(_n: int) -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1

    assert len(p_map_settled(range(12), work, concurrency=3)) == 12
    assert peak <= 3


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        p_map_settled([1], lambda n: n, concurrency=0)


def test_empty_input():
    assert p_map_settled([], lambda n: n, concurrency=1) == []


def test_settled_keeps_errors_in_position():
    def fail_on_one(n: int) -> int:
        if n == 1:
            raise RuntimeError("one")
        return n + 100

    settled = p_map_settled(range(3), fail_on_one, concurrency=3)
    assert [s.ok for s in settled] == [True, False, True]
    assert settled[0].value == 100 and settled[2].value == 102
    assert isinstance(settled[1].error, RuntimeError)


def test_errors_do_not_stop_later_items():
    seen: list[int] = []

    def record(n: int) -> int:
        seen.append(n)
        if n == 0:
            raise ValueError("first")
        return n

    settled = p_map_settled(range(4), record, concurrency=1)
    assert sorted(seen) == [0, 1, 2, 3]
    assert [s.ok for s in settled] == [False, True, True, True]
