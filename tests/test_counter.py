# tests/test_counter.py

import threading

from reliable_send.counter import ThroughputCounter


def test_add_returns_new_total():
    counter = ThroughputCounter()
    assert counter.add(10) == 10
    assert counter.add(5) == 15
    assert counter.value == 15


def test_no_lost_updates_across_threads():
    counter = ThroughputCounter()

    def worker():
        for _ in range(10000):
            counter.add(1)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert counter.value == 40000
