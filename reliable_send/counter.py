# reliable_send/counter.py

import threading


class ThroughputCounter:
    """
    Counter total event yang berhasil terkirim.
    Bisa dipakai bersama oleh banyak publisher (task maupun thread).
    """

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def add(self, amount: int) -> int:
        """Fetch-and-add, mengembalikan total yang baru."""
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        return self._value

    def __repr__(self):
        return f"ThroughputCounter({self._value})"
