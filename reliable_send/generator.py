# reliable_send/generator.py

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .models import Event, OccupancyEntry, Operation

PLATE_CHARS = string.ascii_uppercase + string.ascii_lowercase + string.digits
PLATE_LENGTH = 8
MAX_ENTITY_ID = 2000           # id diambil dari [1, MAX_ENTITY_ID)
EXIT_OFFSET_MINUTES = (10, 30)  # mobil keluar 10..29 menit dari "sekarang"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Garage:
    """
    Garasi parkir in-memory: daftar mobil yang sedang parkir.
    Hapus acak dilakukan dengan tukar-dengan-elemen-terakhir, jadi O(1).
    """

    def __init__(self):
        self._entries: List[OccupancyEntry] = []

    def __len__(self):
        return len(self._entries)

    def park(self, entry: OccupancyEntry):
        self._entries.append(entry)

    def leave_random(self, rng: random.Random) -> OccupancyEntry:
        idx = rng.randrange(len(self._entries))
        last = self._entries.pop()
        if idx == len(self._entries):
            return last
        chosen = self._entries[idx]
        self._entries[idx] = last
        return chosen

    def remove(self, tag: str, entity_id: int) -> bool:
        # Cari dari belakang: yang baru masuk ada di ujung
        for idx in range(len(self._entries) - 1, -1, -1):
            entry = self._entries[idx]
            if entry.tag == tag and entry.entity_id == entity_id:
                self._entries[idx] = self._entries[-1]
                self._entries.pop()
                return True
        return False

    def tags(self) -> List[str]:
        return [e.tag for e in self._entries]


class EventGenerator:
    """
    Membuat event masuk/keluar garasi.

    Tidak thread-safe: satu generator per publisher, dipanggil berurutan.
    Semua keacakan berasal dari `rng` supaya hasilnya bisa diulang di tes.
    """

    def __init__(
        self,
        rng: random.Random,
        garage: Optional[Garage] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.rng = rng
        self.garage = garage if garage is not None else Garage()
        self.clock = clock
        # Simpan entri terakhir yang keluar supaya undo() bisa memulihkannya
        self._last_exit: Optional[OccupancyEntry] = None

    def generate_plate(self) -> str:
        return "".join(self.rng.choice(PLATE_CHARS) for _ in range(PLATE_LENGTH))

    def generate(self) -> Event:
        op = Operation(self.rng.randint(0, 1))
        if op is Operation.EXIT and len(self.garage) == 0:
            op = Operation.ENTER

        if op is Operation.ENTER:
            self._last_exit = None
            entry = OccupancyEntry(
                tag=self.generate_plate(),
                entity_id=self.rng.randrange(1, MAX_ENTITY_ID),
                entered_at=self.clock(),
            )
            self.garage.park(entry)
            return Event(
                timestamp=entry.entered_at,
                tag=entry.tag,
                op=Operation.ENTER,
                entity_id=entry.entity_id,
            )

        entry = self.garage.leave_random(self.rng)
        self._last_exit = entry
        minutes = self.rng.randrange(*EXIT_OFFSET_MINUTES)
        return Event(
            timestamp=self.clock() + timedelta(minutes=minutes),
            tag=entry.tag,
            op=Operation.EXIT,
            entity_id=entry.entity_id,
        )

    def undo(self, event: Event):
        """
        Membatalkan efek event terakhir ke garasi.
        Dipakai kalau event gagal masuk batch, supaya exit berikutnya
        tidak merujuk ke enter yang tidak pernah terkirim.
        """
        if event.op is Operation.ENTER:
            self.garage.remove(event.tag, event.entity_id)
        elif self._last_exit is not None:
            self.garage.park(self._last_exit)
            self._last_exit = None
