# reliable_send/batch.py

import asyncio
import json
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import DEFAULT_MAX_BATCH_BYTES
from .generator import EventGenerator


def message_size(body: bytes, properties: Optional[Dict[str, Any]] = None) -> int:
    """Ukuran satu pesan: body + properties (dalam bentuk JSON)."""
    size = len(body)
    if properties:
        size += len(json.dumps(properties, separators=(",", ":")).encode("utf-8"))
    return size


class EventBatch:
    """Batch pesan berurutan dengan batas ukuran total dalam byte."""

    def __init__(self, max_size_bytes: int = DEFAULT_MAX_BATCH_BYTES):
        self.max_size_bytes = max_size_bytes
        self.size_bytes = 0
        self._messages: List[Tuple[bytes, Dict[str, Any]]] = []

    def try_add(self, body: bytes, properties: Optional[Dict[str, Any]] = None) -> bool:
        """Tambah pesan; False kalau batch akan melebihi batas ukuran."""
        properties = dict(properties or {})
        size = message_size(body, properties)
        if self.size_bytes + size > self.max_size_bytes:
            return False
        self._messages.append((body, properties))
        self.size_bytes += size
        return True

    def __len__(self):
        return len(self._messages)

    def __iter__(self) -> Iterator[Tuple[bytes, Dict[str, Any]]]:
        return iter(self._messages)


async def build_batch(
    generator: EventGenerator,
    batch: EventBatch,
    count: int = 10,
    interval: float = 1.0,
    properties: Optional[Dict[str, Any]] = None,
) -> EventBatch:
    """
    Isi batch dengan maksimal `count` event baru.

    Berhenti lebih awal kalau batch menolak pesan (sudah penuh); batch
    parsial tetap dikembalikan dan tetap harus dikirim. Setelah tiap event
    ada jeda `interval` detik untuk membatasi laju.
    """
    for _ in range(count):
        event = generator.generate()
        if not batch.try_add(event.to_bytes(), properties):
            generator.undo(event)
            break
        await asyncio.sleep(interval)
    return batch
