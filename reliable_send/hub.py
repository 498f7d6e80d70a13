# reliable_send/hub.py

import asyncio
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

from pydantic import ValidationError

from .batch import message_size
from .config import DEFAULT_MAX_BATCH_BYTES
from .errors import OverloadError
from .models import Event, MessageBatch, Operation

log = logging.getLogger("uvicorn")


class BatchTooLarge(Exception):
    pass


def _empty_stats() -> dict:
    return {
        "received_events": 0,
        "enters": 0,
        "exits": 0,
        "malformed": 0,
        "throttled_batches": 0,
        "per_client": {},
        "last_updated": None,
    }


class IngestHub:
    """
    Broker lokal untuk development: menerima batch, membatasi laju,
    lalu satu worker di background memproses isi queue.
    """

    def __init__(
        self,
        events_per_second: int = 1000,
        max_queue: int = 10000,
        max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES,
        recent_limit: int = 100,
        clock=time.monotonic,
    ):
        self.events_per_second = events_per_second
        self.max_queue = max_queue
        self.max_batch_bytes = max_batch_bytes
        self.recent_limit = recent_limit
        self.clock = clock

        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.worker_task: Optional[asyncio.Task] = None

        # Kuota per detik (fixed window)
        self._window_start = 0.0
        self._window_count = 0

        self.recent: Dict[str, Deque[Event]] = {}
        self.stats = _empty_stats()
        # Lock ini HANYA melindungi stats & recent
        self.lock = asyncio.Lock()

    async def initialize(self):
        """Dipanggil oleh 'lifespan' untuk memulai worker."""
        self.worker_task = asyncio.create_task(self._consumer_worker())
        log.info("Ingest worker started.")

    async def shutdown(self):
        if self.worker_task:
            self.worker_task.cancel()
            try:
                await self.worker_task
            except asyncio.CancelledError:
                log.info("Ingest worker stopped.")
            self.worker_task = None

    # --- API-facing (cepat, tidak menyentuh stats) ---
    def accept(self, queue_name: str, batch: MessageBatch) -> int:
        """
        Terima satu batch. Raise BatchTooLarge kalau melebihi batas ukuran,
        OverloadError kalau kuota per detik habis atau queue penuh.
        """
        size = sum(message_size(m.body.encode("utf-8"), m.properties) for m in batch.messages)
        if size > self.max_batch_bytes:
            raise BatchTooLarge(f"batch {size} bytes > {self.max_batch_bytes}")

        count = len(batch.messages)
        now = self.clock()
        if now - self._window_start >= 1.0:
            self._window_start = now
            self._window_count = 0
        if self._window_count + count > self.events_per_second:
            self.stats["throttled_batches"] += 1
            raise OverloadError(f"quota {self.events_per_second} events/s exceeded")
        if self.queue.qsize() + count > self.max_queue:
            self.stats["throttled_batches"] += 1
            raise OverloadError("ingest queue full")

        self._window_count += count
        for message in batch.messages:
            self.queue.put_nowait((queue_name, message))
        return count

    async def _consumer_worker(self):
        while True:
            try:
                first = await self.queue.get()
                batch = [first]
                while len(batch) < 100 and not self.queue.empty():
                    batch.append(self.queue.get_nowait())

                await self._process_batch_internal(batch)

                for _ in batch:
                    self.queue.task_done()
            except asyncio.CancelledError:
                log.info("Ingest worker stopping...")
                return
            except Exception as e:
                log.error(f"Error di ingest worker: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def _process_batch_internal(self, items: list):
        decoded = []
        malformed = 0
        for queue_name, message in items:
            try:
                event = Event.from_bytes(message.body.encode("utf-8"))
            except ValidationError:
                malformed += 1
                continue
            decoded.append((queue_name, message.properties.get("clientind"), event))

        async with self.lock:
            self.stats["received_events"] += len(items)
            self.stats["malformed"] += malformed
            for queue_name, client_ind, event in decoded:
                if event.op is Operation.ENTER:
                    self.stats["enters"] += 1
                else:
                    self.stats["exits"] += 1
                key = str(client_ind) if client_ind is not None else "unknown"
                self.stats["per_client"][key] = self.stats["per_client"].get(key, 0) + 1
                if queue_name not in self.recent:
                    self.recent[queue_name] = deque(maxlen=self.recent_limit)
                self.recent[queue_name].append(event)
            if items:
                self.stats["last_updated"] = datetime.now(timezone.utc).isoformat()

    # --- Metode helper ---
    async def get_stats(self) -> dict:
        async with self.lock:
            stats_copy = dict(self.stats)
            stats_copy["per_client"] = dict(self.stats["per_client"])
            stats_copy["queued"] = self.queue.qsize()
            return stats_copy

    async def get_events(self, queue_name: Optional[str] = None) -> List[Event]:
        async with self.lock:
            if queue_name:
                return list(self.recent.get(queue_name, []))
            all_events = []
            for events in self.recent.values():
                all_events.extend(events)
            return all_events

    async def drain(self):
        """Tunggu sampai semua pesan di queue selesai diproses."""
        await self.queue.join()

    async def reset_for_testing(self):
        """Membersihkan state untuk pytest."""
        await self.shutdown()
        # Queue & lock dibuat ulang: tiap tes pytest jalan di event loop baru
        self.queue = asyncio.Queue(maxsize=self.max_queue)
        self.lock = asyncio.Lock()
        self._window_start = 0.0
        self._window_count = 0
        self.stats = _empty_stats()
        self.recent.clear()
        await self.initialize()
