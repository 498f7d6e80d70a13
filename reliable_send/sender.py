# reliable_send/sender.py

import asyncio
import logging
import random
from typing import Callable, Optional

from .batch import EventBatch, build_batch
from .config import ConnectionSettings, SenderOptions
from .counter import ThroughputCounter
from .errors import ConstructionError, OverloadError
from .generator import EventGenerator
from .models import ErrorKind, SendResult, SenderState
from .transport import HttpTransport, Transport

log = logging.getLogger("publisher")

TransportFactory = Callable[[ConnectionSettings, str], Transport]


class SenderClient:
    """
    Satu client simulasi yang terus mengirim batch event garasi ke broker.

    Loop langsung berjalan di background sejak objek dibuat (butuh event
    loop yang sedang jalan). Berhenti hanya kalau `cancel_event` di-set;
    error kirim apa pun hanya di-log, tidak pernah menghentikan loop.
    """

    def __init__(
        self,
        client_ind: int,
        connection: ConnectionSettings,
        queue_name: str,
        cancel_event: asyncio.Event,
        options: Optional[SenderOptions] = None,
        rng: Optional[random.Random] = None,
        transport_factory: TransportFactory = HttpTransport,
        shared_counter: Optional[ThroughputCounter] = None,
    ):
        self.client_ind = client_ind
        self.cancel_event = cancel_event
        self.options = options or SenderOptions()
        self.rng = rng or random.Random()

        # Gagal bikin koneksi = error keras, langsung ke pemanggil
        try:
            self.transport = transport_factory(connection, queue_name)
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError(f"Client-{client_ind}: gagal membuat koneksi: {e}") from e

        self.generator = EventGenerator(self.rng)
        self.counter = ThroughputCounter()
        self.shared_counter = shared_counter
        self.state = SenderState.SENDING
        self.batches_sent = 0
        self.last_error: Optional[str] = None

        self.send_task = asyncio.create_task(self._send_loop())

    @property
    def total_sent(self) -> int:
        return self.counter.value

    async def _send_loop(self):
        log.info(f"Client-{self.client_ind}: Starting to send events.")
        try:
            while not self.cancel_event.is_set():
                self.state = SenderState.SENDING
                result = await self._run_cycle()
                if result is None or result.ok:
                    continue

                self.last_error = result.message
                if result.kind is ErrorKind.OVERLOAD:
                    log.warning(
                        f"Client-{self.client_ind}: Going a little faster than the broker allows. "
                        "Slowing down now."
                    )
                    self.state = SenderState.BACKOFF
                    await self._backoff()
                else:
                    log.error(
                        f"Client-{self.client_ind}: Caught exception while attempting to send: "
                        f"{result.message}"
                    )
        finally:
            self.state = SenderState.STOPPED
            log.info(
                f"Client-{self.client_ind}: Stopped sending events. "
                f"Total number of events sent: {self.total_sent}"
            )
            await self.transport.aclose()

    async def _run_cycle(self) -> Optional[SendResult]:
        """
        Satu siklus: bangun batch lalu kirim.
        Mengembalikan None kalau batch kosong (tidak ada yang dikirim).
        """
        try:
            batch = self.transport.create_batch()
            await build_batch(
                self.generator,
                batch,
                count=self.options.events_per_batch,
                interval=self.options.event_interval,
                properties={"clientind": self.client_ind},
            )
        except Exception as e:
            return SendResult.failure(ErrorKind.OTHER, str(e))

        if len(batch) == 0:
            log.warning(f"Client-{self.client_ind}: Batch kosong, event pertama tidak muat. Skip kirim.")
            await asyncio.sleep(self.options.event_interval)
            return None

        result = await self._send(batch)
        if result.ok:
            self.counter.add(len(batch))
            if self.shared_counter is not None:
                self.shared_counter.add(len(batch))
            self.batches_sent += 1
        return result

    async def _send(self, batch: EventBatch) -> SendResult:
        try:
            return await self.transport.send(batch)
        except OverloadError as e:
            return SendResult.failure(ErrorKind.OVERLOAD, str(e))
        except Exception as e:
            return SendResult.failure(ErrorKind.OTHER, str(e))

    async def _backoff(self):
        # Bangun lebih awal kalau diminta berhenti; tidak ada kirim lagi setelahnya
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=self.options.backoff)
        except asyncio.TimeoutError:
            pass
