# publisher.py

# Menjalankan beberapa SenderClient sekaligus ke hub (lihat main.py)

import asyncio
import logging
import os
import signal
import time

import httpx

from reliable_send.config import ConnectionSettings, SenderOptions, env_float, env_int
from reliable_send.counter import ThroughputCounter
from reliable_send.sender import SenderClient

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("publisher")

# Nama 'hub' akan di-resolve oleh jaringan internal Docker Compose
HUB_URL = os.environ.get("HUB_URL", "http://hub:8080")
CONNECTION_STRING = os.environ.get("CONNECTION_STRING", "")
QUEUE_NAME = os.environ.get("QUEUE_NAME", "parking")
CLIENTS = env_int("CLIENTS", 4)
DURATION_SEC = env_float("DURATION_SEC", 0)  # 0 = jalan sampai Ctrl+C
REPORT_INTERVAL_SEC = env_float("REPORT_INTERVAL_SEC", 10)


def load_connection() -> ConnectionSettings:
    if CONNECTION_STRING:
        return ConnectionSettings.from_connection_string(CONNECTION_STRING)
    return ConnectionSettings(endpoint=HUB_URL)


def load_options() -> SenderOptions:
    return SenderOptions(
        events_per_batch=env_int("EVENTS_PER_BATCH", 10),
        event_interval=env_float("EVENT_INTERVAL_SEC", 1.0),
        backoff=env_float("BACKOFF_SEC", 10.0),
    )


async def wait_for_hub(endpoint: str):
    log.info("Publisher: Menunggu hub siap...")
    while True:
        try:
            async with httpx.AsyncClient(base_url=endpoint) as client:
                resp = await client.get("/stats")
                if resp.status_code == 200:
                    log.info("Publisher: Hub siap.")
                    return
        except httpx.ConnectError:
            pass
        await asyncio.sleep(1)


async def report(counter: ThroughputCounter, stop: asyncio.Event):
    """Log total & laju kirim global tiap REPORT_INTERVAL_SEC."""
    last_total = 0
    last_time = time.monotonic()
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=REPORT_INTERVAL_SEC)
        except asyncio.TimeoutError:
            pass
        now = time.monotonic()
        total = counter.value
        rate = (total - last_total) / max(now - last_time, 1e-9)
        log.info(f"Publisher: total terkirim {total} event ({rate:.1f} event/s)")
        last_total, last_time = total, now


async def main():
    connection = load_connection()
    options = load_options()
    await wait_for_hub(connection.endpoint)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: Ctrl+C tetap jadi KeyboardInterrupt
            pass

    total = ThroughputCounter()
    clients = [
        SenderClient(i, connection, QUEUE_NAME, stop, options=options, shared_counter=total)
        for i in range(CLIENTS)
    ]
    reporter = asyncio.create_task(report(total, stop))

    if DURATION_SEC > 0:
        try:
            await asyncio.wait_for(stop.wait(), timeout=DURATION_SEC)
        except asyncio.TimeoutError:
            stop.set()
    else:
        await stop.wait()

    log.info("Publisher: Menghentikan semua client...")
    await asyncio.gather(*(c.send_task for c in clients))
    await reporter

    for c in clients:
        log.info(f"Client-{c.client_ind}: {c.total_sent} event terkirim")
    log.info(f"Publisher: Selesai. Total global: {total.value} event")


if __name__ == "__main__":
    log.info("Publisher: Mulai...")
    asyncio.run(main())
