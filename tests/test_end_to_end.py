# tests/test_end_to_end.py

import asyncio
import random

from main import hub
from reliable_send.config import ConnectionSettings, SenderOptions
from reliable_send.models import SenderState
from reliable_send.sender import SenderClient
from reliable_send.transport import HttpTransport


def make_sender(client, cancel, client_ind=0, backoff=0.3):
    return SenderClient(
        client_ind,
        ConnectionSettings(endpoint="http://test"),
        "parking",
        cancel,
        options=SenderOptions(events_per_batch=10, event_interval=0, backoff=backoff),
        rng=random.Random(client_ind),
        transport_factory=lambda conn, queue: HttpTransport(conn, queue, client=client),
    )


async def wait_until(predicate, timeout=5):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


async def test_sender_delivers_to_hub(client):
    cancel = asyncio.Event()
    senders = [make_sender(client, cancel, i) for i in range(2)]

    await wait_until(lambda: all(s.total_sent >= 30 for s in senders))
    cancel.set()
    await asyncio.gather(*(s.send_task for s in senders))
    await hub.drain()

    stats = (await client.get("/stats")).json()
    assert stats["received_events"] == sum(s.total_sent for s in senders)
    assert stats["per_client"] == {str(s.client_ind): s.total_sent for s in senders}
    assert stats["malformed"] == 0


async def test_hub_throttling_puts_sender_in_backoff(client, monkeypatch):
    monkeypatch.setattr(hub, "events_per_second", 10)
    cancel = asyncio.Event()
    sender = make_sender(client, cancel, backoff=0.5)

    await asyncio.sleep(0.2)
    assert sender.state is SenderState.BACKOFF
    assert sender.total_sent == 10

    cancel.set()
    await asyncio.wait_for(sender.send_task, 1)
    stats = (await client.get("/stats")).json()
    assert stats["throttled_batches"] >= 1
