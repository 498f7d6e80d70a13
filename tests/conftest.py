# tests/conftest.py

import asyncio
import time

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Import 'app' DAN 'hub' global dari main.py
from main import app, hub
from reliable_send.batch import EventBatch
from reliable_send.models import ErrorKind, SendResult


@pytest_asyncio.fixture(scope="function")
async def client():
    """
    Fixture ini membuat test client DAN mereset state hub
    SEBELUM setiap fungsi tes dijalankan.
    """
    await hub.reset_for_testing()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await hub.shutdown()


class FakeTransport:
    """
    Transport palsu untuk SenderClient.

    `results` dipakai berurutan untuk tiap send(). Setelah habis, send()
    menahan kirim (menunggu `release`) dan men-set `idle`, jadi tes bisa
    memeriksa state dengan pasti.
    """

    def __init__(self, results=None, max_batch_bytes=256 * 1024):
        self.results = list(results or [])
        self.max_batch_bytes = max_batch_bytes
        self.sent = []        # list of (monotonic time, jumlah pesan)
        self.attempts = []    # waktu tiap percobaan kirim
        self.idle = asyncio.Event()
        self.release = asyncio.Event()
        self.closed = False

    def create_batch(self):
        return EventBatch(max_size_bytes=self.max_batch_bytes)

    async def send(self, batch):
        self.attempts.append(time.monotonic())
        if not self.results:
            self.idle.set()
            await self.release.wait()
            return SendResult.failure(ErrorKind.OTHER, "released")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        if result.ok:
            self.sent.append((time.monotonic(), len(batch)))
        return result

    async def aclose(self):
        self.closed = True


@pytest.fixture
def make_transport():
    def factory(results=None, **kwargs):
        fake = FakeTransport(results, **kwargs)
        return fake, (lambda connection, queue_name: fake)
    return factory
