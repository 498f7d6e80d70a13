# reliable_send/transport.py

import logging
from typing import Optional, Protocol

import httpx

from .batch import EventBatch
from .config import ConnectionSettings
from .errors import ConstructionError
from .models import ErrorKind, Message, MessageBatch, SendResult

log = logging.getLogger("publisher")

KEY_NAME_HEADER = "X-Access-Key-Name"
KEY_HEADER = "X-Access-Key"


class Transport(Protocol):
    def create_batch(self) -> EventBatch: ...

    async def send(self, batch: EventBatch) -> SendResult: ...

    async def aclose(self) -> None: ...


def classify_response(resp: httpx.Response) -> SendResult:
    """Ubah status HTTP jadi SendResult (429 = broker kewalahan)."""
    if resp.is_success:
        return SendResult.success()
    if resp.status_code == 429:
        return SendResult.failure(ErrorKind.OVERLOAD, "too many requests")
    return SendResult.failure(ErrorKind.OTHER, f"HTTP {resp.status_code}: {resp.text}")


class HttpTransport:
    """
    Kirim batch ke hub lewat HTTP: POST {endpoint}/publish/{queue}.
    Satu transport dimiliki satu publisher, tidak dibagi.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        queue_name: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        try:
            url = httpx.URL(settings.endpoint)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConstructionError(f"Endpoint tidak valid: {settings.endpoint!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ConstructionError(f"Endpoint harus http(s)://host, dapat {settings.endpoint!r}")
        if not queue_name:
            raise ConstructionError("Nama queue kosong")

        self.settings = settings
        self.queue_name = queue_name

        headers = {}
        if settings.key_name:
            headers[KEY_NAME_HEADER] = settings.key_name
        if settings.key:
            headers[KEY_HEADER] = settings.key

        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                base_url=str(url), timeout=settings.timeout, headers=headers
            )
        else:
            client.headers.update(headers)
        self.client = client

    def create_batch(self) -> EventBatch:
        return EventBatch(max_size_bytes=self.settings.max_batch_bytes)

    async def send(self, batch: EventBatch) -> SendResult:
        payload = MessageBatch(messages=[
            Message(body=body.decode("utf-8"), properties=props) for body, props in batch
        ])
        try:
            resp = await self.client.post(
                f"/publish/{self.queue_name}", json=payload.model_dump()
            )
        except httpx.HTTPError as e:
            return SendResult.failure(ErrorKind.OTHER, str(e) or type(e).__name__)
        log.debug(f"POST {self.queue_name}: {len(batch)} pesan -> {resp.status_code}")
        return classify_response(resp)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()
