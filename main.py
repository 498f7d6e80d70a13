# main.py

from fastapi import FastAPI, HTTPException, Request
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import Optional
import logging

from reliable_send.config import DEFAULT_MAX_BATCH_BYTES, env_int
from reliable_send.errors import OverloadError
from reliable_send.hub import BatchTooLarge, IngestHub
from reliable_send.models import HubStats, MessageBatch
from reliable_send.transport import KEY_HEADER, KEY_NAME_HEADER
import os

# Setup logging
logging.basicConfig(level=logging.INFO)
log = logging.getLogger("uvicorn")

# Kosong = hub tidak memeriksa access key
ACCESS_KEY_NAME = os.environ.get("HUB_ACCESS_KEY_NAME", "")
ACCESS_KEY = os.environ.get("HUB_ACCESS_KEY", "")

hub = IngestHub(
    events_per_second=env_int("HUB_EVENTS_PER_SECOND", 1000),
    max_queue=env_int("HUB_MAX_QUEUE", 10000),
    max_batch_bytes=env_int("HUB_MAX_BATCH_BYTES", DEFAULT_MAX_BATCH_BYTES),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Mengelola startup/shutdown worker hub."""
    log.info("Hub starting up...")
    await hub.initialize()
    yield
    log.info("Hub shutting down.")
    await hub.shutdown()


app = FastAPI(
    title="Parking Event Hub (dev broker)",
    lifespan=lifespan
)

START_TIME = datetime.now(timezone.utc).isoformat()


def check_access(request: Request):
    if not ACCESS_KEY:
        return
    if (request.headers.get(KEY_NAME_HEADER) != ACCESS_KEY_NAME
            or request.headers.get(KEY_HEADER) != ACCESS_KEY):
        raise HTTPException(status_code=401, detail="invalid access key")


@app.post("/publish/{queue}", status_code=202)
async def publish_batch(queue: str, batch: MessageBatch, request: Request):
    """
    Hanya validasi + masukkan ke queue, tidak memblokir.
    429 kalau client mengirim lebih cepat dari kuota.
    """
    check_access(request)
    try:
        count = hub.accept(queue, batch)
    except BatchTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e))
    except OverloadError as e:
        log.warning(f"Throttling queue {queue}: {e}")
        raise HTTPException(status_code=429, detail=str(e))
    return {"status": "accepted", "queued_count": count}


@app.get("/events")
async def get_events(queue: Optional[str] = None):
    events = await hub.get_events(queue)
    return [e.model_dump(mode="json", by_alias=True) for e in events]


@app.get("/stats", response_model=HubStats)
async def get_stats():
    stats = await hub.get_stats()
    stats["start_time"] = START_TIME
    return stats


# --- Main execution (untuk development) ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
