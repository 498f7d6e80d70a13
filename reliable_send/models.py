# reliable_send/models.py

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Operation(IntEnum):
    ENTER = 0
    EXIT = 1


class Event(BaseModel):
    """
    Satu transisi okupansi (mobil masuk / keluar garasi).
    Nama field di wire mengikuti payload lama: Time, Plate, Op, Id.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: datetime = Field(alias="Time")
    tag: str = Field(alias="Plate")
    op: Operation = Field(alias="Op")
    entity_id: int = Field(alias="Id")

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Event":
        return cls.model_validate_json(data)


class OccupancyEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    entity_id: int
    entered_at: datetime


class ErrorKind(str, Enum):
    OVERLOAD = "overload"
    OTHER = "other"


class SendResult(BaseModel):
    """Hasil satu kali kirim batch: sukses, atau gagal dengan jenis error."""
    ok: bool
    kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls) -> "SendResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> "SendResult":
        return cls(ok=False, kind=kind, message=message)


class SenderState(str, Enum):
    SENDING = "sending"
    BACKOFF = "backoff"
    STOPPED = "stopped"


# --- Wire model untuk POST /publish/{queue} ---

class Message(BaseModel):
    body: str
    properties: Dict[str, Any] = {}


class MessageBatch(BaseModel):
    messages: List[Message]


class HubStats(BaseModel):
    received_events: int
    enters: int
    exits: int
    malformed: int
    throttled_batches: int
    per_client: Dict[str, int]
    queued: int
    last_updated: Optional[str]
    start_time: Optional[str] = None
