# reliable_send/config.py

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_MAX_BATCH_BYTES = 256 * 1024


@dataclass
class ConnectionSettings:
    endpoint: str
    key_name: Optional[str] = None
    key: Optional[str] = None
    timeout: float = 10.0
    max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES

    @classmethod
    def from_connection_string(cls, conn_str: str, **kwargs) -> "ConnectionSettings":
        """
        Parse connection string gaya
        "Endpoint=http://hub:8080;SharedAccessKeyName=send;SharedAccessKey=abc".
        Urutan bagian bebas, nama kunci tidak case-sensitive.
        """
        parts = {}
        for chunk in conn_str.split(";"):
            chunk = chunk.strip()
            if not chunk:
                continue
            name, sep, value = chunk.partition("=")
            if not sep:
                raise ValueError(f"Bagian connection string tidak valid: {chunk!r}")
            parts[name.strip().lower()] = value.strip()

        endpoint = parts.get("endpoint")
        if not endpoint:
            raise ValueError("Connection string tidak punya 'Endpoint'")

        return cls(
            endpoint=endpoint,
            key_name=parts.get("sharedaccesskeyname"),
            key=parts.get("sharedaccesskey"),
            **kwargs,
        )


@dataclass
class SenderOptions:
    events_per_batch: int = 10
    event_interval: float = 1.0  # jeda antar event saat mengisi batch
    backoff: float = 10.0        # jeda setelah broker membalas "too many requests"


def env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))
