# reliable_send/errors.py


class OverloadError(Exception):
    """Broker menolak karena client mengirim lebih cepat dari kuota (HTTP 429)."""


class ConstructionError(Exception):
    """Koneksi ke broker tidak bisa disiapkan saat client dibuat."""
