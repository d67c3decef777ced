from __future__ import annotations

import hashlib
from datetime import date
from typing import Optional


def hexmd5(s: str) -> str:
    return hashlib.md5(s.encode("utf-8")).hexdigest()

def safe_float(value) -> float:
    try:
        return float(value)
    except (ValueError, TypeError):
        return 0.0

def parse_number(value) -> float:
    """Strict numeric parse for reply values; bools are not numbers here."""
    if isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    return float(value)

def to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return bool(value)

def yyyymmdd(d: date) -> str:
    return d.strftime("%Y%m%d")

def normalize_host(host: str) -> str:
    if not host.startswith(("http://", "https://")):
        host = f"http://{host}"
    return host.rstrip("/")

def parse_listen_address(address: str) -> tuple[str, int]:
    """Split ``[host]:port`` into ``(host, port)``; an empty host means all interfaces."""
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = "", address
    host = host.strip("[]")
    return host or "0.0.0.0", int(port)

def first_non_empty(*values: Optional[str]) -> str:
    for v in values:
        if v:
            return v
    return ""
