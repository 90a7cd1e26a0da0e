from __future__ import annotations
import errno
import os
from datetime import datetime, timezone


def is_root() -> bool:
    """SO_BINDTODEVICE and TUNSETIFF both need root (CAP_NET_RAW/CAP_NET_ADMIN)."""
    return os.geteuid() == 0


def errno_name(code: int) -> str:
    if code == 0:
        return "success"
    return errno.errorcode.get(code, str(code))


def describe_outcome(code: int) -> str:
    if code == 0:
        return "success"
    return f"{errno_name(code)} ({os.strerror(code)})"


def ts_utc_compact() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
